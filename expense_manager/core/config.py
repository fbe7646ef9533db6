from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment with defaults.

    Environment variable mapping follows pydantic's rules (e.g., APP_NAME, DEBUG,
    DATA_DIR, DB_FILENAME, OPENAI_ENDPOINT, OPENAI_DEPLOYMENT, CHAT_MAX_ITERATIONS).
    """

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False)

    # Basic app metadata
    app_name: str = "Expense Manager"
    debug: bool = False
    version: str = "0.1.0"

    # Data & persistence
    data_dir: Path = Path("data")
    db_filename: str = "expenses.sqlite3"
    db_path: Optional[Path] = None  # derived if not provided
    seed_demo_data: bool = True

    # Serve the built-in sample dataset on read failures
    fallback_enabled: bool = True

    # Chat assistant (OpenAI / Azure OpenAI)
    openai_endpoint: Optional[str] = None  # Azure resource URL; plain OpenAI when unset
    openai_api_key: Optional[str] = None
    openai_deployment: Optional[str] = None  # Azure deployment or OpenAI model name
    openai_api_version: str = "2024-06-01"
    openai_timeout_seconds: float = 30.0

    chat_max_iterations: int = 5
    chat_max_tokens: int = 2000
    chat_temperature: float = 0.7

    def init_post_load(self) -> None:
        """Finalize derived fields and ensure directories exist."""
        if self.db_path is None:
            if not self.db_filename:
                raise ValueError(
                    "No expense store configured: set DB_PATH or DB_FILENAME"
                )
            self.db_path = self.data_dir / self.db_filename
        # Ensure persistence directory exists
        Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)
        if self.chat_max_iterations < 1:
            raise ValueError("chat_max_iterations must be at least 1")

    @property
    def chat_configured(self) -> bool:
        return bool(self.openai_api_key and self.openai_deployment)


@lru_cache
def get_settings() -> Settings:
    settings = Settings()
    settings.init_post_load()
    return settings
