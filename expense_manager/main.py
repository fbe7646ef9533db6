import logging

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException
from .core.config import get_settings, Settings
from .core.logging import init_logging, request_context_middleware
from .db.migrate import apply_migrations
from .core import errors
from .routers import health, expenses, chat
from .services.assistant.client import ChatModel, OpenAIChatModel


def create_app(
    settings_override: Settings | None = None,
    chat_model: ChatModel | None = None,
) -> FastAPI:
    """Application factory.

    settings_override: pass an already constructed Settings instance for tests
    to isolate environment (e.g., temp DB). Falls back to cached get_settings().
    chat_model: replaces the OpenAI-backed model (tests use a scripted fake).
    """
    settings = settings_override or get_settings()
    init_logging(debug=settings.debug)
    logger = logging.getLogger("app")

    # Ensure schema + reference data (idempotent) so fresh DBs are usable
    try:
        apply_migrations(settings.db_path, seed_demo=settings.seed_demo_data)  # type: ignore[arg-type]
    except Exception:
        # Failing to init DB is fatal; re-raise after logging
        logger.exception("failed to apply migrations on startup")
        raise

    app = FastAPI(
        title=settings.app_name, debug=settings.debug, version=settings.version
    )
    app.state.settings = settings
    app.state.chat_model = chat_model or OpenAIChatModel(settings)
    if not app.state.chat_model.is_available():
        logger.warning("chat model not configured; /api/chat will answer with setup help")

    # Middleware (request id / structured logging)
    app.middleware("http")(request_context_middleware)

    # Error handlers
    app.add_exception_handler(StarletteHTTPException, errors.http_exception_handler)
    app.add_exception_handler(RequestValidationError, errors.validation_error_handler)
    app.add_exception_handler(Exception, errors.server_error_handler)

    # Routers
    app.include_router(health.router)
    app.include_router(expenses.router)
    app.include_router(chat.router)

    @app.get("/")
    async def root():
        return {"message": "Expense Manager API", "version": settings.version}

    return app


app = create_app()
