"""Shared test fixtures and configuration."""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

import pytest
from fastapi.testclient import TestClient

from expense_manager.core.config import Settings
from expense_manager.db.dal import Database
from expense_manager.db.fallback import NoFallback, SampleDataSource
from expense_manager.db.migrate import apply_migrations
from expense_manager.models.expense import ExpenseCreate
from expense_manager.services.assistant.client import ChatModel, ModelReply, ToolCall
from expense_manager.services.expense_service import ExpenseService

ALICE = 1  # demo employee
BOB = 2  # demo manager


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    """Settings isolated to a temp database with chat disabled."""
    s = Settings(
        db_path=tmp_path / "expenses.sqlite3",
        seed_demo_data=True,
        openai_endpoint=None,
        openai_api_key=None,
        openai_deployment=None,
    )
    s.init_post_load()
    return s


@pytest.fixture
def db(settings: Settings) -> Database:
    apply_migrations(settings.db_path, seed_demo=True)
    return Database(settings.db_path)


@pytest.fixture
def service(db: Database) -> ExpenseService:
    return ExpenseService(db, fallback=SampleDataSource())


@pytest.fixture
def strict_service(db: Database) -> ExpenseService:
    """Service whose reads surface store failures instead of sample data."""
    return ExpenseService(db, fallback=NoFallback())


@pytest.fixture
def broken_db(tmp_path: Path) -> Database:
    """A store that cannot be opened: the parent directory does not exist."""
    return Database(tmp_path / "missing" / "nowhere.sqlite3")


@pytest.fixture
def make_draft(service: ExpenseService) -> Callable[..., int]:
    def _make(
        amount: str = "25.00",
        user_id: int = ALICE,
        category_id: int = 2,
        description: Optional[str] = "Team lunch",
        expense_date: date = date(2024, 11, 5),
    ) -> int:
        result = service.create_expense(
            ExpenseCreate(
                user_id=user_id,
                category_id=category_id,
                amount=Decimal(amount),
                expense_date=expense_date,
                description=description,
            )
        )
        assert result.success, result.error
        return result.value

    return _make


class ScriptedChatModel(ChatModel):
    """Chat model double that replays a fixed list of replies."""

    def __init__(self, replies: List[Any], available: bool = True) -> None:
        self.replies = list(replies)
        self.available = available
        self.calls: List[List[Dict[str, Any]]] = []
        self.tools_seen: List[List[Dict[str, Any]]] = []

    def is_available(self) -> bool:
        return self.available

    async def complete(self, messages, tools) -> ModelReply:
        # snapshot: the loop keeps appending to the same list
        self.calls.append([dict(m) for m in messages])
        self.tools_seen.append(tools)
        reply = self.replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        return reply


def tool_reply(*calls: tuple) -> ModelReply:
    """Build a reply requesting tools from (id, name, arguments_json) tuples."""
    return ModelReply(
        tool_calls=[ToolCall(id=cid, name=name, arguments=args) for cid, name, args in calls],
        finish_reason="tool_calls",
    )


def text_reply(content: str) -> ModelReply:
    return ModelReply(content=content, finish_reason="stop")


@pytest.fixture
def app_factory(settings: Settings):
    from expense_manager.main import create_app

    def _build(chat_model: Optional[ChatModel] = None, **overrides):
        s = settings.model_copy(update=overrides) if overrides else settings
        return create_app(s, chat_model=chat_model)

    return _build


@pytest.fixture
def client(app_factory) -> TestClient:
    return TestClient(app_factory())
