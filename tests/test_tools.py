"""Tool registry exposed to the chat model."""

from __future__ import annotations

import json

import pytest

from expense_manager.services.assistant.tools import build_expense_tools

from conftest import ALICE, BOB


@pytest.fixture
def registry(service):
    return build_expense_tools(service)


def _run(registry, name, args=None):
    return json.loads(registry.execute(name, json.dumps(args) if args is not None else None))


def test_catalog_names_and_schema(registry):
    assert registry.names() == [
        "get_expenses",
        "get_expense_by_id",
        "create_expense",
        "submit_expense",
        "get_pending_approvals",
        "approve_expense",
        "reject_expense",
        "get_dashboard_stats",
    ]
    tools = {t["function"]["name"]: t for t in registry.openai_tools()}
    assert all(t["type"] == "function" for t in tools.values())
    create = tools["create_expense"]["function"]["parameters"]
    assert create["required"] == ["user_id", "category_id", "amount", "expense_date"]
    assert create["properties"]["amount"]["type"] == "number"
    assert "required" not in tools["get_dashboard_stats"]["function"]["parameters"]


def test_unknown_function(registry):
    assert _run(registry, "delete_everything", {}) == {
        "error": "Unknown function: delete_everything"
    }


def test_malformed_arguments(registry):
    result = json.loads(registry.execute("submit_expense", "{not json"))
    assert result["error"].startswith("Invalid arguments for submit_expense")


def test_deeply_nested_arguments(registry):
    nested = "[" * 100000 + "]" * 100000
    result = json.loads(registry.execute("get_expenses", nested))
    assert result["error"].startswith("Invalid arguments for get_expenses")


def test_description_limit_through_tool(registry, service):
    args = {
        "user_id": ALICE,
        "category_id": 5,
        "amount": 3,
        "expense_date": "2024-11-05",
    }
    too_long = _run(registry, "create_expense", {**args, "description": "x" * 1001})
    assert too_long["error"].startswith("Invalid arguments for create_expense")
    assert "description" in too_long["error"]
    assert service.list_expenses().value == []

    at_limit = _run(registry, "create_expense", {**args, "description": "x" * 1000})
    assert at_limit["success"] is True


def test_missing_required_argument(registry):
    result = _run(registry, "approve_expense", {"expense_id": 1})
    assert "reviewer_id" in result["error"]


def test_create_submit_approve_through_tools(registry, service):
    created = _run(
        registry,
        "create_expense",
        {
            "user_id": ALICE,
            "category_id": 2,
            "amount": 18.755,
            "expense_date": "2024-11-05",
            "description": "Client lunch",
        },
    )
    assert created["success"] is True
    expense_id = created["expense_id"]
    assert service.get_expense(expense_id).value.amount_minor == 1876

    assert _run(registry, "submit_expense", {"expense_id": expense_id}) == {
        "success": True,
        "error": None,
    }
    pending = _run(registry, "get_pending_approvals", {"search_term": "client"})
    assert pending["count"] == 1
    assert pending["expenses"][0]["amount"] == "18.76"

    assert _run(registry, "approve_expense", {"expense_id": expense_id, "reviewer_id": BOB})[
        "success"
    ]
    stats = _run(registry, "get_dashboard_stats", {})
    assert stats["approved_amount_minor"] == 1876


def test_transition_errors_are_reported_not_raised(registry, make_draft):
    expense_id = make_draft()
    result = _run(registry, "approve_expense", {"expense_id": expense_id, "reviewer_id": BOB})
    assert result["success"] is False
    assert "Draft" in result["error"]


def test_get_expense_by_id(registry, make_draft):
    expense_id = make_draft(description="Taxi")
    assert _run(registry, "get_expense_by_id", {"expense_id": expense_id})["description"] == "Taxi"
    assert "not found" in _run(registry, "get_expense_by_id", {"expense_id": 777})["error"]


def test_get_expenses_filters(registry, make_draft):
    make_draft(user_id=ALICE)
    make_draft(user_id=BOB)
    result = _run(registry, "get_expenses", {"user_id": BOB})
    assert result["count"] == 1
    assert result["expenses"][0]["user_name"] == "Bob Manager"
    assert "warning" not in result


def test_handler_exception_becomes_error_result(registry, service, monkeypatch):
    def boom(*args, **kwargs):
        raise RuntimeError("kaboom")

    monkeypatch.setattr(service, "list_pending_approvals", boom)
    assert _run(registry, "get_pending_approvals", {}) == {"error": "kaboom"}
