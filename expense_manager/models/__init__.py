"""Pydantic domain models for the Expense Manager service."""

from .constants import (
    CURRENCY,
    STATUS_NAMES,
    StatusId,
    RoleId,
)  # re-export
from .expense import (
    Category,
    DashboardStats,
    Expense,
    ExpenseCreate,
    ExpenseFilters,
    ExpenseStatus,
    ExpenseUpdate,
    User,
)
from .chat import ChatMessage, ChatRequest, ChatResponse, ChatStatus
from .result import ErrorKind, OperationError, OperationResult

__all__ = [
    "CURRENCY",
    "STATUS_NAMES",
    "StatusId",
    "RoleId",
    "Category",
    "DashboardStats",
    "Expense",
    "ExpenseCreate",
    "ExpenseFilters",
    "ExpenseStatus",
    "ExpenseUpdate",
    "User",
    "ChatMessage",
    "ChatRequest",
    "ChatResponse",
    "ChatStatus",
    "ErrorKind",
    "OperationError",
    "OperationResult",
]
