"""Degraded data source used when the expense store is unreachable for reads.

The service is handed a `FallbackDataSource` at construction time; the
default `SampleDataSource` serves a small fixed dataset so pages and the
assistant stay usable (clearly marked as degraded through the read advisory).
`NoFallback` disables the behaviour and lets read failures surface.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import List, Optional

from expense_manager.models.constants import (
    CATEGORY_NAMES,
    REVIEWED_STATUSES,
    STATUS_NAMES,
    StatusId,
)
from expense_manager.models.expense import Category, Expense, ExpenseStatus, User


class FallbackDataSource:
    """Interface for read fallbacks; every method returns None when no data is offered."""

    def expenses(self) -> Optional[List[Expense]]:
        return None

    def categories(self) -> Optional[List[Category]]:
        return None

    def statuses(self) -> Optional[List[ExpenseStatus]]:
        return None

    def users(self) -> Optional[List[User]]:
        return None


class NoFallback(FallbackDataSource):
    pass


_ALICE = (1, "Alice Example", "alice@example.co.uk")
_BOB = (2, "Bob Manager", "bob.manager@example.co.uk")

# (id, owner, category, status, pence, description, age in days)
_SAMPLE_EXPENSES = (
    (1, _ALICE, 1, StatusId.APPROVED, 12300, "Travel for meeting", 8),
    (2, _ALICE, 3, StatusId.APPROVED, 100, "Office supplies", 6),
    (3, _BOB, 1, StatusId.DRAFT, 23400, "Client visit travel", 15),
    (4, _ALICE, 1, StatusId.SUBMITTED, 25000, "Client dinner meeting", 21),
    (5, _ALICE, 2, StatusId.APPROVED, 5500, "Team lunch", 30),
)


class SampleDataSource(FallbackDataSource):
    """Fixed sample data, timestamped relative to `now` on every call."""

    def __init__(self, now=None):
        self._now = now or (lambda: datetime.now(timezone.utc))

    def expenses(self) -> List[Expense]:
        now = self._now()
        rows: List[Expense] = []
        for expense_id, owner, category_id, status, pence, description, age in _SAMPLE_EXPENSES:
            created = now - timedelta(days=age)
            submitted = created + timedelta(days=1) if status != StatusId.DRAFT else None
            reviewed = created + timedelta(days=2) if status in REVIEWED_STATUSES else None
            rows.append(
                Expense(
                    expense_id=expense_id,
                    user_id=owner[0],
                    user_name=owner[1],
                    email=owner[2],
                    category_id=category_id,
                    category_name=CATEGORY_NAMES[category_id],
                    status_id=int(status),
                    status_name=STATUS_NAMES[status],
                    amount_minor=pence,
                    expense_date=created.date(),
                    description=description,
                    submitted_at=submitted,
                    reviewed_by=_BOB[0] if reviewed else None,
                    reviewer_name=_BOB[1] if reviewed else None,
                    reviewed_at=reviewed,
                    created_at=created,
                )
            )
        return rows

    def categories(self) -> List[Category]:
        return [
            Category(category_id=cid, category_name=name)
            for cid, name in CATEGORY_NAMES.items()
        ]

    def statuses(self) -> List[ExpenseStatus]:
        return [
            ExpenseStatus(status_id=int(sid), status_name=name)
            for sid, name in STATUS_NAMES.items()
        ]

    def users(self) -> List[User]:
        now = self._now()
        return [
            User(
                user_id=_ALICE[0],
                user_name=_ALICE[1],
                email=_ALICE[2],
                role_id=1,
                role_name="Employee",
                manager_id=_BOB[0],
                manager_name=_BOB[1],
                created_at=now - timedelta(days=182),
            ),
            User(
                user_id=_BOB[0],
                user_name=_BOB[1],
                email=_BOB[2],
                role_id=2,
                role_name="Manager",
                created_at=now - timedelta(days=365),
            ),
        ]
