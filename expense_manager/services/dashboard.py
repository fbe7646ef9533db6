"""Dashboard aggregation.

Stats are a projection of the current expense set and are recomputed on every
read; nothing here is persisted. Kept pure (expenses passed in) so the same
computation serves live store data and the degraded fallback set.
"""

from __future__ import annotations

from typing import Iterable

from expense_manager.models.constants import StatusId
from expense_manager.models.expense import DashboardStats, Expense


def compute_stats(expenses: Iterable[Expense]) -> DashboardStats:
    total = pending = approved = approved_minor = 0
    for expense in expenses:
        total += 1
        if expense.status_id == StatusId.SUBMITTED:
            pending += 1
        elif expense.status_id == StatusId.APPROVED:
            approved += 1
            approved_minor += expense.amount_minor
    return DashboardStats(
        total_expenses=total,
        pending_approvals=pending,
        approved_amount_minor=approved_minor,
        approved_count=approved,
    )
