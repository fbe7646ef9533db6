"""Expense lifecycle engine and query layer.

Lifecycle: Draft -> Submitted -> Approved | Rejected. Approved and Rejected
are terminal and nothing returns to Draft. Edits and deletes are Draft-only.
Guards are evaluated by the store in the same statement as the write (see
`Database.submit_expense` / `review_expense`), never by reading first.

Every public method returns an `OperationResult` instead of raising:

- reads that hit a store failure fall back to the injected
  `FallbackDataSource` and report the failure as `advisory`;
- writes report `validation`, `invalid_state_transition`, `not_found` or
  `store_unavailable` errors.
"""

from __future__ import annotations

import logging
from datetime import date, datetime
from decimal import DecimalException
from typing import Any, Callable, Dict, List, Optional, TypeVar

from pydantic import ValidationError

from expense_manager.core.errors import StoreUnavailable, describe_store_error
from expense_manager.db.dal import ConstraintViolation, Database
from expense_manager.db.fallback import FallbackDataSource, SampleDataSource
from expense_manager.models.constants import (
    CURRENCY,
    MAX_AMOUNT_MINOR,
    MAX_DESCRIPTION_LENGTH,
    StatusId,
)
from expense_manager.models.expense import (
    Category,
    DashboardStats,
    Expense,
    ExpenseCreate,
    ExpenseFilters,
    ExpenseStatus,
    ExpenseUpdate,
    User,
)
from expense_manager.models.result import ErrorKind, OperationResult
from expense_manager.services.dashboard import compute_stats
from expense_manager.services.money import format_gbp, to_minor_units

logger = logging.getLogger("app.expenses")

T = TypeVar("T")


# Row mapping ------------------------------------------------------


def _parse_ts(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


def _row_to_expense(row: Dict[str, Any]) -> Expense:
    return Expense(
        expense_id=row["expense_id"],
        user_id=row["user_id"],
        user_name=row["user_name"],
        email=row["email"],
        category_id=row["category_id"],
        category_name=row["category_name"],
        status_id=row["status_id"],
        status_name=row["status_name"],
        amount_minor=row["amount_minor"],
        currency=row["currency"],
        expense_date=date.fromisoformat(row["expense_date"]),
        description=row.get("description"),
        receipt_file=row.get("receipt_file"),
        submitted_at=_parse_ts(row.get("submitted_at")),
        reviewed_by=row.get("reviewed_by"),
        reviewer_name=row.get("reviewer_name"),
        reviewed_at=_parse_ts(row.get("reviewed_at")),
        created_at=_parse_ts(row["created_at"]),
    )


def _row_to_user(row: Dict[str, Any]) -> User:
    return User(
        user_id=row["user_id"],
        user_name=row["user_name"],
        email=row["email"],
        role_id=row["role_id"],
        role_name=row["role_name"],
        manager_id=row.get("manager_id"),
        manager_name=row.get("manager_name"),
        is_active=bool(row["is_active"]),
        created_at=_parse_ts(row["created_at"]),
    )


def _row_to_category(row: Dict[str, Any]) -> Category:
    return Category(
        category_id=row["category_id"],
        category_name=row["category_name"],
        is_active=bool(row["is_active"]),
    )


def _row_to_status(row: Dict[str, Any]) -> ExpenseStatus:
    return ExpenseStatus(status_id=row["status_id"], status_name=row["status_name"])


def matches_filters(expense: Expense, filters: ExpenseFilters) -> bool:
    """In-memory equivalent of the store's filter semantics."""
    if filters.user_id is not None and expense.user_id != filters.user_id:
        return False
    if filters.status_id is not None and expense.status_id != filters.status_id:
        return False
    if filters.category_id is not None and expense.category_id != filters.category_id:
        return False
    if filters.search_term:
        term = filters.search_term.lower()
        haystacks = (expense.description or "", expense.category_name, expense.user_name)
        if not any(term in h.lower() for h in haystacks):
            return False
    return True


# Service ----------------------------------------------------------


class ExpenseService:
    def __init__(self, db: Database, fallback: Optional[FallbackDataSource] = None):
        self.db = db
        self.fallback = fallback if fallback is not None else SampleDataSource()

    # Generic read/write wrappers ---------------------------------
    def _read(
        self,
        operation: str,
        fetch: Callable[[], T],
        degraded: Callable[[], Optional[T]],
    ) -> OperationResult[T]:
        try:
            return OperationResult.ok(fetch())
        except StoreUnavailable as exc:
            message = str(exc)
        except (ValidationError, ValueError, KeyError) as exc:
            # a row that does not fit the model breaks the store contract
            message = describe_store_error(exc, operation)
        logger.error(message)
        fallback_value = degraded()
        if fallback_value is None:
            return OperationResult.fail(ErrorKind.STORE_UNAVAILABLE, message)
        logger.warning("%s served from fallback data", operation)
        return OperationResult.ok(fallback_value, advisory=message)

    def _write(
        self, operation: str, action: Callable[[], OperationResult[T]]
    ) -> OperationResult[T]:
        try:
            return action()
        except ConstraintViolation as exc:
            logger.warning(
                "%s rejected by store: %s", operation, exc, extra={"operation": operation}
            )
            return OperationResult.fail(
                ErrorKind.VALIDATION,
                f"The store rejected {operation}: {exc}. "
                "Check that the referenced user, category and reviewer exist.",
            )
        except StoreUnavailable as exc:
            logger.error(str(exc))
            return OperationResult.fail(ErrorKind.STORE_UNAVAILABLE, str(exc))

    def _guard_failure(
        self, expense_id: int, verb: str, requirement: str
    ) -> OperationResult[bool]:
        """Explain a guarded write that changed nothing: missing row or wrong status."""
        row = self.db.get_expense(expense_id)
        if row is None:
            return OperationResult.fail(
                ErrorKind.NOT_FOUND, f"Expense {expense_id} not found."
            )
        message = (
            f"Expense {expense_id} is {row['status_name']} and cannot be {verb} "
            f"({requirement})."
        )
        logger.info(
            "transition refused: %s", message, extra={"expense_id": expense_id}
        )
        return OperationResult.fail(ErrorKind.INVALID_STATE_TRANSITION, message)

    # Queries ------------------------------------------------------
    def list_expenses(
        self, filters: Optional[ExpenseFilters] = None
    ) -> OperationResult[List[Expense]]:
        filters = filters or ExpenseFilters()

        def fetch() -> List[Expense]:
            rows = self.db.list_expenses(
                user_id=filters.user_id,
                status_id=filters.status_id,
                category_id=filters.category_id,
                search_term=filters.search_term,
            )
            return [_row_to_expense(r) for r in rows]

        def degraded() -> Optional[List[Expense]]:
            sample = self.fallback.expenses()
            if sample is None:
                return None
            return [e for e in sample if matches_filters(e, filters)]

        return self._read("list_expenses", fetch, degraded)

    def list_pending_approvals(
        self, search_term: Optional[str] = None
    ) -> OperationResult[List[Expense]]:
        return self.list_expenses(
            ExpenseFilters(status_id=StatusId.SUBMITTED, search_term=search_term)
        )

    def get_expense(self, expense_id: int) -> OperationResult[Optional[Expense]]:
        """Absent ids are a successful read with no value, not an error."""

        def fetch() -> Optional[Expense]:
            row = self.db.get_expense(expense_id)
            return _row_to_expense(row) if row else None

        def degraded() -> Optional[Expense]:
            sample = self.fallback.expenses() or []
            return next((e for e in sample if e.expense_id == expense_id), None)

        return self._read("get_expense", fetch, degraded)

    def get_dashboard_stats(self) -> OperationResult[DashboardStats]:
        listing = self.list_expenses()
        if listing.error is not None:
            return OperationResult.fail(listing.error.kind, listing.error.message)
        return OperationResult.ok(compute_stats(listing.value or []), advisory=listing.advisory)

    # Reference data -----------------------------------------------
    def list_categories(self) -> OperationResult[List[Category]]:
        return self._read(
            "list_categories",
            lambda: [_row_to_category(r) for r in self.db.list_categories()],
            self.fallback.categories,
        )

    def list_statuses(self) -> OperationResult[List[ExpenseStatus]]:
        return self._read(
            "list_statuses",
            lambda: [_row_to_status(r) for r in self.db.list_statuses()],
            self.fallback.statuses,
        )

    def list_users(self) -> OperationResult[List[User]]:
        return self._read(
            "list_users",
            lambda: [_row_to_user(r) for r in self.db.list_users()],
            self.fallback.users,
        )

    def get_user(self, user_id: int) -> OperationResult[Optional[User]]:
        def fetch() -> Optional[User]:
            row = self.db.get_user(user_id)
            return _row_to_user(row) if row else None

        def degraded() -> Optional[User]:
            return next(
                (u for u in self.fallback.users() or [] if u.user_id == user_id), None
            )

        return self._read("get_user", fetch, degraded)

    # Lifecycle ----------------------------------------------------
    def create_expense(self, request: ExpenseCreate) -> OperationResult[int]:
        problem = _validate_amount_and_description(request.amount, request.description)
        if problem:
            return OperationResult.fail(ErrorKind.VALIDATION, problem)
        amount_minor = to_minor_units(request.amount)

        def action() -> OperationResult[int]:
            expense_id = self.db.insert_expense(
                user_id=request.user_id,
                category_id=request.category_id,
                amount_minor=amount_minor,
                currency=CURRENCY,
                expense_date=request.expense_date,
                description=request.description,
                receipt_file=request.receipt_file,
            )
            logger.info(
                "expense %s created for user %s (%s)",
                expense_id,
                request.user_id,
                format_gbp(amount_minor),
                extra={"expense_id": expense_id, "user_id": request.user_id},
            )
            return OperationResult.ok(expense_id)

        return self._write("create_expense", action)

    def update_expense(
        self, expense_id: int, request: ExpenseUpdate
    ) -> OperationResult[bool]:
        problem = _validate_amount_and_description(request.amount, request.description)
        if problem:
            return OperationResult.fail(ErrorKind.VALIDATION, problem)

        def action() -> OperationResult[bool]:
            row = self.db.update_draft_expense(
                expense_id,
                category_id=request.category_id,
                amount_minor=to_minor_units(request.amount),
                expense_date=request.expense_date,
                description=request.description,
                receipt_file=request.receipt_file,
            )
            if row is None:
                return self._guard_failure(
                    expense_id, "updated", "only Draft expenses can be modified"
                )
            logger.info("expense %s updated", expense_id, extra={"expense_id": expense_id})
            return OperationResult.ok(True)

        return self._write("update_expense", action)

    def delete_expense(self, expense_id: int) -> OperationResult[bool]:
        def action() -> OperationResult[bool]:
            if not self.db.delete_draft_expense(expense_id):
                return self._guard_failure(
                    expense_id, "deleted", "only Draft expenses can be deleted"
                )
            logger.info("expense %s deleted", expense_id, extra={"expense_id": expense_id})
            return OperationResult.ok(True)

        return self._write("delete_expense", action)

    def submit_expense(self, expense_id: int) -> OperationResult[bool]:
        def action() -> OperationResult[bool]:
            row = self.db.submit_expense(expense_id)
            if row is None:
                return self._guard_failure(
                    expense_id, "submitted", "only Draft expenses can be submitted"
                )
            logger.info(
                "expense %s submitted", expense_id, extra={"expense_id": expense_id}
            )
            return OperationResult.ok(True)

        return self._write("submit_expense", action)

    def approve_expense(self, expense_id: int, reviewer_id: int) -> OperationResult[bool]:
        return self._review(expense_id, reviewer_id, StatusId.APPROVED)

    def reject_expense(self, expense_id: int, reviewer_id: int) -> OperationResult[bool]:
        return self._review(expense_id, reviewer_id, StatusId.REJECTED)

    def _review(
        self, expense_id: int, reviewer_id: int, outcome: StatusId
    ) -> OperationResult[bool]:
        verb, operation = (
            ("approved", "approve_expense")
            if outcome == StatusId.APPROVED
            else ("rejected", "reject_expense")
        )

        def action() -> OperationResult[bool]:
            row = self.db.review_expense(expense_id, outcome, reviewer_id)
            if row is None:
                return self._guard_failure(
                    expense_id, verb, f"only Submitted expenses can be {verb}"
                )
            if row["user_id"] == reviewer_id:
                # TODO: refuse self-review once the approval policy is settled
                logger.warning(
                    "expense %s %s by its own submitter (user %s)",
                    expense_id,
                    verb,
                    reviewer_id,
                )
            logger.info(
                "expense %s %s by user %s",
                expense_id,
                verb,
                reviewer_id,
                extra={"expense_id": expense_id, "reviewer_id": reviewer_id},
            )
            return OperationResult.ok(True)

        return self._write(operation, action)


def _validate_amount_and_description(amount, description: Optional[str]) -> Optional[str]:
    if amount is None or amount <= 0:
        return "Amount must be greater than zero."
    try:
        amount_minor = to_minor_units(amount)
    except DecimalException:
        return "Amount is too large."
    if amount_minor <= 0:
        return "Amount must be at least £0.01."
    if amount_minor > MAX_AMOUNT_MINOR:
        return "Amount is too large."
    if description is not None and len(description) > MAX_DESCRIPTION_LENGTH:
        return f"Description cannot exceed {MAX_DESCRIPTION_LENGTH} characters."
    return None
