"""Lifecycle engine: guarded transitions and stamp invariants."""

from __future__ import annotations

import sqlite3
import threading
from datetime import date
from decimal import Decimal

import pytest
from pydantic import ValidationError

from expense_manager.models.constants import StatusId
from expense_manager.models.expense import ExpenseCreate, ExpenseUpdate
from expense_manager.models.result import ErrorKind

from conftest import ALICE, BOB


def _status(service, expense_id):
    return service.get_expense(expense_id).value


class TestCreate:
    def test_new_expense_is_draft_in_pence(self, service, make_draft):
        expense_id = make_draft(amount="25.00")
        expense = _status(service, expense_id)
        assert expense.status_id == StatusId.DRAFT
        assert expense.status_name == "Draft"
        assert expense.amount_minor == 2500
        assert expense.amount == Decimal("25.00")
        assert expense.currency == "GBP"
        assert expense.submitted_at is None
        assert expense.reviewed_at is None
        assert expense.reviewed_by is None

    def test_amount_converted_to_pence(self, service, make_draft):
        expense = _status(service, make_draft(amount="12.34"))
        assert expense.amount_minor == 1234
        assert expense.amount == Decimal("12.34")

    def test_amount_rounds_half_up(self, service, make_draft):
        expense_id = make_draft(amount="10.005")
        assert _status(service, expense_id).amount_minor == 1001

    def test_sub_penny_amount_is_rejected(self, service):
        result = service.create_expense(
            ExpenseCreate(
                user_id=ALICE,
                category_id=1,
                amount=Decimal("0.004"),
                expense_date=date(2024, 1, 1),
            )
        )
        assert result.error.kind is ErrorKind.VALIDATION

    def test_unknown_user_is_validation_error(self, service):
        result = service.create_expense(
            ExpenseCreate(
                user_id=999,
                category_id=1,
                amount=Decimal("5"),
                expense_date=date(2024, 1, 1),
            )
        )
        assert not result.success
        assert result.error.kind is ErrorKind.VALIDATION
        assert service.list_expenses().value == []

    def test_unknown_category_is_validation_error(self, service):
        result = service.create_expense(
            ExpenseCreate(
                user_id=ALICE,
                category_id=42,
                amount=Decimal("5"),
                expense_date=date(2024, 1, 1),
            )
        )
        assert result.error.kind is ErrorKind.VALIDATION

    def test_ids_are_unique(self, make_draft):
        ids = {make_draft() for _ in range(5)}
        assert len(ids) == 5

    @pytest.mark.parametrize("amount", ["1e20", "1e999999"])
    def test_oversized_amount_is_validation_error(self, service, amount):
        result = service.create_expense(
            ExpenseCreate(
                user_id=ALICE,
                category_id=1,
                amount=Decimal(amount),
                expense_date=date(2024, 1, 1),
            )
        )
        assert result.error.kind is ErrorKind.VALIDATION
        assert "too large" in result.error.message
        assert service.list_expenses().value == []

    def test_description_at_limit_is_accepted(self, service, make_draft):
        expense_id = make_draft(description="x" * 1000)
        assert len(_status(service, expense_id).description) == 1000

    def test_description_over_limit_is_rejected(self, service):
        fields = dict(
            user_id=ALICE,
            category_id=1,
            amount=Decimal("5"),
            expense_date=date(2024, 1, 1),
            description="x" * 1001,
        )
        with pytest.raises(ValidationError):
            ExpenseCreate(**fields)
        # the service re-checks requests that skipped model validation
        result = service.create_expense(ExpenseCreate.model_construct(**fields))
        assert result.error.kind is ErrorKind.VALIDATION
        assert "1000" in result.error.message


class TestTransitions:
    def test_submit_then_approve(self, service, make_draft):
        expense_id = make_draft()
        assert service.submit_expense(expense_id).success
        submitted = _status(service, expense_id)
        assert submitted.status_id == StatusId.SUBMITTED
        assert submitted.submitted_at is not None
        assert submitted.reviewed_at is None

        assert service.approve_expense(expense_id, BOB).success
        approved = _status(service, expense_id)
        assert approved.status_id == StatusId.APPROVED
        assert approved.reviewed_by == BOB
        assert approved.reviewer_name == "Bob Manager"
        assert approved.reviewed_at is not None
        assert approved.submitted_at == submitted.submitted_at

    def test_submit_then_reject(self, service, make_draft):
        expense_id = make_draft()
        service.submit_expense(expense_id)
        assert service.reject_expense(expense_id, BOB).success
        rejected = _status(service, expense_id)
        assert rejected.status_id == StatusId.REJECTED
        assert rejected.reviewed_by == BOB

    def test_submit_twice_fails(self, service, make_draft):
        expense_id = make_draft()
        assert service.submit_expense(expense_id).success
        again = service.submit_expense(expense_id)
        assert again.error.kind is ErrorKind.INVALID_STATE_TRANSITION
        assert "Submitted" in again.error.message

    def test_approve_draft_fails(self, service, make_draft):
        expense_id = make_draft()
        result = service.approve_expense(expense_id, BOB)
        assert result.error.kind is ErrorKind.INVALID_STATE_TRANSITION
        assert _status(service, expense_id).status_id == StatusId.DRAFT

    @pytest.mark.parametrize("terminal", ["approve", "reject"])
    def test_terminal_states_are_final(self, service, make_draft, terminal):
        expense_id = make_draft()
        service.submit_expense(expense_id)
        getattr(service, f"{terminal}_expense")(expense_id, BOB)
        before = _status(service, expense_id)

        for attempt in (
            service.submit_expense(expense_id),
            service.approve_expense(expense_id, BOB),
            service.reject_expense(expense_id, BOB),
            service.delete_expense(expense_id),
        ):
            assert attempt.error.kind is ErrorKind.INVALID_STATE_TRANSITION
        assert _status(service, expense_id) == before

    def test_out_of_range_id_is_validation_error(self, service):
        # ids beyond the 64-bit INTEGER range cannot be bound as parameters
        result = service.submit_expense(2**70)
        assert result.error.kind is ErrorKind.VALIDATION

    def test_missing_expense_is_not_found(self, service):
        for result in (
            service.submit_expense(404),
            service.approve_expense(404, BOB),
            service.reject_expense(404, BOB),
            service.delete_expense(404),
        ):
            assert result.error.kind is ErrorKind.NOT_FOUND
            assert "404" in result.error.message

    def test_unknown_reviewer_leaves_expense_submitted(self, service, make_draft):
        expense_id = make_draft()
        service.submit_expense(expense_id)
        result = service.approve_expense(expense_id, 999)
        assert result.error.kind is ErrorKind.VALIDATION
        assert _status(service, expense_id).status_id == StatusId.SUBMITTED

    def test_self_approval_is_allowed(self, service, make_draft, caplog):
        expense_id = make_draft(user_id=BOB)
        service.submit_expense(expense_id)
        with caplog.at_level("WARNING", logger="app.expenses"):
            assert service.approve_expense(expense_id, BOB).success
        assert "own submitter" in caplog.text

    def test_concurrent_submits_have_one_winner(self, db, service, make_draft):
        expense_id = make_draft()
        results = []
        barrier = threading.Barrier(4)

        def attempt():
            barrier.wait()
            results.append(service.submit_expense(expense_id))

        threads = [threading.Thread(target=attempt) for _ in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert sum(r.success for r in results) == 1
        losers = [r for r in results if not r.success]
        assert all(r.error.kind is ErrorKind.INVALID_STATE_TRANSITION for r in losers)


class TestDraftEdits:
    def test_update_draft(self, service, make_draft):
        expense_id = make_draft()
        result = service.update_expense(
            expense_id,
            ExpenseUpdate(
                category_id=1,
                amount=Decimal("40.50"),
                expense_date=date(2024, 11, 6),
                description="Taxi",
                receipt_file="receipts/taxi-0611.pdf",
            ),
        )
        assert result.success
        expense = _status(service, expense_id)
        assert expense.amount_minor == 4050
        assert expense.category_name == "Travel"
        assert expense.description == "Taxi"
        assert expense.receipt_file == "receipts/taxi-0611.pdf"
        assert expense.status_id == StatusId.DRAFT

    def test_update_submitted_is_refused(self, service, make_draft):
        expense_id = make_draft()
        service.submit_expense(expense_id)
        result = service.update_expense(
            expense_id,
            ExpenseUpdate(category_id=1, amount=Decimal("1"), expense_date=date(2024, 1, 1)),
        )
        assert result.error.kind is ErrorKind.INVALID_STATE_TRANSITION
        assert _status(service, expense_id).amount_minor == 2500

    def test_delete_draft(self, service, make_draft):
        expense_id = make_draft()
        assert service.delete_expense(expense_id).success
        assert service.get_expense(expense_id).value is None

    def test_delete_approved_names_the_status(self, service, make_draft):
        expense_id = make_draft()
        service.submit_expense(expense_id)
        service.approve_expense(expense_id, BOB)
        result = service.delete_expense(expense_id)
        assert result.error.kind is ErrorKind.INVALID_STATE_TRANSITION
        assert "Approved" in result.error.message
        assert "only Draft expenses can be deleted" in result.error.message
        assert _status(service, expense_id) is not None


def test_store_rejects_rows_that_break_stamp_invariants(db, make_draft):
    expense_id = make_draft()
    conn = sqlite3.connect(db.db_path)
    try:
        with pytest.raises(sqlite3.IntegrityError):
            conn.execute(
                "UPDATE expenses SET status_id = ? WHERE id = ?",
                (int(StatusId.APPROVED), expense_id),
            )
    finally:
        conn.close()
