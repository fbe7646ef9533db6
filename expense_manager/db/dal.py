"""Data Access Layer for the expense store.

Responsibilities
----------------
- Run exactly one parameterized command (or one short transaction) per call,
  on a connection that is opened for the call and always closed.
- Evaluate lifecycle guards inside the store: every status transition is a
  single conditional UPDATE keyed on the required current status, so two
  concurrent attempts on the same expense cannot both succeed.
- Translate driver failures: constraint violations raise `ConstraintViolation`,
  everything else raises `StoreUnavailable` with a diagnostic message.

Rows are returned as plain dicts with column names matching the domain model
fields; mapping into models happens in the service layer.
"""

from __future__ import annotations

from contextlib import contextmanager
from pathlib import Path
import sqlite3
from typing import Any, Dict, Iterator, List, Optional
from datetime import date

from expense_manager.core.errors import StoreUnavailable, describe_store_error
from expense_manager.models.constants import StatusId

UTC_NOW_SQL = "strftime('%Y-%m-%dT%H:%M:%fZ','now')"

EXPENSE_SELECT_SQL = """
    SELECT e.id AS expense_id,
           e.user_id,
           u.name AS user_name,
           u.email,
           e.category_id,
           c.name AS category_name,
           e.status_id,
           s.name AS status_name,
           e.amount_minor,
           e.currency,
           e.expense_date,
           e.description,
           e.receipt_file,
           e.submitted_at,
           e.reviewed_by,
           r.name AS reviewer_name,
           e.reviewed_at,
           e.created_at
    FROM expenses e
    JOIN users u ON u.id = e.user_id
    JOIN categories c ON c.id = e.category_id
    JOIN expense_statuses s ON s.id = e.status_id
    LEFT JOIN users r ON r.id = e.reviewed_by
"""

USER_SELECT_SQL = """
    SELECT u.id AS user_id,
           u.name AS user_name,
           u.email,
           u.role_id,
           ro.name AS role_name,
           u.manager_id,
           m.name AS manager_name,
           u.is_active,
           u.created_at
    FROM users u
    JOIN roles ro ON ro.id = u.role_id
    LEFT JOIN users m ON m.id = u.manager_id
"""


class ConstraintViolation(ValueError):
    """The store rejected a write (unknown foreign key, failed CHECK)."""


def _like_pattern(term: str) -> str:
    escaped = term.lower().replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"


class Database:
    def __init__(self, db_path: Path, timeout: float = 5.0):
        self.db_path = db_path
        self.timeout = timeout

    # ------------------------------------------------------------------
    # Connection helpers
    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.db_path, timeout=self.timeout)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys=ON")
        return conn

    @contextmanager
    def _session(self, operation: str) -> Iterator[sqlite3.Connection]:
        """Yield a connection for one store command; commit on success, always close."""
        try:
            conn = self._connect()
        except sqlite3.Error as exc:
            raise StoreUnavailable(describe_store_error(exc, operation)) from exc
        try:
            yield conn
            conn.commit()
        except sqlite3.IntegrityError as exc:
            conn.rollback()
            raise ConstraintViolation(str(exc)) from exc
        except OverflowError as exc:
            # parameter outside the 64-bit INTEGER range
            conn.rollback()
            raise ConstraintViolation(str(exc)) from exc
        except sqlite3.Error as exc:
            conn.rollback()
            raise StoreUnavailable(describe_store_error(exc, operation)) from exc
        finally:
            conn.close()

    # ------------------------------------------------------------------
    # Expense reads
    def list_expenses(
        self,
        user_id: Optional[int] = None,
        status_id: Optional[int] = None,
        category_id: Optional[int] = None,
        search_term: Optional[str] = None,
    ) -> List[Dict[str, Any]]:
        clauses: List[str] = []
        params: List[Any] = []
        if user_id is not None:
            clauses.append("e.user_id = ?")
            params.append(user_id)
        if status_id is not None:
            clauses.append("e.status_id = ?")
            params.append(int(status_id))
        if category_id is not None:
            clauses.append("e.category_id = ?")
            params.append(category_id)
        if search_term:
            pattern = _like_pattern(search_term)
            clauses.append(
                "(LOWER(COALESCE(e.description, '')) LIKE ? ESCAPE '\\'"
                " OR LOWER(c.name) LIKE ? ESCAPE '\\'"
                " OR LOWER(u.name) LIKE ? ESCAPE '\\')"
            )
            params.extend([pattern, pattern, pattern])
        where = (" WHERE " + " AND ".join(clauses)) if clauses else ""
        sql = f"{EXPENSE_SELECT_SQL}{where} ORDER BY e.created_at DESC, e.id DESC"
        with self._session("list_expenses") as conn:
            cur = conn.cursor()
            cur.execute(sql, params)
            return [dict(r) for r in cur.fetchall()]

    def get_expense(self, expense_id: int) -> Optional[Dict[str, Any]]:
        with self._session("get_expense") as conn:
            return self._fetch_expense(conn.cursor(), expense_id)

    def _fetch_expense(
        self, cur: sqlite3.Cursor, expense_id: int
    ) -> Optional[Dict[str, Any]]:
        cur.execute(f"{EXPENSE_SELECT_SQL} WHERE e.id = ?", (expense_id,))
        row = cur.fetchone()
        return dict(row) if row else None

    # ------------------------------------------------------------------
    # Expense writes
    def insert_expense(
        self,
        *,
        user_id: int,
        category_id: int,
        amount_minor: int,
        currency: str,
        expense_date: date,
        description: Optional[str] = None,
        receipt_file: Optional[str] = None,
    ) -> int:
        with self._session("insert_expense") as conn:
            cur = conn.cursor()
            cur.execute(
                f"""
                INSERT INTO expenses (
                    user_id, category_id, status_id, amount_minor, currency,
                    expense_date, description, receipt_file, created_at
                )
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ({UTC_NOW_SQL}))
                """,
                (
                    user_id,
                    category_id,
                    int(StatusId.DRAFT),
                    amount_minor,
                    currency,
                    expense_date.isoformat(),
                    description,
                    receipt_file,
                ),
            )
            return int(cur.lastrowid)

    def update_draft_expense(
        self,
        expense_id: int,
        *,
        category_id: int,
        amount_minor: int,
        expense_date: date,
        description: Optional[str] = None,
        receipt_file: Optional[str] = None,
    ) -> Optional[Dict[str, Any]]:
        """Rewrite a Draft expense; returns the updated row, or None when the guard fails."""
        with self._session("update_draft_expense") as conn:
            cur = conn.cursor()
            cur.execute(
                """
                UPDATE expenses
                SET category_id = ?, amount_minor = ?, expense_date = ?,
                    description = ?, receipt_file = ?
                WHERE id = ? AND status_id = ?
                """,
                (
                    category_id,
                    amount_minor,
                    expense_date.isoformat(),
                    description,
                    receipt_file,
                    expense_id,
                    int(StatusId.DRAFT),
                ),
            )
            if cur.rowcount == 0:
                return None
            return self._fetch_expense(cur, expense_id)

    def delete_draft_expense(self, expense_id: int) -> bool:
        with self._session("delete_draft_expense") as conn:
            cur = conn.cursor()
            cur.execute(
                "DELETE FROM expenses WHERE id = ? AND status_id = ?",
                (expense_id, int(StatusId.DRAFT)),
            )
            return cur.rowcount > 0

    def submit_expense(self, expense_id: int) -> Optional[Dict[str, Any]]:
        """Draft -> Submitted; returns the updated row, or None when the guard fails."""
        with self._session("submit_expense") as conn:
            cur = conn.cursor()
            cur.execute(
                f"""
                UPDATE expenses
                SET status_id = ?, submitted_at = ({UTC_NOW_SQL})
                WHERE id = ? AND status_id = ?
                """,
                (int(StatusId.SUBMITTED), expense_id, int(StatusId.DRAFT)),
            )
            if cur.rowcount == 0:
                return None
            return self._fetch_expense(cur, expense_id)

    def review_expense(
        self, expense_id: int, new_status: StatusId, reviewer_id: int
    ) -> Optional[Dict[str, Any]]:
        """Submitted -> Approved/Rejected; returns the updated row, or None when the guard fails."""
        if new_status not in (StatusId.APPROVED, StatusId.REJECTED):
            raise ValueError(f"{new_status!r} is not a review outcome")
        with self._session("review_expense") as conn:
            cur = conn.cursor()
            cur.execute(
                f"""
                UPDATE expenses
                SET status_id = ?, reviewed_by = ?, reviewed_at = ({UTC_NOW_SQL})
                WHERE id = ? AND status_id = ?
                """,
                (int(new_status), reviewer_id, expense_id, int(StatusId.SUBMITTED)),
            )
            if cur.rowcount == 0:
                return None
            return self._fetch_expense(cur, expense_id)

    # ------------------------------------------------------------------
    # Reference data
    def list_categories(self) -> List[Dict[str, Any]]:
        with self._session("list_categories") as conn:
            cur = conn.cursor()
            cur.execute(
                "SELECT id AS category_id, name AS category_name, is_active "
                "FROM categories ORDER BY id"
            )
            return [dict(r) for r in cur.fetchall()]

    def list_statuses(self) -> List[Dict[str, Any]]:
        with self._session("list_statuses") as conn:
            cur = conn.cursor()
            cur.execute(
                "SELECT id AS status_id, name AS status_name FROM expense_statuses ORDER BY id"
            )
            return [dict(r) for r in cur.fetchall()]

    def list_users(self) -> List[Dict[str, Any]]:
        with self._session("list_users") as conn:
            cur = conn.cursor()
            cur.execute(f"{USER_SELECT_SQL} ORDER BY u.name")
            return [dict(r) for r in cur.fetchall()]

    def get_user(self, user_id: int) -> Optional[Dict[str, Any]]:
        with self._session("get_user") as conn:
            cur = conn.cursor()
            cur.execute(f"{USER_SELECT_SQL} WHERE u.id = ?", (user_id,))
            row = cur.fetchone()
            return dict(row) if row else None
