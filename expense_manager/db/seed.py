"""Seeding helpers for reference data and demo users.

Reference rows (roles, categories, statuses) use fixed ids that the rest of
the code relies on (see `models.constants`). Existing rows are left
untouched so this can be safely re-run.
"""

from __future__ import annotations
from pathlib import Path
import sqlite3
from typing import Sequence, Tuple

from expense_manager.models.constants import CATEGORY_NAMES, ROLE_NAMES, STATUS_NAMES, RoleId

from .schema import init_db

# (id, name, email, role_id, manager_id)
DEMO_USERS: Sequence[Tuple[int, str, str, int, int | None]] = (
    (2, "Bob Manager", "bob.manager@example.co.uk", RoleId.MANAGER, None),
    (1, "Alice Example", "alice@example.co.uk", RoleId.EMPLOYEE, 2),
)


def seed_reference_data(db_path: Path) -> None:
    init_db(db_path)  # ensure tables exist
    with sqlite3.connect(db_path) as conn:
        cur = conn.cursor()
        cur.executemany(
            "INSERT OR IGNORE INTO roles (id, name) VALUES (?, ?)",
            [(int(k), v) for k, v in ROLE_NAMES.items()],
        )
        cur.executemany(
            "INSERT OR IGNORE INTO expense_statuses (id, name) VALUES (?, ?)",
            [(int(k), v) for k, v in STATUS_NAMES.items()],
        )
        cur.executemany(
            "INSERT OR IGNORE INTO categories (id, name, is_active) VALUES (?, ?, 1)",
            list(CATEGORY_NAMES.items()),
        )
        conn.commit()


def seed_demo_users(db_path: Path) -> None:
    """Insert the demo employee/manager pair when missing.

    The manager is inserted first so the employee's manager reference
    resolves once foreign keys are enforced.
    """
    with sqlite3.connect(db_path) as conn:
        conn.execute("PRAGMA foreign_keys=ON")
        cur = conn.cursor()
        for user_id, name, email, role_id, manager_id in DEMO_USERS:
            cur.execute(
                """
                INSERT OR IGNORE INTO users (id, name, email, role_id, manager_id)
                VALUES (?, ?, ?, ?, ?)
                """,
                (user_id, name, email, int(role_id), manager_id),
            )
        conn.commit()
