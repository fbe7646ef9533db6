"""Database schema DDL definitions and initialization utilities.

Tables:
  - roles: user roles (Employee, Manager)
  - users: employees and their managers
  - categories: expense categories (reference data)
  - expense_statuses: lifecycle states (reference data)
  - expenses: individual expense records, amounts in pence
  - metadata: key/value store (schema version)

The CHECK constraints on `expenses` mirror the lifecycle invariants so that a
row can never hold a status without the matching submission/review stamps.
"""

from __future__ import annotations
import sqlite3
from typing import Sequence
from pathlib import Path

BASIC_UTC_NOW = "strftime('%Y-%m-%dT%H:%M:%fZ','now')"

ROLES_DDL = """
CREATE TABLE IF NOT EXISTS roles (
    id INTEGER PRIMARY KEY,
    name TEXT NOT NULL UNIQUE
);
"""

USERS_DDL = f"""
CREATE TABLE IF NOT EXISTS users (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    name TEXT NOT NULL,
    email TEXT NOT NULL UNIQUE,
    role_id INTEGER NOT NULL,
    manager_id INTEGER,
    is_active INTEGER NOT NULL DEFAULT 1,
    created_at TEXT NOT NULL DEFAULT ({BASIC_UTC_NOW}),
    FOREIGN KEY (role_id) REFERENCES roles(id),
    FOREIGN KEY (manager_id) REFERENCES users(id)
);
"""

CATEGORIES_DDL = """
CREATE TABLE IF NOT EXISTS categories (
    id INTEGER PRIMARY KEY,
    name TEXT NOT NULL UNIQUE,
    is_active INTEGER NOT NULL DEFAULT 1
);
"""

STATUSES_DDL = """
CREATE TABLE IF NOT EXISTS expense_statuses (
    id INTEGER PRIMARY KEY,
    name TEXT NOT NULL UNIQUE
);
"""

EXPENSES_DDL = f"""
CREATE TABLE IF NOT EXISTS expenses (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    user_id INTEGER NOT NULL,
    category_id INTEGER NOT NULL,
    status_id INTEGER NOT NULL DEFAULT 1,
    amount_minor INTEGER NOT NULL CHECK (amount_minor > 0),
    currency TEXT NOT NULL DEFAULT 'GBP',
    expense_date TEXT NOT NULL, -- ISO date (YYYY-MM-DD)
    description TEXT CHECK (description IS NULL OR length(description) <= 1000),
    receipt_file TEXT,
    submitted_at TEXT,
    reviewed_by INTEGER,
    reviewed_at TEXT,
    created_at TEXT NOT NULL DEFAULT ({BASIC_UTC_NOW}),
    CHECK ((status_id = 1) = (submitted_at IS NULL)),
    CHECK ((status_id IN (3, 4)) = (reviewed_at IS NOT NULL)),
    CHECK ((reviewed_at IS NULL) = (reviewed_by IS NULL)),
    FOREIGN KEY (user_id) REFERENCES users(id),
    FOREIGN KEY (category_id) REFERENCES categories(id),
    FOREIGN KEY (status_id) REFERENCES expense_statuses(id),
    FOREIGN KEY (reviewed_by) REFERENCES users(id)
);
"""

METADATA_DDL = f"""
CREATE TABLE IF NOT EXISTS metadata (
    key TEXT PRIMARY KEY,
    value TEXT NOT NULL,
    updated_at TEXT NOT NULL DEFAULT ({BASIC_UTC_NOW})
);
"""

EXPENSES_STATUS_INDEX_DDL = (
    "CREATE INDEX IF NOT EXISTS idx_expenses_status ON expenses(status_id);"
)
EXPENSES_USER_INDEX_DDL = (
    "CREATE INDEX IF NOT EXISTS idx_expenses_user ON expenses(user_id, created_at);"
)

DDL_ORDER: Sequence[str] = (
    ROLES_DDL,
    USERS_DDL,
    CATEGORIES_DDL,
    STATUSES_DDL,
    EXPENSES_DDL,
    METADATA_DDL,
    EXPENSES_STATUS_INDEX_DDL,
    EXPENSES_USER_INDEX_DDL,
)


def init_db(path: Path) -> None:
    """Create all tables idempotently.

    Parameters
    ----------
    path: Path to SQLite database file.
    """
    conn = sqlite3.connect(path)
    try:
        cur = conn.cursor()
        for ddl in DDL_ORDER:
            cur.execute(ddl)
        conn.commit()
    finally:
        conn.close()
