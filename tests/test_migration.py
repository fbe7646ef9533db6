"""Schema migration, seeding and settings bootstrap."""

import sqlite3

import pytest

from expense_manager.core.config import Settings
from expense_manager.db.migrate import CURRENT_SCHEMA_VERSION, apply_migrations


def _count(db_path, table):
    conn = sqlite3.connect(db_path)
    try:
        return conn.execute(f"SELECT COUNT(*) FROM {table}").fetchone()[0]
    finally:
        conn.close()


def test_migrations_are_idempotent(tmp_path):
    db_path = tmp_path / "fresh.sqlite3"
    assert apply_migrations(db_path, seed_demo=True) == CURRENT_SCHEMA_VERSION
    assert apply_migrations(db_path, seed_demo=True) == CURRENT_SCHEMA_VERSION
    assert _count(db_path, "categories") == 5
    assert _count(db_path, "expense_statuses") == 4
    assert _count(db_path, "roles") == 2
    assert _count(db_path, "users") == 2


def test_demo_users_are_optional(tmp_path):
    db_path = tmp_path / "bare.sqlite3"
    apply_migrations(db_path)
    assert _count(db_path, "users") == 0
    assert _count(db_path, "categories") == 5


def test_newer_schema_is_refused(tmp_path):
    db_path = tmp_path / "future.sqlite3"
    apply_migrations(db_path)
    conn = sqlite3.connect(db_path)
    conn.execute("UPDATE metadata SET value = '99' WHERE key = 'schema_version'")
    conn.commit()
    conn.close()
    with pytest.raises(RuntimeError):
        apply_migrations(db_path)


def test_settings_derive_db_path(tmp_path):
    s = Settings(data_dir=tmp_path / "store", db_filename="x.sqlite3")
    s.init_post_load()
    assert s.db_path == tmp_path / "store" / "x.sqlite3"
    assert (tmp_path / "store").is_dir()


def test_settings_require_a_store(tmp_path):
    s = Settings(data_dir=tmp_path, db_filename="")
    with pytest.raises(ValueError):
        s.init_post_load()


def test_settings_reject_zero_iterations(tmp_path):
    s = Settings(db_path=tmp_path / "db.sqlite3", chat_max_iterations=0)
    with pytest.raises(ValueError):
        s.init_post_load()
