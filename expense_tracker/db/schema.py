"""Database schema DDL definitions and initialization utilities.

Tables:
  - expense_group_statuses: lookup of status codes (Open, Confirmed, Processed)
  - expense_groups: one row per expense group, owned by a user id
  - expenses: line items belonging to an expense group (cascade on delete)
  - metadata: key/value store (schema version)
"""

from __future__ import annotations
import sqlite3
from typing import Sequence
from pathlib import Path

from expense_tracker.models.constants import ExpenseGroupStatus

BASIC_UTC_NOW = "strftime('%Y-%m-%dT%H:%M:%fZ','now')"

STATUSES_DDL = """
CREATE TABLE IF NOT EXISTS expense_group_statuses (
    id INTEGER PRIMARY KEY,
    description TEXT NOT NULL
);
"""

EXPENSE_GROUPS_DDL = f"""
CREATE TABLE IF NOT EXISTS expense_groups (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    user_id TEXT NOT NULL,
    title TEXT NOT NULL,
    description TEXT,
    expense_group_status_id INTEGER NOT NULL DEFAULT 1,
    created_at TEXT NOT NULL DEFAULT ({BASIC_UTC_NOW}),
    updated_at TEXT NOT NULL DEFAULT ({BASIC_UTC_NOW}),
    FOREIGN KEY (expense_group_status_id) REFERENCES expense_group_statuses(id)
);
"""

EXPENSES_DDL = """
CREATE TABLE IF NOT EXISTS expenses (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    expense_group_id INTEGER NOT NULL,
    description TEXT,
    date TEXT NOT NULL, -- ISO date (YYYY-MM-DD)
    amount REAL NOT NULL,
    FOREIGN KEY (expense_group_id) REFERENCES expense_groups(id) ON DELETE CASCADE
);
"""

METADATA_DDL = f"""
CREATE TABLE IF NOT EXISTS metadata (
    key TEXT PRIMARY KEY,
    value TEXT NOT NULL,
    updated_at TEXT NOT NULL DEFAULT ({BASIC_UTC_NOW})
);
"""

EXPENSE_GROUPS_USER_INDEX_DDL = (
    "CREATE INDEX IF NOT EXISTS idx_expense_groups_user ON expense_groups(user_id);"
)
EXPENSE_GROUPS_STATUS_INDEX_DDL = (
    "CREATE INDEX IF NOT EXISTS idx_expense_groups_status "
    "ON expense_groups(expense_group_status_id);"
)
EXPENSES_GROUP_INDEX_DDL = (
    "CREATE INDEX IF NOT EXISTS idx_expenses_group ON expenses(expense_group_id);"
)

DDL_ORDER: Sequence[str] = (
    STATUSES_DDL,
    EXPENSE_GROUPS_DDL,
    EXPENSES_DDL,
    METADATA_DDL,
    EXPENSE_GROUPS_USER_INDEX_DDL,
    EXPENSE_GROUPS_STATUS_INDEX_DDL,
    EXPENSES_GROUP_INDEX_DDL,
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
        _ensure_statuses(cur)
        conn.commit()
    finally:
        conn.close()


def _ensure_statuses(cur: sqlite3.Cursor) -> None:
    """Seed the status lookup table; existing rows are left untouched."""
    cur.executemany(
        "INSERT OR IGNORE INTO expense_group_statuses (id, description) VALUES (?, ?)",
        [(s.value, s.name.title()) for s in ExpenseGroupStatus],
    )
