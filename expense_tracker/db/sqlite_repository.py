"""SQLite-backed expense tracker repository.

Responsibilities
----------------
- Persist expense groups and their expense line items.
- Compose ORDER BY / WHERE clauses for the list endpoint from a validated
  sort specification and optional status/owner filters.
- Report write outcomes through ``RepositoryActionResult`` instead of raising.
"""

from __future__ import annotations

from datetime import date
from pathlib import Path
import logging
import sqlite3
from typing import Any, Dict, List, Optional

from .repository import (
    ExpenseEntity,
    ExpenseGroupEntity,
    ExpenseTrackerRepository,
    RepositoryActionResult,
    RepositoryActionStatus,
    SortSpec,
    validate_sort,
)
from .schema import BASIC_UTC_NOW

logger = logging.getLogger("expense_tracker.db")


class SqliteExpenseTrackerRepository(ExpenseTrackerRepository):
    def __init__(self, db_path: Path):
        self.db_path = db_path

    # ------------------------------------------------------------------
    # Connection helpers
    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys=ON")
        return conn

    @staticmethod
    def _row_to_group(row: sqlite3.Row, expenses: List[ExpenseEntity]) -> ExpenseGroupEntity:
        return ExpenseGroupEntity(
            id=int(row["id"]),
            user_id=row["user_id"],
            title=row["title"],
            description=row["description"],
            expense_group_status_id=int(row["expense_group_status_id"]),
            expenses=expenses,
        )

    @staticmethod
    def _row_to_expense(row: sqlite3.Row) -> ExpenseEntity:
        return ExpenseEntity(
            id=int(row["id"]),
            description=row["description"],
            date=date.fromisoformat(row["date"]),
            amount=float(row["amount"]),
            expense_group_id=int(row["expense_group_id"]),
        )

    def _load_expenses(
        self, cur: sqlite3.Cursor, group_ids: List[int]
    ) -> Dict[int, List[ExpenseEntity]]:
        by_group: Dict[int, List[ExpenseEntity]] = {gid: [] for gid in group_ids}
        if not group_ids:
            return by_group
        placeholders = ", ".join("?" for _ in group_ids)
        cur.execute(
            f"SELECT * FROM expenses WHERE expense_group_id IN ({placeholders}) "
            "ORDER BY id ASC",
            group_ids,
        )
        for row in cur.fetchall():
            expense = self._row_to_expense(row)
            by_group[expense.expense_group_id].append(expense)
        return by_group

    def _insert_expenses(
        self, cur: sqlite3.Cursor, group_id: int, expenses: List[ExpenseEntity]
    ) -> None:
        for expense in expenses:
            cur.execute(
                """
                INSERT INTO expenses (expense_group_id, description, date, amount)
                VALUES (?, ?, ?, ?)
                """,
                (group_id, expense.description, expense.date.isoformat(), expense.amount),
            )

    def _merge_expenses(
        self, cur: sqlite3.Cursor, group_id: int, expenses: List[ExpenseEntity]
    ) -> None:
        """Sync line items: known ids are updated, others inserted, missing ones deleted."""
        cur.execute("SELECT id FROM expenses WHERE expense_group_id = ?", (group_id,))
        existing = {int(row["id"]) for row in cur.fetchall()}
        kept: set[int] = set()
        new: List[ExpenseEntity] = []
        for expense in expenses:
            # Ids from another group, or repeated ones (patch copy), become new rows
            if expense.id in existing and expense.id not in kept:
                cur.execute(
                    "UPDATE expenses SET description = ?, date = ?, amount = ? WHERE id = ?",
                    (expense.description, expense.date.isoformat(), expense.amount, expense.id),
                )
                kept.add(expense.id)
            else:
                new.append(expense)
        stale = sorted(existing - kept)
        if stale:
            placeholders = ", ".join("?" for _ in stale)
            cur.execute(f"DELETE FROM expenses WHERE id IN ({placeholders})", stale)
        self._insert_expenses(cur, group_id, new)

    def _fetch_group(self, cur: sqlite3.Cursor, group_id: int) -> Optional[ExpenseGroupEntity]:
        cur.execute("SELECT * FROM expense_groups WHERE id = ?", (group_id,))
        row = cur.fetchone()
        if not row:
            return None
        expenses = self._load_expenses(cur, [group_id])[group_id]
        return self._row_to_group(row, expenses)

    # ------------------------------------------------------------------
    # Reads
    def list_expense_groups(
        self,
        sort: SortSpec = (("id", False),),
        status_id: Optional[int] = None,
        user_id: Optional[str] = None,
    ) -> List[ExpenseGroupEntity]:
        validate_sort(sort)
        clauses: List[str] = []
        params: List[Any] = []
        if status_id is not None:
            clauses.append("expense_group_status_id = ?")
            params.append(status_id)
        if user_id is not None:
            clauses.append("user_id = ?")
            params.append(user_id)
        where = " WHERE " + " AND ".join(clauses) if clauses else ""
        order_terms = [f"{col} {'DESC' if desc else 'ASC'}" for col, desc in sort]
        # id as final tiebreaker keeps paging stable
        if "id" not in {col for col, _ in sort}:
            order_terms.append("id ASC")
        sql = f"SELECT * FROM expense_groups{where} ORDER BY {', '.join(order_terms)}"
        with self._connect() as conn:
            cur = conn.cursor()
            cur.execute(sql, params)
            rows = cur.fetchall()
            expenses = self._load_expenses(cur, [int(r["id"]) for r in rows])
            return [self._row_to_group(r, expenses[int(r["id"])]) for r in rows]

    def get_expense_group(self, group_id: int) -> Optional[ExpenseGroupEntity]:
        with self._connect() as conn:
            return self._fetch_group(conn.cursor(), group_id)

    # ------------------------------------------------------------------
    # Writes
    def insert_expense_group(
        self, entity: ExpenseGroupEntity
    ) -> RepositoryActionResult[ExpenseGroupEntity]:
        try:
            with self._connect() as conn:
                cur = conn.cursor()
                cur.execute(
                    f"""
                    INSERT INTO expense_groups
                        (user_id, title, description, expense_group_status_id, created_at, updated_at)
                    VALUES (?, ?, ?, ?, ({BASIC_UTC_NOW}), ({BASIC_UTC_NOW}))
                    """,
                    (
                        entity.user_id,
                        entity.title,
                        entity.description,
                        entity.expense_group_status_id,
                    ),
                )
                group_id = int(cur.lastrowid)
                self._insert_expenses(cur, group_id, entity.expenses)
                created = self._fetch_group(cur, group_id)
                conn.commit()
        except sqlite3.Error as exc:
            logger.exception("failed to insert expense group")
            return RepositoryActionResult(RepositoryActionStatus.ERROR, None, exc)
        return RepositoryActionResult(RepositoryActionStatus.CREATED, created)

    def update_expense_group(
        self, entity: ExpenseGroupEntity
    ) -> RepositoryActionResult[ExpenseGroupEntity]:
        if entity.id is None:
            return RepositoryActionResult(RepositoryActionStatus.NOT_FOUND)
        try:
            with self._connect() as conn:
                cur = conn.cursor()
                cur.execute(
                    f"""
                    UPDATE expense_groups
                    SET title = ?, description = ?, expense_group_status_id = ?,
                        updated_at = ({BASIC_UTC_NOW})
                    WHERE id = ?
                    """,
                    (
                        entity.title,
                        entity.description,
                        entity.expense_group_status_id,
                        entity.id,
                    ),
                )
                if cur.rowcount == 0:
                    return RepositoryActionResult(RepositoryActionStatus.NOT_FOUND)
                self._merge_expenses(cur, entity.id, entity.expenses)
                updated = self._fetch_group(cur, entity.id)
                conn.commit()
        except sqlite3.Error as exc:
            logger.exception("failed to update expense group %s", entity.id)
            return RepositoryActionResult(RepositoryActionStatus.ERROR, None, exc)
        return RepositoryActionResult(RepositoryActionStatus.UPDATED, updated)

    def delete_expense_group(
        self, group_id: int
    ) -> RepositoryActionResult[ExpenseGroupEntity]:
        try:
            with self._connect() as conn:
                cur = conn.cursor()
                cur.execute("DELETE FROM expense_groups WHERE id = ?", (group_id,))
                if cur.rowcount == 0:
                    return RepositoryActionResult(RepositoryActionStatus.NOT_FOUND)
                conn.commit()
        except sqlite3.Error as exc:
            logger.exception("failed to delete expense group %s", group_id)
            return RepositoryActionResult(RepositoryActionStatus.ERROR, None, exc)
        return RepositoryActionResult(RepositoryActionStatus.DELETED)
