"""In-process repository used by tests and ``REPOSITORY_BACKEND=memory``."""

from __future__ import annotations

import copy
from itertools import count
from threading import Lock
from typing import Dict, Iterable, List, Optional

from .repository import (
    ExpenseGroupEntity,
    ExpenseTrackerRepository,
    RepositoryActionResult,
    RepositoryActionStatus,
    SortSpec,
    validate_sort,
)


def _sort_key(value):
    # None sorts first, like SQLite's NULL ordering
    return (value is not None, value)


class InMemoryExpenseTrackerRepository(ExpenseTrackerRepository):
    def __init__(self, groups: Optional[List[ExpenseGroupEntity]] = None):
        self._groups: Dict[int, ExpenseGroupEntity] = {}
        self._group_ids = count(1)
        self._expense_ids = count(1)
        self._lock = Lock()
        for group in groups or []:
            self.insert_expense_group(group)

    def _assign_expense_ids(
        self, entity: ExpenseGroupEntity, known_ids: Iterable[int] = ()
    ) -> None:
        """Keep ids of line items already in the group; number everything else."""
        available = set(known_ids)
        for expense in entity.expenses:
            if expense.id in available:
                available.discard(expense.id)
            else:
                expense.id = next(self._expense_ids)
            expense.expense_group_id = entity.id

    def list_expense_groups(
        self,
        sort: SortSpec = (("id", False),),
        status_id: Optional[int] = None,
        user_id: Optional[str] = None,
    ) -> List[ExpenseGroupEntity]:
        validate_sort(sort)
        with self._lock:
            items = [copy.deepcopy(g) for g in self._groups.values()]
        items.sort(key=lambda g: g.id)
        # Stable sorts applied from the least significant key upwards
        for column, descending in reversed(list(sort)):
            items.sort(key=lambda g: _sort_key(getattr(g, column)), reverse=descending)
        return [
            g
            for g in items
            if (status_id is None or g.expense_group_status_id == status_id)
            and (user_id is None or g.user_id == user_id)
        ]

    def get_expense_group(self, group_id: int) -> Optional[ExpenseGroupEntity]:
        with self._lock:
            group = self._groups.get(group_id)
            return copy.deepcopy(group) if group else None

    def insert_expense_group(
        self, entity: ExpenseGroupEntity
    ) -> RepositoryActionResult[ExpenseGroupEntity]:
        stored = copy.deepcopy(entity)
        with self._lock:
            stored.id = next(self._group_ids)
            self._assign_expense_ids(stored)
            self._groups[stored.id] = stored
            return RepositoryActionResult(
                RepositoryActionStatus.CREATED, copy.deepcopy(stored)
            )

    def update_expense_group(
        self, entity: ExpenseGroupEntity
    ) -> RepositoryActionResult[ExpenseGroupEntity]:
        with self._lock:
            current = self._groups.get(entity.id) if entity.id is not None else None
            if current is None:
                return RepositoryActionResult(RepositoryActionStatus.NOT_FOUND)
            stored = copy.deepcopy(entity)
            stored.user_id = current.user_id
            self._assign_expense_ids(stored, (e.id for e in current.expenses))
            self._groups[stored.id] = stored
            return RepositoryActionResult(
                RepositoryActionStatus.UPDATED, copy.deepcopy(stored)
            )

    def delete_expense_group(
        self, group_id: int
    ) -> RepositoryActionResult[ExpenseGroupEntity]:
        with self._lock:
            if self._groups.pop(group_id, None) is None:
                return RepositoryActionResult(RepositoryActionStatus.NOT_FOUND)
        return RepositoryActionResult(RepositoryActionStatus.DELETED)
