"""Repository contract shared by the persistence backends.

Write operations never raise for expected outcomes; they report them through
``RepositoryActionResult`` so route handlers can map them onto HTTP statuses.
Reads return the entity (or ``None``) directly.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import Generic, List, Optional, Sequence, Tuple, TypeVar

T = TypeVar("T")

# (column, descending) pairs in priority order
SortSpec = Sequence[Tuple[str, bool]]

SORTABLE_COLUMNS = ("id", "user_id", "title", "description", "expense_group_status_id")


@dataclass
class ExpenseEntity:
    id: Optional[int]
    description: Optional[str]
    date: date
    amount: float
    expense_group_id: Optional[int] = None


@dataclass
class ExpenseGroupEntity:
    id: Optional[int]
    user_id: str
    title: str
    description: Optional[str]
    expense_group_status_id: int
    expenses: List[ExpenseEntity] = field(default_factory=list)


class RepositoryActionStatus(str, Enum):
    CREATED = "Created"
    UPDATED = "Updated"
    NOT_FOUND = "NotFound"
    DELETED = "Deleted"
    ERROR = "Error"


@dataclass
class RepositoryActionResult(Generic[T]):
    status: RepositoryActionStatus
    entity: Optional[T] = None
    exception: Optional[BaseException] = None


class ExpenseTrackerRepository(ABC):
    @abstractmethod
    def list_expense_groups(
        self,
        sort: SortSpec = (("id", False),),
        status_id: Optional[int] = None,
        user_id: Optional[str] = None,
    ) -> List[ExpenseGroupEntity]:
        """Return groups ordered by ``sort`` and AND-filtered by status and owner."""
        raise NotImplementedError

    @abstractmethod
    def get_expense_group(self, group_id: int) -> Optional[ExpenseGroupEntity]:
        raise NotImplementedError

    @abstractmethod
    def insert_expense_group(
        self, entity: ExpenseGroupEntity
    ) -> RepositoryActionResult[ExpenseGroupEntity]:
        raise NotImplementedError

    @abstractmethod
    def update_expense_group(
        self, entity: ExpenseGroupEntity
    ) -> RepositoryActionResult[ExpenseGroupEntity]:
        """Replace the stored group with ``entity`` (keyed by ``entity.id``)."""
        raise NotImplementedError

    @abstractmethod
    def delete_expense_group(
        self, group_id: int
    ) -> RepositoryActionResult[ExpenseGroupEntity]:
        raise NotImplementedError


def validate_sort(sort: SortSpec) -> None:
    for column, _ in sort:
        if column not in SORTABLE_COLUMNS:
            raise ValueError(f"cannot sort on column '{column}'")
