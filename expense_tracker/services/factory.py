"""Conversions between storage entities and API DTOs.

Storage keeps the legacy column names (``title``, ``expense_group_status_id``);
the API exposes ``name`` and ``status``. Everything else is copied verbatim.
"""

from __future__ import annotations

from expense_tracker.db.repository import ExpenseEntity, ExpenseGroupEntity
from expense_tracker.models.expense_group import Expense, ExpenseGroup


def expense_to_dto(entity: ExpenseEntity) -> Expense:
    return Expense(
        id=entity.id,
        description=entity.description,
        date=entity.date,
        amount=entity.amount,
    )


def expense_from_dto(dto: Expense, group_id: int | None = None) -> ExpenseEntity:
    return ExpenseEntity(
        id=dto.id,
        description=dto.description,
        date=dto.date,
        amount=dto.amount,
        expense_group_id=group_id,
    )


def expense_group_to_dto(entity: ExpenseGroupEntity) -> ExpenseGroup:
    return ExpenseGroup(
        id=entity.id,
        user_id=entity.user_id,
        name=entity.title,
        description=entity.description,
        status=entity.expense_group_status_id,
        expenses=[expense_to_dto(e) for e in entity.expenses],
    )


def expense_group_from_dto(dto: ExpenseGroup) -> ExpenseGroupEntity:
    return ExpenseGroupEntity(
        id=dto.id,
        user_id=dto.user_id,
        title=dto.name,
        description=dto.description,
        expense_group_status_id=int(dto.status),
        expenses=[expense_from_dto(e, dto.id) for e in dto.expenses],
    )
