"""Pydantic domain models for the Expense Tracker API."""

from .constants import (
    ExpenseGroupStatus,
    STATUS_NAMES,
    status_from_name,
)  # re-export
from .expense_group import Expense, ExpenseGroup

__all__ = [
    "ExpenseGroupStatus",
    "STATUS_NAMES",
    "status_from_name",
    "Expense",
    "ExpenseGroup",
]
