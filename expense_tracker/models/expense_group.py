from __future__ import annotations

from datetime import date as date_type
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from .constants import ExpenseGroupStatus


class ApiModel(BaseModel):
    """Base for DTOs exchanged over the API: camelCase on the wire."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


class Expense(ApiModel):
    id: Optional[int] = None
    description: Optional[str] = None
    date: date_type
    amount: float = Field(..., ge=0)


class ExpenseGroup(ApiModel):
    id: Optional[int] = None
    user_id: str
    name: str
    description: Optional[str] = None
    status: ExpenseGroupStatus = ExpenseGroupStatus.OPEN
    expenses: List[Expense] = Field(default_factory=list)

    @field_validator("user_id", "name")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        if not value or not value.strip():
            raise ValueError("cannot be empty")
        return value.strip()
