"""Domain constants and enumerations for validation."""

from enum import IntEnum
from typing import Dict, Optional


class ExpenseGroupStatus(IntEnum):
    OPEN = 1
    CONFIRMED = 2
    PROCESSED = 3


# Query-string names accepted by the list endpoint's ``status`` filter
STATUS_NAMES: Dict[str, ExpenseGroupStatus] = {
    "open": ExpenseGroupStatus.OPEN,
    "confirmed": ExpenseGroupStatus.CONFIRMED,
    "processed": ExpenseGroupStatus.PROCESSED,
}


def status_from_name(name: Optional[str]) -> Optional[ExpenseGroupStatus]:
    """Map a status name to its code; unknown names mean "no filter"."""
    if name is None:
        return None
    return STATUS_NAMES.get(name.strip().lower())
