"""Domain constants and enumerations for validation.

Reference ids mirror the seeded rows in the store (see `db.seed`).
"""

from enum import IntEnum
from typing import Dict, FrozenSet


class StatusId(IntEnum):
    DRAFT = 1
    SUBMITTED = 2
    APPROVED = 3
    REJECTED = 4


class RoleId(IntEnum):
    EMPLOYEE = 1
    MANAGER = 2


STATUS_NAMES: Dict[int, str] = {
    StatusId.DRAFT: "Draft",
    StatusId.SUBMITTED: "Submitted",
    StatusId.APPROVED: "Approved",
    StatusId.REJECTED: "Rejected",
}

ROLE_NAMES: Dict[int, str] = {
    RoleId.EMPLOYEE: "Employee",
    RoleId.MANAGER: "Manager",
}

CATEGORY_NAMES: Dict[int, str] = {
    1: "Travel",
    2: "Meals",
    3: "Supplies",
    4: "Accommodation",
    5: "Other",
}

# Terminal statuses; these carry a review stamp
REVIEWED_STATUSES: FrozenSet[int] = frozenset({StatusId.APPROVED, StatusId.REJECTED})

CURRENCY = "GBP"
MAX_DESCRIPTION_LENGTH = 1000
# Largest value a SQLite INTEGER column holds
MAX_AMOUNT_MINOR = 2**63 - 1
