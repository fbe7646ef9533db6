from __future__ import annotations
from pydantic import BaseModel, ConfigDict, Field, computed_field, field_validator
from typing import Optional
from datetime import date, datetime
from decimal import Decimal

from expense_manager.services.money import from_minor_units
from .constants import CURRENCY, MAX_DESCRIPTION_LENGTH, StatusId


class ExpenseCreate(BaseModel):
    user_id: int = Field(..., gt=0)
    category_id: int = Field(..., gt=0)
    amount: Decimal = Field(..., gt=0, description="Amount in GBP")
    expense_date: date
    description: Optional[str] = Field(None, max_length=MAX_DESCRIPTION_LENGTH)
    receipt_file: Optional[str] = None

    @field_validator("description", "receipt_file")
    @classmethod
    def blank_to_none(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and not v.strip():
            return None
        return v


class ExpenseUpdate(BaseModel):
    """Full replacement of the editable fields of a Draft expense.

    Owner, currency and status are not editable; status only moves through
    the lifecycle operations.
    """

    category_id: int = Field(..., gt=0)
    amount: Decimal = Field(..., gt=0, description="Amount in GBP")
    expense_date: date
    description: Optional[str] = Field(None, max_length=MAX_DESCRIPTION_LENGTH)
    receipt_file: Optional[str] = None

    @field_validator("description", "receipt_file")
    @classmethod
    def blank_to_none(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and not v.strip():
            return None
        return v


class ExpenseFilters(BaseModel):
    user_id: Optional[int] = None
    status_id: Optional[StatusId] = None
    category_id: Optional[int] = None
    search_term: Optional[str] = None

    @field_validator("search_term")
    @classmethod
    def strip_search(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return None
        v = v.strip()
        return v or None


class Expense(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    expense_id: int
    user_id: int
    user_name: str
    email: str
    category_id: int
    category_name: str
    status_id: int
    status_name: str
    amount_minor: int = Field(..., gt=0)
    currency: str = CURRENCY
    expense_date: date
    description: Optional[str] = None
    receipt_file: Optional[str] = None
    submitted_at: Optional[datetime] = None
    reviewed_by: Optional[int] = None
    reviewer_name: Optional[str] = None
    reviewed_at: Optional[datetime] = None
    created_at: datetime

    @computed_field  # type: ignore[misc]
    @property
    def amount(self) -> Decimal:
        return from_minor_units(self.amount_minor)


class Category(BaseModel):
    category_id: int
    category_name: str
    is_active: bool = True


class ExpenseStatus(BaseModel):
    status_id: int
    status_name: str


class User(BaseModel):
    user_id: int
    user_name: str
    email: str
    role_id: int
    role_name: str
    manager_id: Optional[int] = None
    manager_name: Optional[str] = None
    is_active: bool = True
    created_at: datetime


class DashboardStats(BaseModel):
    total_expenses: int = 0
    pending_approvals: int = 0
    approved_amount_minor: int = 0
    approved_count: int = 0

    @computed_field  # type: ignore[misc]
    @property
    def approved_amount(self) -> Decimal:
        return from_minor_units(self.approved_amount_minor)
