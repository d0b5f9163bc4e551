"""
Schémas Pydantic pour les finances : budgets, dépenses, cotisations, transactions.
"""

from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, Field, field_validator

from greekdash.models.finance import (
    BudgetStatus,
    ExpenseStatus,
    TransactionType,
)
from greekdash.schemas.event import to_naive_utc


# ============== Budgets ==============

class BudgetCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = Field(None, max_length=2000)
    amount: Decimal = Field(..., gt=0, max_digits=12, decimal_places=2)
    start_date: datetime
    end_date: datetime
    status: BudgetStatus = BudgetStatus.PLANNING

    @field_validator("start_date")
    @classmethod
    def normalize_start(cls, v: datetime) -> datetime:
        return to_naive_utc(v)

    @field_validator("end_date")
    @classmethod
    def validate_end_date(cls, v: datetime, info) -> datetime:
        v = to_naive_utc(v)
        if "start_date" in info.data and v <= info.data["start_date"]:
            raise ValueError("End date must be after start date")
        return v


class BudgetUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = Field(None, max_length=2000)
    amount: Optional[Decimal] = Field(None, gt=0, max_digits=12, decimal_places=2)
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    status: Optional[BudgetStatus] = None

    @field_validator("start_date", "end_date")
    @classmethod
    def normalize_dates(cls, v: Optional[datetime]) -> Optional[datetime]:
        return to_naive_utc(v)


class BudgetResponse(BaseModel):
    id: int
    name: str
    description: Optional[str] = None
    amount: Decimal
    start_date: datetime
    end_date: datetime
    status: BudgetStatus
    spent_amount: float
    remaining_amount: float
    created_at: datetime

    class Config:
        from_attributes = True


# ============== Dépenses ==============

class ExpenseCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = Field(None, max_length=2000)
    amount: Decimal = Field(..., gt=0, max_digits=12, decimal_places=2)
    receipt_url: Optional[str] = Field(None, max_length=500)
    budget_id: Optional[int] = None


class ExpenseUpdate(BaseModel):
    """Modification d'une dépense ; le statut est réservé aux administrateurs."""
    title: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = Field(None, max_length=2000)
    amount: Optional[Decimal] = Field(None, gt=0, max_digits=12, decimal_places=2)
    receipt_url: Optional[str] = Field(None, max_length=500)
    budget_id: Optional[int] = None
    status: Optional[ExpenseStatus] = None


class ExpenseResponse(BaseModel):
    id: int
    title: str
    description: Optional[str] = None
    amount: Decimal
    receipt_url: Optional[str] = None
    status: ExpenseStatus
    budget_id: Optional[int] = None
    submitted_by_id: Optional[int] = None
    approved_by_id: Optional[int] = None
    submitted_at: datetime
    approved_at: Optional[datetime] = None
    paid_at: Optional[datetime] = None

    class Config:
        from_attributes = True


# ============== Cotisations ==============

class DuesCreate(BaseModel):
    user_id: int
    amount: Decimal = Field(..., gt=0, max_digits=12, decimal_places=2)
    due_date: datetime
    description: Optional[str] = Field(None, max_length=300)

    @field_validator("due_date")
    @classmethod
    def normalize_due_date(cls, v: datetime) -> datetime:
        return to_naive_utc(v)


class BulkDuesCreate(BaseModel):
    """Création de cotisations identiques pour plusieurs membres."""
    member_ids: List[int] = Field(..., min_length=1, description="IDs des utilisateurs")
    amount: Decimal = Field(..., gt=0, max_digits=12, decimal_places=2)
    due_date: datetime
    description: Optional[str] = Field(None, max_length=300)

    @field_validator("due_date")
    @classmethod
    def normalize_due_date(cls, v: datetime) -> datetime:
        return to_naive_utc(v)


class DuesUpdate(BaseModel):
    amount: Optional[Decimal] = Field(None, gt=0, max_digits=12, decimal_places=2)
    due_date: Optional[datetime] = None
    description: Optional[str] = Field(None, max_length=300)
    paid: Optional[bool] = Field(None, description="Marquer comme payée")

    @field_validator("due_date")
    @classmethod
    def normalize_due_date(cls, v: Optional[datetime]) -> Optional[datetime]:
        return to_naive_utc(v)


class DuesResponse(BaseModel):
    id: int
    user_id: int
    amount: Decimal
    description: Optional[str] = None
    due_date: datetime
    paid_at: Optional[datetime] = None
    is_paid: bool
    stripe_payment_id: Optional[str] = None
    user_name: Optional[str] = None
    user_email: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True


class BulkDuesResponse(BaseModel):
    created: int
    items: List[DuesResponse]


class CheckoutResponse(BaseModel):
    url: str
    session_id: Optional[str] = None


# ============== Transactions ==============

class TransactionCreate(BaseModel):
    amount: Decimal = Field(..., max_digits=12, decimal_places=2)
    type: TransactionType
    description: Optional[str] = Field(None, max_length=500)
    metadata: Optional[Dict[str, Any]] = None
    processed_at: Optional[datetime] = None

    @field_validator("processed_at")
    @classmethod
    def normalize_processed_at(cls, v: Optional[datetime]) -> Optional[datetime]:
        return to_naive_utc(v)


class TransactionResponse(BaseModel):
    id: int
    amount: Decimal
    type: TransactionType
    description: Optional[str] = None
    metadata: Optional[Dict[str, Any]] = Field(None, validation_alias="meta")
    processed_at: datetime
    expense_id: Optional[int] = None
    dues_payment_id: Optional[int] = None

    class Config:
        from_attributes = True


class TransactionListResponse(BaseModel):
    items: List[TransactionResponse]
    total: int
    page: int
    page_size: int
    pages: int


# ============== Synthèse ==============

class AmountCount(BaseModel):
    amount: float
    count: int


class FinanceSummary(BaseModel):
    total_income: float
    total_expenses: float
    balance: float
    unpaid_dues: AmountCount
    pending_expenses: AmountCount
    active_budgets_count: int
