from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from models import PaymentMethod


class RegisterIn(BaseModel):
    username: str = Field(..., min_length=3, max_length=50)
    email: str = Field(..., min_length=3, max_length=100, pattern=r"^[^@\s]+@[^@\s]+$")
    password: str = Field(..., min_length=6, max_length=72)


class LoginIn(BaseModel):
    username: str = Field(..., min_length=1, max_length=50)
    password: str = Field(..., min_length=1, max_length=72)


class TokenIn(BaseModel):
    token: str


class PasswordChangeIn(BaseModel):
    current_password: str = Field(..., min_length=1, max_length=72)
    new_password: str = Field(..., min_length=6, max_length=72)


class AuthOut(BaseModel):
    token: Optional[str] = None
    username: Optional[str] = None
    email: Optional[str] = None
    message: str


class ExpenseIn(BaseModel):
    """Raw expense payload; business rules are enforced by ExpenseService."""

    amount: Optional[Decimal] = None
    category: Optional[str] = None
    expense_date: Optional[date] = None
    payment_method: Optional[PaymentMethod] = None
    upi_vpa: Optional[str] = None
    transaction_id: Optional[str] = None
    payer_name: Optional[str] = None
    notes: Optional[str] = None


class ExpenseOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    amount: Decimal
    category: str
    expense_date: date
    payment_method: PaymentMethod
    cash_amount: Decimal
    upi_amount: Decimal
    upi_vpa: Optional[str]
    transaction_id: Optional[str]
    payer_name: Optional[str]
    notes: Optional[str]
    created_at: datetime
    updated_at: datetime


class BudgetIn(BaseModel):
    budget: Optional[Decimal] = None


class BudgetOut(BaseModel):
    budget: Optional[Decimal]


class SummaryOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    total_amount: Decimal
    total_cash_amount: Decimal
    total_upi_amount: Decimal
    total_transactions: int
    category_totals: dict[str, Decimal]
    payment_method_totals: dict[str, Decimal]
    budget: Decimal
    remaining_budget: Decimal


class MonthlyTotalOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    year: int
    month: int
    total_amount: Decimal
    transaction_count: int


class CategoryTotalOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    category: str
    total_amount: Decimal
    transaction_count: int


class CashUpiTotalsOut(BaseModel):
    total_cash: Decimal
    total_upi: Decimal


class DashboardOut(BaseModel):
    summary: SummaryOut
    monthly_summary: list[MonthlyTotalOut]
    category_totals: list[CategoryTotalOut]
    payment_method_totals: dict[str, Decimal]
    cash_upi_totals: CashUpiTotalsOut
