from datetime import date, datetime, timezone
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum
from typing import Optional, Union

from sqlalchemy import (
    CheckConstraint,
    Date,
    DateTime,
    Enum as SAEnum,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from database import Base

CENT = Decimal("0.01")


def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def cents_to_decimal(cents: Optional[int]) -> Decimal:
    return (Decimal(cents or 0) / 100).quantize(CENT)


def decimal_to_cents(value: Union[Decimal, int, str]) -> int:
    amount = Decimal(str(value)).quantize(CENT, rounding=ROUND_HALF_UP)
    return int(amount * 100)


class PaymentMethod(str, Enum):
    cash = "CASH"
    upi = "UPI"

    @property
    def label(self) -> str:
        return "Cash" if self is PaymentMethod.cash else "UPI"


PAYMENT_METHOD_ENUM = SAEnum(
    PaymentMethod,
    name="paymentmethod",
    values_callable=lambda enum_cls: [member.value for member in enum_cls],
)


class TimestampMixin:
    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=utcnow, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=utcnow, onupdate=utcnow, nullable=False
    )


class User(Base, TimestampMixin):
    __tablename__ = "users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    username: Mapped[str] = mapped_column(String(50), nullable=False, unique=True)
    email: Mapped[str] = mapped_column(String(100), nullable=False, unique=True)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    budget_cents: Mapped[Optional[int]] = mapped_column(Integer)

    expenses: Mapped[list["Expense"]] = relationship(
        "Expense", back_populates="user"
    )

    __table_args__ = (
        CheckConstraint(
            "budget_cents IS NULL OR budget_cents >= 0",
            name="ck_users_budget_non_negative",
        ),
    )

    @property
    def budget(self) -> Optional[Decimal]:
        if self.budget_cents is None:
            return None
        return cents_to_decimal(self.budget_cents)


class Expense(Base, TimestampMixin):
    __tablename__ = "expenses"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False)
    amount_cents: Mapped[int] = mapped_column(Integer, nullable=False)
    category: Mapped[str] = mapped_column(String(50), nullable=False)
    expense_date: Mapped[date] = mapped_column(Date, nullable=False)
    payment_method: Mapped[PaymentMethod] = mapped_column(
        PAYMENT_METHOD_ENUM, nullable=False
    )
    cash_amount_cents: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    upi_amount_cents: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    upi_vpa: Mapped[Optional[str]] = mapped_column(String(100))
    transaction_id: Mapped[Optional[str]] = mapped_column(String(100))
    payer_name: Mapped[Optional[str]] = mapped_column(String(100))
    notes: Mapped[Optional[str]] = mapped_column(Text)

    user: Mapped["User"] = relationship("User", back_populates="expenses")

    __table_args__ = (
        Index("ix_expenses_user_date", "user_id", "expense_date"),
        Index("ix_expenses_user_category_date", "user_id", "category", "expense_date"),
        Index(
            "ix_expenses_user_method_date", "user_id", "payment_method", "expense_date"
        ),
        CheckConstraint("amount_cents > 0", name="ck_expenses_amount_positive"),
        CheckConstraint(
            "cash_amount_cents + upi_amount_cents = amount_cents",
            name="ck_expenses_split_matches_amount",
        ),
    )

    @property
    def amount(self) -> Decimal:
        return cents_to_decimal(self.amount_cents)

    @property
    def cash_amount(self) -> Decimal:
        return cents_to_decimal(self.cash_amount_cents)

    @property
    def upi_amount(self) -> Decimal:
        return cents_to_decimal(self.upi_amount_cents)

    def __repr__(self) -> str:
        return (
            f"Expense(id={self.id!r}, amount={self.amount}, "
            f"category={self.category!r}, expense_date={self.expense_date}, "
            f"payment_method={self.payment_method.value if self.payment_method else None})"
        )
