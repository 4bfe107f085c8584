from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Optional

import bcrypt
from sqlalchemy.orm import Session

from filters import ExpenseFilters, filter_expenses
from models import (
    Expense,
    PaymentMethod,
    User,
    cents_to_decimal,
    decimal_to_cents,
    utcnow,
)
from repository import ExpenseRepository, UserRepository
from schemas import ExpenseIn, LoginIn, PasswordChangeIn, RegisterIn
from summary import ExpenseSummary, summarize
from tokens import issue_token, verify_token

logger = logging.getLogger(__name__)

CATEGORY_MAX_LENGTH = 50
NOTES_MAX_LENGTH = 1000
UPI_FIELD_MAX_LENGTH = 100
# 99,999,999.99
MAX_AMOUNT_CENTS = 9_999_999_999


class InvalidExpense(ValueError):
    pass


class NegativeBudget(ValueError):
    pass


class ExpenseNotFound(ValueError):
    pass


class ExpenseForbidden(ValueError):
    pass


class RegistrationError(ValueError):
    pass


class AuthError(Exception):
    pass


class Unauthenticated(AuthError):
    pass


class UserNotFound(AuthError):
    pass


class InvalidCredentials(AuthError):
    pass


def hash_password(password: str) -> str:
    # bcrypt only looks at the first 72 bytes
    return bcrypt.hashpw(password.encode("utf-8")[:72], bcrypt.gensalt()).decode(
        "utf-8"
    )


def verify_password(password: str, hashed_password: str) -> bool:
    return bcrypt.checkpw(
        password.encode("utf-8")[:72], hashed_password.encode("utf-8")
    )


class AuthService:
    def __init__(self, session: Session) -> None:
        self.session = session
        self.users = UserRepository(session)

    def register(self, data: RegisterIn) -> tuple[User, str]:
        username = data.username.strip()
        email = data.email.strip()
        if self.users.exists_by_username(username):
            raise RegistrationError("Username already exists")
        if self.users.exists_by_email(email):
            raise RegistrationError("Email already exists")

        user = self.users.save(
            User(
                username=username,
                email=email,
                password_hash=hash_password(data.password),
            )
        )
        logger.info(f"user_registered: user_id={user.id} username={user.username}")
        return user, issue_token(user.username)

    def login(self, data: LoginIn) -> tuple[User, str]:
        user = self.users.find_by_username(data.username.strip())
        if not user or not verify_password(data.password, user.password_hash):
            logger.warning(f"login_failed: username={data.username.strip()}")
            raise InvalidCredentials("Invalid username or password")
        return user, issue_token(user.username)

    def validate(self, token: Optional[str]) -> Optional[str]:
        return verify_token(token)

    def resolve_user(self, token: Optional[str]) -> User:
        username = verify_token(token)
        if username is None:
            raise Unauthenticated("Authentication required")
        user = self.users.find_by_username(username)
        if not user:
            logger.warning(f"token_subject_unknown: username={username}")
            raise UserNotFound("User not found")
        return user

    def change_password(self, user: User, data: PasswordChangeIn) -> None:
        if not verify_password(data.current_password, user.password_hash):
            raise InvalidCredentials("Current password is incorrect")
        user.password_hash = hash_password(data.new_password)
        user.updated_at = utcnow()
        self.users.save(user)
        logger.info(f"password_changed: user_id={user.id}")


def assert_owns(expense: Expense, user: User) -> None:
    if expense.user_id != user.id:
        raise ExpenseForbidden("Expense belongs to another user")


def derive_amount_split(expense: Expense) -> Expense:
    if expense.payment_method == PaymentMethod.upi:
        expense.upi_amount_cents = expense.amount_cents
        expense.cash_amount_cents = 0
    else:
        expense.cash_amount_cents = expense.amount_cents
        expense.upi_amount_cents = 0
    return expense


def _clean(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = value.strip()
    return value or None


def validate_expense(data: ExpenseIn) -> dict[str, object]:
    """Check an expense payload and return the column values to store."""
    amount = data.amount
    if amount is None or not amount.is_finite():
        raise InvalidExpense("Amount is required")
    try:
        amount_cents = decimal_to_cents(amount)
    except InvalidOperation as exc:
        raise InvalidExpense("Amount is out of range") from exc
    if amount_cents <= 0:
        raise InvalidExpense("Amount must be greater than 0")
    if amount_cents > MAX_AMOUNT_CENTS:
        raise InvalidExpense("Amount is out of range")

    category = _clean(data.category)
    if category is None:
        raise InvalidExpense("Category is required")
    if len(category) > CATEGORY_MAX_LENGTH:
        raise InvalidExpense(
            f"Category must not exceed {CATEGORY_MAX_LENGTH} characters"
        )

    if data.expense_date is None:
        raise InvalidExpense("Expense date is required")
    if data.payment_method is None:
        raise InvalidExpense("Payment method is required")

    upi_vpa = _clean(data.upi_vpa)
    transaction_id = _clean(data.transaction_id)
    payer_name = _clean(data.payer_name)
    if data.payment_method == PaymentMethod.upi:
        if upi_vpa is None:
            raise InvalidExpense("UPI VPA is required for UPI payments")
        if transaction_id is None:
            raise InvalidExpense("Transaction ID is required for UPI payments")
    for label, value in (
        ("UPI VPA", upi_vpa),
        ("Transaction ID", transaction_id),
        ("Payer name", payer_name),
    ):
        if value is not None and len(value) > UPI_FIELD_MAX_LENGTH:
            raise InvalidExpense(
                f"{label} must not exceed {UPI_FIELD_MAX_LENGTH} characters"
            )

    notes = _clean(data.notes)
    if notes is not None and len(notes) > NOTES_MAX_LENGTH:
        raise InvalidExpense(f"Notes must not exceed {NOTES_MAX_LENGTH} characters")

    return {
        "amount_cents": amount_cents,
        "category": category,
        "expense_date": data.expense_date,
        "payment_method": data.payment_method,
        "upi_vpa": upi_vpa,
        "transaction_id": transaction_id,
        "payer_name": payer_name,
        "notes": notes,
    }


class ExpenseService:
    def __init__(self, session: Session, user: User) -> None:
        self.session = session
        self.user = user
        self.expenses = ExpenseRepository(session)
        self.users = UserRepository(session)

    def create(self, data: ExpenseIn) -> Expense:
        values = validate_expense(data)
        now = utcnow()
        expense = Expense(user_id=self.user.id, **values)
        derive_amount_split(expense)
        expense.created_at = now
        expense.updated_at = now
        expense = self.expenses.save(expense)
        logger.info(
            f"expense_created: expense_id={expense.id} user_id={self.user.id} "
            f"payment_method={expense.payment_method.value}"
        )
        return expense

    def get(self, expense_id: int) -> Expense:
        expense = self.expenses.find_by_id(expense_id)
        if not expense:
            raise ExpenseNotFound(f"Expense not found with ID: {expense_id}")
        assert_owns(expense, self.user)
        return expense

    def update(self, expense_id: int, data: ExpenseIn) -> Expense:
        expense = self.get(expense_id)
        values = validate_expense(data)
        for column, value in values.items():
            setattr(expense, column, value)
        derive_amount_split(expense)
        expense.updated_at = utcnow()
        expense = self.expenses.save(expense)
        logger.info(f"expense_updated: expense_id={expense.id} user_id={self.user.id}")
        return expense

    def delete(self, expense_id: int) -> None:
        expense = self.get(expense_id)
        self.expenses.delete(expense)
        logger.info(f"expense_deleted: expense_id={expense_id} user_id={self.user.id}")

    def list(self, filters: Optional[ExpenseFilters] = None) -> list[Expense]:
        return filter_expenses(self.expenses, self.user.id, filters or ExpenseFilters())

    def distinct_categories(self) -> list[str]:
        return self.expenses.distinct_categories(self.user.id)

    def summary(self) -> ExpenseSummary:
        return summarize(self.expenses.find_by_owner(self.user.id), self.user.budget)

    def update_budget(self, new_budget: Optional[Decimal]) -> Optional[Decimal]:
        if new_budget is None:
            self.user.budget_cents = None
        else:
            if not new_budget.is_finite():
                raise NegativeBudget("Budget must be a number")
            if new_budget < 0:
                raise NegativeBudget("Budget cannot be negative")
            try:
                budget_cents = decimal_to_cents(new_budget)
            except InvalidOperation as exc:
                raise NegativeBudget("Budget is out of range") from exc
            if budget_cents > MAX_AMOUNT_CENTS:
                raise NegativeBudget("Budget is out of range")
            self.user.budget_cents = budget_cents
        self.user.updated_at = utcnow()
        self.users.save(self.user)
        logger.info(f"budget_updated: user_id={self.user.id}")
        return self.user.budget


@dataclass(frozen=True)
class MonthlyTotal:
    year: int
    month: int
    total_amount: Decimal
    transaction_count: int


@dataclass(frozen=True)
class CategoryTotal:
    category: str
    total_amount: Decimal
    transaction_count: int


class ReportService:
    def __init__(self, session: Session, user: User) -> None:
        self.session = session
        self.user = user
        self.expenses = ExpenseRepository(session)

    def monthly_summary(self) -> list[MonthlyTotal]:
        return [
            MonthlyTotal(year, month, cents_to_decimal(total), count)
            for year, month, total, count in self.expenses.monthly_totals(self.user.id)
        ]

    def category_totals(self) -> list[CategoryTotal]:
        return [
            CategoryTotal(category, cents_to_decimal(total), count)
            for category, total, count in self.expenses.category_totals(self.user.id)
        ]

    def monthly_category_summary(self, year: int, month: int) -> list[CategoryTotal]:
        if not 1 <= month <= 12:
            raise ValueError("Month must be between 1 and 12")
        rows = self.expenses.category_totals(self.user.id, year=year, month=month)
        return [
            CategoryTotal(category, cents_to_decimal(total), count)
            for category, total, count in rows
        ]

    def payment_method_totals(self) -> dict[str, Decimal]:
        return {
            method.label: cents_to_decimal(total)
            for method, total in self.expenses.payment_method_totals(self.user.id)
        }

    def cash_upi_totals(self) -> dict[str, Decimal]:
        cash, upi = self.expenses.cash_upi_totals(self.user.id)
        return {"total_cash": cents_to_decimal(cash), "total_upi": cents_to_decimal(upi)}

    def dashboard(self) -> dict[str, object]:
        summary = ExpenseService(self.session, self.user).summary()
        return {
            "summary": summary,
            "monthly_summary": self.monthly_summary(),
            "category_totals": self.category_totals(),
            "payment_method_totals": self.payment_method_totals(),
            "cash_upi_totals": self.cash_upi_totals(),
        }
