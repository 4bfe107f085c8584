from datetime import date
from typing import Optional

from sqlalchemy import extract, func, select
from sqlalchemy.orm import Session

from models import Expense, PaymentMethod, User


class UserRepository:
    def __init__(self, session: Session) -> None:
        self.session = session

    def find_by_username(self, username: str) -> Optional[User]:
        return self.session.scalar(select(User).where(User.username == username))

    def exists_by_username(self, username: str) -> bool:
        stmt = select(func.count(User.id)).where(User.username == username)
        return (self.session.execute(stmt).scalar_one() or 0) > 0

    def exists_by_email(self, email: str) -> bool:
        stmt = select(func.count(User.id)).where(
            func.lower(User.email) == email.lower()
        )
        return (self.session.execute(stmt).scalar_one() or 0) > 0

    def save(self, user: User) -> User:
        self.session.add(user)
        self.session.commit()
        self.session.refresh(user)
        return user


class ExpenseRepository:
    """Owner-scoped expense queries. Every list query is ordered newest first."""

    def __init__(self, session: Session) -> None:
        self.session = session

    def _owned(self, user_id: int):
        return (
            select(Expense)
            .where(Expense.user_id == user_id)
            .order_by(Expense.expense_date.desc(), Expense.id.desc())
        )

    def find_by_owner(self, user_id: int) -> list[Expense]:
        return list(self.session.scalars(self._owned(user_id)).all())

    def find_by_category(self, user_id: int, category: str) -> list[Expense]:
        stmt = self._owned(user_id).where(Expense.category == category)
        return list(self.session.scalars(stmt).all())

    def find_by_payment_method(
        self, user_id: int, payment_method: PaymentMethod
    ) -> list[Expense]:
        stmt = self._owned(user_id).where(Expense.payment_method == payment_method)
        return list(self.session.scalars(stmt).all())

    def find_by_date_range(self, user_id: int, start: date, end: date) -> list[Expense]:
        stmt = self._owned(user_id).where(Expense.expense_date.between(start, end))
        return list(self.session.scalars(stmt).all())

    def find_by_category_and_date_range(
        self, user_id: int, category: str, start: date, end: date
    ) -> list[Expense]:
        stmt = self._owned(user_id).where(
            Expense.category == category,
            Expense.expense_date.between(start, end),
        )
        return list(self.session.scalars(stmt).all())

    def find_by_payment_method_and_date_range(
        self, user_id: int, payment_method: PaymentMethod, start: date, end: date
    ) -> list[Expense]:
        stmt = self._owned(user_id).where(
            Expense.payment_method == payment_method,
            Expense.expense_date.between(start, end),
        )
        return list(self.session.scalars(stmt).all())

    def find_by_category_and_payment_method_and_date_range(
        self,
        user_id: int,
        category: str,
        payment_method: PaymentMethod,
        start: date,
        end: date,
    ) -> list[Expense]:
        stmt = self._owned(user_id).where(
            Expense.category == category,
            Expense.payment_method == payment_method,
            Expense.expense_date.between(start, end),
        )
        return list(self.session.scalars(stmt).all())

    def find_by_id(self, expense_id: int) -> Optional[Expense]:
        return self.session.get(Expense, expense_id)

    def exists_by_id(self, expense_id: int) -> bool:
        stmt = select(func.count(Expense.id)).where(Expense.id == expense_id)
        return (self.session.execute(stmt).scalar_one() or 0) > 0

    def save(self, expense: Expense) -> Expense:
        self.session.add(expense)
        self.session.commit()
        self.session.refresh(expense)
        return expense

    def delete(self, expense: Expense) -> None:
        self.session.delete(expense)
        self.session.commit()

    def distinct_categories(self, user_id: int) -> list[str]:
        stmt = (
            select(Expense.category)
            .where(Expense.user_id == user_id)
            .distinct()
            .order_by(Expense.category)
        )
        return list(self.session.scalars(stmt).all())

    def monthly_totals(self, user_id: int) -> list[tuple[int, int, int, int]]:
        year = extract("year", Expense.expense_date).label("year")
        month = extract("month", Expense.expense_date).label("month")
        stmt = (
            select(
                year,
                month,
                func.coalesce(func.sum(Expense.amount_cents), 0).label("total"),
                func.count(Expense.id).label("count"),
            )
            .where(Expense.user_id == user_id)
            .group_by(year, month)
            .order_by(year.desc(), month.desc())
        )
        return [
            (int(row.year), int(row.month), int(row.total), int(row.count))
            for row in self.session.execute(stmt).all()
        ]

    def category_totals(
        self,
        user_id: int,
        *,
        year: Optional[int] = None,
        month: Optional[int] = None,
    ) -> list[tuple[str, int, int]]:
        total = func.coalesce(func.sum(Expense.amount_cents), 0).label("total")
        stmt = (
            select(Expense.category, total, func.count(Expense.id).label("count"))
            .where(Expense.user_id == user_id)
            .group_by(Expense.category)
            .order_by(total.desc(), Expense.category)
        )
        if year is not None:
            stmt = stmt.where(extract("year", Expense.expense_date) == year)
        if month is not None:
            stmt = stmt.where(extract("month", Expense.expense_date) == month)
        return [
            (row.category, int(row.total), int(row.count))
            for row in self.session.execute(stmt).all()
        ]

    def payment_method_totals(self, user_id: int) -> list[tuple[PaymentMethod, int]]:
        total = func.coalesce(func.sum(Expense.amount_cents), 0).label("total")
        stmt = (
            select(Expense.payment_method, total)
            .where(Expense.user_id == user_id)
            .group_by(Expense.payment_method)
            .order_by(total.desc())
        )
        return [
            (row.payment_method, int(row.total))
            for row in self.session.execute(stmt).all()
        ]

    def cash_upi_totals(self, user_id: int) -> tuple[int, int]:
        stmt = select(
            func.coalesce(func.sum(Expense.cash_amount_cents), 0),
            func.coalesce(func.sum(Expense.upi_amount_cents), 0),
        ).where(Expense.user_id == user_id)
        cash, upi = self.session.execute(stmt).one()
        return int(cash), int(upi)
