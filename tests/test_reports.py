from datetime import date
from decimal import Decimal

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from database import Base
from models import PaymentMethod, User
from schemas import ExpenseIn
from services import ExpenseService, ReportService


def make_session():
    engine = create_engine(
        "sqlite+pysqlite:///:memory:", connect_args={"check_same_thread": False}
    )
    Base.metadata.create_all(engine)
    SessionLocal = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)
    return SessionLocal()


def make_user(session, username: str) -> User:
    user = User(username=username, email=f"{username}@example.com", password_hash="x")
    session.add(user)
    session.commit()
    session.refresh(user)
    return user


def add(session, user, amount, category, method, on):
    extra = {}
    if method == PaymentMethod.upi:
        extra = {"upi_vpa": "me@upi", "transaction_id": f"T{amount}"}
    ExpenseService(session, user).create(
        ExpenseIn(
            amount=Decimal(amount),
            category=category,
            expense_date=on,
            payment_method=method,
            **extra,
        )
    )


def seeded():
    session = make_session()
    alice = make_user(session, "alice")
    bob = make_user(session, "bob")
    add(session, alice, "50.00", "Food", PaymentMethod.cash, date(2024, 1, 10))
    add(session, alice, "20.00", "Food", PaymentMethod.upi, date(2024, 1, 20))
    add(session, alice, "100.00", "Travel", PaymentMethod.upi, date(2024, 2, 3))
    add(session, bob, "500.00", "Rent", PaymentMethod.cash, date(2024, 2, 1))
    return ReportService(session, alice)


def test_monthly_summary_newest_first() -> None:
    rows = seeded().monthly_summary()

    assert [(r.year, r.month, r.total_amount, r.transaction_count) for r in rows] == [
        (2024, 2, Decimal("100.00"), 1),
        (2024, 1, Decimal("70.00"), 2),
    ]


def test_category_totals_largest_first() -> None:
    rows = seeded().category_totals()

    assert [(r.category, r.total_amount, r.transaction_count) for r in rows] == [
        ("Travel", Decimal("100.00"), 1),
        ("Food", Decimal("70.00"), 2),
    ]


def test_monthly_category_summary_limits_to_month() -> None:
    reports = seeded()

    rows = reports.monthly_category_summary(2024, 1)

    assert [(r.category, r.total_amount) for r in rows] == [("Food", Decimal("70.00"))]
    assert reports.monthly_category_summary(2023, 1) == []
    with pytest.raises(ValueError):
        reports.monthly_category_summary(2024, 13)


def test_payment_method_and_cash_upi_totals() -> None:
    reports = seeded()

    assert reports.payment_method_totals() == {
        "UPI": Decimal("120.00"),
        "Cash": Decimal("50.00"),
    }
    assert reports.cash_upi_totals() == {
        "total_cash": Decimal("50.00"),
        "total_upi": Decimal("120.00"),
    }


def test_dashboard_for_user_without_expenses() -> None:
    session = make_session()
    reports = ReportService(session, make_user(session, "carol"))

    dashboard = reports.dashboard()

    assert dashboard["summary"].total_transactions == 0
    assert dashboard["monthly_summary"] == []
    assert dashboard["category_totals"] == []
    assert dashboard["payment_method_totals"] == {}
    assert dashboard["cash_upi_totals"] == {
        "total_cash": Decimal("0.00"),
        "total_upi": Decimal("0.00"),
    }
