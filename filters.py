from dataclasses import dataclass
from datetime import date
from typing import Callable, Optional

from models import Expense, PaymentMethod
from repository import ExpenseRepository


@dataclass(frozen=True)
class ExpenseFilters:
    category: Optional[str] = None
    payment_method: Optional[PaymentMethod] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    upi_vpa: Optional[str] = None
    transaction_id: Optional[str] = None

    def has_filters(self) -> bool:
        return any(
            value is not None
            for value in (
                self.category,
                self.payment_method,
                self.start_date,
                self.end_date,
                self.upi_vpa,
                self.transaction_id,
            )
        )

    @property
    def has_date_range(self) -> bool:
        return self.start_date is not None and self.end_date is not None

    @property
    def has_category(self) -> bool:
        return self.category is not None

    @property
    def has_payment_method(self) -> bool:
        return self.payment_method is not None


Query = Callable[[ExpenseRepository, int, ExpenseFilters], list[Expense]]
Predicate = Callable[[ExpenseFilters], bool]


def _all(repo: ExpenseRepository, user_id: int, f: ExpenseFilters) -> list[Expense]:
    return repo.find_by_owner(user_id)


def _range_category_method(
    repo: ExpenseRepository, user_id: int, f: ExpenseFilters
) -> list[Expense]:
    return repo.find_by_category_and_payment_method_and_date_range(
        user_id, f.category, f.payment_method, f.start_date, f.end_date
    )


def _range_category(
    repo: ExpenseRepository, user_id: int, f: ExpenseFilters
) -> list[Expense]:
    return repo.find_by_category_and_date_range(
        user_id, f.category, f.start_date, f.end_date
    )


def _range_method(
    repo: ExpenseRepository, user_id: int, f: ExpenseFilters
) -> list[Expense]:
    return repo.find_by_payment_method_and_date_range(
        user_id, f.payment_method, f.start_date, f.end_date
    )


def _range(repo: ExpenseRepository, user_id: int, f: ExpenseFilters) -> list[Expense]:
    return repo.find_by_date_range(user_id, f.start_date, f.end_date)


def _category_then_method(
    repo: ExpenseRepository, user_id: int, f: ExpenseFilters
) -> list[Expense]:
    return [
        e
        for e in repo.find_by_category(user_id, f.category)
        if e.payment_method == f.payment_method
    ]


def _category(
    repo: ExpenseRepository, user_id: int, f: ExpenseFilters
) -> list[Expense]:
    return repo.find_by_category(user_id, f.category)


def _method(repo: ExpenseRepository, user_id: int, f: ExpenseFilters) -> list[Expense]:
    return repo.find_by_payment_method(user_id, f.payment_method)


# Evaluated top-down; the first matching predicate picks the query.
QUERY_STRATEGIES: list[tuple[str, Predicate, Query]] = [
    ("all", lambda f: not f.has_filters(), _all),
    (
        "range+category+method",
        lambda f: f.has_date_range and f.has_category and f.has_payment_method,
        _range_category_method,
    ),
    (
        "range+category",
        lambda f: f.has_date_range and f.has_category,
        _range_category,
    ),
    (
        "range+method",
        lambda f: f.has_date_range and f.has_payment_method,
        _range_method,
    ),
    ("range", lambda f: f.has_date_range, _range),
    (
        "category+method",
        lambda f: f.has_category and f.has_payment_method,
        _category_then_method,
    ),
    ("category", lambda f: f.has_category, _category),
    ("method", lambda f: f.has_payment_method, _method),
    ("fallback", lambda f: True, _all),
]


def select_strategy(filters: ExpenseFilters) -> tuple[str, Query]:
    for name, predicate, query in QUERY_STRATEGIES:
        if predicate(filters):
            return name, query
    raise AssertionError("fallback strategy always matches")


def _contains(value: Optional[str], needle: str) -> bool:
    return value is not None and needle.lower() in value.lower()


def apply_substring_filters(
    expenses: list[Expense], filters: ExpenseFilters
) -> list[Expense]:
    """Narrow by UPI VPA, then by transaction id.

    A blank needle is no constraint. Relative order is kept.
    """
    result = expenses
    if filters.upi_vpa is not None and filters.upi_vpa.strip():
        needle = filters.upi_vpa
        result = [e for e in result if _contains(e.upi_vpa, needle)]
    if filters.transaction_id is not None and filters.transaction_id.strip():
        needle = filters.transaction_id
        result = [e for e in result if _contains(e.transaction_id, needle)]
    return result


def filter_expenses(
    repo: ExpenseRepository, user_id: int, filters: ExpenseFilters
) -> list[Expense]:
    _, query = select_strategy(filters)
    return apply_substring_filters(query(repo, user_id, filters), filters)
