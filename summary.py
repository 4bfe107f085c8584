from dataclasses import dataclass, field
from decimal import Decimal
from typing import Iterable, Optional

from models import CENT, Expense

ZERO = Decimal("0.00")


@dataclass
class ExpenseSummary:
    total_amount: Decimal = ZERO
    total_cash_amount: Decimal = ZERO
    total_upi_amount: Decimal = ZERO
    total_transactions: int = 0
    category_totals: dict[str, Decimal] = field(default_factory=dict)
    payment_method_totals: dict[str, Decimal] = field(default_factory=dict)
    budget: Decimal = ZERO
    remaining_budget: Decimal = ZERO


def _add(totals: dict[str, Decimal], key: str, amount: Decimal) -> None:
    totals[key] = totals.get(key, ZERO) + amount


def summarize(
    expenses: Iterable[Expense], budget: Optional[Decimal] = None
) -> ExpenseSummary:
    """Fold expenses into totals and per-category / per-method breakdowns.

    ``remaining_budget`` goes negative when spending exceeds the budget.
    """
    summary = ExpenseSummary()
    for expense in expenses:
        summary.total_amount += expense.amount
        summary.total_cash_amount += expense.cash_amount
        summary.total_upi_amount += expense.upi_amount
        summary.total_transactions += 1
        _add(summary.category_totals, expense.category, expense.amount)
        _add(summary.payment_method_totals, expense.payment_method.label, expense.amount)

    summary.budget = (budget if budget is not None else ZERO).quantize(CENT)
    summary.remaining_budget = summary.budget - summary.total_amount
    return summary
