import csv
import re
from datetime import datetime
from io import StringIO
from typing import Optional, Sequence

from models import Expense

CSV_HEADER = [
    "ID",
    "Amount",
    "Category",
    "Expense Date",
    "Payment Method",
    "Cash Amount",
    "UPI Amount",
    "UPI VPA",
    "Transaction ID",
    "Payer Name",
    "Notes",
    "Created At",
    "Updated At",
]

DATETIME_FORMAT = "%Y-%m-%d %H:%M:%S"


def sanitize_csv_value(value: Optional[str]) -> str:
    """
    Sanitize CSV values to prevent formula injection by prefixing dangerous patterns with tab.
    """
    if not value or value.strip() == "":
        return ""

    value = value.strip()

    formula_triggers = ("=", "+", "-", "@", "\t", "\r")

    if value.startswith(formula_triggers):
        return "\t" + value

    dangerous_patterns = [
        r"^cmd\s*",
        r"^powershell\s*",
        r"^bash\s*",
        r"^sh\s*",
        r"^\.",
        r"^http[s]?://",
    ]

    for pattern in dangerous_patterns:
        if re.match(pattern, value, re.IGNORECASE):
            return "\t" + value

    return value


def _format_datetime(value: Optional[datetime]) -> str:
    return value.strftime(DATETIME_FORMAT) if value else ""


def export_expenses(expenses: Sequence[Expense]) -> str:
    output = StringIO()
    writer = csv.writer(output)
    writer.writerow(CSV_HEADER)
    for expense in expenses:
        writer.writerow(
            [
                str(expense.id) if expense.id is not None else "",
                f"{expense.amount:.2f}",
                sanitize_csv_value(expense.category),
                expense.expense_date.isoformat() if expense.expense_date else "",
                expense.payment_method.label if expense.payment_method else "",
                f"{expense.cash_amount:.2f}",
                f"{expense.upi_amount:.2f}",
                sanitize_csv_value(expense.upi_vpa),
                sanitize_csv_value(expense.transaction_id),
                sanitize_csv_value(expense.payer_name),
                sanitize_csv_value(expense.notes),
                _format_datetime(expense.created_at),
                _format_datetime(expense.updated_at),
            ]
        )
    return output.getvalue()


def csv_filename(now: Optional[datetime] = None) -> str:
    timestamp = (now or datetime.now()).strftime("%Y%m%d_%H%M%S")
    return f"expenses_{timestamp}.csv"
