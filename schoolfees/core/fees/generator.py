"""
Expand a class fee configuration into concrete installment rows for one student.

No I/O here: the caller resolves the academic year start date, checks for existing
installments and persists the rows in one transaction.
"""

import calendar
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional, Tuple
from uuid import UUID

from schoolfees.core.enums import FEE_MONTHS, FeeFrequency, FeeType
from schoolfees.core.exceptions import FeeValidationError, InvalidStartDateError

from .status_rule import to_decimal, derive_status

TUITION_DUE_DAY = 10
EXAM_SPACING_MONTHS = 3


def resolve_start_date(value: Any) -> date:
    """Accept a date, datetime or ISO string; anything else is an InvalidStartDate."""
    if value is None or value == "":
        raise InvalidStartDateError("Academic year or start date is missing")
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        try:
            return date.fromisoformat(value.strip()[:10])
        except ValueError:
            raise InvalidStartDateError()
    raise InvalidStartDateError()


def add_months(start: date, months: int) -> date:
    """Calendar month arithmetic; the day is clamped to the target month's last day (Jan 31 + 1 -> Feb 29/28)."""
    month_index = start.month - 1 + months
    year = start.year + month_index // 12
    month = month_index % 12 + 1
    day = min(start.day, calendar.monthrange(year, month)[1])
    return date(year, month, day)


def _parse_amount(value: Any, label: str) -> Decimal:
    try:
        amount = to_decimal(value)
    except (ArithmeticError, ValueError, TypeError):
        raise FeeValidationError(f"Invalid amount for {label}")
    if not amount.is_finite() or amount < 0:
        raise FeeValidationError(f"Invalid amount for {label}")
    return amount


def _parse_fee_entry(entry: Any, kind: str, position: int) -> Tuple[str, Decimal]:
    """(name, amount) of one stored exam / other fee entry. Malformed entries are a FeeValidationError."""
    if not isinstance(entry, dict):
        raise FeeValidationError(f"{kind} #{position + 1} is not an object")
    name = entry.get("name")
    if not isinstance(name, str) or not name.strip():
        raise FeeValidationError(f"{kind} #{position + 1} has no name")
    if entry.get("amount") is None:
        raise FeeValidationError(f"{kind} '{name}' has no amount")
    return name.strip(), _parse_amount(entry["amount"], f"{kind} '{name}'")


def _row(
    student_id: UUID,
    academic_year_id: UUID,
    class_id: UUID,
    fee_type: FeeType,
    fee_name: str,
    amount: Decimal,
    due_date: date,
    today: date,
    month: Optional[str] = None,
    term: Optional[str] = None,
) -> Dict[str, Any]:
    status = derive_status(False, amount, Decimal("0"), due_date, today)
    return {
        "student_id": student_id,
        "academic_year_id": academic_year_id,
        "class_id": class_id,
        "fee_type": fee_type.value,
        "fee_name": fee_name,
        "month": month,
        "term": term,
        "amount": amount,
        "discount": Decimal("0"),
        "paid_amount": Decimal("0"),
        "balance": amount,
        "due_date": due_date,
        "status": status.value,
        "is_skipped": False,
    }


def build_installment_rows(
    tuition_fee,
    exam_fees: List[Dict[str, Any]],
    other_fees: List[Dict[str, Any]],
    start_date: date,
    student_id: UUID,
    academic_year_id: UUID,
    class_id: UUID,
    today: date,
) -> List[Dict[str, Any]]:
    """
    Rows in generation order:
    1. 12 tuition installments labelled April..March, due on the 10th of start month + i.
    2. One exam installment per exam fee, due start_date + 3 * position months.
    3. Other fees: one-time/annual due on start_date; monthly gives 12 rows due start_date + i months.
    """
    rows: List[Dict[str, Any]] = []
    tuition = _parse_amount(tuition_fee, "tuition fee")

    for i, month in enumerate(FEE_MONTHS):
        due = add_months(start_date, i).replace(day=TUITION_DUE_DAY)
        rows.append(
            _row(
                student_id, academic_year_id, class_id,
                FeeType.TUITION, f"{month} Tuition Fee", tuition, due, today,
                month=month,
            )
        )

    for index, exam in enumerate(exam_fees or []):
        name, amount = _parse_fee_entry(exam, "Exam fee", index)
        due = add_months(start_date, index * EXAM_SPACING_MONTHS)
        rows.append(
            _row(
                student_id, academic_year_id, class_id,
                FeeType.EXAM, name, amount, due, today,
                term=name,
            )
        )

    for index, fee in enumerate(other_fees or []):
        name, amount = _parse_fee_entry(fee, "Other fee", index)
        frequency = fee.get("frequency") or FeeFrequency.ONE_TIME.value
        if frequency in (FeeFrequency.ONE_TIME.value, FeeFrequency.ANNUAL.value):
            rows.append(
                _row(student_id, academic_year_id, class_id, FeeType.OTHER, name, amount, start_date, today)
            )
        elif frequency == FeeFrequency.MONTHLY.value:
            for i, month in enumerate(FEE_MONTHS):
                rows.append(
                    _row(
                        student_id, academic_year_id, class_id,
                        FeeType.OTHER, f"{month} {name}", amount, add_months(start_date, i), today,
                        month=month,
                    )
                )
        else:
            raise FeeValidationError(f"Unknown frequency '{frequency}' for fee '{name}'")

    return rows
