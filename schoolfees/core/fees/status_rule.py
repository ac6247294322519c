"""
Balance and status derivation for fee installments.

Status precedence (first match wins):
    skipped  -> is_skipped
    paid     -> balance <= 0
    partial  -> paid_amount > 0
    overdue  -> now is past the due date
    pending  -> otherwise

A partially paid installment that is past due is reported as partial, not overdue.
"""

from datetime import date, datetime, timezone
from decimal import ROUND_HALF_UP, Decimal
from typing import Optional, Union

from schoolfees.core.enums import InstallmentStatus


CENT = Decimal("0.01")


def to_decimal(val) -> Decimal:
    """Money value rounded to cents, the precision of every Numeric(12, 2) column."""
    if val is None:
        return Decimal("0.00")
    dec = val if isinstance(val, Decimal) else Decimal(str(val))
    return dec.quantize(CENT, rounding=ROUND_HALF_UP)


def _as_date(val: Union[date, datetime]) -> date:
    return val.date() if isinstance(val, datetime) else val


def compute_balance(amount, discount, paid_amount) -> Decimal:
    """(amount - discount) - paid_amount. Not clamped: overpayment or a late discount yields a negative balance."""
    return (to_decimal(amount) - to_decimal(discount)) - to_decimal(paid_amount)


def derive_status(
    is_skipped: bool,
    balance,
    paid_amount,
    due_date: Union[date, datetime],
    now: Union[date, datetime],
) -> InstallmentStatus:
    if is_skipped:
        return InstallmentStatus.SKIPPED
    if to_decimal(balance) <= 0:
        return InstallmentStatus.PAID
    if to_decimal(paid_amount) > 0:
        return InstallmentStatus.PARTIAL
    if _as_date(now) > _as_date(due_date):
        return InstallmentStatus.OVERDUE
    return InstallmentStatus.PENDING


def refresh_installment(installment, now: Optional[datetime] = None) -> bool:
    """Recompute balance and status in place. Returns True when either value changed."""
    if now is None:
        now = datetime.now(timezone.utc)
    balance = compute_balance(installment.amount, installment.discount, installment.paid_amount)
    new_status = derive_status(
        bool(installment.is_skipped),
        balance,
        installment.paid_amount,
        installment.due_date,
        now,
    ).value
    changed = installment.balance is None or to_decimal(installment.balance) != balance or installment.status != new_status
    installment.balance = balance
    installment.status = new_status
    return changed
