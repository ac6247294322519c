"""Fee installment ledger: generation for one student, payments, discounts, skip/unskip, repair and summaries.

Every mutation re-derives balance and status through core.fees.status_rule and is
committed under the installment's version counter. A concurrent writer that got
there first makes the commit fail with ConcurrentModificationError instead of
silently overwriting paid_amount.
"""

import logging
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import List, Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError

from schoolfees.core.enums import InstallmentStatus
from schoolfees.core.exceptions import (
    ConcurrentModificationError,
    DuplicateGenerationError,
    FeeValidationError,
    NotFoundError,
)
from schoolfees.core.fees.status_rule import compute_balance, refresh_installment, to_decimal
from schoolfees.core.models import (
    AcademicYear,
    FeeAuditLog,
    FeeInstallment,
    InstallmentPayment,
    SchoolClass,
    Student,
)

from .generation import (
    configuration_start_date,
    find_configuration,
    insert_installments_for_student,
    installments_exist,
)
from .schemas import (
    DiscountApply,
    GenerateForStudentRequest,
    InstallmentPaymentResponse,
    InstallmentResponse,
    InstallmentUpdate,
    PaymentCreate,
    RepairError,
    RepairResult,
    SkipRequest,
    StudentFeeSummary,
)

logger = logging.getLogger(__name__)


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _to_response(inst: FeeInstallment) -> InstallmentResponse:
    return InstallmentResponse.model_validate(inst)


def _snapshot(inst: FeeInstallment) -> dict:
    return {
        "discount": str(inst.discount),
        "paid_amount": str(inst.paid_amount),
        "balance": str(inst.balance),
        "status": inst.status,
        "is_skipped": bool(inst.is_skipped),
    }


# --- Audit helper ---
def _log_fee_audit(
    db: AsyncSession,
    reference_id: UUID,
    action_type: str,
    old_value: Optional[dict],
    new_value: Optional[dict],
    changed_by: Optional[UUID],
    reference_table: str = "fee_installments",
) -> None:
    db.add(
        FeeAuditLog(
            reference_table=reference_table,
            reference_id=reference_id,
            action_type=action_type,
            old_value=old_value,
            new_value=new_value,
            changed_by=changed_by,
        )
    )


async def _commit_installment(db: AsyncSession, inst: FeeInstallment) -> InstallmentResponse:
    installment_id = inst.id
    try:
        await db.commit()
    except StaleDataError:
        await db.rollback()
        logger.warning("Lost update prevented on fee installment %s", installment_id)
        raise ConcurrentModificationError()
    await db.refresh(inst)
    return _to_response(inst)


async def _get_installment_or_404(db: AsyncSession, installment_id: UUID) -> FeeInstallment:
    inst = await db.get(FeeInstallment, installment_id)
    if not inst:
        raise NotFoundError("Fee installment not found")
    return inst


# --- Reads ---
async def list_installments(
    db: AsyncSession,
    student_id: Optional[UUID] = None,
    academic_year_id: Optional[UUID] = None,
    class_id: Optional[UUID] = None,
    fee_type: Optional[str] = None,
    status_filter: Optional[str] = None,
    month: Optional[str] = None,
) -> List[InstallmentResponse]:
    stmt = select(FeeInstallment)
    if student_id is not None:
        stmt = stmt.where(FeeInstallment.student_id == student_id)
    if academic_year_id is not None:
        stmt = stmt.where(FeeInstallment.academic_year_id == academic_year_id)
    if class_id is not None:
        stmt = stmt.where(FeeInstallment.class_id == class_id)
    if fee_type:
        stmt = stmt.where(FeeInstallment.fee_type == fee_type)
    if status_filter:
        stmt = stmt.where(FeeInstallment.status == status_filter)
    if month:
        stmt = stmt.where(FeeInstallment.month == month)
    stmt = stmt.order_by(FeeInstallment.due_date, FeeInstallment.fee_type, FeeInstallment.fee_name)
    result = await db.execute(stmt)
    return [_to_response(i) for i in result.scalars().all()]


async def get_installment(db: AsyncSession, installment_id: UUID) -> InstallmentResponse:
    return _to_response(await _get_installment_or_404(db, installment_id))


async def list_payments(db: AsyncSession, installment_id: UUID) -> List[InstallmentPaymentResponse]:
    await _get_installment_or_404(db, installment_id)
    result = await db.execute(
        select(InstallmentPayment)
        .where(InstallmentPayment.installment_id == installment_id)
        .order_by(InstallmentPayment.payment_date, InstallmentPayment.created_at)
    )
    return [InstallmentPaymentResponse.model_validate(p) for p in result.scalars().all()]


async def get_student_summary(
    db: AsyncSession,
    student_id: UUID,
    academic_year_id: Optional[UUID] = None,
) -> StudentFeeSummary:
    """
    total: sum of nominal amounts; paid: sum of paid amounts;
    pending / overdue: outstanding balance of installments currently in that status.
    """
    if not await db.get(Student, student_id):
        raise NotFoundError("Student not found")
    installments = await list_installments(db, student_id=student_id, academic_year_id=academic_year_id)
    zero = Decimal("0")
    return StudentFeeSummary(
        student_id=student_id,
        academic_year_id=academic_year_id,
        total=sum((i.amount for i in installments), zero),
        paid=sum((i.paid_amount for i in installments), zero),
        pending=sum((i.balance for i in installments if i.status == InstallmentStatus.PENDING), zero),
        overdue=sum((i.balance for i in installments if i.status == InstallmentStatus.OVERDUE), zero),
        installments=installments,
    )


# --- Generation ---
async def generate_for_student(
    db: AsyncSession,
    payload: GenerateForStudentRequest,
    changed_by: Optional[UUID] = None,
    today: Optional[date] = None,
) -> List[InstallmentResponse]:
    """Explicit single-student generation. Existing installments for the same year and class are a hard failure."""
    if await installments_exist(db, payload.student_id, payload.academic_year_id, payload.class_id):
        raise DuplicateGenerationError()
    if not await db.get(Student, payload.student_id):
        raise NotFoundError("Student not found")
    if not await db.get(AcademicYear, payload.academic_year_id):
        raise NotFoundError("Academic year not found")
    if not await db.get(SchoolClass, payload.class_id):
        raise NotFoundError("Class not found")

    configuration = await find_configuration(db, payload.academic_year_id, payload.class_id)
    start_date = await configuration_start_date(db, configuration)
    created = await insert_installments_for_student(
        db, configuration, start_date, payload.student_id, changed_by=changed_by, today=today
    )
    return [_to_response(i) for i in created]


# --- Payment ---
async def process_payment(
    db: AsyncSession,
    installment_id: UUID,
    payload: PaymentCreate,
    processed_by: Optional[UUID],
    receipt_path: Optional[str] = None,
    now: Optional[datetime] = None,
) -> InstallmentResponse:
    """Add a payment to paid_amount, record it in the payment log and keep it as the latest payment metadata."""
    if now is None:
        now = _now()
    inst = await _get_installment_or_404(db, installment_id)

    amount = to_decimal(payload.amount)
    if amount <= 0:
        raise FeeValidationError("Payment amount must be greater than zero")
    balance = compute_balance(inst.amount, inst.discount, inst.paid_amount)
    if amount > balance:
        raise FeeValidationError("Payment amount cannot exceed remaining balance")

    old = _snapshot(inst)
    payment_date = payload.payment_date or now
    inst.paid_amount = to_decimal(inst.paid_amount) + amount
    inst.payment_method = payload.payment_method.value
    inst.payment_date = payment_date
    if payload.transaction_id:
        inst.transaction_id = payload.transaction_id.strip()
    if payload.receipt_number:
        inst.receipt_number = payload.receipt_number.strip()
    if payload.remarks:
        inst.remarks = payload.remarks
    if receipt_path:
        inst.receipt_image = receipt_path
    inst.processed_by = processed_by
    refresh_installment(inst, now)

    payment = InstallmentPayment(
        installment_id=inst.id,
        student_id=inst.student_id,
        amount=amount,
        payment_method=inst.payment_method,
        payment_date=payment_date,
        transaction_id=(payload.transaction_id or "").strip() or None,
        receipt_number=(payload.receipt_number or "").strip() or None,
        receipt_image=receipt_path,
        remarks=payload.remarks,
        processed_by=processed_by,
    )
    db.add(payment)
    _log_fee_audit(
        db, inst.id, "PAYMENT", old,
        {**_snapshot(inst), "amount": str(amount), "payment_method": inst.payment_method},
        processed_by,
    )
    return await _commit_installment(db, inst)


# --- Discount ---
async def apply_discount(
    db: AsyncSession,
    installment_id: UUID,
    payload: DiscountApply,
    changed_by: Optional[UUID],
    now: Optional[datetime] = None,
) -> InstallmentResponse:
    """Replace the discount (not additive). A discount may not exceed the installment amount."""
    inst = await _get_installment_or_404(db, installment_id)
    discount = to_decimal(payload.amount)
    if discount < 0:
        raise FeeValidationError("Discount cannot be negative")
    if discount > to_decimal(inst.amount):
        raise FeeValidationError("Discount cannot exceed the installment amount")

    old = _snapshot(inst)
    inst.discount = discount
    inst.discount_reason = (payload.reason or "").strip() or None
    refresh_installment(inst, now)
    _log_fee_audit(
        db, inst.id, "DISCOUNT", old,
        {**_snapshot(inst), "discount_reason": inst.discount_reason},
        changed_by,
    )
    return await _commit_installment(db, inst)


# --- Skip / unskip ---
async def skip_installment(
    db: AsyncSession,
    installment_id: UUID,
    payload: SkipRequest,
    changed_by: Optional[UUID],
    now: Optional[datetime] = None,
) -> InstallmentResponse:
    """Waive an installment. Payment fields are kept; only the status is overridden."""
    if now is None:
        now = _now()
    inst = await _get_installment_or_404(db, installment_id)
    old = _snapshot(inst)
    inst.is_skipped = True
    inst.skipped_reason = (payload.reason or "").strip() or None
    inst.skipped_date = now
    refresh_installment(inst, now)
    _log_fee_audit(
        db, inst.id, "SKIP", old,
        {**_snapshot(inst), "skipped_reason": inst.skipped_reason},
        changed_by,
    )
    return await _commit_installment(db, inst)


async def unskip_installment(
    db: AsyncSession,
    installment_id: UUID,
    changed_by: Optional[UUID],
    now: Optional[datetime] = None,
) -> InstallmentResponse:
    """Clear the waiver. Status is recomputed from the current balance and due date, not restored."""
    inst = await _get_installment_or_404(db, installment_id)
    old = _snapshot(inst)
    inst.is_skipped = False
    inst.skipped_reason = None
    inst.skipped_date = None
    refresh_installment(inst, now)
    _log_fee_audit(db, inst.id, "UNSKIP", old, _snapshot(inst), changed_by)
    return await _commit_installment(db, inst)


# --- Admin edit / delete ---
async def update_installment(
    db: AsyncSession,
    installment_id: UUID,
    payload: InstallmentUpdate,
    changed_by: Optional[UUID],
    now: Optional[datetime] = None,
) -> InstallmentResponse:
    inst = await _get_installment_or_404(db, installment_id)
    changes = payload.model_dump(exclude_unset=True)
    if not changes:
        raise FeeValidationError("No fields to update")
    old = {k: str(getattr(inst, k)) if getattr(inst, k) is not None else None for k in changes}
    for field, value in changes.items():
        if field in ("fee_name", "due_date") and value is None:
            raise FeeValidationError(f"{field} cannot be empty")
        setattr(inst, field, value.strip() if isinstance(value, str) else value)
    refresh_installment(inst, now)
    _log_fee_audit(
        db, inst.id, "UPDATE", old,
        {k: str(v) if v is not None else None for k, v in changes.items()},
        changed_by,
    )
    return await _commit_installment(db, inst)


async def delete_installment(
    db: AsyncSession,
    installment_id: UUID,
    changed_by: Optional[UUID],
) -> None:
    inst = await _get_installment_or_404(db, installment_id)
    _log_fee_audit(
        db, inst.id, "DELETE",
        {**_snapshot(inst), "fee_name": inst.fee_name, "student_id": str(inst.student_id)},
        None,
        changed_by,
    )
    await db.delete(inst)
    try:
        await db.commit()
    except StaleDataError:
        await db.rollback()
        raise ConcurrentModificationError()


# --- Repair ---
async def repair_all(db: AsyncSession, now: Optional[datetime] = None) -> RepairResult:
    """
    Recompute balance and status for every installment.
    Rows are committed one at a time; a failing row is rolled back, recorded and skipped.
    """
    if now is None:
        now = _now()
    ids = (await db.execute(select(FeeInstallment.id).order_by(FeeInstallment.created_at))).scalars().all()
    updated = 0
    changed = 0
    errors: List[RepairError] = []
    for installment_id in ids:
        try:
            inst = await db.get(FeeInstallment, installment_id)
            if inst is None:
                continue
            if refresh_installment(inst, now):
                await db.commit()
                changed += 1
            updated += 1
        except (SQLAlchemyError, ArithmeticError, TypeError, ValueError) as e:
            await db.rollback()
            logger.warning("Could not repair fee installment %s: %s", installment_id, e)
            errors.append(RepairError(installment_id=installment_id, message=str(e)))

    logger.info("Repaired %d fee installments (%d changed, %d failed)", updated, changed, len(errors))
    return RepairResult(
        updated_count=updated,
        changed_count=changed,
        failed_count=len(errors),
        errors=errors,
        message=f"Fixed {updated} fee installments",
    )
