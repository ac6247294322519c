"""Service-level tests for the installment ledger."""

import uuid
from datetime import date, datetime, timezone
from decimal import Decimal

import pytest
from pydantic import ValidationError
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from schoolfees.api.v1.fee_installments import service as installment_service
from schoolfees.api.v1.fee_installments.schemas import (
    DiscountApply,
    GenerateForStudentRequest,
    InstallmentUpdate,
    PaymentCreate,
    SkipRequest,
)
from schoolfees.core.enums import InstallmentStatus, PaymentMethod
from schoolfees.core.exceptions import (
    ConcurrentModificationError,
    ConfigurationMissingError,
    DuplicateGenerationError,
    FeeValidationError,
    InvalidStartDateError,
    NotFoundError,
)
from schoolfees.core.fees.status_rule import compute_balance, derive_status
from schoolfees.core.models import FeeAuditLog, FeeInstallment

ADMIN_ID = uuid.uuid4()
ACCOUNTANT_ID = uuid.uuid4()

GENERATED_ON = date(2024, 3, 1)
BEFORE_DUE = datetime(2024, 3, 15, 10, 0, tzinfo=timezone.utc)
AFTER_JUNE_DUE = datetime(2024, 6, 20, 10, 0, tzinfo=timezone.utc)


async def _generate(db: AsyncSession, student, academic_year, school_class):
    return await installment_service.generate_for_student(
        db,
        GenerateForStudentRequest(
            student_id=student.id,
            academic_year_id=academic_year.id,
            class_id=school_class.id,
        ),
        changed_by=ADMIN_ID,
        today=GENERATED_ON,
    )


def _tuition(installments, month):
    return next(i for i in installments if i.fee_type == "tuition" and i.month == month)


def _pay(amount: str, **kwargs) -> PaymentCreate:
    return PaymentCreate(amount=Decimal(amount), payment_method=PaymentMethod.CASH, **kwargs)


async def test_generate_for_student(db_session, student, academic_year, school_class, fee_configuration) -> None:
    installments = await _generate(db_session, student, academic_year, school_class)
    assert len(installments) == 13
    assert sum(i.amount for i in installments) == Decimal("18500")
    assert all(i.status == InstallmentStatus.PENDING for i in installments)
    assert all(i.version == 1 for i in installments)

    audit = (await db_session.execute(select(FeeAuditLog).where(FeeAuditLog.action_type == "GENERATE"))).scalars().all()
    assert len(audit) == 1
    assert audit[0].reference_id == student.id
    assert audit[0].new_value["installments_count"] == 13


async def test_generate_for_student_twice_fails(
    db_session, student, academic_year, school_class, fee_configuration
) -> None:
    await _generate(db_session, student, academic_year, school_class)
    with pytest.raises(DuplicateGenerationError) as exc:
        await _generate(db_session, student, academic_year, school_class)
    assert exc.value.message == "Fees already exist for this student in this academic year and class"
    rows = await installment_service.list_installments(db_session, student_id=student.id)
    assert len(rows) == 13


async def test_generate_without_configuration(db_session, student, academic_year, school_class) -> None:
    with pytest.raises(ConfigurationMissingError):
        await _generate(db_session, student, academic_year, school_class)


async def test_generate_with_missing_start_date(
    db_session, student, academic_year, school_class, fee_configuration
) -> None:
    academic_year.start_date = None
    await db_session.commit()
    with pytest.raises(InvalidStartDateError):
        await _generate(db_session, student, academic_year, school_class)
    assert await installment_service.list_installments(db_session, student_id=student.id) == []


async def test_payments_move_from_partial_to_paid(
    db_session, student, academic_year, school_class, fee_configuration
) -> None:
    april = _tuition(await _generate(db_session, student, academic_year, school_class), "April")

    first = await installment_service.process_payment(
        db_session, april.id, _pay("500", receipt_number="R-1"), processed_by=ACCOUNTANT_ID, now=BEFORE_DUE
    )
    assert first.status == InstallmentStatus.PARTIAL
    assert first.paid_amount == Decimal("500")
    assert first.balance == Decimal("1000")
    assert first.receipt_number == "R-1"
    assert first.processed_by == ACCOUNTANT_ID
    assert first.payment_date is not None

    second = await installment_service.process_payment(
        db_session,
        april.id,
        PaymentCreate(amount=Decimal("1000"), payment_method=PaymentMethod.ONLINE, transaction_id="TXN-9"),
        processed_by=ACCOUNTANT_ID,
        now=BEFORE_DUE,
    )
    assert second.status == InstallmentStatus.PAID
    assert second.balance == Decimal("0")
    assert second.payment_method == "online"
    assert second.transaction_id == "TXN-9"
    # Latest payment metadata is overwritten, older fields survive when not resent
    assert second.receipt_number == "R-1"
    assert second.version == 3

    payments = await installment_service.list_payments(db_session, april.id)
    assert [p.amount for p in payments] == [Decimal("500"), Decimal("1000")]
    assert [p.payment_method for p in payments] == [PaymentMethod.CASH, PaymentMethod.ONLINE]


async def test_overpayment_is_rejected(db_session, student, academic_year, school_class, fee_configuration) -> None:
    april = _tuition(await _generate(db_session, student, academic_year, school_class), "April")
    with pytest.raises(FeeValidationError):
        await installment_service.process_payment(
            db_session, april.id, _pay("1500.01"), processed_by=ACCOUNTANT_ID, now=BEFORE_DUE
        )
    stored = await installment_service.get_installment(db_session, april.id)
    assert stored.paid_amount == Decimal("0")
    assert await installment_service.list_payments(db_session, april.id) == []


async def test_payment_on_missing_installment(db_session) -> None:

    with pytest.raises(NotFoundError):
        await installment_service.process_payment(db_session, uuid.uuid4(), _pay("10"), processed_by=ADMIN_ID)


async def test_discount_replaces_and_settles(
    db_session, student, academic_year, school_class, fee_configuration
) -> None:
    may = _tuition(await _generate(db_session, student, academic_year, school_class), "May")
    await installment_service.process_payment(
        db_session, may.id, _pay("500"), processed_by=ACCOUNTANT_ID, now=BEFORE_DUE
    )

    partial = await installment_service.apply_discount(
        db_session, may.id, DiscountApply(amount=Decimal("200"), reason="Sibling"), changed_by=ADMIN_ID, now=BEFORE_DUE
    )
    assert partial.balance == Decimal("800")
    assert partial.status == InstallmentStatus.PARTIAL

    # Absolute replace, not additive
    settled = await installment_service.apply_discount(
        db_session, may.id, DiscountApply(amount=Decimal("1000"), reason="Scholarship"), changed_by=ADMIN_ID, now=BEFORE_DUE
    )
    assert settled.discount == Decimal("1000")
    assert settled.discount_reason == "Scholarship"
    assert settled.balance == Decimal("0")
    assert settled.status == InstallmentStatus.PAID


async def test_late_discount_can_make_balance_negative(
    db_session, student, academic_year, school_class, fee_configuration
) -> None:
    june = _tuition(await _generate(db_session, student, academic_year, school_class), "June")
    await installment_service.process_payment(
        db_session, june.id, _pay("1500"), processed_by=ACCOUNTANT_ID, now=BEFORE_DUE
    )
    result = await installment_service.apply_discount(
        db_session, june.id, DiscountApply(amount=Decimal("300")), changed_by=ADMIN_ID, now=BEFORE_DUE
    )
    assert result.balance == Decimal("-300")
    assert result.status == InstallmentStatus.PAID


async def test_discount_above_amount_is_rejected(
    db_session, student, academic_year, school_class, fee_configuration
) -> None:
    may = _tuition(await _generate(db_session, student, academic_year, school_class), "May")
    with pytest.raises(FeeValidationError):
        await installment_service.apply_discount(
            db_session, may.id, DiscountApply(amount=Decimal("1500.01")), changed_by=ADMIN_ID
        )


async def test_skip_and_unskip(db_session, student, academic_year, school_class, fee_configuration) -> None:
    june = _tuition(await _generate(db_session, student, academic_year, school_class), "June")

    skipped = await installment_service.skip_installment(
        db_session, june.id, SkipRequest(reason="Medical leave"), changed_by=ADMIN_ID, now=AFTER_JUNE_DUE
    )
    assert skipped.status == InstallmentStatus.SKIPPED
    assert skipped.is_skipped is True
    assert skipped.skipped_reason == "Medical leave"
    assert skipped.skipped_date is not None

    # Still skipped after a repair pass, whatever the date
    await installment_service.repair_all(db_session, now=AFTER_JUNE_DUE)
    assert (await installment_service.get_installment(db_session, june.id)).status == InstallmentStatus.SKIPPED

    restored = await installment_service.unskip_installment(
        db_session, june.id, changed_by=ADMIN_ID, now=AFTER_JUNE_DUE
    )
    assert restored.is_skipped is False
    assert restored.skipped_reason is None
    assert restored.status == InstallmentStatus.OVERDUE


async def test_repair_all_fixes_drifted_rows(
    db_session, student, academic_year, school_class, fee_configuration
) -> None:
    installments = await _generate(db_session, student, academic_year, school_class)
    april = await db_session.get(FeeInstallment, _tuition(installments, "April").id)
    april.balance = Decimal("999")
    april.status = InstallmentStatus.PAID.value
    await db_session.commit()

    result = await installment_service.repair_all(db_session, now=BEFORE_DUE)
    assert result.updated_count == 13
    assert result.changed_count == 1
    assert result.failed_count == 0
    assert result.message == "Fixed 13 fee installments"

    fixed = await installment_service.get_installment(db_session, april.id)
    assert fixed.balance == Decimal("1500")
    assert fixed.status == InstallmentStatus.PENDING


async def test_repair_all_marks_past_due_rows_overdue(
    db_session, student, academic_year, school_class, fee_configuration
) -> None:
    await _generate(db_session, student, academic_year, school_class)
    result = await installment_service.repair_all(db_session, now=AFTER_JUNE_DUE)
    # April, May and June tuition plus the First Term exam due on the start date
    assert result.changed_count == 4
    overdue = await installment_service.list_installments(
        db_session, student_id=student.id, status_filter=InstallmentStatus.OVERDUE.value
    )
    assert len(overdue) == 4


async def test_stale_write_is_rejected(db_session, student, academic_year, school_class, fee_configuration) -> None:
    april = _tuition(await _generate(db_session, student, academic_year, school_class), "April")
    april_id = april.id

    # A concurrent writer bumps the version behind this session's back
    await db_session.execute(
        update(FeeInstallment.__table__)
        .where(FeeInstallment.__table__.c.id == april_id)
        .values(paid_amount=Decimal("700"), version=FeeInstallment.__table__.c.version + 1)
    )

    with pytest.raises(ConcurrentModificationError):
        await installment_service.process_payment(
            db_session, april_id, _pay("500"), processed_by=ACCOUNTANT_ID, now=BEFORE_DUE
        )

    db_session.expire_all()
    stored = await installment_service.get_installment(db_session, april_id)
    assert stored.paid_amount == Decimal("0")
    assert stored.version == 1


async def test_student_summary(db_session, student, academic_year, school_class, fee_configuration) -> None:
    installments = await _generate(db_session, student, academic_year, school_class)
    april = _tuition(installments, "April")
    await installment_service.process_payment(
        db_session, april.id, _pay("500"), processed_by=ACCOUNTANT_ID, now=BEFORE_DUE
    )

    summary = await installment_service.get_student_summary(db_session, student.id, academic_year_id=academic_year.id)
    assert summary.total == Decimal("18500")
    assert summary.paid == Decimal("500")
    # April is partial, so its balance counts in neither bucket
    assert summary.pending == Decimal("17000")
    assert summary.overdue == Decimal("0")
    assert len(summary.installments) == 13

    with pytest.raises(NotFoundError):
        await installment_service.get_student_summary(db_session, uuid.uuid4())


async def test_update_installment_rederives_status(
    db_session, student, academic_year, school_class, fee_configuration
) -> None:
    july = _tuition(await _generate(db_session, student, academic_year, school_class), "July")
    updated = await installment_service.update_installment(
        db_session,
        july.id,
        InstallmentUpdate(due_date=date(2024, 3, 10), remarks="Moved earlier"),
        changed_by=ADMIN_ID,
        now=BEFORE_DUE,
    )
    assert updated.due_date == date(2024, 3, 10)
    assert updated.remarks == "Moved earlier"
    assert updated.status == InstallmentStatus.OVERDUE

    with pytest.raises(FeeValidationError):
        await installment_service.update_installment(db_session, july.id, InstallmentUpdate(), changed_by=ADMIN_ID)


async def test_delete_installment(db_session, student, academic_year, school_class, fee_configuration) -> None:
    april = _tuition(await _generate(db_session, student, academic_year, school_class), "April")
    await installment_service.process_payment(
        db_session, april.id, _pay("100"), processed_by=ACCOUNTANT_ID, now=BEFORE_DUE
    )
    await installment_service.delete_installment(db_session, april.id, changed_by=ADMIN_ID)
    with pytest.raises(NotFoundError):
        await installment_service.get_installment(db_session, april.id)
    assert len(await installment_service.list_installments(db_session, student_id=student.id)) == 12


def test_sub_cent_amounts_fail_validation() -> None:
    with pytest.raises(ValidationError):
        _pay("1499.996")
    with pytest.raises(ValidationError):
        DiscountApply(amount=Decimal("10.001"))


async def test_stored_status_matches_stored_money(
    db_session, student, academic_year, school_class, fee_configuration
) -> None:
    """Amounts that skip schema validation are rounded to cents before status is derived."""
    april = _tuition(await _generate(db_session, student, academic_year, school_class), "April")
    unrounded = PaymentCreate.model_construct(
        amount=Decimal("1499.996"),
        payment_method=PaymentMethod.CASH,
        payment_date=None,
        transaction_id=None,
        receipt_number=None,
        remarks=None,
    )
    result = await installment_service.process_payment(
        db_session, april.id, unrounded, processed_by=ACCOUNTANT_ID, now=BEFORE_DUE
    )
    assert result.paid_amount == Decimal("1500.00")
    assert result.status == InstallmentStatus.PAID

    db_session.expire_all()
    stored = await db_session.get(FeeInstallment, april.id)
    balance = compute_balance(stored.amount, stored.discount, stored.paid_amount)
    assert stored.balance == balance
    assert stored.status == derive_status(
        stored.is_skipped, balance, stored.paid_amount, stored.due_date, BEFORE_DUE
    ).value
