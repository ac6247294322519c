"""Fee configuration service: per class / academic year fee templates and class-wide installment generation."""

import logging
from datetime import date
from typing import List, Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from schoolfees.api.v1.fee_installments.generation import (
    configuration_start_date,
    insert_installments_for_student,
    installments_exist,
)
from schoolfees.api.v1.students.service import list_active_students_in_class
from schoolfees.core.exceptions import DuplicateConfigurationError, NotFoundError, ServiceError
from schoolfees.core.models import AcademicYear, FeeAuditLog, FeeConfiguration, SchoolClass

from .schemas import (
    ExamFee,
    FeeConfigurationCreate,
    FeeConfigurationResponse,
    FeeConfigurationUpdate,
    GenerateFeesResult,
    GenerationError,
    OtherFee,
)

logger = logging.getLogger(__name__)


def _exam_fees_to_json(items: List[ExamFee]) -> list:
    return [{"name": e.name.strip(), "amount": str(e.amount)} for e in items]


def _other_fees_to_json(items: List[OtherFee]) -> list:
    return [
        {"name": f.name.strip(), "amount": str(f.amount), "frequency": f.frequency.value}
        for f in items
    ]


def _to_response(cfg: FeeConfiguration) -> FeeConfigurationResponse:
    return FeeConfigurationResponse.model_validate(cfg)


async def _get_or_404(db: AsyncSession, configuration_id: UUID) -> FeeConfiguration:
    cfg = await db.get(FeeConfiguration, configuration_id)
    if not cfg:
        raise NotFoundError("Fee configuration not found")
    return cfg


async def create_configuration(
    db: AsyncSession,
    payload: FeeConfigurationCreate,
    changed_by: Optional[UUID] = None,
) -> FeeConfigurationResponse:
    """One configuration per (academic year, class); a second one is a DuplicateConfigurationError."""
    if not await db.get(AcademicYear, payload.academic_year_id):
        raise NotFoundError("Academic year not found")
    if not await db.get(SchoolClass, payload.class_id):
        raise NotFoundError("Class not found")
    existing = await db.execute(
        select(FeeConfiguration.id).where(
            FeeConfiguration.academic_year_id == payload.academic_year_id,
            FeeConfiguration.class_id == payload.class_id,
        )
    )
    if existing.scalar_one_or_none():
        raise DuplicateConfigurationError()

    cfg = FeeConfiguration(
        academic_year_id=payload.academic_year_id,
        class_id=payload.class_id,
        tuition_fee=payload.tuition_fee,
        exam_fees=_exam_fees_to_json(payload.exam_fees),
        other_fees=_other_fees_to_json(payload.other_fees),
        is_active=payload.is_active,
    )
    db.add(cfg)
    try:
        await db.flush()
        db.add(
            FeeAuditLog(
                reference_table="fee_configurations",
                reference_id=cfg.id,
                action_type="CREATE",
                old_value=None,
                new_value={
                    "tuition_fee": str(payload.tuition_fee),
                    "exam_fees": cfg.exam_fees,
                    "other_fees": cfg.other_fees,
                },
                changed_by=changed_by,
            )
        )
        await db.commit()
    except IntegrityError:
        # Lost the race against a concurrent create for the same pair
        await db.rollback()
        raise DuplicateConfigurationError()
    await db.refresh(cfg)
    return _to_response(cfg)


async def list_configurations(
    db: AsyncSession,
    academic_year_id: Optional[UUID] = None,
    class_id: Optional[UUID] = None,
) -> List[FeeConfigurationResponse]:
    stmt = select(FeeConfiguration)
    if academic_year_id is not None:
        stmt = stmt.where(FeeConfiguration.academic_year_id == academic_year_id)
    if class_id is not None:
        stmt = stmt.where(FeeConfiguration.class_id == class_id)
    stmt = stmt.order_by(FeeConfiguration.created_at.desc())
    result = await db.execute(stmt)
    return [_to_response(c) for c in result.scalars().all()]


async def get_configuration(db: AsyncSession, configuration_id: UUID) -> FeeConfigurationResponse:
    return _to_response(await _get_or_404(db, configuration_id))


async def update_configuration(
    db: AsyncSession,
    configuration_id: UUID,
    payload: FeeConfigurationUpdate,
    changed_by: Optional[UUID] = None,
) -> FeeConfigurationResponse:
    """Edits apply to future generation only; existing installments are untouched."""
    cfg = await _get_or_404(db, configuration_id)
    old = {"tuition_fee": str(cfg.tuition_fee), "exam_fees": cfg.exam_fees, "other_fees": cfg.other_fees}
    if payload.tuition_fee is not None:
        cfg.tuition_fee = payload.tuition_fee
    if payload.exam_fees is not None:
        cfg.exam_fees = _exam_fees_to_json(payload.exam_fees)
    if payload.other_fees is not None:
        cfg.other_fees = _other_fees_to_json(payload.other_fees)
    if payload.is_active is not None:
        cfg.is_active = payload.is_active
    db.add(
        FeeAuditLog(
            reference_table="fee_configurations",
            reference_id=cfg.id,
            action_type="UPDATE",
            old_value=old,
            new_value={"tuition_fee": str(cfg.tuition_fee), "exam_fees": cfg.exam_fees, "other_fees": cfg.other_fees},
            changed_by=changed_by,
        )
    )
    await db.commit()
    await db.refresh(cfg)
    return _to_response(cfg)


async def delete_configuration(
    db: AsyncSession,
    configuration_id: UUID,
    changed_by: Optional[UUID] = None,
) -> None:
    """Generated installments hold no reference to the configuration and survive the delete."""
    cfg = await _get_or_404(db, configuration_id)
    db.add(
        FeeAuditLog(
            reference_table="fee_configurations",
            reference_id=cfg.id,
            action_type="DELETE",
            old_value={"tuition_fee": str(cfg.tuition_fee), "exam_fees": cfg.exam_fees, "other_fees": cfg.other_fees},
            new_value=None,
            changed_by=changed_by,
        )
    )
    await db.delete(cfg)
    await db.commit()


async def generate_for_class(
    db: AsyncSession,
    configuration_id: UUID,
    changed_by: Optional[UUID] = None,
    today: Optional[date] = None,
) -> GenerateFeesResult:
    """
    Generate installments for every active student of the configuration's class and year.
    Students that already have installments are counted as skipped. Each student is its own
    transaction: a failure is recorded in errors and the loop moves on.
    """
    cfg = await _get_or_404(db, configuration_id)
    start_date = await configuration_start_date(db, cfg)
    configuration_id = cfg.id
    academic_year_id = cfg.academic_year_id
    class_id = cfg.class_id

    students = await list_active_students_in_class(db, class_id, academic_year_id)
    if not students:
        return GenerateFeesResult(
            students_count=0,
            processed_count=0,
            skipped_count=0,
            installments_count=0,
            message="No active students found in this class",
        )

    student_ids = [s.id for s in students]
    processed = 0
    skipped = 0
    installments_count = 0
    errors: List[GenerationError] = []
    for student_id in student_ids:
        try:
            if await installments_exist(db, student_id, academic_year_id, class_id):
                logger.info("Fees already exist for student %s, skipping", student_id)
                skipped += 1
                continue
            # The previous student's rollback may have expired the configuration
            cfg = await db.get(FeeConfiguration, configuration_id)
            created = await insert_installments_for_student(
                db, cfg, start_date, student_id, changed_by=changed_by, today=today
            )
        except ServiceError as e:
            message = e.message
            logger.error("Fee generation failed for student %s: %s", student_id, message)
            errors.append(GenerationError(student_id=student_id, message=message))
            continue
        except Exception as e:
            await db.rollback()
            message = str(e) or type(e).__name__
            logger.exception("Fee generation failed for student %s", student_id)
            errors.append(GenerationError(student_id=student_id, message=message))
            continue
        processed += 1
        installments_count += len(created)

    message = f"Generated {installments_count} fee installments for {processed} students"
    if skipped:
        message += f". Skipped {skipped} students (fees already exist)"
    if errors:
        message += f". Failed for {len(errors)} students"
    return GenerateFeesResult(
        students_count=len(student_ids),
        processed_count=processed,
        skipped_count=skipped,
        failed_count=len(errors),
        installments_count=installments_count,
        errors=errors,
        message=message + ".",
    )
