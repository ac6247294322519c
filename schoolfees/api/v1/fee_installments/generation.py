"""Persistence side of installment generation: lookups, duplicate check and the per-student batch insert."""

import logging
from datetime import date, datetime, timezone
from typing import List, Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from schoolfees.core.exceptions import ConfigurationMissingError
from schoolfees.core.fees.generator import build_installment_rows, resolve_start_date
from schoolfees.core.models import AcademicYear, FeeAuditLog, FeeConfiguration, FeeInstallment

logger = logging.getLogger(__name__)


async def installments_exist(
    db: AsyncSession,
    student_id: UUID,
    academic_year_id: UUID,
    class_id: UUID,
) -> bool:
    """True when the student already has any installment for this year and class."""
    result = await db.execute(
        select(FeeInstallment.id)
        .where(
            FeeInstallment.student_id == student_id,
            FeeInstallment.academic_year_id == academic_year_id,
            FeeInstallment.class_id == class_id,
        )
        .limit(1)
    )
    return result.scalar_one_or_none() is not None


async def find_configuration(
    db: AsyncSession,
    academic_year_id: UUID,
    class_id: UUID,
) -> FeeConfiguration:
    result = await db.execute(
        select(FeeConfiguration).where(
            FeeConfiguration.academic_year_id == academic_year_id,
            FeeConfiguration.class_id == class_id,
        )
    )
    configuration = result.scalar_one_or_none()
    if not configuration:
        raise ConfigurationMissingError()
    return configuration


async def configuration_start_date(db: AsyncSession, configuration: FeeConfiguration) -> date:
    """Start date of the configuration's academic year. Raises InvalidStartDateError when missing or unparseable."""
    ay = await db.get(AcademicYear, configuration.academic_year_id)
    return resolve_start_date(ay.start_date if ay else None)


async def insert_installments_for_student(
    db: AsyncSession,
    configuration: FeeConfiguration,
    start_date: date,
    student_id: UUID,
    changed_by: Optional[UUID] = None,
    today: Optional[date] = None,
) -> List[FeeInstallment]:
    """
    Build and insert every installment for one student in a single commit.
    On failure the transaction is rolled back, so no fee type is left half generated.
    """
    if today is None:
        today = datetime.now(timezone.utc).date()
    rows = build_installment_rows(
        configuration.tuition_fee,
        configuration.exam_fees,
        configuration.other_fees,
        start_date,
        student_id=student_id,
        academic_year_id=configuration.academic_year_id,
        class_id=configuration.class_id,
        today=today,
    )
    installments = [FeeInstallment(**row) for row in rows]
    db.add_all(installments)
    db.add(
        FeeAuditLog(
            reference_table="students",
            reference_id=student_id,
            action_type="GENERATE",
            old_value=None,
            new_value={
                "fee_configuration_id": str(configuration.id),
                "academic_year_id": str(configuration.academic_year_id),
                "class_id": str(configuration.class_id),
                "installments_count": len(installments),
                "total_amount": str(sum((i.amount for i in installments), 0)),
            },
            changed_by=changed_by,
        )
    )
    try:
        await db.commit()
    except SQLAlchemyError:
        await db.rollback()
        raise
    logger.info(
        "Generated %d fee installments for student %s (academic year %s, class %s)",
        len(installments),
        student_id,
        configuration.academic_year_id,
        configuration.class_id,
    )
    return installments
