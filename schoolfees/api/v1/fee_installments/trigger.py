"""
Auto-generate fee installments when a student is created or enrolled.

Never raises: a missing configuration, a bad academic year start date, a malformed
configuration entry or a failed insert is logged and the student operation that called us still succeeds.
"""

import logging
from datetime import date
from typing import Optional
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from schoolfees.core.exceptions import ConfigurationMissingError, ServiceError

from .generation import (
    configuration_start_date,
    find_configuration,
    insert_installments_for_student,
    installments_exist,
)

logger = logging.getLogger(__name__)


async def auto_generate_fees(
    db: AsyncSession,
    student_id: UUID,
    academic_year_id: Optional[UUID],
    class_id: Optional[UUID],
    today: Optional[date] = None,
) -> int:
    """Returns the number of installments created (0 when generation was skipped or failed)."""
    if academic_year_id is None or class_id is None:
        logger.info("Student %s has no class or academic year yet, skipping fee auto-generation", student_id)
        return 0
    try:
        if await installments_exist(db, student_id, academic_year_id, class_id):
            logger.info("Fees already exist for student %s, skipping auto-generation", student_id)
            return 0
        configuration = await find_configuration(db, academic_year_id, class_id)
        start_date = await configuration_start_date(db, configuration)
        created = await insert_installments_for_student(db, configuration, start_date, student_id, today=today)
        return len(created)
    except ConfigurationMissingError:
        logger.info(
            "No fee configuration for academic year %s and class %s, skipping auto-generation for student %s",
            academic_year_id,
            class_id,
            student_id,
        )
    except ServiceError as e:
        logger.warning("Fee auto-generation skipped for student %s: %s", student_id, e.message)
    except Exception:
        # Caller has already committed; leave the session usable for it
        await db.rollback()
        logger.exception("Fee auto-generation failed for student %s", student_id)
    return 0
