"""
Students: creation with generated admission numbers, enrollment and the active-student
lookup used by class-wide fee generation. Creation and enrollment hand off to the fee
auto-generation trigger once the student row is committed.
"""

import logging
from datetime import date, datetime, timezone
from typing import List, Optional
from uuid import UUID

from fastapi import status
from sqlalchemy import or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from schoolfees.api.v1.fee_installments.trigger import auto_generate_fees
from schoolfees.core.enums import StudentStatus
from schoolfees.core.exceptions import FeeValidationError, NotFoundError, ServiceError
from schoolfees.core.models import AcademicYear, SchoolClass, Student

from .schemas import StudentCreate, StudentEnroll, StudentResponse, StudentWithFees

logger = logging.getLogger(__name__)

ADMISSION_PREFIX = "ADM"


async def _next_admission_number(db: AsyncSession, year: int) -> str:
    """ADM-<year>-<NNNN>, one more than the highest number issued this year."""
    prefix = f"{ADMISSION_PREFIX}-{year}-"
    result = await db.execute(
        select(Student.admission_number)
        .where(Student.admission_number.like(f"{prefix}%"))
        .order_by(Student.admission_number.desc())
        .limit(1)
    )
    last = result.scalar_one_or_none()
    next_number = 1
    if last:
        try:
            next_number = int(last.rsplit("-", 1)[1]) + 1
        except (IndexError, ValueError):
            logger.warning("Unparseable admission number %s, restarting sequence", last)
    return f"{prefix}{next_number:04d}"


async def _validate_enrollment(db: AsyncSession, academic_year_id: UUID, class_id: UUID) -> None:
    if not await db.get(AcademicYear, academic_year_id):
        raise NotFoundError("Academic year not found")
    cl = await db.get(SchoolClass, class_id)
    if not cl:
        raise NotFoundError("Class not found")
    if cl.academic_year_id != academic_year_id:
        raise FeeValidationError("Class does not belong to the given academic year")


async def create_student(
    db: AsyncSession,
    payload: StudentCreate,
    today: Optional[date] = None,
) -> StudentWithFees:
    if today is None:
        today = datetime.now(timezone.utc).date()
    if (payload.current_class_id is None) != (payload.current_academic_year_id is None):
        raise FeeValidationError("current_class_id and current_academic_year_id must be given together")
    if payload.current_class_id is not None:
        await _validate_enrollment(db, payload.current_academic_year_id, payload.current_class_id)

    student = Student(
        admission_number=await _next_admission_number(db, today.year),
        first_name=payload.first_name.strip(),
        last_name=payload.last_name.strip(),
        date_of_birth=payload.date_of_birth,
        gender=payload.gender,
        email=payload.email.strip().lower() if payload.email else None,
        phone=payload.phone,
        admission_date=payload.admission_date or today,
        current_class_id=payload.current_class_id,
        current_academic_year_id=payload.current_academic_year_id,
        current_roll_number=payload.current_roll_number,
        status=StudentStatus.ACTIVE.value,
    )
    db.add(student)
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise ServiceError("Student with this email or admission number already exists", status.HTTP_409_CONFLICT)
    await db.refresh(student)
    student_id = student.id
    logger.info("Created student %s (%s)", student_id, student.admission_number)

    generated = await auto_generate_fees(
        db,
        student_id,
        payload.current_academic_year_id,
        payload.current_class_id,
        today=today,
    )
    student = await db.get(Student, student_id)
    await db.refresh(student)
    out = StudentWithFees.model_validate(student)
    out.installments_generated = generated
    return out


async def list_students(
    db: AsyncSession,
    academic_year_id: Optional[UUID] = None,
    class_id: Optional[UUID] = None,
    status_filter: Optional[str] = None,
    search: Optional[str] = None,
) -> List[StudentResponse]:
    stmt = select(Student)
    if academic_year_id is not None:
        stmt = stmt.where(Student.current_academic_year_id == academic_year_id)
    if class_id is not None:
        stmt = stmt.where(Student.current_class_id == class_id)
    if status_filter:
        stmt = stmt.where(Student.status == status_filter)
    if search:
        term = f"%{search.strip()}%"
        stmt = stmt.where(
            or_(
                Student.first_name.ilike(term),
                Student.last_name.ilike(term),
                Student.admission_number.ilike(term),
            )
        )
    stmt = stmt.order_by(Student.created_at.desc())
    result = await db.execute(stmt)
    return [StudentResponse.model_validate(s) for s in result.scalars().all()]


async def get_student(db: AsyncSession, student_id: UUID) -> StudentResponse:
    student = await db.get(Student, student_id)
    if not student:
        raise NotFoundError("Student not found")
    return StudentResponse.model_validate(student)


async def enroll_student(
    db: AsyncSession,
    student_id: UUID,
    payload: StudentEnroll,
    today: Optional[date] = None,
) -> StudentWithFees:
    """Move the student to a class and academic year, then generate that year's fees."""
    student = await db.get(Student, student_id)
    if not student:
        raise NotFoundError("Student not found")
    await _validate_enrollment(db, payload.academic_year_id, payload.class_id)
    student.current_academic_year_id = payload.academic_year_id
    student.current_class_id = payload.class_id
    if payload.roll_number is not None:
        student.current_roll_number = payload.roll_number
    await db.commit()
    logger.info(
        "Enrolled student %s in class %s for academic year %s",
        student_id,
        payload.class_id,
        payload.academic_year_id,
    )

    generated = await auto_generate_fees(db, student_id, payload.academic_year_id, payload.class_id, today=today)
    student = await db.get(Student, student_id)
    await db.refresh(student)
    out = StudentWithFees.model_validate(student)
    out.installments_generated = generated
    return out


async def list_active_students_in_class(
    db: AsyncSession,
    class_id: UUID,
    academic_year_id: UUID,
) -> List[Student]:
    result = await db.execute(
        select(Student)
        .where(
            Student.current_class_id == class_id,
            Student.current_academic_year_id == academic_year_id,
            Student.status == StudentStatus.ACTIVE.value,
        )
        .order_by(Student.admission_number)
    )
    return list(result.scalars().all())
