from datetime import date
from typing import List, Optional
from uuid import UUID

from fastapi import status
from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from schoolfees.core.exceptions import FeeValidationError, NotFoundError, ServiceError
from schoolfees.core.models import AcademicYear

from .schemas import AcademicYearCreate, AcademicYearResponse, AcademicYearUpdate


def _to_response(ay: AcademicYear) -> AcademicYearResponse:
    return AcademicYearResponse.model_validate(ay)


def _validate_dates(start_date: Optional[date], end_date: Optional[date]) -> None:
    if start_date and end_date and end_date <= start_date:
        raise FeeValidationError("end_date must be after start_date")


async def _get_or_404(db: AsyncSession, academic_year_id: UUID) -> AcademicYear:
    ay = await db.get(AcademicYear, academic_year_id)
    if not ay:
        raise NotFoundError("Academic year not found")
    return ay


async def create_academic_year(db: AsyncSession, payload: AcademicYearCreate) -> AcademicYearResponse:
    """Create academic year. If is_active=true, deactivate every other year in the same transaction."""
    _validate_dates(payload.start_date, payload.end_date)
    existing = await db.execute(select(AcademicYear.id).where(AcademicYear.name == payload.name.strip()))
    if existing.scalar_one_or_none():
        raise ServiceError(
            f"Academic year with name '{payload.name}' already exists",
            status.HTTP_409_CONFLICT,
        )
    if payload.is_active:
        await db.execute(update(AcademicYear).values(is_active=False))
    ay = AcademicYear(
        name=payload.name.strip(),
        start_date=payload.start_date,
        end_date=payload.end_date,
        is_active=payload.is_active,
        promotion_done=False,
    )
    db.add(ay)
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise ServiceError("Academic year name conflict", status.HTTP_409_CONFLICT)
    await db.refresh(ay)
    return _to_response(ay)


async def list_academic_years(db: AsyncSession) -> List[AcademicYearResponse]:
    result = await db.execute(select(AcademicYear).order_by(AcademicYear.start_date.desc()))
    return [_to_response(ay) for ay in result.scalars().all()]


async def get_academic_year(db: AsyncSession, academic_year_id: UUID) -> AcademicYearResponse:
    return _to_response(await _get_or_404(db, academic_year_id))


async def get_active_academic_year(db: AsyncSession) -> AcademicYearResponse:
    result = await db.execute(select(AcademicYear).where(AcademicYear.is_active.is_(True)))
    ay = result.scalars().first()
    if not ay:
        raise NotFoundError("No active academic year found")
    return _to_response(ay)


async def update_academic_year(
    db: AsyncSession,
    academic_year_id: UUID,
    payload: AcademicYearUpdate,
) -> AcademicYearResponse:
    """Update academic year fields. Already generated installments keep their due dates."""
    ay = await _get_or_404(db, academic_year_id)
    if payload.name is not None:
        other = await db.execute(
            select(AcademicYear.id).where(
                AcademicYear.name == payload.name.strip(),
                AcademicYear.id != academic_year_id,
            )
        )
        if other.scalar_one_or_none():
            raise ServiceError(
                f"Academic year with name '{payload.name}' already exists",
                status.HTTP_409_CONFLICT,
            )
        ay.name = payload.name.strip()
    if payload.start_date is not None:
        ay.start_date = payload.start_date
    if payload.end_date is not None:
        ay.end_date = payload.end_date
    _validate_dates(ay.start_date, ay.end_date)
    if payload.promotion_done is not None:
        ay.promotion_done = payload.promotion_done
    await db.commit()
    await db.refresh(ay)
    return _to_response(ay)


async def set_active_academic_year(db: AsyncSession, academic_year_id: UUID) -> AcademicYearResponse:
    """Mark this year active. All other years become inactive in the same transaction."""
    ay = await _get_or_404(db, academic_year_id)
    await db.execute(
        update(AcademicYear).where(AcademicYear.id != academic_year_id).values(is_active=False)
    )
    ay.is_active = True
    await db.commit()
    await db.refresh(ay)
    return _to_response(ay)


async def delete_academic_year(db: AsyncSession, academic_year_id: UUID) -> None:
    ay = await _get_or_404(db, academic_year_id)
    await db.delete(ay)
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise ServiceError(
            "Academic year is referenced by classes or fee records and cannot be deleted",
            status.HTTP_409_CONFLICT,
        )
