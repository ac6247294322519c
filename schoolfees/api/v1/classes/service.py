from typing import List, Optional
from uuid import UUID

from fastapi import status
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from schoolfees.core.exceptions import NotFoundError, ServiceError
from schoolfees.core.models import AcademicYear, SchoolClass

from .schemas import ClassCreate, ClassResponse


async def create_class(db: AsyncSession, payload: ClassCreate) -> ClassResponse:
    if not await db.get(AcademicYear, payload.academic_year_id):
        raise NotFoundError("Academic year not found")
    cl = SchoolClass(
        name=payload.name.strip(),
        section=payload.section.strip().upper(),
        grade=payload.grade,
        academic_year_id=payload.academic_year_id,
        capacity=payload.capacity,
    )
    db.add(cl)
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise ServiceError(
            "Class with this name and section already exists for the academic year",
            status.HTTP_409_CONFLICT,
        )
    await db.refresh(cl)
    return ClassResponse.model_validate(cl)


async def list_classes(db: AsyncSession, academic_year_id: Optional[UUID] = None) -> List[ClassResponse]:
    stmt = select(SchoolClass)
    if academic_year_id is not None:
        stmt = stmt.where(SchoolClass.academic_year_id == academic_year_id)
    stmt = stmt.order_by(SchoolClass.grade.nullslast(), SchoolClass.name, SchoolClass.section)
    result = await db.execute(stmt)
    return [ClassResponse.model_validate(c) for c in result.scalars().all()]


async def get_class(db: AsyncSession, class_id: UUID) -> ClassResponse:
    cl = await db.get(SchoolClass, class_id)
    if not cl:
        raise NotFoundError("Class not found")
    return ClassResponse.model_validate(cl)
