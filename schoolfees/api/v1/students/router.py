from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from schoolfees.auth.dependencies import get_current_user
from schoolfees.auth.rbac import require_roles
from schoolfees.core.enums import StudentStatus
from schoolfees.core.exceptions import ServiceError
from schoolfees.db.session import get_db

from .schemas import StudentCreate, StudentEnroll, StudentResponse, StudentWithFees
from . import service

router = APIRouter(prefix="/api/v1/students", tags=["students"])


@router.post(
    "",
    response_model=StudentWithFees,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_roles("admin"))],
)
async def create_student(
    payload: StudentCreate,
    db: AsyncSession = Depends(get_db),
) -> StudentWithFees:
    try:
        return await service.create_student(db, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get(
    "",
    response_model=List[StudentResponse],
    dependencies=[Depends(get_current_user)],
)
async def list_students(
    academic_year_id: Optional[UUID] = Query(None),
    class_id: Optional[UUID] = Query(None),
    student_status: Optional[StudentStatus] = Query(None, alias="status"),
    search: Optional[str] = Query(None, max_length=100),
    db: AsyncSession = Depends(get_db),
) -> List[StudentResponse]:
    return await service.list_students(
        db,
        academic_year_id=academic_year_id,
        class_id=class_id,
        status_filter=student_status.value if student_status else None,
        search=search,
    )


@router.get(
    "/{student_id}",
    response_model=StudentResponse,
    dependencies=[Depends(get_current_user)],
)
async def get_student(
    student_id: UUID,
    db: AsyncSession = Depends(get_db),
) -> StudentResponse:
    try:
        return await service.get_student(db, student_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.post(
    "/{student_id}/enroll",
    response_model=StudentWithFees,
    dependencies=[Depends(require_roles("admin"))],
)
async def enroll_student(
    student_id: UUID,
    payload: StudentEnroll,
    db: AsyncSession = Depends(get_db),
) -> StudentWithFees:
    try:
        return await service.enroll_student(db, student_id, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
