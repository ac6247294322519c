"""Fee configurations router: admin CRUD plus class-wide installment generation."""

from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from schoolfees.auth.dependencies import get_current_user
from schoolfees.auth.rbac import require_roles
from schoolfees.auth.schemas import CurrentUser
from schoolfees.core.exceptions import ServiceError
from schoolfees.db.session import get_db

from .schemas import (
    FeeConfigurationCreate,
    FeeConfigurationResponse,
    FeeConfigurationUpdate,
    GenerateFeesResult,
)
from . import service

router = APIRouter(prefix="/api/v1/fee-configurations", tags=["fee-configurations"])


@router.post("", response_model=FeeConfigurationResponse, status_code=status.HTTP_201_CREATED)
async def create_configuration(
    payload: FeeConfigurationCreate,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_roles("admin")),
) -> FeeConfigurationResponse:
    try:
        return await service.create_configuration(db, payload, changed_by=current_user.id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get(
    "",
    response_model=List[FeeConfigurationResponse],
    dependencies=[Depends(get_current_user)],
)
async def list_configurations(
    academic_year_id: Optional[UUID] = Query(None),
    class_id: Optional[UUID] = Query(None),
    db: AsyncSession = Depends(get_db),
) -> List[FeeConfigurationResponse]:
    return await service.list_configurations(db, academic_year_id=academic_year_id, class_id=class_id)


@router.get(
    "/{configuration_id}",
    response_model=FeeConfigurationResponse,
    dependencies=[Depends(get_current_user)],
)
async def get_configuration(
    configuration_id: UUID,
    db: AsyncSession = Depends(get_db),
) -> FeeConfigurationResponse:
    try:
        return await service.get_configuration(db, configuration_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.put("/{configuration_id}", response_model=FeeConfigurationResponse)
async def update_configuration(
    configuration_id: UUID,
    payload: FeeConfigurationUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_roles("admin")),
) -> FeeConfigurationResponse:
    try:
        return await service.update_configuration(db, configuration_id, payload, changed_by=current_user.id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.delete("/{configuration_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_configuration(
    configuration_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_roles("admin")),
) -> None:
    try:
        await service.delete_configuration(db, configuration_id, changed_by=current_user.id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.post("/{configuration_id}/generate-fees", response_model=GenerateFeesResult)
async def generate_fees(
    configuration_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_roles("admin")),
) -> GenerateFeesResult:
    """Generate installments for every active student in the configuration's class."""
    try:
        return await service.generate_for_class(db, configuration_id, changed_by=current_user.id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
