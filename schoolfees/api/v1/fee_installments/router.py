"""Fee installments router: listing, summary, generation, payment, discount, skip, repair."""

from datetime import datetime
from decimal import Decimal
from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, UploadFile, status
from sqlalchemy.ext.asyncio import AsyncSession

from schoolfees.auth.dependencies import get_current_user
from schoolfees.auth.rbac import require_roles
from schoolfees.auth.schemas import CurrentUser
from schoolfees.core.enums import FeeType, InstallmentStatus, PaymentMethod
from schoolfees.core.exceptions import ServiceError
from schoolfees.core.storage import discard_receipt, save_receipt
from schoolfees.db.session import get_db

from .schemas import (
    DiscountApply,
    GenerateForStudentRequest,
    InstallmentPaymentResponse,
    InstallmentResponse,
    InstallmentUpdate,
    PaymentCreate,
    RepairResult,
    SkipRequest,
    StudentFeeSummary,
)
from . import service

router = APIRouter(prefix="/api/v1/fee-installments", tags=["fee-installments"])


@router.get(
    "",
    response_model=List[InstallmentResponse],
    dependencies=[Depends(get_current_user)],
)
async def list_installments(
    student_id: Optional[UUID] = Query(None),
    academic_year_id: Optional[UUID] = Query(None),
    class_id: Optional[UUID] = Query(None),
    fee_type: Optional[FeeType] = Query(None),
    fee_status: Optional[InstallmentStatus] = Query(None, alias="status"),
    month: Optional[str] = Query(None),
    db: AsyncSession = Depends(get_db),
) -> List[InstallmentResponse]:
    return await service.list_installments(
        db,
        student_id=student_id,
        academic_year_id=academic_year_id,
        class_id=class_id,
        fee_type=fee_type.value if fee_type else None,
        status_filter=fee_status.value if fee_status else None,
        month=month,
    )


@router.post("/fix-existing", response_model=RepairResult)
async def repair_all_installments(
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_roles("admin")),
) -> RepairResult:
    """Recompute balance and status of every installment."""
    return await service.repair_all(db)


@router.post(
    "/generate-for-student",
    response_model=List[InstallmentResponse],
    status_code=status.HTTP_201_CREATED,
)
async def generate_for_student(
    payload: GenerateForStudentRequest,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_roles("admin")),
) -> List[InstallmentResponse]:
    try:
        return await service.generate_for_student(db, payload, changed_by=current_user.id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get(
    "/student/{student_id}/summary",
    response_model=StudentFeeSummary,
    dependencies=[Depends(get_current_user)],
)
async def get_student_summary(
    student_id: UUID,
    academic_year_id: Optional[UUID] = Query(None),
    db: AsyncSession = Depends(get_db),
) -> StudentFeeSummary:
    try:
        return await service.get_student_summary(db, student_id, academic_year_id=academic_year_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get(
    "/{installment_id}",
    response_model=InstallmentResponse,
    dependencies=[Depends(get_current_user)],
)
async def get_installment(
    installment_id: UUID,
    db: AsyncSession = Depends(get_db),
) -> InstallmentResponse:
    try:
        return await service.get_installment(db, installment_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get(
    "/{installment_id}/payments",
    response_model=List[InstallmentPaymentResponse],
    dependencies=[Depends(get_current_user)],
)
async def list_payments(
    installment_id: UUID,
    db: AsyncSession = Depends(get_db),
) -> List[InstallmentPaymentResponse]:
    try:
        return await service.list_payments(db, installment_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


# --- Payment ---
@router.post("/{installment_id}/payment", response_model=InstallmentResponse)
async def process_payment(
    installment_id: UUID,
    amount: Decimal = Form(..., gt=0, decimal_places=2),
    payment_method: PaymentMethod = Form(...),
    payment_date: Optional[datetime] = Form(None),
    transaction_id: Optional[str] = Form(None, max_length=100),
    receipt_number: Optional[str] = Form(None, max_length=100),
    remarks: Optional[str] = Form(None),
    receipt_image: Optional[UploadFile] = File(None),
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_roles("admin", "accountant")),
) -> InstallmentResponse:
    """Multipart form so a receipt image can travel with the payment."""
    payload = PaymentCreate(
        amount=amount,
        payment_method=payment_method,
        payment_date=payment_date,
        transaction_id=transaction_id,
        receipt_number=receipt_number,
        remarks=remarks,
    )
    try:
        receipt_path = await save_receipt(receipt_image)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    try:
        return await service.process_payment(
            db,
            installment_id,
            payload,
            processed_by=current_user.id,
            receipt_path=receipt_path,
        )
    except ServiceError as e:
        # Rejected or lost the version race: nothing references the file
        await discard_receipt(receipt_path)
        raise HTTPException(status_code=e.status_code, detail=e.message)
    except Exception:
        await discard_receipt(receipt_path)
        raise


# --- Discount / skip ---
@router.post("/{installment_id}/discount", response_model=InstallmentResponse)
async def apply_discount(
    installment_id: UUID,
    payload: DiscountApply,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_roles("admin")),
) -> InstallmentResponse:
    try:
        return await service.apply_discount(db, installment_id, payload, changed_by=current_user.id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.post("/{installment_id}/skip", response_model=InstallmentResponse)
async def skip_installment(
    installment_id: UUID,
    payload: SkipRequest,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_roles("admin")),
) -> InstallmentResponse:
    try:
        return await service.skip_installment(db, installment_id, payload, changed_by=current_user.id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.post("/{installment_id}/unskip", response_model=InstallmentResponse)
async def unskip_installment(
    installment_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_roles("admin")),
) -> InstallmentResponse:
    try:
        return await service.unskip_installment(db, installment_id, changed_by=current_user.id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


# --- Admin edit / delete ---
@router.put("/{installment_id}", response_model=InstallmentResponse)
async def update_installment(
    installment_id: UUID,
    payload: InstallmentUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_roles("admin")),
) -> InstallmentResponse:
    try:
        return await service.update_installment(db, installment_id, payload, changed_by=current_user.id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.delete("/{installment_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_installment(
    installment_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_roles("admin")),
) -> None:
    try:
        await service.delete_installment(db, installment_id, changed_by=current_user.id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
