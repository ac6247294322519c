"""Fee installment schemas."""

from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, Field

from schoolfees.core.enums import FeeType, InstallmentStatus, PaymentMethod


class InstallmentResponse(BaseModel):
    id: UUID
    student_id: UUID
    academic_year_id: UUID
    class_id: UUID
    fee_type: FeeType
    fee_name: str
    month: Optional[str] = None
    term: Optional[str] = None
    amount: Decimal
    discount: Decimal
    discount_reason: Optional[str] = None
    paid_amount: Decimal
    balance: Decimal
    due_date: date
    status: InstallmentStatus
    is_skipped: bool
    skipped_reason: Optional[str] = None
    skipped_date: Optional[datetime] = None
    payment_method: Optional[str] = None
    payment_date: Optional[datetime] = None
    transaction_id: Optional[str] = None
    receipt_number: Optional[str] = None
    receipt_image: Optional[str] = None
    processed_by: Optional[UUID] = None
    remarks: Optional[str] = None
    version: int
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


# --- Generation ---
class GenerateForStudentRequest(BaseModel):
    student_id: UUID
    academic_year_id: UUID
    class_id: UUID


# --- Ledger mutations ---
class PaymentCreate(BaseModel):
    amount: Decimal = Field(..., gt=0, decimal_places=2)
    payment_method: PaymentMethod
    payment_date: Optional[datetime] = None
    transaction_id: Optional[str] = Field(None, max_length=100)
    receipt_number: Optional[str] = Field(None, max_length=100)
    remarks: Optional[str] = None


class DiscountApply(BaseModel):
    amount: Decimal = Field(..., ge=0, decimal_places=2, description="Absolute discount; replaces any previous discount")
    reason: Optional[str] = None


class SkipRequest(BaseModel):
    reason: Optional[str] = None


class InstallmentUpdate(BaseModel):
    """Admin edit of descriptive fields. amount, payments, discount and skip state have dedicated operations."""

    fee_name: Optional[str] = Field(None, min_length=1, max_length=255)
    term: Optional[str] = Field(None, max_length=100)
    due_date: Optional[date] = None
    remarks: Optional[str] = None
    receipt_number: Optional[str] = Field(None, max_length=100)


class InstallmentPaymentResponse(BaseModel):
    id: UUID
    installment_id: UUID
    student_id: UUID
    amount: Decimal
    payment_method: str
    payment_date: datetime
    transaction_id: Optional[str] = None
    receipt_number: Optional[str] = None
    receipt_image: Optional[str] = None
    remarks: Optional[str] = None
    processed_by: Optional[UUID] = None
    created_at: datetime

    class Config:
        from_attributes = True


# --- Reports ---
class StudentFeeSummary(BaseModel):
    student_id: UUID
    academic_year_id: Optional[UUID] = None
    total: Decimal
    paid: Decimal
    pending: Decimal
    overdue: Decimal
    installments: List[InstallmentResponse]


class RepairError(BaseModel):
    installment_id: UUID
    message: str


class RepairResult(BaseModel):
    updated_count: int
    changed_count: int
    failed_count: int
    errors: List[RepairError] = Field(default_factory=list)
    message: str
