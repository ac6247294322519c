"""Fee configuration schemas."""

from datetime import datetime
from decimal import Decimal
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, Field

from schoolfees.core.enums import FeeFrequency


class ExamFee(BaseModel):
    name: str = Field(..., min_length=1, max_length=100, description="e.g. First Term")
    amount: Decimal = Field(..., ge=0, decimal_places=2)


class OtherFee(BaseModel):
    name: str = Field(..., min_length=1, max_length=100, description="e.g. Library Fee")
    amount: Decimal = Field(..., ge=0, decimal_places=2)
    frequency: FeeFrequency = FeeFrequency.ONE_TIME


class FeeConfigurationCreate(BaseModel):
    academic_year_id: UUID
    class_id: UUID
    tuition_fee: Decimal = Field(Decimal("0"), ge=0, decimal_places=2, description="Monthly tuition amount")
    exam_fees: List[ExamFee] = Field(default_factory=list)
    other_fees: List[OtherFee] = Field(default_factory=list)
    is_active: bool = True


class FeeConfigurationUpdate(BaseModel):
    """Partial update. Lists replace the stored lists wholesale."""

    tuition_fee: Optional[Decimal] = Field(None, ge=0, decimal_places=2)
    exam_fees: Optional[List[ExamFee]] = None
    other_fees: Optional[List[OtherFee]] = None
    is_active: Optional[bool] = None


class FeeConfigurationResponse(BaseModel):
    id: UUID
    academic_year_id: UUID
    class_id: UUID
    tuition_fee: Decimal
    exam_fees: List[ExamFee]
    other_fees: List[OtherFee]
    is_active: bool
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class GenerationError(BaseModel):
    student_id: UUID
    message: str


class GenerateFeesResult(BaseModel):
    """Outcome of class-wide generation. Students with existing installments are skipped, not failed."""

    students_count: int
    processed_count: int
    skipped_count: int
    failed_count: int = 0
    installments_count: int
    errors: List[GenerationError] = Field(default_factory=list)
    message: str
