from datetime import date, datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field

from schoolfees.core.enums import StudentStatus


class StudentCreate(BaseModel):
    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)
    date_of_birth: Optional[date] = None
    gender: Optional[str] = Field(None, max_length=10)
    email: Optional[str] = Field(None, max_length=255)
    phone: Optional[str] = Field(None, max_length=50)
    admission_date: Optional[date] = None
    current_class_id: Optional[UUID] = None
    current_academic_year_id: Optional[UUID] = None
    current_roll_number: Optional[str] = Field(None, max_length=20)


class StudentEnroll(BaseModel):
    academic_year_id: UUID
    class_id: UUID
    roll_number: Optional[str] = Field(None, max_length=20)


class StudentResponse(BaseModel):
    id: UUID
    admission_number: str
    first_name: str
    last_name: str
    full_name: str
    date_of_birth: Optional[date] = None
    gender: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    admission_date: date
    current_class_id: Optional[UUID] = None
    current_academic_year_id: Optional[UUID] = None
    current_roll_number: Optional[str] = None
    status: StudentStatus
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class StudentWithFees(StudentResponse):
    """Student plus the number of fee installments generated by this request."""

    installments_generated: int = 0
