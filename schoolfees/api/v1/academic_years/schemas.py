from datetime import date, datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field


class AcademicYearCreate(BaseModel):
    """Create academic year. name must be unique."""

    name: str = Field(..., min_length=1, max_length=50, description="e.g. 2024-2025")
    start_date: date = Field(..., description="Academic year start date; anchors fee due dates")
    end_date: date = Field(..., description="Academic year end date (must be after start_date)")
    is_active: bool = Field(False, description="Make this the active year; all others are deactivated")


class AcademicYearUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=50)
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    promotion_done: Optional[bool] = None


class AcademicYearResponse(BaseModel):
    id: UUID
    name: str
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    is_active: bool
    promotion_done: bool
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True
