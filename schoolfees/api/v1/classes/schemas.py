from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field


class ClassCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=50, description="e.g. Class 5")
    section: str = Field(..., min_length=1, max_length=10, description="e.g. A")
    grade: Optional[int] = Field(None, ge=1, le=12)
    academic_year_id: UUID
    capacity: int = Field(40, ge=1)


class ClassResponse(BaseModel):
    id: UUID
    name: str
    section: str
    grade: Optional[int] = None
    academic_year_id: UUID
    capacity: int
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True
