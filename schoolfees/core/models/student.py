import uuid
from datetime import datetime

from sqlalchemy import Column, Date, DateTime, ForeignKey, String, Uuid
from sqlalchemy.orm import relationship

from schoolfees.core.enums import StudentStatus
from schoolfees.db.session import Base


class Student(Base):
    """Student record. current_class_id / current_academic_year_id are the active enrollment."""

    __tablename__ = "students"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    admission_number = Column(String(30), nullable=False, unique=True)  # ADM-2024-0001
    first_name = Column(String(100), nullable=False)
    last_name = Column(String(100), nullable=False)
    date_of_birth = Column(Date, nullable=True)
    gender = Column(String(10), nullable=True)
    email = Column(String(255), nullable=True, unique=True)
    phone = Column(String(50), nullable=True)
    admission_date = Column(Date, nullable=False)
    current_class_id = Column(Uuid, ForeignKey("classes.id", ondelete="SET NULL"), nullable=True, index=True)
    current_academic_year_id = Column(
        Uuid,
        ForeignKey("academic_years.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    current_roll_number = Column(String(20), nullable=True)
    status = Column(String(20), nullable=False, default=StudentStatus.ACTIVE.value)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    current_class = relationship("SchoolClass", foreign_keys=[current_class_id])
    current_academic_year = relationship("AcademicYear", foreign_keys=[current_academic_year_id])

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"
