"""School classes (e.g. Class 5 / A). Model named SchoolClass to avoid Python 'class' keyword."""
import uuid
from datetime import datetime

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, UniqueConstraint, Uuid
from sqlalchemy.orm import relationship

from schoolfees.db.session import Base


class SchoolClass(Base):
    """Class + section within one academic year."""

    __tablename__ = "classes"
    __table_args__ = (
        UniqueConstraint("name", "section", "academic_year_id", name="uq_class_name_section_year"),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    name = Column(String(50), nullable=False)
    section = Column(String(10), nullable=False)
    grade = Column(Integer, nullable=True)
    academic_year_id = Column(Uuid, ForeignKey("academic_years.id", ondelete="RESTRICT"), nullable=False)
    capacity = Column(Integer, nullable=False, default=40)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    academic_year = relationship("AcademicYear")
