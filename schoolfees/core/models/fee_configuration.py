"""Fee configuration: fee template per class per academic year."""

import uuid
from datetime import datetime

from sqlalchemy import JSON, Boolean, Column, DateTime, ForeignKey, Numeric, UniqueConstraint, Uuid
from sqlalchemy.orm import relationship

from schoolfees.db.session import Base


class FeeConfiguration(Base):
    """
    Monthly tuition, named exam fees and named other fees for one class in one academic year.
    Read-only input to installment generation; deleting it leaves generated installments alone.
    """

    __tablename__ = "fee_configurations"
    __table_args__ = (
        UniqueConstraint("academic_year_id", "class_id", name="uq_fee_configuration_year_class"),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    academic_year_id = Column(Uuid, ForeignKey("academic_years.id", ondelete="RESTRICT"), nullable=False)
    class_id = Column(Uuid, ForeignKey("classes.id", ondelete="CASCADE"), nullable=False)
    tuition_fee = Column(Numeric(12, 2), nullable=False, default=0)
    # [{"name": "First Term", "amount": "500.00"}, ...] in list order
    exam_fees = Column(JSON, nullable=False, default=list)
    # [{"name": "Library", "amount": "300.00", "frequency": "annual"}, ...]
    other_fees = Column(JSON, nullable=False, default=list)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    academic_year = relationship("AcademicYear")
    school_class = relationship("SchoolClass", foreign_keys=[class_id])
