"""Fee installment: one payment obligation for one student. balance and status are always derived."""

import uuid
from datetime import datetime

from sqlalchemy import Boolean, CheckConstraint, Column, Date, DateTime, ForeignKey, Index, Integer, Numeric, String, Text, Uuid
from sqlalchemy.orm import relationship

from schoolfees.core.enums import InstallmentStatus
from schoolfees.db.session import Base


class FeeInstallment(Base):
    """
    Per-student, per-period fee row produced by the installment generator.
    amount is immutable after creation. Every UPDATE is guarded by the version
    column so concurrent read-modify-write cycles cannot lose a payment.
    """

    __tablename__ = "fee_installments"
    __table_args__ = (
        CheckConstraint(
            "fee_type IN ('tuition','exam','admission','library','sports','transport','other')",
            name="chk_fee_installment_fee_type",
        ),
        CheckConstraint(
            "status IN ('pending','partial','paid','overdue','skipped')",
            name="chk_fee_installment_status",
        ),
        CheckConstraint("discount >= 0", name="chk_fee_installment_discount"),
        CheckConstraint("paid_amount >= 0", name="chk_fee_installment_paid_amount"),
        Index("ix_fee_installment_student_year", "student_id", "academic_year_id"),
        Index("ix_fee_installment_student_type_month", "student_id", "fee_type", "month"),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    student_id = Column(Uuid, ForeignKey("students.id", ondelete="CASCADE"), nullable=False)
    academic_year_id = Column(Uuid, ForeignKey("academic_years.id", ondelete="RESTRICT"), nullable=False)
    class_id = Column(Uuid, ForeignKey("classes.id", ondelete="RESTRICT"), nullable=False)

    fee_type = Column(String(20), nullable=False)
    fee_name = Column(String(255), nullable=False)  # "April Tuition Fee", "First Term"
    month = Column(String(20), nullable=True)
    term = Column(String(100), nullable=True)

    amount = Column(Numeric(12, 2), nullable=False)
    due_date = Column(Date, nullable=False)

    paid_amount = Column(Numeric(12, 2), nullable=False, default=0)
    balance = Column(Numeric(12, 2), nullable=False)
    discount = Column(Numeric(12, 2), nullable=False, default=0)
    discount_reason = Column(Text, nullable=True)

    # Latest payment only; full history is in installment_payments
    payment_date = Column(DateTime(timezone=True), nullable=True)
    payment_method = Column(String(30), nullable=True)  # cash, card, online, cheque, bank_transfer
    transaction_id = Column(String(100), nullable=True)
    receipt_number = Column(String(100), nullable=True)
    receipt_image = Column(String(500), nullable=True)
    processed_by = Column(Uuid, nullable=True)  # acting user id from the identity service

    status = Column(String(20), nullable=False, default=InstallmentStatus.PENDING.value, index=True)
    remarks = Column(Text, nullable=True)

    is_skipped = Column(Boolean, nullable=False, default=False)
    skipped_reason = Column(Text, nullable=True)
    skipped_date = Column(DateTime(timezone=True), nullable=True)

    version = Column(Integer, nullable=False)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    __mapper_args__ = {"version_id_col": version}

    student = relationship("Student")
    academic_year = relationship("AcademicYear")
    school_class = relationship("SchoolClass", foreign_keys=[class_id])
