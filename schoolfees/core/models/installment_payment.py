"""Installment payment: append-only log of every payment applied to a fee installment."""

import uuid
from datetime import datetime

from sqlalchemy import Column, DateTime, ForeignKey, Numeric, String, Text, Uuid
from sqlalchemy.orm import backref, relationship

from schoolfees.db.session import Base


class InstallmentPayment(Base):
    """One applied payment. Rows are never updated; deleting the installment removes them."""

    __tablename__ = "installment_payments"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    installment_id = Column(
        Uuid,
        ForeignKey("fee_installments.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    student_id = Column(Uuid, ForeignKey("students.id", ondelete="CASCADE"), nullable=False, index=True)
    amount = Column(Numeric(12, 2), nullable=False)
    payment_method = Column(String(30), nullable=False)
    payment_date = Column(DateTime(timezone=True), nullable=False)
    transaction_id = Column(String(100), nullable=True)
    receipt_number = Column(String(100), nullable=True)
    receipt_image = Column(String(500), nullable=True)
    remarks = Column(Text, nullable=True)
    processed_by = Column(Uuid, nullable=True)  # acting user id from the identity service
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)

    installment = relationship(
        "FeeInstallment",
        backref=backref("payments", cascade="all, delete-orphan", passive_deletes=True),
    )
