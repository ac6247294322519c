from schoolfees.core.models.academic_year import AcademicYear
from schoolfees.core.models.class_model import SchoolClass
from schoolfees.core.models.student import Student
from schoolfees.core.models.fee_configuration import FeeConfiguration
from schoolfees.core.models.fee_installment import FeeInstallment
from schoolfees.core.models.installment_payment import InstallmentPayment
from schoolfees.core.models.fee_audit_log import FeeAuditLog

__all__ = [
    "AcademicYear",
    "SchoolClass",
    "Student",
    "FeeConfiguration",
    "FeeInstallment",
    "InstallmentPayment",
    "FeeAuditLog",
]
