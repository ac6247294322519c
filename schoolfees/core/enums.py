from enum import Enum


class FeeType(str, Enum):
    TUITION = "tuition"
    EXAM = "exam"
    ADMISSION = "admission"
    LIBRARY = "library"
    SPORTS = "sports"
    TRANSPORT = "transport"
    OTHER = "other"


class InstallmentStatus(str, Enum):
    PENDING = "pending"
    PARTIAL = "partial"
    PAID = "paid"
    OVERDUE = "overdue"
    SKIPPED = "skipped"


class FeeFrequency(str, Enum):
    ONE_TIME = "one-time"
    ANNUAL = "annual"
    MONTHLY = "monthly"


class PaymentMethod(str, Enum):
    CASH = "cash"
    CARD = "card"
    ONLINE = "online"
    CHEQUE = "cheque"
    BANK_TRANSFER = "bank_transfer"


class StudentStatus(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    ALUMNI = "alumni"


# April-start fiscal year. Installment labels follow this order regardless of
# the calendar month the academic year actually starts in.
FEE_MONTHS = (
    "April",
    "May",
    "June",
    "July",
    "August",
    "September",
    "October",
    "November",
    "December",
    "January",
    "February",
    "March",
)
