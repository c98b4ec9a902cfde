from enum import Enum


class AppRole(str, Enum):
    SUPER_ADMIN = "SUPER_ADMIN"
    DIRECTOR = "DIRECTOR"
    SCHOOL_ADMIN = "SCHOOL_ADMIN"


class PupilStatus(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    GRADUATED = "graduated"
    WITHDRAWN = "withdrawn"


class PaymentState(str, Enum):
    ACTIVE = "active"
    PENDING_DELETION = "pending_deletion"
    DELETION_APPROVED = "deletion_approved"
    DELETION_REJECTED = "deletion_rejected"


class PaymentAction(str, Enum):
    SOFT_DELETE = "SOFT_DELETE"
    APPROVE_DELETION = "APPROVE_DELETION"
    REJECT_DELETION = "REJECT_DELETION"


class BalanceStatus(str, Enum):
    PAID = "paid"
    PARTIAL = "partial"
    UNPAID = "unpaid"
    OVERDUE = "overdue"
    NOT_APPLICABLE = "not_applicable"


class AuditAction(str, Enum):
    CREATE = "CREATE"
    UPDATE = "UPDATE"
    DELETE = "DELETE"
    ACTIVATE = "ACTIVATE"
    DEACTIVATE = "DEACTIVATE"
    SOFT_DELETE = "SOFT_DELETE"
    APPROVE_DELETION = "APPROVE_DELETION"
    REJECT_DELETION = "REJECT_DELETION"


class HeatBand(str, Enum):
    EXCELLENT = "excellent"  # >= 90
    GOOD = "good"  # >= 70
    MODERATE = "moderate"  # >= 50
    LOW = "low"  # >= 30
    CRITICAL = "critical"


class FinancialHealth(str, Enum):
    EXCELLENT = "excellent"
    GOOD = "good"
    FAIR = "fair"
    POOR = "poor"


class AlertSeverity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"
