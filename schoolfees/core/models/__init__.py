from schoolfees.core.models.grade import Grade
from schoolfees.core.models.parent import Parent
from schoolfees.core.models.pupil import Pupil
from schoolfees.core.models.fee_structure import FeeStructure
from schoolfees.core.models.payment import Payment
from schoolfees.core.models.audit_log import AuditLogEntry

__all__ = [
    "Grade",
    "Parent",
    "Pupil",
    "FeeStructure",
    "Payment",
    "AuditLogEntry",
]
