# Models Package
from .contest import Contest
from .participation import Participation
from .payment import PaymentRecord
from .admin_config import AdminConfig
from .audit_log import AuditLog

__all__ = [
    "Contest",
    "Participation",
    "PaymentRecord",
    "AdminConfig",
    "AuditLog"
]
