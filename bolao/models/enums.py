"""
Status and role enums shared by models, services and the API
"""

import enum


class ContestStatus(enum.Enum):
    """Contest status enum. Transitions only move forward in this order."""
    OPEN = "open"
    CLOSED = "closed"
    DRAWN = "drawn"
    FINALIZED = "finalized"


CONTEST_STATUS_ORDER = [
    ContestStatus.OPEN.value,
    ContestStatus.CLOSED.value,
    ContestStatus.DRAWN.value,
    ContestStatus.FINALIZED.value,
]


class PaymentStatus(enum.Enum):
    """Payment record status enum"""
    PENDING = "pending"
    PAID = "paid"
    CANCELLED = "cancelled"
    EXPIRED = "expired"


class PaymentMethod(enum.Enum):
    """How a payment record was settled"""
    GATEWAY = "gateway"
    ADMIN = "admin"


class GatewayPaymentStatus(enum.Enum):
    """Authoritative session status as reported by the payment gateway"""
    PAID = "paid"
    UNPAID = "unpaid"
    EXPIRED = "expired"


class UserRole(enum.Enum):
    """Role supplied by the auth context"""
    ADMIN = "admin"
    PARTICIPANT = "participant"
