"""
Payment record model - one row per purchase attempt or admin grant
"""

import uuid

from sqlalchemy import Column, String, Numeric, DateTime, Integer, JSON, Uuid, ForeignKey
from sqlalchemy.sql import func

from bolao.db.base import Base


class PaymentRecord(Base):
    """Payment record model - matches pagamentos table"""
    __tablename__ = "pagamentos"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid, nullable=False, index=True)
    contest_id = Column(Uuid, ForeignKey("contests.id", ondelete="CASCADE"), nullable=False, index=True)
    quota_count = Column(Integer, nullable=False)
    amount = Column(Numeric(12, 2), nullable=False)
    method = Column(String(16), nullable=False, default="gateway")
    status = Column(String(16), nullable=False, default="pending")
    chosen_numbers = Column(JSON, nullable=True)
    checkout_session_id = Column(String(255), nullable=True, unique=True)
    payment_intent_id = Column(String(255), nullable=True)
    paid_at = Column(DateTime(timezone=True), nullable=True)
    # Set when the gateway captured the money but the quotas could not be allocated
    unallocatable_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    def __repr__(self):
        return f"<PaymentRecord(id={self.id}, status={self.status}, quotas={self.quota_count}, amount={self.amount})>"

    def to_dict(self):
        """Convert payment record to dictionary for API responses"""
        return {
            "id": str(self.id),
            "user_id": str(self.user_id),
            "contest_id": str(self.contest_id),
            "quota_count": self.quota_count,
            "amount": str(self.amount),
            "method": self.method,
            "status": self.status,
            "checkout_session_id": self.checkout_session_id,
            "payment_intent_id": self.payment_intent_id,
            "paid_at": self.paid_at.isoformat() if self.paid_at else None,
            "unallocatable_at": self.unallocatable_at.isoformat() if self.unallocatable_at else None,
            "created_at": self.created_at.isoformat() if self.created_at else None
        }
