"""
Audit log model for administrator actions and ledger events
"""

import uuid

from sqlalchemy import Column, String, DateTime, JSON, Uuid
from sqlalchemy.sql import func

from bolao.db.base import Base


class AuditLog(Base):
    """Audit log model - matches audit_logs table"""
    __tablename__ = "audit_logs"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    actor_id = Column(Uuid, nullable=True)
    actor = Column(String(128), nullable=True)  # "system" for engine-originated entries
    action = Column(String(128), nullable=False)
    contest_id = Column(Uuid, nullable=True, index=True)
    details = Column(JSON, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    def __repr__(self):
        return f"<AuditLog(id={self.id}, actor_id={self.actor_id}, action={self.action})>"
    
    def to_dict(self):
        return {
            "id": str(self.id),
            "actor_id": str(self.actor_id) if self.actor_id else None,
            "actor": self.actor,
            "action": self.action,
            "contest_id": str(self.contest_id) if self.contest_id else None,
            "details": self.details,
            "created_at": self.created_at.isoformat() if self.created_at else None
        }
