"""
Administrator configuration singleton
"""

from sqlalchemy import Column, Integer, Numeric, DateTime, Uuid, CheckConstraint
from sqlalchemy.sql import func

from bolao.db.base import Base

SINGLETON_ID = 1


class AdminConfig(Base):
    """Admin configuration - matches configuracoes_admin table (single row)"""
    __tablename__ = "configuracoes_admin"

    id = Column(Integer, primary_key=True, default=SINGLETON_ID)
    commission_percent = Column(Numeric(5, 2), nullable=False, default=10)
    free_quota_count = Column(Integer, nullable=False, default=3)
    operator_user_id = Column(Uuid, nullable=True)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    __table_args__ = (
        CheckConstraint("commission_percent >= 0 AND commission_percent <= 100", name="ck_config_commission_range"),
        CheckConstraint("free_quota_count >= 0", name="ck_config_free_quotas_non_negative"),
    )

    def __repr__(self):
        return f"<AdminConfig(commission={self.commission_percent}, free_quotas={self.free_quota_count})>"

    def to_dict(self):
        return {
            "commission_percent": str(self.commission_percent),
            "free_quota_count": self.free_quota_count,
            "operator_user_id": str(self.operator_user_id) if self.operator_user_id else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None
        }
