"""
Contest model - per-contest quota ledger and draw metadata
"""

import uuid

from sqlalchemy import Column, String, Numeric, DateTime, Integer, Boolean, JSON, Text, Uuid, CheckConstraint
from sqlalchemy.sql import func

from bolao.db.base import Base


class Contest(Base):
    """Contest model - matches contests table"""
    __tablename__ = "contests"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    name = Column(String(255), nullable=False)
    number = Column(Integer, nullable=False)
    description = Column(Text, nullable=True)
    draw_date = Column(DateTime(timezone=True), nullable=False)
    price_per_quota = Column(Numeric(12, 2), nullable=False)
    capacity = Column(Integer, nullable=False)
    quotas_sold = Column(Integer, nullable=False, default=0)
    status = Column(String(16), nullable=False, default="open")
    drawn_numbers = Column(JSON, nullable=True)
    total_prize = Column(Numeric(14, 2), nullable=True)
    integrity_locked = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    __table_args__ = (
        CheckConstraint("quotas_sold >= 0", name="ck_contests_quotas_sold_non_negative"),
        CheckConstraint("quotas_sold <= capacity", name="ck_contests_quotas_sold_capacity"),
    )

    def __repr__(self):
        return f"<Contest(id={self.id}, number={self.number}, sold={self.quotas_sold}/{self.capacity})>"

    @property
    def quotas_available(self) -> int:
        return max(self.capacity - self.quotas_sold, 0)

    def to_dict(self):
        """Convert contest to dictionary for API responses"""
        return {
            "id": str(self.id),
            "name": self.name,
            "number": self.number,
            "description": self.description,
            "draw_date": self.draw_date.isoformat() if self.draw_date else None,
            "price_per_quota": str(self.price_per_quota),
            "capacity": self.capacity,
            "quotas_sold": self.quotas_sold,
            "quotas_available": self.quotas_available,
            "status": self.status,
            "drawn_numbers": self.drawn_numbers,
            "total_prize": str(self.total_prize) if self.total_prize is not None else None,
            "integrity_locked": self.integrity_locked,
            "created_at": self.created_at.isoformat() if self.created_at else None
        }
