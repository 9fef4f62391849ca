"""
Participation model - one row per (user, contest)
"""

import uuid

from sqlalchemy import Column, Numeric, DateTime, Integer, Boolean, JSON, Uuid, ForeignKey, UniqueConstraint
from sqlalchemy.sql import func

from bolao.db.base import Base


class Participation(Base):
    """Participation model - matches participations table"""
    __tablename__ = "participations"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid, nullable=False)
    contest_id = Column(Uuid, ForeignKey("contests.id", ondelete="CASCADE"), nullable=False)
    chosen_numbers = Column(JSON, nullable=False)
    quota_count = Column(Integer, nullable=False)
    amount_paid = Column(Numeric(12, 2), nullable=False, default=0)
    numbers_matched = Column(Integer, nullable=True)
    is_winner = Column(Boolean, nullable=True)
    prize_amount = Column(Numeric(14, 2), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    # Constraints
    __table_args__ = (
        UniqueConstraint("user_id", "contest_id", name="uq_participations_user_contest"),
    )

    def __repr__(self):
        return f"<Participation(id={self.id}, user_id={self.user_id}, quotas={self.quota_count}, paid={self.amount_paid})>"

    def to_dict(self):
        """Convert participation to dictionary for API responses"""
        return {
            "id": str(self.id),
            "user_id": str(self.user_id),
            "contest_id": str(self.contest_id),
            "chosen_numbers": self.chosen_numbers,
            "quota_count": self.quota_count,
            "amount_paid": str(self.amount_paid),
            "numbers_matched": self.numbers_matched,
            "is_winner": self.is_winner,
            "prize_amount": str(self.prize_amount) if self.prize_amount is not None else None,
            "created_at": self.created_at.isoformat() if self.created_at else None
        }
