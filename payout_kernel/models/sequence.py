"""
Module: payout_kernel.models.sequence
Responsibility: Named counter rows used by SequenceService.  Each row is
    locked with SELECT ... FOR UPDATE while it is incremented.
"""

from sqlalchemy import BigInteger, String
from sqlalchemy.orm import Mapped, mapped_column

from payout_kernel.db.base import Base


class SequenceCounter(Base):
    __tablename__ = "sequence_counters"

    # e.g. "wallet:<vendor uuid>", "audit:<vendor uuid>", "payout_configuration"
    name: Mapped[str] = mapped_column(String(80), nullable=False, unique=True)
    current_value: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
