"""
Budget database model.
"""

from datetime import datetime
from sqlalchemy import Column, String, DateTime, JSON
from ledgerkeep.database import Base


class Budget(Base):
    """Budget document keyed by id."""

    __tablename__ = "budgets"

    id = Column(String(64), primary_key=True)
    data = Column(JSON, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
