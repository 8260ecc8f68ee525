"""
Transaction history (audit log) database model.
"""

import uuid
from datetime import datetime
from sqlalchemy import Column, String, DateTime, Text, JSON
from ledgerkeep.database import Base


class TransactionHistory(Base):
    """Append-only snapshot of a transaction written on every mutation."""

    __tablename__ = "transaction_history"

    id = Column(String(64), primary_key=True, default=lambda: str(uuid.uuid4()))
    transaction_id = Column(String(64), nullable=False, index=True)
    timestamp = Column(DateTime, default=datetime.utcnow, nullable=False)
    data = Column(JSON, nullable=False)
    note = Column(Text, nullable=True)
