"""
Transaction database model.
"""

import uuid
from datetime import datetime
from sqlalchemy import Column, String, Boolean, DateTime, Date, Numeric, Float, Text, JSON, Index, Enum
import enum
from ledgerkeep.database import Base


class TransactionType(str, enum.Enum):
    """Direction of money movement."""
    expense = "expense"
    income = "income"
    transfer = "transfer"


class Transaction(Base):
    """Canonical transaction model."""

    __tablename__ = "transactions"

    id = Column(String(64), primary_key=True, default=lambda: str(uuid.uuid4()))
    signature = Column(String(64), nullable=False, index=True)  # Duplicate detection, not unique
    date = Column(Date, nullable=False, index=True)
    amount = Column(Numeric(18, 6), nullable=False)  # Negative = money leaving the account
    description = Column(Text, nullable=False)
    category = Column(String(100), nullable=False, default="Uncategorized")
    subcategory = Column(String(100), nullable=True)
    account = Column(String(100), nullable=False)  # Account id or name
    type = Column(Enum(TransactionType), nullable=False)
    is_verified = Column(Boolean, default=False, nullable=False)
    confidence = Column(Float, nullable=True)
    reasoning = Column(Text, nullable=True)
    notes = Column(Text, nullable=True)
    vendor = Column(String(255), nullable=True)
    tags = Column(JSON, nullable=True)
    is_recurring = Column(Boolean, default=False, nullable=False)
    original_text = Column(Text, nullable=True)
    reimbursed = Column(Boolean, default=False, nullable=False)
    reimbursement_id = Column(String(64), nullable=True)  # Points at another transaction, may dangle
    transfer_id = Column(String(64), nullable=True)
    original_currency = Column(String(3), nullable=True)
    exchange_rate = Column(Float, nullable=True)
    added_date = Column(DateTime, default=datetime.utcnow, nullable=False)
    last_modified_date = Column(DateTime, default=datetime.utcnow, nullable=False)

    # Indexes for common queries
    __table_args__ = (
        Index("idx_transaction_date_account", "date", "account"),
        Index("idx_transaction_category", "category"),
    )
