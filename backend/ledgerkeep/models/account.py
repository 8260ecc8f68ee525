"""
Account database model.
"""

import uuid
from datetime import datetime
from sqlalchemy import Column, String, Boolean, DateTime, Date, Numeric, Enum
import enum
from ledgerkeep.database import Base


class AccountType(str, enum.Enum):
    """Account type enumeration."""
    checking = "checking"
    savings = "savings"
    credit = "credit"
    investment = "investment"
    cash = "cash"


class Account(Base):
    """Account model."""

    __tablename__ = "accounts"

    id = Column(String(64), primary_key=True, default=lambda: str(uuid.uuid4()))
    name = Column(String(100), nullable=False, index=True)
    account_type = Column(Enum(AccountType), nullable=False, default=AccountType.checking)
    institution = Column(String(100), nullable=False, default="")
    currency = Column(String(3), nullable=False, default="USD")
    balance = Column(Numeric(18, 6), nullable=True)
    last_sync_date = Column(DateTime, nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)
    masked_account_number = Column(String(50), nullable=True)  # "Ending in 1234"
    historical_balance = Column(Numeric(18, 6), nullable=True)
    historical_balance_date = Column(Date, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
