"""
Opaque per-domain documents carried through export and import.
"""

import enum
from datetime import datetime
from sqlalchemy import Column, DateTime, Enum, JSON
from ledgerkeep.database import Base


class ExtraDomain(str, enum.Enum):
    """Envelope domains kept verbatim."""
    balance_history = "balanceHistory"
    currency_rates = "currencyRates"
    transfer_matches = "transferMatches"


class LedgerExtra(Base):
    """One row per domain holding the domain's list as JSON."""

    __tablename__ = "ledger_extras"

    domain = Column(Enum(ExtraDomain), primary_key=True)
    payload = Column(JSON, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)
