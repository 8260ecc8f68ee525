"""
Category database model.
"""

from datetime import datetime
from sqlalchemy import Column, String, DateTime, JSON
from ledgerkeep.database import Base


class Category(Base):
    """Category document with its subcategories kept in ``data``."""

    __tablename__ = "categories"

    id = Column(String(64), primary_key=True)
    name = Column(String(100), nullable=False)
    type = Column(String(20), nullable=True)  # income, expense, transfer
    data = Column(JSON, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
