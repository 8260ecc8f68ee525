"""User preferences model - singleton document row."""

from sqlalchemy import Column, Integer, DateTime, JSON
from sqlalchemy.sql import func

from ledgerkeep.database import Base


class UserPreferences(Base):
    """
    Preferences stored as one JSON document.
    Singleton pattern - only one row with id=1.
    """
    __tablename__ = "user_preferences"

    id = Column(Integer, primary_key=True, default=1)
    data = Column(JSON, nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
