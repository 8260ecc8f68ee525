"""
Category rule database model.
"""

import uuid
from datetime import datetime
from sqlalchemy import Column, String, Boolean, DateTime, Integer, Text, JSON
from ledgerkeep.database import Base


AUTO_RULE_PRIORITY = 50
MANUAL_RULE_PRIORITY = 100


class CategoryRule(Base):
    """Rule assigning a category when all of its conditions match."""

    __tablename__ = "category_rules"

    id = Column(String(64), primary_key=True, default=lambda: str(uuid.uuid4()))
    name = Column(String(200), nullable=False)
    description = Column(Text, nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)
    priority = Column(Integer, default=MANUAL_RULE_PRIORITY, nullable=False)  # Lower wins
    conditions = Column(JSON, nullable=False)
    action = Column(JSON, nullable=False)  # {"categoryName": ..., "subcategoryName": ...}
    created_date = Column(DateTime, default=datetime.utcnow, nullable=False)
    last_modified_date = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)
