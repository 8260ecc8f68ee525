"""
Backup metadata and payload database models.
"""

from datetime import datetime
from sqlalchemy import Column, String, Integer, DateTime, Enum, Text
import enum
from ledgerkeep.database import Base


class BackupCreator(str, enum.Enum):
    """Who triggered the backup."""
    manual = "manual"
    auto = "auto"


class BackupMetadata(Base):
    """Immutable summary of a backup; written together with its payload."""

    __tablename__ = "backup_metadata"

    id = Column(String(64), primary_key=True)
    timestamp = Column(DateTime, default=datetime.utcnow, nullable=False, index=True)
    transaction_count = Column(Integer, default=0, nullable=False)
    account_count = Column(Integer, default=0, nullable=False)
    size = Column(Integer, default=0, nullable=False)  # Bytes of the serialized envelope
    version = Column(String(20), nullable=False)
    created_by = Column(Enum(BackupCreator), nullable=False)


class BackupPayload(Base):
    """Serialized export envelope for a backup, same id as its metadata."""

    __tablename__ = "backup_payloads"

    id = Column(String(64), primary_key=True)
    data = Column(Text, nullable=False)
