"""
Backup schemas.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel

from ledgerkeep.models.backup import BackupCreator
from ledgerkeep.schemas.data import ImportResult


class BackupCreateRequest(BaseModel):
    created_by: BackupCreator = BackupCreator.manual


class BackupMetadataResponse(BaseModel):
    id: str
    timestamp: datetime
    transaction_count: int
    account_count: int
    size: int
    version: str
    created_by: BackupCreator

    class Config:
        from_attributes = True


class BackupStats(BaseModel):
    total_backups: int = 0
    total_size: int = 0
    newest_backup: Optional[datetime] = None
    oldest_backup: Optional[datetime] = None


class RestoreResponse(BaseModel):
    backup_id: str
    result: ImportResult
