"""
Backup API endpoints.
"""

from typing import Any, Dict

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from ledgerkeep.dependencies import get_db
from ledgerkeep.errors import BackupNotFound, InvalidEnvelopeFormat, StorageFailure
from ledgerkeep.schemas.backup import (
    BackupCreateRequest,
    BackupMetadataResponse,
    BackupStats,
    RestoreResponse,
)
from ledgerkeep.services import backup_service

router = APIRouter(prefix="/backups", tags=["backups"])


@router.get("", response_model=list[BackupMetadataResponse])
def list_backups(db: Session = Depends(get_db)):
    """All backups, newest first"""
    return [BackupMetadataResponse.model_validate(b) for b in backup_service.get_backup_list(db)]


@router.post("", response_model=BackupMetadataResponse, status_code=201)
def create_backup(
    request: BackupCreateRequest = BackupCreateRequest(),
    db: Session = Depends(get_db)
):
    """Snapshot the current ledger"""
    try:
        return BackupMetadataResponse.model_validate(backup_service.create_backup(db, request.created_by))
    except StorageFailure as e:
        raise HTTPException(status_code=500, detail=str(e))


@router.get("/stats", response_model=BackupStats)
def backup_stats(db: Session = Depends(get_db)):
    return backup_service.get_backup_stats(db)


@router.get("/{backup_id}")
def get_backup(backup_id: str, db: Session = Depends(get_db)) -> Dict[str, Any]:
    """The stored envelope of one backup"""
    data = backup_service.get_backup_data(db, backup_id)
    if data is None:
        raise HTTPException(status_code=404, detail=f"Backup {backup_id} not found")
    return data


@router.post("/{backup_id}/restore", response_model=RestoreResponse)
def restore_backup(backup_id: str, db: Session = Depends(get_db)):
    """Replace the ledger with a backup"""
    try:
        result = backup_service.restore_from_backup(db, backup_id)
    except BackupNotFound as e:
        raise HTTPException(status_code=404, detail=str(e))
    except InvalidEnvelopeFormat as e:
        raise HTTPException(status_code=400, detail=str(e))
    except StorageFailure as e:
        raise HTTPException(status_code=500, detail=str(e))
    return RestoreResponse(backup_id=backup_id, result=result)


@router.delete("/{backup_id}", status_code=204)
def delete_backup(backup_id: str, db: Session = Depends(get_db)):
    try:
        backup_service.delete_backup(db, backup_id)
    except BackupNotFound as e:
        raise HTTPException(status_code=404, detail=str(e))
