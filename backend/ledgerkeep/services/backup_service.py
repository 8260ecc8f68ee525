"""
Backup snapshots of the full ledger.

A backup is an export envelope (payload) plus a small metadata record. Both
are written in one store transaction and never modified afterwards; they are
removed only through ``delete_backup``.
"""

import json
import logging
import secrets
import time
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from ledgerkeep.config import settings
from ledgerkeep.errors import BackupNotFound, LedgerError
from ledgerkeep.models.backup import BackupCreator, BackupMetadata
from ledgerkeep.schemas.backup import BackupStats
from ledgerkeep.schemas.data import ImportFlags, ImportResult
from ledgerkeep.services.export_service import export_data, import_data
from ledgerkeep.services.ledger_store import LedgerStore

logger = logging.getLogger(__name__)


def _backup_id() -> str:
    return f"backup-{int(time.time() * 1000)}-{secrets.token_hex(4)}"


def create_backup(db: Session, created_by: BackupCreator = BackupCreator.manual) -> BackupMetadata:
    """Snapshot the current ledger."""
    store = LedgerStore(db)
    envelope = export_data(db)
    payload = json.dumps(envelope)

    metadata = {
        "id": _backup_id(),
        "timestamp": datetime.utcnow(),
        "transaction_count": len(envelope["transactions"]),
        "account_count": len(envelope["accounts"]),
        "size": len(payload.encode("utf-8")),
        "version": envelope["version"],
        "created_by": created_by,
    }

    with store.atomic():
        store.add_backup(metadata, payload)

    logger.info(f"Created {created_by.value} backup {metadata['id']} ({metadata['transaction_count']} transactions)")
    return store.get_backup_metadata(metadata["id"])


def get_backup_list(db: Session) -> List[BackupMetadata]:
    """All backups, newest first."""
    return LedgerStore(db).list_backups()


def get_backup_data(db: Session, backup_id: str) -> Optional[Dict[str, Any]]:
    """The stored envelope, or None if there is no such backup."""
    payload = LedgerStore(db).get_backup_payload(backup_id)
    return json.loads(payload) if payload is not None else None


def restore_from_backup(db: Session, backup_id: str) -> ImportResult:
    """Replace every domain with the backup's contents."""
    envelope = get_backup_data(db, backup_id)
    if envelope is None:
        raise BackupNotFound(backup_id)

    result = import_data(db, envelope, ImportFlags())
    result.reload_required = True
    logger.info(f"Restored backup {backup_id}")
    return result


def delete_backup(db: Session, backup_id: str) -> None:
    store = LedgerStore(db)
    if store.get_backup_metadata(backup_id) is None:
        raise BackupNotFound(backup_id)

    with store.atomic():
        store.delete_backup(backup_id)
    logger.info(f"Deleted backup {backup_id}")


def get_backup_stats(db: Session) -> BackupStats:
    """Totals from metadata only; payloads are not read."""
    backups = LedgerStore(db).list_backups()
    if not backups:
        return BackupStats()

    return BackupStats(
        total_backups=len(backups),
        total_size=sum(b.size for b in backups),
        newest_backup=backups[0].timestamp,
        oldest_backup=backups[-1].timestamp,
    )


def notify_data_change(db: Session, now: Optional[datetime] = None) -> Optional[BackupMetadata]:
    """
    Create an automatic backup if the newest one is older than the interval.

    Called after writes that change ledger data. Failures are logged and
    swallowed so the write that triggered them is never affected.
    """
    now = now or datetime.utcnow()
    try:
        latest = LedgerStore(db).latest_backup()
        interval = timedelta(minutes=settings.auto_backup_interval_minutes)
        if latest is not None and now - latest.timestamp < interval:
            return None
        return create_backup(db, BackupCreator.auto)
    except LedgerError as e:
        logger.error(f"Automatic backup failed: {e}")
        return None
