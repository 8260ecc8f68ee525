"""
Export, import and integrity endpoints for the whole ledger.
"""

from typing import Any, Dict, Optional

from fastapi import APIRouter, Body, Depends, HTTPException
from sqlalchemy.orm import Session

from ledgerkeep.dependencies import get_db
from ledgerkeep.errors import InvalidEnvelopeFormat, StorageFailure
from ledgerkeep.schemas.data import DataImportRequest, ImportResult
from ledgerkeep.schemas.integrity import IntegrityReport
from ledgerkeep.services import export_service, integrity_service
from ledgerkeep.services.backup_service import notify_data_change

router = APIRouter(prefix="/data", tags=["data"])


@router.get("/export")
def export_data(db: Session = Depends(get_db)) -> Dict[str, Any]:
    """Current ledger as a versioned envelope"""
    return export_service.export_data(db)


@router.post("/import", response_model=ImportResult)
def import_data(
    request: DataImportRequest,
    db: Session = Depends(get_db)
):
    """Replace the selected domains with the envelope's contents"""
    try:
        result = export_service.import_data(db, request.envelope, request.flags)
    except InvalidEnvelopeFormat as e:
        raise HTTPException(status_code=400, detail={"message": str(e), "problems": e.problems})
    except StorageFailure as e:
        raise HTTPException(status_code=500, detail=str(e))

    notify_data_change(db)
    return result


@router.get("/integrity", response_model=IntegrityReport)
def current_integrity(db: Session = Depends(get_db)):
    """Integrity report for the stored ledger"""
    return integrity_service.analyze_envelope(export_service.export_data(db))


@router.post("/integrity", response_model=IntegrityReport)
def envelope_integrity(envelope: Optional[Dict[str, Any]] = Body(None)):
    """Integrity report for an envelope before importing it"""
    if envelope is None:
        raise HTTPException(status_code=400, detail="Request body must be an export envelope")
    return integrity_service.analyze_envelope(envelope)
