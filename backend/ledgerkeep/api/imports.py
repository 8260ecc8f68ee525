"""
Import API endpoints.
"""

from fastapi import APIRouter, Depends, UploadFile, File, HTTPException
from sqlalchemy.orm import Session

from ledgerkeep.dependencies import get_db
from ledgerkeep.errors import FormatUnrecognized, ParseError, StorageFailure
from ledgerkeep.schemas.import_file import (
    ImportUploadResponse,
    ImportConfirmRequest,
    ImportStatusResponse,
    ImportLogResponse
)
from ledgerkeep.services import import_service

router = APIRouter(prefix="/imports", tags=["imports"])

ALLOWED_EXTENSIONS = ['.csv', '.ofx', '.qfx', '.txt']


@router.post("/upload", response_model=ImportUploadResponse)
async def upload_file(
    file: UploadFile = File(...),
):
    """Upload a file for import and detect its format"""
    if not file.filename:
        raise HTTPException(status_code=400, detail="No filename provided")

    ext = '.' + file.filename.split('.')[-1].lower() if '.' in file.filename else ''
    if ext not in ALLOWED_EXTENSIONS:
        raise HTTPException(
            status_code=400,
            detail=f"File type not supported. Allowed: {', '.join(ALLOWED_EXTENSIONS)}"
        )

    content = await file.read()
    file_path, import_id = import_service.save_upload(content, file.filename)
    try:
        return import_service.get_preview(file_path, import_id, file.filename)
    except ParseError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.post("/{import_id}/confirm", response_model=ImportStatusResponse)
def confirm_import(
    import_id: str,
    request: ImportConfirmRequest,
    db: Session = Depends(get_db)
):
    """Parse, categorize and store an uploaded file"""
    try:
        return import_service.process_import(db, import_id, request)
    except FormatUnrecognized as e:
        raise HTTPException(status_code=422, detail=str(e))
    except ParseError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except StorageFailure as e:
        raise HTTPException(status_code=500, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=404, detail=str(e))


@router.post("/{import_id}/cancel")
def cancel_import(import_id: str):
    """Stop a running import at its next batch boundary"""
    if not import_service.cancel_import(import_id):
        raise HTTPException(status_code=404, detail="No running import with this id")
    return {"import_id": import_id, "cancel_requested": True}


@router.get("/{import_id}/status", response_model=ImportStatusResponse)
def get_import_status(
    import_id: str,
    db: Session = Depends(get_db)
):
    """Get status of an import"""
    try:
        return import_service.get_import_status(db, import_id)
    except ValueError as e:
        raise HTTPException(status_code=404, detail=str(e))


@router.get("/history", response_model=list[ImportLogResponse])
def get_import_history(
    limit: int = 20,
    db: Session = Depends(get_db)
):
    """Get import history"""
    logs = import_service.get_import_history(db, limit)
    return [ImportLogResponse.model_validate(log) for log in logs]
