"""
Import file schemas.
"""

from pydantic import BaseModel, Field
from typing import Optional, List, Dict, Any, Union
from datetime import datetime
from enum import Enum

from ledgerkeep.models.import_log import ImportStatus


ColumnRef = Union[int, str]


class SignConvention(str, Enum):
    NEGATIVE_DEBITS = "negative_debits"  # money out is already negative
    POSITIVE_DEBITS = "positive_debits"  # money out is positive and must be flipped


class ColumnMapping(BaseModel):
    """Where each field lives in a delimited file; columns by index or header name."""
    date_col: Optional[ColumnRef] = Field(None, description="Column for date")
    amount_col: Optional[ColumnRef] = Field(None, description="Column for signed amount")
    description_col: Optional[ColumnRef] = Field(None, description="Column for description")
    debit_col: Optional[ColumnRef] = Field(None, description="Column for debit (if separate)")
    credit_col: Optional[ColumnRef] = Field(None, description="Column for credit (if separate)")
    type_col: Optional[ColumnRef] = Field(None, description="Explicit debit/credit or type column")
    category_col: Optional[ColumnRef] = Field(None, description="Category supplied by the source")
    notes_col: Optional[ColumnRef] = Field(None, description="Memo or notes column")
    balance_col: Optional[ColumnRef] = Field(None, description="Column for balance (if present)")
    has_headers: bool = True
    skip_rows: int = Field(0, ge=0)
    date_format: Optional[str] = "%Y-%m-%d"
    sign_convention: SignConvention = SignConvention.NEGATIVE_DEBITS
    confidence: float = Field(0.5, ge=0, le=1)


class AccountInfoResponse(BaseModel):
    institution: str
    account_type: str
    masked_account_number: Optional[str] = None
    balance: Optional[float] = None
    balance_date: Optional[str] = None


class DetectionResponse(BaseModel):
    recognized_format: Optional[str]
    account_type_hint: Optional[str] = None
    confidence: float
    is_match: bool
    candidates: Dict[str, float] = {}


class ImportUploadResponse(BaseModel):
    import_id: str
    filename: str
    row_count: int
    headers: List[str]
    preview_rows: List[List[str]]
    detection: DetectionResponse
    suggested_mapping: Optional[ColumnMapping] = None

    class Config:
        from_attributes = True


class ImportConfirmRequest(BaseModel):
    account_id: Optional[str] = None
    format: Optional[str] = None
    column_mapping: Optional[ColumnMapping] = None
    skip_duplicates: bool = False
    skip_history: bool = True


class ImportStatusResponse(BaseModel):
    import_id: str
    status: ImportStatus
    filename: str
    detected_format: Optional[str] = None
    transactions_imported: int = 0
    transactions_skipped: int = 0
    duplicates_flagged: int = 0
    rules_created: int = 0
    batches_committed: int = 0
    account_info: Optional[AccountInfoResponse] = None
    errors: List[Any] = []
    warnings: List[str] = []

    class Config:
        from_attributes = True


class ImportLogResponse(BaseModel):
    id: str
    filename: str
    account_id: Optional[str]
    detected_format: Optional[str]
    status: ImportStatus
    transactions_imported: int
    transactions_skipped: int
    duplicates_flagged: int
    error_message: Optional[str]
    created_at: datetime

    class Config:
        from_attributes = True
