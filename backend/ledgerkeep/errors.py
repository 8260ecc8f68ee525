"""
Error taxonomy for ingestion, import and backup operations.
"""

from typing import List, Optional


class LedgerError(Exception):
    """Base class for all ledger engine errors."""


class FormatUnrecognized(LedgerError):
    """Detector confidence fell below the minimum threshold."""

    def __init__(self, message: str, confidence: float = 0.0):
        super().__init__(message)
        self.confidence = confidence


class ParseError(LedgerError):
    """A file is structurally broken for the format selected to parse it."""


class RowValidationSkipped(LedgerError):
    """
    A single record failed validation.

    Raised inside row loops and collected into the operation result; callers of
    the public services never see it raised.
    """

    def __init__(self, reason: str, row_index: Optional[int] = None, field: Optional[str] = None):
        super().__init__(reason)
        self.reason = reason
        self.row_index = row_index
        self.field = field

    def to_dict(self) -> dict:
        return {"row": self.row_index, "field": self.field, "reason": self.reason}


class InvalidEnvelopeFormat(LedgerError):
    """An import payload is missing required top-level structure."""

    def __init__(self, message: str, problems: Optional[List[str]] = None):
        super().__init__(message)
        self.problems = problems or [message]


class BackupNotFound(LedgerError):
    """A restore or delete referenced a backup id that does not exist."""

    def __init__(self, backup_id: str):
        super().__init__(f"Backup {backup_id} not found")
        self.backup_id = backup_id


class StorageFailure(LedgerError):
    """The underlying store failed; the pending transaction was rolled back."""
