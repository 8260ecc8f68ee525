"""
Integrity report schemas.
"""

from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel


class Severity(str, Enum):
    CRITICAL = "critical"
    WARNING = "warning"
    INFO = "info"


class IssueCategory(str, Enum):
    ORPHANED_ACCOUNT = "orphaned_account"
    MISSING_FIELD = "missing_field"
    INVALID_DATE = "invalid_date"
    INVALID_AMOUNT = "invalid_amount"
    DUPLICATE_TRANSACTION = "duplicate_transaction"
    LARGE_AMOUNT = "large_amount"
    ORPHANED_REFERENCE = "orphaned_reference"
    DATA_CONSISTENCY = "data_consistency"


class IntegrityIssue(BaseModel):
    type: Severity
    category: IssueCategory
    message: str
    transaction_id: Optional[str] = None
    account_id: Optional[str] = None
    details: Optional[Dict[str, Any]] = None


class IntegritySummary(BaseModel):
    total_issues: int = 0
    critical_issues: int = 0
    warnings: int = 0
    info: int = 0
    is_healthy: bool = True


class IntegrityReport(BaseModel):
    transaction_count: int = 0
    account_count: int = 0
    issues: List[IntegrityIssue] = []
    orphaned_accounts: List[str] = []
    duplicate_groups: List[Dict[str, Any]] = []
    large_transactions: List[Dict[str, Any]] = []
    summary: IntegritySummary = IntegritySummary()
