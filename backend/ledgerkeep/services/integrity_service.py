"""
Integrity checks for incoming transactions and whole export envelopes.

Row-level: ``validate_transaction_row`` is the gate every record passes before
it is written. A failing row raises ``RowValidationSkipped``, which callers
collect and count.

Envelope-level: ``analyze_envelope`` reports problems without changing
anything, grouped by severity.
"""

import logging
import uuid
from datetime import date
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from pydantic import ValidationError

from ledgerkeep.config import settings
from ledgerkeep.errors import RowValidationSkipped
from ledgerkeep.models.account import AccountType
from ledgerkeep.schemas.integrity import (
    IntegrityIssue,
    IntegrityReport,
    IntegritySummary,
    IssueCategory,
    Severity,
)
from ledgerkeep.schemas.transaction import CanonicalTransaction
from ledgerkeep.services.deduplication_service import find_duplicate_groups
from ledgerkeep.services.normalizer import normalize_date, parse_finite_amount

logger = logging.getLogger(__name__)


REQUIRED_FIELDS = ("id", "date", "description", "amount", "account", "type")
REFERENCE_FIELDS = (("reimbursementId", "reimbursement_id"), ("transferId", "transfer_id"))

MIN_YEAR = 1900
MAX_SPAN_YEARS = 20
DETAIL_SAMPLE = 5


class AccountResolver:
    """
    Resolves a transaction's account reference by id or by name.

    Unknown references create an account when ``auto_create`` is on; the new
    accounts are collected in ``created`` for the caller to persist.
    """

    def __init__(self, accounts: Iterable[Tuple[str, str]], auto_create: Optional[bool] = None):
        self.auto_create = settings.auto_create_accounts if auto_create is None else auto_create
        self._known: Dict[str, str] = {}
        self.created: List[Dict[str, Any]] = []
        for account_id, name in accounts:
            self._remember(account_id, name)

    def _remember(self, account_id: str, name: Optional[str]) -> None:
        self._known[str(account_id).strip().lower()] = account_id
        if name:
            self._known.setdefault(name.strip().lower(), account_id)

    def resolve(self, reference: str, row_index: Optional[int] = None) -> Optional[str]:
        """Account id for the reference; a warning string when it had to be created."""
        key = reference.strip().lower()
        if key in self._known:
            return None

        if not self.auto_create:
            raise RowValidationSkipped(f"Unknown account '{reference}'", row_index, "account")

        account_id = str(uuid.uuid4())
        self.created.append({
            "id": account_id,
            "name": reference.strip(),
            "account_type": AccountType.checking,
            "institution": "",
            "currency": "USD",
            "is_active": True,
        })
        self._remember(account_id, reference)
        logger.warning(f"Created account '{reference}' referenced by an imported transaction")
        return f"Account '{reference}' did not exist and was created"


def _describe_validation_error(e: ValidationError) -> Tuple[str, Optional[str]]:
    first = e.errors()[0]
    field = str(first["loc"][0]) if first.get("loc") else None
    return first.get("msg", "invalid value"), field


def validate_transaction_row(
    row: Any,
    row_index: Optional[int],
    resolver: AccountResolver,
    assign_id: bool = False
) -> Tuple[CanonicalTransaction, List[str]]:
    """
    Check one record and build its canonical transaction.

    Raises ``RowValidationSkipped`` for missing required fields, non-finite
    amounts, impossible dates and unresolvable accounts. Returns the
    transaction and any warnings raised along the way.
    """
    if not isinstance(row, Mapping):
        raise RowValidationSkipped("Record is not an object", row_index)

    data = dict(row)
    if assign_id and not data.get("id"):
        data["id"] = str(uuid.uuid4())

    for field in REQUIRED_FIELDS:
        value = data.get(field)
        if value is None or (isinstance(value, str) and not value.strip()):
            raise RowValidationSkipped(f"Missing required field '{field}'", row_index, field)

    try:
        txn = CanonicalTransaction.model_validate(data)
    except ValidationError as e:
        message, field = _describe_validation_error(e)
        raise RowValidationSkipped(f"Invalid {field or 'record'}: {message}", row_index, field) from None

    warnings = []
    created = resolver.resolve(txn.account, row_index)
    if created:
        warnings.append(created)
    return txn, warnings


def dangling_reference_warnings(
    transactions: Sequence[CanonicalTransaction],
    known_ids: Optional[Iterable[str]] = None
) -> List[str]:
    """Cross references that point nowhere are kept, but reported."""
    ids = {txn.id for txn in transactions}
    if known_ids:
        ids.update(known_ids)

    warnings = []
    for txn in transactions:
        for label, attribute in REFERENCE_FIELDS:
            target = getattr(txn, attribute)
            if target and target not in ids:
                warnings.append(f"Transaction {txn.id} has {label} '{target}' that matches no transaction")
    return warnings


def _is_missing(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def _invalid_date_reason(value: Any) -> Optional[str]:
    parsed = normalize_date(value)
    if parsed is None:
        return "Invalid date format"
    if parsed.year < MIN_YEAR or parsed.year > date.today().year + 1:
        return "Impossible date (too far in past or future)"
    return None


def _invalid_amount_reason(value: Any) -> Optional[str]:
    if value is None:
        return "Missing amount"
    if isinstance(value, bool) or not isinstance(value, (int, float, str)):
        return "Amount is not a number"
    if parse_finite_amount(value) is None:
        return "Amount is not a finite number"
    return None


def analyze_envelope(
    envelope: Mapping[str, Any],
    large_threshold: Optional[float] = None
) -> IntegrityReport:
    """Inspect an export envelope for integrity problems. Never mutates anything."""
    if large_threshold is None:
        large_threshold = settings.large_transaction_threshold

    transactions = envelope.get("transactions") or []
    if not isinstance(transactions, list):
        transactions = []
    transactions = [txn for txn in transactions if isinstance(txn, Mapping)]

    accounts = envelope.get("accounts")
    issues: List[IntegrityIssue] = []
    orphaned_accounts: List[str] = []

    # Envelopes from before accounts were exported cannot be checked for orphans
    if isinstance(accounts, list):
        account_refs = set()
        for account in accounts:
            if isinstance(account, Mapping):
                account_refs.update(str(account.get(k)) for k in ("id", "name") if account.get(k))
        orphans = [txn for txn in transactions if str(txn.get("account") or "") not in account_refs]
        if orphans:
            orphaned_accounts = sorted({str(txn.get("account") or "") for txn in orphans})
            issues.append(IntegrityIssue(
                type=Severity.CRITICAL,
                category=IssueCategory.ORPHANED_ACCOUNT,
                message=f"{len(orphans)} transactions reference non-existent accounts",
                details={
                    "count": len(orphans),
                    "sample": [
                        {"id": txn.get("id"), "account": txn.get("account"), "description": txn.get("description")}
                        for txn in orphans[:DETAIL_SAMPLE]
                    ],
                },
            ))

    for field in REQUIRED_FIELDS:
        count = sum(1 for txn in transactions if _is_missing(txn.get(field)))
        if count:
            issues.append(IntegrityIssue(
                type=Severity.CRITICAL,
                category=IssueCategory.MISSING_FIELD,
                message=f"{count} transactions missing required field: {field}",
                details={"field": field, "count": count},
            ))

    bad_dates = []
    for txn in transactions:
        reason = _invalid_date_reason(txn.get("date"))
        if reason:
            bad_dates.append({"id": txn.get("id"), "date": txn.get("date"), "issue": reason})
    if bad_dates:
        issues.append(IntegrityIssue(
            type=Severity.CRITICAL,
            category=IssueCategory.INVALID_DATE,
            message=f"{len(bad_dates)} transactions have invalid or impossible dates",
            details={"count": len(bad_dates), "sample": bad_dates[:DETAIL_SAMPLE]},
        ))

    bad_amounts = []
    for txn in transactions:
        reason = _invalid_amount_reason(txn.get("amount"))
        if reason:
            bad_amounts.append({"id": txn.get("id"), "amount": repr(txn.get("amount")), "issue": reason})
    if bad_amounts:
        issues.append(IntegrityIssue(
            type=Severity.CRITICAL,
            category=IssueCategory.INVALID_AMOUNT,
            message=f"{len(bad_amounts)} transactions with invalid amounts",
            details={"count": len(bad_amounts), "sample": bad_amounts[:DETAIL_SAMPLE]},
        ))

    groups = find_duplicate_groups(transactions)
    if groups:
        total = sum(len(group.transaction_ids) for group in groups)
        issues.append(IntegrityIssue(
            type=Severity.WARNING,
            category=IssueCategory.DUPLICATE_TRANSACTION,
            message=f"{len(groups)} potential duplicate transaction groups found ({total} total duplicates)",
            details={"groups": len(groups), "total_duplicates": total},
        ))

    large = []
    for txn in transactions:
        amount = parse_finite_amount(txn.get("amount"))
        if amount is not None and abs(amount) > large_threshold:
            large.append({
                "id": txn.get("id"),
                "description": txn.get("description"),
                "amount": float(amount),
                "reason": f"Amount exceeds {large_threshold:,.0f}",
            })
    if large:
        issues.append(IntegrityIssue(
            type=Severity.WARNING,
            category=IssueCategory.LARGE_AMOUNT,
            message=f"{len(large)} transactions with unusually large amounts",
            details={"count": len(large)},
        ))

    known_ids = {str(txn.get("id")) for txn in transactions if txn.get("id")}
    for txn in transactions:
        for label, _ in REFERENCE_FIELDS:
            target = txn.get(label)
            if target and str(target) not in known_ids:
                issues.append(IntegrityIssue(
                    type=Severity.WARNING,
                    category=IssueCategory.ORPHANED_REFERENCE,
                    message=f"{label} '{target}' matches no transaction",
                    transaction_id=txn.get("id"),
                ))

    issues.extend(_consistency_issues(envelope, transactions))

    summary = IntegritySummary(
        total_issues=len(issues),
        critical_issues=sum(1 for i in issues if i.type == Severity.CRITICAL),
        warnings=sum(1 for i in issues if i.type == Severity.WARNING),
        info=sum(1 for i in issues if i.type == Severity.INFO),
    )
    summary.is_healthy = summary.critical_issues == 0

    return IntegrityReport(
        transaction_count=len(transactions),
        account_count=len(accounts) if isinstance(accounts, list) else 0,
        issues=issues,
        orphaned_accounts=orphaned_accounts,
        duplicate_groups=[group.to_dict() for group in groups],
        large_transactions=large,
        summary=summary,
    )


def _consistency_issues(envelope: Mapping[str, Any], transactions: List[Mapping[str, Any]]) -> List[IntegrityIssue]:
    issues = []
    if not envelope.get("version"):
        issues.append(IntegrityIssue(
            type=Severity.WARNING,
            category=IssueCategory.DATA_CONSISTENCY,
            message="Envelope missing version information",
        ))
    if not envelope.get("exportDate"):
        issues.append(IntegrityIssue(
            type=Severity.WARNING,
            category=IssueCategory.DATA_CONSISTENCY,
            message="Envelope missing export date",
        ))

    dates = sorted(d for d in (normalize_date(txn.get("date")) for txn in transactions) if d)
    if dates:
        span = dates[-1].year - dates[0].year
        if span > MAX_SPAN_YEARS:
            issues.append(IntegrityIssue(
                type=Severity.INFO,
                category=IssueCategory.DATA_CONSISTENCY,
                message=f"Transaction date span is {span} years ({dates[0].year}-{dates[-1].year})",
            ))
    return issues
