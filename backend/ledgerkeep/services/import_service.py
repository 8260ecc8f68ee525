"""
Import service for file uploads and processing.

Upload: the file is saved to the inbox, its format detected and a preview
returned. Confirm: the file is parsed, normalized, validated and written in
batches of ``settings.import_batch_size``. Each batch is one store
transaction; rules learned from a batch apply from the next batch on.
"""

import logging
import shutil
import threading
import uuid
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Tuple

from sqlalchemy.orm import Session

from ledgerkeep.config import settings
from ledgerkeep.errors import FormatUnrecognized, LedgerError, ParseError, RowValidationSkipped
from ledgerkeep.models.import_log import ImportLog
from ledgerkeep.parsers.base import AccountInfo, ParseResult, is_blank_row, read_csv_rows
from ledgerkeep.parsers.csv_parser import suggest_mapping
from ledgerkeep.parsers.detector import DetectionResult, detect_format, get_parser
from ledgerkeep.parsers.ofx_parser import default_mapping, split_transaction_blocks
from ledgerkeep.schemas.import_file import (
    AccountInfoResponse,
    ColumnMapping,
    ImportConfirmRequest,
    ImportStatus,
    ImportStatusResponse,
    ImportUploadResponse,
)
from ledgerkeep.schemas.transaction import CanonicalTransaction
from ledgerkeep.services import ai_categorizer
from ledgerkeep.services.backup_service import notify_data_change
from ledgerkeep.services.deduplication_service import find_duplicate_groups, find_existing_duplicates
from ledgerkeep.services.integrity_service import AccountResolver, validate_transaction_row
from ledgerkeep.services.ledger_store import LedgerStore
from ledgerkeep.services.normalizer import Classification, classify_description, normalize_record
from ledgerkeep.services.rules_service import RuleSet, load_rule_set, synthesize_rules

logger = logging.getLogger(__name__)


PENDING_IMPORTS: Dict[str, Dict[str, Any]] = {}
CANCEL_TOKENS: Dict[str, threading.Event] = {}

SOURCE_CATEGORY_CONFIDENCE = 0.75


@dataclass
class IngestionOutcome:
    detected_format: Optional[str] = None
    account: Optional[str] = None
    imported: int = 0
    skipped: int = 0
    duplicates_flagged: int = 0
    rules_created: int = 0
    batches_committed: int = 0
    cancelled: bool = False
    account_info: Optional[AccountInfo] = None
    errors: List[Dict[str, Any]] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    rule_set: RuleSet = field(default_factory=RuleSet)


def decode_content(raw: bytes) -> str:
    """UTF-8 with or without a byte order mark."""
    try:
        return raw.decode("utf-8-sig")
    except UnicodeDecodeError as e:
        raise ParseError(f"File is not valid UTF-8: {e}") from e


def save_upload(file_content: bytes, filename: str):
    """Save uploaded file and return path and import_id"""
    import_id = str(uuid.uuid4())

    inbox_path = Path(settings.import_inbox_path)
    inbox_path.mkdir(parents=True, exist_ok=True)

    safe_filename = f"{import_id}_{Path(filename).name}"
    file_path = inbox_path / safe_filename

    with open(file_path, 'wb') as f:
        f.write(file_content)

    return file_path, import_id


def _count_rows(content: str, format_name: Optional[str]) -> int:
    if format_name == "ofx":
        return len(split_transaction_blocks(content))
    try:
        rows = [row for row in read_csv_rows(content) if not is_blank_row(row)]
    except ParseError:
        return 0
    return max(len(rows) - 1, 0)


def get_preview(file_path: Path, import_id: str, filename: str) -> ImportUploadResponse:
    """Detect the format and return a preview for confirmation"""
    with open(file_path, 'rb') as f:
        content = decode_content(f.read())

    detection = detect_format(content, filename)
    format_name = detection.recognized_format or "generic_csv"
    parser = get_parser(format_name)

    try:
        headers, preview_rows = parser.get_preview(content)
    except ParseError:
        headers, preview_rows = [], []

    suggested: Optional[ColumnMapping] = None
    if format_name == "ofx":
        suggested = default_mapping()
    elif format_name == "generic_csv" and headers:
        suggested = suggest_mapping(headers)

    PENDING_IMPORTS[import_id] = {
        'file_path': str(file_path),
        'filename': filename,
        'detected_format': detection.recognized_format,
        'confidence': detection.confidence,
    }

    return ImportUploadResponse(
        import_id=import_id,
        filename=filename,
        row_count=_count_rows(content, format_name),
        headers=headers,
        preview_rows=preview_rows,
        detection=detection.to_response(),
        suggested_mapping=suggested,
    )


def _select_format(
    content: str,
    filename: Optional[str],
    format_name: Optional[str],
    mapping: Optional[ColumnMapping],
    outcome: IngestionOutcome
) -> str:
    if format_name:
        return format_name
    if mapping is not None:
        return "generic_csv"

    detection: DetectionResult = detect_format(content, filename)
    if detection.recognized_format is None:
        raise FormatUnrecognized(
            f"Could not recognize the format of {filename or 'the file'} "
            f"(best confidence {detection.confidence:.0f})",
            detection.confidence,
        )
    if not detection.is_match:
        outcome.warnings.append(
            f"Format '{detection.recognized_format}' detected with low confidence "
            f"({detection.confidence:.0f}); review the imported rows"
        )
    return detection.recognized_format


def _account_name(info: Optional[AccountInfo], filename: Optional[str]) -> str:
    if info is not None:
        name = f"{info.institution} {info.account_type.title()}"
        if info.masked_account_number:
            name = f"{name} ({info.masked_account_number})"
        return name
    if filename:
        return Path(filename).stem
    return "Imported"


def _enrich_created_accounts(resolver: AccountResolver, info: Optional[AccountInfo]) -> None:
    if info is None:
        return
    for account in resolver.created:
        account["institution"] = info.institution
        account["account_type"] = info.account_type if info.account_type in ("checking", "savings", "credit") else "checking"
        account["masked_account_number"] = info.masked_account_number
        if info.balance is not None:
            account["balance"] = info.balance
            account["historical_balance"] = info.balance
            account["historical_balance_date"] = info.balance_date


def _probe(txn: CanonicalTransaction) -> Dict[str, Any]:
    return {"description": txn.description, "amount": txn.amount, "account": txn.account, "date": txn.date}


def classify_batch(
    batch: Sequence[Tuple[CanonicalTransaction, Optional[str]]],
    rule_set: RuleSet,
    use_ai: bool = False,
    category_names: Optional[Sequence[str]] = None
) -> List[Classification]:
    """
    Rules first, then the category the bank supplied, then keywords.

    Rows still uncategorized after that go to the AI categorizer when enabled.
    """
    results: List[Classification] = []
    for txn, source_category in batch:
        rule = rule_set.match(_probe(txn))
        if rule is not None:
            results.append(rule.classification())
        elif source_category:
            results.append(Classification(
                source_category, None, SOURCE_CATEGORY_CONFIDENCE,
                "Category supplied by the export file", "source"
            ))
        else:
            results.append(classify_description(txn.description, txn.type))

    if use_ai:
        pending = [i for i, result in enumerate(results) if result.is_uncategorized]
        if pending:
            answers = ai_categorizer.categorize_batch(
                [_probe(batch[i][0]) for i in pending], category_names
            )
            for i, answer in zip(pending, answers):
                if answer is not None:
                    results[i] = answer

    return results


def _duplicate_positions(db: Session, batch: Sequence[CanonicalTransaction]) -> Dict[int, str]:
    """Position in batch -> why it looks like a duplicate."""
    flagged: Dict[int, str] = {}
    for position, ids in find_existing_duplicates(db, batch).items():
        flagged[position] = f"matches stored transaction {ids[0]}"

    positions = {txn.id: i for i, txn in enumerate(batch)}
    for group in find_duplicate_groups(batch):
        first, *rest = group.transaction_ids
        for txn_id in rest:
            flagged.setdefault(positions[txn_id], f"repeats row with transaction {first}")
    return flagged


def ingest_content(
    db: Session,
    content: str,
    filename: Optional[str] = None,
    account: Optional[str] = None,
    format_name: Optional[str] = None,
    mapping: Optional[ColumnMapping] = None,
    skip_duplicates: bool = False,
    skip_history: bool = True,
    cancel_token: Optional[threading.Event] = None,
    batch_size: Optional[int] = None,
    use_ai: Optional[bool] = None
) -> IngestionOutcome:
    """
    Run one file through detect, parse, normalize, validate and write.

    Raises ``FormatUnrecognized`` or ``ParseError`` before anything is
    written. Batches committed before a cancellation or a later failure stay
    committed.
    """
    batch_size = batch_size or settings.import_batch_size
    use_ai = settings.ai_auto_categorize if use_ai is None else use_ai
    store = LedgerStore(db)
    outcome = IngestionOutcome()

    outcome.detected_format = _select_format(content, filename, format_name, mapping, outcome)
    parsed: ParseResult = get_parser(outcome.detected_format).parse(content, mapping, filename)
    outcome.account_info = parsed.account_info

    date_format = mapping.date_format if mapping is not None and mapping.date_format else parsed.date_format
    outcome.account = account or _account_name(parsed.account_info, filename)

    resolver = AccountResolver([(a.id, a.name) for a in store.list_accounts()])

    valid: List[Tuple[CanonicalTransaction, Optional[str]]] = []
    for position, raw in enumerate(parsed.transactions, start=1):
        row_index = raw.get("row_index", position)
        record = normalize_record(raw, outcome.account, date_format)
        try:
            txn, warnings = validate_transaction_row(record, row_index, resolver, assign_id=True)
        except RowValidationSkipped as skip:
            outcome.skipped += 1
            outcome.errors.append(skip.to_dict())
            continue
        outcome.warnings.extend(warnings)
        valid.append((txn, record.get("source_category")))

    _enrich_created_accounts(resolver, parsed.account_info)
    pending_accounts = list(resolver.created)

    rule_set = load_rule_set(db)
    category_names = [c.get("name") for c in store.list_categories() if c.get("name")] or None
    note = f"Imported from {filename}" if filename else "Imported"

    for start in range(0, len(valid), batch_size):
        if cancel_token is not None and cancel_token.is_set():
            outcome.cancelled = True
            logger.info(f"Import cancelled after {outcome.batches_committed} batches")
            break

        batch = valid[start:start + batch_size]
        classifications = classify_batch(batch, rule_set, use_ai, category_names)
        classified = [
            txn.model_copy(update={
                "category": c.category,
                "subcategory": c.subcategory,
                "confidence": c.confidence,
                "reasoning": c.reasoning,
            })
            for (txn, _), c in zip(batch, classifications)
        ]

        flagged = _duplicate_positions(db, classified)
        outcome.duplicates_flagged += len(flagged)
        for position, reason in sorted(flagged.items()):
            outcome.warnings.append(f"Possible duplicate: '{classified[position].description}' {reason}")

        to_write = [txn for i, txn in enumerate(classified) if not (skip_duplicates and i in flagged)]
        new_rules = synthesize_rules(
            [(_probe(txn), c) for txn, c in zip(classified, classifications)],
            rule_set,
            settings.auto_rule_min_confidence,
        )

        with store.atomic():
            for row in pending_accounts:
                store.add_account(row)
            store.bulk_add_transactions(to_write, skip_history=skip_history, note=note)
            store.add_rules(new_rules)
        pending_accounts = []

        rule_set = rule_set.with_rules(new_rules)
        outcome.imported += len(to_write)
        outcome.skipped += len(classified) - len(to_write)
        outcome.rules_created += len(new_rules)
        outcome.batches_committed += 1

    if pending_accounts and not outcome.cancelled:
        with store.atomic():
            for row in pending_accounts:
                store.add_account(row)

    outcome.rule_set = rule_set
    logger.info(
        f"Ingested {outcome.imported} transactions from {filename or 'content'} "
        f"in {outcome.batches_committed} batches ({outcome.skipped} skipped, "
        f"{outcome.duplicates_flagged} possible duplicates)"
    )
    return outcome


def _status_response(import_id: str, filename: str, status: ImportStatus, outcome: IngestionOutcome) -> ImportStatusResponse:
    info = outcome.account_info
    return ImportStatusResponse(
        import_id=import_id,
        status=status,
        filename=filename,
        detected_format=outcome.detected_format,
        transactions_imported=outcome.imported,
        transactions_skipped=outcome.skipped,
        duplicates_flagged=outcome.duplicates_flagged,
        rules_created=outcome.rules_created,
        batches_committed=outcome.batches_committed,
        account_info=AccountInfoResponse(**info.to_dict()) if info else None,
        errors=outcome.errors,
        warnings=outcome.warnings,
    )


def cancel_import(import_id: str) -> bool:
    """Ask a running import to stop at the next batch boundary."""
    token = CANCEL_TOKENS.get(import_id)
    if token is None:
        return False
    token.set()
    return True


def process_import(
    db: Session,
    import_id: str,
    request: ImportConfirmRequest
) -> ImportStatusResponse:

    if import_id not in PENDING_IMPORTS:
        raise ValueError(f"Import {import_id} not found or expired")

    pending = PENDING_IMPORTS[import_id]
    file_path = Path(pending['file_path'])
    filename = pending['filename']

    import_log = ImportLog(
        id=import_id,
        filename=filename,
        account_id=request.account_id,
        detected_format=request.format or pending.get('detected_format'),
        status=ImportStatus.processing
    )
    db.add(import_log)
    db.commit()

    token = CANCEL_TOKENS.setdefault(import_id, threading.Event())

    try:
        with open(file_path, 'rb') as f:
            content = decode_content(f.read())

        outcome = ingest_content(
            db,
            content,
            filename=filename,
            account=request.account_id,
            format_name=request.format,
            mapping=request.column_mapping,
            skip_duplicates=request.skip_duplicates,
            skip_history=request.skip_history,
            cancel_token=token,
        )

        status = ImportStatus.cancelled if outcome.cancelled else ImportStatus.completed
        import_log.status = status
        import_log.account_id = outcome.account
        import_log.detected_format = outcome.detected_format
        import_log.transactions_imported = outcome.imported
        import_log.transactions_skipped = outcome.skipped
        import_log.duplicates_flagged = outcome.duplicates_flagged
        if outcome.errors:
            import_log.error_message = "; ".join(
                f"row {e['row']}: {e['reason']}" for e in outcome.errors[:10]
            )
        db.commit()

        processed_path = Path(settings.import_processed_path)
        processed_path.mkdir(parents=True, exist_ok=True)
        shutil.move(str(file_path), str(processed_path / file_path.name))

        del PENDING_IMPORTS[import_id]

        if outcome.imported:
            notify_data_change(db)

        return _status_response(import_id, filename, status, outcome)

    except (LedgerError, OSError, ValueError) as e:
        db.rollback()
        import_log.status = ImportStatus.failed
        import_log.error_message = str(e)
        db.commit()
        logger.error(f"Import {import_id} failed: {e}")

        failed_path = Path(settings.import_failed_path)
        failed_path.mkdir(parents=True, exist_ok=True)
        if file_path.exists():
            shutil.move(str(file_path), str(failed_path / file_path.name))

        if import_id in PENDING_IMPORTS:
            del PENDING_IMPORTS[import_id]

        raise
    finally:
        CANCEL_TOKENS.pop(import_id, None)


def get_import_status(db: Session, import_id: str) -> ImportStatusResponse:
    """Get status of an import"""
    import_log = db.query(ImportLog).filter(ImportLog.id == import_id).first()
    if not import_log:
        raise ValueError(f"Import {import_id} not found")

    return ImportStatusResponse(
        import_id=import_log.id,
        status=import_log.status,
        filename=import_log.filename,
        detected_format=import_log.detected_format,
        transactions_imported=import_log.transactions_imported or 0,
        transactions_skipped=import_log.transactions_skipped or 0,
        duplicates_flagged=import_log.duplicates_flagged or 0,
        errors=[import_log.error_message] if import_log.error_message else []
    )


def get_import_history(db: Session, limit: int = 20) -> List[ImportLog]:
    """Most recent imports first"""
    return db.query(ImportLog).order_by(ImportLog.created_at.desc()).limit(limit).all()
