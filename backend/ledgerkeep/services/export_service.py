"""
Export and import of the complete ledger as a versioned JSON envelope.
"""

import logging
from datetime import datetime
from typing import Any, Dict, List, Mapping, Optional

from pydantic import ValidationError
from sqlalchemy.orm import Session

from ledgerkeep import __version__
from ledgerkeep.errors import InvalidEnvelopeFormat, RowValidationSkipped
from ledgerkeep.models.history import TransactionHistory
from ledgerkeep.models.ledger_extra import ExtraDomain
from ledgerkeep.schemas.account import AccountDocument
from ledgerkeep.schemas.data import ImportFlags, ImportResult
from ledgerkeep.schemas.transaction import CanonicalTransaction
from ledgerkeep.services.integrity_service import (
    AccountResolver,
    dangling_reference_warnings,
    validate_transaction_row,
)
from ledgerkeep.services.ledger_store import LedgerStore, transaction_snapshot
from ledgerkeep.services.normalizer import parse_timestamp
from ledgerkeep.services.rules_service import Rule
from ledgerkeep.services.schema_migrations import SCHEMA_VERSION, migrate_envelope

logger = logging.getLogger(__name__)


ARRAY_DOMAINS = (
    "transactions",
    "transactionHistory",
    "accounts",
    "categories",
    "budgets",
    "rules",
    "balanceHistory",
    "currencyRates",
    "transferMatches",
)

EXTRA_DOMAINS = {
    "balanceHistory": ("balance_history", ExtraDomain.balance_history),
    "currencyRates": ("currency_rates", ExtraDomain.currency_rates),
    "transferMatches": ("transfer_matches", ExtraDomain.transfer_matches),
}


def history_document(entry: TransactionHistory) -> Dict[str, Any]:
    doc = {
        "id": entry.id,
        "transactionId": entry.transaction_id,
        "timestamp": entry.timestamp.isoformat(),
        "data": entry.data,
    }
    if entry.note:
        doc["note"] = entry.note
    return doc


def export_data(db: Session) -> Dict[str, Any]:
    """Serialize every ledger domain into a current-version envelope."""
    store = LedgerStore(db)

    envelope = {
        "version": SCHEMA_VERSION,
        "exportDate": datetime.utcnow().isoformat() + "Z",
        "appVersion": __version__,
        "transactions": [transaction_snapshot(t) for t in store.list_transactions()],
        "preferences": store.get_preferences(),
        "transactionHistory": [history_document(h) for h in store.list_history()],
        "accounts": [AccountDocument.from_model(a).to_export() for a in store.list_accounts()],
        "categories": store.list_categories(),
        "budgets": store.list_budgets(),
        "rules": [Rule.from_model(r).to_document() for r in store.list_rules()],
    }
    for key, (_, domain) in EXTRA_DOMAINS.items():
        envelope[key] = store.get_extra(domain)

    logger.info(f"Exported {len(envelope['transactions'])} transactions")
    return envelope


def check_envelope_shape(envelope: Any) -> None:
    """Reject structurally invalid envelopes before anything is read or written."""
    if not isinstance(envelope, Mapping):
        raise InvalidEnvelopeFormat("Import data must be a JSON object")

    problems = []
    if "version" not in envelope:
        problems.append("missing 'version'")
    elif not isinstance(envelope["version"], str):
        problems.append("'version' must be a string")

    if "transactions" not in envelope:
        problems.append("missing 'transactions'")
    elif not isinstance(envelope["transactions"], list):
        problems.append("'transactions' must be an array")

    for key in ARRAY_DOMAINS[1:]:
        value = envelope.get(key)
        if value is not None and not isinstance(value, list):
            problems.append(f"'{key}' must be an array")

    preferences = envelope.get("preferences")
    if preferences is not None and not isinstance(preferences, Mapping):
        problems.append("'preferences' must be an object or null")

    if problems:
        raise InvalidEnvelopeFormat(f"Invalid export envelope: {'; '.join(problems)}", problems)


def _prepare_accounts(documents: List[Any], result: ImportResult) -> List[AccountDocument]:
    accounts = []
    seen = set()
    for index, doc in enumerate(documents):
        try:
            account = AccountDocument.model_validate(doc)
        except ValidationError as e:
            result.warnings.append(f"Account {index} skipped: {e.errors()[0].get('msg')}")
            continue
        if account.id in seen:
            result.warnings.append(f"Account {account.id} appears twice; later copy skipped")
            continue
        seen.add(account.id)
        accounts.append(account)
    return accounts


def _prepare_transactions(
    rows: List[Any],
    resolver: AccountResolver,
    result: ImportResult
) -> List[CanonicalTransaction]:
    valid: List[CanonicalTransaction] = []
    seen = set()
    for index, row in enumerate(rows):
        try:
            txn, warnings = validate_transaction_row(row, index, resolver)
            if txn.id in seen:
                raise RowValidationSkipped(f"Duplicate transaction id '{txn.id}'", index, "id")
        except RowValidationSkipped as skip:
            result.skipped += 1
            result.skipped_rows.append(skip.to_dict())
            continue
        seen.add(txn.id)
        result.warnings.extend(warnings)
        valid.append(txn)

    if rows and not valid:
        raise InvalidEnvelopeFormat("No valid transactions found in import data")

    result.warnings.extend(dangling_reference_warnings(valid))
    return valid


def _prepare_history(entries: List[Any], result: ImportResult) -> List[Dict[str, Any]]:
    rows = []
    seen = set()
    for entry in entries:
        if not isinstance(entry, Mapping) or not entry.get("transactionId") or entry.get("data") is None:
            result.warnings.append("History entry without transactionId or data skipped")
            continue
        row = {
            "transaction_id": str(entry["transactionId"]),
            "timestamp": parse_timestamp(entry.get("timestamp")) or datetime.utcnow(),
            "data": entry["data"],
            "note": entry.get("note"),
        }
        if entry.get("id"):
            row["id"] = str(entry["id"])
            if row["id"] in seen:
                result.warnings.append(f"History entry {row['id']} appears twice; later copy skipped")
                continue
            seen.add(row["id"])
        rows.append(row)
    return rows


def _prepare_documents(documents: List[Any], domain: str, result: ImportResult) -> List[Mapping[str, Any]]:
    kept = []
    seen = set()
    for doc in documents:
        if not isinstance(doc, Mapping) or doc.get("id") is None:
            result.warnings.append(f"{domain} entry without id skipped")
            continue
        doc_id = str(doc["id"])
        if doc_id in seen:
            result.warnings.append(f"{domain} {doc_id} appears twice; later copy skipped")
            continue
        seen.add(doc_id)
        kept.append(doc)
    return kept


def _prepare_rules(documents: List[Any], result: ImportResult) -> List[Rule]:
    rules = []
    seen = set()
    for doc in documents:
        try:
            rule = Rule.from_document(doc)
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            result.warnings.append(f"Rule skipped: {e}")
            continue
        if rule.id in seen:
            result.warnings.append(f"Rule {rule.id} appears twice; later copy skipped")
            continue
        seen.add(rule.id)
        rules.append(rule)
    return rules


def import_data(
    db: Session,
    envelope: Any,
    flags: Optional[ImportFlags] = None,
    auto_create_accounts: Optional[bool] = None
) -> ImportResult:
    """
    Replace the selected ledger domains with the envelope's contents.

    The envelope is shape-checked and migrated first, then every row is
    validated; nothing is written until all of that succeeded. All writes
    then happen in one store transaction. Domains absent from the envelope
    are left untouched.
    """
    check_envelope_shape(envelope)
    flags = flags or ImportFlags()
    present = {key for key in envelope if envelope.get(key) is not None}

    migrated, migration_warnings = migrate_envelope(envelope)
    store = LedgerStore(db)
    result = ImportResult(warnings=list(migration_warnings))

    replace_accounts = flags.accounts and "accounts" in present
    accounts: List[AccountDocument] = []
    if replace_accounts:
        accounts = _prepare_accounts(migrated["accounts"], result)
        known = [(a.id, a.name) for a in accounts]
    else:
        known = [(a.id, a.name) for a in store.list_accounts()]

    resolver = AccountResolver(known, auto_create_accounts)
    transactions: List[CanonicalTransaction] = []
    if flags.transactions:
        transactions = _prepare_transactions(migrated["transactions"], resolver, result)

    history = []
    if flags.transaction_history and "transactionHistory" in present:
        history = _prepare_history(migrated["transactionHistory"], result)

    categories = budgets = None
    if flags.categories and "categories" in present:
        categories = _prepare_documents(migrated["categories"], "Category", result)
    if flags.budgets and "budgets" in present:
        budgets = _prepare_documents(migrated["budgets"], "Budget", result)

    rules = None
    if flags.rules and "rules" in present:
        rules = _prepare_rules(migrated["rules"], result)

    with store.atomic():
        if replace_accounts:
            rows = [a.to_columns() for a in accounts] + resolver.created
            result.accounts = store.replace_accounts(rows)
        else:
            for row in resolver.created:
                store.add_account(row)
        result.accounts_created = [row["name"] for row in resolver.created]

        if flags.transactions:
            store.clear_transactions()
            result.transactions = store.bulk_add_transactions(transactions, skip_history=True)

        if flags.transaction_history and "transactionHistory" in present:
            result.history_entries = store.replace_history(history)

        if flags.preferences and "preferences" in envelope:
            store.put_preferences(migrated.get("preferences"))
            result.preferences = True

        if categories is not None:
            result.categories = store.replace_categories(categories)
        if budgets is not None:
            result.budgets = store.replace_budgets(budgets)
        if rules is not None:
            result.rules = store.replace_rules(rules)

        for key, (attribute, domain) in EXTRA_DOMAINS.items():
            if getattr(flags, attribute) and key in present:
                setattr(result, attribute, store.put_extra(domain, migrated[key]))

    logger.info(
        f"Imported {result.transactions} transactions "
        f"({result.skipped} skipped, {len(result.warnings)} warnings)"
    )
    return result
