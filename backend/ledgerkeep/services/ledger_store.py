"""
Ledger store: keyed persistence for every ledger domain over a SQLAlchemy session.

Methods never commit on their own. Callers group writes with ``atomic()`` so a
batch, an envelope import or a backup lands as one store transaction. Every
statement that changes data goes through ``_write``.
"""

import logging
from contextlib import contextmanager
from datetime import datetime
from typing import Any, Dict, Iterator, List, Mapping, Optional, Sequence

from sqlalchemy import delete, func, insert, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ledgerkeep.errors import StorageFailure
from ledgerkeep.models.account import Account
from ledgerkeep.models.backup import BackupMetadata, BackupPayload
from ledgerkeep.models.budget import Budget
from ledgerkeep.models.category import Category
from ledgerkeep.models.history import TransactionHistory
from ledgerkeep.models.ledger_extra import ExtraDomain, LedgerExtra
from ledgerkeep.models.preferences import UserPreferences
from ledgerkeep.models.rule import CategoryRule
from ledgerkeep.models.transaction import Transaction
from ledgerkeep.schemas.transaction import CanonicalTransaction
from ledgerkeep.services.deduplication_service import generate_transaction_hash
from ledgerkeep.services.rules_service import Rule

logger = logging.getLogger(__name__)


PREFERENCES_ID = 1


def transaction_row(txn: CanonicalTransaction, now: Optional[datetime] = None) -> Dict[str, Any]:
    """Column values for a canonical transaction, lifecycle timestamps defaulted."""
    now = now or datetime.utcnow()
    row = txn.model_dump()
    row["added_date"] = row.get("added_date") or now
    row["last_modified_date"] = row.get("last_modified_date") or row["added_date"]
    if row["last_modified_date"] < row["added_date"]:
        row["last_modified_date"] = row["added_date"]
    row["signature"] = generate_transaction_hash(txn.date, txn.amount, txn.description)
    return row


def transaction_snapshot(model: Transaction) -> Dict[str, Any]:
    return CanonicalTransaction.model_validate(model).to_export()


class LedgerStore:
    """Repository over one session."""

    def __init__(self, db: Session):
        self.db = db

    def _write(self, statement, params: Optional[Sequence[Mapping[str, Any]]] = None):
        if params is None:
            return self.db.execute(statement)
        return self.db.execute(statement, list(params))

    @contextmanager
    def atomic(self) -> Iterator["LedgerStore"]:
        """Commit everything written inside the block, or nothing."""
        try:
            yield self
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Store transaction rolled back: {e}")
            raise StorageFailure(str(e)) from e
        except BaseException:
            self.db.rollback()
            raise

    # Transactions

    def get_transaction(self, transaction_id: str) -> Optional[Transaction]:
        return self.db.query(Transaction).filter(Transaction.id == transaction_id).first()

    def list_transactions(self) -> List[Transaction]:
        return self.db.query(Transaction).order_by(Transaction.date, Transaction.added_date).all()

    def count_transactions(self) -> int:
        return self.db.query(func.count(Transaction.id)).scalar() or 0

    def existing_transaction_ids(self, ids: Sequence[str]) -> set:
        if not ids:
            return set()
        rows = self.db.query(Transaction.id).filter(Transaction.id.in_(list(ids))).all()
        return {row[0] for row in rows}

    def put_transaction(
        self,
        txn: CanonicalTransaction,
        note: Optional[str] = None,
        skip_history: bool = False
    ) -> None:
        """Insert or replace one transaction by id."""
        row = transaction_row(txn)
        if self.get_transaction(txn.id) is not None:
            row["last_modified_date"] = datetime.utcnow()
            self._write(update(Transaction), [row])
        else:
            self._write(insert(Transaction), [row])

        if not skip_history:
            self.db.expire_all()
            self._add_history_for([txn.id], note)

    def bulk_add_transactions(
        self,
        txns: Sequence[CanonicalTransaction],
        skip_history: bool = False,
        note: Optional[str] = None
    ) -> int:
        """Insert all transactions with a single write call."""
        if not txns:
            return 0
        now = datetime.utcnow()
        rows = [transaction_row(txn, now) for txn in txns]
        self._write(insert(Transaction), rows)

        if not skip_history:
            self._write(insert(TransactionHistory), [
                {
                    "transaction_id": row["id"],
                    "timestamp": now,
                    "data": txn.to_export(),
                    "note": note,
                }
                for row, txn in zip(rows, txns)
            ])
        return len(rows)

    def bulk_update_transactions(
        self,
        changes: Sequence[Mapping[str, Any]],
        skip_history: bool = False,
        note: Optional[str] = None
    ) -> int:
        """
        Apply per-record column changes; each mapping carries the ``id``.

        All K updates go out as one write call, plus one for history unless
        ``skip_history`` is set.
        """
        if not changes:
            return 0
        now = datetime.utcnow()
        rows = [dict(change, last_modified_date=now) for change in changes]
        self._write(update(Transaction), rows)

        if not skip_history:
            self.db.expire_all()
            self._add_history_for([row["id"] for row in rows], note)
        return len(rows)

    def delete_transaction(self, transaction_id: str, skip_history: bool = False) -> bool:
        existing = self.get_transaction(transaction_id)
        if existing is None:
            return False
        if not skip_history:
            self._write(insert(TransactionHistory), [{
                "transaction_id": transaction_id,
                "timestamp": datetime.utcnow(),
                "data": transaction_snapshot(existing),
                "note": "Deleted",
            }])
        self._write(delete(Transaction).where(Transaction.id == transaction_id))
        return True

    def clear_transactions(self) -> None:
        self._write(delete(Transaction))

    # History

    def _add_history_for(self, transaction_ids: Sequence[str], note: Optional[str]) -> None:
        models = self.db.query(Transaction).filter(Transaction.id.in_(list(transaction_ids))).all()
        if not models:
            return
        now = datetime.utcnow()
        self._write(insert(TransactionHistory), [
            {
                "transaction_id": model.id,
                "timestamp": now,
                "data": transaction_snapshot(model),
                "note": note,
            }
            for model in models
        ])

    def list_history(self, transaction_id: Optional[str] = None) -> List[TransactionHistory]:
        query = self.db.query(TransactionHistory)
        if transaction_id:
            query = query.filter(TransactionHistory.transaction_id == transaction_id)
        return query.order_by(TransactionHistory.timestamp).all()

    def count_history(self) -> int:
        return self.db.query(func.count(TransactionHistory.id)).scalar() or 0

    def replace_history(self, entries: Sequence[Mapping[str, Any]]) -> int:
        self._write(delete(TransactionHistory))
        if entries:
            self._write(insert(TransactionHistory), entries)
        return len(entries)

    # Accounts

    def list_accounts(self) -> List[Account]:
        return self.db.query(Account).order_by(Account.name).all()

    def count_accounts(self) -> int:
        return self.db.query(func.count(Account.id)).scalar() or 0

    def get_account(self, account_id: str) -> Optional[Account]:
        return self.db.query(Account).filter(Account.id == account_id).first()

    def add_account(self, columns: Mapping[str, Any]) -> None:
        self._write(insert(Account), [columns])

    def replace_accounts(self, rows: Sequence[Mapping[str, Any]]) -> int:
        self._write(delete(Account))
        if rows:
            self._write(insert(Account), rows)
        return len(rows)

    # Categories, budgets, rules

    def list_categories(self) -> List[Dict[str, Any]]:
        return [c.data for c in self.db.query(Category).order_by(Category.created_at).all()]

    def replace_categories(self, documents: Sequence[Mapping[str, Any]]) -> int:
        self._write(delete(Category))
        if documents:
            self._write(insert(Category), [
                {"id": str(doc["id"]), "name": doc.get("name") or "", "type": doc.get("type"), "data": dict(doc)}
                for doc in documents
            ])
        return len(documents)

    def list_budgets(self) -> List[Dict[str, Any]]:
        return [b.data for b in self.db.query(Budget).order_by(Budget.created_at).all()]

    def replace_budgets(self, documents: Sequence[Mapping[str, Any]]) -> int:
        self._write(delete(Budget))
        if documents:
            self._write(insert(Budget), [{"id": str(doc["id"]), "data": dict(doc)} for doc in documents])
        return len(documents)

    def list_rules(self) -> List[CategoryRule]:
        return self.db.query(CategoryRule).order_by(CategoryRule.priority, CategoryRule.created_date).all()

    def add_rules(self, rules: Sequence[Rule]) -> int:
        if not rules:
            return 0
        now = datetime.utcnow()
        rows = []
        for rule in rules:
            doc = rule.to_document()
            rows.append({
                "id": rule.id,
                "name": rule.name,
                "description": rule.description,
                "is_active": rule.is_active,
                "priority": rule.priority,
                "conditions": doc["conditions"],
                "action": doc["action"],
                "created_date": now,
                "last_modified_date": now,
            })
        self._write(insert(CategoryRule), rows)
        return len(rows)

    def replace_rules(self, rules: Sequence[Rule]) -> int:
        self._write(delete(CategoryRule))
        return self.add_rules(rules)

    # Preferences and opaque domains

    def get_preferences(self) -> Optional[Dict[str, Any]]:
        prefs = self.db.query(UserPreferences).filter(UserPreferences.id == PREFERENCES_ID).first()
        return prefs.data if prefs else None

    def put_preferences(self, data: Optional[Mapping[str, Any]]) -> None:
        self._write(delete(UserPreferences))
        if data is not None:
            self._write(insert(UserPreferences), [{"id": PREFERENCES_ID, "data": dict(data)}])

    def get_extra(self, domain: ExtraDomain) -> List[Any]:
        extra = self.db.query(LedgerExtra).filter(LedgerExtra.domain == domain).first()
        return list(extra.payload) if extra else []

    def put_extra(self, domain: ExtraDomain, payload: Sequence[Any]) -> int:
        self._write(delete(LedgerExtra).where(LedgerExtra.domain == domain))
        self._write(insert(LedgerExtra), [{"domain": domain, "payload": list(payload), "updated_at": datetime.utcnow()}])
        return len(payload)

    # Backups

    def add_backup(self, metadata: Mapping[str, Any], payload: str) -> None:
        """Payload first, then metadata; listing only ever sees complete backups."""
        self._write(insert(BackupPayload), [{"id": metadata["id"], "data": payload}])
        self._write(insert(BackupMetadata), [metadata])

    def list_backups(self) -> List[BackupMetadata]:
        return self.db.query(BackupMetadata).order_by(BackupMetadata.timestamp.desc()).all()

    def get_backup_metadata(self, backup_id: str) -> Optional[BackupMetadata]:
        return self.db.query(BackupMetadata).filter(BackupMetadata.id == backup_id).first()

    def get_backup_payload(self, backup_id: str) -> Optional[str]:
        payload = self.db.query(BackupPayload).filter(BackupPayload.id == backup_id).first()
        return payload.data if payload else None

    def latest_backup(self) -> Optional[BackupMetadata]:
        return self.db.query(BackupMetadata).order_by(BackupMetadata.timestamp.desc()).first()

    def delete_backup(self, backup_id: str) -> None:
        self._write(delete(BackupMetadata).where(BackupMetadata.id == backup_id))
        self._write(delete(BackupPayload).where(BackupPayload.id == backup_id))
