"""
Deduplication service for transactions.

Duplicates are advisory: this module only reports groups and matches, the
caller decides whether to skip, keep or merge.
"""

import hashlib
from collections import OrderedDict
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from ledgerkeep.config import settings
from ledgerkeep.models.transaction import Transaction
from ledgerkeep.services.normalizer import description_key, normalize_date, parse_finite_amount


CENT = Decimal("0.01")

# Keeps IN (...) lists under SQLite's bound parameter limit
LOOKUP_CHUNK = 500

Signature = Tuple[str, str, str]


@dataclass
class DuplicateGroup:
    signature: Signature
    transaction_ids: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        txn_date, amount, description = self.signature
        return {
            "date": txn_date,
            "amount": float(amount) if amount else None,
            "description_prefix": description,
            "transaction_ids": self.transaction_ids,
        }


def _value(txn: Any, name: str) -> Any:
    if isinstance(txn, dict):
        return txn.get(name)
    return getattr(txn, name, None)


def duplicate_signature(
    txn_date: Any,
    amount: Any,
    description: str,
    prefix_length: Optional[int] = None
) -> Signature:
    """(ISO date, amount to the cent, leading chars of the normalized description)"""
    if prefix_length is None:
        prefix_length = settings.duplicate_description_prefix

    parsed_date = normalize_date(txn_date)
    parsed_amount = parse_finite_amount(amount)

    amount_text = ""
    if parsed_amount is not None:
        cents = parsed_amount.quantize(CENT, rounding=ROUND_HALF_UP)
        if cents == 0:
            cents = Decimal("0.00")
        amount_text = str(cents)

    return (
        parsed_date.isoformat() if parsed_date else "",
        amount_text,
        description_key(description)[:prefix_length],
    )


def generate_transaction_hash(
    txn_date: date,
    amount: Decimal,
    description: str,
    prefix_length: Optional[int] = None
) -> str:
    """
    Generate SHA256 hash of the duplicate signature.
    Uses date|amount|description prefix
    """
    combined = "|".join(duplicate_signature(txn_date, amount, description, prefix_length))
    return hashlib.sha256(combined.encode()).hexdigest()


def find_duplicate_groups(
    transactions: Iterable[Any],
    prefix_length: Optional[int] = None
) -> List[DuplicateGroup]:
    """Group transactions sharing a signature; only groups of two or more are returned."""
    groups: "OrderedDict[Signature, DuplicateGroup]" = OrderedDict()
    for txn in transactions:
        signature = duplicate_signature(
            _value(txn, "date"), _value(txn, "amount"), _value(txn, "description") or "", prefix_length
        )
        group = groups.setdefault(signature, DuplicateGroup(signature))
        group.transaction_ids.append(_value(txn, "id"))

    return [group for group in groups.values() if len(group.transaction_ids) >= 2]


def find_existing_duplicates(
    db: Session,
    candidates: Sequence[Any],
    prefix_length: Optional[int] = None
) -> Dict[int, List[str]]:
    """
    Match candidates against stored transactions by signature hash.

    Returns candidate position -> ids of stored transactions with the same signature.
    """
    hashes = [
        generate_transaction_hash(
            _value(txn, "date"), _value(txn, "amount"), _value(txn, "description") or "", prefix_length
        )
        for txn in candidates
    ]

    stored: Dict[str, List[str]] = {}
    unique = list(dict.fromkeys(hashes))
    for start in range(0, len(unique), LOOKUP_CHUNK):
        chunk = unique[start:start + LOOKUP_CHUNK]
        rows = db.query(Transaction.id, Transaction.signature).filter(
            Transaction.signature.in_(chunk)
        ).all()
        for txn_id, signature in rows:
            stored.setdefault(signature, []).append(txn_id)

    return {
        position: stored[txn_hash]
        for position, txn_hash in enumerate(hashes)
        if txn_hash in stored
    }


def find_stored_duplicate_groups(db: Session) -> List[DuplicateGroup]:
    """Duplicate groups among stored transactions, via the persisted signature."""
    duplicated = (
        db.query(Transaction.signature)
        .group_by(Transaction.signature)
        .having(func.count(Transaction.id) > 1)
        .subquery()
    )
    rows = (
        db.query(Transaction)
        .filter(Transaction.signature.in_(select(duplicated.c.signature)))
        .order_by(Transaction.date.desc(), Transaction.added_date)
        .all()
    )
    return find_duplicate_groups(rows)
