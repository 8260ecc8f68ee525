"""
Schema evolution for export envelopes.

Each ``SchemaMigration`` lifts an envelope from one version to the next by
filling defaults and renaming keys. ``migrate_envelope`` walks the table from
the envelope's version up to ``SCHEMA_VERSION``. Migrations work on copies;
the caller's envelope is never modified.
"""

import copy
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple

logger = logging.getLogger(__name__)


SCHEMA_VERSION = "1.2"
BASE_VERSION = "1.0"


@dataclass(frozen=True)
class SchemaMigration:
    from_version: str
    to_version: str
    description: str
    transaction_defaults: Dict[str, Any] = field(default_factory=dict)
    envelope_defaults: Dict[str, Any] = field(default_factory=dict)
    transaction_renames: Dict[str, str] = field(default_factory=dict)

    def apply(self, envelope: Dict[str, Any]) -> None:
        for key, default in self.envelope_defaults.items():
            if envelope.get(key) is None:
                envelope[key] = copy.deepcopy(default)

        for txn in envelope.get("transactions") or []:
            if not isinstance(txn, dict):
                continue
            for old, new in self.transaction_renames.items():
                if old in txn and new not in txn:
                    txn[new] = txn.pop(old)
            for key, default in self.transaction_defaults.items():
                if key not in txn:
                    txn[key] = copy.deepcopy(default)


MIGRATIONS: Tuple[SchemaMigration, ...] = (
    SchemaMigration(
        from_version="1.0",
        to_version="1.1",
        description="Verification flag and tags on transactions; accounts, categories, rules and budgets exported",
        transaction_defaults={"isVerified": False, "tags": []},
        envelope_defaults={"accounts": [], "categories": [], "rules": [], "budgets": []},
    ),
    SchemaMigration(
        from_version="1.1",
        to_version="1.2",
        description="Balance history, currency rates and transfer matches exported; transfer links renamed",
        envelope_defaults={"balanceHistory": [], "currencyRates": [], "transferMatches": []},
        transaction_renames={"transferMatchId": "transferId"},
    ),
)


def parse_version(version: str) -> Tuple[int, ...]:
    parts = []
    for part in str(version).split("."):
        digits = "".join(ch for ch in part if ch.isdigit())
        parts.append(int(digits) if digits else 0)
    return tuple(parts)


def _fill_lifecycle(envelope: Dict[str, Any], now: str) -> None:
    for txn in envelope.get("transactions") or []:
        if not isinstance(txn, dict):
            continue
        if not txn.get("addedDate"):
            txn["addedDate"] = now
        if not txn.get("lastModifiedDate"):
            txn["lastModifiedDate"] = txn["addedDate"]


def migrate_envelope(
    envelope: Mapping[str, Any],
    migrations: Tuple[SchemaMigration, ...] = MIGRATIONS,
    now: Optional[datetime] = None
) -> Tuple[Dict[str, Any], List[str]]:
    """
    Bring an envelope up to the current schema version.

    Returns the migrated copy and a list of warnings. Versions newer than
    ``SCHEMA_VERSION`` are accepted as they are: unknown fields are ignored
    downstream.
    """
    migrated = copy.deepcopy(dict(envelope))
    warnings: List[str] = []
    version = str(migrated.get("version") or BASE_VERSION)

    if parse_version(version) > parse_version(SCHEMA_VERSION):
        message = f"Envelope version {version} is newer than supported {SCHEMA_VERSION}; unknown fields are ignored"
        logger.warning(message)
        warnings.append(message)
    else:
        steps: List[Callable[[Dict[str, Any]], None]] = []
        for migration in migrations:
            if parse_version(migration.from_version) >= parse_version(version):
                steps.append(migration.apply)
                logger.info(
                    f"Migrating envelope {migration.from_version} -> {migration.to_version}: "
                    f"{migration.description}"
                )
        for step in steps:
            step(migrated)
        migrated["version"] = SCHEMA_VERSION

    _fill_lifecycle(migrated, (now or datetime.utcnow()).isoformat())
    return migrated, warnings
