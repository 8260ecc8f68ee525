"""
Database models package.
"""

from ledgerkeep.models.account import Account, AccountType
from ledgerkeep.models.backup import BackupCreator, BackupMetadata, BackupPayload
from ledgerkeep.models.budget import Budget
from ledgerkeep.models.category import Category
from ledgerkeep.models.history import TransactionHistory
from ledgerkeep.models.import_log import ImportLog, ImportStatus
from ledgerkeep.models.ledger_extra import ExtraDomain, LedgerExtra
from ledgerkeep.models.preferences import UserPreferences
from ledgerkeep.models.rule import CategoryRule, AUTO_RULE_PRIORITY, MANUAL_RULE_PRIORITY
from ledgerkeep.models.transaction import Transaction, TransactionType

__all__ = [
    "Account",
    "AccountType",
    "BackupCreator",
    "BackupMetadata",
    "BackupPayload",
    "Budget",
    "Category",
    "TransactionHistory",
    "ImportLog",
    "ImportStatus",
    "ExtraDomain",
    "LedgerExtra",
    "UserPreferences",
    "CategoryRule",
    "AUTO_RULE_PRIORITY",
    "MANUAL_RULE_PRIORITY",
    "Transaction",
    "TransactionType",
]
