"""
Export envelope, import flags and import result schemas.
"""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class ImportFlags(BaseModel):
    """Which envelope domains an import replaces; every domain defaults to on."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    transactions: bool = True
    accounts: bool = True
    categories: bool = True
    budgets: bool = True
    rules: bool = True
    preferences: bool = True
    transaction_history: bool = True
    balance_history: bool = True
    currency_rates: bool = True
    transfer_matches: bool = True


class ImportResult(BaseModel):
    transactions: int = 0
    preferences: bool = False
    history_entries: int = 0
    skipped: int = 0
    accounts: Optional[int] = None
    categories: Optional[int] = None
    budgets: Optional[int] = None
    rules: Optional[int] = None
    balance_history: Optional[int] = None
    currency_rates: Optional[int] = None
    transfer_matches: Optional[int] = None
    accounts_created: List[str] = []
    skipped_rows: List[Dict[str, Any]] = []
    warnings: List[str] = []
    reload_required: bool = False


class DataImportRequest(BaseModel):
    envelope: Dict[str, Any]
    flags: ImportFlags = Field(default_factory=ImportFlags)
