"""
Transaction schemas.

``CanonicalTransaction`` is the format-independent shape every component reads
and writes. It speaks the envelope's camelCase keys through aliases and keeps
python attribute names snake_case.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

from ledgerkeep.models.transaction import TransactionType
from ledgerkeep.services.normalizer import normalize_date, parse_finite_amount, parse_timestamp


class CanonicalTransaction(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
        from_attributes=True,
    )

    id: str = Field(..., min_length=1)
    date: date
    description: str = Field(..., min_length=1)
    amount: Decimal
    category: str = "Uncategorized"
    subcategory: Optional[str] = None
    account: str = Field(..., min_length=1)
    type: TransactionType
    is_verified: bool = False
    confidence: Optional[float] = None
    reasoning: Optional[str] = None
    notes: Optional[str] = None
    vendor: Optional[str] = None
    tags: Optional[List[str]] = None
    is_recurring: bool = False
    original_text: Optional[str] = None
    reimbursed: bool = False
    reimbursement_id: Optional[str] = None
    transfer_id: Optional[str] = None
    original_currency: Optional[str] = None
    exchange_rate: Optional[float] = None
    added_date: Optional[datetime] = None
    last_modified_date: Optional[datetime] = None

    @field_validator("date", mode="before")
    @classmethod
    def _coerce_date(cls, value: Any) -> date:
        parsed = normalize_date(value)
        if parsed is None:
            raise ValueError(f"invalid calendar date: {value!r}")
        return parsed

    @field_validator("amount", mode="before")
    @classmethod
    def _coerce_amount(cls, value: Any) -> Decimal:
        amount = parse_finite_amount(value)
        if amount is None:
            raise ValueError(f"amount is not a finite number: {value!r}")
        return amount

    @field_validator("description", "account", mode="before")
    @classmethod
    def _strip_text(cls, value: Any) -> Any:
        return value.strip() if isinstance(value, str) else value

    @field_validator("category", mode="before")
    @classmethod
    def _default_category(cls, value: Any) -> Any:
        return value or "Uncategorized"

    @field_validator("confidence", mode="before")
    @classmethod
    def _bounded_confidence(cls, value: Any) -> Optional[float]:
        # Classifier metadata is advisory; an out-of-range score is dropped, not fatal
        score = parse_finite_amount(value)
        if score is None or not 0 <= score <= 1:
            return None
        return float(score)

    @field_validator("added_date", "last_modified_date", mode="before")
    @classmethod
    def _coerce_timestamp(cls, value: Any) -> Optional[datetime]:
        if value is None or value == "":
            return None
        parsed = parse_timestamp(value)
        if parsed is None:
            raise ValueError(f"invalid timestamp: {value!r}")
        return parsed

    @model_validator(mode="after")
    def _ordered_lifecycle(self) -> "CanonicalTransaction":
        if self.added_date and self.last_modified_date and self.last_modified_date < self.added_date:
            self.last_modified_date = self.added_date
        return self

    def to_export(self) -> dict:
        """Envelope representation: camelCase keys, ISO dates, numeric amount."""
        data = self.model_dump(by_alias=True, exclude_none=True, mode="json")
        data["amount"] = float(self.amount)
        return data


class TransactionUpdate(BaseModel):
    category: Optional[str] = None
    subcategory: Optional[str] = None
    notes: Optional[str] = None
    type: Optional[TransactionType] = None
    is_verified: Optional[bool] = None


class BulkCategorizeRequest(BaseModel):
    transaction_ids: List[str]
    category: str
    subcategory: Optional[str] = None
    skip_history: bool = False


class TransactionResponse(BaseModel):
    id: str
    date: date
    amount: Decimal
    description: str
    category: str
    subcategory: Optional[str]
    account: str
    type: TransactionType
    is_verified: bool
    confidence: Optional[float]
    reasoning: Optional[str]
    notes: Optional[str]
    added_date: datetime
    last_modified_date: datetime

    class Config:
        from_attributes = True


class TransactionListResponse(BaseModel):
    items: list[TransactionResponse]
    total: int
    page: int
    pages: int
