"""
Account Pydantic schemas for API validation and envelope documents.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from ledgerkeep.models.account import Account, AccountType


class AccountDocument(BaseModel):
    """Account as it appears in the export envelope."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

    id: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1)
    type: AccountType = AccountType.checking
    institution: str = ""
    currency: str = "USD"
    balance: Optional[float] = None
    last_sync_date: Optional[datetime] = None
    is_active: bool = True
    masked_account_number: Optional[str] = None
    historical_balance: Optional[float] = None
    historical_balance_date: Optional[date] = None

    @classmethod
    def from_model(cls, account: Account) -> "AccountDocument":
        return cls(
            id=account.id,
            name=account.name,
            type=account.account_type,
            institution=account.institution or "",
            currency=account.currency or "USD",
            balance=float(account.balance) if account.balance is not None else None,
            last_sync_date=account.last_sync_date,
            is_active=account.is_active,
            masked_account_number=account.masked_account_number,
            historical_balance=float(account.historical_balance) if account.historical_balance is not None else None,
            historical_balance_date=account.historical_balance_date,
        )

    def to_columns(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "account_type": self.type,
            "institution": self.institution,
            "currency": self.currency,
            "balance": Decimal(str(self.balance)) if self.balance is not None else None,
            "last_sync_date": self.last_sync_date,
            "is_active": self.is_active,
            "masked_account_number": self.masked_account_number,
            "historical_balance": Decimal(str(self.historical_balance)) if self.historical_balance is not None else None,
            "historical_balance_date": self.historical_balance_date,
        }

    def to_export(self) -> dict:
        return self.model_dump(by_alias=True, exclude_none=True, mode="json")


class AccountBase(BaseModel):
    """Base account schema."""
    name: str = Field(..., min_length=1, max_length=100)
    type: AccountType = AccountType.checking
    institution: str = ""
    currency: str = Field("USD", min_length=3, max_length=3)


class AccountCreate(AccountBase):
    """Schema for creating an account."""
    masked_account_number: Optional[str] = None
    balance: Optional[float] = None


class AccountResponse(BaseModel):
    """Schema for account response."""
    id: str
    name: str
    account_type: AccountType
    institution: str
    currency: str
    balance: Optional[float] = None
    is_active: bool
    masked_account_number: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True


class AccountList(BaseModel):
    """Schema for listing accounts."""
    items: list[AccountResponse]
    total: int
