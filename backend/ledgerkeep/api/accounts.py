"""
Account API endpoints.
"""

import uuid
from decimal import Decimal

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from ledgerkeep.dependencies import get_db
from ledgerkeep.models import Account
from ledgerkeep.schemas.account import (
    AccountCreate,
    AccountResponse,
    AccountList,
)

router = APIRouter(prefix="/accounts", tags=["accounts"])


@router.get("", response_model=AccountList)
def list_accounts(
    skip: int = 0,
    limit: int = 100,
    db: Session = Depends(get_db)
):
    """List all accounts."""
    accounts = db.query(Account).filter(Account.is_active == True).order_by(Account.name).offset(skip).limit(limit).all()
    total = db.query(Account).filter(Account.is_active == True).count()

    return AccountList(
        items=accounts,
        total=total
    )


@router.post("", response_model=AccountResponse, status_code=201)
def create_account(
    account: AccountCreate,
    db: Session = Depends(get_db)
):
    """Create a new account."""
    existing = db.query(Account).filter(Account.name == account.name).first()
    if existing:
        raise HTTPException(status_code=400, detail=f"Account '{account.name}' already exists")

    db_account = Account(
        id=str(uuid.uuid4()),
        name=account.name,
        account_type=account.type,
        institution=account.institution,
        currency=account.currency.upper(),
        masked_account_number=account.masked_account_number,
        balance=Decimal(str(account.balance)) if account.balance is not None else None,
    )
    db.add(db_account)
    db.commit()
    db.refresh(db_account)
    return db_account


@router.get("/{account_id}", response_model=AccountResponse)
def get_account(
    account_id: str,
    db: Session = Depends(get_db)
):
    """Get a specific account."""
    account = db.query(Account).filter(Account.id == account_id).first()
    if not account:
        raise HTTPException(status_code=404, detail="Account not found")
    return account
