"""
Transaction API endpoints.
"""

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session
from sqlalchemy import or_
from typing import Optional
from datetime import date

from ledgerkeep.dependencies import get_db, get_store
from ledgerkeep.errors import StorageFailure
from ledgerkeep.models.transaction import Transaction
from ledgerkeep.schemas.transaction import (
    BulkCategorizeRequest,
    TransactionResponse,
    TransactionUpdate,
    TransactionListResponse
)
from ledgerkeep.services.deduplication_service import find_stored_duplicate_groups
from ledgerkeep.services.ledger_store import LedgerStore

router = APIRouter(prefix="/transactions", tags=["transactions"])


@router.get("", response_model=TransactionListResponse)
def list_transactions(
    page: int = Query(1, ge=1),
    per_page: int = Query(50, ge=1, le=100),
    account: Optional[str] = None,
    category: Optional[str] = None,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    search: Optional[str] = None,
    is_verified: Optional[bool] = None,
    db: Session = Depends(get_db)
):
    """List transactions with filtering and pagination"""
    query = db.query(Transaction)

    if account:
        query = query.filter(Transaction.account == account)
    if category:
        query = query.filter(Transaction.category == category)
    if start_date:
        query = query.filter(Transaction.date >= start_date)
    if end_date:
        query = query.filter(Transaction.date <= end_date)
    if is_verified is not None:
        query = query.filter(Transaction.is_verified == is_verified)
    if search:
        search_term = f"%{search}%"
        query = query.filter(
            or_(
                Transaction.description.ilike(search_term),
                Transaction.notes.ilike(search_term)
            )
        )

    total = query.count()

    query = query.order_by(Transaction.date.desc())
    query = query.offset((page - 1) * per_page).limit(per_page)

    transactions = query.all()
    pages = (total + per_page - 1) // per_page

    return TransactionListResponse(
        items=[TransactionResponse.model_validate(t) for t in transactions],
        total=total,
        page=page,
        pages=pages
    )


@router.get("/duplicates")
def list_duplicates(db: Session = Depends(get_db)):
    """Groups of stored transactions that share a duplicate signature"""
    groups = find_stored_duplicate_groups(db)
    return {"groups": [g.to_dict() for g in groups], "total": len(groups)}


@router.get("/{transaction_id}", response_model=TransactionResponse)
def get_transaction(
    transaction_id: str,
    store: LedgerStore = Depends(get_store)
):
    """Get a single transaction"""
    transaction = store.get_transaction(transaction_id)
    if not transaction:
        raise HTTPException(status_code=404, detail="Transaction not found")
    return TransactionResponse.model_validate(transaction)


@router.patch("/{transaction_id}", response_model=TransactionResponse)
def update_transaction(
    transaction_id: str,
    update: TransactionUpdate,
    store: LedgerStore = Depends(get_store)
):
    """Update a transaction; the new state is recorded in its history"""
    if store.get_transaction(transaction_id) is None:
        raise HTTPException(status_code=404, detail="Transaction not found")

    changes = update.model_dump(exclude_unset=True)
    if changes:
        try:
            with store.atomic():
                store.bulk_update_transactions([dict(changes, id=transaction_id)], note="Edited")
        except StorageFailure as e:
            raise HTTPException(status_code=500, detail=str(e))

    store.db.expire_all()
    return TransactionResponse.model_validate(store.get_transaction(transaction_id))


@router.post("/bulk-categorize")
def bulk_categorize(
    request: BulkCategorizeRequest,
    store: LedgerStore = Depends(get_store)
):
    """Bulk update category for multiple transactions"""
    ids = store.existing_transaction_ids(request.transaction_ids)
    changes = [
        {"id": txn_id, "category": request.category, "subcategory": request.subcategory, "is_verified": True}
        for txn_id in request.transaction_ids
        if txn_id in ids
    ]

    try:
        with store.atomic():
            updated = store.bulk_update_transactions(
                changes, skip_history=request.skip_history, note="Bulk categorized"
            )
    except StorageFailure as e:
        raise HTTPException(status_code=500, detail=str(e))

    return {"updated": updated, "not_found": len(request.transaction_ids) - updated}
