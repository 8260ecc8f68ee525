"""
FastAPI dependencies.
"""

from typing import Generator

from fastapi import Depends
from sqlalchemy.orm import Session

from ledgerkeep.database import SessionLocal
from ledgerkeep.services.ledger_store import LedgerStore


def get_db() -> Generator[Session, None, None]:
    """
    Dependency for getting database sessions.
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_store(db: Session = Depends(get_db)) -> LedgerStore:
    """Dependency wrapping the request session in a ledger store."""
    return LedgerStore(db)
