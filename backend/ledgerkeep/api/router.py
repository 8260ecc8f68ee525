"""
Main API router.
"""

from fastapi import APIRouter
from ledgerkeep.api import accounts, backups, data, imports, transactions

api_router = APIRouter()

api_router.include_router(accounts.router)
api_router.include_router(imports.router)
api_router.include_router(transactions.router)
api_router.include_router(data.router)
api_router.include_router(backups.router)
