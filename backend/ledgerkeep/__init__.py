"""
Ledgerkeep: transaction ingestion and data-integrity engine.
"""

__version__ = "0.3.0"
