"""
Base parser class and shared helpers for file parsing.
"""

import csv
import io
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import List, Dict, Any, Tuple, Optional

from ledgerkeep.errors import ParseError
from ledgerkeep.schemas.import_file import ColumnMapping


DEBIT_MARKERS = {"debit", "dr", "sale", "purchase", "withdrawal", "fee", "check", "atm"}
CREDIT_MARKERS = {"credit", "cr", "deposit", "return", "refund", "payment", "dslip"}


@dataclass
class AccountInfo:
    """Account descriptor derivable from file context."""
    institution: str
    account_type: str
    masked_account_number: Optional[str] = None
    balance: Optional[Decimal] = None
    balance_date: Optional[date] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "institution": self.institution,
            "account_type": self.account_type,
            "masked_account_number": self.masked_account_number,
            "balance": float(self.balance) if self.balance is not None else None,
            "balance_date": self.balance_date.isoformat() if self.balance_date else None,
        }


@dataclass
class ParseResult:
    """Ordered raw records plus optional account context."""
    transactions: List[Dict[str, Any]] = field(default_factory=list)
    account_info: Optional[AccountInfo] = None
    date_format: Optional[str] = None


class BaseParser(ABC):
    """Base class for file parsers"""

    format_name: str = ""

    @abstractmethod
    def can_parse(self, filename: str) -> bool:
        """Check if this parser can handle the file"""
        pass

    @abstractmethod
    def parse(
        self,
        content: str,
        hints: Optional[ColumnMapping] = None,
        filename: Optional[str] = None
    ) -> ParseResult:
        """
        Parse content and return raw transaction records.
        Each record should have: date, amount, raw_description
        Empty content yields an empty result, not an error.
        """
        pass

    @abstractmethod
    def get_preview(
        self,
        content: str,
        rows: int = 5
    ) -> Tuple[List[str], List[List[str]]]:
        """Return (headers, preview_rows) for format confirmation"""
        pass


def read_csv_rows(content: str) -> List[List[str]]:
    """Split delimited text into rows, sniffing the dialect from a sample."""
    text = content.lstrip('\ufeff')
    sample = text[:8192]
    try:
        dialect = csv.Sniffer().sniff(sample, delimiters=",;\t|")
    except csv.Error:
        dialect = csv.excel

    try:
        return [row for row in csv.reader(io.StringIO(text), dialect)]
    except csv.Error as e:
        raise ParseError(f"Unreadable delimited content: {e}") from e


def is_blank_row(row: List[str]) -> bool:
    return not row or all(cell.strip() == '' for cell in row)


def apply_direction(amount: Optional[Decimal], indicator: Optional[str]) -> Optional[Decimal]:
    """
    Force the sign of ``amount`` from an explicit debit/credit marker.

    The marker wins over the amount's own sign when the two disagree.
    """
    if amount is None or not indicator:
        return amount

    marker = indicator.strip().lower()
    if marker in DEBIT_MARKERS or marker.endswith("_debit"):
        return -abs(amount)
    if marker in CREDIT_MARKERS or marker.endswith("_credit"):
        return abs(amount)
    return amount
