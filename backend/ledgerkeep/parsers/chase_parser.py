"""
Chase CSV parser for checking/savings and credit card activity exports.

Checking:  Details,Posting Date,Description,Amount,Type,Balance,Check or Slip #
Credit:    Transaction Date,Post Date,Description,Category,Type,Amount,Memo
"""

import re
from decimal import Decimal
from typing import List, Dict, Any, Tuple, Optional

from ledgerkeep.errors import ParseError
from ledgerkeep.parsers.base import (
    AccountInfo,
    BaseParser,
    ParseResult,
    apply_direction,
    is_blank_row,
    read_csv_rows,
)
from ledgerkeep.schemas.import_file import ColumnMapping
from ledgerkeep.services.normalizer import clean_amount, normalize_date


CHECKING_HEADERS = ('details', 'posting date', 'description', 'amount', 'type', 'balance', 'check or slip')
CREDIT_HEADERS = ('transaction date', 'post date', 'description', 'category', 'type', 'amount')

CONTENT_PATTERNS = [
    re.compile(pattern, re.IGNORECASE)
    for pattern in (
        r"chase",
        r"debit card purchase",
        r"ach credit",
        r"ach debit",
        r"check card \d+",
        r"online transfer",
        r"payroll deposit",
    )
]

FILENAME_ACCOUNT_RE = re.compile(r"chase(\d{4})", re.IGNORECASE)
ACTIVITY_FILENAME_RE = re.compile(r"^\d+_activity_\d+\.csv$", re.IGNORECASE)

CHASE_DATE_FORMAT = "%m/%d/%Y"


def header_scores(header_line: str) -> Tuple[int, int]:
    """(checking matches, credit matches) for a lowercased header line."""
    line = header_line.lower()
    checking = sum(1 for h in CHECKING_HEADERS if h in line)
    credit = sum(1 for h in CREDIT_HEADERS if h in line)
    return checking, credit


def is_chase_filename(filename: Optional[str]) -> bool:
    if not filename:
        return False
    name = filename.lower()
    return 'chase' in name or ACTIVITY_FILENAME_RE.match(name) is not None


def masked_number_from_filename(filename: Optional[str]) -> Optional[str]:
    """Chase names downloads ``Chase1234_Activity_...``; the digits are the last four."""
    if not filename:
        return None
    match = FILENAME_ACCOUNT_RE.search(filename)
    return f"Ending in {match.group(1)}" if match else None


class ChaseParser(BaseParser):
    """Parser for Chase checking and credit card CSV exports"""

    format_name = "chase"

    def can_parse(self, filename: str) -> bool:
        return filename.lower().endswith('.csv') and is_chase_filename(filename)

    def get_preview(
        self,
        content: str,
        rows: int = 5
    ) -> Tuple[List[str], List[List[str]]]:
        all_rows = [row for row in read_csv_rows(content) if not is_blank_row(row)]
        if not all_rows:
            return [], []
        return [h.strip() for h in all_rows[0]], all_rows[1:rows + 1]

    def dialect(self, headers: List[str]) -> str:
        """'credit' or 'checking' from the header shape."""
        names = {h.strip().lower() for h in headers}
        if {'transaction date', 'post date'} <= names:
            return 'credit'
        if {'details', 'posting date'} <= names:
            return 'checking'
        raise ParseError("Header does not match a Chase checking or credit card export")

    def parse(
        self,
        content: str,
        hints: Optional[ColumnMapping] = None,
        filename: Optional[str] = None
    ) -> ParseResult:
        if not content or not content.strip():
            return ParseResult(date_format=CHASE_DATE_FORMAT)

        rows = [row for row in read_csv_rows(content) if not is_blank_row(row)]
        if not rows:
            return ParseResult(date_format=CHASE_DATE_FORMAT)

        headers = [h.strip() for h in rows[0]]
        dialect = self.dialect(headers)

        transactions = []
        for index, row in enumerate(rows[1:], start=1):
            # Chase checking rows carry a trailing empty column the header lacks
            record = {h: (row[i].strip() if i < len(row) else '') for i, h in enumerate(headers)}
            if dialect == 'checking':
                transactions.append(self._parse_checking_row(record, index))
            else:
                transactions.append(self._parse_credit_row(record, index))

        return ParseResult(
            transactions=transactions,
            account_info=self._account_info(dialect, transactions, filename),
            date_format=CHASE_DATE_FORMAT,
        )

    def _parse_checking_row(self, record: Dict[str, str], index: int) -> Dict[str, Any]:
        amount = apply_direction(clean_amount(record.get('Amount', '')), record.get('Details'))
        check_number = record.get('Check or Slip #')
        return {
            'row_index': index,
            'date': record.get('Posting Date') or None,
            'amount': amount,
            'raw_description': record.get('Description', ''),
            'transaction_type': record.get('Type') or None,
            'category': None,
            'notes': f"Check/Slip: {check_number}" if check_number else None,
            'balance': clean_amount(record.get('Balance', '')),
            'original_row': record,
        }

    def _parse_credit_row(self, record: Dict[str, str], index: int) -> Dict[str, Any]:
        card_type = record.get('Type') or None
        amount = apply_direction(clean_amount(record.get('Amount', '')), card_type)
        return {
            'row_index': index,
            'date': record.get('Transaction Date') or record.get('Post Date') or None,
            'amount': amount,
            'raw_description': record.get('Description', ''),
            'transaction_type': card_type,
            'category': record.get('Category') or None,
            'notes': record.get('Memo') or None,
            'original_row': record,
        }

    def _account_info(
        self,
        dialect: str,
        transactions: List[Dict[str, Any]],
        filename: Optional[str]
    ) -> AccountInfo:
        balance: Optional[Decimal] = None
        balance_date = None
        # Exports list the newest row first
        if dialect == 'checking' and transactions:
            newest = transactions[0]
            balance = newest.get('balance')
            balance_date = normalize_date(newest.get('date'), CHASE_DATE_FORMAT)

        return AccountInfo(
            institution="Chase",
            account_type=dialect,
            masked_account_number=masked_number_from_filename(filename),
            balance=balance,
            balance_date=balance_date,
        )
