"""
Generic CSV file parser driven by a column mapping.
"""

from typing import List, Dict, Any, Tuple, Optional
from decimal import Decimal

from ledgerkeep.errors import ParseError
from ledgerkeep.parsers.base import (
    BaseParser,
    ParseResult,
    apply_direction,
    is_blank_row,
    read_csv_rows,
)
from ledgerkeep.schemas.import_file import ColumnMapping, ColumnRef, SignConvention
from ledgerkeep.services.normalizer import clean_amount


DATE_HEADERS = ("date", "transaction date", "posting date", "post date", "posted date", "trans date", "value date")
DESCRIPTION_HEADERS = ("description", "payee", "merchant", "name", "narrative", "details", "particulars")
AMOUNT_HEADERS = ("amount", "transaction amount", "value")
DEBIT_HEADERS = ("debit", "withdrawal", "withdrawals", "outflow", "money out", "paid out")
CREDIT_HEADERS = ("credit", "deposit", "deposits", "inflow", "money in", "paid in")
TYPE_HEADERS = ("type", "transaction type", "debit/credit", "dr/cr", "credit/debit")
CATEGORY_HEADERS = ("category",)
NOTES_HEADERS = ("memo", "notes", "note")


def _find_header(headers: List[str], candidates: Tuple[str, ...], taken: set) -> Optional[int]:
    """Exact header match first, then substring match; skips claimed columns."""
    normalized = [h.strip().lower() for h in headers]
    for candidate in candidates:
        for i, header in enumerate(normalized):
            if i not in taken and header == candidate:
                return i
    for candidate in candidates:
        for i, header in enumerate(normalized):
            if i not in taken and candidate in header:
                return i
    return None


def suggest_mapping(headers: List[str]) -> ColumnMapping:
    """Guess a column mapping from header names."""
    taken: set = set()

    def claim(candidates: Tuple[str, ...]) -> Optional[int]:
        index = _find_header(headers, candidates, taken)
        if index is not None:
            taken.add(index)
        return index

    date_col = claim(DATE_HEADERS)
    amount_col = claim(AMOUNT_HEADERS)
    debit_col = claim(DEBIT_HEADERS) if amount_col is None else None
    credit_col = claim(CREDIT_HEADERS) if amount_col is None else None
    description_col = claim(DESCRIPTION_HEADERS)
    type_col = claim(TYPE_HEADERS)
    category_col = claim(CATEGORY_HEADERS)
    notes_col = claim(NOTES_HEADERS)

    money_col = amount_col
    if money_col is None:
        money_col = debit_col if debit_col is not None else credit_col
    found = [date_col, description_col, money_col]
    confidence = round(sum(1 for c in found if c is not None) / len(found) * 0.6, 2)

    return ColumnMapping(
        date_col=date_col,
        amount_col=amount_col,
        description_col=description_col,
        debit_col=debit_col,
        credit_col=credit_col,
        type_col=type_col,
        category_col=category_col,
        notes_col=notes_col,
        has_headers=True,
        date_format=None,
        confidence=confidence,
    )


class CSVParser(BaseParser):
    """Parser for CSV bank/card exports"""

    format_name = "generic_csv"

    def can_parse(self, filename: str) -> bool:
        return filename.lower().endswith(('.csv', '.txt'))

    def get_preview(
        self,
        content: str,
        rows: int = 5
    ) -> Tuple[List[str], List[List[str]]]:
        """Return headers and preview rows"""
        all_rows = [row for row in read_csv_rows(content) if not is_blank_row(row)]
        if not all_rows:
            return [], []
        return all_rows[0], all_rows[1:rows + 1]

    def parse(
        self,
        content: str,
        hints: Optional[ColumnMapping] = None,
        filename: Optional[str] = None
    ) -> ParseResult:
        """Parse CSV and return raw transaction records"""
        if not content or not content.strip():
            return ParseResult()

        rows = read_csv_rows(content)
        mapping = hints

        if mapping is None:
            headers = next((r for r in rows if not is_blank_row(r)), [])
            mapping = suggest_mapping(headers)

        rows = rows[mapping.skip_rows:]
        headers: List[str] = []
        if mapping.has_headers:
            while rows and is_blank_row(rows[0]):
                rows = rows[1:]
            if rows:
                headers = [h.strip() for h in rows[0]]
                rows = rows[1:]

        columns = self._resolve_columns(mapping, headers)

        transactions = []
        for index, row in enumerate(rows, start=1):
            if is_blank_row(row):
                continue
            transactions.append(self._parse_row(row, index, columns, mapping, headers))

        return ParseResult(transactions=transactions, date_format=mapping.date_format)

    def _resolve_columns(self, mapping: ColumnMapping, headers: List[str]) -> Dict[str, Optional[int]]:
        """Turn header names into indices and check the required columns exist."""
        lookup = {h.lower(): i for i, h in enumerate(headers)}

        def resolve(name: str, ref: Optional[ColumnRef]) -> Optional[int]:
            if ref is None:
                return None
            if isinstance(ref, int):
                return ref
            if not headers:
                raise ParseError(f"Column '{ref}' for {name} given by name but the file has no header row")
            index = lookup.get(ref.strip().lower())
            if index is None:
                raise ParseError(f"Column '{ref}' for {name} not found in header row")
            return index

        columns = {
            name: resolve(name, getattr(mapping, name))
            for name in (
                "date_col", "amount_col", "description_col", "debit_col",
                "credit_col", "type_col", "category_col", "notes_col",
            )
        }

        missing = []
        if columns["date_col"] is None:
            missing.append("date")
        if columns["description_col"] is None:
            missing.append("description")
        if columns["amount_col"] is None and columns["debit_col"] is None and columns["credit_col"] is None:
            missing.append("amount")
        if missing:
            raise ParseError(f"Column mapping is missing required column(s): {', '.join(missing)}")

        return columns

    def _parse_row(
        self,
        row: List[str],
        index: int,
        columns: Dict[str, Optional[int]],
        mapping: ColumnMapping,
        headers: List[str]
    ) -> Dict[str, Any]:
        """Parse a single row into a raw record; bad cells become None"""

        def cell(name: str) -> Optional[str]:
            col = columns.get(name)
            if col is None or col >= len(row):
                return None
            value = row[col].strip()
            return value or None

        amount = self._parse_amount(row, columns)
        if amount is not None and columns["amount_col"] is not None:
            if mapping.sign_convention == SignConvention.POSITIVE_DEBITS:
                amount = -amount

        type_value = cell("type_col")
        amount = apply_direction(amount, type_value)

        original = dict(zip(headers, row)) if headers else list(row)

        return {
            'row_index': index,
            'date': cell("date_col"),
            'amount': amount,
            'raw_description': cell("description_col") or '',
            'transaction_type': type_value,
            'category': cell("category_col"),
            'notes': cell("notes_col"),
            'original_row': original,
        }

    def _parse_amount(
        self,
        row: List[str],
        columns: Dict[str, Optional[int]]
    ) -> Optional[Decimal]:
        """Parse amount handling various formats"""

        def value_at(col: Optional[int]) -> Optional[Decimal]:
            if col is None or col >= len(row):
                return None
            return clean_amount(row[col])

        if columns["amount_col"] is None:
            debit = value_at(columns["debit_col"])
            credit = value_at(columns["credit_col"])

            if debit:
                return -abs(debit)
            elif credit:
                return abs(credit)
            elif debit is not None or credit is not None:
                return Decimal('0')
            return None

        return value_at(columns["amount_col"])
