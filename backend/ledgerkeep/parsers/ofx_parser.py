"""
OFX/QFX file parser.

OFX 1.x is SGML where leaf elements usually have no closing tag, OFX 2.x is
XML. Both are read with the same tag grammar: every field is a named
``TagRule`` and the value is the text after the first ``<TAG>`` in the block.
"""

import html
import re
from dataclasses import dataclass
from decimal import Decimal
from typing import List, Dict, Any, Tuple, Optional

from ledgerkeep.errors import ParseError
from ledgerkeep.parsers.base import AccountInfo, BaseParser, ParseResult
from ledgerkeep.schemas.import_file import ColumnMapping
from ledgerkeep.services.normalizer import clean_amount, normalize_date


OFX_DATE_FORMAT = "%Y%m%d"

OFX_MARKER_RE = re.compile(r"OFXHEADER|<OFX>", re.IGNORECASE)
TRANSACTION_START_RE = re.compile(r"<STMTTRN>", re.IGNORECASE)
TRANSACTION_END_RE = re.compile(r"</STMTTRN>|</BANKTRANLIST>", re.IGNORECASE)
COMMA_DECIMAL_RE = re.compile(r"^[+-]?\d+,\d{1,2}$")


@dataclass(frozen=True)
class TagRule:
    """Field ``name`` is read from ``<tag>``; a missing required tag is reported, not raised."""
    name: str
    tag: str
    required: bool = False


TRANSACTION_RULES = (
    TagRule("transaction_type", "TRNTYPE"),
    TagRule("date", "DTPOSTED", required=True),
    TagRule("amount", "TRNAMT", required=True),
    TagRule("external_id", "FITID"),
    TagRule("name", "NAME"),
    TagRule("payee", "PAYEE"),
    TagRule("memo", "MEMO"),
    TagRule("check_number", "CHECKNUM"),
)

ACCOUNT_RULES = (
    TagRule("institution", "ORG"),
    TagRule("account_id", "ACCTID"),
    TagRule("account_type", "ACCTTYPE"),
)

BALANCE_RULES = (
    TagRule("balance", "BALAMT"),
    TagRule("as_of", "DTASOF"),
)

ACCOUNT_TYPE_MAP = {
    "CHECKING": "checking",
    "SAVINGS": "savings",
    "MONEYMRKT": "savings",
    "CREDITLINE": "credit",
}

# OFX TRNTYPE values that say more than the amount sign does
TRANSFER_TRNTYPES = {"XFER"}


def extract_tag(block: str, tag: str) -> Optional[str]:
    """First ``<TAG>value`` in the block, or None when absent or empty."""
    match = re.search(rf"<{tag}>([^<\r\n]*)", block, re.IGNORECASE)
    if not match:
        return None
    value = html.unescape(match.group(1)).strip()
    return value or None


def extract_fields(block: str, rules: Tuple[TagRule, ...]) -> Tuple[Dict[str, Optional[str]], List[str]]:
    """Apply a grammar to one block; returns the values and the missing required tags."""
    values = {}
    missing = []
    for rule in rules:
        values[rule.name] = extract_tag(block, rule.tag)
        if rule.required and values[rule.name] is None:
            missing.append(rule.tag)
    return values, missing


def split_transaction_blocks(content: str) -> List[str]:
    blocks = []
    for chunk in TRANSACTION_START_RE.split(content)[1:]:
        end = TRANSACTION_END_RE.search(chunk)
        blocks.append(chunk[:end.start()] if end else chunk)
    return blocks


def _ofx_amount(value: Optional[str]) -> Optional[Decimal]:
    if value is None:
        return None
    if COMMA_DECIMAL_RE.match(value):
        value = value.replace(',', '.')
    return clean_amount(value)


def default_mapping() -> ColumnMapping:
    """Mapping reported for OFX uploads; the tag grammar ignores columns."""
    return ColumnMapping(has_headers=False, date_format=OFX_DATE_FORMAT, confidence=0.9)


class OFXParser(BaseParser):
    """Parser for OFX/QFX bank exports"""

    format_name = "ofx"

    def can_parse(self, filename: str) -> bool:
        return filename.lower().endswith(('.ofx', '.qfx'))

    def get_preview(
        self,
        content: str,
        rows: int = 5
    ) -> Tuple[List[str], List[List[str]]]:
        """Return headers and preview rows for OFX"""
        headers = ['Date', 'Amount', 'Description', 'Type', 'ID']

        preview_rows = []
        for block in split_transaction_blocks(content)[:rows]:
            values, _ = extract_fields(block, TRANSACTION_RULES)
            preview_rows.append([
                values['date'] or '',
                values['amount'] or '',
                values['name'] or values['payee'] or values['memo'] or '',
                values['transaction_type'] or '',
                values['external_id'] or '',
            ])

        return headers, preview_rows

    def parse(
        self,
        content: str,
        hints: Optional[ColumnMapping] = None,
        filename: Optional[str] = None
    ) -> ParseResult:
        """Parse OFX and return raw transaction records"""
        if not content or not content.strip():
            return ParseResult(date_format=OFX_DATE_FORMAT)

        if not OFX_MARKER_RE.search(content):
            raise ParseError("Content has no OFX header or <OFX> root element")

        transactions = []
        for index, block in enumerate(split_transaction_blocks(content), start=1):
            values, missing = extract_fields(block, TRANSACTION_RULES)

            description = values['name'] or values['payee'] or values['memo']
            notes = values['memo'] if description != values['memo'] else None
            if not description:
                description = f"Transaction {values['external_id']}" if values['external_id'] else ''

            trntype = (values['transaction_type'] or '').upper()
            transactions.append({
                'row_index': index,
                'date': values['date'],
                'amount': _ofx_amount(values['amount']),
                'raw_description': description,
                'transaction_type': 'transfer' if trntype in TRANSFER_TRNTYPES else None,
                'category': None,
                'notes': notes,
                'external_id': values['external_id'],
                'missing_fields': missing,
                'original_row': {k: v for k, v in values.items() if v is not None},
            })

        return ParseResult(
            transactions=transactions,
            account_info=self.parse_account_info(content),
            date_format=OFX_DATE_FORMAT,
        )

    def parse_account_info(self, content: str) -> Optional[AccountInfo]:
        """Institution, account type and ledger balance from the statement header."""
        values, _ = extract_fields(content, ACCOUNT_RULES)

        if re.search(r"<CCACCTFROM>", content, re.IGNORECASE):
            account_type = "credit"
        else:
            account_type = ACCOUNT_TYPE_MAP.get((values['account_type'] or '').upper(), "checking")

        balance_block = ''
        match = re.search(r"<LEDGERBAL>(.*?)(?:</LEDGERBAL>|<AVAILBAL>|</STMTRS>|</CCSTMTRS>|$)",
                          content, re.IGNORECASE | re.DOTALL)
        if match:
            balance_block = match.group(1)
        balance_values, _ = extract_fields(balance_block, BALANCE_RULES)

        if not values['institution'] and not values['account_id'] and not balance_values['balance']:
            return None

        account_id = values['account_id']
        return AccountInfo(
            institution=values['institution'] or "Unknown",
            account_type=account_type,
            masked_account_number=f"****{account_id[-4:]}" if account_id else None,
            balance=_ofx_amount(balance_values['balance']),
            balance_date=normalize_date(balance_values['as_of']),
        )
