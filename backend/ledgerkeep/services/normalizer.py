"""
Normalization and keyword classification of raw parser records.

Parsers hand over loosely typed dicts ({'date', 'amount', 'raw_description',
...}). This module unifies dates and amounts, infers the transaction type and
assigns a category from an ordered keyword table. Classification never fails:
no match is a valid "Uncategorized" outcome.
"""

import json
import math
import re
import uuid
from dataclasses import dataclass
from datetime import date, datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, Optional, Sequence

from ledgerkeep.models.transaction import TransactionType


UNCATEGORIZED = "Uncategorized"
TRANSFER_CATEGORY = "Transfer"

KEYWORD_CONFIDENCE = 0.85
TRANSFER_CONFIDENCE = 0.9
FALLBACK_CONFIDENCE = 0.1

# YYYYMMDD[HHMMSS[.XXX]][[offset:TZ]]
OFX_DATE_RE = re.compile(r"^(\d{4})(\d{2})(\d{2})(?:\d{2}){0,3}(?:\.\d+)?(?:\[[^\]]*\])?$")

FALLBACK_DATE_FORMATS = [
    "%Y-%m-%d",
    "%m/%d/%Y",
    "%m/%d/%y",
    "%Y/%m/%d",
    "%d-%b-%Y",
    "%b %d, %Y",
]

TRANSFER_PATTERNS = [
    re.compile(pattern, re.IGNORECASE)
    for pattern in (
        r"^transfer",
        r"^ach transfer",
        r"^wire",
        r"^online transfer",
        r"^mobile transfer",
        r"^zelle",
        r"^autopay",
        r"^automatic payment",
        r"payment.*thank you",
        r"^payment\s*-",
        r"^ach (?:credit|debit)\b.*\btransfer\b",
    )
]

INCOME_KEYWORDS = ("payroll", "salary", "direct dep", "wages", "interest", "dividend", "refund", "deposit")

# Values of an explicit type column that name the transaction type outright.
# Debit/credit style markers only decide the sign and are handled by the parsers.
EXPLICIT_TYPE_ALIASES = {
    "expense": TransactionType.expense,
    "income": TransactionType.income,
    "transfer": TransactionType.transfer,
    "xfer": TransactionType.transfer,
    "acct_xfer": TransactionType.transfer,
    "payment": TransactionType.transfer,
    "loan_pmt": TransactionType.transfer,
}


@dataclass(frozen=True)
class KeywordRule:
    """Case-insensitive substring mapped to a category."""
    keyword: str
    category: str
    subcategory: Optional[str] = None


@dataclass(frozen=True)
class Classification:
    category: str
    subcategory: Optional[str]
    confidence: float
    reasoning: str
    source: str  # rule, keyword, transfer, ai, fallback

    @property
    def is_uncategorized(self) -> bool:
        return self.category == UNCATEGORIZED


DEFAULT_KEYWORD_RULES = (
    KeywordRule("payroll", "Income", "Salary"),
    KeywordRule("salary", "Income", "Salary"),
    KeywordRule("direct dep", "Income", "Salary"),
    KeywordRule("dividend", "Income", "Investments"),
    KeywordRule("interest", "Income", "Interest"),
    KeywordRule("refund", "Income", "Refunds"),
    KeywordRule("whole foods", "Groceries"),
    KeywordRule("trader joe", "Groceries"),
    KeywordRule("safeway", "Groceries"),
    KeywordRule("kroger", "Groceries"),
    KeywordRule("walmart", "Groceries"),
    KeywordRule("costco", "Groceries"),
    KeywordRule("target", "Groceries"),
    KeywordRule("grocery", "Groceries"),
    KeywordRule("supermarket", "Groceries"),
    KeywordRule("gas bill", "Utilities", "Gas"),
    KeywordRule("electric", "Utilities", "Electricity"),
    KeywordRule("water", "Utilities", "Water"),
    KeywordRule("internet", "Utilities", "Internet"),
    KeywordRule("utility", "Utilities"),
    KeywordRule("phone", "Utilities", "Phone"),
    KeywordRule("exxon", "Gas & Fuel"),
    KeywordRule("chevron", "Gas & Fuel"),
    KeywordRule("mobil", "Gas & Fuel"),
    KeywordRule("shell", "Gas & Fuel"),
    KeywordRule("fuel", "Gas & Fuel"),
    KeywordRule("gas station", "Gas & Fuel"),
    KeywordRule("starbucks", "Restaurants", "Coffee"),
    KeywordRule("coffee", "Restaurants", "Coffee"),
    KeywordRule("mcdonald", "Restaurants", "Fast Food"),
    KeywordRule("burger", "Restaurants", "Fast Food"),
    KeywordRule("pizza", "Restaurants"),
    KeywordRule("restaurant", "Restaurants"),
    KeywordRule("netflix", "Entertainment", "Streaming"),
    KeywordRule("spotify", "Entertainment", "Streaming"),
    KeywordRule("hulu", "Entertainment", "Streaming"),
    KeywordRule("movie", "Entertainment"),
    KeywordRule("theater", "Entertainment"),
    KeywordRule("pharmacy", "Healthcare"),
    KeywordRule("cvs", "Healthcare"),
    KeywordRule("walgreens", "Healthcare"),
    KeywordRule("hospital", "Healthcare"),
    KeywordRule("medical", "Healthcare"),
    KeywordRule("doctor", "Healthcare"),
    KeywordRule("uber", "Transportation"),
    KeywordRule("lyft", "Transportation"),
    KeywordRule("taxi", "Transportation"),
    KeywordRule("parking", "Transportation", "Parking"),
    KeywordRule("toll", "Transportation"),
    KeywordRule("metro", "Transportation"),
    KeywordRule("amazon", "Shopping"),
    KeywordRule("ebay", "Shopping"),
    KeywordRule("retail", "Shopping"),
    KeywordRule("shop", "Shopping"),
)


def normalize_date(value: Any, date_format: Optional[str] = None) -> Optional[date]:
    """
    Reduce any supported date representation to a calendar date.

    Tries the explicit format first, then OFX compact dates, ISO-8601 and a
    short list of common bank layouts. Returns None when nothing fits.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str):
        return None

    text = value.strip()
    if not text:
        return None

    if date_format:
        try:
            return datetime.strptime(text, date_format).date()
        except ValueError:
            pass

    match = OFX_DATE_RE.match(text)
    if match:
        try:
            return date(int(match.group(1)), int(match.group(2)), int(match.group(3)))
        except ValueError:
            return None

    try:
        # Calendar date as written; any time or offset part is dropped
        return datetime.fromisoformat(text.replace("Z", "+00:00")).date()
    except ValueError:
        pass

    for fmt in FALLBACK_DATE_FORMATS:
        try:
            return datetime.strptime(text, fmt).date()
        except ValueError:
            continue

    return None


def parse_timestamp(value: Any) -> Optional[datetime]:
    """Parse a lifecycle timestamp into a naive UTC datetime."""
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    elif isinstance(value, str) and value.strip():
        try:
            parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
        except ValueError:
            return None
    else:
        return None

    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


def clean_amount(amount_str: str) -> Optional[Decimal]:
    """Clean and parse amount string"""
    if not amount_str or not amount_str.strip():
        return None

    amount_str = amount_str.strip()

    if amount_str.startswith('(') and amount_str.endswith(')'):
        amount_str = '-' + amount_str[1:-1]

    amount_str = re.sub(r'[$,\s]', '', amount_str)

    try:
        amount = Decimal(amount_str)
    except InvalidOperation:
        return None

    return amount if amount.is_finite() else None


def parse_finite_amount(value: Any) -> Optional[Decimal]:
    """Accept numbers and numeric strings; reject NaN, infinities and booleans."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, Decimal):
        return value if value.is_finite() else None
    if isinstance(value, (int, float)):
        if not math.isfinite(value):
            return None
        return Decimal(str(value))
    if isinstance(value, str):
        return clean_amount(value)
    return None


def description_key(description: str) -> str:
    """Matching form of a description; the original text is kept for display."""
    return re.sub(r"\s+", " ", (description or "").strip()).upper()


def explicit_transaction_type(value: Any) -> Optional[TransactionType]:
    if isinstance(value, TransactionType):
        return value
    if not isinstance(value, str):
        return None
    return EXPLICIT_TYPE_ALIASES.get(value.strip().lower())


def infer_transaction_type(
    amount: Decimal,
    description: str,
    explicit_type: Any = None
) -> TransactionType:
    """Explicit type wins; otherwise transfer markers, income keywords, then sign."""
    explicit = explicit_transaction_type(explicit_type)
    if explicit is not None:
        return explicit

    lowered = (description or "").strip().lower()

    if any(pattern.search(lowered) for pattern in TRANSFER_PATTERNS):
        return TransactionType.transfer

    if amount > 0 and any(keyword in lowered for keyword in INCOME_KEYWORDS):
        return TransactionType.income

    return TransactionType.income if amount > 0 else TransactionType.expense


def classify_description(
    description: str,
    transaction_type: TransactionType,
    keyword_rules: Sequence[KeywordRule] = DEFAULT_KEYWORD_RULES
) -> Classification:
    """First matching keyword rule wins; transfers get the transfer category."""
    if transaction_type == TransactionType.transfer:
        return Classification(
            TRANSFER_CATEGORY, None, TRANSFER_CONFIDENCE,
            "Transfer between accounts", "transfer"
        )

    lowered = (description or "").lower()
    for rule in keyword_rules:
        if rule.keyword.lower() in lowered:
            return Classification(
                rule.category,
                rule.subcategory,
                KEYWORD_CONFIDENCE,
                f"Description contains '{rule.keyword}'",
                "keyword",
            )

    return Classification(UNCATEGORIZED, None, FALLBACK_CONFIDENCE, "No keyword matched", "fallback")


def normalize_record(
    raw: Dict[str, Any],
    account: str,
    date_format: Optional[str] = None
) -> Dict[str, Any]:
    """
    Map a parser record to canonical transaction fields (python names).

    Values that cannot be normalized are passed through as None so the
    integrity gate can report why the row is skipped.
    """
    description = (raw.get("raw_description") or "").strip()
    amount = parse_finite_amount(raw.get("amount"))
    txn_date = normalize_date(raw.get("date"), date_format)

    transaction_type = None
    if amount is not None:
        transaction_type = infer_transaction_type(amount, description, raw.get("transaction_type"))

    original = raw.get("original_row")
    return {
        "id": str(uuid.uuid4()),
        "date": txn_date,
        "description": description,
        "amount": amount,
        "account": account,
        "type": transaction_type,
        "category": UNCATEGORIZED,
        "source_category": raw.get("category") or None,
        "notes": raw.get("notes"),
        "original_text": json.dumps(original) if original is not None else None,
        "is_verified": bool(raw.get("is_verified", False)),
    }
