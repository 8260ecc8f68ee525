"""
Format detection for uploaded bank files.

Every known format scores the content independently (0-100) from header
names, structural markers and filename conventions. Rows are never parsed
here; only a leading sample of the file is inspected.
"""

import logging
import re
from dataclasses import dataclass, field
from typing import Dict, Optional, Tuple

from ledgerkeep.config import settings
from ledgerkeep.errors import ParseError
from ledgerkeep.parsers.base import BaseParser, is_blank_row, read_csv_rows
from ledgerkeep.parsers.chase_parser import (
    CHECKING_HEADERS,
    CONTENT_PATTERNS,
    ChaseParser,
    header_scores,
    is_chase_filename,
)
from ledgerkeep.parsers.csv_parser import CSVParser, suggest_mapping
from ledgerkeep.parsers.ofx_parser import ACCOUNT_TYPE_MAP, OFXParser, extract_tag
from ledgerkeep.schemas.import_file import DetectionResponse

logger = logging.getLogger(__name__)


SAMPLE_SIZE = 64 * 1024
CHASE_MAX_CONFIDENCE = 95.0

# Higher wins a tie: a bank dialect says more than OFX, OFX more than plain CSV
SPECIFICITY = {
    "chase": 3,
    "ofx": 2,
    "generic_csv": 1,
}

PARSERS = {
    "chase": ChaseParser,
    "ofx": OFXParser,
    "generic_csv": CSVParser,
}

NUMERIC_CELL_RE = re.compile(r"^[\s$()+\-.,\d/:]+$")


@dataclass
class DetectionResult:
    recognized_format: Optional[str]
    confidence: float
    is_match: bool
    account_type_hint: Optional[str] = None
    candidates: Dict[str, float] = field(default_factory=dict)

    def to_response(self) -> DetectionResponse:
        return DetectionResponse(
            recognized_format=self.recognized_format,
            account_type_hint=self.account_type_hint,
            confidence=self.confidence,
            is_match=self.is_match,
            candidates=self.candidates,
        )


def get_parser(format_name: str) -> BaseParser:
    parser_class = PARSERS.get(format_name)
    if parser_class is None:
        raise ValueError(f"Unknown format: {format_name}")
    return parser_class()


def score_chase(content: str, filename: Optional[str] = None) -> Tuple[float, Optional[str]]:
    lines = [line for line in content.splitlines() if line.strip()]
    if len(lines) < 2:
        return 0.0, None

    checking, credit = header_scores(lines[0])
    best = max(checking, credit)
    patterns = sum(1 for pattern in CONTENT_PATTERNS if pattern.search(content))

    if best < 4 and not (best >= 3 and patterns >= 2):
        return 0.0, None

    header_score = best / len(CHECKING_HEADERS)
    pattern_bonus = min(patterns / len(CONTENT_PATTERNS), 0.3)
    filename_bonus = 0.1 if is_chase_filename(filename) else 0.0

    confidence = min((header_score + pattern_bonus + filename_bonus) * 100, CHASE_MAX_CONFIDENCE)
    account_type = 'credit' if credit > checking else 'checking'
    return round(confidence, 1), account_type


def score_ofx(content: str, filename: Optional[str] = None) -> Tuple[float, Optional[str]]:
    upper = content.upper()
    score = 0.0
    if 'OFXHEADER' in upper:
        score += 40
    if '<OFX>' in upper:
        score += 30
    if '<STMTTRN>' in upper:
        score += 20
    if filename and filename.lower().endswith(('.ofx', '.qfx')):
        score += 10

    if score == 0:
        return 0.0, None

    if '<CCACCTFROM>' in upper:
        account_type = 'credit'
    else:
        account_type = ACCOUNT_TYPE_MAP.get((extract_tag(content, 'ACCTTYPE') or '').upper())
    return min(score, 100.0), account_type


def _looks_like_header(row) -> bool:
    cells = [cell.strip() for cell in row if cell.strip()]
    if not cells:
        return False
    textual = sum(1 for cell in cells if not NUMERIC_CELL_RE.match(cell))
    return textual > len(cells) / 2


def score_generic_csv(content: str, filename: Optional[str] = None) -> Tuple[float, Optional[str]]:
    try:
        rows = [row for row in read_csv_rows(content) if not is_blank_row(row)]
    except ParseError:
        return 0.0, None

    if len(rows) < 2 or len(rows[0]) < 2 or not _looks_like_header(rows[0]):
        return 0.0, None

    mapping = suggest_mapping(rows[0])
    score = 30.0
    if mapping.date_col is not None:
        score += 20
    if mapping.amount_col is not None or mapping.debit_col is not None or mapping.credit_col is not None:
        score += 20
    if mapping.description_col is not None:
        score += 10
    return score, None


SCORERS = {
    "chase": score_chase,
    "ofx": score_ofx,
    "generic_csv": score_generic_csv,
}


def detect_format(
    content: str,
    filename: Optional[str] = None,
    match_threshold: Optional[float] = None,
    min_threshold: Optional[float] = None
) -> DetectionResult:
    """
    Score every known format and report the most confident one.

    ``is_match`` only at or above the match threshold; below the minimum
    threshold no format is reported at all.
    """
    if match_threshold is None:
        match_threshold = settings.detection_match_threshold
    if min_threshold is None:
        min_threshold = settings.detection_min_threshold

    sample = (content or '').lstrip('\ufeff')[:SAMPLE_SIZE]
    if not sample.strip():
        return DetectionResult(recognized_format=None, confidence=0.0, is_match=False)

    candidates: Dict[str, float] = {}
    hints: Dict[str, Optional[str]] = {}
    for name, scorer in SCORERS.items():
        candidates[name], hints[name] = scorer(sample, filename)

    best = max(candidates, key=lambda name: (candidates[name], SPECIFICITY[name]))
    confidence = candidates[best]
    logger.debug(f"Format scores for {filename or '<content>'}: {candidates}")

    if confidence < min_threshold:
        return DetectionResult(
            recognized_format=None,
            confidence=confidence,
            is_match=False,
            candidates=candidates,
        )

    return DetectionResult(
        recognized_format=best,
        confidence=confidence,
        is_match=confidence >= match_threshold,
        account_type_hint=hints[best],
        candidates=candidates,
    )
