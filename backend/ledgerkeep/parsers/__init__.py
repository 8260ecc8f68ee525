"""
File parsers package.
"""

from ledgerkeep.parsers.base import AccountInfo, BaseParser, ParseResult
from ledgerkeep.parsers.chase_parser import ChaseParser
from ledgerkeep.parsers.csv_parser import CSVParser
from ledgerkeep.parsers.detector import DetectionResult, detect_format, get_parser
from ledgerkeep.parsers.ofx_parser import OFXParser

__all__ = [
    'AccountInfo',
    'BaseParser',
    'ParseResult',
    'CSVParser',
    'OFXParser',
    'ChaseParser',
    'DetectionResult',
    'detect_format',
    'get_parser',
]
