"""Parsers for registry JSON rows."""

from nyc_compliance.parsers.base import BaseParser
from nyc_compliance.parsers.record_parser import RecordParser, PARSERS, parse_rows

__all__ = [
    "BaseParser",
    "RecordParser",
    "PARSERS",
    "parse_rows",
]
