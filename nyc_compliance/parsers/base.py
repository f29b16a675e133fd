"""
Base parser utilities for Socrata JSON rows.

Provides common helper methods used across all record parsers.
"""

from typing import Any, Dict, Optional


class BaseParser:
    """Base class with common row-access utilities."""

    @staticmethod
    def get_text(row: Dict[str, Any], *keys: str, default: str = "") -> str:
        """Return the first non-empty value among ``keys`` as stripped text."""
        for key in keys:
            value = row.get(key)
            if value is not None and str(value).strip():
                return str(value).strip()
        return default

    @staticmethod
    def get_optional(row: Dict[str, Any], *keys: str) -> Optional[str]:
        """Like get_text but None when every key is missing or blank."""
        text = BaseParser.get_text(row, *keys)
        return text or None

    @staticmethod
    def get_float(row: Dict[str, Any], *keys: str) -> Optional[float]:
        """Parse a numeric column, tolerating "$1,200.00" style values."""
        text = BaseParser.get_text(row, *keys)
        if not text:
            return None
        try:
            return float(text.replace("$", "").replace(",", ""))
        except ValueError:
            return None

    @staticmethod
    def get_int(row: Dict[str, Any], *keys: str) -> Optional[int]:
        value = BaseParser.get_float(row, *keys)
        return int(value) if value is not None else None
