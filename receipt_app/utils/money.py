"""
Shared money parsing utilities with multi-locale support.

Handles the separator conventions seen on English and Spanish receipts:
- US: 1,234.56
- European / Latin American: 1.234,56 or 12,50
- Missing decimals: 1234 → 1234
"""

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from enum import Enum
from typing import Optional
import re


CENT = Decimal('0.01')

# "1.234,56" / "12.345.678,9": dot thousands groups, comma decimal
_DOT_THOUSANDS_COMMA_DECIMAL = re.compile(r'-?\d{1,3}(?:\.\d{3})+,\d{1,2}')
_COMMA_DECIMAL_TAIL = re.compile(r',\d{1,2}$')


class MoneyFormat(Enum):
    """Money format locale hints."""
    US = "US"  # 1,234.56
    EUROPEAN = "EUROPEAN"  # 1.234,56 or 12,50


def parse_currency(token: str) -> Optional[Decimal]:
    """
    Parse a single numeric token with ambiguous separators.

    Args:
        token: Substring holding one number (e.g. "$1,234.56", "1.234,56")

    Returns:
        Decimal value, or None when nothing parsable remains. Callers must
        check for None before assigning the value to a field.

    Examples:
        >>> parse_currency("1,234.56")
        Decimal('1234.56')
        >>> parse_currency("1.234,56")
        Decimal('1234.56')
        >>> parse_currency("12,5")
        Decimal('12.5')
    """
    if not token or not isinstance(token, str):
        return None

    cleaned = re.sub(r'[^\d.,-]', '', token)
    if not cleaned:
        return None

    if _detect_money_format(cleaned) == MoneyFormat.EUROPEAN:
        normalized = _parse_european_format(cleaned)
    else:
        normalized = _parse_us_format(cleaned)

    try:
        value = Decimal(normalized)
    except (InvalidOperation, ValueError):
        return None

    if not value.is_finite():
        return None
    return value


def _detect_money_format(cleaned: str) -> MoneyFormat:
    """
    Decide which separator is the decimal point.

    Heuristics:
    - Both separators: European only for the exact "1.234,56" shape
    - Comma only: decimal when followed by 1-2 trailing digits
    - Otherwise US (dots are decimal points)
    """
    if '.' in cleaned and ',' in cleaned:
        if _DOT_THOUSANDS_COMMA_DECIMAL.fullmatch(cleaned):
            return MoneyFormat.EUROPEAN
        return MoneyFormat.US

    if ',' in cleaned and _COMMA_DECIMAL_TAIL.search(cleaned):
        return MoneyFormat.EUROPEAN

    return MoneyFormat.US


def _parse_us_format(amount_str: str) -> str:
    """Comma as thousands separator, dot as decimal separator."""
    return amount_str.replace(',', '')


def _parse_european_format(amount_str: str) -> str:
    """Dot as thousands separator, last comma as decimal separator."""
    head, _, tail = amount_str.replace('.', '').rpartition(',')
    return head.replace(',', '') + '.' + tail


def parse_simple_amount(token: str) -> Optional[Decimal]:
    """
    Lenient parse used for money candidates: commas and spaces are always
    thousands separators and the dot is always the decimal point.
    """
    cleaned = token.replace(',', '').replace(' ', '').strip()
    try:
        value = Decimal(cleaned)
    except (InvalidOperation, ValueError):
        return None
    return value if value.is_finite() else None


def round_money(value: Optional[Decimal]) -> Optional[Decimal]:
    """
    Round to cents (half-up), passing None through.

    Values too long to quantize within the decimal context (runaway OCR
    digit runs) come back as None.
    """
    if value is None:
        return None
    try:
        return value.quantize(CENT, rounding=ROUND_HALF_UP)
    except InvalidOperation:
        return None
