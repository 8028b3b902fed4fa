"""
Money candidate dataclasses and scanning.

A money candidate is any money-like span of the raw OCR text. Candidates
are only a fallback signal: the two largest values stand in for the total
and the subtotal when labelled extraction finds nothing.
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import List, Optional, Tuple
import re

from receipt_app.utils.money import parse_simple_amount


# Optional currency marker, then a leading group of 1-3 digits with further
# 3-digit groups separated by '.', ',' or a space, then an optional fraction.
# Ungrouped runs of 4+ digits only count with a fraction (years, phones, ids).
MONEY_CANDIDATE_PATTERN = re.compile(
    r'(?P<currency>\$|USD|EUR|€|GBP|£)?[ \t]*'
    r'(?<![\d.,])(?P<number>\d{1,3}(?:[., ]\d{3})*(?:\.\d{1,2})?|\d{4,}\.\d{1,2})(?![\d])',
    re.IGNORECASE,
)


@dataclass
class Candidate:
    """Base class for extraction candidates."""
    value: Decimal
    match_span: tuple[int, int]  # (start, end) character positions
    raw_text: str = ""  # Original matched text


@dataclass
class MoneyCandidate(Candidate):
    """Money-like token found anywhere in the raw text."""
    currency_marker: Optional[str] = None


def scan_money_candidates(text: str) -> List[MoneyCandidate]:
    """
    Find every money-like token in the raw (non-normalized) text.

    Returns:
        Candidates sorted by value, largest first. Duplicate values are kept.
    """
    candidates: List[MoneyCandidate] = []

    for match in MONEY_CANDIDATE_PATTERN.finditer(text or ''):
        value = parse_simple_amount(match.group('number'))
        if value is None:
            continue
        candidates.append(MoneyCandidate(
            value=value,
            match_span=match.span('number'),
            raw_text=match.group(0).strip(),
            currency_marker=match.group('currency'),
        ))

    candidates.sort(key=lambda c: c.value, reverse=True)
    return candidates


def select_fallback_amounts(
    candidates: List[MoneyCandidate]
) -> Tuple[Optional[Decimal], Optional[Decimal]]:
    """Return (fallback_total, fallback_subtotal): the rank-0 and rank-1 values."""
    fallback_total = candidates[0].value if candidates else None
    fallback_subtotal = candidates[1].value if len(candidates) > 1 else None
    return fallback_total, fallback_subtotal
