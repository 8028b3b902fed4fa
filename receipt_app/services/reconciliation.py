"""
Amount reconciliation.

Derives missing amounts and repairs inconsistent ones using
total = subtotal + tax and tax = subtotal × pct / 100. Steps run in a fixed
order and each only fires when its precondition holds. Every monetary
derivation is rounded to cents immediately.
"""

import re
import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Dict, Optional

from receipt_app.utils.money import round_money

logger = logging.getLogger(__name__)


# Extracted tax may disagree with subtotal × pct by at most this much
COMPUTED_TAX_TOLERANCE = Decimal('0.05')
# subtotal + tax may disagree with total by at most this much
TOTAL_TOLERANCE = Decimal('0.10')

HUNDRED = Decimal('100')
ZERO = Decimal('0.00')

ZERO_TAX_PATTERN = re.compile(
    r'\b(?:tax|impuestos?|iva|i\.v\.a\.?|itbms|igv|vat)\b[^\n]{0,30}?(?<![\d.,])0{1,3}[.,]00(?!\d)',
    re.IGNORECASE,
)


@dataclass
class AmountFields:
    """Working set of monetary fields, mutated step by step during reconciliation."""
    total: Optional[Decimal] = None
    subtotal: Optional[Decimal] = None
    tax: Optional[Decimal] = None
    tax_percentage: Optional[Decimal] = None


def _percentage(tax: Decimal, subtotal: Decimal) -> Optional[Decimal]:
    """tax / subtotal × 100, kept only when it lands in [0, 100]."""
    pct = round_money(tax / subtotal * HUNDRED)
    if pct is None or pct < 0 or pct > HUNDRED:
        return None
    return pct


class AmountReconciler:
    """Reconciles subtotal, tax, tax percentage and total."""

    def __init__(self, raw_text: str, fallback_subtotal: Optional[Decimal] = None, _debug=None):
        self.raw_text = raw_text or ''
        self.fallback_subtotal = fallback_subtotal
        self._debug = _debug

    def _trace(self, step: str, fields: AmountFields) -> None:
        logger.debug("Reconciliation step applied", extra={
            "step": step,
            "total": str(fields.total),
            "subtotal": str(fields.subtotal),
            "tax": str(fields.tax),
            "tax_percentage": str(fields.tax_percentage),
        })
        if self._debug is not None:
            self._debug.setdefault('reconciliation_steps', []).append(step)

    def reconcile(self, fields: AmountFields) -> AmountFields:
        self._detect_zero_tax(fields)
        self._subtotal_from_total_and_tax(fields)
        self._subtotal_from_total_and_percentage(fields)
        self._prefer_computed_tax(fields)
        self._tax_from_total_and_subtotal(fields)
        self._percentage_from_tax(fields)
        self._total_from_parts(fields)
        self._check_consistency(fields)
        self._fallback_subtotal(fields)
        return fields

    def _detect_zero_tax(self, f: AmountFields) -> None:
        if f.total is None or f.tax is not None or f.tax_percentage is not None:
            return
        if not ZERO_TAX_PATTERN.search(self.raw_text):
            return
        f.tax = ZERO
        f.tax_percentage = ZERO
        f.subtotal = f.total
        self._trace('zero_tax', f)

    def _subtotal_from_total_and_tax(self, f: AmountFields) -> None:
        if f.subtotal is None and f.total is not None and f.tax is not None:
            f.subtotal = round_money(f.total - f.tax)
            self._trace('subtotal_from_total_minus_tax', f)

    def _subtotal_from_total_and_percentage(self, f: AmountFields) -> None:
        if f.subtotal is not None or f.total is None or f.tax_percentage is None:
            return
        f.subtotal = round_money(f.total / (1 + f.tax_percentage / HUNDRED))
        if f.tax is None and f.subtotal is not None:
            f.tax = round_money(f.total - f.subtotal)
        self._trace('subtotal_from_total_and_percentage', f)

    def _prefer_computed_tax(self, f: AmountFields) -> None:
        if f.subtotal is None or f.tax_percentage is None:
            return
        computed = round_money(f.subtotal * f.tax_percentage / HUNDRED)
        if computed is None:
            return
        if f.tax is None:
            f.tax = computed
            self._trace('tax_from_percentage', f)
        elif abs(f.tax - computed) > COMPUTED_TAX_TOLERANCE:
            logger.debug("Extracted tax overridden by computed tax", extra={
                "extracted_tax": str(f.tax),
                "computed_tax": str(computed),
            })
            f.tax = computed
            self._trace('computed_tax_override', f)

    def _tax_from_total_and_subtotal(self, f: AmountFields) -> None:
        if f.tax is None and f.total is not None and f.subtotal is not None:
            f.tax = round_money(f.total - f.subtotal)
            self._trace('tax_from_total_minus_subtotal', f)

    def _percentage_from_tax(self, f: AmountFields) -> None:
        if f.tax_percentage is not None or f.tax is None or f.subtotal is None:
            return
        if f.subtotal <= 0:
            return
        f.tax_percentage = _percentage(f.tax, f.subtotal)
        self._trace('percentage_from_tax', f)

    def _total_from_parts(self, f: AmountFields) -> None:
        if f.total is None and f.subtotal is not None and f.tax is not None:
            f.total = round_money(f.subtotal + f.tax)
            self._trace('total_from_subtotal_plus_tax', f)

    def _check_consistency(self, f: AmountFields) -> None:
        if f.subtotal is None or f.tax is None or f.total is None:
            return
        if abs(f.subtotal + f.tax - f.total) <= TOTAL_TOLERANCE:
            return
        # Total and subtotal are trusted over the extracted tax
        logger.debug("Amount inconsistency, rebuilding tax from total and subtotal", extra={
            "subtotal": str(f.subtotal),
            "tax": str(f.tax),
            "total": str(f.total),
        })
        f.tax = round_money(f.total - f.subtotal)
        if f.tax is not None and f.subtotal > 0:
            f.tax_percentage = _percentage(f.tax, f.subtotal)
        else:
            f.tax_percentage = None
        self._trace('consistency_correction', f)

    def _fallback_subtotal(self, f: AmountFields) -> None:
        if f.subtotal is not None or f.total is None:
            return
        candidate = self.fallback_subtotal
        if candidate is not None and 0 < candidate < f.total:
            f.subtotal = round_money(candidate)
            if f.tax is None:
                f.tax = round_money(f.total - f.subtotal)
            self._trace('subtotal_from_money_candidate', f)
        else:
            f.subtotal = f.total
            self._trace('subtotal_equals_total', f)


def reconcile_amounts(
    fields: AmountFields,
    raw_text: str,
    fallback_subtotal: Optional[Decimal] = None,
    _debug: Optional[Dict] = None,
) -> AmountFields:
    """Run every reconciliation step over ``fields`` and return them."""
    return AmountReconciler(raw_text, fallback_subtotal, _debug=_debug).reconcile(fields)
