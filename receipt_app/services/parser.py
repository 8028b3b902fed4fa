"""
Receipt parser service for extracting structured data from OCR text.
"""

import logging
import re
from dataclasses import replace
from typing import Callable, Dict, Optional

from receipt_app.models.receipt import ReceiptRecord
from receipt_app.services.extractors import (
    extract_date,
    extract_invoice_number,
    extract_subtotal,
    extract_tax_amount,
    extract_tax_percentage,
    extract_total,
    extract_vendor,
)
from receipt_app.services.reconciliation import AmountFields, reconcile_amounts
from receipt_app.utils.candidates import scan_money_candidates, select_fallback_amounts
from receipt_app.utils.normalize import normalize_text
from receipt_app.utils.sections import find_totals_section

logger = logging.getLogger(__name__)


class ReceiptParser:
    """Service for parsing receipt text and extracting structured data."""

    def parse(self, text: str, _debug: Optional[Dict] = None) -> ReceiptRecord:
        """
        Parse receipt text and extract all available fields.

        Never raises on malformed input: fields that cannot be found or parsed
        are left as None.

        Args:
            text: OCR-extracted text from receipt (pages joined by blank lines)
            _debug: Optional dict collecting matched pattern names and the
                reconciliation steps that fired

        Returns:
            ReceiptRecord with the raw text and every field that was found
        """
        raw_text = text or ''
        normalized = normalize_text(raw_text)

        candidates = scan_money_candidates(raw_text)
        fallback_total, fallback_subtotal = select_fallback_amounts(candidates)
        totals_text = find_totals_section(normalized)

        if _debug is not None:
            _debug['money_candidates'] = [str(c.value) for c in candidates[:5]]
            _debug['totals_section'] = totals_text

        total = self._extract_field('amount', extract_total, normalized, fallback_total, _debug=_debug)
        subtotal = self._extract_field('subtotal', extract_subtotal, totals_text, _debug=_debug)
        tax_percentage = self._extract_field(
            'tax_percentage', extract_tax_percentage, totals_text, _debug=_debug
        )
        tax = self._extract_field(
            'tax_amount', extract_tax_amount, totals_text, total=total, subtotal=subtotal, _debug=_debug
        )

        extracted = AmountFields(
            total=total,
            subtotal=subtotal,
            tax=tax,
            tax_percentage=tax_percentage,
        )
        try:
            amounts = reconcile_amounts(
                replace(extracted),
                raw_text,
                fallback_subtotal=fallback_subtotal,
                _debug=_debug,
            )
        except ArithmeticError:
            logger.warning("Error reconciling amounts, keeping extracted values", exc_info=True)
            amounts = extracted

        record = ReceiptRecord(
            raw_text=raw_text,
            amount=amounts.total,
            subtotal_amount=amounts.subtotal,
            tax_amount=amounts.tax,
            tax_percentage=amounts.tax_percentage,
            invoice_number=self._extract_field('invoice_number', extract_invoice_number, raw_text, _debug=_debug),
            date=self._extract_field('date', extract_date, normalized, _debug=_debug),
            vendor_name=self._extract_field('vendor', extract_vendor, raw_text, normalized, _debug=_debug),
        )

        logger.debug("Receipt parsed", extra={
            "vendor": record.vendor_name,
            "amount": str(record.amount),
            "subtotal": str(record.subtotal_amount),
            "tax": str(record.tax_amount),
            "tax_percentage": str(record.tax_percentage),
        })
        return record

    @staticmethod
    def _extract_field(field_name: str, extractor: Callable, *args, **kwargs):
        """Run one field extractor; a failure leaves only that field absent."""
        try:
            return extractor(*args, **kwargs)
        except (re.error, ArithmeticError, ValueError, IndexError):
            logger.warning("Error extracting field", extra={"field": field_name}, exc_info=True)
            return None
