"""
Totals section segmentation.

Subtotal and tax extraction is scoped to the summary block of a receipt so
that line-item prices are not mistaken for summary figures.
"""

import logging
import re

logger = logging.getLogger(__name__)


TOTALS_ANCHOR = re.compile(
    r'\b(?:'
    r'sub[\s-]*total(?:es)?'
    r'|totale?s?'
    r'|summary|order\s+summary|breakdown'
    r'|resumen|desglose'
    r'|monto\s+gravado|base\s+imponible'
    r'|importe\s+neto|valor\s+neto|amount\s+before\s+tax'
    r')\b',
    re.IGNORECASE,
)

TOTALS_TERMINATOR = re.compile(
    r'\b(?:'
    r'forma\s+de\s+pago|m[eé]todo\s+de\s+pago|medio\s+de\s+pago|pago\s+con'
    r'|payment\s+method|paid\s+(?:by|with)|payment\s+type'
    r'|efectivo|tarjeta|cash|credit\s+card|debit\s+card|visa|mastercard'
    r'|page\s+\d+|p[aá]g(?:ina|\.)?\s*\d+'
    r')\b',
    re.IGNORECASE,
)


def find_totals_section(text: str) -> str:
    """
    Return the totals region of normalized text.

    The region starts at the line holding the first totals anchor and ends
    before the first payment-method or page-marker terminator after it.
    Without an anchor the full text is returned.
    """
    anchor = TOTALS_ANCHOR.search(text)
    if not anchor:
        logger.debug("No totals anchor found, using full text")
        return text

    start = text.rfind('\n', 0, anchor.start()) + 1
    terminator = TOTALS_TERMINATOR.search(text, anchor.end())
    end = terminator.start() if terminator else len(text)

    section = text[start:end].strip()
    if not section:
        return text

    logger.debug("Totals section located", extra={
        "anchor": anchor.group(0),
        "terminator": terminator.group(0) if terminator else None,
        "section_length": len(section),
    })
    return section
