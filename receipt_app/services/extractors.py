"""
Field extractors for receipt text.

Every field is driven by an ordered table of PatternSpec rules. Rules are
tried top to bottom and the first one producing a value that passes the
field validator wins, so later rules are looser fallbacks and the order of
each table matters.
"""

import re
import logging
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Callable, Dict, Iterable, Optional

from receipt_app.utils.money import parse_currency, round_money

logger = logging.getLogger(__name__)


# Shared regex fragments
CURRENCY = r'(?:[$€£]|USD|EUR|GBP|B/\.)?'
# Number with optional thousands groups and decimal part; never followed by
# another digit or a percent sign.
NUMBER = r'(\d+(?:[.,]\d{3})*(?:[.,]\d{1,2})?)(?!\d)(?![.,]\d)(?![ \t]*%)'
AMOUNT = CURRENCY + r'[ \t]*' + NUMBER
# Label filler: anything except digits on the same line
GAP = r'[^\d\n]{0,30}?'
PERCENT = r'(\d{1,3}(?:[.,]\d{1,2})?)[ \t]*%'
TAX_WORDS = (
    r'(?:sales\s+tax|tax(?!\s*(?:id|no\b|number|#|payer))|vat|gst|hst|pst|i\.?v\.?a\.?'
    r'|itbms|igv|isv|impuestos?)'
)

MONTHS = (
    r'(?:jan(?:uary)?|feb(?:ruary)?|mar(?:ch)?|apr(?:il)?|may|jun(?:e)?|jul(?:y)?'
    r'|aug(?:ust)?|sep(?:t(?:ember)?)?|oct(?:ober)?|nov(?:ember)?|dec(?:ember)?'
    r'|ene(?:ro)?|febrero|marzo|abr(?:il)?|mayo|junio|julio|ago(?:sto)?'
    r'|sept?(?:iembre)?|octubre|noviembre|dic(?:iembre)?)\.?'
)
DATE_TOKEN = (
    r'(\d{4}[/.-]\d{1,2}[/.-]\d{1,2}'
    r'|\d{1,2}[/.-]\d{1,2}[/.-]\d{2,4}'
    r'|\d{1,2}(?:\s+de)?\s+' + MONTHS + r'(?:\s+de(?:l)?)?[\s,]+\d{4}'
    r'|' + MONTHS + r'\s+\d{1,2},?\s+\d{4})'
)
DATE_SHAPE = re.compile(DATE_TOKEN + r'$', re.IGNORECASE)


def smaller_capture(match: re.Match) -> Optional[Decimal]:
    """Capture selection for two-number forms: the smaller number is the tax."""
    values = [parse_currency(g) for g in match.groups() if g]
    values = [v for v in values if v is not None]
    return min(values) if values else None


def first_capture(match: re.Match) -> Optional[Decimal]:
    return parse_currency(match.group(1))


def text_capture(match: re.Match) -> Optional[str]:
    return match.group(1).strip()


@dataclass(frozen=True)
class PatternSpec:
    """A named regex rule with example, notes and capture-selection rule."""
    name: str
    pattern: str
    example: str
    notes: Optional[str] = None
    select: Callable[[re.Match], object] = first_capture
    flags: int = re.IGNORECASE | re.MULTILINE
    compiled: re.Pattern = field(default=None, init=False, compare=False, repr=False)

    def __post_init__(self):
        object.__setattr__(self, 'compiled', re.compile(self.pattern, self.flags))


SUBTOTAL_PATTERNS = [
    PatternSpec(
        name='subtotal',
        pattern=r'\bsub[\s-]*total(?:es)?\b' + GAP + AMOUNT,
        example='Subtotal: $100.00',
    ),
    PatternSpec(
        name='monto_gravado',
        pattern=r'\bmonto\s+gravado\b' + GAP + AMOUNT,
        example='Monto gravado ITBMS 100.00',
    ),
    PatternSpec(
        name='base_imponible',
        pattern=r'\bbase\s+imponible\b' + GAP + AMOUNT,
        example='Base imponible: 84,03',
    ),
    PatternSpec(
        name='net_amount',
        pattern=(
            r'\b(?:importe\s+neto|valor\s+neto|venta\s+neta|net\s+amount'
            r'|amount\s+before\s+tax|before\s+tax|pre-?tax\s+total)\b' + GAP + AMOUNT
        ),
        example='Importe neto 100,00',
    ),
    PatternSpec(
        name='subtotal_next_line',
        pattern=r'\bsub[\s-]*total\b[^\d\n]*\n[ \t]*' + AMOUNT,
        example='Subtotal\n$100.00',
        notes='Label and amount on separate lines',
    ),
]

TAX_PERCENTAGE_PATTERNS = [
    PatternSpec(
        name='percent_before_tax',
        pattern=r'(?<![\d.,])' + PERCENT + r'[ \t]*(?:de\s+)?' + TAX_WORDS + r'\b',
        example='7% ITBMS',
    ),
    PatternSpec(
        name='tax_then_percent',
        pattern=r'\b' + TAX_WORDS + r'\b[^\d\n%]{0,20}?(?<![\d.,])' + PERCENT,
        example='Tax: 7%',
    ),
    PatternSpec(
        name='rate_then_percent',
        pattern=r'\b(?:rate|tasa|tarifa|al)\b[^\d\n%]{0,15}?(?<![\d.,])' + PERCENT,
        example='Rate: 16%',
    ),
    PatternSpec(
        name='bare_percent',
        pattern=r'(?<![\d.,])' + PERCENT,
        example='16%',
        notes='Loosest fallback; validation rejects discounts and quantities',
    ),
]

TAX_AMOUNT_PATTERNS = [
    PatternSpec(
        name='tax_two_amounts',
        pattern=(
            r'\b' + TAX_WORDS + r'\b[^\d\n]{0,20}?(?:\(?\d{1,2}(?:[.,]\d{1,2})?[ \t]*%\)?[^\d\n]{0,10}?)?'
            + AMOUNT + r'[ \t]+[^\d\n]{0,15}?' + AMOUNT
        ),
        example='IVA 16% 16.00 116.00',
        notes='Tax followed by the adjoining total on the same line',
        select=smaller_capture,
    ),
    PatternSpec(
        name='tax_label',
        pattern=(
            r'\b' + TAX_WORDS + r'\b(?:[ \t]*\(?[ \t]*\d{1,2}(?:[.,]\d{1,2})?[ \t]*%[ \t]*\)?)?'
            + GAP + AMOUNT
        ),
        example='ITBMS (7%): 7.00',
    ),
    PatternSpec(
        name='tax_next_line',
        pattern=r'\b' + TAX_WORDS + r'\b[^\n]*\n[ \t]*' + AMOUNT,
        example='Sales Tax\n$0.33',
        notes='Label and amount on separate lines',
    ),
]

TOTAL_PATTERNS = [
    PatternSpec(
        name='explicit_total',
        pattern=(
            r'\b(?:grand\s+total|total\s+(?:a\s+pagar|due|general|final|factura|venta|pagado|paid|amount)'
            r'|amount\s+(?:due|paid)|importe\s+total|monto\s+total|valor\s+total|total\s+neto\s+a\s+pagar)\b'
            + GAP + AMOUNT
        ),
        example='Total a pagar: B/. 107.00',
    ),
    PatternSpec(
        name='total',
        pattern=(
            r'(?<!sub)(?<!sub-)(?<!sub )\btotal(?:es)?\b'
            r'(?!\s*(?:de\s+)?(?:tax|iva|itbms|impuestos?|items?|art[ií]culos|qty|cant|unidades|desc))'
            + GAP + AMOUNT
        ),
        example='TOTAL: $107.00',
    ),
    PatternSpec(
        name='total_next_line',
        pattern=r'(?<!sub)(?<!sub-)(?<!sub )\btotal\b[^\d\n]*\n[ \t]*' + AMOUNT,
        example='Total\n$107.00',
        notes='Label and amount on separate lines',
    ),
]

DATE_PATTERNS = [
    PatternSpec(
        name='labelled_date',
        pattern=(
            r'\b(?:fecha(?:\s+de\s+(?:emisi[oó]n|factura|compra|venta))?'
            r'|date(?:\s+(?:of\s+issue|issued|paid))?|issued|emitido)\b[^\d\n]{0,20}?' + DATE_TOKEN
        ),
        example='Fecha: 15/01/2024',
        select=text_capture,
    ),
    PatternSpec(
        name='bare_date',
        pattern=r'(?<!\d)' + DATE_TOKEN + r'(?!\d)',
        example='2024-01-15',
        select=text_capture,
    ),
]

VENDOR_PATTERNS = [
    PatternSpec(
        name='labelled_vendor',
        pattern=(
            r'^[ \t]*(?:raz[oó]n\s+social|nombre\s+comercial|nombre\s+de\s+la\s+empresa|emisor|empresa'
            r'|proveedor|comercio|company(?:\s+name)?|vendor|merchant|issuer|seller|supplier'
            r'|trade\s+name|business\s+name)[ \t]*[:\-][ \t]*(\S[^\n]*?)[ \t]*$'
        ),
        example='Razón social: Distribuidora Acme S.A.',
        select=text_capture,
    ),
    PatternSpec(
        name='sold_by',
        pattern=r'^[ \t]*(?:issued\s+by|sold\s+by|billed\s+by|emitida\s+por|vendido\s+por)[ \t]*:?[ \t]*(\S[^\n]*?)[ \t]*$',
        example='Sold by: Acme Corp',
        select=text_capture,
    ),
]

INVOICE_TOKEN = r'([A-Z0-9][A-Z0-9\-/]*)'
INVOICE_PATTERNS = [
    PatternSpec(
        name='document_number',
        pattern=(
            r'\b(?:invoice|factura|receipt|recibo|ticket|bill|boleta|comprobante)\s*'
            r'(?:no\.?|nro\.?|num(?:ber|ero|\.)?|n[uú]mero|n[°º]\.?|#)\s*[:.#]?\s*' + INVOICE_TOKEN
        ),
        example='Invoice #: INV-001',
        select=text_capture,
    ),
    PatternSpec(
        name='folio_serie',
        pattern=(
            r'\b(?:folio(?:\s+fiscal)?|serie|consecutivo|n[uú]mero(?:\s+de\s+(?:factura|documento|comprobante))?'
            r'|no\.\s*de\s+factura|doc(?:umento)?\s*(?:no\.?|#))\s*[:#.]?\s*' + INVOICE_TOKEN
        ),
        example='Folio: A-1234',
        select=text_capture,
    ),
    PatternSpec(
        name='document_label',
        pattern=r'\b(?:invoice|factura|ticket|recibo|receipt)\s*[:#]?\s*' + INVOICE_TOKEN,
        example='Factura A-123',
        notes='Loosest form: label directly followed by the identifier',
        select=text_capture,
    ),
]

GENERIC_INVOICE_WORDS = {
    'no', 'nro', 'num', 'number', 'numero', 'número', 'date', 'fecha', 'total',
    'invoice', 'factura', 'receipt', 'recibo', 'ticket', 'electronica',
    'simplificada', 'original', 'copia', 'copy', 'de', 'del', 'fiscal',
}
# Spanish/English suffixes that mark a common noun rather than an identifier
COMMON_NOUN_SUFFIX = re.compile(r'(?:ci[oó]n|si[oó]n|dad|mente|ic[ao]s?|tion|ment|ing)$', re.IGNORECASE)

VENDOR_STOPLIST = re.compile(
    r'^(?:recibo|receipt|factura|invoice|fecha|date|p[aá]gina|page|ticket|tiquete'
    r'|comprobante|boleta|nota\s+de\s+venta|cliente|customer'
    r'|sub[\s-]*total|total|tax|iva|itbms|impuestos?)\b',
    re.IGNORECASE,
)
NUMBER_ONLY_LINE = re.compile(r'^[\d\s.,:;/#$%()+\-]+$')
SINGLE_LETTER_LINE = re.compile(r'^\W*[A-Za-z]\W*$')
SHORT_CODE_LINE = re.compile(r'^(?=[A-Za-z0-9]*\d)(?=[A-Za-z0-9]*[A-Za-z])[A-Za-z0-9]{1,5}$')


def run_ladder(
    field_name: str,
    specs: Iterable[PatternSpec],
    text: str,
    validate: Callable[[object], bool],
    _debug: Optional[Dict] = None,
):
    """
    Try each rule in order; within a rule try every match in document order.

    Returns:
        First value that passes validation, or None.
    """
    for spec in specs:
        for match in spec.compiled.finditer(text):
            value = spec.select(match)
            if value is None or not validate(value):
                continue
            logger.debug("Field matched", extra={
                "field": field_name,
                "pattern": spec.name,
                "value": str(value),
            })
            if _debug is not None:
                _debug.setdefault('patterns_matched', {})[field_name] = spec.name
            return value
    return None


def extract_subtotal(totals_text: str, _debug=None) -> Optional[Decimal]:
    """Subtotal from the totals section; must be positive."""
    return run_ladder('subtotal', SUBTOTAL_PATTERNS, totals_text, lambda v: v > 0, _debug)


def extract_tax_percentage(totals_text: str, _debug=None) -> Optional[Decimal]:
    """Tax rate from the totals section, restricted to typical rates (0-25%)."""
    return run_ladder(
        'tax_percentage', TAX_PERCENTAGE_PATTERNS, totals_text,
        lambda v: Decimal('0') <= v <= Decimal('25'), _debug,
    )


def extract_tax_amount(
    totals_text: str,
    total: Optional[Decimal] = None,
    subtotal: Optional[Decimal] = None,
    _debug=None,
) -> Optional[Decimal]:
    """
    Tax amount from the totals section.

    A candidate must be non-negative and strictly below the known total and
    subtotal, which keeps quantities and totals out of the tax field.
    """
    def validate(value: Decimal) -> bool:
        if value < 0:
            return False
        if total is not None and value >= total:
            return False
        if subtotal is not None and value >= subtotal:
            return False
        return True

    return run_ladder('tax_amount', TAX_AMOUNT_PATTERNS, totals_text, validate, _debug)


def extract_total(
    text: str,
    fallback_total: Optional[Decimal] = None,
    _debug=None,
) -> Optional[Decimal]:
    """
    Grand total from the whole normalized text.

    Falls back to the largest money candidate, then rounds to cents to drop
    OCR trailing-digit noise (199.656 → 199.66).
    """
    amount = run_ladder('amount', TOTAL_PATTERNS, text, lambda v: v > 0, _debug)
    if amount is None and fallback_total is not None:
        logger.debug("Total falls back to largest money candidate", extra={
            "fallback_total": str(fallback_total),
        })
        if _debug is not None:
            _debug.setdefault('patterns_matched', {})['amount'] = 'money_candidate'
        amount = fallback_total
    return round_money(amount)


def extract_date(text: str, _debug=None) -> Optional[str]:
    """Literal date substring; labelled dates win over the first bare date."""
    return run_ladder('date', DATE_PATTERNS, text, bool, _debug)


def _is_vendor_line(line: str) -> bool:
    if len(line) < 3:
        return False
    if VENDOR_STOPLIST.match(line):
        return False
    if NUMBER_ONLY_LINE.match(line) or SINGLE_LETTER_LINE.match(line):
        return False
    if SHORT_CODE_LINE.match(line):
        return False
    return True


def extract_vendor(raw_text: str, normalized_text: str, _debug=None) -> Optional[str]:
    """
    Vendor name.

    Labelled issuer lines are read from the raw text to keep proper-noun
    casing; otherwise the first plausible line of the normalized text.
    """
    vendor = run_ladder(
        'vendor', VENDOR_PATTERNS, raw_text,
        lambda v: len(v) >= 3 and re.search(r'[A-Za-zÀ-ÿ]', v) is not None, _debug,
    )
    if vendor:
        return vendor

    for line in normalized_text.split('\n'):
        line = line.strip()
        if line and _is_vendor_line(line):
            if _debug is not None:
                _debug.setdefault('patterns_matched', {})['vendor'] = 'first_line'
            return line
    return None


def _is_invoice_number(token: str) -> bool:
    if not re.search(r'\d', token):
        return False
    if DATE_SHAPE.match(token):
        return False
    if token.lower() in GENERIC_INVOICE_WORDS:
        return False
    if COMMON_NOUN_SUFFIX.search(token):
        return False
    return True


def extract_invoice_number(raw_text: str, _debug=None) -> Optional[str]:
    """Identifier following an invoice/folio/serie style label in the raw text."""
    token = run_ladder(
        'invoice_number', INVOICE_PATTERNS, raw_text,
        lambda v: _is_invoice_number(v.strip('-/')), _debug,
    )
    return token.strip('-/') if token else None
