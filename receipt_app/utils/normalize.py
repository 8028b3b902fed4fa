"""
OCR text normalization applied before digit-sensitive matching.
"""

import re


_OCR_DIGIT_CONFUSIONS = {'O': '0', 'I': '1', 'S': '5'}

# A confusable capital that starts a token or follows a digit, and is
# immediately followed by a digit ("S12.00", "1O5", "I0").
_OCR_DIGIT_PATTERN = re.compile(r'(?:(?<=\d)|(?<![A-Za-z]))[OIS](?=\d)')


def normalize_text(text: str) -> str:
    """
    Normalize raw OCR text.

    Steps, in order:
    1. Unify carriage returns to line breaks
    2. Fix letter/digit confusions (O→0, I→1, S→5) in front of digits
    3. Collapse spaces, tabs and non-breaking spaces
    4. Unify en/em dashes to hyphens
    5. Strip trailing whitespace before line breaks
    6. Collapse consecutive blank lines to one
    7. Trim the whole text

    Proper-noun casing is preserved; callers that need the untouched layout
    (vendor labels, invoice labels, money candidates) use the raw text.
    """
    if not text:
        return ''

    text = text.replace('\r\n', '\n').replace('\r', '\n')
    text = _OCR_DIGIT_PATTERN.sub(lambda m: _OCR_DIGIT_CONFUSIONS[m.group(0)], text)
    text = re.sub(r'[ \t\u00a0]+', ' ', text)
    text = re.sub(r'[\u2013\u2014]', '-', text)
    text = re.sub(r'[ \t]+\n', '\n', text)
    text = re.sub(r'\n{3,}', '\n\n', text)
    return text.strip()
