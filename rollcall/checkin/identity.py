"""
Identity normalizer for registration codes ("RGM").

"AB-123", " ab 123 " and "Ab.123" must collide when checking for duplicate
check-ins, so comparison always uses normalize(raw) rather than the raw text.
"""
from __future__ import annotations

import re
import unicodedata

_WHITESPACE_RUN = re.compile(r"\s+")
_NOT_ASCII_ALNUM = re.compile(r"[^a-z0-9]")


def normalize(raw: object) -> str:
    """
    Canonical duplicate key for a registration code.

    Order: NFKC → lowercase → collapse whitespace → drop everything that is
    not [a-z0-9] → strip. Non-string input is stringified first.
    """
    text = unicodedata.normalize("NFKC", str(raw))
    text = text.lower()
    text = _WHITESPACE_RUN.sub(" ", text)
    text = _NOT_ASCII_ALNUM.sub("", text)
    return text.strip()
