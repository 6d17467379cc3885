"""Download filenames for attendance exports."""
from __future__ import annotations

import datetime
import re
import unicodedata
from typing import Optional

_UNSAFE = re.compile(r"[^A-Za-z0-9 _-]")
_WHITESPACE_RUN = re.compile(r"\s+")


def safe_name(name: str) -> str:
    """
    Filesystem-safe slug: strip diacritics, keep [A-Za-z0-9 _-], turn
    whitespace runs into hyphens, lowercase.

    >>> safe_name("Cálculo  II – Turma A")
    'calculo-ii-turma-a'
    """
    decomposed = unicodedata.normalize("NFKD", name)
    without_marks = "".join(ch for ch in decomposed if not unicodedata.combining(ch))
    kept = _UNSAFE.sub("", without_marks).strip()
    return _WHITESPACE_RUN.sub("-", kept).lower()


def export_filename(
    session_name: str,
    extension: str,
    today: Optional[datetime.date] = None,
) -> str:
    """attendance_{safe-name}_{YYYY-MM-DD}.{ext}; empty slugs become 'session'."""
    today = today or datetime.date.today()
    slug = safe_name(session_name) or "session"
    return f"attendance_{slug}_{today.isoformat()}.{extension.lstrip('.')}"
