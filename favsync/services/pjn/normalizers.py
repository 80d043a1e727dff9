"""
Text normalizers for scraped case fields: last-update dates and court names.
"""

import re
from dataclasses import dataclass
from datetime import date, datetime, timezone
from typing import Optional, Union

from favsync.core.utc import parse_iso, to_utc

_WHITESPACE_RE = re.compile(r"\s+")
_LEADING_DIGITS_RE = re.compile(r"\s*(\d+)")
_JUZGADO_CIVIL_RE = re.compile(r"^JUZGADO\s+CIVIL\s+(\d+)\b")
_SECRETARIA_SUFFIX_RE = re.compile(r"\s*-\s*SECRETAR[IÍ]A\s*N?\s*[°º.]?\s*\d+.*$")


# =============================================================================
# Dates
# =============================================================================

@dataclass(frozen=True)
class NormalizedDate:
    """A date as shown in the UI (DD/MM/YYYY) and as a comparable instant."""
    display: Optional[str] = None
    timestamp: Optional[datetime] = None

    @property
    def is_valid(self) -> bool:
        return self.timestamp is not None

    @property
    def iso(self) -> Optional[str]:
        return self.timestamp.isoformat() if self.timestamp else None


INVALID_DATE = NormalizedDate()


def _from_calendar_day(day: date) -> NormalizedDate:
    return NormalizedDate(
        display=day.strftime("%d/%m/%Y"),
        timestamp=datetime(day.year, day.month, day.day, tzinfo=timezone.utc),
    )


def normalize_date(value: Union[str, date, datetime, None]) -> NormalizedDate:
    """
    Normalize "DD/MM/YYYY" or ISO-like input.

    Never raises: anything that is not a real calendar date comes back as
    INVALID_DATE (both fields None).
    """
    if value is None:
        return INVALID_DATE

    if isinstance(value, datetime):
        return NormalizedDate(display=value.strftime("%d/%m/%Y"), timestamp=to_utc(value))
    if isinstance(value, date):
        return _from_calendar_day(value)
    if not isinstance(value, str) or not value.strip():
        return INVALID_DATE

    text = value.strip()
    if "/" in text:
        parts = text.split("/")
        if len(parts) != 3:
            return INVALID_DATE
        # Each part counts up to its first non-digit, so "15/03/2024 10:30" is a date
        matches = [_LEADING_DIGITS_RE.match(p) for p in parts]
        if not all(matches):
            return INVALID_DATE
        try:
            dia, mes, anio = (int(m.group(1)) for m in matches)
            return _from_calendar_day(date(anio, mes, dia))
        except ValueError:
            return INVALID_DATE

    try:
        parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
    except ValueError:
        return INVALID_DATE
    return NormalizedDate(display=parsed.strftime("%d/%m/%Y"), timestamp=parse_iso(text))


def format_ddmmyyyy(value: Union[str, date, datetime, None]) -> Optional[str]:
    """Display form only."""
    return normalize_date(value).display


# =============================================================================
# Courts
# =============================================================================

def normalize_juzgado(raw: Optional[str]) -> Optional[str]:
    """
    Canonical court name without the secretariat suffix.

    "Juzgado  Civil 45 - Secretaria N° 2" -> "JUZGADO CIVIL 45"
    "CAMARA CIVIL - SALA A - SECRETARÍA Nº 1 X" -> "CAMARA CIVIL - SALA A"
    """
    if not raw:
        return None
    text = _WHITESPACE_RE.sub(" ", str(raw)).strip().upper()
    if not text:
        return None

    civil = _JUZGADO_CIVIL_RE.match(text)
    if civil:
        return f"JUZGADO CIVIL {civil.group(1)}"

    stripped = _SECRETARIA_SUFFIX_RE.sub("", text).strip()
    return stripped or None
