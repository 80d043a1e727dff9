"""
Case identifier parsing.

PJN identifiers look like "CIV 068809/2017". Historical rows store the
number both zero-padded and bare, so every key carries both forms and
lookups accept either.
"""

import re
from dataclasses import dataclass, field
from typing import Iterable, Optional

NUMBER_WIDTH = 6

_EXPEDIENTE_RE = re.compile(r"^\s*([A-Z]+)\s+(\d+)/(\d{4})\b")


def pad_number(numero: str) -> str:
    """Canonical storage form: leading zeros stripped, then padded to 6."""
    return strip_number(numero).zfill(NUMBER_WIDTH)


def strip_number(numero: str) -> str:
    """Bare form: leading zeros stripped ("000" -> "0")."""
    return str(numero).lstrip("0") or "0"


@dataclass(frozen=True)
class CanonicalKey:
    """(jurisdiction, number, year) identity of a case."""
    jurisdiccion: str
    numero: str  # zero-padded canonical form
    anio: int
    raw_numero: Optional[str] = field(default=None, compare=False)  # digits as they appeared in the source

    @classmethod
    def from_parts(cls, jurisdiccion: str, numero, anio) -> "CanonicalKey":
        raw = str(numero).strip()
        return cls(
            jurisdiccion=str(jurisdiccion).strip().upper(),
            numero=pad_number(raw),
            anio=int(anio),
            raw_numero=raw,
        )

    @property
    def bare_numero(self) -> str:
        return strip_number(self.numero)

    @property
    def padded(self) -> tuple[str, str, int]:
        return (self.jurisdiccion, self.numero, self.anio)

    @property
    def bare(self) -> tuple[str, str, int]:
        return (self.jurisdiccion, self.bare_numero, self.anio)

    def forms(self) -> tuple[tuple[str, str, int], ...]:
        """Every tuple this key may be stored under."""
        forms = [self.padded, self.bare]
        if self.raw_numero and (self.jurisdiccion, self.raw_numero, self.anio) not in forms:
            forms.append((self.jurisdiccion, self.raw_numero, self.anio))
        return tuple(forms)

    def __str__(self) -> str:
        return f"{self.jurisdiccion} {self.numero}/{self.anio}"


def normalize(jurisdiccion: str, numero, anio) -> CanonicalKey:
    """Build a key from already separated parts."""
    return CanonicalKey.from_parts(jurisdiccion, numero, anio)


def parse_expediente(text: Optional[str]) -> Optional[CanonicalKey]:
    """
    Parse "<JURISDICTION> <digits>/<year>" into a key.

    Returns None when the text does not match; callers skip and count.
    """
    if not text or not isinstance(text, str):
        return None
    match = _EXPEDIENTE_RE.match(text)
    if not match:
        return None
    jurisdiccion, numero, anio = match.groups()
    return CanonicalKey.from_parts(jurisdiccion, numero, anio)


def same_identity(a: CanonicalKey, b: CanonicalKey) -> bool:
    return (
        a.jurisdiccion == b.jurisdiccion
        and a.anio == b.anio
        and a.bare_numero == b.bare_numero
    )


class KeySet:
    """
    Set of case keys that answers membership for either number form.

    Destination rows are looked up by their stored (jurisdiccion, numero, anio)
    tuple, which may be padded or bare.
    """

    def __init__(self, keys: Iterable[CanonicalKey] = ()):
        self._forms: set[tuple[str, str, int]] = set()
        self._count = 0
        for key in keys:
            self.add(key)

    def add(self, key: CanonicalKey) -> None:
        if key not in self:
            self._count += 1
        self._forms.update(key.forms())

    def __contains__(self, item) -> bool:
        if isinstance(item, CanonicalKey):
            key = item
        else:
            jurisdiccion, numero, anio = item
            key = CanonicalKey.from_parts(jurisdiccion, numero, anio)
        return any(form in self._forms for form in key.forms())

    def __len__(self) -> int:
        return self._count

    def __bool__(self) -> bool:
        return self._count > 0
