"""
Movement log parsing and observation extraction.

The scraper stores each case's movements as a JSON array with no fixed
schema. Entries are parsed once into one of two variants:

- LabeledFragments: raw "Label: value" strings scraped from table cells
- StructuredMovement: entries that already carry explicit fields

Everything downstream dispatches on the variant instead of probing dicts.
"""

import json
import logging
import re
from dataclasses import dataclass
from typing import Any, Iterable, Optional, Union

logger = logging.getLogger("favsync.movements")

_TIPO_RE = re.compile(r"^Tipo\s+actuaci[oó]n:\s*(.*)$", re.IGNORECASE)
_DETALLE_RE = re.compile(r"^Detalle:\s*(.*)$", re.IGNORECASE)

_TIPO_KEYS = ("Tipo actuacion", "tipo_actuacion", "tipoActuacion", "tipo")
_DETALLE_KEYS = ("Detalle", "detalle")


@dataclass(frozen=True)
class LabeledFragments:
    cols: tuple[str, ...]

    def labeled(self, pattern: re.Pattern) -> Optional[str]:
        """First non-empty value for a label among the fragments."""
        for col in self.cols:
            match = pattern.match(col)
            if match and match.group(1).strip():
                return match.group(1).strip()
        return None


@dataclass(frozen=True)
class StructuredMovement:
    tipo: Optional[str] = None
    detalle: Optional[str] = None
    fecha: Optional[str] = None


Movement = Union[LabeledFragments, StructuredMovement]


# =============================================================================
# Parsing
# =============================================================================

def _first_text(entry: dict, keys: Iterable[str]) -> Optional[str]:
    for key in keys:
        value = entry.get(key)
        if value is not None and str(value).strip():
            return str(value).strip()
    return None


def parse_movement(entry: Any) -> Optional[Movement]:
    """Parse one raw entry. Malformed entries return None."""
    if isinstance(entry, list):
        return LabeledFragments(cols=tuple(str(c).strip() for c in entry))
    if not isinstance(entry, dict):
        return None

    cols = entry.get("cols")
    if isinstance(cols, list):
        return LabeledFragments(cols=tuple(str(c).strip() for c in cols))

    tipo = _first_text(entry, _TIPO_KEYS)
    detalle = _first_text(entry, _DETALLE_KEYS)
    if tipo is None and detalle is None:
        return None
    return StructuredMovement(tipo=tipo, detalle=detalle, fecha=_first_text(entry, ("Fecha", "fecha")))


def parse_movements(raw: Any) -> list[Movement]:
    """
    Parse the movements column. Accepts the decoded JSON array or its text
    form; anything unusable yields an empty list.
    """
    if raw is None:
        return []
    if isinstance(raw, str):
        try:
            raw = json.loads(raw)
        except ValueError:
            logger.debug("Undecodable movements payload (%d chars)", len(raw))
            return []
    if not isinstance(raw, list):
        return []

    movements = []
    for entry in raw:
        movement = parse_movement(entry)
        if movement is not None:
            movements.append(movement)
    return movements


def as_movements(movements: Any) -> list[Movement]:
    if isinstance(movements, list) and all(
        isinstance(m, (LabeledFragments, StructuredMovement)) for m in movements
    ):
        return movements
    return parse_movements(movements)


# =============================================================================
# Field access
# =============================================================================

def movement_tipo(movement: Movement) -> Optional[str]:
    if isinstance(movement, LabeledFragments):
        return movement.labeled(_TIPO_RE)
    return movement.tipo


def movement_detalle(movement: Movement) -> Optional[str]:
    """The explicit "Detalle" value of a movement, if any."""
    if isinstance(movement, LabeledFragments):
        return movement.labeled(_DETALLE_RE)
    return movement.detalle


def movement_detail_text(movement: Movement) -> str:
    """
    Text used for stage classification: the Detalle value, or all fragments
    joined when the movement has no Detalle label.
    """
    detalle = movement_detalle(movement)
    if detalle:
        return detalle
    if isinstance(movement, LabeledFragments):
        return " ".join(c for c in movement.cols if c)
    return movement.tipo or ""


# =============================================================================
# Observations
# =============================================================================

def extract_observaciones(movements: Any) -> Optional[str]:
    """
    Build "Tipo actuacion: X\\nDetalle: Y" from the movement log.

    Scans movements in order keeping the first non-empty value found for
    each label, and stops once both are filled. Returns None unless both
    labels were found.
    """
    tipo: Optional[str] = None
    detalle: Optional[str] = None

    for movement in as_movements(movements):
        if tipo is None:
            tipo = movement_tipo(movement)
        if detalle is None:
            detalle = movement_detalle(movement)
        if tipo is not None and detalle is not None:
            return f"Tipo actuacion: {tipo}\nDetalle: {detalle}"

    return None
