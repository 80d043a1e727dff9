"""
One-time cleanup of legacy duplicate favoritos.

Older rows were stored with the bare case number ("68809") while newer ones
use the zero-padded form ("068809"), so the same case can appear twice.
For each group of rows sharing an identity the freshest updated_at wins,
the others are deleted, and the survivor is renumbered to the padded form.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Iterable, Optional

from sqlalchemy import delete, select, update

from favsync.core.utc import to_utc
from favsync.models.models import PjnFavorito
from favsync.services.pjn.keys import CanonicalKey

logger = logging.getLogger("favsync.dedupe")

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


@dataclass(frozen=True)
class LegacyRow:
    id: str
    jurisdiccion: str
    numero: str
    anio: int
    updated_at: Optional[datetime] = None
    notas: Optional[str] = None

    @property
    def key(self) -> CanonicalKey:
        return CanonicalKey.from_parts(self.jurisdiccion, self.numero, self.anio)


@dataclass
class DedupePlan:
    groups: int = 0
    delete_ids: list[str] = field(default_factory=list)
    renumber: dict[str, str] = field(default_factory=dict)  # id -> padded numero
    dropped_notes: list[str] = field(default_factory=list)  # ids of deleted rows that had notas

    @property
    def is_empty(self) -> bool:
        return not self.delete_ids and not self.renumber


def _freshness(row: LegacyRow) -> tuple:
    stamp = to_utc(row.updated_at) if row.updated_at else _EPOCH
    # Newest first; on a tie prefer the row already in canonical form
    return (stamp, row.numero == row.key.numero, row.id)


def plan_dedupe(rows: Iterable[LegacyRow]) -> DedupePlan:
    groups: dict[CanonicalKey, list[LegacyRow]] = {}
    for row in rows:
        groups.setdefault(row.key, []).append(row)

    plan = DedupePlan()
    for key, members in groups.items():
        members.sort(key=_freshness, reverse=True)
        winner, losers = members[0], members[1:]
        if losers:
            plan.groups += 1
            for loser in losers:
                plan.delete_ids.append(loser.id)
                if loser.notas:
                    plan.dropped_notes.append(loser.id)
        if winner.numero != key.numero:
            plan.renumber[winner.id] = key.numero
    return plan


async def dedupe_favoritos(session_factory, apply: bool = False) -> DedupePlan:
    """Plan the cleanup and, with `apply`, execute it in one transaction."""
    async with session_factory() as session:
        result = await session.execute(
            select(
                PjnFavorito.id, PjnFavorito.jurisdiccion, PjnFavorito.numero,
                PjnFavorito.anio, PjnFavorito.updated_at, PjnFavorito.notas,
            )
        )
        rows = [LegacyRow(*r) for r in result.all()]
        plan = plan_dedupe(rows)

        logger.info(
            "%d duplicate groups, %d rows to delete, %d rows to renumber",
            plan.groups, len(plan.delete_ids), len(plan.renumber),
        )
        for row_id in plan.dropped_notes:
            logger.warning("Row %s has user notes and will be deleted", row_id)

        if not apply or plan.is_empty:
            return plan

        if plan.delete_ids:
            await session.execute(delete(PjnFavorito).where(PjnFavorito.id.in_(plan.delete_ids)))
        for row_id, numero in plan.renumber.items():
            await session.execute(
                update(PjnFavorito).where(PjnFavorito.id == row_id).values(numero=numero)
            )
        await session.commit()
        logger.info("Cleanup applied")
    return plan
