"""
Store ports and their SQLAlchemy adapters.

The reconciliation engine only talks to SourceRepository and FavoritesStore,
so the same algorithm runs behind the HTTP trigger, the CLI, and tests.
"""

import logging
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Optional, Sequence

from sqlalchemy import case, delete, select
from sqlalchemy.dialects import postgresql, sqlite

from favsync.core.utc import utc_now
from favsync.models.models import (
    ENGINE_OWNED_COLUMNS,
    SYNC_METADATA_ID,
    PjnFavorito,
    SourceCase,
    SyncMetadata,
    new_uuid,
)
from favsync.services.pjn.models import DestinationKeyRow, FavoritePayload, SourceCaseRecord

logger = logging.getLogger("favsync.stores")

CONFLICT_COLUMNS = ("jurisdiccion", "numero", "anio")


# =============================================================================
# Ports
# =============================================================================

class SourceRepository(ABC):
    """Read-only access to the scraper's case records."""

    @abstractmethod
    async def fetch_cases(self) -> list[SourceCaseRecord]:
        """Full snapshot, tombstoned records included."""


class FavoritesStore(ABC):
    """Write access to pjn_favoritos, limited to engine-owned columns."""

    @property
    def lock_key(self) -> str:
        """Identifies the destination for the single-flight guard."""
        return type(self).__name__

    @abstractmethod
    async def upsert_batch(self, payloads: Sequence[FavoritePayload]) -> int:
        """Insert or update by composite key. Returns rows written."""

    @abstractmethod
    async def list_keys(self) -> list[DestinationKeyRow]:
        """Identity columns of every stored row."""

    @abstractmethod
    async def delete_batch(self, ids: Sequence[str]) -> int:
        """Delete rows by id. Returns rows deleted."""

    async def mark_synced(self, at: datetime) -> None:
        """Record the completion time of a sync run."""

    async def last_synced_at(self) -> Optional[datetime]:
        return None


# =============================================================================
# SQLAlchemy adapters
# =============================================================================

class SqlSourceRepository(SourceRepository):
    def __init__(self, session_factory):
        self.session_factory = session_factory

    async def fetch_cases(self) -> list[SourceCaseRecord]:
        async with self.session_factory() as session:
            result = await session.execute(
                select(
                    SourceCase.key, SourceCase.expediente, SourceCase.caratula,
                    SourceCase.dependencia, SourceCase.ult_act, SourceCase.situacion,
                    SourceCase.movimientos, SourceCase.removido,
                ).order_by(SourceCase.ult_act.desc())
            )
            return [SourceCaseRecord.from_mapping(row) for row in result.mappings()]


def _insert_for(dialect_name: str):
    if dialect_name == "postgresql":
        return postgresql.insert
    if dialect_name == "sqlite":
        return sqlite.insert
    raise NotImplementedError(f"Upsert not supported for dialect {dialect_name!r}")


def build_upsert(dialect_name: str, rows: list[dict]):
    """
    INSERT ... ON CONFLICT (jurisdiccion, numero, anio) DO UPDATE that only
    touches engine-owned columns. updated_at keeps the stored value when the
    source had no usable date, so reruns do not drift.
    """
    stmt = _insert_for(dialect_name)(PjnFavorito).values(rows)
    excluded = stmt.excluded
    set_ = {col: excluded[col] for col in ENGINE_OWNED_COLUMNS if col != "updated_at"}
    set_["updated_at"] = case(
        (excluded.fecha_ultima_carga_ts.is_(None), PjnFavorito.updated_at),
        else_=excluded.updated_at,
    )
    return stmt.on_conflict_do_update(index_elements=list(CONFLICT_COLUMNS), set_=set_)


class SqlFavoritesStore(FavoritesStore):
    def __init__(self, session_factory, name: str = "pjn_favoritos"):
        self.session_factory = session_factory
        self.name = name

    @property
    def lock_key(self) -> str:
        return self.name

    async def upsert_batch(self, payloads: Sequence[FavoritePayload]) -> int:
        if not payloads:
            return 0
        now = utc_now()
        rows = []
        for payload in payloads:
            row = payload.to_row()
            row["id"] = new_uuid()
            row["created_at"] = now
            rows.append(row)

        async with self.session_factory() as session:
            stmt = build_upsert(session.get_bind().dialect.name, rows)
            await session.execute(stmt)
            await session.commit()
        return len(rows)

    async def list_keys(self) -> list[DestinationKeyRow]:
        async with self.session_factory() as session:
            result = await session.execute(
                select(PjnFavorito.id, PjnFavorito.jurisdiccion, PjnFavorito.numero, PjnFavorito.anio)
            )
            return [
                DestinationKeyRow(id=r.id, jurisdiccion=r.jurisdiccion, numero=r.numero, anio=r.anio)
                for r in result.all()
            ]

    async def delete_batch(self, ids: Sequence[str]) -> int:
        if not ids:
            return 0
        async with self.session_factory() as session:
            result = await session.execute(delete(PjnFavorito).where(PjnFavorito.id.in_(list(ids))))
            await session.commit()
            return result.rowcount or 0

    async def mark_synced(self, at: datetime) -> None:
        async with self.session_factory() as session:
            await session.merge(SyncMetadata(id=SYNC_METADATA_ID, last_sync_at=at))
            await session.commit()

    async def last_synced_at(self) -> Optional[datetime]:
        async with self.session_factory() as session:
            meta = await session.get(SyncMetadata, SYNC_METADATA_ID)
            return meta.last_sync_at if meta else None


class DryRunFavoritesStore(FavoritesStore):
    """Reads from a real store; writes are only counted and logged."""

    def __init__(self, delegate: FavoritesStore):
        self.delegate = delegate

    @property
    def lock_key(self) -> str:
        return self.delegate.lock_key

    async def upsert_batch(self, payloads: Sequence[FavoritePayload]) -> int:
        logger.info("[dry-run] would upsert %d rows", len(payloads))
        return len(payloads)

    async def list_keys(self) -> list[DestinationKeyRow]:
        return await self.delegate.list_keys()

    async def delete_batch(self, ids: Sequence[str]) -> int:
        logger.info("[dry-run] would delete %d rows", len(ids))
        return len(ids)

    async def last_synced_at(self) -> Optional[datetime]:
        return await self.delegate.last_synced_at()
