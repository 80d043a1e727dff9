"""
PJN favourites reconciliation.

Brings pjn_favoritos in line with the scraper's case table:

1. scan the source snapshot: skip unparseable identifiers, collect
   tombstoned keys, build payloads for live records
2. list the stored keys and point each payload at the numero form its
   identity is already stored under (legacy rows may be bare)
3. upsert payloads in batches (first occurrence of a key wins per batch)
4. delete destination rows whose key is tombstoned or no longer live
5. report counts

Best-effort and non-transactional: a failed batch is logged and skipped,
the rest of the run goes on.
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from dataclasses import replace
from datetime import datetime
from typing import Iterable, Iterator, Optional, Sequence, TypeVar

from favsync.core.config import Settings, get_settings
from favsync.core.database import get_session_factory, get_source_session_factory
from favsync.core.utc import utc_now
from favsync.services.pjn.errors import SyncConfigurationError, SyncInProgressError
from favsync.services.pjn.keys import CanonicalKey, KeySet, parse_expediente
from favsync.services.pjn.models import (
    DestinationKeyRow,
    FavoritePayload,
    ScanResult,
    SourceCaseRecord,
    SyncSummary,
)
from favsync.services.pjn.movements import extract_observaciones
from favsync.services.pjn.normalizers import normalize_date, normalize_juzgado
from favsync.services.pjn.stores import (
    DryRunFavoritesStore,
    FavoritesStore,
    SourceRepository,
    SqlFavoritesStore,
    SqlSourceRepository,
)

logger = logging.getLogger("favsync.sync")

DEFAULT_BATCH_SIZE = 100
DEFAULT_BATCH_TIMEOUT = 30.0

T = TypeVar("T")


# =============================================================================
# Scan
# =============================================================================

def build_payload(record: SourceCaseRecord, key: CanonicalKey, now: datetime) -> FavoritePayload:
    """Engine-owned destination fields for one live source record."""
    fecha = normalize_date(record.ult_act)
    return FavoritePayload(
        jurisdiccion=key.jurisdiccion,
        numero=key.numero,
        anio=key.anio,
        caratula=record.caratula or None,
        juzgado=normalize_juzgado(record.dependencia),
        fecha_ultima_carga=fecha.display,
        fecha_ultima_carga_ts=fecha.timestamp,
        observaciones=extract_observaciones(record.movimientos),
        source_url=None,
        updated_at=fecha.timestamp or now,
    )


def scan_source(records: Iterable[SourceCaseRecord], now: Optional[datetime] = None) -> ScanResult:
    """Split the source snapshot into payloads, live keys and tombstoned keys."""
    now = now or utc_now()
    scan = ScanResult()

    for record in records:
        scan.total_source += 1
        key = parse_expediente(record.identifier)
        if key is None:
            scan.skipped += 1
            logger.debug("Skipping unparseable identifier %r", record.identifier)
            continue

        if record.removido:
            scan.tombstoned += 1
            scan.removed_keys.add(key)
            continue

        scan.live_keys.add(key)
        scan.payloads.append(build_payload(record, key, now))

    return scan


# =============================================================================
# Batching helpers
# =============================================================================

def chunked(items: Sequence[T], size: int) -> Iterator[Sequence[T]]:
    for start in range(0, len(items), size):
        yield items[start:start + size]


def dedupe_batch(batch: Iterable[FavoritePayload]) -> list[FavoritePayload]:
    """Drop later payloads for a key already seen in the batch."""
    seen: set[CanonicalKey] = set()
    unique = []
    for payload in batch:
        if payload.key in seen:
            continue
        seen.add(payload.key)
        unique.append(payload)
    return unique


def align_to_stored(
    payloads: Sequence[FavoritePayload],
    rows: Iterable[DestinationKeyRow],
) -> list[FavoritePayload]:
    """
    Rewrite each payload's numero to the form its identity is already stored
    under, so the upsert conflict hits legacy bare rows instead of inserting a
    padded twin. Keys not yet stored keep the padded form.
    """
    stored: dict[CanonicalKey, str] = {}
    for row in rows:
        key = row.key
        # A padded row takes precedence over a bare one for the same identity
        if key not in stored or row.numero == key.numero:
            stored[key] = row.numero

    aligned = []
    for payload in payloads:
        numero = stored.get(payload.key)
        if numero is not None and numero != payload.numero:
            payload = replace(payload, numero=numero)
        aligned.append(payload)
    return aligned


def plan_deletions(
    rows: Iterable[DestinationKeyRow],
    live_keys: KeySet,
    removed_keys: KeySet,
) -> list[str]:
    """Ids of rows tombstoned at the source or absent from the live set."""
    doomed = []
    for row in rows:
        key = row.key
        if key in removed_keys or key not in live_keys:
            doomed.append(row.id)
    return doomed


# =============================================================================
# Single-flight guard
# =============================================================================

class SingleFlight:
    """
    Rejects a second run against the same destination while one is active.
    Covers one process only; see DESIGN.md for the cross-process caveat.
    """

    def __init__(self):
        self._active: set[str] = set()

    def is_running(self, key: str) -> bool:
        return key in self._active

    @asynccontextmanager
    async def guard(self, key: str):
        if key in self._active:
            raise SyncInProgressError(f"A sync of {key} is already running")
        self._active.add(key)
        try:
            yield
        finally:
            self._active.discard(key)


single_flight = SingleFlight()


# =============================================================================
# Reconcile
# =============================================================================

async def _upsert_all(
    store: FavoritesStore,
    payloads: Sequence[FavoritePayload],
    summary: SyncSummary,
    batch_size: int,
    batch_timeout: Optional[float],
) -> None:
    for index, batch in enumerate(chunked(payloads, batch_size), start=1):
        unique = dedupe_batch(batch)
        if not unique:
            continue
        try:
            written = await asyncio.wait_for(store.upsert_batch(unique), timeout=batch_timeout)
        except asyncio.TimeoutError:
            summary.failed_upsert_batches += 1
            logger.error("Upsert batch %d timed out after %ss; skipped", index, batch_timeout)
            continue
        except Exception as e:
            summary.failed_upsert_batches += 1
            logger.error("Upsert batch %d failed (%d rows): %s", index, len(unique), e)
            continue
        summary.upserted += written


async def _delete_all(
    store: FavoritesStore,
    ids: Sequence[str],
    summary: SyncSummary,
    batch_size: int,
    batch_timeout: Optional[float],
) -> None:
    for index, batch in enumerate(chunked(ids, batch_size), start=1):
        try:
            removed = await asyncio.wait_for(store.delete_batch(batch), timeout=batch_timeout)
        except asyncio.TimeoutError:
            summary.failed_delete_batches += 1
            logger.error("Delete batch %d timed out after %ss; skipped", index, batch_timeout)
            continue
        except Exception as e:
            summary.failed_delete_batches += 1
            logger.error("Delete batch %d failed (%d rows): %s", index, len(batch), e)
            continue
        summary.deleted += removed


async def reconcile(
    source: SourceRepository,
    store: FavoritesStore,
    *,
    batch_size: int = DEFAULT_BATCH_SIZE,
    batch_timeout: Optional[float] = DEFAULT_BATCH_TIMEOUT,
    now: Optional[datetime] = None,
) -> SyncSummary:
    """
    Run one reconciliation of `source` into `store`.

    Re-running against an unchanged source leaves the destination unchanged.
    Store errors while reading the source propagate; errors inside a batch
    are counted in the summary instead.
    """
    if batch_size < 1:
        raise ValueError("batch_size must be >= 1")
    now = now or utc_now()
    summary = SyncSummary(dry_run=isinstance(store, DryRunFavoritesStore))

    logger.info("Reading source cases...")
    records = await source.fetch_cases()
    if not records:
        logger.info("Source has no cases; nothing to sync")
        summary.message = "No hay casos para sincronizar"
        return summary

    scan = scan_source(records, now)
    summary.total_source = scan.total_source
    summary.skipped = scan.skipped
    summary.tombstoned = scan.tombstoned
    summary.total_upsert_candidates = len(scan.payloads)
    logger.info(
        "Source: %d cases, %d to upsert, %d tombstoned, %d unparseable",
        scan.total_source, len(scan.payloads), scan.tombstoned, scan.skipped,
    )

    if not scan.live_keys and not scan.removed_keys:
        # Every identifier failed to parse: treat as a bad snapshot
        summary.warning = "Ningún expediente válido en la fuente; no se eliminó nada"
        logger.warning("No parseable source identifiers; nothing upserted, deletion pass skipped")
        return summary

    # Rows inserted by this run are all live, so the listing taken before the
    # upserts is also the one the deletion pass needs.
    try:
        current = await asyncio.wait_for(store.list_keys(), timeout=batch_timeout)
    except Exception as e:
        logger.error("Could not list current favoritos: %s", e)
        current = None

    payloads = scan.payloads if current is None else align_to_stored(scan.payloads, current)
    await _upsert_all(store, payloads, summary, batch_size, batch_timeout)
    logger.info("%d favoritos inserted/updated", summary.upserted)

    if current is None:
        summary.message = "Sincronización parcial completada"
        summary.warning = "No se pudieron eliminar expedientes removidos"
        return summary

    doomed = plan_deletions(current, scan.live_keys, scan.removed_keys)
    if doomed:
        logger.info("Deleting %d favoritos (tombstoned or gone from source)", len(doomed))
        await _delete_all(store, doomed, summary, batch_size, batch_timeout)
    else:
        logger.info("No favoritos to delete")

    if summary.failed_batches:
        summary.message = "Sincronización parcial completada"

    try:
        await store.mark_synced(utc_now())
    except Exception as e:
        logger.error("Could not record sync metadata: %s", e)

    logger.info(
        "Sync done: upserted=%d deleted=%d tombstoned=%d skipped=%d failed_batches=%d",
        summary.upserted, summary.deleted, summary.tombstoned, summary.skipped, summary.failed_batches,
    )
    return summary


# =============================================================================
# Wiring
# =============================================================================

def check_configuration(settings: Settings) -> None:
    """Raise SyncConfigurationError before any store is opened."""
    missing = settings.missing_store_settings()
    if missing:
        raise SyncConfigurationError(missing)


async def sync_favoritos(
    settings: Optional[Settings] = None,
    *,
    batch_size: Optional[int] = None,
    dry_run: bool = False,
) -> SyncSummary:
    """
    Reconcile the configured source database into the configured destination.
    Used by both the HTTP trigger and the CLI.
    """
    settings = settings or get_settings()
    check_configuration(settings)

    source = SqlSourceRepository(get_source_session_factory())
    store: FavoritesStore = SqlFavoritesStore(get_session_factory())
    if dry_run:
        store = DryRunFavoritesStore(store)

    async with single_flight.guard(store.lock_key):
        return await reconcile(
            source,
            store,
            batch_size=batch_size or settings.sync_batch_size,
            batch_timeout=settings.sync_batch_timeout_seconds,
        )
