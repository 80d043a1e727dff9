"""
Favsync - Shared Test Fixtures
Provides database setup, an HTTP client, and in-memory store doubles.
"""

import os
import asyncio
import pytest
from datetime import datetime, timezone
from typing import AsyncGenerator, Optional, Sequence
from httpx import AsyncClient, ASGITransport

# Configure test environment BEFORE importing app
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///./test_favsync.db"
os.environ["SOURCE_DATABASE_URL"] = "sqlite+aiosqlite:///./test_favsync_source.db"
os.environ["PJN_SYNC_SECRET"] = ""
os.environ["LOG_LEVEL"] = "WARNING"

from favsync.main import app
from favsync.core.config import get_settings
from favsync.services.pjn.models import DestinationKeyRow, FavoritePayload, SourceCaseRecord
from favsync.services.pjn.stores import FavoritesStore, SourceRepository


# =============================================================================
# Core Fixtures
# =============================================================================

@pytest.fixture
def anyio_backend():
    """Use asyncio for async tests."""
    return "asyncio"


@pytest.fixture(scope="function", autouse=True)
async def setup_test_database():
    """Create destination and source tables before each test, drop them after."""
    from favsync.core.database import get_engine, get_source_engine, close_db, Base, SourceBase
    from favsync.models import models  # noqa: F401  (registers the models)

    engine = get_engine()
    source_engine = get_source_engine()
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    async with source_engine.begin() as conn:
        await conn.run_sync(SourceBase.metadata.create_all)

    yield

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    async with source_engine.begin() as conn:
        await conn.run_sync(SourceBase.metadata.drop_all)

    await close_db()


@pytest.fixture(autouse=True)
def cleanup_test_db():
    """Remove the SQLite files after each test."""
    yield
    for db_file in ["test_favsync.db", "test_favsync_source.db"]:
        if os.path.exists(db_file):
            try:
                os.remove(db_file)
            except PermissionError:
                pass


@pytest.fixture
async def client() -> AsyncGenerator[AsyncClient, None]:
    """Create async test client."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


@pytest.fixture
def settings():
    """Get test settings."""
    return get_settings()


@pytest.fixture
def override_settings():
    """Swap the settings seen by the routers: override_settings(pjn_sync_secret="x")."""
    def _override(**changes):
        patched = get_settings().model_copy(update=changes)
        app.dependency_overrides[get_settings] = lambda: patched
        return patched
    yield _override
    app.dependency_overrides.pop(get_settings, None)


# =============================================================================
# Store Doubles
# =============================================================================

class FakeSource(SourceRepository):
    """Source snapshot held in memory."""

    def __init__(self, records: Sequence[SourceCaseRecord] = ()):
        self.records = list(records)

    async def fetch_cases(self) -> list[SourceCaseRecord]:
        return list(self.records)


class MemoryFavoritesStore(FavoritesStore):
    """
    pjn_favoritos in a dict, with the same conflict rule as the database:
    rows collide only on the exact stored (jurisdiccion, numero, anio).
    """

    def __init__(self):
        self.rows: dict[str, dict] = {}
        self.fail_upsert_batches: set[int] = set()
        self.fail_delete_batches: set[int] = set()
        self.slow_upsert_batches: set[int] = set()
        self.fail_list_keys = False
        self.synced_at: Optional[datetime] = None
        self._upsert_calls = 0
        self._delete_calls = 0
        self._next_id = 0

    def _new_id(self) -> str:
        self._next_id += 1
        return f"row-{self._next_id}"

    def seed(self, jurisdiccion, numero, anio, **fields) -> str:
        row_id = self._new_id()
        self.rows[row_id] = {
            "id": row_id,
            "jurisdiccion": jurisdiccion,
            "numero": numero,
            "anio": anio,
            "notas": None,
            "notas_updated_at": None,
            **fields,
        }
        return row_id

    def find(self, jurisdiccion, numero, anio) -> Optional[dict]:
        for row in self.rows.values():
            if (row["jurisdiccion"], row["numero"], row["anio"]) == (jurisdiccion, numero, anio):
                return row
        return None

    async def upsert_batch(self, payloads: Sequence[FavoritePayload]) -> int:
        self._upsert_calls += 1
        if self._upsert_calls in self.fail_upsert_batches:
            raise RuntimeError("upsert failed")
        if self._upsert_calls in self.slow_upsert_batches:
            await asyncio.sleep(1)
        for payload in payloads:
            data = payload.to_row()
            existing = self.find(payload.jurisdiccion, payload.numero, payload.anio)
            if existing is None:
                self.seed(**data)
                continue
            if data["fecha_ultima_carga_ts"] is None:
                data["updated_at"] = existing.get("updated_at")
            existing.update(data)
        return len(payloads)

    async def list_keys(self) -> list[DestinationKeyRow]:
        if self.fail_list_keys:
            raise RuntimeError("list failed")
        return [
            DestinationKeyRow(id=r["id"], jurisdiccion=r["jurisdiccion"], numero=r["numero"], anio=r["anio"])
            for r in self.rows.values()
        ]

    async def delete_batch(self, ids: Sequence[str]) -> int:
        self._delete_calls += 1
        if self._delete_calls in self.fail_delete_batches:
            raise RuntimeError("delete failed")
        removed = 0
        for row_id in ids:
            if self.rows.pop(row_id, None) is not None:
                removed += 1
        return removed

    async def mark_synced(self, at: datetime) -> None:
        self.synced_at = at


@pytest.fixture
def memory_store() -> MemoryFavoritesStore:
    return MemoryFavoritesStore()


@pytest.fixture
def fixed_now() -> datetime:
    return datetime(2024, 6, 15, 12, 0, tzinfo=timezone.utc)


def make_case(identifier, ult_act="15/03/2024", removido=False, movimientos=None, **extra) -> SourceCaseRecord:
    """Source record with sensible defaults."""
    return SourceCaseRecord(
        key=identifier,
        caratula=extra.get("caratula", f"PEREZ C/ GOMEZ ({identifier})"),
        dependencia=extra.get("dependencia", "JUZGADO CIVIL 45 - SECRETARIA N° 2"),
        ult_act=ult_act,
        situacion=extra.get("situacion"),
        movimientos=movimientos,
        removido=removido,
    )


@pytest.fixture
def case_factory():
    return make_case
