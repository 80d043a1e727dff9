"""
Tests for the PJN sync HTTP endpoints.
"""
import pytest
from datetime import datetime, timedelta, timezone

from favsync.core.database import get_db_session, get_source_session_factory
from favsync.core.utc import utc_now
from favsync.models.models import PjnFavorito, SourceCase
from favsync.services.pjn.reconciliation import single_flight


async def seed_source(*cases):
    async with get_source_session_factory()() as session:
        session.add_all(cases)
        await session.commit()


# ============================================================================
# SYNC TRIGGER
# ============================================================================

class TestSyncTrigger:

    @pytest.mark.asyncio
    async def test_get_and_post_return_summary(self, client):
        await seed_source(SourceCase(key="CIV 68809/2017", ult_act="15/03/2024"))

        for method in ("GET", "POST"):
            response = await client.request(method, "/api/pjn/sync-favoritos")
            assert response.status_code == 200
            data = response.json()
            assert data["success"] is True
            assert data["upserted"] == 1
            for field in ("message", "skipped", "deleted", "tombstoned",
                          "totalSource", "totalUpsertCandidates", "failedBatches"):
                assert field in data

    @pytest.mark.asyncio
    async def test_secret_required_when_configured(self, client, override_settings):
        override_settings(pjn_sync_secret="s3cret")

        response = await client.get("/api/pjn/sync-favoritos")
        assert response.status_code == 401
        assert response.json()["detail"]["error"] == "unauthorized"

        response = await client.get("/api/pjn/sync-favoritos?secret=wrong")
        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_secret_via_header_or_query(self, client, override_settings):
        override_settings(pjn_sync_secret="s3cret")

        response = await client.post("/api/pjn/sync-favoritos", headers={"Authorization": "Bearer s3cret"})
        assert response.status_code == 200

        response = await client.get("/api/pjn/sync-favoritos?secret=s3cret")
        assert response.status_code == 200

    @pytest.mark.asyncio
    async def test_configuration_error(self, client, override_settings):
        override_settings(database_url="", source_database_url="")

        response = await client.get("/api/pjn/sync-favoritos")

        assert response.status_code == 500
        detail = response.json()["detail"]
        assert detail["error"] == "configuration_error"
        assert "DATABASE_URL" in detail["missing"]

    @pytest.mark.asyncio
    async def test_concurrent_run_conflict(self, client):
        async with single_flight.guard("pjn_favoritos"):
            response = await client.get("/api/pjn/sync-favoritos")
        assert response.status_code == 409
        assert response.json()["detail"]["error"] == "sync_in_progress"

    @pytest.mark.asyncio
    async def test_sync_status(self, client):
        response = await client.get("/api/pjn/sync-status")
        assert response.json() == {"last_sync_at": None}

        await seed_source(SourceCase(key="CIV 1/2020", ult_act="15/03/2024"))
        await client.post("/api/pjn/sync-favoritos")
        response = await client.get("/api/pjn/sync-status")
        assert response.json()["last_sync_at"] is not None


# ============================================================================
# READ ENDPOINTS
# ============================================================================

class TestFavoritos:

    @pytest.mark.asyncio
    async def test_lists_with_semaphore(self, client, override_settings):
        override_settings(aging_exclude_january=False)
        now = utc_now()
        async with get_db_session() as session:
            session.add_all([
                PjnFavorito(jurisdiccion="CIV", numero="000001", anio=2020,
                            fecha_ultima_carga_ts=now - timedelta(days=5), notas="ok"),
                PjnFavorito(jurisdiccion="CIV", numero="000002", anio=2020,
                            fecha_ultima_carga_ts=now - timedelta(days=90)),
            ])

        response = await client.get("/api/pjn/favoritos")
        assert response.status_code == 200
        items = {i["expediente"]: i for i in response.json()}
        assert items["CIV 000001/2020"]["semaforo"] == "VERDE"
        assert items["CIV 000001/2020"]["notas"] == "ok"
        assert items["CIV 000002/2020"]["semaforo"] == "ROJO"

        response = await client.get("/api/pjn/favoritos?semaforo=ROJO")
        assert [i["numero"] for i in response.json()] == ["000002"]

    @pytest.mark.asyncio
    async def test_undated_rows_listed_last(self, client):
        now = utc_now()
        async with get_db_session() as session:
            session.add_all([
                PjnFavorito(jurisdiccion="CIV", numero="000003", anio=2020),
                PjnFavorito(jurisdiccion="CIV", numero="000001", anio=2020,
                            fecha_ultima_carga_ts=now - timedelta(days=5)),
                PjnFavorito(jurisdiccion="CIV", numero="000002", anio=2020,
                            fecha_ultima_carga_ts=now - timedelta(days=90)),
            ])

        response = await client.get("/api/pjn/favoritos")

        assert response.status_code == 200
        assert [i["numero"] for i in response.json()] == ["000002", "000001", "000003"]


class TestPruebaPericia:

    @pytest.mark.asyncio
    async def test_lists_classified_live_cases(self, client):
        recent = (datetime.now(timezone.utc) - timedelta(days=2)).strftime("%d/%m/%Y")
        await seed_source(
            SourceCase(key="CIV 1/2020", ult_act=recent, dependencia="Juzgado Civil 3",
                       movimientos=[{"cols": ["Detalle: PERITO ACEPTA CARGO"]}]),
            SourceCase(key="CIV 2/2020", ult_act=recent,
                       movimientos=[{"cols": ["Detalle: AUTOS A SENTENCIA"]}]),
            SourceCase(key="CIV 3/2020", ult_act=recent, removido=True,
                       movimientos=[{"cols": ["Detalle: SE ORDENA PERICIA"]}]),
        )

        response = await client.get("/api/pjn/prueba-pericia")

        assert response.status_code == 200
        items = response.json()
        assert len(items) == 1
        assert items[0]["expediente"] == "CIV 000001/2020"
        assert items[0]["regla"] == "perito_acepta_cargo"
        assert items[0]["juzgado"] == "JUZGADO CIVIL 3"
        assert items[0]["semaforo"] == "VERDE"


class TestAging:

    @pytest.mark.asyncio
    async def test_orders_preset_overdue(self, client):
        response = await client.get("/api/pjn/aging", params={
            "reference": "2024-06-15T08:00:00Z",
            "now": "2024-06-15T12:00:00Z",
            "preset": "orders",
            "deadline": "2024-06-15T10:00:00Z",
            "state": "TURNO_ASIGNADO",
        })
        assert response.json() == {"elapsed": 4, "unit": "hours", "semaforo": "ROJO", "overdue": True}

    @pytest.mark.asyncio
    async def test_case_preset(self, client, override_settings):
        override_settings(aging_exclude_january=False)
        response = await client.get("/api/pjn/aging", params={
            "reference": "01/05/2024",
            "now": "2024-06-15T12:00:00Z",
        })
        assert response.json()["elapsed"] == 45
        assert response.json()["semaforo"] == "AMARILLO"


@pytest.mark.asyncio
async def test_health(client):
    response = await client.get("/api/health")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"
