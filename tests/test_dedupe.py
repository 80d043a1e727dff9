"""
Tests for the legacy duplicate cleanup.
"""
import pytest
from datetime import datetime, timezone
from sqlalchemy import select

from favsync.core.database import get_db_session, get_session_factory
from favsync.models.models import PjnFavorito
from favsync.services.pjn.dedupe import LegacyRow, dedupe_favoritos, plan_dedupe

OLD = datetime(2023, 1, 1, tzinfo=timezone.utc)
NEW = datetime(2024, 1, 1, tzinfo=timezone.utc)


class TestPlanDedupe:

    def test_freshest_row_wins(self):
        plan = plan_dedupe([
            LegacyRow("padded", "CIV", "068809", 2017, updated_at=OLD),
            LegacyRow("bare", "CIV", "68809", 2017, updated_at=NEW, notas="nota"),
        ])
        assert plan.groups == 1
        assert plan.delete_ids == ["padded"]
        assert plan.renumber == {"bare": "068809"}
        assert plan.dropped_notes == []

    def test_tie_prefers_canonical_form(self):
        plan = plan_dedupe([
            LegacyRow("bare", "CIV", "68809", 2017, updated_at=NEW, notas="se pierde"),
            LegacyRow("padded", "CIV", "068809", 2017, updated_at=NEW),
        ])
        assert plan.delete_ids == ["bare"]
        assert plan.renumber == {}
        assert plan.dropped_notes == ["bare"]

    def test_single_bare_row_is_renumbered(self):
        plan = plan_dedupe([LegacyRow("a", "CIV", "5", 2021, updated_at=OLD)])
        assert plan.groups == 0
        assert plan.delete_ids == []
        assert plan.renumber == {"a": "000005"}

    def test_clean_table(self):
        plan = plan_dedupe([
            LegacyRow("a", "CIV", "000005", 2021),
            LegacyRow("b", "CIV", "000005", 2022),
        ])
        assert plan.is_empty


class TestDedupeFavoritos:

    async def _seed(self):
        async with get_db_session() as session:
            session.add_all([
                PjnFavorito(id="padded", jurisdiccion="CIV", numero="068809", anio=2017, updated_at=OLD),
                PjnFavorito(id="bare", jurisdiccion="CIV", numero="68809", anio=2017, updated_at=NEW, notas="nota"),
                PjnFavorito(id="other", jurisdiccion="COM", numero="000012", anio=2020, updated_at=OLD),
            ])

    async def _rows(self):
        async with get_db_session() as session:
            result = await session.execute(select(PjnFavorito.id, PjnFavorito.numero).order_by(PjnFavorito.id))
            return result.all()

    @pytest.mark.asyncio
    async def test_dry_run_changes_nothing(self):
        await self._seed()
        plan = await dedupe_favoritos(get_session_factory())
        assert plan.delete_ids == ["padded"]
        assert len(await self._rows()) == 3

    @pytest.mark.asyncio
    async def test_apply(self):
        await self._seed()
        await dedupe_favoritos(get_session_factory(), apply=True)

        rows = await self._rows()
        assert [tuple(r) for r in rows] == [("bare", "068809"), ("other", "000012")]

        async with get_db_session() as session:
            survivor = await session.get(PjnFavorito, "bare")
        assert survivor.notas == "nota"
