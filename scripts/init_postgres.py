"""Create the destination tables (pjn_favoritos, pjn_sync_metadata)."""
import asyncio
import sys
sys.path.insert(0, ".")

# Import models to register them with Base
from favsync.models import models  # noqa: F401
from favsync.core.database import get_engine, close_db, Base


async def create_tables():
    """Create all destination tables. The scraper owns the cases table."""
    engine = get_engine()

    print(f"📦 Registered tables: {len(Base.metadata.tables)}")
    for table in Base.metadata.tables:
        print(f"   - {table}")

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    await close_db()

    print("\n✅ Destination tables created")


if __name__ == "__main__":
    asyncio.run(create_tables())
