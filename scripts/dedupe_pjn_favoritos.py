"""
Remove legacy duplicate favoritos (bare "68809" next to padded "068809").
Dry run by default; pass --apply to delete and renumber.

Usage:
    python scripts/dedupe_pjn_favoritos.py [--apply]
"""

import argparse
import asyncio
import logging
import sys
sys.path.insert(0, ".")

from favsync.core.config import get_settings
from favsync.core.database import close_db, get_session_factory
from favsync.core.logging_config import setup_logging
from favsync.services.pjn.dedupe import dedupe_favoritos

logger = logging.getLogger("favsync.cli.dedupe")


async def run(apply: bool) -> int:
    if not get_settings().database_url:
        logger.error("DATABASE_URL is not configured")
        return 2
    try:
        plan = await dedupe_favoritos(get_session_factory(), apply=apply)
    except Exception:
        logger.exception("Duplicate cleanup failed")
        return 1
    finally:
        await close_db()

    if plan.is_empty:
        print("✅ No duplicates found")
    elif apply:
        print(f"✅ Deleted {len(plan.delete_ids)} rows, renumbered {len(plan.renumber)}")
    else:
        print(f"📋 Would delete {len(plan.delete_ids)} rows and renumber {len(plan.renumber)}")
        print("   Re-run with --apply to execute")
    return 0


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Clean up duplicate pjn_favoritos rows")
    parser.add_argument("--apply", action="store_true", help="Execute the cleanup (default: dry run)")
    args = parser.parse_args(argv)

    settings = get_settings()
    setup_logging(level=settings.log_level.upper(), json_format=settings.log_json_format)
    return asyncio.run(run(args.apply))


if __name__ == "__main__":
    raise SystemExit(main())
