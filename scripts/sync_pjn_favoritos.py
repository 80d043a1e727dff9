"""
Sync PJN favoritos from the scraper's cases table.
Same engine as the /api/pjn/sync-favoritos endpoint, for cron jobs and manual runs.

Usage:
    python scripts/sync_pjn_favoritos.py [--batch-size N] [--dry-run]

Exit status: 0 on completion (partial runs included), 2 on missing
configuration, 1 on any other failure.
"""

import argparse
import asyncio
import json
import logging
import sys
sys.path.insert(0, ".")

from favsync.core.config import get_settings
from favsync.core.database import close_db
from favsync.core.logging_config import setup_logging
from favsync.services.pjn import PjnSyncError, SyncConfigurationError, sync_favoritos

logger = logging.getLogger("favsync.cli.sync")


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Reconcile pjn_favoritos with the scraper's cases")
    parser.add_argument(
        "--batch-size",
        type=int,
        default=None,
        help="Rows per upsert/delete batch (defaults to SYNC_BATCH_SIZE)",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Compute the summary without writing to the destination",
    )
    args = parser.parse_args(argv)
    if args.batch_size is not None and args.batch_size < 1:
        parser.error("--batch-size must be >= 1")
    return args


async def run(args: argparse.Namespace) -> int:
    settings = get_settings()
    try:
        summary = await sync_favoritos(settings, batch_size=args.batch_size, dry_run=args.dry_run)
    except SyncConfigurationError as e:
        logger.error("%s", e)
        return 2
    except PjnSyncError as e:
        logger.error("Sync failed: %s", e)
        return 1
    except Exception:
        logger.exception("Unexpected error during sync")
        return 1
    finally:
        await close_db()

    print(json.dumps(summary.to_dict(), ensure_ascii=False, indent=2))
    return 0


def main(argv=None) -> int:
    args = parse_args(argv)
    settings = get_settings()
    setup_logging(level=settings.log_level.upper(), json_format=settings.log_json_format)
    return asyncio.run(run(args))


if __name__ == "__main__":
    raise SystemExit(main())
