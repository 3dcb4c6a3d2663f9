"""Import the CID-10 catalog from an SSF ``cid.csv`` export.

Usage:
    python -m coding_core.scripts.import_cid10 path/to/cid.csv
    python -m coding_core.scripts.import_cid10 path/to/cid.csv --version 2025-SSF
"""

import argparse
import asyncio
import logging
from pathlib import Path

from coding_core.core.database import engine
from coding_core.core.redis import close_redis
from coding_core.services.cid10_import import DEFAULT_CID10_VERSION, import_cid10_rows, read_cid10_file
from coding_core.services.coding_service import get_coding_service

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


async def main():
    """CLI entry point."""
    parser = argparse.ArgumentParser(description="Import CID-10 codes from the SSF cid.csv export")
    parser.add_argument("path", type=Path, help="Path to cid.csv")
    parser.add_argument(
        "--version",
        type=str,
        default=DEFAULT_CID10_VERSION,
        help=f"Code system version label (default: {DEFAULT_CID10_VERSION})",
    )
    parser.add_argument(
        "--no-fts-index",
        action="store_true",
        help="Don't create the full-text search index after importing",
    )
    args = parser.parse_args()

    rows = read_cid10_file(args.path)
    logger.info(f"Read {len(rows):,} rows from {args.path}")

    service = get_coding_service()
    try:
        result = await import_cid10_rows(service, rows, version=args.version)
        logger.info(f"Import complete: {result.imported:,} codes")
        if not args.no_fts_index:
            created = await service.ensure_fts_index()
            logger.info(f"Full-text index {'ready' if created else 'not available'}")
    finally:
        await service.aclose()
        await close_redis()
        await engine.dispose()


if __name__ == "__main__":
    asyncio.run(main())
