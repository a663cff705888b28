"""
Remove uploaded photos that are not referenced by any registration.
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from registration_backend.cleanup import remove_orphaned_uploads
from registration_backend.config import get_settings
from registration_backend.dependencies import db_client_for, storage_client_for

logger = logging.getLogger(__name__)


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Remove orphaned photo uploads")
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Report which files would be removed without deleting them",
    )
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.INFO, format="%(levelname)s:%(message)s")
    settings = get_settings()
    db = db_client_for(settings)
    storage = storage_client_for(settings)

    removed = remove_orphaned_uploads(db, storage, dry_run=args.dry_run)
    if args.dry_run:
        logger.info("%d orphaned uploads found", len(removed))
    else:
        logger.info("Removed %d orphaned uploads", len(removed))
    return 0


if __name__ == "__main__":
    sys.exit(main())
