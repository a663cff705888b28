"""
Removal of uploaded photos that no registration points at.

A photo upload writes the file before it looks up the registration, so a
failed lookup leaves the file behind. Nothing removes those automatically;
this pass is run by hand through ``scripts/cleanup_orphaned_uploads.py``.
"""

from __future__ import annotations

import logging
import posixpath

from registration_backend.db import DbClient
from registration_backend.storage import StorageClient

logger = logging.getLogger(__name__)


def referenced_filenames(db: DbClient) -> set[str]:
    return {
        posixpath.basename(record.photo_url)
        for record in db.list_registrations()
        if record.photo_url
    }


def find_orphaned_uploads(db: DbClient, storage: StorageClient) -> list[str]:
    referenced = referenced_filenames(db)
    return [name for name in storage.list_files() if name not in referenced]


def remove_orphaned_uploads(
    db: DbClient, storage: StorageClient, *, dry_run: bool = False
) -> list[str]:
    orphaned = find_orphaned_uploads(db, storage)
    for name in orphaned:
        if dry_run:
            logger.info("Would remove %s", name)
            continue
        storage.delete(name)
        logger.info("Removed %s", name)
    return orphaned
