"""
Registration, photo-attachment and listing operations.

Routes stay thin: they hand the raw request data to these functions and turn
any exception into an error response.
"""

from __future__ import annotations

import logging
import os
import time
from collections.abc import Mapping
from datetime import datetime
from typing import Any, Optional

from fastapi import UploadFile
from fastapi.concurrency import run_in_threadpool
from pydantic import ValidationError

from registration_backend.config import Settings
from registration_backend.db import DbClient, RegistrationRecord
from registration_backend.errors import (
    FileTooLarge,
    InvalidFileType,
    MalformedPayload,
    MissingFile,
    MissingRegistrationId,
    RegistrationNotFound,
    StorageFailure,
)
from registration_backend.schemas import RegistrationPayload
from registration_backend.storage import StorageClient

logger = logging.getLogger(__name__)

UPLOAD_CHUNK_SIZE = 64 * 1024


def _describe_validation_error(exc: ValidationError) -> str:
    first = exc.errors()[0]
    location = ".".join(str(part) for part in first["loc"])
    if location:
        return f"Invalid {location}: {first['msg']}"
    return first["msg"]


def parse_registration_payload(raw: Any) -> RegistrationPayload:
    if not isinstance(raw, Mapping):
        raise MalformedPayload("Registration payload must be an object")
    try:
        return RegistrationPayload.model_validate(dict(raw))
    except ValidationError as exc:
        raise MalformedPayload(_describe_validation_error(exc)) from exc


def create_registration(db: DbClient, raw: Any) -> RegistrationRecord:
    payload = parse_registration_payload(raw)
    return db.create_registration(payload.model_dump(exclude_none=True))


def build_stored_filename(original_filename: str, now_ms: Optional[int] = None) -> str:
    # Same-millisecond uploads of the same name collide; accepted.
    if now_ms is None:
        now_ms = int(time.time() * 1000)
    return f"{now_ms}-{os.path.basename(original_filename)}"


def photo_url_for(stored_filename: str, url_prefix: str = "/uploads") -> str:
    return f"{url_prefix.rstrip('/')}/{stored_filename}"


async def read_upload(
    upload: UploadFile, max_bytes: int, chunk_size: int = UPLOAD_CHUNK_SIZE
) -> bytes:
    """Read an upload, giving up as soon as it grows past ``max_bytes``."""
    chunks: list[bytes] = []
    total = 0
    while True:
        chunk = await upload.read(chunk_size)
        if not chunk:
            break
        total += len(chunk)
        if total > max_bytes:
            raise FileTooLarge()
        chunks.append(chunk)
    return b"".join(chunks)


def store_photo(
    db: DbClient,
    storage: StorageClient,
    *,
    original_filename: str,
    data: bytes,
    registration_id: str,
    url_prefix: str = "/uploads",
) -> str:
    """
    Write the photo to the content store, then point the registration at it.

    The file is written first and is left in place if the registration does
    not exist; see ``registration_backend.cleanup`` for removing such files.
    """
    stored_filename = build_stored_filename(original_filename)
    try:
        storage.save_bytes(stored_filename, data)
    except OSError as exc:
        raise StorageFailure(f"Could not store photo: {exc}") from exc
    logger.info("Stored photo %s (%d bytes)", stored_filename, len(data))

    photo_url = photo_url_for(stored_filename, url_prefix)
    if db.set_photo_url(registration_id, photo_url) is None:
        raise RegistrationNotFound()
    return photo_url


async def attach_photo(
    db: DbClient,
    storage: StorageClient,
    settings: Settings,
    photo: Optional[UploadFile],
    registration_id: Optional[str],
) -> str:
    # File constraints are checked while the upload is parsed, ahead of the
    # form fields, so a bad file wins over a missing registration id.
    if photo is None or not photo.filename:
        raise MissingFile()
    if photo.content_type not in settings.allowed_image_types:
        raise InvalidFileType()
    data = await read_upload(photo, settings.max_upload_bytes)
    if not registration_id:
        raise MissingRegistrationId()

    return await run_in_threadpool(
        store_photo,
        db,
        storage,
        original_filename=photo.filename,
        data=data,
        registration_id=registration_id,
        url_prefix=settings.upload_url_prefix,
    )


def format_display_date(value: datetime) -> str:
    """Render a timestamp in server local time, e.g. ``3/5/2026, 2:07:09 PM``."""
    local = value.astimezone()
    hour = local.hour % 12 or 12
    meridiem = "AM" if local.hour < 12 else "PM"
    return (
        f"{local.month}/{local.day}/{local.year}, "
        f"{hour}:{local.minute:02d}:{local.second:02d} {meridiem}"
    )


def list_registrations(db: DbClient) -> list[dict]:
    items = []
    for record in db.list_registrations():
        item = record.as_dict()
        item["registrationDate"] = format_display_date(record.registration_date)
        item["teamSize"] = record.team_size
        items.append(item)
    return items
