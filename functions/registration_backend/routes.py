"""
HTTP routes for the registration API.

Every failure is reported as a 500 with a JSON body; clients read the
``success`` flag (register, upload) or the bare ``error`` field (listing).
"""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, Request, UploadFile
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse

from registration_backend import services
from registration_backend.config import Settings, get_settings
from registration_backend.db import DbClient
from registration_backend.dependencies import get_db_client, get_storage_client
from registration_backend.errors import MalformedPayload
from registration_backend.schemas import (
    ErrorResponse,
    HealthResponse,
    RegisterResponse,
    UploadPhotoResponse,
)
from registration_backend.storage import StorageClient

logger = logging.getLogger(__name__)

router = APIRouter()

FORM_CONTENT_TYPES = ("application/x-www-form-urlencoded", "multipart/form-data")


def _error_message(exc: Exception) -> str:
    return str(exc) or exc.__class__.__name__


def _failure(exc: Exception) -> JSONResponse:
    body = ErrorResponse(error=_error_message(exc))
    return JSONResponse(status_code=500, content=body.model_dump())


async def _read_registration_body(request: Request):
    content_type = request.headers.get("content-type", "")
    if content_type.startswith(FORM_CONTENT_TYPES):
        form = await request.form()
        return {key: value for key, value in form.items() if isinstance(value, str)}

    body = await request.body()
    if not body.strip():
        return {}
    try:
        return json.loads(body)
    except ValueError as exc:
        raise MalformedPayload(f"Request body is not valid JSON ({exc})") from exc


@router.get("/health", response_model=HealthResponse)
def health_check():
    timestamp = datetime.now(timezone.utc).isoformat(timespec="milliseconds")
    return HealthResponse(status="ok", timestamp=timestamp.replace("+00:00", "Z"))


@router.post(
    "/register",
    response_model=RegisterResponse,
    status_code=201,
    responses={500: {"model": ErrorResponse}},
)
async def register(request: Request, db: DbClient = Depends(get_db_client)):
    try:
        raw = await _read_registration_body(request)
        logger.info("Received registration data: %s", raw)
        record = await run_in_threadpool(services.create_registration, db, raw)
    except Exception as exc:
        logger.exception("Registration error: %s", exc)
        return _failure(exc)

    logger.info("Registration saved with ID: %s", record.id)
    return RegisterResponse(registrationId=record.id)


@router.post(
    "/upload-photo",
    response_model=UploadPhotoResponse,
    responses={500: {"model": ErrorResponse}},
)
async def upload_photo(
    photo: Optional[UploadFile] = File(None),
    registrationId: Optional[str] = Form(None),
    db: DbClient = Depends(get_db_client),
    storage: StorageClient = Depends(get_storage_client),
    settings: Settings = Depends(get_settings),
):
    try:
        photo_url = await services.attach_photo(
            db, storage, settings, photo, registrationId
        )
    except Exception as exc:
        logger.exception("Photo upload error: %s", exc)
        return _failure(exc)

    return UploadPhotoResponse(photoUrl=photo_url)


@router.get("/registrations", responses={500: {"model": ErrorResponse}})
def list_registrations(db: DbClient = Depends(get_db_client)):
    try:
        registrations = services.list_registrations(db)
    except Exception as exc:
        logger.exception("Error fetching registrations: %s", exc)
        return JSONResponse(status_code=500, content={"error": _error_message(exc)})

    logger.info("Found %d registrations", len(registrations))
    return registrations
