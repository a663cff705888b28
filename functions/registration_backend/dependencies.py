"""
Dependency wiring for the FastAPI app.

The document store and content store are created once per configuration and
handed to request handlers through ``Depends``. Both are resolved from the same
``Settings`` the app was built with, so uploads are written to the directory
the app serves them from.
"""

from __future__ import annotations

from fastapi import Depends

from registration_backend.config import Settings, get_settings
from registration_backend.db import DbClient, InMemoryDbClient, MongoDbClient, SqlDbClient
from registration_backend.storage import (
    InMemoryStorageClient,
    LocalDiskStorageClient,
    StorageClient,
)

_db_clients: dict[tuple, DbClient] = {}
_storage_clients: dict[tuple, StorageClient] = {}


def db_client_for(settings: Settings) -> DbClient:
    """
    Return the DB client for these settings, creating it on first use so
    registrations persist across requests.
    """
    database_url = settings.database_url
    in_memory = settings.use_in_memory_backends or not database_url
    key = (
        in_memory,
        database_url,
        settings.mongo_database,
        settings.registration_collection,
    )
    if key in _db_clients:
        return _db_clients[key]

    if in_memory:
        client: DbClient = InMemoryDbClient()
    elif database_url.startswith(("mongodb://", "mongodb+srv://")):
        client = MongoDbClient(
            database_url,
            database_name=settings.mongo_database,
            collection_name=settings.registration_collection,
        )
    else:
        client = SqlDbClient(database_url)
    _db_clients[key] = client
    return client


def storage_client_for(settings: Settings) -> StorageClient:
    key = (settings.use_in_memory_backends, settings.upload_dir)
    if key in _storage_clients:
        return _storage_clients[key]

    if settings.use_in_memory_backends:
        client: StorageClient = InMemoryStorageClient()
    else:
        client = LocalDiskStorageClient(settings.upload_dir)
    _storage_clients[key] = client
    return client


def get_db_client(settings: Settings = Depends(get_settings)) -> DbClient:
    return db_client_for(settings)


def get_storage_client(settings: Settings = Depends(get_settings)) -> StorageClient:
    return storage_client_for(settings)
