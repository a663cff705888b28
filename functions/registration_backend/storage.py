"""
Content store for uploaded photos: a flat directory on local disk, plus an
in-memory double for tests.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Protocol


class StorageClient(Protocol):
    """Defines the operations the API needs from the content store."""

    def save_bytes(self, filename: str, data: bytes) -> None:
        ...

    def exists(self, filename: str) -> bool:
        ...

    def list_files(self) -> list[str]:
        ...

    def delete(self, filename: str) -> None:
        ...


@dataclass
class InMemoryStorageClient:
    """Test double for content store interactions."""

    stored_objects: dict[str, bytes] = field(default_factory=dict)

    def save_bytes(self, filename: str, data: bytes) -> None:
        self.stored_objects[filename] = bytes(data)

    def exists(self, filename: str) -> bool:
        return filename in self.stored_objects

    def list_files(self) -> list[str]:
        return sorted(self.stored_objects)

    def delete(self, filename: str) -> None:
        if filename not in self.stored_objects:
            raise FileNotFoundError(filename)
        del self.stored_objects[filename]


@dataclass
class LocalDiskStorageClient:
    """
    Stores files in a single flat directory. Names are reduced to their base
    name so a client-supplied filename can never escape the directory.
    """

    directory: str

    def __post_init__(self):
        self.root = Path(self.directory)
        self.root.mkdir(parents=True, exist_ok=True)

    def _path(self, filename: str) -> Path:
        name = os.path.basename(filename)
        if not name or name in (".", ".."):
            raise ValueError(f"Invalid filename: {filename!r}")
        return self.root / name

    def save_bytes(self, filename: str, data: bytes) -> None:
        with open(self._path(filename), "wb") as f:
            f.write(data)

    def exists(self, filename: str) -> bool:
        return self._path(filename).is_file()

    def list_files(self) -> list[str]:
        return sorted(entry.name for entry in self.root.iterdir() if entry.is_file())

    def delete(self, filename: str) -> None:
        self._path(filename).unlink()
