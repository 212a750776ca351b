from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from pathlib import Path

from src.consular.config import settings

logger = logging.getLogger(__name__)


class FileStorageBackend(ABC):
    @abstractmethod
    def save_file(self, content: bytes, *, name: str) -> str:
        """Persist bytes and return a URL/path reference."""

    @abstractmethod
    def delete_file(self, ref: str) -> None:
        """Best-effort deletion of a previously saved file."""


class LocalFileStorageBackend(FileStorageBackend):
    def __init__(self, base: Path | None = None) -> None:
        self._base: Path = base or settings.upload_dir

    def save_file(self, content: bytes, *, name: str) -> str:
        self._base.mkdir(parents=True, exist_ok=True)
        dest_path = self._base / name
        dest_path.write_bytes(content)
        return str(dest_path)

    def delete_file(self, ref: str) -> None:
        path = Path(ref)
        if path.exists():
            try:
                path.unlink()
            except OSError:
                logger.warning("Could not delete stored file %s", ref)


file_storage_backend: FileStorageBackend = LocalFileStorageBackend()
