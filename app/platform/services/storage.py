"""
Artifact storage for screenshots and reports.

The analysis engine only depends on ``StorageBackend.store``; LocalStorage keeps
artifacts under the static directory the API already serves.
"""
from pathlib import Path
from typing import Optional, Protocol

from app.platform.config import settings
from app.platform.exceptions import StorageError
from app.platform.logger import get_logger

logger = get_logger(__name__)


class StorageBackend(Protocol):
    async def store(self, data: bytes, key: str, content_type: str) -> str:
        """Persist ``data`` under ``key`` and return a location reference."""
        ...


class LocalStorage:
    """Writes artifacts to disk. Storing twice under one key overwrites."""

    def __init__(self, base_dir: Optional[str] = None, base_url: Optional[str] = None):
        self.base_dir = Path(base_dir or settings.STORAGE_DIR)
        self.base_url = (base_url or settings.STORAGE_BASE_URL).rstrip("/")

    def _path_for(self, key: str) -> Path:
        # Keys are generated internally, but never let one escape base_dir
        path = (self.base_dir / key).resolve()
        if self.base_dir.resolve() not in path.parents:
            raise StorageError(f"Invalid storage key: {key}", details={"key": key})
        return path

    async def store(self, data: bytes, key: str, content_type: str) -> str:
        if isinstance(data, str):
            data = data.encode("utf-8")

        path = self._path_for(key)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            with open(path, "wb") as f:
                f.write(data)
        except OSError as e:
            logger.error(f"Failed to store {key}: {e}")
            raise StorageError(
                f"Failed to store {key}",
                details={"key": key, "content_type": content_type, "error": str(e)},
            )

        logger.debug(f"Stored {key} ({len(data)} bytes, {content_type})")
        return f"{self.base_url}/{key}"
