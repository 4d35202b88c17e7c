"""
MealMate - Local device storage.

String key-value persistence for device-local state: notification
settings and the two reminder indexes. Values are JSON strings written
by their owners; this layer does not interpret them.
"""

import asyncio
import json
import logging
import os
from pathlib import Path
from typing import Protocol

logger = logging.getLogger(__name__)


class LocalStorage(Protocol):
    """Async string key-value store."""

    async def get_item(self, key: str) -> str | None: ...

    async def set_item(self, key: str, value: str) -> None: ...

    async def remove_item(self, key: str) -> None: ...


class MemoryStorage:
    """Process-lifetime storage. Nothing survives a restart."""

    def __init__(self, items: dict[str, str] | None = None):
        self.items: dict[str, str] = dict(items or {})

    async def get_item(self, key: str) -> str | None:
        return self.items.get(key)

    async def set_item(self, key: str, value: str) -> None:
        self.items[key] = value

    async def remove_item(self, key: str) -> None:
        self.items.pop(key, None)


class JsonFileStorage:
    """
    All keys in one JSON object on disk.

    Each write rewrites the whole file via a temp file + rename, so a crash
    mid-write leaves the previous contents intact.
    """

    def __init__(self, path: Path | str):
        self.path = Path(path).expanduser()
        self._lock = asyncio.Lock()

    def _read_all(self) -> dict[str, str]:
        if not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except json.JSONDecodeError as e:
            logger.warning(f"Local storage file {self.path} is corrupt, starting empty: {e}")
            return {}
        if not isinstance(data, dict):
            logger.warning(f"Local storage file {self.path} is not an object, starting empty")
            return {}
        return data

    def _write_all(self, data: dict[str, str]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
        tmp_path.write_text(json.dumps(data, indent=2), encoding="utf-8")
        os.replace(tmp_path, self.path)

    async def get_item(self, key: str) -> str | None:
        async with self._lock:
            return self._read_all().get(key)

    async def set_item(self, key: str, value: str) -> None:
        async with self._lock:
            data = self._read_all()
            data[key] = value
            self._write_all(data)

    async def remove_item(self, key: str) -> None:
        async with self._lock:
            data = self._read_all()
            if data.pop(key, None) is not None:
                self._write_all(data)
