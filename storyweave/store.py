"""Persistent key-value store.

The engine treats persistence as an opaque string-keyed store with four
async operations. Values are strings; the engine writes JSON into them.
There are no transactions: callers read the whole value, change it in
memory and write the whole value back.

Two implementations are provided:

    JsonFileStore — one file per key under a base directory. Blocking file
                    IO runs in a worker thread.
    MemoryStore   — a dict. Used by tests and throwaway sessions.

Every failure surfaces as StorageFailure.
"""

from __future__ import annotations

import asyncio
import logging
import re
from pathlib import Path
from typing import Protocol, runtime_checkable

from storyweave.errors import StorageFailure

logger = logging.getLogger(__name__)

_KEY_RE = re.compile(r"^[A-Za-z0-9_.\-]+$")


@runtime_checkable
class KeyValueStore(Protocol):
    async def get(self, key: str) -> str | None: ...

    async def set(self, key: str, value: str) -> None: ...

    async def remove(self, key: str) -> None: ...

    async def list_keys(self) -> list[str]: ...


# ---------------------------------------------------------------------------
# JsonFileStore
# ---------------------------------------------------------------------------

class JsonFileStore:
    """File-backed store: {base}/{key}.json holds the value for key."""

    SUFFIX = ".json"

    def __init__(self, base_path: Path) -> None:
        self._base = base_path
        self._base.mkdir(parents=True, exist_ok=True)

    def _path(self, key: str) -> Path:
        if not _KEY_RE.match(key):
            raise StorageFailure(f"Invalid storage key {key!r}")
        return self._base / f"{key}{self.SUFFIX}"

    def _read(self, path: Path) -> str | None:
        if not path.is_file():
            return None
        return path.read_text(encoding="utf-8")

    def _write(self, path: Path, value: str) -> None:
        tmp = path.with_suffix(path.suffix + ".tmp")
        tmp.write_text(value, encoding="utf-8")
        tmp.replace(path)

    async def get(self, key: str) -> str | None:
        path = self._path(key)
        try:
            return await asyncio.to_thread(self._read, path)
        except (OSError, UnicodeError) as e:
            raise StorageFailure(f"Cannot read {key!r}: {e}") from e

    async def set(self, key: str, value: str) -> None:
        path = self._path(key)
        try:
            await asyncio.to_thread(self._write, path, value)
        except (OSError, UnicodeError) as e:
            raise StorageFailure(f"Cannot write {key!r}: {e}") from e
        logger.debug("store set key=%s len=%d", key, len(value))

    async def remove(self, key: str) -> None:
        path = self._path(key)
        try:
            await asyncio.to_thread(path.unlink, True)
        except OSError as e:
            raise StorageFailure(f"Cannot remove {key!r}: {e}") from e

    async def list_keys(self) -> list[str]:
        try:
            paths = await asyncio.to_thread(lambda: sorted(self._base.glob(f"*{self.SUFFIX}")))
        except OSError as e:
            raise StorageFailure(f"Cannot list {self._base}: {e}") from e
        return [p.stem for p in paths]


# ---------------------------------------------------------------------------
# MemoryStore
# ---------------------------------------------------------------------------

class MemoryStore:
    """Dict-backed store. Nothing survives the process."""

    def __init__(self, initial: dict[str, str] | None = None) -> None:
        self.data: dict[str, str] = dict(initial or {})

    async def get(self, key: str) -> str | None:
        return self.data.get(key)

    async def set(self, key: str, value: str) -> None:
        self.data[key] = value

    async def remove(self, key: str) -> None:
        self.data.pop(key, None)

    async def list_keys(self) -> list[str]:
        return sorted(self.data)
