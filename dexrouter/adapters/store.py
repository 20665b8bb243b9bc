"""Persistent storage for the pool cache document."""

from __future__ import annotations

import asyncio
import copy
import json
import os
import tempfile
from pathlib import Path
from typing import Any

from dexrouter.errors import CacheIOError


class JsonFileStore:
    """Store the cache document as a JSON file.

    Saves write to a temporary file in the same directory and atomically
    replace the target, so readers see either the old or the new document.
    Saves are serialized with an asyncio lock.
    """

    def __init__(self, path: str | Path):
        self.path = Path(path)
        self._lock = asyncio.Lock()

    def _read(self) -> dict[str, Any] | None:
        if not self.path.exists():
            return None
        with open(self.path, encoding="utf-8") as f:
            data = json.load(f)
        if not isinstance(data, dict):
            raise ValueError(f"cache document is not an object: {self.path}")
        return data

    def _write(self, state: dict[str, Any]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(dir=self.path.parent, prefix=".pool_cache.", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(state, f, indent=2, sort_keys=True)
            os.replace(tmp_path, self.path)
        except BaseException:
            Path(tmp_path).unlink(missing_ok=True)
            raise

    async def load(self) -> dict[str, Any] | None:
        loop = asyncio.get_running_loop()
        try:
            return await loop.run_in_executor(None, self._read)
        except (OSError, ValueError) as e:
            raise CacheIOError(f"failed to load pool cache from {self.path}: {e}") from e

    async def save(self, state: dict[str, Any]) -> None:
        loop = asyncio.get_running_loop()
        async with self._lock:
            try:
                await loop.run_in_executor(None, self._write, state)
            except (OSError, TypeError, ValueError) as e:
                raise CacheIOError(f"failed to save pool cache to {self.path}: {e}") from e


class InMemoryStore:
    """Cache store held in memory, for tests and ephemeral processes."""

    def __init__(self, state: dict[str, Any] | None = None):
        self.state = copy.deepcopy(state) if state is not None else None
        self.saves = 0

    async def load(self) -> dict[str, Any] | None:
        return copy.deepcopy(self.state)

    async def save(self, state: dict[str, Any]) -> None:
        self.state = copy.deepcopy(state)
        self.saves += 1


__all__ = ["JsonFileStore", "InMemoryStore"]
