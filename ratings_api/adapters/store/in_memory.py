"""In-memory aggregate store.

Notes:
- Per-process only: data is lost on restart.
- Every operation yields to the event loop once, like a network round trip
  would, so concurrent transactions genuinely interleave.
- Thread-safe: uses a lock around shared state.
"""

from __future__ import annotations

import asyncio
import copy
import json
import logging
import threading
from pathlib import Path
from typing import Any, Mapping

from ratings_api.adapters.store.base import AbstractAggregateStore, Document, VersionedValue

logger = logging.getLogger(__name__)

_ABSENT_VERSION = "0"


def _sort_key(field: str, key: str, document: Document) -> tuple[Any, ...]:
    # Realtime Database child ordering: null, booleans, numbers, strings, objects
    value = document.get(field)
    if value is None:
        return (0, 0, key)
    if isinstance(value, bool):
        return (1, int(value), key)
    if isinstance(value, (int, float)):
        return (2, value, key)
    if isinstance(value, str):
        return (3, value, key)
    return (4, 0, key)


class InMemoryAggregateStore(AbstractAggregateStore):
    """Dict-backed store with per-key version counters.

    Values are deep-copied on the way in and out so callers can never
    mutate stored state without going through ``set_if_unchanged``.
    """

    def __init__(self, initial: Mapping[str, Document] | None = None) -> None:
        self._lock = threading.RLock()
        self._documents: dict[str, Document] = {}
        self._versions: dict[str, int] = {}
        self._writes = 0
        for key, document in (initial or {}).items():
            self._documents[key] = copy.deepcopy(dict(document))
            self._versions[key] = 1

    @classmethod
    def from_json_file(cls, path: str | Path) -> "InMemoryAggregateStore":
        """Build a store preloaded with the ``{name: record}`` object in ``path``."""
        with open(path, encoding="utf-8") as fh:
            data = json.load(fh)
        if not isinstance(data, dict):
            raise ValueError(f"seed file {path} must contain a JSON object")
        logger.info("store.seeded", extra={"seed_path": str(path), "records": len(data)})
        return cls(data)

    @property
    def write_count(self) -> int:
        """Number of committed writes since construction."""
        with self._lock:
            return self._writes

    async def get(self, key: str) -> Document | None:
        await asyncio.sleep(0)
        with self._lock:
            return copy.deepcopy(self._documents.get(key))

    async def get_versioned(self, key: str) -> VersionedValue:
        await asyncio.sleep(0)
        with self._lock:
            version = self._versions.get(key)
            return VersionedValue(
                value=copy.deepcopy(self._documents.get(key)),
                version=str(version) if version is not None else _ABSENT_VERSION,
            )

    async def set_if_unchanged(self, key: str, expected_version: str, value: Document) -> bool:
        await asyncio.sleep(0)
        with self._lock:
            current = self._versions.get(key)
            current_version = str(current) if current is not None else _ABSENT_VERSION
            if current_version != expected_version:
                return False
            self._documents[key] = copy.deepcopy(value)
            self._versions[key] = (current or 0) + 1
            self._writes += 1
            return True

    async def get_all(self) -> dict[str, Document]:
        await asyncio.sleep(0)
        with self._lock:
            return copy.deepcopy(self._documents)

    async def get_all_ordered_by(self, field: str) -> list[tuple[str, Document]]:
        await asyncio.sleep(0)
        with self._lock:
            items = sorted(
                self._documents.items(),
                key=lambda item: _sort_key(field, item[0], item[1]),
            )
            return [(key, copy.deepcopy(document)) for key, document in items]
