"""Aggregate store interface.

Services depend on this abstraction so the backing document store can be
swapped (in-memory for development and tests, Firebase Realtime Database
in production). The contract is deliberately small:

- point reads, plain and versioned
- a conditional write that only succeeds if the key still holds the
  version that was read (compare-and-swap)
- a read of every record, optionally ordered ascending by a child field

Implementations raise ``StoreAppError`` for transport or availability
failures and never retry conditional writes themselves.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any

Document = dict[str, Any]


@dataclass(frozen=True)
class VersionedValue:
    """A stored value together with the opaque version it was read at.

    Attributes:
        value: Stored document, or None when the key is absent.
        version: Opaque token to pass back to ``set_if_unchanged``.
    """

    value: Document | None
    version: str


class AbstractAggregateStore(ABC):
    """Interface for keyed document stores with optimistic writes."""

    @abstractmethod
    async def get(self, key: str) -> Document | None:
        """Return the document stored under ``key`` or None."""
        raise NotImplementedError

    @abstractmethod
    async def get_versioned(self, key: str) -> VersionedValue:
        """Return the document under ``key`` with its current version."""
        raise NotImplementedError

    @abstractmethod
    async def set_if_unchanged(self, key: str, expected_version: str, value: Document) -> bool:
        """Write ``value`` only if ``key`` is still at ``expected_version``.

        Returns:
            True if the write was committed, False if another writer changed
            the key since it was read.
        """
        raise NotImplementedError

    @abstractmethod
    async def get_all(self) -> dict[str, Document]:
        """Return every stored document keyed by its key."""
        raise NotImplementedError

    @abstractmethod
    async def get_all_ordered_by(self, field: str) -> list[tuple[str, Document]]:
        """Return every document ordered ascending by ``field``.

        Documents lacking ``field`` sort first; ties are broken by key.
        """
        raise NotImplementedError

    async def close(self) -> None:
        """Release connections/credentials held by the store."""
        return None
