"""Aggregate store adapters - abstract over the backing document store."""

from ratings_api.adapters.store.base import AbstractAggregateStore, Document, VersionedValue
from ratings_api.adapters.store.factory import create_store
from ratings_api.adapters.store.in_memory import InMemoryAggregateStore

__all__ = [
    "AbstractAggregateStore",
    "Document",
    "InMemoryAggregateStore",
    "VersionedValue",
    "create_store",
]
