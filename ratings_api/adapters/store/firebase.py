"""Firebase Realtime Database aggregate store adapter.

Uses the official Firebase Admin SDK. The SDK is synchronous, so each call
runs in the default executor under a timeout to keep the event loop free.
Versions are the database ETags, and conditional writes map to
``Reference.set_if_unchanged``.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from functools import partial
from typing import Any, Callable, TypeVar

import firebase_admin
from firebase_admin import credentials, db
from firebase_admin.exceptions import FirebaseError

from ratings_api.adapters.store.base import AbstractAggregateStore, Document, VersionedValue
from ratings_api.core.errors import StoreAppError

logger = logging.getLogger(__name__)

T = TypeVar("T")


class FirebaseAggregateStore(AbstractAggregateStore):
    """Store backed by one path of a Firebase Realtime Database.

    The Firebase app (credentials and HTTP session) is created once per
    store instance and released by ``close``.
    """

    def __init__(
        self,
        *,
        credentials_path: str,
        database_url: str,
        root_path: str = "company",
        timeout_seconds: float = 10.0,
    ) -> None:
        """Initialize the Firebase app and root reference.

        Args:
            credentials_path: Service account JSON file.
            database_url: Realtime Database URL.
            root_path: Path under which one child per company is stored.
            timeout_seconds: Timeout for a single round trip.
        """
        self._app = firebase_admin.initialize_app(
            credentials.Certificate(credentials_path),
            {"databaseURL": database_url},
            name=f"ratings-api-{uuid.uuid4().hex[:8]}",
        )
        self._root = db.reference(root_path, app=self._app)
        self._timeout = timeout_seconds

    async def _call(self, operation: str, func: Callable[[], T]) -> T:
        loop = asyncio.get_running_loop()
        try:
            return await asyncio.wait_for(
                loop.run_in_executor(None, func),
                timeout=self._timeout,
            )
        except asyncio.TimeoutError as exc:
            logger.error(
                "store.timeout",
                extra={"operation": operation, "timeout_s": self._timeout},
            )
            raise StoreAppError(
                code="store_unavailable",
                message="Failed to reach the data store",
            ) from exc
        except (FirebaseError, OSError) as exc:
            logger.error(
                "store.error",
                extra={
                    "operation": operation,
                    "error_type": type(exc).__name__,
                    "error_msg": str(exc),
                },
            )
            raise StoreAppError(
                code="store_unavailable",
                message="Failed to reach the data store",
            ) from exc

    async def get(self, key: str) -> Document | None:
        return await self._call("get", self._root.child(key).get)

    async def get_versioned(self, key: str) -> VersionedValue:
        value, etag = await self._call(
            "get_versioned", partial(self._root.child(key).get, etag=True)
        )
        return VersionedValue(value=value, version=etag)

    async def set_if_unchanged(self, key: str, expected_version: str, value: Document) -> bool:
        committed, _, _ = await self._call(
            "set_if_unchanged",
            partial(self._root.child(key).set_if_unchanged, expected_version, value),
        )
        return bool(committed)

    async def get_all(self) -> dict[str, Document]:
        data: Any = await self._call("get_all", self._root.get)
        return dict(data or {})

    async def get_all_ordered_by(self, field: str) -> list[tuple[str, Document]]:
        data: Any = await self._call(
            "get_all_ordered_by", self._root.order_by_child(field).get
        )
        return list((data or {}).items())

    async def close(self) -> None:
        firebase_admin.delete_app(self._app)
