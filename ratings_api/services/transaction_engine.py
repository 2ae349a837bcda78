"""Optimistic read-modify-write over a single aggregate record.

No lock is held between the read and the write. The store rejects a write
whose key changed since it was read; the engine then re-reads and re-runs
the mutation on the fresh value, up to ``max_attempts`` times. Concurrent
commits to one key therefore form a linear history in which every
mutation is applied exactly once.
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from typing import Any, Callable

from pydantic import ValidationError

from ratings_api.adapters.store.base import AbstractAggregateStore
from ratings_api.core.errors import StoreAppError, TransactionAbortedAppError
from ratings_api.schemas.company import CompanyRecord
from ratings_api.services.mutations import Apply, MutationFn

logger = logging.getLogger(__name__)


class CommitClock:
    """Issues strictly increasing epoch-millisecond commit timestamps."""

    def __init__(self, clock: Callable[[], float] = time.time) -> None:
        self._clock = clock
        self._lock = threading.Lock()
        self._last_issued = 0

    def next_timestamp(self, *, after: int | None = None) -> int:
        """Return a timestamp greater than every previous one and than ``after``."""
        with self._lock:
            candidate = int(self._clock() * 1000)
            floor = max(self._last_issued, after or 0)
            if candidate <= floor:
                candidate = floor + 1
            self._last_issued = candidate
            return candidate


@dataclass(frozen=True)
class TransactionResult:
    """Outcome of ``TransactionEngine.apply``.

    Attributes:
        committed: True when a new value was written.
        record: The committed record, or the unmodified current value (None
            when the key is absent) if the mutation asked for no change.
        attempts: Read-modify-write cycles performed.
    """

    committed: bool
    record: CompanyRecord | None
    attempts: int


class TransactionEngine:
    """Applies mutation functions to keyed records with optimistic concurrency."""

    def __init__(
        self,
        store: AbstractAggregateStore,
        *,
        max_attempts: int = 25,
        clock: CommitClock | None = None,
    ) -> None:
        if max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        self._store = store
        self._max_attempts = max_attempts
        self._clock = clock or CommitClock()

    def _parse(self, key: str, document: Any) -> CompanyRecord | None:
        if document is None:
            return None
        try:
            return CompanyRecord.from_document(document)
        except ValidationError as exc:
            logger.error(
                "transaction.invalid_record",
                extra={"company": key, "errors": exc.error_count()},
            )
            raise StoreAppError(
                code="invalid_stored_record",
                message="Stored record is malformed",
                details={"company": key},
            ) from exc

    async def apply(self, key: str, mutation: MutationFn) -> TransactionResult:
        """Run ``mutation`` against ``key`` until a write is committed.

        Args:
            key: Store key of the record.
            mutation: Pure function from the current record to an outcome.

        Returns:
            TransactionResult describing the committed (or unchanged) record.

        Raises:
            TransactionAbortedAppError: If every attempt lost to a concurrent
                writer.
            StoreAppError: If the store fails or holds a record that is
                not a valid company document.
        """
        for attempt in range(1, self._max_attempts + 1):
            snapshot = await self._store.get_versioned(key)
            current = self._parse(key, snapshot.value)

            outcome = mutation(current)
            if not isinstance(outcome, Apply):
                logger.info(
                    "transaction.no_change",
                    extra={"company": key, "attempts": attempt, "record_exists": current is not None},
                )
                return TransactionResult(committed=False, record=current, attempts=attempt)

            previous_stamp = current.last_updated if current is not None else None
            record = outcome.record.model_copy(
                update={"last_updated": self._clock.next_timestamp(after=previous_stamp)}
            )

            if await self._store.set_if_unchanged(key, snapshot.version, record.to_document()):
                logger.info(
                    "transaction.committed",
                    extra={"company": key, "attempts": attempt},
                )
                return TransactionResult(committed=True, record=record, attempts=attempt)

            logger.debug(
                "transaction.conflict",
                extra={"company": key, "attempt": attempt},
            )

        logger.warning(
            "transaction.aborted",
            extra={"company": key, "attempts": self._max_attempts},
        )
        raise TransactionAbortedAppError(
            code="transaction_not_committed",
            message="Transaction not committed",
            details={"company": key, "attempts": self._max_attempts},
        )
