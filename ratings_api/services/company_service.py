"""Company aggregate service: votes and reads.

Orchestrates the mutation path (key validation, mutation catalog,
transaction engine, absent-record policy) and the read path (point read,
full listing, recency listing). Reads never go through the transaction
engine; they have nothing to serialize.
"""

from __future__ import annotations

import logging
import re
from typing import Any

from ratings_api.adapters.store.base import AbstractAggregateStore, Document
from ratings_api.core.errors import CompanyNotFoundAppError, ValidationAppError
from ratings_api.services.mutations import Action, build_mutation
from ratings_api.services.transaction_engine import TransactionEngine

logger = logging.getLogger(__name__)

SORT_FIELD = "lastUpdated"

# Realtime Database keys: non-empty, no . $ # [ ] / or ASCII control chars
_INVALID_KEY_CHARS = re.compile(r"[.$#\[\]/\x00-\x1f\x7f]")


def is_valid_company_name(name: str) -> bool:
    """Return True if ``name`` can be used as a store key."""
    return bool(name) and _INVALID_KEY_CHARS.search(name) is None


def validate_company_name(name: str) -> str:
    """Return ``name`` if it can be used as a store key.

    Raises:
        ValidationAppError: If the name is empty or contains reserved characters.
    """
    if not is_valid_company_name(name):
        raise ValidationAppError(
            code="invalid_company_name",
            message="Company name is empty or contains reserved characters",
            details={"field": "name"},
        )
    return name


class CompanyService:
    """Votes on and reads company aggregate records.

    Attributes:
        store: Aggregate store shared with the engine.
        engine: Transaction engine performing optimistic writes.
        create_missing: Whether votes create records for unknown companies.
    """

    def __init__(
        self,
        store: AbstractAggregateStore,
        engine: TransactionEngine,
        *,
        create_missing: bool = False,
    ) -> None:
        self.store = store
        self.engine = engine
        self.create_missing = create_missing

    async def vote(
        self,
        name: str,
        action: Action,
        *,
        body: Any = None,
        setting: str | None = None,
    ) -> Document:
        """Apply one vote to a company's record.

        Input is validated before the store is touched.

        Args:
            name: Company name (store key).
            action: Mutation to apply.
            body: Decoded JSON body for rating and weekly hours votes.
            setting: Work setting path parameter.

        Returns:
            The committed record in stored shape.

        Raises:
            ValidationAppError: If the name or payload is invalid.
            CompanyNotFoundAppError: If the company has no record and records
                are not created on demand.
            TransactionAbortedAppError: If the write never committed.
            StoreAppError: If the store is unavailable.
        """
        validate_company_name(name)
        mutation = build_mutation(
            action,
            body=body,
            setting=setting,
            create_missing=self.create_missing,
        )

        result = await self.engine.apply(name, mutation)
        if not result.committed or result.record is None:
            raise CompanyNotFoundAppError(
                code="company_not_found",
                message="Company not found",
                details={"company": name},
            )

        logger.info(
            "company.vote_recorded",
            extra={"company": name, "action": action.value, "attempts": result.attempts},
        )
        return result.record.to_document()

    async def get_company(self, name: str) -> Document | None:
        """Return the stored record of ``name`` or None when it has none.

        Names that cannot be store keys have no record either, so they read
        as None without a store round trip.
        """
        if not is_valid_company_name(name):
            return None
        return await self.store.get(name)

    async def list_companies(self) -> dict[str, Document]:
        """Return every stored record keyed by company name."""
        return await self.store.get_all()

    async def list_recently_updated(self) -> list[Document]:
        """Return every record, most recently updated first.

        The store only orders ascending, so the full result is materialized
        and reversed. Each entry carries its key as ``id``.
        """
        ordered = await self.store.get_all_ordered_by(SORT_FIELD)
        ordered.reverse()
        return [{"id": key, **document} for key, document in ordered]
