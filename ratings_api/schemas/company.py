"""Pydantic schemas for company aggregate records and vote payloads."""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class WorkSetting(str, Enum):
    """Mutually exclusive work arrangements a vote can name."""

    IN_OFFICE = "inOffice"
    HYBRID = "hybrid"
    REMOTE = "remote"


class CompanyRecord(BaseModel):
    """Aggregate record of one employer, stored under its name.

    Stored documents use camelCase keys. Every field may be missing on the
    stored document and reads as zero; fields nobody has written stay
    missing when the record is dumped with ``to_document``. Unknown fields
    written by other tools are kept as-is.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="allow",
    )

    general_rating: float = Field(0.0, description="Running mean of submitted ratings.")
    general_rating_count: int = Field(0, ge=0, description="Ratings folded into the mean.")
    worth_it_count: int = Field(0, ge=0)
    not_worth_it_count: int = Field(0, ge=0)
    keep_working_count: int = Field(0, ge=0)
    not_keep_working_count: int = Field(0, ge=0)
    in_office_count: int = Field(0, ge=0)
    hybrid_count: int = Field(0, ge=0)
    remote_count: int = Field(0, ge=0)
    weekly_hours: float = Field(0.0, description="Running mean of submitted weekly hours.")
    weekly_hours_rating_count: int = Field(0, ge=0, description="Weekly-hours samples folded in.")
    last_updated: int | None = Field(
        None,
        description="Epoch milliseconds of the last committed mutation (server assigned).",
    )

    @classmethod
    def from_document(cls, document: dict[str, Any]) -> "CompanyRecord":
        """Parse a stored document."""
        return cls.model_validate(document)

    def to_document(self) -> dict[str, Any]:
        """Dump to the stored shape: camelCase keys, only fields ever written."""
        document = self.model_dump(by_alias=True, exclude_unset=True)
        document.update(self.model_extra or {})
        return document


class GeneralRatingPayload(BaseModel):
    """Body of a general rating vote."""

    model_config = ConfigDict(extra="ignore")

    rating: float = Field(..., strict=True, allow_inf_nan=False, description="Rating sample.")


class WeeklyHoursPayload(BaseModel):
    """Body of a weekly hours vote."""

    model_config = ConfigDict(extra="ignore")

    hours: float = Field(..., strict=True, allow_inf_nan=False, description="Weekly hours sample.")

