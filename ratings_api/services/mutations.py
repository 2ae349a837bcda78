"""Catalog of aggregate mutations.

Every supported action maps to a pure function that takes the current
record (or None when the company has no record) and returns either
``Apply(new_record)`` or ``NoChange``. Payloads are validated when the
function is built, so invalid input is rejected before the store is read.

Mutation functions never stamp ``last_updated``; the transaction engine
does that for the write it actually commits.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Union

from pydantic import BaseModel, ValidationError

from ratings_api.core.errors import ValidationAppError
from ratings_api.core.rate_limit import ActionClass
from ratings_api.schemas.company import (
    CompanyRecord,
    GeneralRatingPayload,
    WeeklyHoursPayload,
    WorkSetting,
)


@dataclass(frozen=True)
class Apply:
    """Commit ``record`` as the new value of the key."""

    record: CompanyRecord


@dataclass(frozen=True)
class NoChange:
    """Leave the key untouched."""


MutationOutcome = Union[Apply, NoChange]
MutationFn = Callable[[CompanyRecord | None], MutationOutcome]


class Action(str, Enum):
    """Mutations exposed over HTTP, named as in their routes."""

    WORTH_IT = "worthIt"
    NOT_WORTH_IT = "notWorthIt"
    KEEP_WORKING = "keepWorking"
    NOT_KEEP_WORKING = "notKeepWorking"
    WORK_SETTING = "workSetting"
    GENERAL_RATING = "generalRating"
    WEEKLY_HOURS = "weeklyHours"

    @property
    def action_class(self) -> ActionClass:
        return _ACTION_CLASSES[self]


_ACTION_CLASSES: dict[Action, ActionClass] = {
    Action.WORTH_IT: ActionClass.WORTH_IT,
    Action.NOT_WORTH_IT: ActionClass.WORTH_IT,
    Action.KEEP_WORKING: ActionClass.KEEP_WORKING,
    Action.NOT_KEEP_WORKING: ActionClass.KEEP_WORKING,
    Action.WORK_SETTING: ActionClass.WORK_SETTING,
    Action.GENERAL_RATING: ActionClass.GENERAL_RATING,
    Action.WEEKLY_HOURS: ActionClass.WEEKLY_HOURS,
}

_COUNTER_FIELDS: dict[Action, str] = {
    Action.WORTH_IT: "worth_it_count",
    Action.NOT_WORTH_IT: "not_worth_it_count",
    Action.KEEP_WORKING: "keep_working_count",
    Action.NOT_KEEP_WORKING: "not_keep_working_count",
}

_WORK_SETTING_FIELDS: dict[WorkSetting, str] = {
    WorkSetting.IN_OFFICE: "in_office_count",
    WorkSetting.HYBRID: "hybrid_count",
    WorkSetting.REMOTE: "remote_count",
}


def incremental_mean(mean: float, count: int, sample: float) -> tuple[float, int]:
    """Fold ``sample`` into a running mean of ``count`` samples.

    Uses the previous mean and count only; the result carries the rounding
    of this exact formula, not that of a recomputed arithmetic mean.

    Returns:
        Tuple of (new_mean, new_count).
    """
    new_count = count + 1
    return (mean * count + sample) / new_count, new_count


def _base_record(current: CompanyRecord | None, create_missing: bool) -> CompanyRecord | None:
    if current is not None:
        return current
    return CompanyRecord() if create_missing else None


def increment_counter(field: str, *, create_missing: bool = False) -> MutationFn:
    """Build a mutation adding one to the counter ``field``."""

    def mutate(current: CompanyRecord | None) -> MutationOutcome:
        record = _base_record(current, create_missing)
        if record is None:
            return NoChange()
        return Apply(record.model_copy(update={field: getattr(record, field) + 1}))

    return mutate


def fold_sample(
    mean_field: str,
    count_field: str,
    sample: float,
    *,
    create_missing: bool = False,
) -> MutationFn:
    """Build a mutation folding ``sample`` into a running mean.

    The mutation raises ValidationAppError instead of committing a mean that
    overflows to infinity.
    """

    def mutate(current: CompanyRecord | None) -> MutationOutcome:
        record = _base_record(current, create_missing)
        if record is None:
            return NoChange()
        new_mean, new_count = incremental_mean(
            getattr(record, mean_field), getattr(record, count_field), sample
        )
        if not math.isfinite(new_mean):
            raise ValidationAppError(
                code="invalid_type",
                message="Sample is out of range for the running mean",
                details={"field": mean_field, "expected": "finite number"},
            )
        return Apply(record.model_copy(update={mean_field: new_mean, count_field: new_count}))

    return mutate


def _parse_payload(model: type[BaseModel], body: Any, field: str, label: str) -> Any:
    if not isinstance(body, dict):
        raise ValidationAppError(
            code="invalid_body",
            message="Request body must be a JSON object",
        )
    try:
        payload = model.model_validate(body)
    except ValidationError as exc:
        raise ValidationAppError(
            code="invalid_type",
            message=f"{label} must be a number",
            details={"field": field, "expected": "number"},
        ) from exc
    return getattr(payload, field)


def parse_work_setting(value: str) -> WorkSetting:
    """Return the WorkSetting named by ``value``.

    Raises:
        ValidationAppError: If ``value`` is not one of the known settings.
    """
    try:
        return WorkSetting(value)
    except ValueError as exc:
        raise ValidationAppError(
            code="invalid_enum",
            message="Invalid work setting",
            details={"field": "setting", "allowed": [s.value for s in WorkSetting]},
        ) from exc


def build_mutation(
    action: Action,
    *,
    body: Any = None,
    setting: str | None = None,
    create_missing: bool = False,
) -> MutationFn:
    """Validate the input of ``action`` and return its mutation function.

    Args:
        action: Mutation to build.
        body: Decoded JSON body (rating and weekly hours votes).
        setting: Path parameter of work setting votes.
        create_missing: Start from an empty record when none is stored.

    Returns:
        Pure mutation function for the transaction engine.

    Raises:
        ValidationAppError: If the payload does not match the action's schema.
    """
    if action in _COUNTER_FIELDS:
        return increment_counter(_COUNTER_FIELDS[action], create_missing=create_missing)

    if action is Action.WORK_SETTING:
        work_setting = parse_work_setting(setting or "")
        return increment_counter(
            _WORK_SETTING_FIELDS[work_setting], create_missing=create_missing
        )

    if action is Action.GENERAL_RATING:
        rating = _parse_payload(GeneralRatingPayload, body, "rating", "Rating")
        return fold_sample(
            "general_rating", "general_rating_count", rating, create_missing=create_missing
        )

    if action is Action.WEEKLY_HOURS:
        hours = _parse_payload(WeeklyHoursPayload, body, "hours", "Weekly hours")
        return fold_sample(
            "weekly_hours", "weekly_hours_rating_count", hours, create_missing=create_missing
        )

    raise ValueError(f"unsupported action: {action!r}")
