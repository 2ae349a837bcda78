"""Company vote and read endpoints.

Handlers are dispatch glue only: admit the request for its action class,
read the body (after admission, so throttled clients never get their input
parsed), and hand over to ``CompanyService``. Errors are rendered by the
global exception handlers.
"""

from __future__ import annotations

import json
from typing import Any

from fastapi import APIRouter, Depends, Request

from ratings_api.core.errors import ValidationAppError
from ratings_api.core.rate_limit import ActionClass, RateAdmission, client_key_for
from ratings_api.schemas.company import GeneralRatingPayload, WeeklyHoursPayload
from ratings_api.services.company_service import CompanyService
from ratings_api.services.mutations import Action

router = APIRouter(tags=["Companies"])


def get_company_service(request: Request) -> CompanyService:
    """Return the service built by the app factory."""
    return request.app.state.company_service


def get_rate_admission(request: Request) -> RateAdmission:
    """Return the rate admission policy built by the app factory."""
    return request.app.state.rate_admission


def _json_body_doc(model: type) -> dict[str, Any]:
    return {
        "requestBody": {
            "required": True,
            "content": {"application/json": {"schema": model.model_json_schema()}},
        }
    }


async def _read_json_body(request: Request) -> Any:
    raw = await request.body()
    if not raw:
        return None
    try:
        return json.loads(raw)
    except ValueError as exc:
        raise ValidationAppError(
            code="invalid_body",
            message="Request body must be valid JSON",
        ) from exc


async def _vote(
    request: Request,
    service: CompanyService,
    admission: RateAdmission,
    name: str,
    action: Action,
    *,
    setting: str | None = None,
    with_body: bool = False,
) -> dict[str, Any]:
    admission.enforce(client_key_for(request), action.action_class)
    body = await _read_json_body(request) if with_body else None
    return await service.vote(name, action, body=body, setting=setting)


@router.put("/company/{name}/worthIt")
async def vote_worth_it(
    name: str,
    request: Request,
    service: CompanyService = Depends(get_company_service),
    admission: RateAdmission = Depends(get_rate_admission),
) -> dict[str, Any]:
    """Count one "worth it" vote and return the updated record."""
    return await _vote(request, service, admission, name, Action.WORTH_IT)


@router.put("/company/{name}/notWorthIt")
async def vote_not_worth_it(
    name: str,
    request: Request,
    service: CompanyService = Depends(get_company_service),
    admission: RateAdmission = Depends(get_rate_admission),
) -> dict[str, Any]:
    """Count one "not worth it" vote and return the updated record."""
    return await _vote(request, service, admission, name, Action.NOT_WORTH_IT)


@router.put("/company/{name}/keepWorking")
async def vote_keep_working(
    name: str,
    request: Request,
    service: CompanyService = Depends(get_company_service),
    admission: RateAdmission = Depends(get_rate_admission),
) -> dict[str, Any]:
    """Count one "would keep working there" vote."""
    return await _vote(request, service, admission, name, Action.KEEP_WORKING)


@router.put("/company/{name}/notKeepWorking")
async def vote_not_keep_working(
    name: str,
    request: Request,
    service: CompanyService = Depends(get_company_service),
    admission: RateAdmission = Depends(get_rate_admission),
) -> dict[str, Any]:
    """Count one "would not keep working there" vote."""
    return await _vote(request, service, admission, name, Action.NOT_KEEP_WORKING)


@router.put("/company/{name}/workSetting/{setting}")
async def vote_work_setting(
    name: str,
    setting: str,
    request: Request,
    service: CompanyService = Depends(get_company_service),
    admission: RateAdmission = Depends(get_rate_admission),
) -> dict[str, Any]:
    """Count one vote for a work setting (inOffice, hybrid or remote).

    Raises:
        ValidationAppError: 400 if the setting is not one of the three.
    """
    return await _vote(request, service, admission, name, Action.WORK_SETTING, setting=setting)


@router.put("/company/{name}/generalRating", openapi_extra=_json_body_doc(GeneralRatingPayload))
async def vote_general_rating(
    name: str,
    request: Request,
    service: CompanyService = Depends(get_company_service),
    admission: RateAdmission = Depends(get_rate_admission),
) -> dict[str, Any]:
    """Fold a ``{"rating": number}`` sample into the company's mean rating.

    Raises:
        ValidationAppError: 400 if rating is missing or not a number.
    """
    return await _vote(request, service, admission, name, Action.GENERAL_RATING, with_body=True)


@router.put("/company/{name}/weeklyHours", openapi_extra=_json_body_doc(WeeklyHoursPayload))
async def vote_weekly_hours(
    name: str,
    request: Request,
    service: CompanyService = Depends(get_company_service),
    admission: RateAdmission = Depends(get_rate_admission),
) -> dict[str, Any]:
    """Fold a ``{"hours": number}`` sample into the company's mean weekly hours.

    Raises:
        ValidationAppError: 400 if hours is missing or not a number.
    """
    return await _vote(request, service, admission, name, Action.WEEKLY_HOURS, with_body=True)


@router.get("/company")
async def list_companies(
    request: Request,
    service: CompanyService = Depends(get_company_service),
    admission: RateAdmission = Depends(get_rate_admission),
) -> dict[str, Any]:
    """Return every company record keyed by name."""
    admission.enforce(client_key_for(request), ActionClass.READ)
    return await service.list_companies()


@router.get("/company/{company_id}")
async def get_company(
    company_id: str,
    request: Request,
    service: CompanyService = Depends(get_company_service),
    admission: RateAdmission = Depends(get_rate_admission),
) -> dict[str, Any] | None:
    """Return one company record, or null if the company has none."""
    admission.enforce(client_key_for(request), ActionClass.READ)
    return await service.get_company(company_id)


@router.get("/companies/sorted")
async def list_recently_updated(
    request: Request,
    service: CompanyService = Depends(get_company_service),
    admission: RateAdmission = Depends(get_rate_admission),
) -> list[dict[str, Any]]:
    """Return every company, most recently updated first, each with its ``id``."""
    admission.enforce(client_key_for(request), ActionClass.READ)
    return await service.list_recently_updated()
