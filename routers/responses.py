"""
Responses Router

Response submission and owner-side response listings.

Endpoints:
    POST /api/responses/submit - Submit a response (authenticated)
    GET  /api/responses/all - Newest responses across my active forms
    GET  /api/responses/form/{form_id} - Responses to one of my forms
    GET  /api/responses/analytics/{form_id} - Response analytics
    GET  /api/responses/{response_id} - Single response
"""

from typing import Any, Dict, List

from fastapi import APIRouter, Depends, Request, status

import auth as auth_utils
from core import models, schemas
from core.dependencies import get_analytics_service, get_response_service
from services.analytics import AnalyticsService
from services.form.ingestion import RequestMeta, ResponseService
from utils.logging import get_logger
from utils.rate_limit import get_client_ip, limit_submit

logger = get_logger(__name__)

router = APIRouter(prefix="/api/responses", tags=["Responses"])


def _with_submitter(entry: Dict[str, Any]) -> schemas.ResponseWithSubmitter:
    response = entry["response"]
    return schemas.ResponseWithSubmitter(
        id=response.id,
        user=entry["user"],
        form_title=entry["form_title"],
        responses=[schemas.AnswerOut.model_validate(a) for a in response.answers or []],
        submitted_at=response.submitted_at,
        device_type=response.device_type,
        browser=response.browser,
        ip_address=response.ip_address,
    )


# =============================================================================
# Submission
# =============================================================================

@router.post(
    "/submit",
    response_model=schemas.SubmissionResult,
    status_code=status.HTTP_201_CREATED,
    summary="Submit a response",
    responses={
        400: {"description": "Missing form id or answers, malformed answers"},
        401: {"description": "Not authenticated"},
        404: {"description": "Form not found or no longer accepting responses"},
    }
)
@limit_submit
async def submit_response(
    request: Request,
    payload: schemas.SubmissionCreate,
    current_user: models.User = Depends(auth_utils.get_current_user),
    responses: ResponseService = Depends(get_response_service)
):
    """
    Submit answers to an active form.

    Device type, browser and OS are derived from the User-Agent header.
    """
    meta = RequestMeta(
        ip_address=get_client_ip(request),
        user_agent=request.headers.get("user-agent"),
    )
    response_id = await responses.submit_response(
        current_user.id,
        payload.form_id,
        payload.responses,
        time_spent=payload.time_spent,
        meta=meta,
    )
    return schemas.SubmissionResult(
        message="Response submitted successfully",
        response_id=response_id,
    )


# =============================================================================
# Listings
# =============================================================================

@router.get(
    "/all",
    response_model=List[schemas.ResponseWithSubmitter],
    summary="Newest responses across my forms"
)
async def all_responses(
    current_user: models.User = Depends(auth_utils.get_current_user),
    responses: ResponseService = Depends(get_response_service)
):
    entries = await responses.list_all_responses(current_user.id)
    return [_with_submitter(e) for e in entries]


@router.get(
    "/form/{form_id}",
    response_model=List[schemas.ResponseWithSubmitter],
    summary="Responses to one of my forms"
)
async def form_responses(
    form_id: int,
    current_user: models.User = Depends(auth_utils.get_current_user),
    responses: ResponseService = Depends(get_response_service)
):
    entries = await responses.list_form_responses(current_user.id, form_id)
    return [_with_submitter(e) for e in entries]


@router.get("/analytics/{form_id}", summary="Response analytics")
async def response_analytics(
    form_id: int,
    current_user: models.User = Depends(auth_utils.get_current_user),
    analytics: AnalyticsService = Depends(get_analytics_service)
):
    return await analytics.response_analytics(current_user.id, form_id)


@router.get(
    "/{response_id}",
    response_model=schemas.ResponseDetail,
    summary="Get a response",
    responses={404: {"description": "Not found, or not visible to the caller"}}
)
async def get_response(
    response_id: int,
    current_user: models.User = Depends(auth_utils.get_current_user),
    responses: ResponseService = Depends(get_response_service)
):
    """
    Single response with its form title. Stays readable after the form
    is soft-deleted.
    """
    entry = await responses.get_response(current_user.id, response_id)
    base = schemas.ResponseOut.from_model(entry["response"])
    return schemas.ResponseDetail(**base.model_dump(), form_title=entry["form_title"])
