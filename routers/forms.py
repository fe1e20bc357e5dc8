"""
Forms Router

Form definition management and per-form analytics.

Endpoints:
    GET    /api/forms/public/{id} - Public view of an active form
    GET    /api/forms/ - Owner's active forms with response counts
    POST   /api/forms/ - Create form
    GET    /api/forms/dashboard/stats - Dashboard overview
    GET    /api/forms/management/overview - Per-form management analytics
    GET    /api/forms/health/db - Store connection status
    GET    /api/forms/{id} - Owned form
    PUT    /api/forms/{id} - Update owned form
    DELETE /api/forms/{id} - Soft-delete owned form
    GET    /api/forms/{id}/stats - Headline numbers
    GET    /api/forms/{id}/details - Form, statistics and newest responses
    GET    /api/forms/{id}/submissions - Paginated submissions
    GET    /api/forms/{id}/analytics - Full analytics
"""

from typing import List

from fastapi import APIRouter, Depends, Query, status

import auth as auth_utils
from config.constants import DEFAULT_PAGE_SIZE
from config.settings import settings
from core import models, schemas
from core.connection import ConnectionSupervisor
from core.database import get_supervisor
from core.dependencies import get_analytics_service, get_form_service, get_response_service
from services.analytics import AnalyticsService
from services.form.ingestion import ResponseService
from services.form.lifecycle import FormService
from utils.logging import get_logger

logger = get_logger(__name__)

router = APIRouter(prefix="/api/forms", tags=["Forms"])


# =============================================================================
# Public
# =============================================================================

@router.get(
    "/public/{form_id}",
    response_model=schemas.PublicFormView,
    summary="Get public form",
    responses={404: {"description": "Form not found or inactive"}}
)
async def get_public_form(
    form_id: int,
    forms: FormService = Depends(get_form_service)
):
    """Fetch an active form for respondents. Owner and state are not exposed."""
    return await forms.get_public_form(form_id)


# =============================================================================
# Listings & Overviews
# =============================================================================

@router.get("/", response_model=List[schemas.FormListItem], summary="List my forms")
async def list_forms(
    current_user: models.User = Depends(auth_utils.get_current_user),
    forms: FormService = Depends(get_form_service)
):
    entries = await forms.list_owned_forms(current_user.id)
    return [
        schemas.FormListItem.model_validate(entry["form"]).model_copy(
            update={"response_count": entry["response_count"]}
        )
        for entry in entries
    ]


@router.get("/dashboard/stats", summary="Dashboard overview")
async def dashboard_stats(
    current_user: models.User = Depends(auth_utils.get_current_user),
    analytics: AnalyticsService = Depends(get_analytics_service)
):
    return await analytics.dashboard_overview(current_user.id)


@router.get("/management/overview", summary="Forms management overview")
async def management_overview(
    current_user: models.User = Depends(auth_utils.get_current_user),
    analytics: AnalyticsService = Depends(get_analytics_service)
):
    return await analytics.management_overview(current_user.id)


@router.get("/health/db", summary="Store connection status")
async def database_health(store: ConnectionSupervisor = Depends(get_supervisor)):
    """Supervisor state plus a live probe."""
    reachable = await store.check_health()
    return {**store.status(include_details=settings.DEBUG), "probe": reachable}


# =============================================================================
# CRUD
# =============================================================================

@router.post(
    "/",
    response_model=schemas.FormResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create form",
    responses={400: {"description": "Missing title/fields, invalid field type or settings"}}
)
async def create_form(
    payload: schemas.FormCreate,
    current_user: models.User = Depends(auth_utils.get_current_user),
    forms: FormService = Depends(get_form_service)
):
    """
    Create a form owned by the caller.

    Field ``order`` values are reassigned to each field's position.
    """
    return await forms.create_form(current_user.id, payload)


@router.get("/{form_id}", response_model=schemas.FormResponse, summary="Get my form")
async def get_form(
    form_id: int,
    current_user: models.User = Depends(auth_utils.get_current_user),
    forms: FormService = Depends(get_form_service)
):
    return await forms.get_owned_form(current_user.id, form_id)


@router.put("/{form_id}", response_model=schemas.FormResponse, summary="Update form")
async def update_form(
    form_id: int,
    payload: schemas.FormUpdate,
    current_user: models.User = Depends(auth_utils.get_current_user),
    forms: FormService = Depends(get_form_service)
):
    return await forms.update_form(current_user.id, form_id, payload)


@router.delete("/{form_id}", response_model=schemas.MessageResponse, summary="Delete form")
async def delete_form(
    form_id: int,
    current_user: models.User = Depends(auth_utils.get_current_user),
    forms: FormService = Depends(get_form_service)
):
    """Soft delete: the form is hidden but its responses are kept."""
    await forms.soft_delete_form(current_user.id, form_id)
    return {"message": "Form deleted successfully"}


# =============================================================================
# Per-form Analytics
# =============================================================================

@router.get("/{form_id}/stats", summary="Form statistics")
async def form_stats(
    form_id: int,
    current_user: models.User = Depends(auth_utils.get_current_user),
    analytics: AnalyticsService = Depends(get_analytics_service)
):
    return await analytics.form_stats(current_user.id, form_id)


@router.get("/{form_id}/details", summary="Form details")
async def form_details(
    form_id: int,
    current_user: models.User = Depends(auth_utils.get_current_user),
    analytics: AnalyticsService = Depends(get_analytics_service)
):
    details = await analytics.form_details(current_user.id, form_id)
    return {
        "form": schemas.FormResponse.model_validate(details["form"]),
        "statistics": details["statistics"],
        "recentResponses": [
            schemas.ResponseOut.from_model(r) for r in details["recentResponses"]
        ],
    }


@router.get(
    "/{form_id}/submissions",
    response_model=schemas.SubmissionPage,
    summary="Paginated submissions"
)
async def form_submissions(
    form_id: int,
    page: int = Query(1, ge=1),
    limit: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=100),
    current_user: models.User = Depends(auth_utils.get_current_user),
    responses: ResponseService = Depends(get_response_service)
):
    """
    Newest submissions first. Answers carry the field's current label,
    or the label stored at submission time if the field was removed.
    """
    return await responses.list_submissions(current_user.id, form_id, page=page, limit=limit)


@router.get("/{form_id}/analytics", summary="Form analytics")
async def form_analytics(
    form_id: int,
    current_user: models.User = Depends(auth_utils.get_current_user),
    analytics: AnalyticsService = Depends(get_analytics_service)
):
    """
    Totals, 30-day daily trend, device/browser/hourly distributions,
    top values per field and completion-time statistics. Each part is
    computed independently; a failing part reports its empty default.
    """
    return await analytics.form_analytics(current_user.id, form_id)
