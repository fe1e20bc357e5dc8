"""
FastAPI Dependencies Module

Provides dependency injection for services.
Form, response and user services are bound to the request's session;
the analytics service opens its own sessions so its aggregations can
run concurrently.

Usage:
    from core.dependencies import get_form_service

    @router.get("/")
    async def list_forms(
        forms: FormService = Depends(get_form_service)
    ):
        ...
"""

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from core.connection import ConnectionSupervisor
from core.database import get_db, get_supervisor
from services.analytics import AnalyticsService
from services.form.ingestion import ResponseService
from services.form.lifecycle import FormService
from services.users import UserService


# =============================================================================
# Service Providers
# =============================================================================

def get_form_service(db: AsyncSession = Depends(get_db)) -> FormService:
    return FormService(db)


def get_response_service(db: AsyncSession = Depends(get_db)) -> ResponseService:
    """
    Get ResponseService for the request.

    Strict submission validation follows STRICT_SUBMISSION_VALIDATION.
    """
    return ResponseService(db)


def get_user_service(db: AsyncSession = Depends(get_db)) -> UserService:
    return UserService(db)


def get_analytics_service(
    store: ConnectionSupervisor = Depends(get_supervisor)
) -> AnalyticsService:
    """
    Get AnalyticsService bound to the supervisor's session factory.

    Raises:
        StoreUnavailableError: If the store is not connected
    """
    return AnalyticsService(store.session_factory)
