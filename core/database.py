"""
Database Module

Declarative base, the process-wide connection supervisor and the
session dependency used by routers.
"""

from datetime import datetime, timezone
from functools import wraps
from typing import AsyncGenerator

from fastapi import Depends
from sqlalchemy.exc import InterfaceError, OperationalError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import declarative_base

from config.settings import settings
from core.connection import ConnectionSupervisor, SupervisorConfig
from utils.exceptions import StoreUnavailableError
from utils.logging import get_logger

logger = get_logger(__name__)

Base = declarative_base()

supervisor = ConnectionSupervisor(
    settings.DATABASE_URL,
    SupervisorConfig.from_settings(settings),
)


def utcnow() -> datetime:
    """Current UTC time as a naive datetime (the storage convention)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def get_supervisor() -> ConnectionSupervisor:
    return supervisor


async def get_db(
    store: ConnectionSupervisor = Depends(get_supervisor)
) -> AsyncGenerator[AsyncSession, None]:
    """Yield a session, failing with StoreUnavailableError when disconnected."""
    async with store.session_factory() as session:
        yield session


def store_operation(func):
    """
    Translate driver connectivity failures into StoreUnavailableError.

    Integrity and programming errors are left alone.
    """
    @wraps(func)
    async def wrapper(*args, **kwargs):
        try:
            return await func(*args, **kwargs)
        except (OperationalError, InterfaceError, ConnectionError) as e:
            logger.error(f"Store unavailable during {func.__name__}: {e}")
            raise StoreUnavailableError(details={"operation": func.__name__, "error": str(e)}) from e
    return wrapper
