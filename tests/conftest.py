"""
Test Configuration

Pytest configuration and shared fixtures for all tests.

Every test gets its own SQLite file behind a connected
ConnectionSupervisor; the app's supervisor dependency is overridden to
point at it.
"""

import os

# Must be set before the application modules read settings
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["DEBUG"] = "false"
os.environ["STRICT_SUBMISSION_VALIDATION"] = "false"

from datetime import datetime
from typing import AsyncGenerator

import pytest
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import AsyncSession

import auth as auth_utils
from core.connection import ConnectionSupervisor, SupervisorConfig
from core.database import Base, get_supervisor
from core.models import Form, Response, User


@pytest.fixture
async def supervisor(tmp_path) -> AsyncGenerator[ConnectionSupervisor, None]:
    """Connected supervisor over a fresh SQLite database."""
    store = ConnectionSupervisor(
        f"sqlite+aiosqlite:///{tmp_path / 'test.db'}",
        SupervisorConfig(max_attempts=1, initial_delay=0),
    )
    await store.connect()
    async with store.engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield store

    await store.dispose()


@pytest.fixture
async def db(supervisor) -> AsyncGenerator[AsyncSession, None]:
    """Get test database session."""
    async with supervisor.session_factory() as session:
        yield session


@pytest.fixture
async def client(supervisor) -> AsyncGenerator[AsyncClient, None]:
    """Get async test client for API testing."""
    from main import app

    app.dependency_overrides[get_supervisor] = lambda: supervisor
    transport = ASGITransport(app=app)

    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


# =============================================================================
# Factories
# =============================================================================

@pytest.fixture
def make_user(db):
    async def _make_user(
        email: str = "owner@example.com",
        name: str = "Owner",
        password: str = "secret123",
        is_active: bool = True,
    ) -> User:
        user = User(
            email=email,
            name=name,
            password_hash=auth_utils.get_password_hash(password),
            is_active=is_active,
        )
        db.add(user)
        await db.commit()
        await db.refresh(user)
        return user

    return _make_user


@pytest.fixture
def make_form(db):
    async def _make_form(owner: User, fields=None, title: str = "Survey", **kwargs) -> Form:
        form = Form(
            owner_id=owner.id,
            title=title,
            fields=fields if fields is not None else [
                {"id": "f1", "type": "select", "label": "Color",
                 "options": ["Red", "Blue"], "required": False, "order": 0},
            ],
            theme="default",
            settings={},
            **kwargs,
        )
        db.add(form)
        await db.commit()
        await db.refresh(form)
        return form

    return _make_form


@pytest.fixture
def make_response(db):
    async def _make_response(
        form: Form,
        user: User,
        value="Red",
        field_id: str = "f1",
        submitted_at: datetime = None,
        **kwargs,
    ) -> Response:
        response = Response(
            form_id=form.id,
            user_id=user.id,
            answers=[{
                "field_id": field_id,
                "field_type": "select",
                "label": "Color",
                "value": value,
                "required": False,
            }],
            submitted_at=submitted_at or datetime(2024, 6, 15, 12, 0),
            device_type=kwargs.pop("device_type", "desktop"),
            browser=kwargs.pop("browser", "Chrome"),
            os=kwargs.pop("os", "Windows"),
            **kwargs,
        )
        db.add(response)
        await db.commit()
        await db.refresh(response)
        return response

    return _make_response


@pytest.fixture
def sample_fields():
    """Sample field payloads as sent by the form builder."""
    return [
        {"id": "name", "type": "text", "label": "Full name", "required": True, "order": 7},
        {"id": "color", "type": "select", "label": "Favorite color",
         "options": ["Red", "Blue"], "order": 3},
        {"id": "age", "type": "number", "label": "Age",
         "validation": {"min": 0, "max": 120}},
    ]
