"""
Core Module

Provides the store connection, database, models and schemas for the application.
Service providers live in core.dependencies.
"""

from .connection import ConnectionState, ConnectionSupervisor, SupervisorConfig
from .database import Base, supervisor, get_db, get_supervisor, utcnow
from .models import User, Form, Response

__all__ = [
    # Connection
    "ConnectionState",
    "ConnectionSupervisor",
    "SupervisorConfig",
    # Database
    "Base",
    "supervisor",
    "get_db",
    "get_supervisor",
    "utcnow",
    # Models
    "User",
    "Form",
    "Response",
]
