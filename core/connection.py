"""
Store Connection Supervisor

Owns the process-wide engine and its connection state. Startup connects
to the primary store with exponential backoff, then falls back to a
secondary store when one is configured.

States:
    DISCONNECTED -> CONNECTING -> CONNECTED
                              \\-> FALLBACK   (primary exhausted, fallback up)
                              \\-> DISCONNECTED (everything failed)

Usage:
    supervisor = ConnectionSupervisor(settings.DATABASE_URL, SupervisorConfig.from_settings(settings))
    await supervisor.connect()

    async with supervisor.session_factory() as session:
        ...
"""

import asyncio
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, Optional

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from utils.exceptions import StoreUnavailableError
from utils.logging import get_logger
from utils.resilience import resilient_call, with_fallback

logger = get_logger(__name__)


class ConnectionState(str, Enum):
    """Lifecycle states of the store connection."""
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    FALLBACK = "fallback"


@dataclass
class SupervisorConfig:
    """Retry and fallback policy for the store connection."""
    max_attempts: int = 3
    initial_delay: float = 1.0
    max_delay: float = 10.0
    backoff_base: float = 2.0
    fallback_url: Optional[str] = None
    echo: bool = False

    @classmethod
    def from_settings(cls, settings) -> "SupervisorConfig":
        return cls(
            max_attempts=settings.DB_CONNECT_MAX_ATTEMPTS,
            initial_delay=settings.DB_CONNECT_INITIAL_DELAY,
            max_delay=settings.DB_CONNECT_MAX_DELAY,
            backoff_base=settings.DB_CONNECT_BACKOFF_BASE,
            fallback_url=settings.FALLBACK_DATABASE_URL,
            echo=settings.DB_ECHO,
        )


def normalize_database_url(url: str) -> str:
    """
    Rewrite a connection string to use an async driver.

    postgres:// and postgresql:// use asyncpg (which expects ``ssl``
    rather than ``sslmode``); plain sqlite:// uses aiosqlite.
    """
    if url.startswith("postgres://"):
        url = url.replace("postgres://", "postgresql://", 1)
    if url.startswith("postgresql://"):
        url = url.replace("postgresql://", "postgresql+asyncpg://", 1)

    if url.startswith("postgresql+asyncpg://") and "sslmode=" in url:
        url = url.replace("sslmode=require", "ssl=require")
        url = url.replace("sslmode=verify-full", "ssl=verify-full")

    if url.startswith("sqlite://"):
        url = url.replace("sqlite://", "sqlite+aiosqlite://", 1)

    return url


class ConnectionSupervisor:
    """
    Connects to the store and reports whether it can be queried.

    Every store-backed operation asks the supervisor for a session; when
    the supervisor is not ready the request fails with
    StoreUnavailableError instead of returning an empty result.
    """

    def __init__(
        self,
        database_url: str,
        config: Optional[SupervisorConfig] = None,
        engine_factory: Callable[..., AsyncEngine] = create_async_engine,
    ):
        self.database_url = normalize_database_url(database_url)
        self.config = config or SupervisorConfig()
        self._engine_factory = engine_factory
        self._engine: Optional[AsyncEngine] = None
        self._session_factory: Optional[async_sessionmaker] = None
        self._lock = asyncio.Lock()

        self.state = ConnectionState.DISCONNECTED
        self.attempts = 0
        self.last_error: Optional[str] = None

    # =========================================================================
    # State
    # =========================================================================

    @property
    def is_ready(self) -> bool:
        return self.state in (ConnectionState.CONNECTED, ConnectionState.FALLBACK)

    def require_ready(self) -> None:
        """Raise StoreUnavailableError unless a connection is established."""
        if not self.is_ready:
            raise StoreUnavailableError(details={"state": self.state.value})

    @property
    def engine(self) -> AsyncEngine:
        self.require_ready()
        return self._engine

    @property
    def session_factory(self) -> async_sessionmaker:
        self.require_ready()
        return self._session_factory

    def status(self, include_details: bool = False) -> Dict[str, Any]:
        """
        Connection summary for health endpoints.

        Never includes the URL. The last driver error is only reported
        with ``include_details``, since it can name hosts and users.
        """
        summary = {
            "state": self.state.value,
            "connectionEstablished": self.is_ready,
            "usingFallback": self.state == ConnectionState.FALLBACK,
            "attempts": self.attempts,
        }
        if include_details:
            summary["lastError"] = self.last_error
        return summary

    # =========================================================================
    # Connection Lifecycle
    # =========================================================================

    async def connect(self) -> ConnectionState:
        """
        Establish the store connection.

        Tries the primary store up to ``max_attempts`` times with
        exponential backoff, then the fallback store once.

        Raises:
            StoreUnavailableError: If no store could be reached
        """
        async with self._lock:
            if self.is_ready:
                logger.debug("Connection already established, skipping")
                return self.state

            strategies = [self._connect_primary]
            if self.config.fallback_url:
                strategies.append(self._connect_fallback)

            try:
                await with_fallback(strategies)
            except Exception as e:
                self.state = ConnectionState.DISCONNECTED
                self.last_error = str(e)
                logger.error(f"❌ Store connection failed: {e}")
                raise StoreUnavailableError(details={"error": str(e)}) from e

            return self.state

    async def _connect_primary(self) -> None:
        await resilient_call(
            self._open,
            self.database_url,
            max_retries=max(self.config.max_attempts - 1, 0),
            initial_delay=self.config.initial_delay,
            max_delay=self.config.max_delay,
            exponential_base=self.config.backoff_base,
            retry_on=(SQLAlchemyError, OSError),
        )
        self.state = ConnectionState.CONNECTED
        logger.info("✅ Connected to primary store")

    async def _connect_fallback(self) -> None:
        logger.warning("Primary store unreachable, switching to fallback store")
        await self._open(normalize_database_url(self.config.fallback_url))
        self.state = ConnectionState.FALLBACK
        logger.info("✅ Connected to fallback store")

    async def _open(self, url: str) -> None:
        self.state = ConnectionState.CONNECTING
        self.attempts += 1
        logger.info(f"🔗 Connecting to store (attempt {self.attempts})")

        engine = self._engine_factory(
            url,
            echo=self.config.echo,
            pool_pre_ping=True,
            pool_recycle=300,
        )
        try:
            async with engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
        except BaseException as e:
            self.state = ConnectionState.DISCONNECTED
            self.last_error = str(e)
            await engine.dispose()
            raise

        self._engine = engine
        self._session_factory = async_sessionmaker(
            bind=engine,
            class_=AsyncSession,
            expire_on_commit=False,
        )
        self.attempts = 0
        self.last_error = None

    async def dispose(self) -> None:
        """Close all pooled connections."""
        if self._engine is not None:
            await self._engine.dispose()
            logger.info("🔌 Store connection closed")
        self._engine = None
        self._session_factory = None
        self.state = ConnectionState.DISCONNECTED

    async def check_health(self) -> bool:
        """Run a trivial query against the store."""
        if not self.is_ready:
            return False
        try:
            async with self._engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
            return True
        except (SQLAlchemyError, OSError) as e:
            logger.error(f"Store health check failed: {e}")
            return False
