"""
Rate Limiting

Per-client request limits with slowapi. Clients are keyed by IP, taking
the first X-Forwarded-For hop when the API sits behind a proxy. Counters
live in Redis when ``REDIS_URL`` is set, in process memory otherwise.

Limits:
    auth    10/minute   register, check-user, login
    submit  30/minute   response submission
    default 200/minute  everything else

Usage:
    from utils.rate_limit import limiter, limit_submit

    @router.post("/submit")
    @limit_submit
    async def submit_response(request: Request, ...):
        ...
"""

from fastapi import Request
from fastapi.responses import JSONResponse
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address

from config.settings import settings
from utils.logging import get_logger

logger = get_logger(__name__)

RATE_LIMITS = {
    "auth": "10/minute",
    "submit": "30/minute",
    "default": "200/minute",
}

RETRY_AFTER_SECONDS = 60


def get_client_ip(request: Request) -> str:
    """Client address, honoring the first X-Forwarded-For hop."""
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        first_hop = forwarded.split(",")[0].strip()
        if first_hop:
            return first_hop
    return get_remote_address(request)


def _storage_uri() -> str:
    if settings.REDIS_URL:
        logger.info("Rate limit counters stored in Redis")
        return settings.REDIS_URL
    logger.info("Rate limit counters kept in memory")
    return "memory://"


limiter = Limiter(
    key_func=get_client_ip,
    default_limits=[RATE_LIMITS["default"]],
    storage_uri=_storage_uri(),
    enabled=settings.RATE_LIMIT_ENABLED,
)


async def rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    """429 in the API's ``{error, message}`` shape."""
    logger.warning(f"Rate limit hit by {get_client_ip(request)} on {request.url.path}: {exc.detail}")
    return JSONResponse(
        status_code=429,
        content={
            "error": "RateLimitExceeded",
            "message": f"Too many requests ({exc.detail}). Please slow down.",
        },
        headers={"Retry-After": str(RETRY_AFTER_SECONDS)},
    )


def limit_auth(func):
    return limiter.limit(RATE_LIMITS["auth"])(func)


def limit_submit(func):
    return limiter.limit(RATE_LIMITS["submit"])(func)
