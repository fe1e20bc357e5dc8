"""
Utilities Module

Provides shared utilities across the application:
- Logging configuration
- Custom exceptions
- Retry, fallback and isolated fan-out helpers

Rate limiting lives in utils.rate_limit (imported by the app and routers).
"""

from .logging import get_logger, setup_logging, log_form_action
from .exceptions import (
    FormForgeError,
    NotFoundError,
    FormNotAcceptingResponsesError,
    MissingRequiredInputError,
    InvalidFieldTypeError,
    InvalidInputError,
    ConflictError,
    AuthenticationRequiredError,
    AccountDeactivatedError,
    StoreUnavailableError,
    UnknownError,
)
from .resilience import resilient_call, with_fallback, gather_isolated

__all__ = [
    # Logging
    "get_logger",
    "setup_logging",
    "log_form_action",
    # Exceptions
    "FormForgeError",
    "NotFoundError",
    "FormNotAcceptingResponsesError",
    "MissingRequiredInputError",
    "InvalidFieldTypeError",
    "InvalidInputError",
    "ConflictError",
    "AuthenticationRequiredError",
    "AccountDeactivatedError",
    "StoreUnavailableError",
    "UnknownError",
    # Resilience
    "resilient_call",
    "with_fallback",
    "gather_isolated",
]
