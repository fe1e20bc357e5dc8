"""
Custom Exceptions Module

Defines application-specific exceptions for clearer error handling.
All exceptions inherit from a base FormForgeError for easy catching.

Every exception carries a short machine-checkable ``kind`` and a
human-readable message. Internal details are only rendered when the
application runs in development mode.

Usage:
    from utils.exceptions import NotFoundError, MissingRequiredInputError

    try:
        form = await service.get_owned_form(user_id, form_id)
    except NotFoundError as e:
        logger.warning(f"Lookup failed: {e}")
"""

from typing import Optional, Dict, Any


class FormForgeError(Exception):
    """
    Base exception for all FormForge application errors.

    Attributes:
        message: Human-readable error message
        details: Additional error details (optional, development only)
        status_code: HTTP status code to return
    """

    kind = "Unknown"

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        status_code: int = 500
    ):
        self.message = message
        self.details = details or {}
        self.status_code = status_code
        super().__init__(self.message)

    def to_dict(self, include_details: bool = False) -> Dict[str, Any]:
        """Convert exception to dictionary for API responses."""
        payload = {
            "error": self.kind,
            "message": self.message,
        }
        if include_details and self.details:
            payload["details"] = self.details
        return payload


# =============================================================================
# Lookup Exceptions
# =============================================================================

class NotFoundError(FormForgeError):
    """
    Raised when an entity is absent or the caller does not own it.

    The two cases are deliberately indistinguishable to the caller.
    """

    kind = "NotFound"

    def __init__(
        self,
        message: str = "Not found",
        resource: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(
            message=message,
            details={"resource": resource, **(details or {})},
            status_code=404
        )


class FormNotAcceptingResponsesError(FormForgeError):
    """Raised when a submission targets a missing or soft-deleted form."""

    kind = "FormNotAcceptingResponses"

    def __init__(
        self,
        message: str = "Form not found or no longer accepting responses",
        form_id: Optional[int] = None
    ):
        super().__init__(
            message=message,
            details={"form_id": form_id},
            status_code=404
        )


# =============================================================================
# Validation Exceptions
# =============================================================================

class MissingRequiredInputError(FormForgeError):
    """
    Raised when a required value is absent.

    Common causes:
        - Form title missing or blank
        - Empty field list
        - Answer without a field id
    """

    kind = "MissingRequiredInput"

    def __init__(
        self,
        message: str = "Required input is missing",
        field: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(
            message=message,
            details={"field": field, **(details or {})},
            status_code=400
        )


class InvalidFieldTypeError(FormForgeError):
    """Raised when a field definition names an unknown field type."""

    kind = "InvalidFieldType"

    def __init__(
        self,
        field_type: Any = None,
        field_id: Optional[str] = None,
        message: Optional[str] = None
    ):
        super().__init__(
            message=message or f"Invalid field type: {field_type!r}",
            details={"field_id": field_id, "field_type": field_type},
            status_code=400
        )


class InvalidInputError(FormForgeError):
    """
    Raised when a value is present but malformed.

    Common causes:
        - Unknown theme
        - Answer value not matching the field type (strict mode)
        - Password too short
    """

    kind = "InvalidInput"

    def __init__(
        self,
        message: str = "Invalid input",
        field: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(
            message=message,
            details={"field": field, **(details or {})},
            status_code=400
        )


class ConflictError(FormForgeError):
    """Raised when a unique value (such as an email) is already taken."""

    kind = "Conflict"

    def __init__(
        self,
        message: str = "Resource already exists",
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(
            message=message,
            details=details,
            status_code=400
        )


# =============================================================================
# Authentication Exceptions
# =============================================================================

class AuthenticationRequiredError(FormForgeError):
    """
    Raised when authentication fails.

    Common causes:
        - Invalid credentials
        - Expired token
        - Missing token
    """

    kind = "AuthenticationRequired"

    def __init__(
        self,
        message: str = "Authentication required",
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(
            message=message,
            details=details,
            status_code=401
        )


class AccountDeactivatedError(FormForgeError):
    """Raised when a deactivated account tries to log in."""

    kind = "AccountDeactivated"

    def __init__(
        self,
        message: str = "Account is deactivated. Please contact support."
    ):
        super().__init__(message=message, status_code=403)


# =============================================================================
# Infrastructure Exceptions
# =============================================================================

class StoreUnavailableError(FormForgeError):
    """
    Raised when the store cannot be queried.

    Distinct from an empty result: callers must be able to tell
    "nothing there" from "could not look".
    """

    kind = "StoreUnavailable"

    def __init__(
        self,
        message: str = "Database connection not available. Please try again in a few moments",
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(
            message=message,
            details=details,
            status_code=503
        )


class UnknownError(FormForgeError):
    """Catch-all with a safe, non-leaking message."""

    kind = "Unknown"

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(
            message=message,
            details=details,
            status_code=500
        )
