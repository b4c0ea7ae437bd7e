"""
Typed error hierarchy for the catalog service.

Services raise these; the exception handler registered in ``app.main``
renders each one as ``{"error", "message", "details"}`` with the status
code carried by the class, so routes never build HTTP errors themselves.

    CatalogError (base)
    ├── ValidationError       → 400
    ├── UnauthenticatedError  → 401
    ├── ForbiddenError        → 403
    ├── NotFoundError         → 404
    ├── ConflictError         → 409
    │   └── InvalidStateError → 409
    ├── StaleStateError       → 409 (retryable)
    └── FileStorageError      → 500
"""

from typing import Any, Dict, Optional


class CatalogError(Exception):
    """
    Base exception for all application errors.

    Attributes:
        message: Client-facing description
        context: Extra details returned under ``details``
    """

    status_code: int = 500
    error_code: str = "internal_error"
    retryable: bool = False

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        context: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.context = context or {}
        super().__init__(self.message)

    @property
    def headers(self) -> Optional[Dict[str, str]]:
        return None


class ValidationError(CatalogError):
    """Client input is malformed and can be fixed and resent."""

    status_code = 400
    error_code = "validation_error"

    def __init__(
        self,
        message: str = "Validation failed",
        field: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        if field:
            ctx["field"] = field
        super().__init__(message=message, context=ctx)
        self.field = field


class UnauthenticatedError(CatalogError):
    """No valid identity: the client must (re-)authenticate."""

    status_code = 401
    error_code = "unauthenticated"

    def __init__(
        self,
        message: str = "Could not validate credentials",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)

    @property
    def headers(self) -> Optional[Dict[str, str]]:
        return {"WWW-Authenticate": "Bearer"}


class ForbiddenError(CatalogError):
    """Identity is known but the policy denies the action."""

    status_code = 403
    error_code = "forbidden"

    def __init__(
        self,
        message: str = "Not enough permissions",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class NotFoundError(CatalogError):
    """The requested resource does not exist."""

    status_code = 404
    error_code = "not_found"

    def __init__(
        self,
        resource: str = "resource",
        resource_id: Optional[Any] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        message = f"The requested {resource} was not found"
        if resource_id is not None:
            message = f"{resource} with ID '{resource_id}' was not found"
        ctx = context or {}
        ctx["resource"] = resource
        if resource_id is not None:
            ctx["resource_id"] = str(resource_id)
        super().__init__(message=message, context=ctx)


class ConflictError(CatalogError):
    """The request conflicts with the current state of a resource."""

    status_code = 409
    error_code = "conflict"

    def __init__(
        self,
        message: str = "Request conflicts with the current state",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class InvalidStateError(ConflictError):
    """A lifecycle transition was attempted from the wrong source state."""

    error_code = "invalid_state"

    def __init__(
        self,
        operation: str,
        required_state: Any,
        current_state: Any,
        context: Optional[Dict[str, Any]] = None,
    ):
        required = getattr(required_state, "value", required_state)
        current = getattr(current_state, "value", current_state)
        ctx = context or {}
        ctx.update(
            {
                "operation": operation,
                "required_state": required,
                "current_state": current,
            }
        )
        super().__init__(
            message=f"Only {required} books can be {operation}",
            context=ctx,
        )
        self.required_state = required_state
        self.current_state = current_state


class StaleStateError(CatalogError):
    """The record changed between read and conditional write; re-read and retry."""

    status_code = 409
    error_code = "stale_state"
    retryable = True

    def __init__(
        self,
        message: str = "The resource was modified concurrently, please retry",
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        ctx["retryable"] = True
        super().__init__(message=message, context=ctx)


class FileStorageError(CatalogError):
    """Reading, writing or deleting a stored blob failed."""

    status_code = 500
    error_code = "file_storage_error"

    def __init__(
        self,
        message: str = "File storage operation failed",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)
