"""
Centralized HTTP exceptions for consistent error handling.

Domain services raise these directly; FastAPI turns them into JSON error
responses, and every instance logs itself with its context on construction.

Usage:
    from shared.utils.exceptions import NotFoundError, TableUnavailableError

    raise NotFoundError("Table", table_id)
    raise TableUnavailableError(table_id)
"""

from fastapi import HTTPException, status
from typing import Any

from shared.config.logging import get_logger

logger = get_logger(__name__)


class AppException(HTTPException):
    """
    Base exception with automatic logging.

    All custom exceptions should inherit from this class
    to ensure consistent logging and response format.
    """

    def __init__(
        self,
        status_code: int,
        detail: str,
        log_level: str = "warning",
        headers: dict[str, str] | None = None,
        **log_context: Any,
    ):
        log_fn = getattr(logger, log_level, logger.warning)
        log_fn(detail, status_code=status_code, **log_context)

        super().__init__(status_code=status_code, detail=detail, headers=headers)


# =============================================================================
# 404 Not Found Errors
# =============================================================================


class NotFoundError(AppException):
    """
    Entity not found error (404).

    Usage:
        raise NotFoundError("Menu item", "M001")
        raise NotFoundError("Cart")
    """

    def __init__(self, entity: str, entity_id: int | str | None = None, **log_context: Any):
        if entity_id is not None:
            detail = f"{entity} with ID {entity_id} not found"
        else:
            detail = f"{entity} not found"

        self.entity = entity
        self.entity_id = entity_id
        super().__init__(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=detail,
            log_level="warning",
            entity=entity,
            entity_id=entity_id,
            **log_context,
        )


# =============================================================================
# Table ownership errors
# =============================================================================


class TableUnavailableError(AppException):
    """Table is occupied by another session (409). Retry later."""

    def __init__(self, table_id: int, **log_context: Any):
        self.table_id = table_id
        super().__init__(
            status_code=status.HTTP_409_CONFLICT,
            detail="This table is currently occupied by another customer.",
            log_level="info",
            table_id=table_id,
            **log_context,
        )


class NotOwnerError(AppException):
    """Caller does not hold the table (403). Never retried."""

    def __init__(self, table_id: int, **log_context: Any):
        self.table_id = table_id
        super().__init__(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="You don't have access to this table.",
            log_level="warning",
            table_id=table_id,
            **log_context,
        )


# =============================================================================
# 400 Bad Request Errors
# =============================================================================


class ValidationError(AppException):
    """
    Input validation error (400).

    Usage:
        raise ValidationError("Cart is empty")
        raise ValidationError("Invalid pax", field="pax", value=0)
    """

    def __init__(self, detail: str, **log_context: Any):
        super().__init__(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=detail,
            log_level="warning",
            **log_context,
        )


class InvalidTransitionError(ValidationError):
    """Invalid status transition."""

    def __init__(self, entity: str, from_status: str, to_status: str, **log_context: Any):
        self.from_status = from_status
        self.to_status = to_status
        detail = f"Invalid transition from '{from_status}' to '{to_status}' for {entity}"
        super().__init__(detail, entity=entity, from_status=from_status, to_status=to_status, **log_context)


class DuplicateEntityError(ValidationError):
    """Entity already exists."""

    def __init__(self, entity: str, identifier: str | None = None, **log_context: Any):
        if identifier:
            detail = f"{entity} with identifier '{identifier}' already exists"
        else:
            detail = f"{entity} already exists"

        super().__init__(detail, entity=entity, identifier=identifier, **log_context)


class InvalidBatchError(ValidationError):
    """Batch operation rejected as a whole; nothing was changed."""

    def __init__(self, detail: str, ids: list[int] | None = None, **log_context: Any):
        self.ids = ids or []
        super().__init__(detail, ids=self.ids, **log_context)


# =============================================================================
# 409 Conflict Errors
# =============================================================================


class ConflictError(AppException):
    """
    Resource conflict error (409).

    Usage:
        raise ConflictError("Category still has menu items")
    """

    def __init__(self, detail: str, **log_context: Any):
        super().__init__(
            status_code=status.HTTP_409_CONFLICT,
            detail=detail,
            log_level="warning",
            **log_context,
        )


class ConflictViolationError(ConflictError):
    """Two mutually exclusive add-ons were selected together."""

    def __init__(self, pairs: list[tuple[int, int]], **log_context: Any):
        self.pairs = pairs
        pairs_str = ", ".join(f"{a}/{b}" for a, b in pairs)
        super().__init__(
            f"Selected add-ons cannot be combined: {pairs_str}",
            pairs=pairs,
            **log_context,
        )


# =============================================================================
# 5xx Errors
# =============================================================================


class StoreError(AppException):
    """Database transaction failed (503). Transient: the caller may retry."""

    def __init__(self, operation: str, **log_context: Any):
        detail = f"Database error during {operation}. Please try again."
        super().__init__(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=detail,
            log_level="error",
            operation=operation,
            **log_context,
        )
