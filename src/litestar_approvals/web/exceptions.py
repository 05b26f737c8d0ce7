"""Exception handling for approval web endpoints.

This module maps the engine's exception hierarchy onto HTTP responses so
route handlers can let engine errors propagate.
"""

from __future__ import annotations

import logging
import re
from typing import TYPE_CHECKING, Any

from litestar import Response
from litestar.status_codes import (
    HTTP_400_BAD_REQUEST,
    HTTP_403_FORBIDDEN,
    HTTP_404_NOT_FOUND,
    HTTP_409_CONFLICT,
    HTTP_422_UNPROCESSABLE_ENTITY,
    HTTP_500_INTERNAL_SERVER_ERROR,
)

from litestar_approvals.exceptions import (
    AlreadyHandledError,
    ApprovalsError,
    AssigneeResolutionError,
    CorruptStateError,
    InitiatorNotPermittedError,
    InvalidStateError,
    NotAssigneeError,
    NotFoundError,
    WorkflowValidationError,
)

if TYPE_CHECKING:  # pragma: no cover
    from litestar import Request

__all__ = ["approvals_exception_handler", "status_code_for"]

logger = logging.getLogger(__name__)

# First match wins, so subclasses come before their bases.
_STATUS_CODES: list[tuple[type[ApprovalsError], int]] = [
    (WorkflowValidationError, HTTP_400_BAD_REQUEST),
    (InitiatorNotPermittedError, HTTP_403_FORBIDDEN),
    (NotAssigneeError, HTTP_403_FORBIDDEN),
    (NotFoundError, HTTP_404_NOT_FOUND),
    (AlreadyHandledError, HTTP_409_CONFLICT),
    (InvalidStateError, HTTP_409_CONFLICT),
    (AssigneeResolutionError, HTTP_422_UNPROCESSABLE_ENTITY),
    (CorruptStateError, HTTP_500_INTERNAL_SERVER_ERROR),
]


def status_code_for(exc: ApprovalsError) -> int:
    """Return the HTTP status code for an engine exception."""
    for exc_type, status_code in _STATUS_CODES:
        if isinstance(exc, exc_type):
            return status_code
    return HTTP_400_BAD_REQUEST


def _error_name(exc: Exception) -> str:
    name = type(exc).__name__.removesuffix("Error")
    return re.sub(r"(?<!^)(?=[A-Z])", "_", name).lower()


def approvals_exception_handler(
    _request: Request,
    exc: ApprovalsError,
) -> Response:
    """Exception handler for every :class:`ApprovalsError`.

    Returns a JSON body with a machine-readable ``error`` name and the
    exception message. Validation errors also carry the full ``errors`` list.

    Args:
        _request: The Litestar request object.
        exc: The raised engine exception.

    Returns:
        Response with error details.
    """
    status_code = status_code_for(exc)
    if status_code >= HTTP_500_INTERNAL_SERVER_ERROR:
        logger.error("Unhandled approvals error: %s", exc)

    content: dict[str, Any] = {"error": _error_name(exc), "message": str(exc)}
    if isinstance(exc, WorkflowValidationError):
        content["errors"] = list(exc.errors)
    return Response(content=content, status_code=status_code)
