"""
Common API utilities for consistent response formatting across all controllers.
"""

from typing import Any, Optional

from flask import jsonify

from lending.core.exceptions import LendingError, TransientStoreError, ValidationError


def api_response(
    success: bool,
    message: str,
    data: Optional[Any] = None,
    status_code: int = 200,
    **extra: Any,
) -> tuple:
    """
    Standardized API response format for all endpoints.

    Args:
        success: Whether the operation was successful
        message: Human-readable message about the operation
        data: Optional data payload
        status_code: HTTP status code
        **extra: Additional top-level keys (``code``, ``errors``)

    Returns:
        Tuple of (json_response, status_code)
    """
    response = {"success": success, "message": message}

    if data is not None:
        response["data"] = data

    response.update(extra)
    return jsonify(response), status_code


def error_response(error: LendingError):
    """Render a lending error with its status code and machine-readable kind."""
    extra: dict = {"code": error.kind}
    if isinstance(error, ValidationError) and error.errors:
        extra["errors"] = error.errors

    body, status = api_response(False, error.message, None, error.http_status, **extra)
    if isinstance(error, TransientStoreError):
        body.headers["Retry-After"] = "1"
    return body, status
