"""
Domain exceptions raised below the HTTP layer.

Services and guards raise these instead of HTTPException so they stay usable
outside a request. src.api.main registers a handler that renders them with the
standard ErrorResponse envelope.
"""
from __future__ import annotations

from typing import Any, Optional


class AppError(Exception):
    """Base application error carrying an HTTP status and a machine-readable type."""

    status_code: int = 400
    error_type: str = "app_error"

    def __init__(self, message: str, *, details: Optional[Any] = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details


class Forbidden(AppError):
    """
    The caller may not act on the requested resource.

    Raised for records outside the caller's visibility scope and for missing
    module permissions. Always 403: an out-of-scope record is reported as
    existing-but-forbidden rather than simulated as absent.
    """

    status_code = 403
    error_type = "forbidden"

    def __init__(
        self,
        message: str = "Forbidden: you do not have access to this record",
        *,
        details: Optional[Any] = None,
    ) -> None:
        super().__init__(message, details=details)
