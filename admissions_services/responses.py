"""
Error response mapping for the HTTP layer.

``to_error_response`` turns any kernel error into the JSON body and status
code the admissions API has always returned:

    {"success": false, "message": "...", "code": "...", "fieldErrors": [...]}

``fieldErrors`` is present only for validation errors that carry them.
"""

from typing import Any

from admissions_kernel.exceptions import AdmissionsKernelError, ValidationError
from admissions_kernel.logging_config import get_logger

logger = get_logger("services.responses")

INTERNAL_ERROR_CODE = "INTERNAL_ERROR"


def to_error_response(exc: BaseException) -> tuple[dict[str, Any], int]:
    """Map ``exc`` to ``(body, http_status)``.  Unknown errors become a 500."""
    if not isinstance(exc, AdmissionsKernelError):
        logger.error("unhandled_error", exc_info=exc)
        return (
            {"success": False, "message": "Internal server error", "code": INTERNAL_ERROR_CODE},
            500,
        )

    body: dict[str, Any] = {"success": False, "message": str(exc), "code": exc.code}
    if isinstance(exc, ValidationError) and exc.field_errors:
        body["fieldErrors"] = list(exc.field_errors)
    return body, exc.http_status
