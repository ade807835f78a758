"""
Shared router helpers.

- ``_payload()``: domain entity, dataclass or dict → plain dict
- ``_handle_error()``: failed OperationResult → ProblemDetail response
"""

from __future__ import annotations

from dataclasses import asdict
from typing import Any

from semspine.api.middleware.errors import (
    ERROR_CODE_TO_TITLE,
    problem_response,
    status_for_error_code,
)


def _payload(obj: Any) -> dict[str, Any]:
    """Prefer the entity's own ``to_dict``; fall back to ``asdict``."""
    if hasattr(obj, "to_dict"):
        return obj.to_dict()
    if hasattr(obj, "__dataclass_fields__"):
        return asdict(obj)
    return obj if isinstance(obj, dict) else {}


def _handle_error(result, instance: str = ""):
    """Convert a failed ``OperationResult`` into a Problem Details response."""
    error = result.error
    code = error.code if error else "INTERNAL"
    status = status_for_error_code(code)
    errors = None
    if error and error.details.get("field"):
        errors = [{"code": code, "message": error.message, "field": error.details["field"]}]
    headers = None
    if code == "TRANSIENT":
        headers = {"Retry-After": "5"}
    return problem_response(
        status=status,
        title=ERROR_CODE_TO_TITLE.get(code, "Operation failed"),
        detail=error.message if error else "",
        instance=instance,
        code=code,
        errors=errors,
        headers=headers,
    )
