"""
Operations layer: typed, transport-agnostic entry points.

The API routers and CLI commands call these functions with an
:class:`OperationContext` and a request dataclass, and get an
:class:`OperationResult` back. No operation raises for a domain error.
"""

from semspine.ops.context import OperationContext
from semspine.ops.result import OperationError, OperationResult, PagedResult

__all__ = [
    "OperationContext",
    "OperationError",
    "OperationResult",
    "PagedResult",
]
