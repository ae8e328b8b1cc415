"""Request orchestration: context, deadline and the resolver."""

from .context import ResolutionContext, ResolutionState
from .deadline import Deadline, DeadlineExceeded
from .resolver import DrsResolver, validate_request

__all__ = [
    "Deadline",
    "DeadlineExceeded",
    "DrsResolver",
    "ResolutionContext",
    "ResolutionState",
    "validate_request",
]
