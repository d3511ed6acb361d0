"""Error taxonomy for draw engine actions.

Every rejected action raises a :class:`DrawEngineError` whose ``category``
tells the operator why it was rejected:

* ``precondition`` - the input data or configuration cannot produce a draw.
* ``concurrency_conflict`` - another action changed the record first; retry.
* ``invalid_transition`` - the lifecycle does not allow the action; nothing changed.
* ``upstream_unavailable`` - the data store or account service could not be reached.
"""

from __future__ import annotations

import enum
from typing import Optional


class ErrorCategory(str, enum.Enum):
    PRECONDITION = "precondition"
    CONCURRENCY_CONFLICT = "concurrency_conflict"
    INVALID_TRANSITION = "invalid_transition"
    UPSTREAM_UNAVAILABLE = "upstream_unavailable"


class DrawEngineError(Exception):
    """Base class for all draw engine failures."""

    category: ErrorCategory = ErrorCategory.PRECONDITION
    retryable: bool = False


class PreconditionError(DrawEngineError, ValueError):
    """The action was aborted before any write because its inputs are unusable."""

    category = ErrorCategory.PRECONDITION


class InsufficientDiversityError(PreconditionError):
    """Fewer than five distinct score values exist in the configured range."""

    def __init__(self, distinct_values: int, range_min: int, range_max: int) -> None:
        self.distinct_values = distinct_values
        self.range_min = range_min
        self.range_max = range_max
        super().__init__(
            f"Only {distinct_values} distinct score values in range "
            f"{range_min}-{range_max}; at least 5 are required"
        )


class InvalidTierConfigurationError(PreconditionError):
    """Tier percentages do not sum to 100 or an amount is negative."""


class InvalidScoreRangeError(PreconditionError):
    """The requested score range is empty or outside the allowed bounds."""


class NoScoreDataError(PreconditionError):
    """No participant had submitted a score before the cutoff."""


class NotFoundError(PreconditionError):
    """A referenced cycle or winning entry does not exist."""


class ConcurrencyConflictError(DrawEngineError):
    """The record changed since it was read; the write was rejected."""

    category = ErrorCategory.CONCURRENCY_CONFLICT
    retryable = True


class InvalidTransitionError(DrawEngineError, ValueError):
    """The lifecycle does not permit the requested action in the current state."""

    category = ErrorCategory.INVALID_TRANSITION

    def __init__(
        self,
        message: str,
        *,
        current: Optional[str] = None,
        action: Optional[str] = None,
    ) -> None:
        self.current = current
        self.action = action
        super().__init__(message)


class UpstreamUnavailableError(DrawEngineError):
    """A collaborator (data store or account service) could not be reached."""

    category = ErrorCategory.UPSTREAM_UNAVAILABLE
    retryable = True


__all__ = [
    "ErrorCategory",
    "DrawEngineError",
    "PreconditionError",
    "InsufficientDiversityError",
    "InvalidTierConfigurationError",
    "InvalidScoreRangeError",
    "NoScoreDataError",
    "NotFoundError",
    "ConcurrencyConflictError",
    "InvalidTransitionError",
    "UpstreamUnavailableError",
]
