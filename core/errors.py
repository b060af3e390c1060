# ABOUTME: Error types shared by the planner, the cache and the advisory service.
# ABOUTME: Infeasible plans and cache misses are data, not errors; only these are raised.


class PlannerError(Exception):
    """Base class for planner failures."""


class InvalidInputError(PlannerError, ValueError):
    """Malformed input: negative or non-numeric amounts, unknown risk tolerance, missing fields."""


class UpstreamFailure(PlannerError):
    """The advisory source failed or timed out. Carries the deterministic plan so callers can still show it."""

    def __init__(self, message: str, plan=None):
        super().__init__(message)
        self.plan = plan


class CacheStorageError(PlannerError):
    """The cache's backing store could not be read or written."""
