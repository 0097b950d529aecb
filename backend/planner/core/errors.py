"""Error taxonomy for the suggestion pipeline."""
from __future__ import annotations

from datetime import datetime


class PlannerError(Exception):
    """Base class for errors raised by planner services."""


class AuthenticationError(PlannerError):
    """The model provider rejected our credentials. Never retried."""


class TransientProviderError(PlannerError):
    """Network, timeout or provider-side failure worth retrying."""


class MalformedResponse(PlannerError):
    """The model answered with content we could not parse."""


class RateLimitExceeded(PlannerError):
    def __init__(self, kind: str, reset_time: datetime, remaining: int, limit: int):
        self.kind = kind
        self.reset_time = reset_time
        self.remaining = remaining
        self.limit = limit
        super().__init__(
            f"Rate limit exceeded for {kind} suggestions; "
            f"{remaining} request(s) remaining, resets at {reset_time.isoformat()}"
        )


class SuggestionGenerationError(PlannerError):
    """Generation failed and no fallback could be produced."""

    def __init__(self, kind: str, message: str):
        self.kind = kind
        super().__init__(f"Failed to generate {kind}: {message}")


class UnknownSuggestionKind(PlannerError, ValueError):
    def __init__(self, kind: object):
        self.kind = kind
        super().__init__(f"Unknown suggestion type: {kind}")


class SuggestionNotFound(PlannerError):
    pass


class SuggestionAccessDenied(PlannerError):
    pass


class RecordNotFound(PlannerError, LookupError):
    """A store write referenced a row that does not exist."""
