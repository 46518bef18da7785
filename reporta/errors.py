"""Error taxonomy shared by the conversation engine, repository and HTTP layer.

Every error carries a short message that is safe to show to the reporter or
to return in an API response.
"""


class ReportaError(Exception):
    """Base class for all domain errors."""

    def __init__(self, message: str = "") -> None:
        super().__init__(message)
        self.message = message


class ValidationError(ReportaError):
    """Malformed or out-of-range input. Recoverable: re-prompt."""


class RegionError(ValidationError):
    """Coordinates fall outside the service bounding box."""


class UpstreamError(ReportaError):
    """A geocoder, media or notification call failed or timed out."""

    def __init__(self, service: str, message: str = "") -> None:
        super().__init__(message or f"{service} request failed")
        self.service = service


class PersistenceError(ReportaError):
    """A write to the report repository failed."""


class AuthError(ReportaError):
    """Moderation credential missing or invalid."""


class NotFoundError(ReportaError):
    """Requested report or edit link does not exist."""


class ExpiredError(ReportaError):
    """Edit link exists but its stored expiry has passed."""


class InvalidTokenError(ReportaError):
    """Edit token signature, binding or expiry check failed."""


class ConflictError(ReportaError):
    """The report is no longer in a state that allows the change."""


__all__ = [
    "ReportaError",
    "ValidationError",
    "RegionError",
    "UpstreamError",
    "PersistenceError",
    "AuthError",
    "NotFoundError",
    "ExpiredError",
    "InvalidTokenError",
    "ConflictError",
]
