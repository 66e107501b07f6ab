"""Exceptions raised by the GitHub integration.

Every error carries a stable ``code`` and an HTTP ``status_code`` so the API
layer can branch on the kind of failure instead of its message text.
"""

from datetime import datetime
from typing import Optional


class IntegrationError(Exception):
    """Base exception for all integration errors."""

    code = "integration_error"
    status_code = 500

    def __init__(self, message: str, *, details: Optional[dict] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict:
        return {
            "success": False,
            "error": self.code,
            "message": self.message,
            "details": self.details,
        }


class ConfigurationError(IntegrationError):
    """Raised when required integration settings are missing."""

    code = "configuration_error"


class ValidationError(IntegrationError):
    """Raised when a request is missing a repository or project."""

    code = "validation_error"
    status_code = 400


class StateExpiredError(IntegrationError):
    """OAuth state is unknown, already used, or past its lifetime."""

    code = "state_expired"
    status_code = 400


class ExchangeFailedError(IntegrationError):
    """Code-for-token exchange or account lookup failed after the callback."""

    code = "exchange_failed"
    status_code = 400


class InvalidOrExpiredFlowError(IntegrationError):
    """Handoff record is absent, expired, or owned by another user."""

    code = "invalid_or_expired_flow"
    status_code = 400

    def __init__(self, message: str = "Invalid or expired OAuth flow session."):
        super().__init__(message)


class IntegrationNotFoundError(IntegrationError):
    """No active GitHub integration exists for the caller."""

    code = "integration_not_found"
    status_code = 404

    def __init__(self, message: str = "GitHub integration not found for this user."):
        super().__init__(message)


class ExternalApiError(IntegrationError):
    """GitHub answered with a non-2xx status or could not be reached."""

    code = "external_api_error"
    status_code = 502

    def __init__(self, message: str, *, upstream_status: Optional[int] = None):
        super().__init__(message, details={"upstream_status": upstream_status})
        self.upstream_status = upstream_status


class RateLimitExceededError(ExternalApiError):
    """GitHub quota is exhausted; retry after ``reset_at``."""

    code = "rate_limit_exceeded"
    status_code = 429

    def __init__(self, reset_at: datetime):
        super().__init__(
            f"Rate limit exceeded. Resets at {reset_at.isoformat()}.",
            upstream_status=403,
        )
        self.reset_at = reset_at
        self.details["reset_at"] = reset_at.isoformat()

    def retry_after_seconds(self, now: Optional[datetime] = None) -> int:
        now = now or datetime.utcnow()
        return max(0, int((self.reset_at - now).total_seconds()) + 1)


class IssueImportError(IntegrationError):
    """The import transaction failed and was rolled back."""

    code = "import_failed"
    status_code = 500
