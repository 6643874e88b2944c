# eventhub/errors.py

from typing import Dict, Optional


class EventHubError(Exception):
    """Base exception for event client errors."""

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class NetworkError(EventHubError):
    """Request could not complete (connectivity, timeout, service down)."""
    pass


class ServiceError(EventHubError):
    """Service answered with a non-2xx status."""

    def __init__(
        self,
        message: str,
        status_code: int,
        errors: Optional[Dict[str, str]] = None,
        detail: Optional[str] = None,
    ):
        self.status_code = status_code
        self.errors = errors or {}
        # message as sent by the service, None when the body had none
        self.detail = detail
        super().__init__(message)

    def user_message(self, fallback: str) -> str:
        if not self.detail:
            return fallback
        if self.errors:
            fields = "; ".join(f"{k}: {v}" for k, v in sorted(self.errors.items()))
            return f"{self.detail} ({fields})"
        return self.detail


class ValidationError(EventHubError):
    """Local validation failed before any network call."""

    def __init__(self, message: str, field: Optional[str] = None):
        self.field = field
        super().__init__(message)
