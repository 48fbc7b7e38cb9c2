"""
Exceptions raised by the service layer.

Each carries the HTTP status the API answers with; the app installs a single
handler that renders them as ``{"detail": message}``.
"""

from __future__ import annotations


class MarketplaceError(Exception):
    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(MarketplaceError):
    status_code = 400


class AuthenticationError(MarketplaceError):
    status_code = 401


class InsufficientCreditsError(MarketplaceError):
    status_code = 402

    def __init__(self, required: int, available: int):
        super().__init__(
            f"Insufficient credits: {required} required, {available} available"
        )
        self.required = required
        self.available = available


class PermissionDeniedError(MarketplaceError):
    status_code = 403


class NotFoundError(MarketplaceError):
    status_code = 404


class ConflictError(MarketplaceError):
    status_code = 409


class InvalidTransitionError(ConflictError):
    def __init__(self, kind: str, current: str | None, target: str):
        super().__init__(f"Invalid {kind} transition from {current} to {target}")
        self.current = current
        self.target = target


class LimitExceededError(ConflictError):
    pass


class UpstreamError(MarketplaceError):
    """A backing service (BaaS, generation provider) failed."""

    status_code = 502

    def __init__(self, message: str, status: int | None = None):
        super().__init__(message)
        self.status = status


class ServiceUnavailableError(MarketplaceError):
    status_code = 503
