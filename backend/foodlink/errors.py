from __future__ import annotations


class LifecycleError(Exception):
    """Base for failures raised by the donation lifecycle and its collaborators."""

    status_code = 500

    def __init__(self, detail: str) -> None:
        super().__init__(detail)
        self.detail = detail


class ValidationError(LifecycleError):
    """Missing or invalid input the caller can correct."""

    status_code = 400


class AuthorizationError(LifecycleError):
    """The acting role may not perform the requested transition."""

    status_code = 403


class NotFoundError(LifecycleError):
    """The referenced record is absent or was already consumed."""

    status_code = 404


class DependencyError(LifecycleError):
    """The store or a messaging backend is unavailable."""

    status_code = 503
