"""Error taxonomy shared by the services and the HTTP layer."""

from typing import Any, Optional


class CommentDeskError(Exception):
    """Base error carrying the HTTP status it renders as."""

    status_code = 500

    def __init__(self, message: str, details: Optional[Any] = None):
        super().__init__(message)
        self.message = message
        self.details = details


class ValidationFailed(CommentDeskError):
    """Missing or malformed input."""

    status_code = 400


class NotFound(CommentDeskError):
    """A referenced entity does not exist."""

    status_code = 404


class DomainRuleViolation(CommentDeskError):
    """Input is well formed but breaks a business rule."""

    status_code = 400


class UpstreamServiceError(CommentDeskError):
    """A collaborator (store, model endpoint) failed."""

    status_code = 500


class GenerationFailed(UpstreamServiceError):
    """The text-generation endpoint did not produce a draft."""

    def __init__(self, message: str = "Failed to generate comment letter", details: Optional[Any] = None):
        super().__init__(message, details)


class StoreError(UpstreamServiceError):
    """The record store rejected or failed a statement."""


class AuthenticationFailed(CommentDeskError):
    """Credentials did not match an active admin account."""

    status_code = 401


class TokenRequired(CommentDeskError):
    status_code = 401

    def __init__(self, message: str = "Access token required", details: Optional[Any] = None):
        super().__init__(message, details)


class InvalidToken(CommentDeskError):
    status_code = 403

    def __init__(self, message: str = "Invalid token", details: Optional[Any] = None):
        super().__init__(message, details)


class RateLimited(CommentDeskError):
    status_code = 429

    def __init__(
        self,
        message: str = "Too many requests from this IP, please try again later.",
        details: Optional[Any] = None,
    ):
        super().__init__(message, details)
