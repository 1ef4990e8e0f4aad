"""
Error taxonomy for the bookshelf core.

Every business failure is one of these classes. The HTTP layer maps them
to status codes through ``status_code`` and renders ``to_dict()`` as the
response body, so messages here must be safe to show to a client.
"""

from typing import Any, Dict, Optional


class BookshelfError(Exception):
    """Base class for all expected failures."""

    status_code: int = 500
    default_message: str = "An unexpected error occurred"

    def __init__(self, message: Optional[str] = None, code: Optional[str] = None):
        self.message = message or self.default_message
        self.code = code or self.__class__.__name__
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """Body for an error response."""
        return {"message": self.message}


class ValidationError(BookshelfError):
    """Malformed input."""

    status_code = 400
    default_message = "Invalid request"


class ConflictError(BookshelfError):
    """The resource already exists. Carries the existing record when there is one."""

    status_code = 409
    default_message = "Resource already exists"

    def __init__(self, message: Optional[str] = None, existing: Any = None):
        super().__init__(message)
        self.existing = existing

    def to_dict(self) -> Dict[str, Any]:
        body = super().to_dict()
        if self.existing is not None:
            body["book"] = self.existing.model_dump(by_alias=True, mode="json")
        return body


class DuplicateEmailError(ConflictError):
    """Registration with an email that already has an account."""

    status_code = 400
    default_message = "Email already exists"


class AuthenticationError(BookshelfError):
    """Bad credentials or an unusable identity."""

    status_code = 401
    default_message = "Authentication required"


class InvalidTokenError(AuthenticationError):
    default_message = "Invalid or expired token"


class InvalidCredentialsError(AuthenticationError):
    """Same message whether the email is unknown or the password is wrong."""

    default_message = "Invalid credentials"

    def __init__(self):
        super().__init__(self.default_message)


class UserNotFoundError(AuthenticationError):
    default_message = "User no longer exists"


class NotFoundError(BookshelfError):
    """No matching resource owned by the caller."""

    status_code = 404
    default_message = "Book not found"


class LookupNotFoundError(NotFoundError):
    default_message = "Book not found in Google Books database"


class ConfigurationError(BookshelfError):
    """Missing or invalid server configuration."""

    status_code = 500
    default_message = "Server is not configured correctly"


class LookupUnavailableError(BookshelfError):
    """The external metadata service failed at the transport level."""

    status_code = 503
    default_message = "Book lookup service is temporarily unavailable"


class UnexpectedError(BookshelfError):
    status_code = 500


class InvalidUserError(UnexpectedError):
    """A token was requested for a user record without an id."""

    default_message = "User ID is required for token generation"
