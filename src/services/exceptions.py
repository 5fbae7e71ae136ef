"""
Shared exceptions for service layer operations.

Each failure the API can report is its own class so callers match on type,
never on message text. The API layer renders any AppError as
`{"error": message}` with the class's status code.
"""


class AppError(Exception):
    """Base class for errors that map to a client-facing response."""

    status_code: int = 500
    default_message: str = "Internal server error"

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(AppError):
    """Raised when input is malformed, missing, or has the wrong type."""

    status_code = 400
    default_message = "Invalid request"


class DuplicateIdentityError(AppError):
    """Raised when a username or email is already registered."""

    status_code = 400

    def __init__(self, field: str) -> None:
        self.field = field
        super().__init__(f"This {field} is already in use")


class InvalidCredentialsError(AppError):
    """
    Raised when login fails.

    Same message whether the username or the password was wrong.
    """

    status_code = 401
    default_message = "Incorrect username or password"


class UnauthenticatedError(AppError):
    """Raised when an operation needs a logged-in session and there is none."""

    status_code = 401
    default_message = "Not logged in"


class ForbiddenError(AppError):
    """Raised when the session's user does not own the target resource."""

    status_code = 403
    default_message = "You do not have permission to modify this resource"


class NotFoundError(AppError):
    """Raised when a resource id does not exist."""

    status_code = 404

    def __init__(self, entity_name: str) -> None:
        self.entity_name = entity_name
        super().__init__(f"{entity_name} not found")


class CsrfMismatchError(AppError):
    """Raised when a state-changing request lacks the session's CSRF token."""

    status_code = 403
    default_message = "Invalid or missing CSRF token"


class InvalidTokenError(AppError):
    """Raised when an email verification token is unknown."""

    status_code = 400
    default_message = "Invalid verification token"


class InvalidOrExpiredTokenError(AppError):
    """Raised when a password reset token is unknown or past its expiry."""

    status_code = 400
    default_message = "Invalid or expired reset token"


class InvalidUrlError(AppError):
    """Raised when a bookmark URL cannot be parsed into a host."""

    status_code = 400
    default_message = "Invalid URL"


class ImageFetchFailedError(AppError):
    """
    Raised when a favicon could not be resolved into an embedded image.

    Wraps every image pipeline failure so the client never learns which
    internal check rejected the URL.
    """

    status_code = 400
    default_message = "Failed to fetch image"
