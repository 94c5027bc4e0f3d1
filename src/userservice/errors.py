"""
=============================================================================
ERROR TAXONOMY
=============================================================================

Every failure the service knows how to describe is one of these:

    UserServiceError
    ├── MalformedRequest      parser could not make sense of the bytes  → 400
    ├── InvalidPayload        body is not {"name": str, "email": str}   → 400
    ├── NotFound              no row for the requested id               → 404
    ├── Conflict              email already belongs to another row      → 409
    ├── DatabaseUnavailable   connection / statement failure            → 500
    └── ConfigError           bad or missing configuration     → exit code 2

Parse and validation errors are turned into responses right where they
are caught. DatabaseUnavailable is fatal at startup and a 500 per request.
ConfigError never reaches a socket; __main__ maps it to an exit code.

=============================================================================
"""


class UserServiceError(Exception):
    """Base class for all errors raised by the service."""


class MalformedRequest(UserServiceError):
    """
    Raised when HTTP request bytes cannot be parsed.

    Carries the status code to send back. Almost always 400; oversized
    requests use 413 so clients can tell the two apart.
    """

    def __init__(self, message: str, status_code: int = 400):
        super().__init__(message)
        self.status_code = status_code


class InvalidPayload(UserServiceError):
    """Raised when a create/update body is not a valid user payload."""


class NotFound(UserServiceError):
    """Raised by the gateway when no row matches the requested id."""

    def __init__(self, user_id: int):
        super().__init__(f"User {user_id} not found")
        self.user_id = user_id


class Conflict(UserServiceError):
    """Raised by the gateway when a write violates the unique email."""

    def __init__(self, email: str):
        super().__init__(f"Email {email!r} is already in use")
        self.email = email


class DatabaseUnavailable(UserServiceError):
    """
    Raised when the database cannot be reached or a statement fails
    for a reason other than a uniqueness violation.

    The original driver exception is chained as __cause__ for logging;
    its text is never sent to clients.
    """


class ConfigError(UserServiceError):
    """Raised when configuration is missing or out of range."""
