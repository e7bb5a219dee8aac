"""Custom exceptions for the Mongo CRUD library."""


# -----------------------------------------------------------------------------
# Application Base Error
# -----------------------------------------------------------------------------


class AppError(Exception):
    """Base application error with HTTP semantics.

    Stores raise these for conditions the caller can act on. Applications
    serving the stores from route handlers can map them to responses with
    error_handlers.register_error_handlers.
    """

    status_code: int = 500
    error_code: str = "INTERNAL_ERROR"

    def __init__(self, detail: str = "An unexpected error occurred", context: dict | None = None):
        self.detail = detail
        self.context = context
        super().__init__(self.detail)


# -----------------------------------------------------------------------------
# Connection Exceptions
# -----------------------------------------------------------------------------


class NotConnectedError(AppError):
    """The document-store connection is not live (503).

    Causes:
        - connect() was never awaited on the MongoConnection
        - the connection was closed

    Recoverable by reconnecting and retrying. Stores never retry on their own.
    """

    status_code = 503
    error_code = "NOT_CONNECTED"


# -----------------------------------------------------------------------------
# Argument Exceptions
# -----------------------------------------------------------------------------


class ArgumentValidationError(AppError, ValueError):
    """A required argument is missing or malformed (400).

    Raised before any request reaches the document store.
    """

    status_code = 400
    error_code = "VALIDATION_ERROR"
