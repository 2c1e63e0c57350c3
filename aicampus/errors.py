"""
AICAMPUS Backend - Error Taxonomy.
Every failure a request handler can report maps to one of these classes.
Handlers turn them into {"error": message} with the class's status code.
"""


class AppError(Exception):
    """Base class. Carries an HTTP status and a human-readable message."""

    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def __str__(self) -> str:
        return self.message


class ValidationError(AppError):
    """Missing or malformed request field, rejected before any external call."""

    status_code = 400


class NotFoundError(AppError):
    status_code = 404


class ConfigurationError(AppError):
    """A provider credential or service URL is not configured."""

    status_code = 500


class UpstreamError(AppError):
    """An AI provider or the hosted database failed or was unreachable."""

    status_code = 500


class DatabaseError(UpstreamError):
    """Non-success response from the hosted database REST interface."""

    def __init__(self, message: str, code: str = "", status: int = 0):
        super().__init__(message)
        self.code = code
        self.status = status


def error_payload(exc: Exception, fallback: str = "Failed to process request") -> tuple[dict, int]:
    """Convert any exception into a JSON error body and status code."""
    if isinstance(exc, AppError):
        return {"error": exc.message or fallback}, exc.status_code
    return {"error": str(exc) or fallback}, 500
