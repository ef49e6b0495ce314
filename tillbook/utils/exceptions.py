"""Custom exception classes for the application."""


class BaseAppException(Exception):
    """Base exception class for all application exceptions."""

    def __init__(self, message: str, details: dict = None):
        self.message = message
        self.details = details or {}
        super().__init__(self.message)


class StoreAPIError(BaseAppException):
    """Raised when the remote store rejects or fails a request."""
    pass


class RateLimitError(StoreAPIError):
    """Raised when API rate limit is exceeded."""
    pass


class AuthenticationError(BaseAppException):
    """Raised when authentication fails."""
    pass


class PermissionDeniedError(BaseAppException):
    """Raised when the signed-in role may not perform an operation."""
    pass


class ConfigurationError(BaseAppException):
    """Raised when there's a configuration error."""
    pass


class InsightError(BaseAppException):
    """Raised when the AI text service fails."""
    pass
