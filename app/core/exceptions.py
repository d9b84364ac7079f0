"""Application error hierarchy.

Every error carries the HTTP status it maps to; ``app.main`` renders them as
``{"error": message}``.
"""


class AppError(Exception):
    """Base exception for application errors."""

    status_code = 500

    def __init__(self, message: str, original_error: Exception = None):
        super().__init__(message)
        self.message = message
        self.original_error = original_error


class UnauthorizedError(AppError):
    """Raised when the caller cannot be authenticated or has no profile."""

    status_code = 401

    def __init__(self, message: str = "Unauthorized", original_error: Exception = None):
        super().__init__(message, original_error)


class ForbiddenError(AppError):
    """Raised when the caller's role or organization does not permit an action."""

    status_code = 403

    def __init__(self, message: str = "Forbidden", original_error: Exception = None):
        super().__init__(message, original_error)


class NotFoundError(AppError):
    """Raised when a referenced record does not exist."""

    status_code = 404


class ValidationError(AppError):
    """Raised when input validation fails."""

    status_code = 400


class InvalidActionError(ValidationError):
    """Raised when a review action is not one of the supported actions."""

    def __init__(self, message: str = "Invalid action. Must be: approve, request_changes, or override"):
        super().__init__(message)


class MissingOverrideFieldsError(ValidationError):
    """Raised when an override is missing its level or justification."""

    def __init__(self, message: str = "Override requires override_level_id and override_justification"):
        super().__init__(message)


class InvalidTransitionError(AppError):
    """Raised when a proposal cannot move from its current status."""

    status_code = 409


class DatabaseError(AppError):
    """Raised when a database operation fails."""

    pass


class ConfigurationError(AppError):
    """Raised when configuration is invalid or missing."""

    pass
