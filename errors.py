# errors.py
# Failure categories surfaced to API callers


class CityFixError(Exception):
    """Base class for failures that map to exactly one API response"""

    status_code = 500
    category = "internal_error"
    default_message = "Server error"

    def __init__(self, message: str = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(CityFixError):
    status_code = 400
    category = "validation_error"
    default_message = "Invalid request"


class InvalidUpload(ValidationError):
    default_message = "Only image files allowed"


class DuplicateEmail(CityFixError):
    status_code = 400
    category = "duplicate_email"
    default_message = "Email already exists"


class InvalidCredentials(CityFixError):
    status_code = 401
    category = "invalid_credentials"
    default_message = "Invalid credentials"


class MissingToken(CityFixError):
    status_code = 401
    category = "missing_token"
    default_message = "Token required"


class InvalidToken(CityFixError):
    status_code = 403
    category = "invalid_token"
    default_message = "Invalid token"


class Forbidden(CityFixError):
    status_code = 403
    category = "forbidden"
    default_message = "Invalid token"


class StorageError(CityFixError):
    status_code = 500
    category = "storage_error"
    default_message = "Report failed"


class InternalError(CityFixError):
    status_code = 500
    category = "internal_error"
    default_message = "Server error"


class NotFound(CityFixError):
    status_code = 404
    category = "not_found"
    default_message = "Not found"
