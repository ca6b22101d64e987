"""
Typed failures raised by the authentication core.

Each class carries the machine-readable `code` and the HTTP `status` the
API layer answers with. Field validation failures use
marshmallow.ValidationError, which api.errors maps to 422.
"""
from marshmallow import ValidationError

__all__ = [
    "AuthServiceError",
    "ValidationError",
    "DuplicateEmailError",
    "DuplicatePersonalIdError",
    "InvalidCredentialsError",
    "UnverifiedAccountError",
    "InvalidTokenError",
    "ExpiredTokenError",
    "MissingTokenError",
    "UserNotFoundError",
    "AlreadyVerifiedError",
    "SigningError",
    "NotificationError",
]


class AuthServiceError(Exception):
    code = "AUTH_ERROR"
    status = 400
    default_message = "Request could not be processed"

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class DuplicateEmailError(AuthServiceError):
    code = "DUPLICATE_EMAIL"
    status = 409
    default_message = "Email already registered"


class DuplicatePersonalIdError(AuthServiceError):
    code = "DUPLICATE_PERSONAL_ID"
    status = 409
    default_message = "Personal ID code already registered"


class InvalidCredentialsError(AuthServiceError):
    code = "INVALID_CREDENTIALS"
    status = 401
    default_message = "Invalid email or password"


class UnverifiedAccountError(AuthServiceError):
    code = "UNVERIFIED_ACCOUNT"
    status = 403
    default_message = "Please verify your email before logging in"


class InvalidTokenError(AuthServiceError):
    code = "INVALID_TOKEN"
    status = 401
    default_message = "Invalid token"


class ExpiredTokenError(AuthServiceError):
    code = "EXPIRED_TOKEN"
    status = 401
    default_message = "Token expired"


class MissingTokenError(AuthServiceError):
    code = "MISSING_TOKEN"
    status = 401
    default_message = "Token is required"


class UserNotFoundError(AuthServiceError):
    code = "USER_NOT_FOUND"
    status = 404
    default_message = "User not found"


class AlreadyVerifiedError(AuthServiceError):
    code = "ALREADY_VERIFIED"
    status = 409
    default_message = "Email is already verified"


class SigningError(AuthServiceError):
    """Token secrets are missing; fatal at startup."""
    code = "SIGNING_ERROR"
    status = 500
    default_message = "Token signing is not configured"


class NotificationError(AuthServiceError):
    code = "NOTIFICATION_FAILED"
    status = 502
    default_message = "Could not send email, please try again later"
