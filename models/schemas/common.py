import re

from marshmallow import ValidationError

PERSONAL_ID_LENGTH = 11
PASSWORD_MIN_LENGTH = 8
SPECIAL_CHARACTERS = re.compile(r"[^A-Za-z0-9]")


def normalize_email(value):
    return value.strip().lower() if isinstance(value, str) else value


def password_policy_errors(value: str) -> list[str]:
    """One message per violated rule; empty when the password is acceptable."""
    errors = []
    if len(value) < PASSWORD_MIN_LENGTH:
        errors.append(f"Password must be at least {PASSWORD_MIN_LENGTH} characters long.")
    if not any(ch.isupper() for ch in value):
        errors.append("Password must contain at least one uppercase letter.")
    if not any(ch.islower() for ch in value):
        errors.append("Password must contain at least one lowercase letter.")
    if not any(ch.isdigit() for ch in value):
        errors.append("Password must contain at least one number.")
    if not SPECIAL_CHARACTERS.search(value):
        errors.append("Password must contain at least one special character.")
    return errors


def validate_password(value: str) -> None:
    errors = password_policy_errors(value)
    if errors:
        raise ValidationError(errors)


def validate_personal_id_code(value: str) -> None:
    errors = []
    if not (value.isascii() and value.isdigit()):
        errors.append("Personal ID code must be a number.")
    if len(value) != PERSONAL_ID_LENGTH:
        errors.append(f"Personal ID code must be {PERSONAL_ID_LENGTH} digits long.")
    if errors:
        raise ValidationError(errors)


def validate_not_blank(value: str) -> None:
    if not value or not value.strip():
        raise ValidationError("Field may not be blank.")
