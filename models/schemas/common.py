from marshmallow import ValidationError

from utils.security import BCRYPT_MAX_BYTES

MAX_PASSWORD_BYTES = BCRYPT_MAX_BYTES


def norm_email(v):
    return v.strip().lower() if isinstance(v, str) else v


def norm_text(v):
    return v.strip() if isinstance(v, str) else v


def validate_password_bytes(value: str) -> None:
    if not value:
        raise ValidationError("Password must not be empty.")
    try:
        encoded = value.encode("utf-8")
    except UnicodeEncodeError:
        # lone surrogates survive JSON decoding but have no UTF-8 form
        raise ValidationError("Password must be valid UTF-8.") from None
    if len(encoded) > MAX_PASSWORD_BYTES:
        raise ValidationError(f"Password must be at most {MAX_PASSWORD_BYTES} bytes.")
