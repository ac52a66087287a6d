from marshmallow import Schema, fields, pre_load, validate

from models.schemas.common import norm_email, norm_text, validate_password_bytes
from models.user import ROLES, DEFAULT_ROLE


class RegisterSchema(Schema):
    email = fields.Email(required=True)
    username = fields.String(required=True, validate=validate.Length(min=1, max=255))
    password = fields.String(required=True, load_only=True, validate=validate_password_bytes)
    role = fields.String(load_default=DEFAULT_ROLE, validate=validate.OneOf(ROLES))

    @pre_load
    def normalize(self, data, **kwargs):
        if isinstance(data, dict):
            data = dict(data)
            if "email" in data:
                data["email"] = norm_email(data["email"])
            if "username" in data:
                data["username"] = norm_text(data["username"])
            if isinstance(data.get("role"), str):
                data["role"] = data["role"].upper()
        return data


class LoginSchema(Schema):
    email_or_username = fields.String(required=True, validate=validate.Length(min=1))
    password = fields.String(required=True, load_only=True, validate=validate.Length(min=1))

    @pre_load
    def normalize(self, data, **kwargs):
        if isinstance(data, dict) and "email_or_username" in data:
            data = dict(data)
            data["email_or_username"] = norm_text(data["email_or_username"])
        return data


class RefreshSchema(Schema):
    refresh_token = fields.String(required=True, validate=validate.Length(min=1))


class LogoutSchema(Schema):
    refresh_token = fields.String(load_default=None, allow_none=True)
    session_token = fields.String(load_default=None, allow_none=True)


class ChangePasswordSchema(Schema):
    current_password = fields.String(required=True, load_only=True, validate=validate.Length(min=1))
    new_password = fields.String(required=True, load_only=True, validate=validate_password_bytes)


class UserOutSchema(Schema):
    id = fields.String()
    email = fields.String()
    username = fields.String()
    role = fields.String()
    is_active = fields.Boolean()
    created_at = fields.DateTime()
    updated_at = fields.DateTime()
