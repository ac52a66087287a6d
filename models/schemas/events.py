"""
Payload schemas for events consumed from the users service.

Field names are the wire names (camelCase). Unknown keys are ignored: the
upstream service owns these payloads and adds fields freely.
"""
from marshmallow import EXCLUDE, Schema, ValidationError, fields, pre_load, validate, validates_schema

from models.schemas.common import norm_email
from models.user import ROLES, DEFAULT_ROLE


class _EventSchema(Schema):
    class Meta:
        unknown = EXCLUDE


class UserCreatedSchema(_EventSchema):
    userId = fields.String(load_default=None, allow_none=True, validate=validate.Length(min=1, max=36))
    email = fields.Email(required=True)
    username = fields.String(load_default=None, allow_none=True)
    password = fields.String(load_default=None, allow_none=True)
    hashedPassword = fields.String(load_default=None, allow_none=True)
    role = fields.String(load_default=DEFAULT_ROLE, validate=validate.OneOf(ROLES))
    isActive = fields.Boolean(load_default=True)
    createdAt = fields.Raw(load_default=None, allow_none=True)

    @pre_load
    def normalize(self, data, **kwargs):
        if isinstance(data, dict):
            data = dict(data)
            if "email" in data:
                data["email"] = norm_email(data["email"])
            if isinstance(data.get("role"), str):
                data["role"] = data["role"].upper()
            if data.get("id") and not data.get("userId"):
                data["userId"] = data["id"]
        return data

    @validates_schema
    def require_credential(self, data, **kwargs):
        if not data.get("hashedPassword") and not data.get("password"):
            raise ValidationError("Neither password nor hashedPassword provided", "password")


class UserRefSchema(_EventSchema):
    """user.profileUpdated, user.deactivated and user.reactivated all address a user by id."""

    userId = fields.String(required=True, validate=validate.Length(min=1, max=36))
