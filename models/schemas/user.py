from marshmallow import Schema, fields, pre_load, validate

from models.schemas.common import normalize_email


class RegisterSchema(Schema):
    email = fields.Email(required=True)
    password = fields.String(required=True, load_only=True, validate=validate.Length(min=6))
    first_name = fields.String(allow_none=True, validate=validate.Length(max=255))
    last_name = fields.String(allow_none=True, validate=validate.Length(max=255))

    @pre_load
    def normalize(self, data, **kwargs):
        if isinstance(data, dict) and "email" in data:
            data = dict(data, email=normalize_email(data["email"]))
        return data


class LoginSchema(Schema):
    email = fields.String(required=True)
    password = fields.String(required=True, load_only=True)


class RefreshTokenSchema(Schema):
    refresh_token = fields.String(required=True, validate=validate.Length(min=1))


class ProfileUpdateSchema(Schema):
    first_name = fields.String(allow_none=True, validate=validate.Length(max=255))
    last_name = fields.String(allow_none=True, validate=validate.Length(max=255))
    phone = fields.String(allow_none=True, validate=validate.Length(max=32))


class UserOutSchema(Schema):
    id = fields.String()
    email = fields.String()
    first_name = fields.String(allow_none=True)
    last_name = fields.String(allow_none=True)
    phone = fields.String(allow_none=True)
    role = fields.Method("get_role")
    is_active = fields.Boolean()
    created_at = fields.DateTime()
    updated_at = fields.DateTime()

    def get_role(self, obj):
        return getattr(obj.role, "value", obj.role)


class AuthOutSchema(Schema):
    access_token = fields.String()
    refresh_token = fields.String()
    token_type = fields.Constant("bearer")
    expires_in = fields.Integer()
    user = fields.Nested(UserOutSchema)
