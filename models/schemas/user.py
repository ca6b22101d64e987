from marshmallow import Schema, fields, pre_load

from models.schemas.common import (
    normalize_email,
    validate_not_blank,
    validate_password,
    validate_personal_id_code,
)


class UserRecordSchema(Schema):
    """Field rules for a user row; the credential store validates with it."""
    name = fields.String(required=True, validate=validate_not_blank)
    surname = fields.String(required=True, validate=validate_not_blank)
    personal_id_code = fields.String(required=True, validate=validate_personal_id_code)
    email = fields.Email(required=True)
    password = fields.String(required=True, load_only=True, validate=validate_password)

    @pre_load
    def normalize(self, data, **kwargs):
        if isinstance(data, dict) and "email" in data:
            data["email"] = normalize_email(data["email"])
        return data


class SignupSchema(UserRecordSchema):
    """Request body of POST /auth/signup (camelCase on the wire)."""
    personal_id_code = fields.String(
        required=True, data_key="personalIdCode", validate=validate_personal_id_code
    )


class UserLoginSchema(Schema):
    email = fields.String(required=True)
    password = fields.String(required=True, load_only=True)

    @pre_load
    def normalize(self, data, **kwargs):
        if isinstance(data, dict) and "email" in data:
            data["email"] = normalize_email(data["email"])
        return data


class EmailSchema(Schema):
    email = fields.Email(required=True)

    @pre_load
    def normalize(self, data, **kwargs):
        if isinstance(data, dict) and "email" in data:
            data["email"] = normalize_email(data["email"])
        return data


class ResetPasswordSchema(Schema):
    token = fields.String(required=True, validate=validate_not_blank)
    new_password = fields.String(
        required=True, load_only=True, data_key="newPassword", validate=validate_password
    )


class UserOutSchema(Schema):
    id = fields.String()
    name = fields.String()
    surname = fields.String()
    personal_id_code = fields.String(data_key="personalIdCode")
    email = fields.String()
    is_verified = fields.Boolean(data_key="isVerified")
    created_at = fields.DateTime(data_key="createdAt")
    updated_at = fields.DateTime(data_key="updatedAt")
