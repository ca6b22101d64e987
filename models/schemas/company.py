from marshmallow import Schema, fields, pre_load, validate

from models.schemas.common import normalize_email, validate_not_blank


class CompanyCreateSchema(Schema):
    name = fields.String(required=True, validate=[validate_not_blank, validate.Length(max=255)])
    registration_number = fields.String(
        required=True,
        data_key="registrationNumber",
        validate=[validate_not_blank, validate.Length(max=64)],
    )
    email = fields.Email(required=True)
    address = fields.String(required=True, validate=[validate_not_blank, validate.Length(max=512)])

    @pre_load
    def normalize(self, data, **kwargs):
        if isinstance(data, dict) and "email" in data:
            data["email"] = normalize_email(data["email"])
        return data


class CompanyUpdateSchema(CompanyCreateSchema):
    """Same rules as create; every field optional (load with partial=True)."""


class CompanyOutSchema(Schema):
    id = fields.String()
    name = fields.String()
    registration_number = fields.String(data_key="registrationNumber")
    email = fields.String()
    address = fields.String()
    user_id = fields.String(data_key="userId")
    created_at = fields.DateTime(data_key="createdAt")
    updated_at = fields.DateTime(data_key="updatedAt")
