from marshmallow import Schema, fields

from models.schemas.common import not_blank


class CategoryCreateSchema(Schema):
    name = fields.String(required=True, validate=not_blank(64))
    description = fields.String(allow_none=True)


class CategoryUpdateSchema(Schema):
    name = fields.String(validate=not_blank(64))
    description = fields.String(allow_none=True)
    is_active = fields.Boolean()


class CategoryOutSchema(Schema):
    id = fields.String()
    name = fields.String()
    description = fields.String(allow_none=True)
    is_active = fields.Boolean()
    created_at = fields.DateTime()
    updated_at = fields.DateTime()
