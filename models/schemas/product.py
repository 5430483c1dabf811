from marshmallow import Schema, fields, validate, validates, ValidationError, EXCLUDE

from models.schemas.common import not_blank, to_decimal_2


class ProductCreateSchema(Schema):
    category_id = fields.String(required=True)
    name = fields.String(required=True, validate=not_blank(255))
    description = fields.String(allow_none=True)
    price = fields.Decimal(required=True)
    stock = fields.Integer(load_default=0, validate=validate.Range(min=0))
    sku = fields.String(required=True, validate=not_blank(64))
    is_active = fields.Boolean(load_default=True)

    @validates("price")
    def _validate_price(self, value, **kwargs):
        to_decimal_2(value)


class ProductUpdateSchema(Schema):
    # All optional; stock is adjusted through /transactions
    category_id = fields.String()
    name = fields.String(validate=not_blank(255))
    description = fields.String(allow_none=True)
    price = fields.Decimal()
    sku = fields.String(validate=not_blank(64))
    is_active = fields.Boolean()

    @validates("price")
    def _validate_price(self, value, **kwargs):
        to_decimal_2(value)


class SearchQuerySchema(Schema):
    class Meta:
        unknown = EXCLUDE

    q = fields.String(load_default="")
    page = fields.Integer(load_default=1)
    limit = fields.Integer(load_default=10)
    category_id = fields.String(load_default=None)
    min_price = fields.Decimal(load_default=None)
    max_price = fields.Decimal(load_default=None)

    @validates("min_price")
    def _validate_min(self, value, **kwargs):
        if value is not None and value < 0:
            raise ValidationError("min_price must be >= 0.")

    @validates("max_price")
    def _validate_max(self, value, **kwargs):
        if value is not None and value < 0:
            raise ValidationError("max_price must be >= 0.")


class CategoryRefSchema(Schema):
    id = fields.String()
    name = fields.String()


class ProductOutSchema(Schema):
    id = fields.String()
    category_id = fields.String()
    category = fields.Nested(CategoryRefSchema, allow_none=True)
    name = fields.String()
    description = fields.String(allow_none=True)
    price = fields.Decimal(as_string=True)
    stock = fields.Integer()
    sku = fields.String()
    is_active = fields.Boolean()
    created_at = fields.DateTime()
    updated_at = fields.DateTime()


class ProductSearchResultSchema(ProductOutSchema):
    rank = fields.Float()
