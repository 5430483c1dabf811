from marshmallow import Schema, fields, validate

from models.schemas.product import CategoryRefSchema


class AddToCartSchema(Schema):
    product_id = fields.String(required=True)
    quantity = fields.Integer(required=True, validate=validate.Range(min=1))


class UpdateCartItemSchema(Schema):
    quantity = fields.Integer(required=True, validate=validate.Range(min=1))


class CartProductSchema(Schema):
    id = fields.String()
    name = fields.String()
    sku = fields.String()
    price = fields.Decimal(as_string=True)
    stock = fields.Integer()
    category = fields.Nested(CategoryRefSchema, allow_none=True)


class CartItemOutSchema(Schema):
    id = fields.String()
    product_id = fields.String()
    quantity = fields.Integer()
    price = fields.Decimal(as_string=True)
    subtotal = fields.Decimal(as_string=True)
    product = fields.Nested(CartProductSchema)


class CartOutSchema(Schema):
    id = fields.String()
    user_id = fields.String()
    items = fields.List(fields.Nested(CartItemOutSchema))
    total = fields.Decimal(as_string=True)
