from marshmallow import Schema, fields


class OrderItemOutSchema(Schema):
    id = fields.String()
    product_id = fields.String()
    product_name = fields.String()
    quantity = fields.Integer()
    price = fields.Decimal(as_string=True)
    subtotal = fields.Decimal(as_string=True)


class OrderOutSchema(Schema):
    id = fields.String()
    user_id = fields.String()
    items = fields.List(fields.Nested(OrderItemOutSchema))
    total = fields.Decimal(as_string=True)
    created_at = fields.DateTime()
