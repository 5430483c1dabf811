from marshmallow import Schema, fields, validate, validates, ValidationError


class InventoryTransactionCreateSchema(Schema):
    product_id = fields.String(required=True)
    delta_quantity = fields.Integer(required=True)
    reason = fields.String(required=True)
    note = fields.String(required=False, allow_none=True, validate=validate.Length(max=255))

    @validates("delta_quantity")
    def _validate_delta(self, value, **kwargs):
        if value == 0:
            raise ValidationError("delta_quantity cannot be zero.")


class InventoryTransactionOutSchema(Schema):
    id = fields.String()
    product_id = fields.String()
    delta_quantity = fields.Integer()
    reason = fields.Method("get_reason")
    note = fields.String(allow_none=True)
    resulting_quantity = fields.Integer()
    order_id = fields.String(allow_none=True)
    created_at = fields.DateTime()

    def get_reason(self, obj):
        return getattr(obj.reason, "value", obj.reason)
