from decimal import Decimal, InvalidOperation

from marshmallow import ValidationError


def normalize_email(value):
    return value.strip().lower() if isinstance(value, str) else value


def not_blank(max_len: int):
    """Validator: non-empty after stripping, at most max_len characters."""
    def _validate(value):
        if not value.strip():
            raise ValidationError("Must not be blank.")
        if len(value) > max_len:
            raise ValidationError(f"Must be at most {max_len} characters.")
    return _validate


def to_decimal_2(value) -> Decimal:
    if value is None:
        return None
    try:
        d = Decimal(value)
    except (InvalidOperation, TypeError):
        raise ValidationError("Invalid decimal.")
    if d < 0:
        raise ValidationError("Must be greater than or equal to 0.")
    return d.quantize(Decimal("0.01"))
