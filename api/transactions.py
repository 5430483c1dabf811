from __future__ import annotations

from typing import Optional, Tuple
from datetime import date

from flask import Blueprint, request, jsonify, abort, current_app
from marshmallow import ValidationError
from sqlalchemy import func

from models import storage
from models.inventory_transaction import InventoryTransaction, InventoryReason
from models.product import Product
from models.schemas.transaction import (
    InventoryTransactionCreateSchema,
    InventoryTransactionOutSchema,
)
from models.user import Capability
from services import stock
from services.errors import NotFoundError
from utils.decorators import capability_required
from utils.pagination import MAX_LIMIT, build_meta, normalize_page, offset_for

bp = Blueprint("transactions", __name__)

tx_create_schema = InventoryTransactionCreateSchema()
tx_out_schema = InventoryTransactionOutSchema()
tx_list_out_schema = InventoryTransactionOutSchema(many=True)

SORT_COLUMNS = {
    "created_at": InventoryTransaction.created_at,
    "delta_quantity": InventoryTransaction.delta_quantity,
}


def parse_pagination() -> Tuple[int, int]:
    default_limit = current_app.config["DEFAULT_PAGE_LIMIT"]
    try:
        page = int(request.args.get("page", "1"))
        limit = int(request.args.get("limit", str(default_limit)))
    except ValueError:
        abort(400, description="page and limit must be integers")
    return normalize_page(page, limit, default_limit=default_limit, max_limit=MAX_LIMIT)


def parse_sort(default: str = "-created_at"):
    sort_param = request.args.get("sort", default)
    fields = [s.strip() for s in sort_param.split(",") if s.strip()]
    order_by = []
    for f in fields:
        desc = f.startswith("-")
        key = f[1:] if desc else f
        col = SORT_COLUMNS.get(key)
        if col is None:
            abort(400, description=f"Unsupported sort field: {key}")
        order_by.append(col.desc() if desc else col.asc())
    return order_by if order_by else [InventoryTransaction.created_at.desc()]


def parse_date_param(name: str) -> Optional[date]:
    val = request.args.get(name)
    if not val:
        return None
    try:
        return date.fromisoformat(val)
    except ValueError:
        abort(400, description=f"Invalid date format for {name}. Use YYYY-MM-DD")


def normalize_reason(raw: str) -> InventoryReason:
    try:
        return InventoryReason(raw.upper())
    except ValueError:
        allowed = [r.value for r in InventoryReason]
        raise ValidationError({"reason": [f"reason must be one of {allowed}"]})


@bp.post("/transactions")
@capability_required(Capability.MANAGE_STOCK)
def create_transaction():
    """
    Apply a stock adjustment to a product and record it in the ledger - admin
    ---
    tags:
      - Inventory
    security:
      - Bearer: []
    consumes:
      - application/json
    parameters:
      - in: body
        name: body
        required: true
        schema:
          type: object
          properties:
            product_id: { type: string }
            delta_quantity: { type: integer, description: "positive to increase, negative to decrease", example: -2 }
            reason:
              type: string
              enum: [PURCHASE, SALE, RETURN, ADJUSTMENT]
            note: { type: string, maxLength: 255 }
    responses:
      201:
        description: Created
      404:
        description: Product not found
      409:
        description: Resulting stock would be negative
      422:
        description: Validation error
    """
    data = tx_create_schema.load(request.get_json(silent=True) or {})
    reason = normalize_reason(data["reason"])

    # Lock, adjust and record in one unit of work
    with storage.transaction() as session:
        product = stock.lock_product(session, data["product_id"], active_only=False)
        tx = stock.apply_delta(session, product, int(data["delta_quantity"]), reason, note=data.get("note"))
        session.flush()
        out = tx_out_schema.dump(tx)

    return jsonify({"data": out}), 201


@bp.get("/transactions")
@capability_required(Capability.MANAGE_STOCK)
def list_transactions():
    """
    List ledger rows with pagination, sorting and filters - admin
    ---
    tags:
      - Inventory
    security:
      - Bearer: []
    parameters:
      - in: query
        name: page
        type: integer
        default: 1
      - in: query
        name: limit
        type: integer
        default: 10
      - in: query
        name: sort
        type: string
        description: "Allowed: -created_at (default), created_at, delta_quantity, -delta_quantity"
        default: "-created_at"
      - in: query
        name: product_id
        type: string
      - in: query
        name: reason
        type: string
        enum: [PURCHASE, SALE, RETURN, ADJUSTMENT]
      - in: query
        name: created_from
        type: string
        format: date
        description: "YYYY-MM-DD (inclusive)"
      - in: query
        name: created_to
        type: string
        format: date
        description: "YYYY-MM-DD (inclusive)"
    responses:
      200:
        description: List of ledger rows
    """
    session = storage.get_session()
    page, limit = parse_pagination()
    order_by = parse_sort(default="-created_at")

    query = session.query(InventoryTransaction)

    product_id = request.args.get("product_id")
    if product_id:
        query = query.filter(InventoryTransaction.product_id == product_id)

    reason_str = request.args.get("reason")
    if reason_str:
        query = query.filter(InventoryTransaction.reason == normalize_reason(reason_str))

    created_from = parse_date_param("created_from")
    created_to = parse_date_param("created_to")
    if created_from:
        query = query.filter(func.date(InventoryTransaction.created_at) >= created_from.isoformat())
    if created_to:
        query = query.filter(func.date(InventoryTransaction.created_at) <= created_to.isoformat())

    total = query.count()
    rows = query.order_by(*order_by).offset(offset_for(page, limit)).limit(limit).all()

    return jsonify({"data": tx_list_out_schema.dump(rows), "meta": build_meta(page, limit, total)})


@bp.get("/transactions/<tx_id>")
@capability_required(Capability.MANAGE_STOCK)
def get_transaction(tx_id: str):
    """
    Get a single ledger row by id - admin
    ---
    tags:
      - Inventory
    security:
      - Bearer: []
    parameters:
      - in: path
        name: tx_id
        type: string
        required: true
    responses:
      200:
        description: Transaction found
      404:
        description: Not found
    """
    tx = storage.get_session().get(InventoryTransaction, tx_id)
    if not tx:
        raise NotFoundError("transaction not found")
    return jsonify({"data": tx_out_schema.dump(tx)})


@bp.get("/products/<product_id>/transactions")
@capability_required(Capability.MANAGE_STOCK)
def list_transactions_for_product(product_id: str):
    """
    Stock history of one product, newest first - admin
    ---
    tags:
      - Inventory
    security:
      - Bearer: []
    parameters:
      - in: path
        name: product_id
        type: string
        required: true
      - in: query
        name: page
        type: integer
        default: 1
      - in: query
        name: limit
        type: integer
        default: 10
    responses:
      200:
        description: Ledger rows for the product
      404:
        description: Product not found
    """
    session = storage.get_session()
    if not session.get(Product, product_id):
        raise NotFoundError("product not found")

    page, limit = parse_pagination()
    query = session.query(InventoryTransaction).filter(InventoryTransaction.product_id == product_id)
    total = query.count()
    rows = (
        query.order_by(*parse_sort(default="-created_at"))
        .offset(offset_for(page, limit))
        .limit(limit)
        .all()
    )
    return jsonify({"data": tx_list_out_schema.dump(rows), "meta": build_meta(page, limit, total)})
