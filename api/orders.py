from __future__ import annotations

from typing import Tuple

from flask import Blueprint, request, jsonify, g, abort, current_app

from models.schemas.order import OrderOutSchema
from utils.decorators import jwt_required

bp = Blueprint("orders", __name__)

order_out_schema = OrderOutSchema()
order_list_out_schema = OrderOutSchema(many=True)


def _order_service():
    return current_app.extensions["order_service"]


def parse_pagination() -> Tuple[int, int]:
    try:
        page = int(request.args.get("page", "1"))
        limit = int(request.args.get("limit", str(current_app.config["DEFAULT_PAGE_LIMIT"])))
        return page, limit
    except ValueError:
        abort(400, description="page and limit must be integers")


@bp.post("/orders")
@jwt_required()
def place_order():
    """
    Place an order from the current cart (all-or-nothing)
    ---
    tags:
      - Orders
    security:
      - Bearer: []
    responses:
      201:
        description: Order created, cart cleared, stock decremented
      400:
        description: Cart is empty
      409:
        description: Insufficient stock for a product in the cart
    """
    order = _order_service().place_order(g.current_user.id)
    return jsonify({"data": order_out_schema.dump(order)}), 201


@bp.get("/orders")
@jwt_required()
def list_orders():
    """
    List the current user's orders, newest first
    ---
    tags:
      - Orders
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
    responses:
      200:
        description: List of orders
    """
    page, limit = parse_pagination()
    orders, meta = _order_service().get_orders(g.current_user.id, page, limit)
    return jsonify({"data": order_list_out_schema.dump(orders), "meta": meta})


@bp.get("/orders/<order_id>")
@jwt_required()
def get_order(order_id: str):
    """
    Get one of the current user's orders
    ---
    tags:
      - Orders
    security:
      - Bearer: []
    parameters:
      - in: path
        name: order_id
        type: string
        required: true
    responses:
      200:
        description: Order found
      404:
        description: Not found
    """
    order = _order_service().get_order(g.current_user.id, order_id)
    return jsonify({"data": order_out_schema.dump(order)})
