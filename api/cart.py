from __future__ import annotations

from flask import Blueprint, request, jsonify, g, current_app

from models.schemas.cart import AddToCartSchema, CartOutSchema, UpdateCartItemSchema
from utils.decorators import jwt_required

bp = Blueprint("cart", __name__)

add_schema = AddToCartSchema()
update_schema = UpdateCartItemSchema()
cart_out_schema = CartOutSchema()


def _cart_service():
    return current_app.extensions["cart_service"]


@bp.get("/cart")
@jwt_required()
def get_cart():
    """
    Get the current user's cart with resolved products and total
    ---
    tags:
      - Cart
    security:
      - Bearer: []
    responses:
      200:
        description: Cart
      404:
        description: User has no cart
    """
    cart = _cart_service().get_cart(g.current_user.id)
    return jsonify({"data": cart_out_schema.dump(cart)})


@bp.post("/cart/items")
@jwt_required()
def add_item():
    """
    Add a product to the cart; an existing line for the product is incremented
    ---
    tags:
      - Cart
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
            quantity: { type: integer, minimum: 1 }
    responses:
      201:
        description: Updated cart
      404:
        description: Product not found
      409:
        description: Insufficient stock
      422:
        description: Validation error
    """
    data = add_schema.load(request.get_json(silent=True) or {})
    cart = _cart_service().add_item(g.current_user.id, data["product_id"], data["quantity"])
    return jsonify({"data": cart_out_schema.dump(cart)}), 201


@bp.patch("/cart/items/<item_id>")
@jwt_required()
def update_item(item_id: str):
    """
    Set the quantity of a cart line
    ---
    tags:
      - Cart
    security:
      - Bearer: []
    consumes:
      - application/json
    parameters:
      - in: path
        name: item_id
        type: string
        required: true
      - in: body
        name: body
        required: true
        schema:
          type: object
          properties:
            quantity: { type: integer, minimum: 1 }
    responses:
      200:
        description: Updated cart
      404:
        description: Item not found
      409:
        description: Insufficient stock
    """
    data = update_schema.load(request.get_json(silent=True) or {})
    cart = _cart_service().update_item(g.current_user.id, item_id, data["quantity"])
    return jsonify({"data": cart_out_schema.dump(cart)})


@bp.delete("/cart/items/<item_id>")
@jwt_required()
def remove_item(item_id: str):
    """
    Remove a line from the cart
    ---
    tags:
      - Cart
    security:
      - Bearer: []
    parameters:
      - in: path
        name: item_id
        type: string
        required: true
    responses:
      204:
        description: Removed
      404:
        description: Item not found
    """
    _cart_service().remove_item(g.current_user.id, item_id)
    return ("", 204)
