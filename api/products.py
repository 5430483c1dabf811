from __future__ import annotations

from typing import Tuple

from flask import Blueprint, request, jsonify, abort, current_app

from models.schemas.product import (
    ProductCreateSchema,
    ProductOutSchema,
    ProductSearchResultSchema,
    ProductUpdateSchema,
    SearchQuerySchema,
)
from models.user import Capability
from utils.decorators import capability_required

bp = Blueprint("products", __name__)

create_schema = ProductCreateSchema()
update_schema = ProductUpdateSchema()
search_query_schema = SearchQuerySchema()
out_schema = ProductOutSchema()
out_list_schema = ProductOutSchema(many=True)
search_out_schema = ProductSearchResultSchema(many=True)


def _product_service():
    return current_app.extensions["product_service"]


def parse_pagination() -> Tuple[int, int]:
    try:
        page = int(request.args.get("page", "1"))
        limit = int(request.args.get("limit", str(current_app.config["DEFAULT_PAGE_LIMIT"])))
        return page, limit
    except ValueError:
        abort(400, description="page and limit must be integers")


@bp.get("/products/search")
def search_products():
    """
    Ranked full-text search over active products
    ---
    tags:
      - Products
    parameters:
      - in: query
        name: q
        type: string
        description: "Free text; empty browses all active products"
      - in: query
        name: page
        type: integer
        default: 1
      - in: query
        name: limit
        type: integer
        default: 10
        description: "Non-positive falls back to 10"
      - in: query
        name: category_id
        type: string
      - in: query
        name: min_price
        type: number
      - in: query
        name: max_price
        type: number
    responses:
      200:
        description: Results ordered by relevance, then newest first
      422:
        description: Validation error
    """
    args = search_query_schema.load(request.args.to_dict())
    results, meta = _product_service().search_products(
        args["q"],
        args["page"],
        args["limit"],
        category_id=args["category_id"],
        min_price=args["min_price"],
        max_price=args["max_price"],
    )
    return jsonify({"data": search_out_schema.dump(results), "meta": meta})


@bp.get("/products")
def list_products():
    """
    List active products, newest first
    ---
    tags:
      - Products
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
        name: category_id
        type: string
    responses:
      200:
        description: List of products
    """
    page, limit = parse_pagination()
    rows, meta = _product_service().list_products(page, limit, category_id=request.args.get("category_id"))
    return jsonify({"data": out_list_schema.dump(rows), "meta": meta})


@bp.get("/products/<product_id>")
def get_product(product_id: str):
    """
    Get an active product by id
    ---
    tags:
      - Products
    parameters:
      - in: path
        name: product_id
        type: string
        required: true
    responses:
      200:
        description: Product found
      404:
        description: Not found
    """
    return jsonify({"data": out_schema.dump(_product_service().get_product(product_id))})


@bp.post("/products")
@capability_required(Capability.MANAGE_CATALOG)
def create_product():
    """
    Create a product - admin
    ---
    tags:
      - Products
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
            category_id: { type: string }
            name: { type: string }
            description: { type: string }
            price: { type: string, example: "19.99" }
            stock: { type: integer, minimum: 0 }
            sku: { type: string }
            is_active: { type: boolean }
    responses:
      201:
        description: Created
      404:
        description: Category not found
      409:
        description: SKU already exists
      422:
        description: Validation error
    """
    data = create_schema.load(request.get_json(silent=True) or {})
    product = _product_service().create_product(data)
    return jsonify({"data": out_schema.dump(product)}), 201


@bp.patch("/products/<product_id>")
@capability_required(Capability.MANAGE_CATALOG)
def update_product(product_id: str):
    """
    Update a product (partial); stock is changed through /transactions - admin
    ---
    tags:
      - Products
    security:
      - Bearer: []
    consumes:
      - application/json
    parameters:
      - in: path
        name: product_id
        type: string
        required: true
      - in: body
        name: body
        required: true
        schema:
          type: object
          properties:
            category_id: { type: string }
            name: { type: string }
            description: { type: string }
            price: { type: string }
            sku: { type: string }
            is_active: { type: boolean }
    responses:
      200:
        description: Updated
      404:
        description: Product or category not found
      409:
        description: SKU already exists
    """
    data = update_schema.load(request.get_json(silent=True) or {})
    product = _product_service().update_product(product_id, data)
    return jsonify({"data": out_schema.dump(product)})


@bp.delete("/products/<product_id>")
@capability_required(Capability.MANAGE_CATALOG)
def delete_product(product_id: str):
    """
    Deactivate a product - admin
    ---
    tags:
      - Products
    security:
      - Bearer: []
    parameters:
      - in: path
        name: product_id
        type: string
        required: true
    responses:
      204:
        description: Deactivated
      403:
        description: Insufficient role
      404:
        description: Not found
    """
    _product_service().delete_product(product_id)
    return ("", 204)
