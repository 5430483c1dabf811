from __future__ import annotations

from typing import Tuple

from flask import Blueprint, request, jsonify, abort, current_app
from sqlalchemy import func

from models import storage
from models.category import Category
from models.product import Product
from models.schemas.category import CategoryCreateSchema, CategoryOutSchema, CategoryUpdateSchema
from models.user import Capability
from services.errors import ConflictError, NotFoundError
from utils.decorators import capability_required
from utils.pagination import MAX_LIMIT, build_meta, normalize_page, offset_for

bp = Blueprint("categories", __name__)

create_schema = CategoryCreateSchema()
update_schema = CategoryUpdateSchema()
out_schema = CategoryOutSchema()
out_list_schema = CategoryOutSchema(many=True)


def parse_pagination() -> Tuple[int, int]:
    default_limit = current_app.config["DEFAULT_PAGE_LIMIT"]
    try:
        page = int(request.args.get("page", "1"))
        limit = int(request.args.get("limit", str(default_limit)))
    except ValueError:
        abort(400, description="page and limit must be integers")
    return normalize_page(page, limit, default_limit=default_limit, max_limit=MAX_LIMIT)


def exists_name_case_insensitive(session, name: str) -> bool:
    q = session.query(Category).filter(func.lower(Category.name) == name.strip().lower())
    # Only live categories hold on to their name
    q = q.filter(Category.deleted_at.is_(None))
    return session.query(q.exists()).scalar()


def live_category(session, category_id: str) -> Category:
    c = session.get(Category, category_id)
    if not c or c.is_deleted:
        raise NotFoundError("category not found")
    return c


@bp.post("/categories")
@capability_required(Capability.MANAGE_CATALOG)
def create_category():
    """
    Create a category - admin
    ---
    tags: [Categories]
    security:
      - Bearer: []
    consumes: [application/json]
    parameters:
      - in: body
        name: body
        required: true
        schema:
          type: object
          properties:
            name: { type: string, maxLength: 64 }
            description: { type: string }
    responses:
      201: { description: Created }
      403: { description: Insufficient role }
      409: { description: Name already exists }
      422: { description: Validation error }
    """
    session = storage.get_session()
    data = create_schema.load(request.get_json(silent=True) or {})
    if exists_name_case_insensitive(session, data["name"]):
        raise ConflictError("Category name already exists.")
    c = Category(name=data["name"].strip(), description=data.get("description"))
    c.save()
    return jsonify({"data": out_schema.dump(c)}), 201


@bp.get("/categories")
def list_categories():
    """
    List active categories ordered by name
    ---
    tags: [Categories]
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
      200: { description: OK }
    """
    session = storage.get_session()
    page, limit = parse_pagination()

    query = session.query(Category).filter(Category.deleted_at.is_(None), Category.is_active.is_(True))
    total = query.count()
    rows = query.order_by(Category.name.asc()).offset(offset_for(page, limit)).limit(limit).all()
    return jsonify({"data": out_list_schema.dump(rows), "meta": build_meta(page, limit, total)})


@bp.get("/categories/<category_id>")
def get_category(category_id: str):
    """
    Get a category by id
    ---
    tags: [Categories]
    parameters:
      - in: path
        name: category_id
        type: string
        required: true
    responses:
      200: { description: OK }
      404: { description: Not found }
    """
    c = live_category(storage.get_session(), category_id)
    return jsonify({"data": out_schema.dump(c)})


@bp.patch("/categories/<category_id>")
@capability_required(Capability.MANAGE_CATALOG)
def update_category(category_id: str):
    """
    Update a category (partial) - admin
    ---
    tags: [Categories]
    security:
      - Bearer: []
    consumes: [application/json]
    parameters:
      - in: path
        name: category_id
        type: string
        required: true
      - in: body
        name: body
        required: true
        schema:
          type: object
          properties:
            name: { type: string, maxLength: 64 }
            description: { type: string }
            is_active: { type: boolean }
    responses:
      200: { description: Updated }
      403: { description: Insufficient role }
      404: { description: Not found }
      409: { description: Name already exists }
      422: { description: Validation error }
    """
    data = update_schema.load(request.get_json(silent=True) or {})
    c = current_app.extensions["product_service"].update_category(category_id, data)
    return jsonify({"data": out_schema.dump(c)})


@bp.delete("/categories/<category_id>")
@capability_required(Capability.MANAGE_CATALOG)
def delete_category(category_id: str):
    """
    Soft delete a category (sets deleted_at) - admin
    ---
    tags: [Categories]
    security:
      - Bearer: []
    parameters:
      - in: path
        name: category_id
        type: string
        required: true
    responses:
      204: { description: Deleted }
      404: { description: Not found }
      409: { description: Category still has active products }
    """
    session = storage.get_session()
    c = live_category(session, category_id)
    in_use = session.query(
        session.query(Product).filter(Product.category_id == c.id, Product.is_active.is_(True)).exists()
    ).scalar()
    if in_use:
        raise ConflictError("Category still has active products.")
    c.delete()  # Soft delete via mixin
    return ("", 204)
