from __future__ import annotations

from flask import Blueprint, request, jsonify, g, current_app

from models.schemas.user import ProfileUpdateSchema, UserOutSchema
from utils.decorators import jwt_required

bp = Blueprint("users", __name__)

profile_update_schema = ProfileUpdateSchema()
user_out_schema = UserOutSchema()


def _user_service():
    return current_app.extensions["user_service"]


@bp.get("/me")
@jwt_required()
def me():
    """
    Get current user info.
    ---
    tags:
      - Users
    security:
      - Bearer: []
    responses:
      200:
        description: OK
      401:
        description: Unauthorized
    """
    user = _user_service().get_profile(g.current_user.id)
    return jsonify({"data": user_out_schema.dump(user)}), 200


@bp.patch("/me")
@jwt_required()
def update_me():
    """
    Update profile fields of the current user.
    ---
    tags:
      - Users
    security:
      - Bearer: []
    consumes:
      - application/json
    parameters:
      -  in: body
         name: body
         schema:
           type: object
           properties:
             first_name: { type: string }
             last_name: { type: string }
             phone: { type: string }
    responses:
      200: { description: OK }
      422: { description: Validation error }
    """
    data = profile_update_schema.load(request.get_json(silent=True) or {})
    user = _user_service().update_profile(g.current_user.id, data)
    return jsonify({"data": user_out_schema.dump(user)}), 200


@bp.delete("/me")
@jwt_required()
def delete_me():
    """
    Deactivate the current account (soft delete) and revoke its refresh tokens.
    ---
    tags:
      - Users
    security:
      - Bearer: []
    responses:
      204: { description: Deactivated }
    """
    _user_service().deactivate(g.current_user.id)
    return ("", 204)
