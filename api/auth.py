"""
Authentication blueprint:
- POST /auth/register
- POST /auth/login
- POST /auth/refresh
- POST /auth/logout

The implementation lives in services.auth_service:
- argon2 password hashing (via utils.security)
- short-lived access tokens and longer-lived refresh tokens (JWTs signed with HS256)
- refresh tokens stored in DB (RefreshToken model) so they can be revoked / rotated
"""
from __future__ import annotations

from flask import Blueprint, request, jsonify, current_app

from models.schemas.user import AuthOutSchema, LoginSchema, RefreshTokenSchema, RegisterSchema

bp = Blueprint("auth", __name__)

register_schema = RegisterSchema()
login_schema = LoginSchema()
refresh_schema = RefreshTokenSchema()
auth_out_schema = AuthOutSchema()


def _auth_service():
    return current_app.extensions["auth_service"]


@bp.post("/auth/register")
def register():
    """
    Register a new customer; creates the account, its cart and a token pair.
    ---
    tags:
      - Auth
    consumes:
      - application/json
    parameters:
      - in: body
        name: body
        schema:
          type: object
          properties:
            email: { type: string }
            password: { type: string }
            first_name: { type: string }
            last_name: { type: string }
    responses:
      201:
        description: Created (returns tokens and user)
      409:
        description: Email already registered
      422:
        description: Validation error or password too long
    """
    data = register_schema.load(request.get_json(silent=True) or {})
    result = _auth_service().register(
        data["email"],
        data["password"],
        first_name=data.get("first_name"),
        last_name=data.get("last_name"),
    )
    return jsonify({"data": auth_out_schema.dump(result)}), 201


@bp.post("/auth/login")
def login():
    """
    Login: return access_token and refresh_token
    ---
    tags:
      - Auth
    consumes:
      - application/json
    parameters:
      -  in: body
         name: body
         schema:
           type: object
           properties:
             email: { type: string }
             password: { type: string }
    responses:
      200:
        description: OK (returns tokens)
      401:
        description: Invalid credentials
    """
    data = login_schema.load(request.get_json(silent=True) or {})
    result = _auth_service().login(data["email"], data["password"])
    return jsonify({"data": auth_out_schema.dump(result)}), 200


@bp.post("/auth/refresh")
def refresh():
    """
    Use a refresh token to obtain new access and refresh tokens (rotation).
    The presented refresh token stops working.
    ---
    tags:
      - Auth
    consumes:
      - application/json
    parameters:
      -  in: body
         name: body
         schema:
           type: object
           properties:
             refresh_token: { type: string }
    responses:
      200:
        description: OK (returns a new token pair)
      401:
        description: Invalid, expired or already used refresh token
    """
    data = refresh_schema.load(request.get_json(silent=True) or {})
    result = _auth_service().refresh_token(data["refresh_token"])
    return jsonify({"data": auth_out_schema.dump(result)}), 200


@bp.post("/auth/logout")
def logout():
    """
    Logout: revokes the refresh token
    ---
    tags:
      - Auth
    consumes:
      - application/json
    parameters:
      -  in: body
         name: body
         schema:
           type: object
           properties:
             refresh_token: { type: string }
    responses:
      204:
        description: ""
    """
    data = refresh_schema.load(request.get_json(silent=True) or {})
    _auth_service().logout(data["refresh_token"])
    return ("", 204)
