from __future__ import annotations
from functools import wraps
from flask import request, g, abort, current_app
from models import storage
from models.user import Capability, User
from services.errors import ForbiddenError, InvalidTokenError
from utils.security import ACCESS, validate_token


def bearer_token() -> str:
    auth = request.headers.get("Authorization", "")
    if not auth.startswith("Bearer "):
        abort(401, description="Missing or invalid Authorization header")
    return auth.split(" ", 1)[1].strip()


def jwt_required():
    def decorator(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            token = bearer_token()
            try:
                claims = validate_token(
                    token,
                    current_app.config["JWT_SECRET"],
                    expected_type=ACCESS,
                    algorithm=current_app.config["JWT_ALGORITHM"],
                )
            except InvalidTokenError as e:
                abort(401, description=e.message)

            user = storage.get(User, claims.user_id)
            if not user or not user.is_active or user.is_deleted:
                abort(401, description="User not found")
            g.current_user = user
            g.current_claims = claims
            return fn(*args, **kwargs)

        return wrapper

    return decorator


def capability_required(capability: Capability):
    """
    Allow access only if the caller's role grants the capability.
    The role is read from the stored user, not trusted from the token.
    """
    def decorator(fn):
        @wraps(fn)
        @jwt_required()
        def wrapper(*args, **kwargs):
            if not g.current_user.can(capability):
                raise ForbiddenError("Insufficient role")
            return fn(*args, **kwargs)

        return wrapper

    return decorator
