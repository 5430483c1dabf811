"""
security helpers:
- Argon2 password hashing via argon2-cffi
- JWT creation/verification via PyJWT
- JTI generation for token identifiers
"""
from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

import jwt
from argon2 import PasswordHasher
from argon2.exceptions import InvalidHashError, VerificationError, VerifyMismatchError

from models.user import Role
from services.errors import InvalidTokenError, PasswordTooLongError, TokenExpiredError

ph = PasswordHasher()

# Largest password accepted, in UTF-8 bytes
DEFAULT_PASSWORD_MAX_BYTES = 72

ACCESS = "access"
REFRESH = "refresh"


@dataclass(frozen=True)
class Claims:
    user_id: str
    email: str
    role: Role
    token_type: str
    jti: str
    expires_at: datetime


@dataclass(frozen=True)
class TokenPair:
    access_token: str
    refresh_token: str
    refresh_jti: str
    refresh_expires_at: datetime


@dataclass(frozen=True)
class TokenSettings:
    secret: str
    access_expires: timedelta
    refresh_expires: timedelta
    algorithm: str = "HS256"
    issuer: str = "storefront-api"

    @classmethod
    def from_config(cls, config) -> "TokenSettings":
        return cls(
            secret=config["JWT_SECRET"],
            access_expires=config["ACCESS_TOKEN_EXPIRES"],
            refresh_expires=config["REFRESH_TOKEN_EXPIRES"],
            algorithm=config.get("JWT_ALGORITHM", "HS256"),
            issuer=config.get("JWT_ISSUER", "storefront-api"),
        )


def hash_password(password: str, max_bytes: int = DEFAULT_PASSWORD_MAX_BYTES) -> str:
    """Hash a plaintext password using Argon2
    """
    if len(password.encode("utf-8")) > max_bytes:
        raise PasswordTooLongError(max_bytes)
    return ph.hash(password)


def verify_password(password: str, password_hash: str) -> bool:
    """ Verify a plaintext password using argon2
    """
    try:
        return ph.verify(password_hash, password)
    except (VerifyMismatchError, VerificationError, InvalidHashError):
        return False


def generate_jti() -> str:
    """Generate a unique JTI (JWT ID).
    """
    return str(uuid.uuid4())


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _encode(settings: TokenSettings, user_id: str, email: str, role: Role, token_type: str,
            lifetime: timedelta, jti: str) -> tuple[str, datetime]:
    now = _now()
    exp = now + lifetime
    payload = {
        "iss": settings.issuer,
        "sub": str(user_id),
        "email": email,
        "role": Role(role).value,
        "type": token_type,
        "jti": jti,
        "iat": int(now.timestamp()),
        "exp": int(exp.timestamp()),
    }
    return jwt.encode(payload, settings.secret, algorithm=settings.algorithm), exp


def generate_token_pair(settings: TokenSettings, user_id: str, email: str, role: Role) -> TokenPair:
    """
    Issue a short-lived access token and a long-lived refresh token carrying the
    same identity claims. The caller persists refresh_jti so the refresh token
    can be revoked.
    """
    access, _ = _encode(settings, user_id, email, role, ACCESS, settings.access_expires, generate_jti())
    refresh_jti = generate_jti()
    refresh, refresh_exp = _encode(settings, user_id, email, role, REFRESH, settings.refresh_expires, refresh_jti)
    return TokenPair(access, refresh, refresh_jti, refresh_exp)


def decode_token(token: str, secret: str, algorithm: str = "HS256", allow_expired: bool = False) -> Dict[str, Any]:
    """
    Decode and validate a JWT. Raises TokenExpiredError / InvalidTokenError on
    expired, badly signed or malformed tokens. With allow_expired the signature
    is still checked but exp is not.
    """
    options = {"require": ["exp", "sub", "type", "jti"]}
    if allow_expired:
        options["verify_exp"] = False
    try:
        return jwt.decode(token, secret, algorithms=[algorithm], options=options)
    except jwt.ExpiredSignatureError:
        raise TokenExpiredError("token expired")
    except jwt.InvalidTokenError as exc:
        raise InvalidTokenError(f"invalid token: {exc}")


def validate_token(token: str, secret: str, expected_type: Optional[str] = None,
                   algorithm: str = "HS256", allow_expired: bool = False) -> Claims:
    """Validate signature, expiry and (optionally) token type; return typed claims."""
    decoded = decode_token(token, secret, algorithm, allow_expired=allow_expired)
    if expected_type and decoded.get("type") != expected_type:
        raise InvalidTokenError("wrong token type")
    try:
        role = Role(decoded.get("role"))
    except ValueError:
        raise InvalidTokenError("invalid token: unknown role")
    return Claims(
        user_id=decoded["sub"],
        email=decoded.get("email", ""),
        role=role,
        token_type=decoded["type"],
        jti=decoded["jti"],
        expires_at=datetime.fromtimestamp(decoded["exp"], tz=timezone.utc),
    )
