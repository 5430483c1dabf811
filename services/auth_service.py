"""
Credential lifecycle: registration, login, refresh-token rotation, logout.

- Passwords are hashed with argon2 (utils.security)
- Access and refresh tokens are HS256 JWTs; refresh token JTIs are stored in
  the refresh_tokens table so they can be rotated and revoked
- Refresh tokens are single-use: refreshing deletes the consumed row and
  inserts the new one in the same unit of work
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from models.base_model import utcnow
from models.cart import Cart
from models.refresh_token import RefreshToken
from models.user import Role, User
from services import events
from services.errors import (
    EmailTakenError,
    InvalidCredentialsError,
    InvalidTokenError,
    NotFoundError,
    TokenExpiredError,
)
from utils.security import (
    DEFAULT_PASSWORD_MAX_BYTES,
    REFRESH,
    TokenPair,
    TokenSettings,
    generate_token_pair,
    hash_password,
    validate_token,
    verify_password,
)

logger = logging.getLogger(__name__)


@dataclass
class AuthResult:
    user: User
    access_token: str
    refresh_token: str
    expires_in: int


class AuthService:
    def __init__(self, storage, settings: TokenSettings, publisher: events.EventPublisher,
                 password_max_bytes: int = DEFAULT_PASSWORD_MAX_BYTES):
        self.storage = storage
        self.settings = settings
        self.publisher = publisher
        self.password_max_bytes = password_max_bytes

    # helpers
    def _issue(self, session, user: User) -> TokenPair:
        pair = generate_token_pair(self.settings, user.id, user.email, Role(user.role))
        session.add(RefreshToken(jti=pair.refresh_jti, user_id=user.id, expires_at=pair.refresh_expires_at))
        return pair

    def _result(self, user: User, pair: TokenPair) -> AuthResult:
        return AuthResult(
            user=user,
            access_token=pair.access_token,
            refresh_token=pair.refresh_token,
            expires_in=int(self.settings.access_expires.total_seconds()),
        )

    def _publish(self, event_type: str, user: User) -> None:
        # State is already committed; a failure here surfaces as EventPublishError
        self.publisher.publish(event_type, {"user_id": user.id, "email": user.email, "role": Role(user.role).value})

    def _email_taken(self, session, email: str) -> bool:
        return session.query(
            session.query(User).filter(func.lower(User.email) == email, User.deleted_at.is_(None)).exists()
        ).scalar()

    def _create_cart(self, session, user: User) -> Cart:
        cart = Cart(user_id=user.id)
        session.add(cart)
        session.flush()
        return cart

    # operations
    def register(self, email: str, password: str, first_name: Optional[str] = None,
                 last_name: Optional[str] = None) -> AuthResult:
        email = email.strip().lower()
        # Rejected before any transaction starts
        pw_hash = hash_password(password, self.password_max_bytes)

        with self.storage.transaction() as session:
            if self._email_taken(session, email):
                raise EmailTakenError()

            user = User(
                email=email,
                password_hash=pw_hash,
                first_name=first_name,
                last_name=last_name,
                role=Role.CUSTOMER,
                is_active=True,
            )
            session.add(user)
            try:
                session.flush()
            except IntegrityError as exc:
                # A concurrent registration won the live-email index
                raise EmailTakenError() from exc

            # A failed cart insert is tolerated: the user is still registered
            savepoint = session.begin_nested()
            try:
                self._create_cart(session, user)
                savepoint.commit()
            except SQLAlchemyError:
                savepoint.rollback()
                logger.warning("Cart creation failed for user %s; registration continues", user.id, exc_info=True)

            pair = self._issue(session, user)

        logger.info("Registered user %s", user.id)
        self._publish(events.USER_REGISTERED, user)
        return self._result(user, pair)

    def login(self, email: str, password: str) -> AuthResult:
        email = (email or "").strip().lower()
        with self.storage.transaction() as session:
            user = (
                session.query(User)
                .filter(
                    func.lower(User.email) == email,
                    User.is_active.is_(True),
                    User.deleted_at.is_(None),
                )
                .first()
            )
            # Same failure for unknown email and wrong password
            if not user or not verify_password(password or "", user.password_hash):
                raise InvalidCredentialsError()
            pair = self._issue(session, user)

        logger.info("User %s logged in", user.id)
        self._publish(events.USER_LOGGED_IN, user)
        return self._result(user, pair)

    def refresh_token(self, token: str) -> AuthResult:
        try:
            claims = validate_token(token, self.settings.secret, expected_type=REFRESH,
                                    algorithm=self.settings.algorithm)
        except InvalidTokenError as exc:
            if isinstance(exc, TokenExpiredError):
                raise
            raise InvalidTokenError("invalid refresh token") from exc

        with self.storage.transaction() as session:
            stored = (
                session.query(RefreshToken)
                .filter(RefreshToken.jti == claims.jti, RefreshToken.expires_at > utcnow())
                .with_for_update()
                .first()
            )
            if not stored:
                raise InvalidTokenError("refresh token not found or expired")

            user = session.get(User, stored.user_id)
            if not user or not user.is_active or user.is_deleted:
                raise NotFoundError("user not found")

            # Row count is the guard against a concurrent refresh with the same token
            deleted = (
                session.query(RefreshToken)
                .filter(RefreshToken.jti == claims.jti)
                .delete(synchronize_session=False)
            )
            if deleted != 1:
                raise InvalidTokenError("refresh token not found or expired")

            pair = self._issue(session, user)

        logger.info("Rotated refresh token for user %s", user.id)
        self._publish(events.USER_TOKEN_REFRESHED, user)
        return self._result(user, pair)

    def logout(self, token: str) -> None:
        try:
            # Expired refresh tokens are still revoked
            claims = validate_token(token, self.settings.secret, expected_type=REFRESH,
                                    algorithm=self.settings.algorithm, allow_expired=True)
        except InvalidTokenError:
            # Nothing to revoke
            return
        with self.storage.transaction() as session:
            deleted = (
                session.query(RefreshToken)
                .filter(RefreshToken.jti == claims.jti)
                .delete(synchronize_session=False)
            )
        if deleted:
            logger.info("Revoked refresh token for user %s", claims.user_id)


def revoke_user_tokens(session, user_id: str) -> int:
    """Delete every stored refresh token of a user inside the caller's unit of work."""
    return (
        session.query(RefreshToken)
        .filter(RefreshToken.user_id == user_id)
        .delete(synchronize_session=False)
    )
