import threading
from dataclasses import replace
from datetime import timedelta

import pytest
from sqlalchemy.exc import SQLAlchemyError

from models import storage
from models.cart import Cart
from models.refresh_token import RefreshToken
from models.user import User
from services import events
from services.auth_service import AuthService
from services.errors import (
    EmailTakenError,
    EventPublishError,
    InvalidCredentialsError,
    InvalidTokenError,
    NotFoundError,
    PasswordTooLongError,
    TokenExpiredError,
)
from utils.security import validate_token


def _count(model, *criteria):
    with storage.transaction() as session:
        return session.query(model).filter(*criteria).count()


def test_register_creates_user_cart_and_tokens(auth_service, publisher, app):
    result = auth_service.register("Bob@Example.com ", "pw12345", first_name="Bob", last_name="B")

    assert result.user.email == "bob@example.com"
    assert result.expires_in == 900
    claims = validate_token(result.access_token, app.config["JWT_SECRET"])
    assert claims.user_id == result.user.id
    assert claims.role.value == "customer"

    assert _count(Cart, Cart.user_id == result.user.id) == 1
    assert _count(RefreshToken, RefreshToken.user_id == result.user.id) == 1
    assert [e["type"] for e in publisher.events] == [events.USER_REGISTERED]
    assert publisher.events[0]["payload"]["user_id"] == result.user.id


def test_register_duplicate_email_is_rejected(auth_service, customer):
    with pytest.raises(EmailTakenError) as exc:
        auth_service.register("ALICE@example.com", "another1")
    assert exc.value.message == "you cannot register with this email"
    assert _count(User) == 1


def test_register_race_on_email_index_is_email_taken(auth_service, customer, monkeypatch):
    # the pre-check misses a registration committed in between
    monkeypatch.setattr(AuthService, "_email_taken", lambda self, session, email: False)
    with pytest.raises(EmailTakenError):
        auth_service.register("alice@example.com", "another1")
    assert _count(User) == 1
    assert _count(RefreshToken) == 1


def test_register_password_too_long_writes_nothing(auth_service, publisher):
    with pytest.raises(PasswordTooLongError):
        auth_service.register("long@example.com", "x" * 73)
    assert _count(User) == 0
    assert publisher.events == []


def test_register_survives_cart_failure(auth_service, cart_service, monkeypatch):
    def broken_cart(self, session, user):
        raise SQLAlchemyError("cart insert failed")

    monkeypatch.setattr(AuthService, "_create_cart", broken_cart)
    result = auth_service.register("nocart@example.com", "pw12345")

    assert _count(User, User.id == result.user.id) == 1
    assert _count(Cart, Cart.user_id == result.user.id) == 0
    with pytest.raises(NotFoundError):
        cart_service.get_cart(result.user.id)


def test_publish_failure_leaves_state_committed(app, monkeypatch):
    auth_service = app.extensions["auth_service"]

    def failing_publish(event_type, payload):
        raise EventPublishError()

    monkeypatch.setattr(auth_service.publisher, "publish", failing_publish)
    with pytest.raises(EventPublishError):
        auth_service.register("late@example.com", "pw12345")
    assert _count(User, User.email == "late@example.com") == 1


def test_login_success_issues_new_refresh_token(auth_service, customer, publisher):
    result = auth_service.login("alice@example.com", "pw12345")
    assert result.user.id == customer.user.id
    assert result.refresh_token != customer.refresh_token
    assert _count(RefreshToken, RefreshToken.user_id == customer.user.id) == 2
    assert publisher.events[-1]["type"] == events.USER_LOGGED_IN


def test_login_failures_are_indistinguishable(auth_service, customer):
    with pytest.raises(InvalidCredentialsError) as unknown:
        auth_service.login("nobody@example.com", "pw12345")
    with pytest.raises(InvalidCredentialsError) as wrong:
        auth_service.login("alice@example.com", "wrong-password")
    assert unknown.value.message == wrong.value.message
    assert unknown.value.code == wrong.value.code


def test_login_rejects_deactivated_user(auth_service, user_service, customer):
    user_service.deactivate(customer.user.id)
    with pytest.raises(InvalidCredentialsError):
        auth_service.login("alice@example.com", "pw12345")


def test_refresh_rotates_and_is_single_use(auth_service, customer, publisher):
    rotated = auth_service.refresh_token(customer.refresh_token)
    assert rotated.refresh_token != customer.refresh_token
    assert publisher.events[-1]["type"] == events.USER_TOKEN_REFRESHED

    with pytest.raises(InvalidTokenError) as exc:
        auth_service.refresh_token(customer.refresh_token)
    assert exc.value.message == "refresh token not found or expired"

    # the new token still works
    auth_service.refresh_token(rotated.refresh_token)


def test_concurrent_refresh_accepts_token_once(auth_service, customer):
    storage.close()
    barrier = threading.Barrier(2)
    outcomes = []

    def refresh():
        barrier.wait()
        try:
            auth_service.refresh_token(customer.refresh_token)
            outcomes.append("ok")
        except InvalidTokenError:
            outcomes.append("invalid")
        finally:
            storage.close()

    threads = [threading.Thread(target=refresh) for _ in range(2)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert sorted(outcomes) == ["invalid", "ok"]
    # the consumed row is gone and exactly one successor was issued
    assert _count(RefreshToken, RefreshToken.user_id == customer.user.id) == 1


def test_refresh_rejects_access_token(auth_service, customer):
    with pytest.raises(InvalidTokenError) as exc:
        auth_service.refresh_token(customer.access_token)
    assert exc.value.message == "invalid refresh token"


def test_refresh_after_deactivation(auth_service, user_service, customer):
    user_service.deactivate(customer.user.id)
    # deactivation revokes every refresh token
    with pytest.raises(InvalidTokenError):
        auth_service.refresh_token(customer.refresh_token)


def test_refresh_for_inactive_user_is_not_found(auth_service, customer):
    with storage.transaction() as session:
        session.get(User, customer.user.id).is_active = False
    with pytest.raises(NotFoundError):
        auth_service.refresh_token(customer.refresh_token)


def test_logout_revokes_and_is_idempotent(auth_service, customer):
    auth_service.logout(customer.refresh_token)
    auth_service.logout(customer.refresh_token)
    auth_service.logout("not-a-token")
    assert _count(RefreshToken, RefreshToken.user_id == customer.user.id) == 0
    with pytest.raises(InvalidTokenError):
        auth_service.refresh_token(customer.refresh_token)


def test_logout_revokes_expired_refresh_token(auth_service, publisher):
    expired_settings = replace(auth_service.settings, refresh_expires=timedelta(seconds=-30))
    stale = AuthService(storage, expired_settings, publisher).register("old@example.com", "pw12345")

    with pytest.raises(TokenExpiredError):
        auth_service.refresh_token(stale.refresh_token)
    assert _count(RefreshToken, RefreshToken.user_id == stale.user.id) == 1

    auth_service.logout(stale.refresh_token)
    assert _count(RefreshToken, RefreshToken.user_id == stale.user.id) == 0
