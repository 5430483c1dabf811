import threading
from decimal import Decimal

import pytest
from marshmallow import ValidationError

from models import storage
from models.cart import CartItem
from services.errors import InsufficientStockError, NotFoundError, NotOwnerError
from tests.conftest import make_product


def test_empty_cart(cart_service, customer):
    cart = cart_service.get_cart(customer.user.id)
    assert cart["user_id"] == customer.user.id
    assert cart["items"] == []
    assert cart["total"] == Decimal("0")


def test_add_item_resolves_product_and_total(cart_service, customer, category):
    apple = make_product(category, "Apple", price="1.50", stock=10)
    pear = make_product(category, "Pear", price="2.25", stock=10)

    cart_service.add_item(customer.user.id, apple.id, 2)
    cart = cart_service.add_item(customer.user.id, pear.id, 1)

    assert [line["product"]["name"] for line in cart["items"]] == ["Apple", "Pear"]
    assert cart["items"][0]["subtotal"] == Decimal("3.00")
    assert cart["items"][0]["product"]["category"]["name"] == "Fruit"
    assert cart["total"] == Decimal("5.25")


def test_adding_same_product_increments_line(cart_service, customer, category):
    apple = make_product(category, "Apple", stock=10)
    cart_service.add_item(customer.user.id, apple.id, 2)
    cart = cart_service.add_item(customer.user.id, apple.id, 3)
    assert len(cart["items"]) == 1
    assert cart["items"][0]["quantity"] == 5


def test_add_up_to_exact_stock_is_allowed(cart_service, customer, category):
    apple = make_product(category, "Apple", stock=5)
    cart = cart_service.add_item(customer.user.id, apple.id, 5)
    assert cart["items"][0]["quantity"] == 5


def test_add_beyond_stock_counts_existing_quantity(cart_service, customer, category):
    apple = make_product(category, "Apple", stock=5)
    cart_service.add_item(customer.user.id, apple.id, 4)
    with pytest.raises(InsufficientStockError) as exc:
        cart_service.add_item(customer.user.id, apple.id, 2)
    assert exc.value.details == {
        "product_id": apple.id,
        "product_name": "Apple",
        "available": 5,
        "requested": 6,
    }
    assert cart_service.get_cart(customer.user.id)["items"][0]["quantity"] == 4


def test_add_unknown_or_inactive_product(cart_service, customer, category):
    hidden = make_product(category, "Hidden", is_active=False)
    with pytest.raises(NotFoundError):
        cart_service.add_item(customer.user.id, "missing", 1)
    with pytest.raises(NotFoundError):
        cart_service.add_item(customer.user.id, hidden.id, 1)


def test_non_positive_quantity_is_rejected(cart_service, customer, category):
    apple = make_product(category, "Apple")
    with pytest.raises(ValidationError):
        cart_service.add_item(customer.user.id, apple.id, 0)


def test_update_item_sets_absolute_quantity(cart_service, customer, category):
    apple = make_product(category, "Apple", stock=5)
    cart = cart_service.add_item(customer.user.id, apple.id, 4)
    item_id = cart["items"][0]["id"]

    cart = cart_service.update_item(customer.user.id, item_id, 5)
    assert cart["items"][0]["quantity"] == 5
    with pytest.raises(InsufficientStockError):
        cart_service.update_item(customer.user.id, item_id, 6)


def test_other_users_item_is_reported_as_not_found(cart_service, auth_service, customer, category):
    apple = make_product(category, "Apple")
    item_id = cart_service.add_item(customer.user.id, apple.id, 1)["items"][0]["id"]
    mallory = auth_service.register("mallory@example.com", "pw12345")

    with pytest.raises(NotOwnerError) as exc:
        cart_service.update_item(mallory.user.id, item_id, 2)
    assert isinstance(exc.value, NotFoundError)
    with pytest.raises(NotFoundError):
        cart_service.remove_item(mallory.user.id, item_id)
    assert cart_service.get_cart(customer.user.id)["items"][0]["quantity"] == 1


def test_remove_item_soft_deletes_line(cart_service, customer, category):
    apple = make_product(category, "Apple")
    item_id = cart_service.add_item(customer.user.id, apple.id, 1)["items"][0]["id"]

    cart_service.remove_item(customer.user.id, item_id)
    assert cart_service.get_cart(customer.user.id)["items"] == []
    with storage.transaction() as session:
        assert session.get(CartItem, item_id).deleted_at is not None
    with pytest.raises(NotFoundError):
        cart_service.remove_item(customer.user.id, item_id)

    # a fresh line for the same product can be added again
    cart = cart_service.add_item(customer.user.id, apple.id, 2)
    assert cart["items"][0]["quantity"] == 2
    assert cart["items"][0]["id"] != item_id


def test_concurrent_adds_cannot_oversell_the_cart(cart_service, customer, category):
    apple = make_product(category, "Apple", stock=5)
    storage.close()
    barrier = threading.Barrier(2)
    outcomes = []

    def add():
        barrier.wait()
        try:
            cart_service.add_item(customer.user.id, apple.id, 3)
            outcomes.append("ok")
        except InsufficientStockError:
            outcomes.append("insufficient")
        finally:
            storage.close()

    threads = [threading.Thread(target=add) for _ in range(2)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert sorted(outcomes) == ["insufficient", "ok"]
    assert cart_service.get_cart(customer.user.id)["items"][0]["quantity"] == 3
