from decimal import Decimal

import pytest

from api import create_app
from models import storage
from models.category import Category
from models.product import Product
from models.user import Role, User
from services.events import InMemoryEventPublisher


@pytest.fixture
def publisher():
    return InMemoryEventPublisher()


@pytest.fixture
def app(tmp_path, publisher):
    app = create_app(
        "testing",
        overrides={"DATABASE_URL": f"sqlite:///{tmp_path / 'storefront.db'}"},
        publisher=publisher,
    )
    yield app
    storage.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def auth_service(app):
    return app.extensions["auth_service"]


@pytest.fixture
def cart_service(app):
    return app.extensions["cart_service"]


@pytest.fixture
def order_service(app):
    return app.extensions["order_service"]


@pytest.fixture
def product_service(app):
    return app.extensions["product_service"]


@pytest.fixture
def user_service(app):
    return app.extensions["user_service"]


@pytest.fixture
def category(app):
    return make_category("Fruit")


@pytest.fixture
def customer(auth_service):
    return auth_service.register("alice@example.com", "pw12345", first_name="Alice")


def make_category(name):
    with storage.transaction() as session:
        c = Category(name=name)
        session.add(c)
    return c


def make_product(category, name, price="10.00", stock=5, sku=None, description=None, is_active=True):
    with storage.transaction() as session:
        p = Product(
            category_id=category.id,
            name=name,
            description=description,
            price=Decimal(price),
            stock=stock,
            sku=sku or name.upper().replace(" ", "-"),
            is_active=is_active,
        )
        session.add(p)
    return p


def get_product(product_id):
    with storage.transaction() as session:
        return session.get(Product, product_id, populate_existing=True)


def promote_to_admin(user_id):
    with storage.transaction() as session:
        session.get(User, user_id).role = Role.ADMIN


def bearer(token):
    return {"Authorization": f"Bearer {token}"}
