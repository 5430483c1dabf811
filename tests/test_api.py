from models import storage
from models.user import User
from tests.conftest import bearer, make_product, promote_to_admin


def register(client, email="carol@example.com", password="pw12345"):
    resp = client.post("/api/v1/auth/register", json={"email": email, "password": password, "first_name": "Carol"})
    assert resp.status_code == 201, resp.get_json()
    return resp.get_json()["data"]


def admin_headers(client):
    data = register(client, email="admin@example.com")
    promote_to_admin(data["user"]["id"])
    return bearer(data["access_token"])


def test_health_and_root(client):
    assert client.get("/api/v1/health").get_json() == {"status": "ok", "version": "1.0.0"}
    assert client.get("/").status_code == 200


def test_register_response_shape(client):
    data = register(client)
    assert data["token_type"] == "bearer"
    assert data["expires_in"] == 900
    assert data["user"]["email"] == "carol@example.com"
    assert data["user"]["role"] == "customer"
    assert "password_hash" not in data["user"]


def test_register_validation_and_conflict(client):
    resp = client.post("/api/v1/auth/register", json={"email": "not-an-email", "password": "pw12345"})
    assert resp.status_code == 422
    assert resp.get_json()["error"] == "VALIDATION_ERROR"
    assert "email" in resp.get_json()["details"]

    register(client)
    resp = client.post("/api/v1/auth/register", json={"email": "carol@example.com", "password": "pw12345"})
    assert resp.status_code == 409
    assert resp.get_json()["error"] == "EMAIL_TAKEN"

    resp = client.post("/api/v1/auth/register", json={"email": "long@example.com", "password": "p" * 80})
    assert resp.status_code == 422
    assert resp.get_json()["error"] == "PASSWORD_TOO_LONG"


def test_login_refresh_logout_flow(client):
    register(client)
    resp = client.post("/api/v1/auth/login", json={"email": "carol@example.com", "password": "bad-password"})
    assert resp.status_code == 401
    assert resp.get_json()["message"] == "invalid credentials"

    tokens = client.post("/api/v1/auth/login", json={"email": "carol@example.com", "password": "pw12345"}).get_json()["data"]
    resp = client.post("/api/v1/auth/refresh", json={"refresh_token": tokens["refresh_token"]})
    assert resp.status_code == 200
    rotated = resp.get_json()["data"]

    resp = client.post("/api/v1/auth/refresh", json={"refresh_token": tokens["refresh_token"]})
    assert resp.status_code == 401
    assert resp.get_json()["error"] == "INVALID_TOKEN"

    assert client.post("/api/v1/auth/logout", json={"refresh_token": rotated["refresh_token"]}).status_code == 204
    assert client.post("/api/v1/auth/logout", json={"refresh_token": rotated["refresh_token"]}).status_code == 204
    assert client.post("/api/v1/auth/refresh", json={"refresh_token": rotated["refresh_token"]}).status_code == 401


def test_publish_failure_is_503(client, publisher, monkeypatch):
    from services.errors import EventPublishError

    def failing_publish(event_type, payload):
        raise EventPublishError()

    monkeypatch.setattr(publisher, "publish", failing_publish)
    resp = client.post("/api/v1/auth/register", json={"email": "dave@example.com", "password": "pw12345"})
    assert resp.status_code == 503
    assert resp.get_json()["error"] == "SERVICE_UNAVAILABLE"

    with storage.transaction() as session:
        assert session.query(User).filter_by(email="dave@example.com").count() == 1


def test_protected_routes_need_access_token(client):
    data = register(client)
    assert client.get("/api/v1/cart").status_code == 401
    assert client.get("/api/v1/cart", headers={"Authorization": "Token abc"}).status_code == 401
    # refresh tokens are not accepted as access tokens
    assert client.get("/api/v1/cart", headers=bearer(data["refresh_token"])).status_code == 401


def test_profile_update_and_deactivate(client):
    data = register(client)
    headers = bearer(data["access_token"])

    resp = client.patch("/api/v1/me", json={"last_name": "Jones", "phone": "555-0100"}, headers=headers)
    assert resp.status_code == 200
    assert resp.get_json()["data"]["last_name"] == "Jones"

    assert client.delete("/api/v1/me", headers=headers).status_code == 204
    assert client.get("/api/v1/me", headers=headers).status_code == 401
    resp = client.post("/api/v1/auth/login", json={"email": "carol@example.com", "password": "pw12345"})
    assert resp.status_code == 401


def test_catalog_writes_need_admin(client, category):
    customer = bearer(register(client)["access_token"])
    payload = {"category_id": category.id, "name": "Plum", "price": "2.00", "stock": 4, "sku": "PLUM"}

    resp = client.post("/api/v1/products", json=payload, headers=customer)
    assert resp.status_code == 403
    assert resp.get_json()["error"] == "FORBIDDEN"

    admin = admin_headers(client)
    resp = client.post("/api/v1/products", json=payload, headers=admin)
    assert resp.status_code == 201
    product = resp.get_json()["data"]
    assert product["price"] == "2.00"

    resp = client.patch(f"/api/v1/products/{product['id']}", json={"price": "2.50"}, headers=admin)
    assert resp.get_json()["data"]["price"] == "2.50"
    assert client.get(f"/api/v1/products/{product['id']}").get_json()["data"]["name"] == "Plum"


def test_categories(client):
    admin = admin_headers(client)
    resp = client.post("/api/v1/categories", json={"name": "Tools"}, headers=admin)
    assert resp.status_code == 201
    tools = resp.get_json()["data"]

    resp = client.post("/api/v1/categories", json={"name": "tools"}, headers=admin)
    assert resp.status_code == 409
    resp = client.post("/api/v1/categories", json={"name": "   "}, headers=admin)
    assert resp.status_code == 422

    listing = client.get("/api/v1/categories").get_json()
    assert [c["name"] for c in listing["data"]] == ["Tools"]

    assert client.delete(f"/api/v1/categories/{tools['id']}", headers=admin).status_code == 204
    assert client.get(f"/api/v1/categories/{tools['id']}").status_code == 404
    # the name is free again
    assert client.post("/api/v1/categories", json={"name": "Tools"}, headers=admin).status_code == 201


def test_stock_adjustment_endpoint(client, category):
    product = make_product(category, "Hammer", stock=1)
    admin = admin_headers(client)

    resp = client.post(
        "/api/v1/transactions",
        json={"product_id": product.id, "delta_quantity": 4, "reason": "purchase", "note": "restock"},
        headers=admin,
    )
    assert resp.status_code == 201
    assert resp.get_json()["data"]["resulting_quantity"] == 5
    assert resp.get_json()["data"]["reason"] == "PURCHASE"

    resp = client.post(
        "/api/v1/transactions",
        json={"product_id": product.id, "delta_quantity": -9, "reason": "ADJUSTMENT"},
        headers=admin,
    )
    assert resp.status_code == 409
    assert resp.get_json()["error"] == "INSUFFICIENT_STOCK"

    resp = client.post(
        "/api/v1/transactions",
        json={"product_id": product.id, "delta_quantity": 1, "reason": "gift"},
        headers=admin,
    )
    assert resp.status_code == 422

    history = client.get(f"/api/v1/products/{product.id}/transactions", headers=admin).get_json()
    assert [t["delta_quantity"] for t in history["data"]] == [4]


def test_shopping_flow(client, category):
    widget = make_product(category, "Widget", price="4.00", stock=5)
    headers = bearer(register(client)["access_token"])

    resp = client.post("/api/v1/cart/items", json={"product_id": widget.id, "quantity": 3}, headers=headers)
    assert resp.status_code == 201
    cart = resp.get_json()["data"]
    assert cart["total"] == "12.00"
    item_id = cart["items"][0]["id"]

    resp = client.patch(f"/api/v1/cart/items/{item_id}", json={"quantity": 6}, headers=headers)
    assert resp.status_code == 409
    assert resp.get_json()["details"]["available"] == 5

    resp = client.post("/api/v1/cart/items", json={"product_id": widget.id, "quantity": 0}, headers=headers)
    assert resp.status_code == 422

    resp = client.post("/api/v1/orders", headers=headers)
    assert resp.status_code == 201
    order = resp.get_json()["data"]
    assert order["total"] == "12.00"
    assert order["items"][0]["price"] == "4.00"

    assert client.get("/api/v1/cart", headers=headers).get_json()["data"]["items"] == []
    assert client.post("/api/v1/orders", headers=headers).get_json()["error"] == "CART_EMPTY"

    listing = client.get("/api/v1/orders", headers=headers).get_json()
    assert [o["id"] for o in listing["data"]] == [order["id"]]
    assert listing["meta"]["total"] == 1
    assert client.get(f"/api/v1/orders/{order['id']}", headers=headers).status_code == 200


def test_cart_item_of_other_user_is_404(client, category):
    widget = make_product(category, "Widget", stock=5)
    alice = bearer(register(client, email="alice@example.com")["access_token"])
    bob = bearer(register(client, email="bob@example.com")["access_token"])
    item_id = client.post(
        "/api/v1/cart/items", json={"product_id": widget.id, "quantity": 1}, headers=alice
    ).get_json()["data"]["items"][0]["id"]

    resp = client.delete(f"/api/v1/cart/items/{item_id}", headers=bob)
    assert resp.status_code == 404
    assert resp.get_json()["message"] == "cart item not found"
    assert client.delete(f"/api/v1/cart/items/{item_id}", headers=alice).status_code == 204


def test_search_endpoint(client, category):
    make_product(category, "Red Apple", price="1.00")
    make_product(category, "Banana", price="0.50")

    body = client.get("/api/v1/products/search?q=apple&page=0&limit=0").get_json()
    assert [p["name"] for p in body["data"]] == ["Red Apple"]
    assert body["data"][0]["rank"] > 0
    assert body["meta"] == {"page": 1, "limit": 10, "total": 1, "total_pages": 1}

    resp = client.get("/api/v1/products/search?min_price=-1")
    assert resp.status_code == 422


def test_category_update_and_product_delete(client, category):
    product = make_product(category, "Pear", stock=2)
    customer = bearer(register(client)["access_token"])
    admin = admin_headers(client)

    assert client.patch(f"/api/v1/categories/{category.id}", json={"name": "Pome"}, headers=customer).status_code == 403
    resp = client.patch(f"/api/v1/categories/{category.id}", json={"name": "Pome", "is_active": False}, headers=admin)
    assert resp.status_code == 200
    assert resp.get_json()["data"]["name"] == "Pome"
    assert resp.get_json()["data"]["is_active"] is False
    assert client.get("/api/v1/categories").get_json()["data"] == []
    resp = client.patch(f"/api/v1/categories/{category.id}", json={"name": ""}, headers=admin)
    assert resp.status_code == 422

    assert client.delete(f"/api/v1/products/{product.id}", headers=customer).status_code == 403
    assert client.delete(f"/api/v1/products/{product.id}", headers=admin).status_code == 204
    assert client.get(f"/api/v1/products/{product.id}").status_code == 404
    assert client.delete("/api/v1/products/missing", headers=admin).status_code == 404
