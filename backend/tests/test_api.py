"""
HTTP API tests.

Verifies:
- Register/login issue a usable bearer token; protected routes return 401 without one
- Ledger errors map to stable status codes and error kinds
- The sale flow through /sales and the stock flow through /stock-transactions
- List endpoints page and sort
"""

import jwt
import pytest

from conftest import auth_headers, get_auth_token
from retail_ledger.models import User


# =============================================================================
# UNAUTHENTICATED ACCESS: 401
# =============================================================================


class TestUnauthenticatedAccess:

    @pytest.mark.parametrize(
        "method,path",
        [
            ("GET", "/products"),
            ("POST", "/products"),
            ("GET", "/product-variants"),
            ("GET", "/product-variants/1/stock"),
            ("GET", "/stock-transactions"),
            ("POST", "/stock-transactions"),
            ("GET", "/sales"),
            ("POST", "/sales"),
            ("PUT", "/sales/1"),
            ("GET", "/sales-records"),
            ("GET", "/auth/me"),
        ],
    )
    def test_requires_auth(self, client, db_session, method, path):
        resp = getattr(client, method.lower())(path)
        assert resp.status_code == 401, f"{method} {path} returned {resp.status_code}"

    def test_garbage_token(self, client, db_session):
        resp = client.get("/products", headers=auth_headers("not-a-jwt"))
        assert resp.status_code == 401

    def test_token_signed_with_other_secret(self, client, user):
        token = jwt.encode({"sub": str(user.id), "exp": 4102444800}, "wrong-secret", algorithm="HS256")
        resp = client.get("/products", headers=auth_headers(token))
        assert resp.status_code == 401

    def test_expired_token(self, client, user):
        token = jwt.encode({"sub": str(user.id), "exp": 1}, "test-jwt-secret", algorithm="HS256")
        resp = client.get("/products", headers=auth_headers(token))
        assert resp.status_code == 401
        assert resp.json["error"] == "Token expired"

    def test_deactivated_user(self, client, db_session, user, headers):
        user.is_active = False
        db_session.commit()
        resp = client.get("/products", headers=headers)
        assert resp.status_code == 401

    def test_health_is_public(self, client, db_session):
        resp = client.get("/health")
        assert resp.status_code == 200
        assert resp.json["checks"]["database"]["status"] == "healthy"


# =============================================================================
# AUTH
# =============================================================================


class TestAuth:

    def test_register_then_login(self, client, db_session):
        resp = client.post("/auth/register", json={
            "name": "New Person",
            "email": "New@Example.com",
            "password": "longenough",
        })
        assert resp.status_code == 201
        assert resp.json["user"]["email"] == "new@example.com"
        assert resp.json["user"]["role"] == "staff"
        assert "password_hash" not in resp.json["user"]

        token = get_auth_token(client, "new@example.com", "longenough")
        assert token
        me = client.get("/auth/me", headers=auth_headers(token))
        assert me.status_code == 200
        assert me.json["user"]["name"] == "New Person"

    def test_register_duplicate_email(self, client, user):
        resp = client.post("/auth/register", json={
            "name": "Again", "email": user.email, "password": "longenough",
        })
        assert resp.status_code == 409

    @pytest.mark.parametrize("payload", [
        {"name": "X", "email": "x@example.com", "password": "short"},
        {"name": "X", "email": "not-an-email", "password": "longenough"},
        {"name": "X", "email": "x@example.com"},
        {"name": "X", "email": "x@example.com", "password": "longenough", "role": "admin"},
    ])
    def test_register_rejects(self, client, db_session, payload):
        resp = client.post("/auth/register", json=payload)
        assert resp.status_code == 400

    def test_login_wrong_password(self, client, user):
        resp = client.post("/auth/login", json={"email": user.email, "password": "nope-nope"})
        assert resp.status_code == 401

    def test_login_missing_fields(self, client, db_session):
        resp = client.post("/auth/login", json={"email": "a@b.c"})
        assert resp.status_code == 400

    def test_list_users(self, client, db_session, user, headers, password_hash):
        db_session.add_all([
            User(name="Ada Admin", email="ada@example.com", password_hash=password_hash, role="admin"),
            User(name="Bob Clerk", email="bob@shop.test", password_hash=password_hash, role="staff"),
        ])
        db_session.commit()

        resp = client.get("/auth/users", headers=headers)
        assert resp.status_code == 200
        assert resp.json["meta"]["totalItems"] == 3
        assert resp.json["meta"]["sort"] == "desc"
        assert all("password_hash" not in u for u in resp.json["data"])

        admins = client.get("/auth/users?role=admin", headers=headers).json
        assert [u["email"] for u in admins["data"]] == ["ada@example.com"]

        by_name = client.get("/auth/users?search=clerk", headers=headers).json
        assert [u["name"] for u in by_name["data"]] == ["Bob Clerk"]

        by_email = client.get("/auth/users?search=example.com&limit=1&page=2", headers=headers).json
        assert by_email["meta"]["totalItems"] == 2
        assert by_email["meta"]["totalPages"] == 2
        assert len(by_email["data"]) == 1

    def test_list_users_requires_auth(self, client, db_session):
        assert client.get("/auth/users").status_code == 401

    def test_token_claims(self, client, user):
        resp = client.post("/auth/login", json={"email": user.email, "password": "Password123!"})
        claims = jwt.decode(resp.json["token"], "test-jwt-secret", algorithms=["HS256"])
        assert claims["sub"] == str(user.id)
        assert claims["email"] == user.email
        assert claims["exp"] > claims["iat"]
        assert resp.json["expires_in"] == 1440 * 60


# =============================================================================
# CATALOG
# =============================================================================


class TestCatalogApi:

    def test_product_and_variant_flow(self, client, headers):
        resp = client.post("/products", json={"name": "Tee", "category": "Shirts"}, headers=headers)
        assert resp.status_code == 201
        product_id = resp.json["id"]

        resp = client.post("/product-variants", json={
            "product_id": product_id, "color": "Black", "size": "S", "price": "19.90", "initial_stock": 5,
        }, headers=headers)
        assert resp.status_code == 201
        variant = resp.json
        assert variant["price"] == "19.90"
        assert variant["stock"] == 5

        resp = client.get(f"/products/{product_id}/variants", headers=headers)
        assert [v["id"] for v in resp.json["data"]] == [variant["id"]]

        resp = client.get(f"/product-variants/{variant['id']}/stock", headers=headers)
        assert resp.json["stock"] == 5

        resp = client.delete(f"/products/{product_id}", headers=headers)
        assert resp.status_code == 409

    def test_variant_stock_is_read_only(self, client, headers, variant):
        resp = client.put(f"/product-variants/{variant.id}", json={"stock": 50}, headers=headers)
        assert resp.status_code == 400

    @pytest.mark.parametrize("price", ["-1.00", "1.999", "abc"])
    def test_variant_bad_price(self, client, headers, product, price):
        resp = client.post("/product-variants", json={"product_id": product.id, "price": price}, headers=headers)
        assert resp.status_code == 400

    def test_variant_unknown_product(self, client, headers):
        resp = client.post("/product-variants", json={"product_id": 999, "price": "1.00"}, headers=headers)
        assert resp.status_code == 404
        assert resp.json["kind"] == "NotFound"

    def test_missing_product(self, client, headers):
        assert client.get("/products/999", headers=headers).status_code == 404

    def test_delete_product(self, client, headers, product):
        assert client.delete(f"/products/{product.id}", headers=headers).status_code == 204
        assert client.get(f"/products/{product.id}", headers=headers).status_code == 404


# =============================================================================
# STOCK
# =============================================================================


class TestStockApi:

    def test_record_and_overdraw(self, client, headers, variant):
        resp = client.post("/stock-transactions", json={
            "product_variant_id": variant.id, "qty": 10, "type": "in",
        }, headers=headers)
        assert resp.status_code == 201
        assert resp.json["stock"] == 10

        resp = client.post("/stock-transactions", json={
            "product_variant_id": variant.id, "qty": 3, "type": "out",
        }, headers=headers)
        assert resp.json["stock"] == 7

        resp = client.post("/stock-transactions", json={
            "product_variant_id": variant.id, "qty": 8, "type": "out",
        }, headers=headers)
        assert resp.status_code == 409
        assert resp.json["kind"] == "InsufficientStock"
        assert resp.json["details"]["on_hand"] == 7

        listed = client.get(f"/stock-transactions?product_variant_id={variant.id}", headers=headers)
        assert listed.json["meta"]["totalItems"] == 2

    @pytest.mark.parametrize("body", [
        {"qty": 0, "type": "in"},
        {"qty": -2, "type": "in"},
        {"qty": 1, "type": "sideways"},
    ])
    def test_invalid_movement(self, client, headers, variant, body):
        body["product_variant_id"] = variant.id
        resp = client.post("/stock-transactions", json=body, headers=headers)
        assert resp.status_code == 400
        assert resp.json["kind"] == "InvalidQuantity"

    def test_unknown_variant(self, client, headers):
        resp = client.post("/stock-transactions", json={
            "product_variant_id": 999, "qty": 1, "type": "in",
        }, headers=headers)
        assert resp.status_code == 404

    def test_no_update_or_delete(self, client, headers, make_variant):
        make_variant(initial_stock=1)
        tx_id = client.get("/stock-transactions", headers=headers).json["data"][0]["id"]
        assert client.get(f"/stock-transactions/{tx_id}", headers=headers).status_code == 200
        assert client.put(f"/stock-transactions/{tx_id}", json={}, headers=headers).status_code == 405
        assert client.delete(f"/stock-transactions/{tx_id}", headers=headers).status_code == 405


# =============================================================================
# SALES
# =============================================================================


class TestSalesApi:

    def test_sale_flow(self, client, headers, user, make_variant):
        a = make_variant(price="9.99")
        b = make_variant(price="5.00")

        resp = client.post("/sales", headers=headers)
        assert resp.status_code == 201
        sale = resp.json
        assert sale["status"] == "pending"
        assert sale["total_price"] == "0.00"
        assert sale["user_id"] == user.id

        resp = client.put(f"/sales/{sale['id']}", json={"salesRecords": [
            {"product_variant_id": a.id, "qty": 2},
            {"product_variant_id": b.id, "qty": 1},
        ]}, headers=headers)
        assert resp.status_code == 200
        assert resp.json["total_price"] == "24.98"
        assert len(resp.json["salesRecords"]) == 2

        resp = client.put(f"/sales/{sale['id']}", json={"salesRecords": [
            {"product_variant_id": a.id, "qty": 1},
        ], "status": "completed"}, headers=headers)
        assert resp.json["total_price"] == "9.99"
        assert resp.json["status"] == "completed"

        resp = client.post(f"/sales/{sale['id']}/status", json={"status": "pending"}, headers=headers)
        assert resp.status_code == 409
        assert resp.json["kind"] == "InvalidStatusTransition"

        records = client.get(f"/sales-records?sales_id={sale['id']}", headers=headers)
        assert records.json["meta"]["totalItems"] == 1
        assert records.json["data"][0]["price_each"] == "9.99"

    def test_open_with_records(self, client, headers, make_variant):
        v = make_variant(price="10.00")
        resp = client.post("/sales", json={"salesRecords": [{"product_variant_id": v.id, "qty": 1}]}, headers=headers)
        assert resp.status_code == 201
        assert resp.json["total_price"] == "10.00"

    def test_bad_line_item(self, client, headers, make_variant):
        v = make_variant(price="10.00")
        sale_id = client.post("/sales", headers=headers).json["id"]
        resp = client.put(f"/sales/{sale_id}", json={"salesRecords": [
            {"product_variant_id": v.id, "qty": 0},
        ]}, headers=headers)
        assert resp.status_code == 400
        assert resp.json["kind"] == "InvalidLineItem"
        assert resp.json["details"]["items"][0]["index"] == 0

    def test_client_price_rejected(self, client, headers, make_variant):
        v = make_variant(price="10.00")
        sale_id = client.post("/sales", headers=headers).json["id"]
        resp = client.put(f"/sales/{sale_id}", json={"salesRecords": [
            {"product_variant_id": v.id, "qty": 1, "price_each": "0.01"},
        ]}, headers=headers)
        assert resp.status_code == 400

    def test_rejected_status_keeps_old_items(self, client, headers, make_variant):
        ten = make_variant(price="10.00")
        three = make_variant(price="3.00")
        sale_id = client.post("/sales", json={"salesRecords": [{"product_variant_id": ten.id, "qty": 1}]},
                              headers=headers).json["id"]
        client.post(f"/sales/{sale_id}/status", json={"status": "completed"}, headers=headers)

        resp = client.put(f"/sales/{sale_id}", json={
            "salesRecords": [{"product_variant_id": three.id, "qty": 5}],
            "status": "pending",
        }, headers=headers)
        assert resp.status_code == 409

        sale = client.get(f"/sales/{sale_id}", headers=headers).json
        assert sale["total_price"] == "10.00"
        assert sale["status"] == "completed"
        assert [(r["product_variant_id"], r["qty"]) for r in sale["salesRecords"]] == [(ten.id, 1)]

    def test_unknown_status_keeps_old_items(self, client, headers, make_variant):
        v = make_variant(price="2.00")
        sale_id = client.post("/sales", headers=headers).json["id"]
        resp = client.put(f"/sales/{sale_id}", json={
            "salesRecords": [{"product_variant_id": v.id, "qty": 2}],
            "status": "shipped",
        }, headers=headers)
        assert resp.status_code == 409
        sale = client.get(f"/sales/{sale_id}", headers=headers).json
        assert sale["total_price"] == "0.00"
        assert sale["salesRecords"] == []

    def test_empty_update(self, client, headers):
        sale_id = client.post("/sales", headers=headers).json["id"]
        assert client.put(f"/sales/{sale_id}", json={}, headers=headers).status_code == 400

    def test_missing_sale(self, client, headers):
        assert client.get("/sales/999", headers=headers).status_code == 404
        assert client.delete("/sales/999", headers=headers).status_code == 404

    def test_delete_sale(self, client, headers):
        sale_id = client.post("/sales", headers=headers).json["id"]
        assert client.delete(f"/sales/{sale_id}", headers=headers).status_code == 204
        assert client.get(f"/sales/{sale_id}", headers=headers).status_code == 404

    def test_total_endpoint(self, client, headers, make_variant):
        v = make_variant(price="0.33")
        sale_id = client.post("/sales", json={"salesRecords": [{"product_variant_id": v.id, "qty": 3}]},
                              headers=headers).json["id"]
        resp = client.get(f"/sales/{sale_id}/total", headers=headers)
        assert resp.json["total_price"] == "0.99"


# =============================================================================
# LISTING
# =============================================================================


class TestListing:

    def test_page_limit_and_sort(self, client, headers, ledger):
        for n in range(12):
            ledger.catalog.create_product({"name": f"P{n:02d}"})

        resp = client.get("/products?page=2&limit=5&sort=desc&sortField=id", headers=headers)
        meta = resp.json["meta"]
        assert meta["totalItems"] == 12
        assert meta["totalPages"] == 3
        assert meta["page"] == 2
        names = [p["name"] for p in resp.json["data"]]
        assert names == ["P06", "P05", "P04", "P03", "P02"]

    def test_defaults_and_invalid_values(self, client, headers, ledger):
        for n in range(12):
            ledger.catalog.create_product({"name": f"P{n:02d}"})

        resp = client.get("/products?page=0&limit=abc&sort=sideways&sortField=name", headers=headers)
        meta = resp.json["meta"]
        assert meta["page"] == 1
        assert meta["perPage"] == 10
        assert meta["sort"] == "asc"
        assert meta["sortField"] == "createdAt"
        assert len(resp.json["data"]) == 10

    def test_limit_is_capped(self, client, headers, db_session):
        resp = client.get("/products?limit=1000", headers=headers)
        assert resp.json["meta"]["perPage"] == 100
