"""HTTP surface: auth, envelopes and status codes."""

from sqlalchemy.exc import OperationalError

from conftest import auth_headers, make_product
from shoptally.models import Product, Sale
from shoptally.services import concurrency, session_service, stock_service


def _create(client, token, product_id, qty, price=10, **extra):
    body = {"items": [{"itemId": product_id, "quantity": qty, "unitSalePrice": price}]}
    body.update(extra)
    return client.post("/api/sales", json=body, headers=auth_headers(token))


class TestAuth:

    def test_missing_token(self, client, db_session):
        response = client.get("/api/sales")
        assert response.status_code == 401
        assert response.json["success"] is False

    def test_unknown_token(self, client, db_session):
        response = client.get("/api/sales", headers=auth_headers("not-a-token"))
        assert response.status_code == 401

    def test_revoked_token(self, client, db_session, auth_token):
        session_service.revoke_session(auth_token)
        response = client.get("/api/sales", headers=auth_headers(auth_token))
        assert response.status_code == 401


class TestSalesApi:

    def test_create_returns_201_with_summary(self, client, db_session, auth_token, product):
        response = _create(client, auth_token, product.id, 3)

        assert response.status_code == 201
        body = response.json
        assert body["success"] is True
        assert body["data"]["totalSales"] == 30.0
        assert body["data"]["totalProfit"] == 18.0
        assert body["data"]["itemCount"] == 1
        assert db_session.get(Product, product.id).current_stock == 7

    def test_insufficient_stock_is_400_with_details(self, client, db_session, auth_token, product):
        response = _create(client, auth_token, product.id, 11)

        assert response.status_code == 400
        assert response.json["success"] is False
        assert "Insufficient stock" in response.json["error"]
        assert response.json["details"]["items"][0]["on_hand"] == 10
        assert db_session.get(Product, product.id).current_stock == 10

    def test_validation_error_is_400(self, client, db_session, auth_token):
        response = client.post("/api/sales", json={"items": []}, headers=auth_headers(auth_token))
        assert response.status_code == 400
        assert response.json == {"success": False, "error": "At least one item is required"}

    def test_non_json_body_is_400(self, client, db_session, auth_token):
        response = client.post("/api/sales", data="nope", headers=auth_headers(auth_token))
        assert response.status_code == 400

    def test_unknown_product_is_404(self, client, db_session, auth_token):
        response = _create(client, auth_token, 999999, 1)
        assert response.status_code == 404

    def test_malformed_id_is_400(self, client, db_session, auth_token):
        response = client.get("/api/sales/abc", headers=auth_headers(auth_token))
        assert response.status_code == 400

    def test_non_ascii_digit_id_is_400(self, client, db_session, auth_token):
        response = client.get("/api/sales/\N{SUPERSCRIPT TWO}", headers=auth_headers(auth_token))
        assert response.status_code == 400
        assert response.json["success"] is False

    def test_huge_amount_is_400(self, client, db_session, auth_token, product):
        response = _create(client, auth_token, product.id, 1, price=1e30)
        assert response.status_code == 400
        assert response.json["success"] is False

    def test_huge_service_quantity_is_400(self, client, db_session, auth_token, service):
        body = {"items": [{
            "itemId": service.id, "itemType": "Service", "quantity": 10**19, "unitSalePrice": 9999999,
        }]}
        response = client.post("/api/sales", json=body, headers=auth_headers(auth_token))
        assert response.status_code == 400

    def test_storage_failure_is_503(self, client, db_session, auth_token, product, monkeypatch):
        def _locked(deltas):
            raise OperationalError("UPDATE products", {}, Exception("database is locked"))

        monkeypatch.setattr(concurrency.time, "sleep", lambda seconds: None)
        monkeypatch.setattr(stock_service, "apply_deltas", _locked)

        response = _create(client, auth_token, product.id, 1)

        assert response.status_code == 503
        assert response.json == {
            "success": False,
            "error": "Cannot connect to database. Please try again later.",
        }
        assert db_session.query(Sale).count() == 0
        assert db_session.get(Product, product.id).current_stock == 10

    def test_missing_sale_is_404(self, client, db_session, auth_token):
        response = client.get("/api/sales/999999", headers=auth_headers(auth_token))
        assert response.status_code == 404
        assert response.json["error"] == "Sale not found"

    def test_get_update_delete(self, client, db_session, auth_token, product):
        sale_id = _create(client, auth_token, product.id, 3).json["data"]["saleId"]

        fetched = client.get(f"/api/sales/{sale_id}", headers=auth_headers(auth_token))
        assert fetched.status_code == 200
        assert fetched.json["data"]["items"][0]["productDetails"]["category"] == "Kitchen"

        updated = client.put(
            f"/api/sales/{sale_id}",
            json={"items": [{"itemId": product.id, "quantity": 5, "unitSalePrice": 10}]},
            headers=auth_headers(auth_token),
        )
        assert updated.status_code == 200
        assert updated.json["data"]["totalSales"] == 50.0
        assert db_session.get(Product, product.id).current_stock == 5

        deleted = client.delete(f"/api/sales/{sale_id}", headers=auth_headers(auth_token))
        assert deleted.status_code == 200
        assert deleted.json["success"] is True
        assert db_session.get(Product, product.id).current_stock == 10

    def test_list_with_filters(self, client, db_session, auth_token, product, second_product):
        _create(client, auth_token, product.id, 1, saleDate="2026-03-01T10:00:00Z")
        _create(client, auth_token, second_product.id, 1, saleDate="2026-03-02T10:00:00Z")

        response = client.get(
            f"/api/sales?productId={product.id}&startDate=2026-03-01&endDate=2026-03-01",
            headers=auth_headers(auth_token),
        )
        assert response.status_code == 200
        assert len(response.json["data"]) == 1
        assert response.json["data"][0]["displayName"] == "Mug"

    def test_bad_date_filter_is_400(self, client, db_session, auth_token):
        response = client.get("/api/sales?startDate=someday", headers=auth_headers(auth_token))
        assert response.status_code == 400

    def test_business_header_selects_scope(self, client, db_session, owner, auth_token):
        hat = make_product(db_session, owner, name="Hat", business_id="shop2")

        default_scope = _create(client, auth_token, hat.id, 1)
        assert default_scope.status_code == 404

        response = client.post(
            "/api/sales",
            json={"items": [{"itemId": hat.id, "quantity": 1, "unitSalePrice": 10}]},
            headers=auth_headers(auth_token, business_id="shop2"),
        )
        assert response.status_code == 201


class TestOtherEndpoints:

    def test_health(self, client, db_session):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json["status"] == "healthy"

    def test_expenses_roundtrip(self, client, db_session, auth_token):
        created = client.post(
            "/api/expenses",
            json={"category": "Rent", "description": "March", "amount": 100},
            headers=auth_headers(auth_token),
        )
        assert created.status_code == 201
        expense_id = created.json["data"]["id"]

        listed = client.get("/api/expenses?category=Rent", headers=auth_headers(auth_token))
        assert [e["id"] for e in listed.json["data"]] == [expense_id]

        bad = client.post("/api/expenses", json={"category": "Rent"}, headers=auth_headers(auth_token))
        assert bad.status_code == 400

    def test_reports_and_dashboard(self, client, db_session, auth_token, product):
        _create(client, auth_token, product.id, 2)
        headers = auth_headers(auth_token)

        assert client.get("/api/reports/summary?groupBy=month", headers=headers).status_code == 200
        assert client.get("/api/reports/finance?viewType=yearly", headers=headers).status_code == 200
        assert client.get("/api/reports/trends?months=6", headers=headers).status_code == 200
        assert client.get("/api/reports/summary?groupBy=week", headers=headers).status_code == 400
        assert client.get("/api/reports/trends?months=0", headers=headers).status_code == 400
        assert client.get("/api/reports/finance?month=0", headers=headers).status_code == 400
        assert client.get("/api/reports/finance?year=10000", headers=headers).status_code == 400

        metrics = client.get("/api/dashboard/metrics", headers=headers)
        assert metrics.status_code == 200
        assert metrics.json["data"]["today"]["revenue"] == 20.0

        overview = client.get("/api/dashboard/overview", headers=headers)
        assert overview.status_code == 200
        assert overview.json["data"]["businessCount"] == 1
