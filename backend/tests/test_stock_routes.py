# Overview: Pytest coverage for stock API routes, authentication and roles.

from backoffice.models import LedgerEvent, StockEntry


def _batch(shirt, location, rows, **extra):
    return {"product_id": shirt.id, "location_id": location.id, "rows": rows, **extra}


class TestAuthentication:

    def test_missing_token_is_401(self, client, db_session, shirt):
        resp = client.get(f"/api/stock/products/{shirt.id}/catalog")
        assert resp.status_code == 401

    def test_unknown_token_is_401(self, client, db_session, shirt):
        resp = client.get(
            f"/api/stock/products/{shirt.id}/catalog",
            headers={"Authorization": "Bearer not-issued"},
        )
        assert resp.status_code == 401
        assert resp.get_json()["error"] == "Invalid or expired token"

    def test_viewer_cannot_submit_batches(self, client, viewer_headers_a, shirt, location_a):
        resp = client.post(
            "/api/stock/batches",
            json=_batch(shirt, location_a, [{"options": shirt.selection(Size="M"), "quantity": 1, "price": 5}]),
            headers=viewer_headers_a,
        )
        assert resp.status_code == 403
        assert resp.get_json()["required_role"] == ["admin", "employee"]

    def test_viewer_can_read_catalog(self, client, viewer_headers_a, shirt):
        resp = client.get(f"/api/stock/products/{shirt.id}/catalog", headers=viewer_headers_a)
        assert resp.status_code == 200


class TestCatalogRoute:

    def test_returns_characteristics_with_options(self, client, admin_headers_a, sneaker):
        resp = client.get(f"/api/stock/products/{sneaker.id}/catalog", headers=admin_headers_a)

        assert resp.status_code == 200
        data = resp.get_json()
        assert [c["name"] for c in data["characteristics"]] == ["Size", "Color"]
        assert [o["value"] for o in data["characteristics"][1]["options"]] == ["Red", "Blue"]

    def test_unknown_product_is_404(self, client, admin_headers_a):
        resp = client.get("/api/stock/products/999999/catalog", headers=admin_headers_a)
        assert resp.status_code == 404


class TestBatchRoute:

    def test_all_rows_succeed_is_201(self, client, db_session, employee_headers_a, shirt, location_a):
        rows = [
            {"options": shirt.selection(Size="M"), "quantity": 5, "price": "200"},
            {"options": shirt.selection(Size="L"), "quantity": "2", "price": 180},
        ]

        resp = client.post("/api/stock/batches", json=_batch(shirt, location_a, rows), headers=employee_headers_a)

        assert resp.status_code == 201
        data = resp.get_json()
        assert data["ok"] is True
        assert [r["status"] for r in data["rows"]] == ["succeeded", "succeeded"]
        assert db_session.query(StockEntry).count() == 2

        actors = {e.actor_user_id for e in db_session.query(LedgerEvent).all()}
        assert actors == {"employee-a"}

    def test_partial_failure_is_422_with_full_report(self, client, db_session, admin_headers_a, shirt, location_a):
        rows = [
            {"options": shirt.selection(Size="S"), "quantity": 0, "price": 10},
            {"options": shirt.selection(Size="M"), "quantity": 1, "price": 10},
        ]

        resp = client.post("/api/stock/batches", json=_batch(shirt, location_a, rows), headers=admin_headers_a)

        assert resp.status_code == 422
        data = resp.get_json()
        assert data["ok"] is False
        assert data["errors"][0]["row_number"] == 1
        assert data["errors"][0]["fields"] == {"quantity": "quantity must be > 0"}
        assert data["rows"][1]["status"] == "succeeded"
        assert db_session.query(StockEntry).count() == 1

    def test_entry_date_round_trips(self, client, admin_headers_a, shirt, location_a):
        rows = [{"options": shirt.selection(Size="M"), "quantity": 1, "price": 10}]

        resp = client.post(
            "/api/stock/batches",
            json=_batch(shirt, location_a, rows, entry_date="2026-01-31"),
            headers=admin_headers_a,
        )

        assert resp.status_code == 201
        data = resp.get_json()
        assert data["entry_date"] == "2026-01-31T00:00:00Z"
        assert data["rows"][0]["stock_entry"]["entry_date"] == "2026-01-31T00:00:00Z"

    def test_missing_ids_are_400(self, client, admin_headers_a, shirt):
        resp = client.post("/api/stock/batches", json={"product_id": shirt.id, "rows": []}, headers=admin_headers_a)
        assert resp.status_code == 400
        assert resp.get_json()["error"] == "location_id is required"

    def test_rows_must_be_a_list(self, client, admin_headers_a, shirt, location_a):
        resp = client.post(
            "/api/stock/batches",
            json={"product_id": shirt.id, "location_id": location_a.id, "rows": {"1": 2}},
            headers=admin_headers_a,
        )
        assert resp.status_code == 400

    def test_empty_rows_are_400(self, client, admin_headers_a, shirt, location_a):
        resp = client.post("/api/stock/batches", json=_batch(shirt, location_a, []), headers=admin_headers_a)
        assert resp.status_code == 400

    def test_out_of_range_values_are_reported_per_row(self, client, db_session, admin_headers_a, shirt, location_a):
        rows = [
            {"options": shirt.selection(Size="S"), "quantity": 1, "price": 1e30},
            {"options": shirt.selection(Size="M"), "quantity": 10**30, "price": 10},
            {"options": shirt.selection(Size="L"), "quantity": 1, "price": 10},
        ]

        resp = client.post("/api/stock/batches", json=_batch(shirt, location_a, rows), headers=admin_headers_a)

        assert resp.status_code == 422
        data = resp.get_json()
        assert [e["row_number"] for e in data["errors"]] == [1, 2]
        assert set(data["errors"][0]["fields"]) == {"price"}
        assert set(data["errors"][1]["fields"]) == {"quantity"}
        assert data["rows"][2]["status"] == "succeeded"
        assert db_session.query(StockEntry).count() == 1


class TestPreviewAndOverview:

    def test_preview_reports_current_stock(self, client, admin_headers_a, shirt, location_a):
        client.post(
            "/api/stock/batches",
            json=_batch(shirt, location_a, [{"options": shirt.selection(Size="M"), "quantity": 4, "price": 99}]),
            headers=admin_headers_a,
        )

        resp = client.post(
            "/api/stock/preview",
            json=_batch(shirt, location_a, [{"options": shirt.selection(Size="M")}, {"options": {}}]),
            headers=admin_headers_a,
        )

        assert resp.status_code == 200
        rows = resp.get_json()["rows"]
        assert rows[0]["current_stock"] == 4
        assert rows[0]["existing_price_cents"] == 9900
        assert rows[1]["complete"] is False

    def test_overview_sums_per_location(self, client, admin_headers_a, shirt, location_a, location_a2):
        for location, qty in ((location_a, 4), (location_a2, 6)):
            client.post(
                "/api/stock/batches",
                json=_batch(shirt, location, [
                    {"options": shirt.selection(Size="M"), "quantity": qty, "price": 10},
                    {"options": shirt.selection(Size="S"), "quantity": 1, "price": 10},
                ]),
                headers=admin_headers_a,
            )

        resp = client.get(f"/api/stock/products/{shirt.id}/overview", headers=admin_headers_a)

        assert resp.status_code == 200
        data = resp.get_json()
        assert data["total_quantity"] == 12
        assert {(r["location_name"], r["quantity"]) for r in data["by_location"]} == {("Centro", 5), ("Norte", 7)}
        assert data["option_values"] == {"Size": ["M", "S"]}


class TestLedgerRoute:

    def test_admin_lists_events(self, client, admin_headers_a, shirt, location_a):
        client.post(
            "/api/stock/batches",
            json=_batch(shirt, location_a, [{"options": shirt.selection(Size="M"), "quantity": 1, "price": 10}]),
            headers=admin_headers_a,
        )

        resp = client.get("/api/ledger?entity_type=stock_entry", headers=admin_headers_a)

        assert resp.status_code == 200
        items = resp.get_json()["items"]
        assert [i["event_type"] for i in items] == ["stock.received"]

    def test_employee_is_denied(self, client, employee_headers_a):
        resp = client.get("/api/ledger", headers=employee_headers_a)
        assert resp.status_code == 403


class TestHealth:

    def test_health_is_ok(self, client, db_session):
        resp = client.get("/health")
        assert resp.status_code == 200
        assert resp.get_json()["checks"]["database"]["status"] == "healthy"
