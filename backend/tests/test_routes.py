"""
HTTP API tests.

Verifies:
- Identity headers are required (401)
- Read routes check permissions (403), mutations are refused by the service
- Errors come back as {"error", "message", "details"}
- A full sale cycle through the API
"""


class TestIdentity:

    def test_missing_headers(self, client, db_session):
        response = client.get("/api/documents")
        assert response.status_code == 401
        assert response.get_json()["error"] == "UNAUTHENTICATED"

    def test_unknown_role(self, client, db_session):
        response = client.get(
            "/api/documents",
            headers={"X-Actor-Id": "1", "X-Store-Id": "1", "X-Actor-Role": "janitor"},
        )
        assert response.status_code == 401

    def test_malformed_store_id(self, client, db_session):
        response = client.get(
            "/api/documents",
            headers={"X-Actor-Id": "1", "X-Store-Id": "main", "X-Actor-Role": "owner"},
        )
        assert response.status_code == 401


class TestPermissions:

    def test_technician_cannot_view_cash(self, client, db_session, technician_headers):
        response = client.get("/api/cash/movements", headers=technician_headers)

        assert response.status_code == 403
        body = response.get_json()
        assert body["error"] == "UNAUTHORIZED"
        assert "message" in body

    def test_seller_cannot_read_audit_log(self, client, db_session, seller_headers):
        assert client.get("/api/audit", headers=seller_headers).status_code == 403

    def test_refused_mutation_is_audited(self, client, db_session, seller_headers, owner_headers):
        response = client.post("/api/cash/expenses", json={"category": "supplies", "amount_cents": 100}, headers=seller_headers)
        assert response.status_code == 403

        entries = client.get("/api/audit?status=failed", headers=owner_headers).get_json()["entries"]
        assert len(entries) == 1
        assert entries[0]["entity"] == "expense"
        assert entries[0]["error_code"] == "UNAUTHORIZED"


class TestErrorShape:

    def test_validation_error(self, client, db_session, owner_headers):
        response = client.post("/api/documents", json={"kind": "quote"}, headers=owner_headers)

        assert response.status_code == 400
        body = response.get_json()
        assert body["error"] == "VALIDATION_ERROR"
        assert body["message"]
        assert body["details"] == {"kind": "quote"}

    def test_not_found(self, client, db_session, owner_headers):
        response = client.get("/api/documents/404", headers=owner_headers)
        assert response.status_code == 404
        assert response.get_json()["error"] == "NOT_FOUND"

    def test_non_object_body(self, client, db_session, owner_headers):
        response = client.post("/api/registers/open", json=[1, 2], headers=owner_headers)
        assert response.status_code == 400

    def test_invalid_audit_status_filter(self, client, db_session, owner_headers):
        response = client.get("/api/audit?status=maybe", headers=owner_headers)
        assert response.status_code == 400

    def test_bad_date(self, client, db_session, owner_headers):
        response = client.get("/api/documents?from=yesterday", headers=owner_headers)
        assert response.status_code == 400


class TestSaleCycle:

    def test_open_sell_close(self, client, db_session, seller_headers, owner_headers, cable):
        response = client.post("/api/registers/open", json={"opening_balance_cents": 1000}, headers=seller_headers)
        assert response.status_code == 201
        register_id = response.get_json()["register"]["id"]

        response = client.post("/api/documents", json={"kind": "sale"}, headers=seller_headers)
        assert response.status_code == 201
        document_id = response.get_json()["document"]["id"]

        response = client.post(
            f"/api/documents/{document_id}/lines",
            json={"item_type": "quantity", "product_id": cable.id, "qty": 2},
            headers=seller_headers,
        )
        assert response.status_code == 201
        assert response.get_json()["document"]["total_cents"] == 1800

        response = client.post(f"/api/documents/{document_id}/post", headers=seller_headers)
        assert response.status_code == 200
        assert response.get_json()["document"]["status"] == "posted"

        response = client.get(f"/api/cash/totals?register_id={register_id}", headers=seller_headers)
        assert response.get_json()["totals"]["net"] == 1800

        response = client.post(
            f"/api/registers/{register_id}/close",
            json={"closing_balance_cents": 2800},
            headers=seller_headers,
        )
        assert response.status_code == 200
        summary = response.get_json()
        assert summary["is_closed"] is True
        assert summary["register"]["expected_balance_cents"] == 2800
        assert summary["variance"] is None

        response = client.post(f"/api/registers/{register_id}/reconcile", headers=owner_headers)
        assert response.status_code == 200
        assert response.get_json()["register"]["reconciled"] is True

    def test_cancel_by_seller_refused(self, client, db_session, seller_headers, cable):
        document_id = client.post("/api/documents", json={"kind": "sale"}, headers=seller_headers).get_json()["document"]["id"]
        client.post(
            f"/api/documents/{document_id}/lines",
            json={"item_type": "quantity", "product_id": cable.id},
            headers=seller_headers,
        )
        client.post(f"/api/documents/{document_id}/post", headers=seller_headers)

        response = client.post(f"/api/documents/{document_id}/cancel", json={"reason": "oops"}, headers=seller_headers)

        assert response.status_code == 403
        assert response.get_json()["error"] == "UNAUTHORIZED"

    def test_second_open_conflicts(self, client, db_session, seller_headers):
        client.post("/api/registers/open", json={"opening_balance_cents": 0}, headers=seller_headers)
        response = client.post("/api/registers/open", json={"opening_balance_cents": 0}, headers=seller_headers)

        assert response.status_code == 409
        assert response.get_json()["error"] == "ALREADY_OPEN"

    def test_register_totals_of_other_store(self, client, db_session, seller_headers, other_store_headers):
        register_id = client.post(
            "/api/registers/open", json={"opening_balance_cents": 0}, headers=seller_headers
        ).get_json()["register"]["id"]

        response = client.get(f"/api/cash/totals?register_id={register_id}", headers=other_store_headers)
        assert response.status_code == 404


class TestStockRoutes:

    def test_availability(self, client, db_session, seller_headers, cable):
        response = client.get(f"/api/stock/availability?item_type=quantity&product_id={cable.id}&qty=11", headers=seller_headers)

        assert response.status_code == 200
        body = response.get_json()
        assert body["ok"] is False
        assert body["reason"]

    def test_adjustment_decrease_needs_owner(self, client, db_session, admin_headers, owner_headers, cable):
        payload = {"product_id": cable.id, "delta": -1, "reason": "Broken"}
        assert client.post("/api/stock/adjustments", json=payload, headers=admin_headers).status_code == 403
        assert client.post("/api/stock/adjustments", json=payload, headers=owner_headers).status_code == 201

    def test_delete_unit_needs_owner(self, client, db_session, admin_headers, owner_headers, phone):
        assert client.delete(f"/api/stock/serialized/{phone.id}", headers=admin_headers).status_code == 403
        assert client.delete(f"/api/stock/serialized/{phone.id}", headers=owner_headers).status_code == 200

    def test_duplicate_imei(self, client, db_session, owner_headers, phone):
        response = client.post(
            "/api/stock/serialized",
            json={"imei": phone.imei, "name": "Clone"},
            headers=owner_headers,
        )
        assert response.status_code == 409
        assert response.get_json()["error"] == "DUPLICATE_IDENTIFIER"

    def test_low_stock(self, client, db_session, owner_headers, cable):
        client.post("/api/stock/adjustments", json={"product_id": cable.id, "delta": -8, "reason": "Count"}, headers=owner_headers)

        products = client.get("/api/stock/low", headers=owner_headers).get_json()["products"]
        assert [p["id"] for p in products] == [cable.id]


class TestSystemRoutes:

    def test_health(self, client, db_session):
        response = client.get("/api/health")
        assert response.status_code == 200
        assert response.get_json()["status"] == "healthy"

    def test_version(self, client):
        assert client.get("/api/version").get_json()["api_version"] == "0.1.0"


class TestReturnRoutes:

    def test_return_cycle(self, client, db_session, seller_headers, owner_headers, cable):
        document_id = client.post("/api/documents", json={"kind": "sale"}, headers=seller_headers).get_json()["document"]["id"]
        client.post(
            f"/api/documents/{document_id}/lines",
            json={"item_type": "quantity", "product_id": cable.id, "qty": 2},
            headers=seller_headers,
        )
        client.post(f"/api/documents/{document_id}/post", headers=seller_headers)

        lines = client.get(f"/api/documents/{document_id}/lines", headers=seller_headers).get_json()["lines"]
        assert [line["qty"] for line in lines] == [2]

        response = client.post(
            "/api/returns",
            json={"document_id": document_id, "line_id": lines[0]["id"], "qty": 1, "reason": "Frayed"},
            headers=seller_headers,
        )
        assert response.status_code == 201
        return_id = response.get_json()["return"]["id"]
        assert response.get_json()["return"]["refund_amount_cents"] == 900

        assert client.post(f"/api/returns/{return_id}/approve", json={}, headers=seller_headers).status_code == 403
        assert client.post(f"/api/returns/{return_id}/approve", json={}, headers=owner_headers).status_code == 200

        response = client.post(f"/api/returns/{return_id}/complete", headers=seller_headers)
        assert response.status_code == 200
        assert response.get_json()["return"]["status"] == "refunded"

        returns = client.get(f"/api/returns?document_id={document_id}", headers=seller_headers).get_json()["returns"]
        assert [r["id"] for r in returns] == [return_id]

    def test_invalid_status_filter(self, client, db_session, owner_headers):
        response = client.get("/api/returns?status=lost", headers=owner_headers)
        assert response.status_code == 400
        assert response.get_json()["details"] == {"status": "lost"}


class TestCashRoutes:

    def test_record_manual_movement(self, client, db_session, owner_headers, seller_headers):
        payload = {"direction": "in", "amount_cents": 5000, "note": "Float top-up"}

        assert client.post("/api/cash/movements", json=payload, headers=seller_headers).status_code == 403

        response = client.post("/api/cash/movements", json=payload, headers=owner_headers)
        assert response.status_code == 201
        assert response.get_json()["movement"]["direction"] == "in"
