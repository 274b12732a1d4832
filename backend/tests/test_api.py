"""
HTTP API tests.

Verifies:
- Actor headers are required (401) and roles are enforced (403)
- Purchase create/read never exposes the activation secret
- Payments update the purchase settlement in the same response
- Error mapping: 400 validation, 404 missing, 409 conflict
"""

import pytest

from conftest import actor_headers, purchase_payload


LOGIN_ACTIVATION = {"method": "LOGIN_CREDENTIALS", "username": "client@example.com", "secret": "hunter2"}


def _create(client, headers, **overrides):
    resp = client.post("/api/purchases", json=purchase_payload(**overrides), headers=headers)
    assert resp.status_code == 201, resp.get_json()
    return resp.get_json()["purchase"]


# =============================================================================
# AUTHENTICATION & ROLES
# =============================================================================


class TestActorHeaders:
    @pytest.mark.parametrize(
        "method,path",
        [
            ("GET", "/api/purchases"),
            ("POST", "/api/purchases"),
            ("GET", "/api/purchases/next-order-id"),
            ("GET", "/api/payments"),
            ("POST", "/api/payments"),
            ("GET", "/api/coupons"),
            ("POST", "/api/coupons/validate"),
        ],
    )
    def test_requires_actor(self, client, db_session, method, path):
        resp = getattr(client, method.lower())(path)
        assert resp.status_code == 401, f"{method} {path} returned {resp.status_code}"

    def test_unknown_role(self, client, db_session):
        resp = client.get("/api/purchases", headers=actor_headers("superuser"))
        assert resp.status_code == 401

    def test_viewer_cannot_create(self, client, db_session, viewer_headers):
        resp = client.post("/api/purchases", json=purchase_payload(), headers=viewer_headers)
        assert resp.status_code == 403

    def test_sales_cannot_reveal_secret(self, client, db_session, admin_headers, sales_headers):
        purchase = _create(client, admin_headers, activation=LOGIN_ACTIVATION)
        resp = client.get(f"/api/purchases/{purchase['id']}/secret", headers=sales_headers)
        assert resp.status_code == 403

    def test_health_is_public(self, client, db_session):
        resp = client.get("/api/health")
        assert resp.status_code == 200
        assert resp.get_json()["status"] == "ok"


# =============================================================================
# PURCHASES
# =============================================================================


class TestPurchases:
    def test_create_generates_order_id_and_derived_fields(self, client, db_session, sales_headers):
        purchase = _create(
            client,
            sales_headers,
            validity_duration_months=1,
            has_warranty=True,
            warranty_months=6,
        )
        assert purchase["order_id"].startswith("PH-")
        assert purchase["order_id"].endswith("-00001")
        assert purchase["validity"]["end_date"] == "2025-02-28"
        assert purchase["warranty"]["end_date"] == "2025-07-31"
        assert purchase["status"] == "OPEN"
        assert purchase["settlement"]["client_due_minor"] == 200000
        assert purchase["created_by"] == "sales-1"

    def test_custom_prefix(self, client, db_session, admin_headers):
        resp = client.post("/api/purchases?prefix=tx", json=purchase_payload(), headers=admin_headers)
        assert resp.status_code == 201
        assert resp.get_json()["purchase"]["order_id"].startswith("TX-")

    def test_secret_never_in_reads(self, client, db_session, admin_headers):
        purchase = _create(client, admin_headers, activation=LOGIN_ACTIVATION)
        assert purchase["activation"] == {
            "method": "LOGIN_CREDENTIALS",
            "username": "client@example.com",
            "has_secret": True,
        }

        body = client.get(f"/api/purchases/{purchase['id']}", headers=admin_headers).get_data(as_text=True)
        assert "hunter2" not in body
        assert "v1:" not in body

    def test_reveal_secret(self, client, db_session, admin_headers):
        purchase = _create(client, admin_headers, activation=LOGIN_ACTIVATION)
        resp = client.get(f"/api/purchases/{purchase['id']}/secret", headers=admin_headers)
        assert resp.status_code == 200
        assert resp.get_json() == {"secret": "hunter2"}

    def test_reveal_without_secret(self, client, db_session, admin_headers):
        purchase = _create(client, admin_headers)
        resp = client.get(f"/api/purchases/{purchase['id']}/secret", headers=admin_headers)
        assert resp.get_json() == {"secret": None}

    def test_update_keeps_secret_when_omitted(self, client, db_session, admin_headers):
        purchase = _create(client, admin_headers, activation=LOGIN_ACTIVATION)
        resp = client.patch(
            f"/api/purchases/{purchase['id']}",
            json={"activation": {"method": "LOGIN_CREDENTIALS", "username": "renamed"}},
            headers=admin_headers,
        )
        assert resp.status_code == 200
        assert resp.get_json()["purchase"]["activation"]["has_secret"] is True

        secret = client.get(f"/api/purchases/{purchase['id']}/secret", headers=admin_headers).get_json()
        assert secret == {"secret": "hunter2"}

    @pytest.mark.parametrize(
        "overrides",
        [
            {"client_pay_total_minor": 12.5},
            {"client_pay_total_minor": -1},
            {"validity_duration_months": 0},
            {"purchase_date": "31/01/2025"},
            {"status": "COMPLETED"},
            {"activation": {"method": "COUPON_CODE", "secret": "x"}},
            {"unexpected": True},
        ],
    )
    def test_invalid_input(self, client, db_session, admin_headers, overrides):
        resp = client.post("/api/purchases", json=purchase_payload(**overrides), headers=admin_headers)
        assert resp.status_code == 400

    def test_missing_activation(self, client, db_session, admin_headers):
        payload = purchase_payload()
        del payload["activation"]
        resp = client.post("/api/purchases", json=payload, headers=admin_headers)
        assert resp.status_code == 400

    def test_duplicate_order_id(self, client, db_session, admin_headers):
        _create(client, admin_headers, order_id="PH-2025-00010")
        resp = client.post("/api/purchases", json=purchase_payload(order_id="PH-2025-00010"), headers=admin_headers)
        assert resp.status_code == 409

    def test_not_found(self, client, db_session, admin_headers):
        assert client.get("/api/purchases/999", headers=admin_headers).status_code == 404

    def test_list_filters_and_paginates(self, client, db_session, admin_headers):
        _create(client, admin_headers, client_id="alice", purchase_date="2025-01-10")
        _create(client, admin_headers, client_id="bob", purchase_date="2025-02-10")
        _create(client, admin_headers, client_id="alice", purchase_date="2025-03-10")

        resp = client.get("/api/purchases?client_id=alice&limit=1", headers=admin_headers)
        data = resp.get_json()
        assert data["pagination"]["total"] == 2
        assert [p["purchase_date"] for p in data["purchases"]] == ["2025-03-10"]

        resp = client.get("/api/purchases?from=2025-02-01&to=2025-02-28", headers=admin_headers)
        assert [p["client_id"] for p in resp.get_json()["purchases"]] == ["bob"]

    def test_list_rejects_bad_status(self, client, db_session, admin_headers):
        assert client.get("/api/purchases?status=PAID", headers=admin_headers).status_code == 400

    def test_next_order_id_preview(self, client, db_session, admin_headers):
        first = client.get("/api/purchases/next-order-id", headers=admin_headers).get_json()["order_id"]
        created = _create(client, admin_headers)
        assert created["order_id"] == first

    def test_attach_proof_urls(self, client, db_session, admin_headers):
        purchase = _create(client, admin_headers)
        resp = client.post(
            f"/api/purchases/{purchase['id']}/files",
            json={"type": "client", "urls": ["https://files.example.com/a.png"]},
            headers=admin_headers,
        )
        assert resp.status_code == 200
        assert resp.get_json()["files"]["client_proof_urls"] == ["https://files.example.com/a.png"]

    def test_cancel(self, client, db_session, admin_headers):
        purchase = _create(client, admin_headers)
        resp = client.post(f"/api/purchases/{purchase['id']}/cancel", headers=admin_headers)
        assert resp.get_json()["purchase"]["status"] == "CANCELLED"

    @pytest.mark.parametrize("order_id", ["PH-2025-000001", "PH-2025-0000009²"])
    def test_non_canonical_order_id_rejected(self, client, db_session, admin_headers, order_id):
        resp = client.post("/api/purchases", json=purchase_payload(order_id=order_id), headers=admin_headers)
        assert resp.status_code == 400


# =============================================================================
# PAYMENTS
# =============================================================================

class TestPayments:
    def _pay(self, client, headers, purchase_id, kind, amount):
        return client.post(
            "/api/payments",
            json={"purchase_id": purchase_id, "type": kind, "amount_minor": amount, "paid_on": "2025-02-01", "method": "upi"},
            headers=headers,
        )

    def test_payments_settle_purchase(self, client, db_session, admin_headers):
        purchase = _create(client, admin_headers)

        resp = self._pay(client, admin_headers, purchase["id"], "CLIENT", 200000)
        assert resp.status_code == 201
        assert resp.get_json()["settlement"]["client_due_minor"] == 0
        assert resp.get_json()["settlement"]["status"] == "OPEN"

        resp = self._pay(client, admin_headers, purchase["id"], "VENDOR", 150000)
        assert resp.get_json()["settlement"]["status"] == "COMPLETED"

        payment_id = resp.get_json()["payment"]["id"]
        resp = client.delete(f"/api/payments/{payment_id}", headers=admin_headers)
        assert resp.get_json()["settlement"]["status"] == "OPEN"
        assert resp.get_json()["settlement"]["vendor_due_minor"] == 150000

    def test_sales_limited_to_client_payments(self, client, db_session, admin_headers, sales_headers):
        purchase = _create(client, admin_headers)
        assert self._pay(client, sales_headers, purchase["id"], "VENDOR", 100).status_code == 403
        assert self._pay(client, sales_headers, purchase["id"], "CLIENT", 100).status_code == 201

    def test_amount_must_be_positive(self, client, db_session, admin_headers):
        purchase = _create(client, admin_headers)
        assert self._pay(client, admin_headers, purchase["id"], "CLIENT", 0).status_code == 400

    def test_unknown_purchase(self, client, db_session, admin_headers):
        assert self._pay(client, admin_headers, 999, "CLIENT", 100).status_code == 404

    def test_purchase_payments_listing(self, client, db_session, admin_headers):
        purchase = _create(client, admin_headers)
        self._pay(client, admin_headers, purchase["id"], "CLIENT", 100)
        self._pay(client, admin_headers, purchase["id"], "VENDOR", 200)

        resp = client.get(f"/api/purchases/{purchase['id']}/payments", headers=admin_headers)
        assert len(resp.get_json()["payments"]) == 2

        resp = client.get(f"/api/payments?purchase_id={purchase['id']}&type=vendor", headers=admin_headers)
        assert [p["amount_minor"] for p in resp.get_json()["payments"]] == [200]

    def test_delete_purchase_removes_payments(self, client, db_session, admin_headers):
        purchase = _create(client, admin_headers)
        payment = self._pay(client, admin_headers, purchase["id"], "CLIENT", 100).get_json()["payment"]

        assert client.delete(f"/api/purchases/{purchase['id']}", headers=admin_headers).status_code == 200
        assert client.get(f"/api/payments/{payment['id']}", headers=admin_headers).status_code == 404


# =============================================================================
# COUPONS
# =============================================================================


class TestCoupons:
    def test_create_validate_redeem(self, client, db_session, admin_headers, sales_headers):
        resp = client.post(
            "/api/coupons",
            json={"code": "save15", "discount_type": "PERCENT", "discount_value": 1500, "max_uses": 1},
            headers=admin_headers,
        )
        assert resp.status_code == 201

        resp = client.post("/api/coupons/validate", json={"code": "SAVE15"}, headers=sales_headers)
        assert resp.get_json()["valid"] is True

        resp = client.post("/api/coupons/redeem", json={"code": "SAVE15", "amount_minor": 200000}, headers=sales_headers)
        assert resp.status_code == 200
        assert resp.get_json()["discount_minor"] == 30000

        resp = client.post("/api/coupons/validate", json={"code": "SAVE15"}, headers=sales_headers)
        assert resp.get_json()["reason"] == "USAGE_LIMIT_REACHED"

    def test_unknown_code(self, client, db_session, admin_headers):
        resp = client.post("/api/coupons/validate", json={"code": "NOPE"}, headers=admin_headers)
        assert resp.status_code == 404

    def test_sales_cannot_create(self, client, db_session, sales_headers):
        resp = client.post("/api/coupons", json={"code": "SALES"}, headers=sales_headers)
        assert resp.status_code == 403

    def test_get_and_delete(self, client, db_session, admin_headers, sales_headers):
        resp = client.post("/api/coupons", json={"code": "WINTER", "discount_type": "FLAT", "discount_value": 500}, headers=admin_headers)
        coupon_id = resp.get_json()["coupon"]["id"]

        resp = client.get(f"/api/coupons/{coupon_id}", headers=sales_headers)
        assert resp.status_code == 200
        assert resp.get_json()["coupon"]["code"] == "WINTER"

        resp = client.delete(f"/api/coupons/{coupon_id}", headers=sales_headers)
        assert resp.status_code == 403

        resp = client.delete(f"/api/coupons/{coupon_id}", headers=admin_headers)
        assert resp.status_code == 200
        assert resp.get_json() == {"deleted": True}

        assert client.get(f"/api/coupons/{coupon_id}", headers=admin_headers).status_code == 404
        assert client.delete(f"/api/coupons/{coupon_id}", headers=admin_headers).status_code == 404

    def test_list_pagination(self, client, db_session, admin_headers):
        for code in ("ONE1", "TWO2", "THREE3"):
            client.post("/api/coupons", json={"code": code}, headers=admin_headers)

        resp = client.get("/api/coupons?limit=2", headers=admin_headers)
        assert resp.status_code == 200
        body = resp.get_json()
        assert len(body["coupons"]) == 2
        assert body["pagination"] == {"page": 1, "limit": 2, "total": 3, "pages": 2}

        resp = client.get("/api/coupons?limit=500", headers=admin_headers)
        assert resp.status_code == 400

    def test_percent_over_whole_rejected(self, client, db_session, admin_headers):
        resp = client.post(
            "/api/coupons",
            json={"code": "DOUBLE", "discount_type": "PERCENT", "discount_value": 20000},
            headers=admin_headers,
        )
        assert resp.status_code == 400
