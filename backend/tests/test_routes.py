# Overview: Pytest coverage for the JSON API surface.

"""
API route tests.

Exercise the blueprints through the Flask test client: camelCase request
bodies, status codes and error payloads.
"""

import pytest

from tokopos.models import Member
from tokopos.services import provisioning_service


@pytest.fixture
def seeded(db_session, store, cashier, attendant, make_product):
    member = Member(store_id=store.id, name="Pak Joko", discount_percent=0)
    db_session.add(member)
    db_session.commit()
    product = make_product(store, "KOPI", name="Kopi Bubuk", stock=10, tiers=[(1, 10000), (5, 9000)])
    return {"store": store, "cashier": cashier, "attendant": attendant, "member": member, "product": product}


def _sale_body(seeded, **overrides):
    body = {
        "storeId": seeded["store"].id,
        "cashierId": seeded["cashier"].id,
        "attendantId": seeded["attendant"].id,
        "items": [{"productId": seeded["product"].id, "quantity": 2}],
        "payment": 20000,
        "paymentMethod": "CASH",
    }
    body.update(overrides)
    return body


class TestSalesRoutes:

    def test_create_sale(self, client, seeded):
        resp = client.post("/api/sales", json=_sale_body(seeded, payment=25000))

        assert resp.status_code == 201
        sale = resp.get_json()["sale"]
        assert sale["total"] == 20000
        assert sale["change"] == 5000
        assert sale["status"] == "PAID"
        assert sale["items"][0]["product_name"] == "Kopi Bubuk"
        assert sale["receivable"] is None

    def test_debt_sale_returns_receivable(self, client, seeded):
        body = _sale_body(seeded, payment=5000, memberId=seeded["member"].id, status="DEBT")
        resp = client.post("/api/sales", json=body)

        assert resp.status_code == 201
        receivable = resp.get_json()["sale"]["receivable"]
        assert receivable["amount_due"] == 20000
        assert receivable["remaining_amount"] == 15000
        assert receivable["status"] == "PARTIALLY_PAID"

    def test_idempotency_header(self, client, seeded):
        headers = {"Idempotency-Key": "kasir-1-0001"}
        first = client.post("/api/sales", json=_sale_body(seeded), headers=headers)
        second = client.post("/api/sales", json=_sale_body(seeded), headers=headers)

        assert first.status_code == 201
        assert second.status_code == 201
        assert first.get_json()["sale"]["id"] == second.get_json()["sale"]["id"]

        listing = client.get(f"/api/sales?storeId={seeded['store'].id}").get_json()
        assert listing["pagination"]["total"] == 1

    def test_insufficient_stock(self, client, seeded):
        body = _sale_body(seeded, items=[{"productId": seeded["product"].id, "quantity": 11}], payment=999999)
        resp = client.post("/api/sales", json=body)

        assert resp.status_code == 409
        data = resp.get_json()
        assert data["code"] == "insufficient_stock"
        assert data["details"]["items"][0]["available"] == 10

    @pytest.mark.parametrize("overrides", [
        {"items": []},
        {"attendantId": None},
        {"payment": 100},
        {"payment": "1e5"},
        {"items": [{"productId": 1, "quantity": 0}]},
        {"paymentMethod": 5},
        {"status": 5},
        {"referenceNumber": ["TRF-1"]},
        {"idempotencyKey": 42},
    ])
    def test_validation_errors(self, client, seeded, overrides):
        resp = client.post("/api/sales", json=_sale_body(seeded, **overrides))
        assert resp.status_code == 400
        assert resp.get_json()["code"] == "validation_error"

    def test_calculate(self, client, seeded):
        resp = client.post("/api/sales/calculate", json={
            "storeId": seeded["store"].id,
            "items": [{"productId": seeded["product"].id, "quantity": 5}],
            "additionalDiscount": 1000,
        })

        assert resp.status_code == 200
        calculation = resp.get_json()["calculation"]
        assert calculation["subtotal"] == 45000
        assert calculation["item_discount"] == 5000
        assert calculation["grand_total"] == 44000

    def test_get_and_delete(self, client, seeded):
        sale_id = client.post("/api/sales", json=_sale_body(seeded)).get_json()["sale"]["id"]

        assert client.get(f"/api/sales/{sale_id}").status_code == 200

        resp = client.delete(f"/api/sales?ids={sale_id}")
        assert resp.status_code == 200
        assert resp.get_json() == {"deleted": 1}
        assert client.get(f"/api/sales/{sale_id}").status_code == 404

    def test_delete_without_ids(self, client, db_session):
        assert client.delete("/api/sales").status_code == 400


class TestDistributionRoutes:

    @pytest.fixture
    def stocked(self, head_office, make_product, stock_warehouse):
        product = make_product(head_office, "TLR-10", name="Telur 10 butir", purchase_price=20000)
        stock_warehouse(product, 5)
        return product

    def test_create_fetch_accept(self, client, store, warehouse_user, stocked):
        resp = client.post("/api/warehouse/distribution", json={
            "storeId": store.id,
            "distributionDate": "2025-03-01",
            "distributedBy": warehouse_user.id,
            "items": [{"productId": stocked.id, "quantity": 3}],
        })
        assert resp.status_code == 201
        distribution = resp.get_json()["distribution"]
        assert distribution["total_amount"] == 60000
        line_id = distribution["items"][0]["id"]

        fetched = client.get(f"/api/warehouse/distribution?id={line_id}").get_json()["distribution"]
        assert fetched["invoice_number"] == distribution["invoice_number"]

        accepted = client.put(f"/api/warehouse/distribution/{line_id}/accept", json={"userId": warehouse_user.id})
        assert accepted.status_code == 200
        assert accepted.get_json()["distribution"]["status"] == "ACCEPTED"

        again = client.put(f"/api/warehouse/distribution/{line_id}/reject", json={"userId": warehouse_user.id})
        assert again.status_code == 409
        assert again.get_json()["code"] == "invalid_transition"

    def test_line_accept_and_cancel(self, client, store, head_office, warehouse_user, make_product, stock_warehouse, stocked):
        gula = make_product(head_office, "GLA-1KG", name="Gula 1kg", purchase_price=14000)
        stock_warehouse(gula, 4)
        distribution = client.post("/api/warehouse/distribution", json={
            "storeId": store.id,
            "distributionDate": "2025-03-01",
            "distributedBy": warehouse_user.id,
            "items": [{"productId": stocked.id, "quantity": 2}, {"productId": gula.id, "quantity": 1}],
        }).get_json()["distribution"]
        lines = {item["product_code"]: item["id"] for item in distribution["items"]}

        accepted = client.put(f"/api/warehouse/distribution/{lines['TLR-10']}", json={"status": "ACCEPTED", "userId": warehouse_user.id})
        assert accepted.status_code == 200
        assert accepted.get_json()["distribution"]["status"] == "ACCEPTED"
        assert accepted.get_json()["batch_status"] == "PENDING_ACCEPTANCE"

        cancelled = client.delete(f"/api/warehouse/distribution/{lines['GLA-1KG']}", json={"userId": warehouse_user.id})
        assert cancelled.status_code == 200
        assert cancelled.get_json()["distribution"]["quantity"] == 1

        batch = client.get(f"/api/warehouse/distribution?id={lines['TLR-10']}").get_json()["distribution"]
        assert batch["status"] == "ACCEPTED"
        assert [item["product_code"] for item in batch["items"]] == ["TLR-10"]

        again = client.delete(f"/api/warehouse/distribution/{lines['TLR-10']}")
        assert again.status_code == 409

    @pytest.mark.parametrize("body", [{}, {"status": "SHIPPED"}, {"status": 5}, {"status": "ACCEPTED"}])
    def test_line_update_validation(self, client, warehouse_user, body):
        resp = client.put("/api/warehouse/distribution/1", json=body)
        assert resp.status_code == 400

    def test_incomplete_request(self, client, store, stocked):
        resp = client.post("/api/warehouse/distribution", json={"storeId": store.id, "items": []})
        assert resp.status_code == 400
        assert resp.get_json()["error"] == "Data distribusi tidak lengkap"

    def test_shortage(self, client, store, warehouse_user, stocked):
        resp = client.post("/api/warehouse/distribution", json={
            "storeId": store.id,
            "distributionDate": "2025-03-01",
            "distributedBy": warehouse_user.id,
            "items": [{"productId": stocked.id, "quantity": 8}],
        })
        assert resp.status_code == 409
        item = resp.get_json()["details"]["items"][0]
        assert (item["available"], item["requested"]) == (5, 8)

    def test_listing_and_unknown_id(self, client, db_session):
        listing = client.get("/api/warehouse/distribution?page=1&limit=5")
        assert listing.status_code == 200
        assert listing.get_json()["pagination"]["per_page"] == 5
        assert client.get("/api/warehouse/distribution?id=777").status_code == 404


class TestReceivableRoutes:

    def test_pay_and_overpay(self, client, seeded):
        body = _sale_body(seeded, payment=0, memberId=seeded["member"].id, status="UNPAID")
        receivable_id = client.post("/api/sales", json=body).get_json()["sale"]["receivable"]["id"]

        over = client.put(f"/api/receivables/{receivable_id}", json={"amountPaid": 70000, "paymentMethod": "CASH"})
        assert over.status_code == 400
        assert over.get_json()["details"]["max_allowed"] == 20000

        ok = client.put(f"/api/receivables/{receivable_id}", json={"amountPaid": 20000, "paymentMethod": "CASH"})
        assert ok.status_code == 200
        receivable = ok.get_json()["receivable"]
        assert receivable["status"] == "PAID"
        assert len(receivable["payments"]) == 1

        detail = client.get(f"/api/receivables/{receivable_id}").get_json()["receivable"]
        assert detail["remaining_amount"] == 0

        assert client.get("/api/receivables").get_json()["pagination"]["total"] == 0

    def test_missing_amount(self, client, db_session):
        resp = client.put("/api/receivables/1", json={"paymentMethod": "CASH"})
        assert resp.status_code == 400

    def test_non_string_payment_method(self, client, seeded):
        body = _sale_body(seeded, payment=0, memberId=seeded["member"].id, status="UNPAID")
        receivable_id = client.post("/api/sales", json=body).get_json()["sale"]["receivable"]["id"]

        resp = client.put(f"/api/receivables/{receivable_id}", json={"amountPaid": 1000, "paymentMethod": 5})
        assert resp.status_code == 400
        assert resp.get_json()["code"] == "validation_error"


class TestHealth:

    def test_degraded_until_provisioned(self, client, db_session):
        resp = client.get("/api/health")
        assert resp.status_code == 200
        assert resp.get_json()["status"] == "degraded"

        provisioning_service.provision_defaults()

        resp = client.get("/api/health")
        assert resp.get_json()["status"] == "healthy"
        assert resp.get_json()["checks"]["provisioning"]["details"]["central_warehouse"] is True
