"""
API tests for the dashboard backend.
"""
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient

import dashboard.app as dashboard_app


@pytest.fixture
def client(seeded_tracker, monkeypatch) -> TestClient:
    monkeypatch.setattr(dashboard_app, "_tracker", seeded_tracker)
    return TestClient(dashboard_app.app)


def _po_body(**overrides):
    body = {
        "project_id": "P1",
        "vendor_name": "Vision Components LLP",
        "vendor_gstin": "29ABCDE1234F1Z5",
        "vendor_state_code": "29",
        "vendor_email": "sales@visioncomponents.example",
        "items": [
            {"bom_item_id": "cam-1", "description": "Area scan camera", "quantity": "10", "rate": "100"},
            {"bom_item_id": "lens-1", "description": "C-mount lens", "quantity": "5", "rate": "300"},
        ],
        "created_by": "alice",
    }
    body.update(overrides)
    return body


@pytest.mark.api
class TestDashboardAPI:

    def test_health(self, client):
        assert client.get("/api/health").json()["status"] == "ok"

    def test_bom_and_cost(self, client):
        bom = client.get("/api/projects/P1/bom").json()
        assert [c["name"] for c in bom] == ["Vision Systems", "Motors & Drives"]

        cost = client.get("/api/projects/P1/bom/cost").json()
        assert Decimal(cost["total_cost"]) == Decimal("157000")

    def test_batch_status(self, client):
        response = client.post("/api/projects/P1/bom/status", json={"item_ids": ["servo-1"], "status": "received"})
        assert response.status_code == 200
        statuses = {i["id"]: i["status"] for c in response.json() for i in c["items"]}
        assert statuses["servo-1"] == "received"

    def test_batch_status_rejects_legacy_value(self, client):
        response = client.post("/api/projects/P1/bom/status", json={"item_ids": ["cam-1"], "status": "approved"})
        assert response.status_code == 400

    def test_batch_ordered_without_vendor_conflicts(self, client):
        response = client.post("/api/projects/P1/bom/status", json={"item_ids": ["lens-1"], "status": "ordered"})
        assert response.status_code == 409

    def test_create_send_flow(self, client):
        created = client.post("/api/projects/P1/purchase-orders", json=_po_body())
        assert created.status_code == 201
        po = created.json()
        assert po["tax_type"] == "igst"
        assert Decimal(po["total_amount"]) == Decimal("2950")

        sent = client.post(f"/api/projects/P1/purchase-orders/{po['id']}/send", json={"sent_by": "bob"})
        assert sent.status_code == 200
        assert sent.json()["status"] == "sent"

        bom = client.get("/api/projects/P1/bom").json()
        statuses = {i["id"]: i["status"] for c in bom for i in c["items"]}
        assert statuses["cam-1"] == statuses["lens-1"] == "ordered"

        again = client.post(f"/api/projects/P1/purchase-orders/{po['id']}/send", json={"sent_by": "bob"})
        assert again.status_code == 409

        listed = client.get("/api/projects/P1/purchase-orders", params={"status": "sent"}).json()
        assert [p["id"] for p in listed] == [po["id"]]

    def test_create_validation_error(self, client):
        response = client.post("/api/projects/P1/purchase-orders", json=_po_body(vendor_gstin=""))
        assert response.status_code == 422
        assert response.json()["errors"][0].startswith("Vendor GSTIN not set")

    def test_create_project_mismatch(self, client):
        response = client.post("/api/projects/P2/purchase-orders", json=_po_body())
        assert response.status_code == 400

    def test_unknown_po(self, client):
        assert client.get("/api/purchase-orders/ghost").status_code == 404

    def test_status_transition(self, client):
        po = client.post("/api/projects/P1/purchase-orders", json=_po_body()).json()
        response = client.patch(f"/api/purchase-orders/{po['id']}/status", json={"status": "completed"})
        assert response.status_code == 409

        response = client.patch(f"/api/purchase-orders/{po['id']}/status", json={"status": "cancelled"})
        assert response.json()["status"] == "cancelled"

    def test_document_guard(self, client, seeded_tracker):
        doc = client.post("/api/projects/P1/documents", json={"name": "PO-A.pdf", "type": "outgoing-po"})
        assert doc.status_code == 201
        doc_id = doc.json()["id"]
        seeded_tracker.mark_ordered("P1", "cam-1", "2025-06-01", po_document_id=doc_id)

        check = client.get(f"/api/projects/P1/documents/{doc_id}/deletion-check").json()
        assert check["can_delete"] is False
        assert check["blocked_by_items"][0]["id"] == "cam-1"

        assert client.delete(f"/api/projects/P1/documents/{doc_id}").status_code == 409

    def test_link_document(self, client):
        doc_id = client.post("/api/projects/P1/documents", json={"name": "ds.pdf", "type": "spec-sheet"}).json()["id"]
        response = client.post(f"/api/projects/P1/documents/{doc_id}/link", json={"item_id": "lens-1"})
        assert response.status_code == 200

        docs = client.get("/api/projects/P1/documents").json()
        assert docs[0]["linked_bom_items"] == ["lens-1"]

    def test_gstin_lookup_not_configured(self, client):
        body = client.get("/api/gstin/29ABCDE1234F1Z5").json()
        assert body == {"success": False, "error": "GST_API_URL not configured", "data": None}

    def test_create_rejects_negative_quantity(self, client):
        items = _po_body()["items"]
        items[0]["quantity"] = "-1"
        response = client.post("/api/projects/P1/purchase-orders", json=_po_body(items=items))
        assert response.status_code == 422
        assert client.get("/api/projects/P1/purchase-orders").json() == []
