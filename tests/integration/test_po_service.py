"""
Integration tests for purchase order creation and lifecycle.
"""
from datetime import date
from decimal import Decimal

import pytest

from models.purchase_order import UpdatePOInput
from procurement.errors import (
    ConfigurationError, InvalidStateError, NotFoundError, PersistenceError, ValidationError,
)
from procurement.po_service import PurchaseOrderService

TODAY = date(2025, 6, 10)
INTERSTATE_VENDOR_GSTIN = "29ABCDE1234F1Z5"


@pytest.fixture
def service(seeded_repo) -> PurchaseOrderService:
    return PurchaseOrderService(seeded_repo, Decimal("18"))


@pytest.mark.integration
class TestCreatePurchaseOrder:

    def test_intrastate_po(self, service, po_input):
        po = service.create_purchase_order(po_input(), TODAY)

        assert po.id
        assert po.po_number == "PO-QT-2025-001"
        assert po.status == "draft"
        assert po.tax_type == "cgst-sgst"
        assert po.subtotal == Decimal("2500")
        assert po.cgst_amount == Decimal("225")
        assert po.sgst_amount == Decimal("225")
        assert po.igst_amount is None
        assert po.total_amount == Decimal("2950")
        assert po.amount_in_words == "INR Two Thousand Nine Hundred Fifty Only"
        assert [i.sl_no for i in po.items] == [1, 2]

    def test_interstate_po(self, service, po_input):
        po = service.create_purchase_order(po_input("29", INTERSTATE_VENDOR_GSTIN), TODAY)

        assert po.tax_type == "igst"
        assert po.igst_amount == Decimal("450")
        assert po.cgst_amount is None
        assert po.total_amount == Decimal("2950")

    def test_stored_po_matches_returned(self, service, po_input):
        po = service.create_purchase_order(po_input(), TODAY)
        assert service.get_purchase_order(po.id) == po

    def test_counter_consumed_once_per_po(self, service, seeded_repo, po_input):
        first = service.create_purchase_order(po_input(), TODAY)
        second = service.create_purchase_order(po_input(), TODAY)

        assert first.po_number == "PO-QT-2025-001"
        assert second.po_number == "PO-QT-2025-002"
        assert seeded_repo.get_company_settings().next_po_number == 3

    def test_counter_failure_keeps_po(self, service, seeded_repo, po_input, monkeypatch, caplog):
        def fail():
            raise PersistenceError("database is locked")

        monkeypatch.setattr(seeded_repo, "increment_po_counter", fail)
        po = service.create_purchase_order(po_input(), TODAY)

        assert service.get_purchase_order(po.id).po_number == "PO-QT-2025-001"
        assert "counter was not incremented" in caplog.text

    def test_audited(self, service, seeded_repo, po_input):
        po = service.create_purchase_order(po_input(), TODAY)
        entries = seeded_repo.store.get_audit_log(f"purchase_orders/{po.id}")
        assert [(e["action"], e["actor"]) for e in entries] == [("po_created", "alice")]

    def test_missing_company_settings(self, repo, po_input):
        with pytest.raises(ConfigurationError):
            PurchaseOrderService(repo).create_purchase_order(po_input(), TODAY)

    def test_company_without_gstin(self, seeded_repo, company_settings, service, po_input):
        seeded_repo.save_company_settings(company_settings.model_copy(update={"gstin": ""}))
        with pytest.raises(ConfigurationError):
            service.create_purchase_order(po_input(), TODAY)

    def test_no_items(self, service, po_input):
        with pytest.raises(ValidationError):
            service.create_purchase_order(po_input(items=[]), TODAY)

    def test_vendor_without_gstin(self, service, seeded_repo, po_input):
        with pytest.raises(ValidationError) as exc_info:
            service.create_purchase_order(po_input(vendor_gstin=""), TODAY)
        assert "Vendor GSTIN not set" in exc_info.value.messages[0]
        assert seeded_repo.get_company_settings().next_po_number == 1

    def test_vendor_without_email_is_a_warning(self, service, po_input):
        po = service.create_purchase_order(po_input(vendor_email=None), TODAY)
        assert [w.field for w in po.warnings] == ["vendor_email"]


@pytest.mark.integration
class TestPOLifecycle:

    def test_edit_draft(self, service, po_input):
        po = service.create_purchase_order(po_input(), TODAY)

        updated = service.update_purchase_order(po.id, UpdatePOInput(
            delivery_terms="Door delivery", ship_to_address="Site B, Chakan",
        ))

        assert updated.delivery_terms == "Door delivery"
        assert updated.ship_to_address == "Site B, Chakan"
        assert updated.payment_terms == "Net 30"
        assert updated.total_amount == po.total_amount

    def test_send_and_callback(self, service, po_input):
        po = service.create_purchase_order(po_input(), TODAY)
        seen = []

        sent = service.send_purchase_order(po.id, "bob", update_bom_items=seen.append)

        assert sent.status == "sent"
        assert sent.sent_by == "bob"
        assert sent.sent_to_email == "sales@visioncomponents.example"
        assert sent.sent_at is not None
        assert [p.id for p in seen] == [po.id]

    def test_sent_po_is_immutable(self, service, po_input):
        po = service.create_purchase_order(po_input(), TODAY)
        service.send_purchase_order(po.id, "bob")

        with pytest.raises(InvalidStateError):
            service.update_purchase_order(po.id, UpdatePOInput(payment_terms="Net 60"))
        with pytest.raises(InvalidStateError):
            service.send_purchase_order(po.id, "bob")

    def test_status_transitions(self, service, po_input):
        po = service.create_purchase_order(po_input(), TODAY)
        service.send_purchase_order(po.id, "bob")

        acknowledged = service.update_po_status(po.id, "acknowledged", "bob")
        assert acknowledged.closed_at is None

        completed = service.update_po_status(po.id, "completed", "bob")
        assert completed.status == "completed"
        assert completed.closed_at is not None

        with pytest.raises(InvalidStateError):
            service.update_po_status(po.id, "cancelled")

    def test_draft_cannot_skip_to_completed(self, service, po_input):
        po = service.create_purchase_order(po_input(), TODAY)
        with pytest.raises(InvalidStateError):
            service.update_po_status(po.id, "completed")

    def test_status_cannot_be_set_to_sent(self, service, po_input):
        po = service.create_purchase_order(po_input(), TODAY)
        with pytest.raises(InvalidStateError):
            service.update_po_status(po.id, "sent")

    def test_cancel_draft(self, service, po_input):
        po = service.create_purchase_order(po_input(), TODAY)
        assert service.update_po_status(po.id, "cancelled").closed_at is not None

    def test_list_newest_first_with_filters(self, service, po_input):
        first = service.create_purchase_order(po_input(), TODAY)
        second = service.create_purchase_order(po_input(vendor_id="v-2"), TODAY)
        service.send_purchase_order(second.id, "bob")

        assert [p.id for p in service.list_purchase_orders("P1")] == [second.id, first.id]
        assert [p.id for p in service.list_purchase_orders("P1", status="draft")] == [first.id]
        assert [p.id for p in service.list_purchase_orders("P1", vendor_id="v-2")] == [second.id]
        assert service.list_purchase_orders("P2") == []

    def test_recalculate_and_pdf_url(self, service, po_input):
        po = service.create_purchase_order(po_input(), TODAY)
        assert service.recalculate_totals(po.id).total_amount == Decimal("2950")
        assert service.set_pdf_url(po.id, "https://files.example/po.pdf").pdf_url == "https://files.example/po.pdf"

    def test_delete(self, service, po_input):
        po = service.create_purchase_order(po_input(), TODAY)
        service.delete_purchase_order(po.id)
        with pytest.raises(NotFoundError):
            service.get_purchase_order(po.id)
