"""
Unit tests for item <-> document link synchronisation and the deletion guard.
"""
import pytest

from models.project_document import ProjectDocument
from procurement.document_links import (
    find_linked_po_document, get_outgoing_po_documents, remove_item_from_documents,
    sync_invoice_document_links, sync_po_document_links, validate_document_deletion,
)
from procurement.errors import NotFoundError


def _doc(doc_id, doc_type="outgoing-po", linked=None, name=None):
    return ProjectDocument(
        id=doc_id, project_id="P1", name=name or f"{doc_id}.pdf", type=doc_type,
        linked_bom_items=linked or [],
    )


class Recorder:
    """Collects link_document calls in order."""

    def __init__(self):
        self.calls = []

    def __call__(self, document_id, bom_item_ids):
        self.calls.append((document_id, list(bom_item_ids)))


@pytest.mark.unit
class TestSyncLinks:

    def test_links_new_and_unlinks_previous(self):
        documents = [_doc("po-a", linked=["i1", "i2"]), _doc("po-b", linked=["i3"])]
        link = Recorder()

        result = sync_po_document_links("i1", "po-b", documents, link, previous_document_id="po-a")

        assert link.calls == [("po-b", ["i3", "i1"]), ("po-a", ["i2"])]
        assert [d.linked_bom_items for d in result] == [["i2"], ["i3", "i1"]]
        assert documents[0].linked_bom_items == ["i1", "i2"]

    def test_relink_same_document_is_idempotent(self):
        documents = [_doc("po-a", linked=["i1"])]
        link = Recorder()

        sync_po_document_links("i1", "po-a", documents, link, previous_document_id="po-a")

        assert link.calls == [("po-a", ["i1"])]

    def test_missing_target_raises_not_found(self):
        link = Recorder()
        with pytest.raises(NotFoundError, match="ghost"):
            sync_invoice_document_links("i1", "ghost", [_doc("inv-1", "vendor-invoice")], link)
        assert link.calls == []

    def test_missing_previous_is_skipped(self, caplog):
        link = Recorder()
        sync_invoice_document_links("i1", "inv-1", [_doc("inv-1", "vendor-invoice")], link, "deleted-doc")

        assert link.calls == [("inv-1", ["i1"])]
        assert "no longer exists" in caplog.text

    def test_failure_propagates(self):
        def broken(document_id, ids):
            raise RuntimeError("write failed")

        with pytest.raises(RuntimeError):
            sync_po_document_links("i1", "po-a", [_doc("po-a")], broken)

    def test_remove_item_from_all_documents(self):
        documents = [_doc("po-a", linked=["i1", "i2"]), _doc("spec", "spec-sheet", linked=["i1"]), _doc("po-b")]
        link = Recorder()

        result = remove_item_from_documents("i1", documents, link)

        assert link.calls == [("po-a", ["i2"]), ("spec", [])]
        assert [d.linked_bom_items for d in result] == [["i2"], [], []]


@pytest.mark.unit
class TestLookups:

    def test_outgoing_po_documents_include_both_po_types(self):
        documents = [_doc("a", "vendor-po"), _doc("b", "outgoing-po"), _doc("c", "vendor-quote")]
        assert [d.id for d in get_outgoing_po_documents(documents)] == ["a", "b"]

    def test_find_linked_po_document_prefers_pointer(self, make_item):
        documents = [_doc("po-a", linked=["x"]), _doc("po-b")]
        item = make_item("x", linked_po_document_id="po-b")
        assert find_linked_po_document(item, documents).id == "po-b"

    def test_find_linked_po_document_by_list(self, make_item):
        documents = [_doc("quote", "vendor-quote", linked=["x"]), _doc("po-a", linked=["x"])]
        assert find_linked_po_document(make_item("x"), documents).id == "po-a"


@pytest.mark.unit
class TestDeletionGuard:

    def test_po_document_blocked_by_ordered_item(self, make_item):
        doc = _doc("po-a", linked=["x"], name="PO-QT-2025-001.pdf")
        items = [make_item("x", name="Area scan camera", status="ordered"), make_item("y", status="ordered")]

        check = validate_document_deletion(doc, items)

        assert check.can_delete is False
        assert [i.id for i in check.blocked_by_items] == ["x"]
        assert check.reason == (
            "Cannot delete this PO document: it is linked to 1 ordered item(s): "
            "Area scan camera. Change their status first."
        )

    def test_pointer_alone_blocks(self, make_item):
        doc = _doc("po-a", "vendor-po")
        items = [make_item("x", status="ordered", linked_po_document_id="po-a")]
        assert validate_document_deletion(doc, items).can_delete is False

    def test_po_document_not_blocked_by_received_item(self, make_item):
        doc = _doc("po-a", linked=["x"])
        assert validate_document_deletion(doc, [make_item("x", status="received")]).can_delete is True

    def test_invoice_blocked_by_received_item(self, make_item):
        doc = _doc("inv-1", "vendor-invoice")
        items = [make_item("x", status="received", linked_invoice_document_id="inv-1")]
        check = validate_document_deletion(doc, items)
        assert check.can_delete is False
        assert "invoice document" in check.reason

    def test_other_types_always_deletable(self, make_item):
        doc = _doc("spec", "spec-sheet", linked=["x"])
        assert validate_document_deletion(doc, [make_item("x", status="ordered")]).can_delete is True

    def test_vendor_po_unblocked_once_item_not_ordered(self, make_item):
        doc = _doc("po-a", "vendor-po", linked=["x"])
        ordered = make_item("x", status="ordered", linked_po_document_id="po-a")

        blocked = validate_document_deletion(doc, [ordered])
        assert blocked.can_delete is False
        assert blocked.blocked_by_items == [ordered]

        reverted = ordered.model_copy(update={"status": "not-ordered"})
        check = validate_document_deletion(doc, [reverted])
        assert check.can_delete is True
        assert check.blocked_by_items == []

    def test_vendor_quote_always_deletable(self, make_item):
        doc = _doc("q-1", "vendor-quote", linked=["x"])
        assert validate_document_deletion(doc, [make_item("x", status="ordered")]).can_delete is True
