"""
BOM procurement orchestrator.

BOMTracker ties the pure BOM functions, the document-link synchronizer,
the deletion guard and the PO service to the document store.  Each public
method loads the current snapshot, applies pure functions, and persists the
result.  The BOM for a project is always written as one document, so a
multi-item change (e.g. every item on a sent PO becoming ordered) is never
visible half-applied.

Typical flow:
  1. import_bom() / add_part()           items start not-ordered
  2. create_purchase_order()             draft PO, PO number consumed
  3. send_purchase_order()               PO sent, its items batch-marked ordered
  4. mark_received()                     item received, invoice linked
"""
import logging
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Any, Iterable, Optional

from config import Config
from models.bom import BOMCategory, BOMItem, BOMStatus, VendorQuote
from models.project_document import (
    DeletionCheck, ProjectDocument, INVOICE_DOCUMENT_TYPES, PO_DOCUMENT_TYPES,
)
from models.purchase_order import CreatePOInput, PurchaseOrder
from . import bom as bom_ops
from .bom_import import BOMImporter, to_bom_items
from .document_links import (
    find_linked_document, remove_item_from_documents, sync_invoice_document_links,
    sync_po_document_links, validate_document_deletion,
)
from .errors import InvalidStateError, NotFoundError, ValidationError
from .inward import calculate_expected_arrival, get_inward_status, parse_lead_time_to_days, summarize_inward
from .po_dispatch import PODispatchService
from .po_service import PurchaseOrderService
from .repository import ProjectRepository
from .store import DocumentStore
from .validation import validate_company_settings

logger = logging.getLogger(__name__)


class BOMTracker:
    """Project-level procurement operations over a DocumentStore."""

    def __init__(self, config: Optional[Config] = None, store: Optional[DocumentStore] = None):
        self.config = config or Config()
        if store is None:
            self.config.ensure_output_dir()
            store = DocumentStore(self.config.db_path)
        self.store = store
        self.repo = ProjectRepository(store)
        self.po_service = PurchaseOrderService(self.repo, self.config.default_tax_percentage)
        self.dispatcher = PODispatchService(self.config)
        self.importer = BOMImporter(
            model=self.config.llm_model,
            base_url=self.config.llm_base_url,
            api_key=self.config.llm_api_key,
            make_threshold=self.config.make_fuzzy_threshold,
        )

    # ------------------------------------------------------------------
    # BOM structure
    # ------------------------------------------------------------------

    def get_bom(self, project_id: str) -> list[BOMCategory]:
        return self.repo.get_bom(project_id)

    def add_category(self, project_id: str, name: str) -> list[BOMCategory]:
        categories = bom_ops.add_category(self.repo.get_bom(project_id), name)
        self.repo.save_bom(project_id, categories)
        return categories

    def add_part(self, project_id: str, item: BOMItem) -> BOMItem:
        categories = bom_ops.add_item(self.repo.get_bom(project_id), item)
        self.repo.save_bom(project_id, categories)
        logger.info("Added %s to %s/%s", item.name, project_id, item.category)
        return bom_ops.get_item(categories, item.id)

    def update_part(self, project_id: str, item_id: str, updates: dict) -> BOMItem:
        categories = bom_ops.update_item(self.repo.get_bom(project_id), item_id, updates)
        self.repo.save_bom(project_id, categories)
        return bom_ops.get_item(categories, item_id)

    def move_part(self, project_id: str, item_id: str, target_category: str) -> BOMItem:
        categories = bom_ops.move_item(self.repo.get_bom(project_id), item_id, target_category)
        self.repo.save_bom(project_id, categories)
        return bom_ops.get_item(categories, item_id)

    def delete_part(self, project_id: str, item_id: str) -> None:
        """Remove an item and drop it from every document's linked_bom_items."""
        categories = self.repo.get_bom(project_id)
        item = bom_ops.get_item(categories, item_id)
        self.repo.save_bom(project_id, bom_ops.remove_item(categories, item_id))
        remove_item_from_documents(item_id, self.repo.list_documents(project_id), self.repo.link_document)
        logger.info("Deleted %s from %s", item.name, project_id)

    # ------------------------------------------------------------------
    # Single-item status changes
    # ------------------------------------------------------------------

    def mark_ordered(
        self,
        project_id: str,
        item_id: str,
        order_date: str | date,
        finalized_vendor: Optional[VendorQuote] = None,
        po_number: Optional[str] = None,
        po_document_id: Optional[str] = None,
        actor: str = "system",
    ) -> BOMItem:
        """
        Mark one item ordered and, with po_document_id, link it to that PO
        document (unlinking it from the document it pointed to before).
        """
        categories = self.repo.get_bom(project_id)
        item = bom_ops.get_item(categories, item_id)
        if po_document_id:
            self._require_document(project_id, po_document_id, PO_DOCUMENT_TYPES)

        previous_document_id = item.linked_po_document_id
        updated = bom_ops.mark_item_ordered(
            item, order_date, finalized_vendor, po_number, po_document_id,
        )
        self.repo.save_bom(project_id, bom_ops.replace_item(categories, updated))

        if po_document_id:
            sync_po_document_links(
                item_id, po_document_id, self.repo.list_documents(project_id),
                self.repo.link_document, previous_document_id,
            )
            self._audit_link(po_document_id, item_id, previous_document_id, actor)

        logger.info("Marked %s ordered (PO %s)", updated.name, updated.po_number or "-")
        return updated

    def mark_received(
        self,
        project_id: str,
        item_id: str,
        actual_arrival: str | date,
        invoice_document_id: Optional[str] = None,
        actor: str = "system",
    ) -> BOMItem:
        categories = self.repo.get_bom(project_id)
        item = bom_ops.get_item(categories, item_id)
        if invoice_document_id:
            self._require_document(project_id, invoice_document_id, INVOICE_DOCUMENT_TYPES)

        previous_document_id = item.linked_invoice_document_id
        updated = bom_ops.mark_item_received(item, actual_arrival, invoice_document_id)
        self.repo.save_bom(project_id, bom_ops.replace_item(categories, updated))

        if invoice_document_id:
            sync_invoice_document_links(
                item_id, invoice_document_id, self.repo.list_documents(project_id),
                self.repo.link_document, previous_document_id,
            )
            self._audit_link(invoice_document_id, item_id, previous_document_id, actor)

        logger.info("Marked %s received on %s", updated.name, updated.actual_arrival)
        return updated

    def revert_to_not_ordered(self, project_id: str, item_id: str) -> BOMItem:
        """Clear order details and unlink the item from PO and invoice documents."""
        categories = self.repo.get_bom(project_id)
        updated = bom_ops.revert_item_to_not_ordered(bom_ops.get_item(categories, item_id))
        self.repo.save_bom(project_id, bom_ops.replace_item(categories, updated))

        order_documents = [
            d for d in self.repo.list_documents(project_id)
            if d.type in PO_DOCUMENT_TYPES or d.type in INVOICE_DOCUMENT_TYPES
        ]
        remove_item_from_documents(item_id, order_documents, self.repo.link_document)
        logger.info("Reverted %s to not-ordered", updated.name)
        return updated

    def link_document(self, project_id: str, item_id: str, document_id: str, actor: str = "system") -> BOMItem:
        """
        Link an item to a document without changing its status.  PO and
        invoice documents also set the item's pointer, replacing any
        previous link of the same kind.
        """
        categories = self.repo.get_bom(project_id)
        item = bom_ops.get_item(categories, item_id)
        document = self._require_document(project_id, document_id)
        documents = self.repo.list_documents(project_id)

        previous_document_id = None
        if document.type in PO_DOCUMENT_TYPES:
            previous_document_id = item.linked_po_document_id
            item = item.model_copy(update={"linked_po_document_id": document_id})
            sync = sync_po_document_links
        elif document.type in INVOICE_DOCUMENT_TYPES:
            previous_document_id = item.linked_invoice_document_id
            item = item.model_copy(update={"linked_invoice_document_id": document_id})
            sync = sync_invoice_document_links
        else:
            sync = sync_po_document_links

        self.repo.save_bom(project_id, bom_ops.replace_item(categories, item))
        sync(item_id, document_id, documents, self.repo.link_document, previous_document_id)
        self._audit_link(document_id, item_id, previous_document_id, actor)
        return item

    # ------------------------------------------------------------------
    # Batch status
    # ------------------------------------------------------------------

    def set_items_status(
        self,
        project_id: str,
        item_ids: Iterable[str],
        status: BOMStatus,
        actor: str = "system",
    ) -> list[BOMCategory]:
        """Set the status of many items in one BOM write."""
        ids = list(dict.fromkeys(item_ids))
        categories = self.repo.get_bom(project_id)
        if status == "ordered":
            missing = [
                item.name for item in bom_ops.flatten_items(categories)
                if item.id in ids and item.finalized_vendor is None
            ]
            if missing:
                raise InvalidStateError(
                    f"Cannot mark as ordered without a finalized vendor: {', '.join(missing)}"
                )

        updated = bom_ops.batch_update_item_status(categories, ids, status)
        self.repo.save_bom(project_id, updated)
        logger.info("Set %d item(s) in %s to %s", len(ids), project_id, status)
        self.repo.log_audit(f"bom/{project_id}", "items_status_changed", actor, {"item_ids": ids, "status": status})
        return updated

    # ------------------------------------------------------------------
    # Purchase orders
    # ------------------------------------------------------------------

    def create_purchase_order(self, data: CreatePOInput) -> PurchaseOrder:
        categories = self.repo.get_bom(data.project_id)
        unknown = [
            line.bom_item_id for line in data.items
            if line.bom_item_id and bom_ops.find_item(categories, line.bom_item_id) is None
        ]
        if unknown:
            raise ValidationError([f"Unknown BOM item: {item_id}" for item_id in unknown])
        return self.po_service.create_purchase_order(data)

    def send_purchase_order(
        self,
        project_id: str,
        po_id: str,
        sent_by: str,
        sent_to_email: Optional[str] = None,
    ) -> PurchaseOrder:
        """
        Send a draft PO and mark every BOM item on it as ordered.

        Items without a finalized vendor get one from the PO line (vendor
        name and rate).  Missing order date, PO number and expected arrival
        are filled in.  All of it lands in a single BOM write.
        """
        po = self.po_service.get_purchase_order(po_id)
        if po.project_id != project_id:
            raise NotFoundError(f"Purchase order {po_id} does not belong to project {project_id}")

        def mark_items_ordered(sent: PurchaseOrder) -> None:
            self._apply_sent_po(project_id, sent)

        return self.po_service.send_purchase_order(po_id, sent_by, sent_to_email, mark_items_ordered)

    def _apply_sent_po(self, project_id: str, po: PurchaseOrder) -> None:
        categories = self.repo.get_bom(project_id)
        order_date = (po.sent_at or datetime.now(timezone.utc)).date().isoformat()
        rates = {line.bom_item_id: line.rate for line in po.items if line.bom_item_id}

        item_ids = []
        for item_id in po.bom_item_ids:
            item = bom_ops.find_item(categories, item_id)
            if item is None:
                logger.warning("PO %s references missing BOM item %s", po.po_number, item_id)
                continue
            item_ids.append(item_id)

            vendor = item.finalized_vendor or VendorQuote(name=po.vendor_name, price=rates[item_id])
            updates: dict[str, Any] = {"finalized_vendor": vendor}
            if not item.po_number:
                updates["po_number"] = po.po_number
            if not item.order_date:
                updates["order_date"] = order_date
            if not item.expected_arrival:
                days = parse_lead_time_to_days(vendor.lead_time)
                if days > 0:
                    updates["expected_arrival"] = calculate_expected_arrival(updates.get("order_date", item.order_date), days)
            categories = bom_ops.replace_item(categories, item.model_copy(update=updates))

        categories = bom_ops.batch_update_item_status(categories, item_ids, "ordered")
        self.repo.save_bom(project_id, categories)
        logger.info("PO %s: marked %d BOM item(s) ordered", po.po_number, len(item_ids))
        self.repo.log_audit(
            f"bom/{project_id}", "items_status_changed", po.sent_by or "system",
            {"item_ids": item_ids, "status": "ordered", "po_number": po.po_number},
        )

    def generate_po_pdf(self, po_id: str, recipient_email: Optional[str] = None) -> dict:
        """Have the PDF service render (and optionally email) a PO; store the returned URL."""
        po = self.po_service.get_purchase_order(po_id)
        settings = self.repo.get_company_settings()
        if settings is None:
            raise NotFoundError("Company settings not configured")

        result = self.dispatcher.dispatch(po, settings, recipient_email)
        if result.get("status") == "success":
            self.po_service.set_pdf_url(po_id, result["pdf_url"])
        return result

    # ------------------------------------------------------------------
    # Documents
    # ------------------------------------------------------------------

    def add_document(self, document: ProjectDocument) -> ProjectDocument:
        if document.uploaded_at is None:
            document = document.model_copy(update={"uploaded_at": datetime.now(timezone.utc)})
        return self.repo.add_document(document)

    def check_document_deletion(self, project_id: str, document_id: str) -> DeletionCheck:
        document = self._require_document(project_id, document_id)
        return validate_document_deletion(document, bom_ops.flatten_items(self.repo.get_bom(project_id)))

    def delete_document(self, project_id: str, document_id: str, actor: str = "system") -> DeletionCheck:
        """
        Delete a document if the guard allows it, then clear item pointers
        that still reference it.  A blocked deletion raises InvalidStateError.
        """
        document = self._require_document(project_id, document_id)
        categories = self.repo.get_bom(project_id)
        check = validate_document_deletion(document, bom_ops.flatten_items(categories))
        if not check.can_delete:
            raise InvalidStateError(check.reason)

        self.repo.delete_document(document_id)

        changed = False
        for item in bom_ops.flatten_items(categories):
            updates = {}
            if item.linked_po_document_id == document_id:
                updates["linked_po_document_id"] = None
            if item.linked_invoice_document_id == document_id:
                updates["linked_invoice_document_id"] = None
            if updates:
                categories = bom_ops.replace_item(categories, item.model_copy(update=updates))
                changed = True
        if changed:
            self.repo.save_bom(project_id, categories)

        logger.info("Deleted document %s (%s)", document.name, document.type)
        self.repo.log_audit(
            f"project_documents/{document_id}", "document_deleted", actor,
            {"name": document.name, "type": document.type},
        )
        return check

    def _require_document(
        self,
        project_id: str,
        document_id: str,
        allowed_types: Optional[tuple[str, ...]] = None,
    ) -> ProjectDocument:
        document = self.repo.get_document(document_id)
        if document is None or document.project_id != project_id:
            raise NotFoundError(f"Document not found: {document_id}")
        if allowed_types and document.type not in allowed_types:
            raise ValidationError([
                f"Document {document.name} is a {document.type}; expected one of {', '.join(allowed_types)}"
            ])
        return document

    def _audit_link(self, document_id: str, item_id: str, previous_document_id: Optional[str], actor: str) -> None:
        self.repo.log_audit(
            f"project_documents/{document_id}", "document_linked", actor,
            {"bom_item_id": item_id, "previous_document_id": previous_document_id},
        )

    # ------------------------------------------------------------------
    # Reporting
    # ------------------------------------------------------------------

    def get_bom_cost(self, project_id: str) -> Decimal:
        return bom_ops.get_total_bom_cost(self.repo.get_bom(project_id))

    def get_inward_summary(self, project_id: str, today: Optional[date] = None) -> dict[str, int]:
        return summarize_inward(self.repo.get_bom(project_id), today, self.config.arriving_soon_days)

    def get_inward_report(self, project_id: str, today: Optional[date] = None) -> list[dict]:
        """Every component with its inward status, for the tracking view."""
        documents = self.repo.list_documents(project_id)
        rows = []
        for item in bom_ops.flatten_items(self.repo.get_bom(project_id)):
            if item.item_type == "service":
                continue
            po_document = find_linked_document(documents, item.linked_po_document_id)
            rows.append({
                "id": item.id,
                "name": item.name,
                "category": item.category,
                "status": item.status,
                "inward_status": get_inward_status(item, today, self.config.arriving_soon_days),
                "vendor": item.finalized_vendor.name if item.finalized_vendor else None,
                "po_number": item.po_number,
                "po_document": po_document.name if po_document else None,
                "order_date": item.order_date,
                "expected_arrival": item.expected_arrival,
                "actual_arrival": item.actual_arrival,
            })
        return rows

    # ------------------------------------------------------------------
    # Import
    # ------------------------------------------------------------------

    def import_bom(self, project_id: str, text: str) -> list[BOMItem]:
        """
        Extract items from text and add them to the project BOM in one
        write.  Categories that do not exist yet are created.
        """
        categories = self.repo.get_bom(project_id)
        makes = sorted({
            *(make for vendor in self.repo.list_vendors() for make in vendor.makes),
            *(item.make for item in bom_ops.flatten_items(categories) if item.make),
        })
        analysis = self.importer.analyze(text, [c.name for c in categories], makes)
        items = to_bom_items(analysis)

        for item in items:
            categories = bom_ops.add_category(categories, item.category)
            categories = bom_ops.add_item(categories, item)
        self.repo.save_bom(project_id, categories)
        logger.info("Imported %d item(s) into %s via %s", len(items), project_id, analysis.method)
        return items

    # ------------------------------------------------------------------
    # Health
    # ------------------------------------------------------------------

    def check_setup(self, check_llm: bool = True) -> dict:
        """Report whether the store, company settings and external services are usable."""
        settings = self.repo.get_company_settings()
        company_errors = (
            validate_company_settings(settings) if settings else ["Company settings not configured"]
        )
        return {
            "store": {"ok": True, "path": str(self.store.db_path)},
            "company": {"ok": not company_errors, "errors": company_errors},
            "llm": self.importer.check_connection() if check_llm else {"ok": None, "skipped": True},
            "pdf_service": {"ok": bool(self.config.pdf_service_url), "url": self.config.pdf_service_url},
            "gst_api": {"ok": bool(self.config.gst_api_url), "url": self.config.gst_api_url},
        }
