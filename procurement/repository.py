"""
Maps domain models onto DocumentStore collections.

  bom/<project_id>           {project_id, categories: [...]}
  project_documents/<id>     ProjectDocument
  purchase_orders/<id>       PurchaseOrder
  settings/company           CompanySettings (holds the PO counter)
  vendors/<id>               Vendor

Everything returned from here is a validated model; storage-shaped dicts
never leave this module.
"""
import logging
from typing import Callable, Optional

from models.bom import BOMCategory
from models.project_document import ProjectDocument
from models.purchase_order import PurchaseOrder, POStatus
from models.settings import CompanySettings, Vendor
from .store import DocumentStore, to_document

logger = logging.getLogger(__name__)

BOM = "bom"
DOCUMENTS = "project_documents"
PURCHASE_ORDERS = "purchase_orders"
SETTINGS = "settings"
VENDORS = "vendors"

COMPANY_SETTINGS_ID = "company"


class ProjectRepository:
    def __init__(self, store: DocumentStore) -> None:
        self.store = store

    # ------------------------------------------------------------------
    # BOM
    # ------------------------------------------------------------------

    def get_bom(self, project_id: str) -> list[BOMCategory]:
        doc = self.store.get(BOM, project_id)
        if doc is None:
            return []
        return [BOMCategory.model_validate(c) for c in doc.get("categories", [])]

    def save_bom(self, project_id: str, categories: list[BOMCategory]) -> None:
        """Persist the whole category list as one write."""
        self.store.set(BOM, project_id, {
            "project_id": project_id,
            "categories": [to_document(c) for c in categories],
        })

    def subscribe_bom(
        self,
        project_id: str,
        callback: Callable[[list[BOMCategory]], None],
    ) -> Callable[[], None]:
        def on_snapshot(snapshot: list[dict]) -> None:
            categories = snapshot[0].get("categories", []) if snapshot else []
            callback([BOMCategory.model_validate(c) for c in categories])

        return self.store.subscribe(BOM, on_snapshot, [("project_id", "==", project_id)])

    # ------------------------------------------------------------------
    # Project documents
    # ------------------------------------------------------------------

    def list_documents(self, project_id: str) -> list[ProjectDocument]:
        rows = self.store.query(DOCUMENTS, [("project_id", "==", project_id)])
        return [ProjectDocument.model_validate(r) for r in rows]

    def get_document(self, document_id: str) -> Optional[ProjectDocument]:
        row = self.store.get(DOCUMENTS, document_id)
        return ProjectDocument.model_validate(row) if row else None

    def add_document(self, document: ProjectDocument) -> ProjectDocument:
        """Store a document; an empty id gets a generated one."""
        if document.id:
            self.store.set(DOCUMENTS, document.id, to_document(document))
            return document
        doc_id = self.store.add(DOCUMENTS, to_document(document))
        return document.model_copy(update={"id": doc_id})

    def link_document(self, document_id: str, bom_item_ids: list[str]) -> None:
        """Replace a document's linked_bom_items.  Used as the link-sync callback."""
        self.store.update(DOCUMENTS, document_id, {"linked_bom_items": list(bom_item_ids)})

    def delete_document(self, document_id: str) -> bool:
        return self.store.delete(DOCUMENTS, document_id)

    def subscribe_documents(
        self,
        project_id: str,
        callback: Callable[[list[ProjectDocument]], None],
    ) -> Callable[[], None]:
        def on_snapshot(snapshot: list[dict]) -> None:
            callback([ProjectDocument.model_validate(r) for r in snapshot])

        return self.store.subscribe(DOCUMENTS, on_snapshot, [("project_id", "==", project_id)])

    # ------------------------------------------------------------------
    # Company settings
    # ------------------------------------------------------------------

    def get_company_settings(self) -> Optional[CompanySettings]:
        row = self.store.get(SETTINGS, COMPANY_SETTINGS_ID)
        return CompanySettings.model_validate(row) if row else None

    def save_company_settings(self, settings: CompanySettings) -> None:
        self.store.set(SETTINGS, COMPANY_SETTINGS_ID, to_document(settings))

    def increment_po_counter(self) -> int:
        """Bump next_po_number by exactly one and return the new value."""
        return self.store.increment(SETTINGS, COMPANY_SETTINGS_ID, "next_po_number")

    # ------------------------------------------------------------------
    # Purchase orders
    # ------------------------------------------------------------------

    def add_purchase_order(self, po: PurchaseOrder) -> PurchaseOrder:
        po_id = self.store.add(PURCHASE_ORDERS, to_document(po))
        return po.model_copy(update={"id": po_id})

    def get_purchase_order(self, po_id: str) -> Optional[PurchaseOrder]:
        row = self.store.get(PURCHASE_ORDERS, po_id)
        return PurchaseOrder.model_validate(row) if row else None

    def save_purchase_order(self, po: PurchaseOrder) -> None:
        self.store.set(PURCHASE_ORDERS, po.id, to_document(po))

    def list_purchase_orders(
        self,
        project_id: str,
        vendor_id: Optional[str] = None,
        status: Optional[POStatus] = None,
    ) -> list[PurchaseOrder]:
        """Newest first."""
        filters = [("project_id", "==", project_id)]
        if vendor_id:
            filters.append(("vendor_id", "==", vendor_id))
        if status:
            filters.append(("status", "==", status))
        rows = self.store.query(PURCHASE_ORDERS, filters, order_by="created_at", descending=True)
        return [PurchaseOrder.model_validate(r) for r in rows]

    def delete_purchase_order(self, po_id: str) -> bool:
        return self.store.delete(PURCHASE_ORDERS, po_id)

    # ------------------------------------------------------------------
    # Vendors
    # ------------------------------------------------------------------

    def list_vendors(self) -> list[Vendor]:
        rows = self.store.query(VENDORS, order_by="company")
        return [Vendor.model_validate(r) for r in rows]

    def get_vendor(self, vendor_id: str) -> Optional[Vendor]:
        row = self.store.get(VENDORS, vendor_id)
        return Vendor.model_validate(row) if row else None

    def add_vendor(self, vendor: Vendor) -> Vendor:
        vendor_id = self.store.add(VENDORS, to_document(vendor))
        return vendor.model_copy(update={"id": vendor_id})

    # ------------------------------------------------------------------
    # Audit
    # ------------------------------------------------------------------

    def log_audit(self, entity: str, action: str, actor: str = "system", detail: Optional[dict] = None) -> None:
        self.store.log_audit(entity, action, actor, detail)
