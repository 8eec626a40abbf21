from datetime import datetime
from pydantic import BaseModel, Field
from typing import Optional, List, Literal

from .bom import BOMItem


DocumentType = Literal[
    "vendor-quote",
    "vendor-po",        # manually uploaded PO (pre-system)
    "outgoing-po",      # PO generated by this system
    "vendor-invoice",
    "customer-po",
    "spec-sheet",
]

# Document types on the "ordered" side of the item <-> document link
PO_DOCUMENT_TYPES = ("vendor-po", "outgoing-po")
INVOICE_DOCUMENT_TYPES = ("vendor-invoice",)


class ProjectDocument(BaseModel):
    """
    An uploaded project artifact.

    linked_bom_items is the document -> items side of the link; items
    carry the reverse pointer (linked_po_document_id / linked_invoice_document_id).
    """
    id: str
    project_id: str
    name: str
    url: str = ""
    type: DocumentType
    uploaded_at: Optional[datetime] = None
    uploaded_by: Optional[str] = None
    linked_bom_items: List[str] = Field(default_factory=list)
    file_size: Optional[int] = None
    source_url: Optional[str] = None


class DeletionCheck(BaseModel):
    """Outcome of the document deletion guard."""
    can_delete: bool
    blocked_by_items: List[BOMItem] = Field(default_factory=list)
    reason: Optional[str] = None
