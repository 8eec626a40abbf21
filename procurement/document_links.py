"""
Item <-> document linkage and the document deletion guard.

The link is stored twice: a document lists its items in linked_bom_items,
and an item points back through linked_po_document_id or
linked_invoice_document_id.  The two sides are written by different code
paths, so every read here checks both directions.
"""
import logging
from typing import Callable, Iterable, Optional

from models.bom import BOMItem
from models.project_document import (
    DeletionCheck, DocumentType, ProjectDocument,
    INVOICE_DOCUMENT_TYPES, PO_DOCUMENT_TYPES,
)
from .errors import NotFoundError

logger = logging.getLogger(__name__)

# (document_id, bom_item_ids) -> None; persists a document's linked_bom_items
LinkDocumentFn = Callable[[str, list[str]], None]

# Item status that blocks deleting a document of the given kind
_BLOCKING_STATUS: dict[str, str] = {
    **{t: "ordered" for t in PO_DOCUMENT_TYPES},
    **{t: "received" for t in INVOICE_DOCUMENT_TYPES},
}


# ---------------------------------------------------------------------------
# Lookups
# ---------------------------------------------------------------------------

def filter_documents_by_type(
    documents: Iterable[ProjectDocument],
    doc_type: DocumentType,
) -> list[ProjectDocument]:
    return [d for d in documents if d.type == doc_type]


def get_outgoing_po_documents(documents: Iterable[ProjectDocument]) -> list[ProjectDocument]:
    """Documents that can back the 'ordered' relationship."""
    return [d for d in documents if d.type in PO_DOCUMENT_TYPES]


def find_linked_document(
    documents: Iterable[ProjectDocument],
    document_id: Optional[str],
) -> Optional[ProjectDocument]:
    if not document_id:
        return None
    return next((d for d in documents if d.id == document_id), None)


def find_linked_po_document(
    item: BOMItem,
    documents: Iterable[ProjectDocument],
) -> Optional[ProjectDocument]:
    """The item's PO document: its direct pointer first, then any PO document listing it."""
    documents = list(documents)
    direct = find_linked_document(documents, item.linked_po_document_id)
    if direct is not None:
        return direct
    return next(
        (d for d in get_outgoing_po_documents(documents) if item.id in d.linked_bom_items),
        None,
    )


def is_item_linked_to_document(item: BOMItem, document: ProjectDocument) -> bool:
    if item.id in document.linked_bom_items:
        return True
    if document.type in PO_DOCUMENT_TYPES:
        return item.linked_po_document_id == document.id
    if document.type in INVOICE_DOCUMENT_TYPES:
        return item.linked_invoice_document_id == document.id
    return False


# ---------------------------------------------------------------------------
# Synchronizer
# ---------------------------------------------------------------------------

def _sync_links(
    item_id: str,
    new_document_id: str,
    documents: list[ProjectDocument],
    link_document: LinkDocumentFn,
    previous_document_id: Optional[str],
) -> list[ProjectDocument]:
    by_id = {d.id: d for d in documents}
    target = by_id.get(new_document_id)
    if target is None:
        raise NotFoundError(f"Document not found: {new_document_id}")

    linked = list(dict.fromkeys([*target.linked_bom_items, item_id]))
    link_document(new_document_id, linked)
    by_id[new_document_id] = target.model_copy(update={"linked_bom_items": linked})
    logger.debug("Linked item %s to document %s", item_id, new_document_id)

    if previous_document_id and previous_document_id != new_document_id:
        previous = by_id.get(previous_document_id)
        if previous is None:
            logger.warning(
                "Previous document %s for item %s no longer exists, skipping unlink",
                previous_document_id, item_id,
            )
        else:
            remaining = [i for i in previous.linked_bom_items if i != item_id]
            link_document(previous_document_id, remaining)
            by_id[previous_document_id] = previous.model_copy(update={"linked_bom_items": remaining})
            logger.debug("Unlinked item %s from document %s", item_id, previous_document_id)

    return [by_id[d.id] for d in documents]


def sync_po_document_links(
    item_id: str,
    new_document_id: str,
    documents: list[ProjectDocument],
    link_document: LinkDocumentFn,
    previous_document_id: Optional[str] = None,
) -> list[ProjectDocument]:
    """
    Link an item to a PO document, unlinking it from the previous one.

    The new document's list becomes the de-duplicated union with item_id and
    is persisted first; the previous document (if different) then has the
    item removed and is persisted.  Returns the refreshed document list so
    the caller does not need to re-fetch.  A failure in link_document
    propagates; there is no rollback of an already-persisted step.
    """
    return _sync_links(item_id, new_document_id, documents, link_document, previous_document_id)


def sync_invoice_document_links(
    item_id: str,
    new_document_id: str,
    documents: list[ProjectDocument],
    link_document: LinkDocumentFn,
    previous_document_id: Optional[str] = None,
) -> list[ProjectDocument]:
    """Same as sync_po_document_links, for the 'received' relationship."""
    return _sync_links(item_id, new_document_id, documents, link_document, previous_document_id)


def remove_item_from_documents(
    item_id: str,
    documents: list[ProjectDocument],
    link_document: LinkDocumentFn,
) -> list[ProjectDocument]:
    """Drop an item from every document that lists it (used when the item is deleted)."""
    result = []
    for doc in documents:
        if item_id in doc.linked_bom_items:
            remaining = [i for i in doc.linked_bom_items if i != item_id]
            link_document(doc.id, remaining)
            doc = doc.model_copy(update={"linked_bom_items": remaining})
        result.append(doc)
    return result


# ---------------------------------------------------------------------------
# Deletion guard
# ---------------------------------------------------------------------------

def validate_document_deletion(document: ProjectDocument, items: Iterable[BOMItem]) -> DeletionCheck:
    """
    Decide whether a document may be deleted.

      vendor-po / outgoing-po  blocked while a linked item is 'ordered'
      vendor-invoice           blocked while a linked item is 'received'
      anything else            always deletable
    """
    blocking_status = _BLOCKING_STATUS.get(document.type)
    if blocking_status is None:
        return DeletionCheck(can_delete=True)

    blocked = [
        item for item in items
        if item.status == blocking_status and is_item_linked_to_document(item, document)
    ]
    if not blocked:
        return DeletionCheck(can_delete=True)

    names = ", ".join(item.name for item in blocked)
    kind = "PO" if document.type in PO_DOCUMENT_TYPES else "invoice"
    return DeletionCheck(
        can_delete=False,
        blocked_by_items=blocked,
        reason=(
            f"Cannot delete this {kind} document: it is linked to {len(blocked)} "
            f"{blocking_status} item(s): {names}. Change their status first."
        ),
    )
