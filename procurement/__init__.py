from .errors import (
    ProcurementError, ConfigurationError, InvalidStateError,
    ValidationError, PersistenceError, NotFoundError,
)
from .store import DocumentStore, clean_document, to_document
from .repository import ProjectRepository
from .po_service import PurchaseOrderService, generate_po_number
from .tracker import BOMTracker

__all__ = [
    "ProcurementError", "ConfigurationError", "InvalidStateError",
    "ValidationError", "PersistenceError", "NotFoundError",
    "DocumentStore", "clean_document", "to_document",
    "ProjectRepository", "PurchaseOrderService", "generate_po_number",
    "BOMTracker",
]
