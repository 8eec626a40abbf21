from .bom import BOMItem, BOMCategory, VendorQuote, BOMStatus, BOMItemType, InwardStatus
from .purchase_order import (
    PurchaseOrder, POItem, POWarning, POTotals, POStatus, TaxType,
    CreatePOInput, UpdatePOInput,
)
from .project_document import ProjectDocument, DocumentType, DeletionCheck
from .settings import CompanySettings, Vendor, Client
from .bom_import import ExtractedBOMItem, BOMAnalysis
from .gst import GSTAddress, GSTTaxpayer, GSTVerificationResult

__all__ = [
    "BOMItem", "BOMCategory", "VendorQuote", "BOMStatus", "BOMItemType", "InwardStatus",
    "PurchaseOrder", "POItem", "POWarning", "POTotals", "POStatus", "TaxType",
    "CreatePOInput", "UpdatePOInput",
    "ProjectDocument", "DocumentType", "DeletionCheck",
    "CompanySettings", "Vendor", "Client",
    "ExtractedBOMItem", "BOMAnalysis",
    "GSTAddress", "GSTTaxpayer", "GSTVerificationResult",
]
