from decimal import Decimal
from pydantic import BaseModel, Field
from typing import Optional, List, Literal


BOMStatus = Literal["not-ordered", "ordered", "received", "approved"]

# "approved" is a legacy value that still appears in stored BOMs.
# It is accepted on read but nothing transitions into it.
TARGET_STATUSES = ("not-ordered", "ordered", "received")
LEGACY_STATUSES = ("approved",)

BOMItemType = Literal["component", "service"]


class VendorQuote(BaseModel):
    """A vendor offer for a BOM item; frozen onto the item as finalized_vendor at order time."""
    name: str
    price: Decimal = Decimal("0")
    lead_time: str = ""                 # free text, e.g. "2-3 weeks"
    availability: str = ""


class BOMItem(BaseModel):
    """
    A procurable unit in a project BOM.

    For components price is a unit price and quantity a unit count.
    For services price is a day rate and quantity a duration in days
    (0.5 day granularity).  Dates are ISO strings (YYYY-MM-DD).
    """
    id: str
    item_type: BOMItemType = "component"
    name: str
    make: Optional[str] = None
    description: str = ""
    sku: Optional[str] = None
    category: str                       # must match the containing BOMCategory.name
    quantity: Decimal = Field(default=Decimal("1"), ge=0)
    price: Optional[Decimal] = None     # None means "unpriced"
    vendors: List[VendorQuote] = Field(default_factory=list)

    status: BOMStatus = "not-ordered"
    finalized_vendor: Optional[VendorQuote] = None

    order_date: Optional[str] = None
    expected_arrival: Optional[str] = None
    actual_arrival: Optional[str] = None

    po_number: Optional[str] = None
    linked_po_document_id: Optional[str] = None
    linked_invoice_document_id: Optional[str] = None


class BOMCategory(BaseModel):
    """A named group of BOM items, owned by the project's BOM document."""
    name: str
    is_expanded: bool = True
    items: List[BOMItem] = Field(default_factory=list)


InwardStatus = Literal["not-ordered", "on-track", "arriving-soon", "overdue", "received"]
