from datetime import date, datetime
from decimal import Decimal
from pydantic import BaseModel, Field
from typing import Optional, List, Literal


POStatus = Literal[
    "draft",               # created, editable
    "sent",                # sent to vendor, immutable from here on
    "acknowledged",        # vendor acknowledged receipt
    "partially-received",
    "completed",
    "cancelled",
]

TaxType = Literal["igst", "cgst-sgst"]
NumberFormat = Literal["simple", "financial-year"]


class POItem(BaseModel):
    """A single line on a Purchase Order."""
    bom_item_id: Optional[str] = None   # BOM item this line orders
    sl_no: int = 0                      # assigned densely from 1 at creation
    description: str
    item_code: Optional[str] = None
    make: Optional[str] = None
    hsn: Optional[str] = None
    uom: str = "nos"                    # "nos", "Days", "Mtrs"
    quantity: Decimal = Field(ge=0)
    rate: Decimal = Field(ge=0)
    discount_percent: Optional[Decimal] = Field(default=None, ge=0, le=100)
    amount: Decimal = Decimal("0")      # recomputed from quantity/rate/discount
    due_date: Optional[date] = None


class POWarning(BaseModel):
    field: str
    message: str
    severity: Literal["error", "warning"] = "warning"


class POTotals(BaseModel):
    """Output of the tax calculator; a pure function of items, tax type and rate."""
    subtotal: Decimal
    igst_amount: Optional[Decimal] = None
    cgst_amount: Optional[Decimal] = None
    sgst_amount: Optional[Decimal] = None
    total_amount: Decimal
    amount_in_words: str


class PurchaseOrder(BaseModel):
    """
    An outgoing Purchase Order.

    Financial fields are always derived from items, tax_type and
    tax_percentage; they are never edited independently.
    """
    id: Optional[str] = None
    project_id: str
    po_number: str

    # --- Vendor ---
    vendor_id: Optional[str] = None
    vendor_name: str
    vendor_address: str = ""
    vendor_gstin: str = ""
    vendor_state_code: str = ""
    vendor_state_name: str = ""
    vendor_email: Optional[str] = None
    vendor_phone: Optional[str] = None

    # --- References ---
    project_reference: str = ""
    vendor_quote_reference: Optional[str] = None
    customer_po_reference: Optional[str] = None

    # --- Invoice to (company settings at creation time) ---
    invoice_to_company: str = ""
    invoice_to_address: str = ""
    invoice_to_gstin: str = ""
    invoice_to_state_code: str = ""
    invoice_to_state_name: str = ""

    # --- Ship to (editable while draft) ---
    ship_to_address: str = ""
    ship_to_gstin: Optional[str] = None
    ship_to_state_code: Optional[str] = None
    ship_to_state_name: Optional[str] = None

    items: List[POItem] = Field(default_factory=list)

    # --- Financials ---
    subtotal: Decimal = Decimal("0")
    tax_type: TaxType
    tax_percentage: Decimal = Decimal("18")
    igst_amount: Optional[Decimal] = None
    cgst_amount: Optional[Decimal] = None
    sgst_amount: Optional[Decimal] = None
    total_amount: Decimal = Decimal("0")
    amount_in_words: str = ""
    currency: Literal["INR"] = "INR"

    # --- Terms ---
    payment_terms: str = ""
    delivery_terms: str = ""
    dispatched_through: Optional[str] = None
    destination: Optional[str] = None
    terms_and_conditions: Optional[str] = None
    include_annexure: bool = False

    # --- Dates / status ---
    po_date: datetime
    expected_delivery_date: Optional[date] = None
    status: POStatus = "draft"
    sent_at: Optional[datetime] = None
    sent_by: Optional[str] = None
    sent_to_email: Optional[str] = None
    closed_at: Optional[datetime] = None

    pdf_url: Optional[str] = None
    warnings: List[POWarning] = Field(default_factory=list)

    created_at: datetime
    created_by: str = ""
    updated_at: datetime

    @property
    def bom_item_ids(self) -> List[str]:
        """BOM item ids referenced by the PO lines, in line order, without duplicates."""
        return list(dict.fromkeys(i.bom_item_id for i in self.items if i.bom_item_id))


class CreatePOInput(BaseModel):
    """Caller-supplied fields for a new PO; numbering, totals and addresses are derived."""
    project_id: str
    project_reference: str = ""

    vendor_id: Optional[str] = None
    vendor_name: str
    vendor_address: str = ""
    vendor_gstin: str = ""
    vendor_state_code: str = ""
    vendor_state_name: str = ""
    vendor_email: Optional[str] = None
    vendor_phone: Optional[str] = None
    vendor_quote_reference: Optional[str] = None

    items: List[POItem]

    payment_terms: Optional[str] = None     # falls back to company defaults
    delivery_terms: Optional[str] = None
    dispatched_through: Optional[str] = None
    destination: Optional[str] = None
    terms_and_conditions: Optional[str] = None
    include_annexure: bool = False

    expected_delivery_date: Optional[date] = None
    customer_po_reference: Optional[str] = None

    created_by: str = ""


class UpdatePOInput(BaseModel):
    """Fields editable while a PO is still a draft.  Items are never edited."""
    payment_terms: Optional[str] = None
    delivery_terms: Optional[str] = None
    dispatched_through: Optional[str] = None
    destination: Optional[str] = None
    terms_and_conditions: Optional[str] = None
    include_annexure: Optional[bool] = None
    expected_delivery_date: Optional[date] = None
    customer_po_reference: Optional[str] = None
    vendor_quote_reference: Optional[str] = None

    ship_to_address: Optional[str] = None
    ship_to_gstin: Optional[str] = None
    ship_to_state_code: Optional[str] = None
    ship_to_state_name: Optional[str] = None
