from pydantic import BaseModel, Field
from typing import Optional, List, Literal

from .purchase_order import NumberFormat


class CompanySettings(BaseModel):
    """
    Buyer-side company details used when generating POs.
    next_po_number is the counter consumed by PO numbering.
    """
    company_name: str = ""
    company_address: str = ""
    gstin: str = ""
    state_code: str = ""               # "29" for Karnataka
    state_name: str = ""
    pan: Optional[str] = None

    phone: Optional[str] = None
    email: Optional[str] = None
    website: Optional[str] = None

    po_number_prefix: str = "PO"
    po_number_format: NumberFormat = "simple"
    next_po_number: int = Field(default=1, ge=1)

    default_payment_terms: Optional[str] = None
    default_delivery_terms: Optional[str] = None
    default_terms_and_conditions: Optional[str] = None

    logo_path: Optional[str] = None    # blob store path of the logo, optional


class Vendor(BaseModel):
    """A vendor from the settings master list."""
    id: Optional[str] = None
    company: str
    type: Literal["OEM", "Dealer"] = "Dealer"
    makes: List[str] = Field(default_factory=list)   # brands this vendor supplies
    email: Optional[str] = None
    phone: Optional[str] = None
    website: Optional[str] = None
    address: Optional[str] = None
    contact_person: Optional[str] = None
    payment_terms: Optional[str] = None
    lead_time: Optional[str] = None
    gstin: Optional[str] = None
    state_code: Optional[str] = None
    state_name: Optional[str] = None
    rating: Optional[float] = None
    notes: Optional[str] = None


class Client(BaseModel):
    id: Optional[str] = None
    company: str
    email: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None
    contact_person: Optional[str] = None
    notes: Optional[str] = None
