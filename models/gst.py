from pydantic import BaseModel, Field
from typing import Optional


class GSTAddress(BaseModel):
    building_number: str = ""
    building_name: str = ""
    street: str = ""
    location: str = ""
    district: str = ""
    state: str = ""
    pincode: str = ""


class GSTTaxpayer(BaseModel):
    """Registration details returned by the GST verification API."""
    gstin: str
    trade_name: str = ""
    legal_name: str = ""
    status: str = "Unknown"         # "Active", "Cancelled", ...
    registration_date: str = ""
    business_type: str = ""
    address: GSTAddress = Field(default_factory=GSTAddress)
    state_code: str = ""
    state_name: str = ""
    formatted_address: str = ""


class GSTVerificationResult(BaseModel):
    success: bool
    error: Optional[str] = None
    data: Optional[GSTTaxpayer] = None
