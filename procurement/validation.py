"""
Field validation for settings entities and the vendor CSV import.

Validators return a list of messages rather than raising on the first
problem, so a form or an import can report everything at once.  Callers
wrap a non-empty list in ValidationError.
"""
import csv
import io
import logging
import re
from urllib.parse import urlparse

from models.settings import Client, CompanySettings, Vendor
from .errors import ValidationError
from .gst import is_valid_gstin_format
from .tax import INDIAN_STATE_CODES

logger = logging.getLogger(__name__)

_EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")

DEFAULT_PAYMENT_TERMS = "Net 30"
DEFAULT_LEAD_TIME = "2 weeks"


def is_valid_email(email: str) -> bool:
    return bool(_EMAIL_RE.match(email))


def is_valid_website(website: str) -> bool:
    url = website if website.startswith("http") else f"https://{website}"
    parsed = urlparse(url)
    return bool(parsed.netloc) and not any(c.isspace() for c in parsed.netloc)


def validate_vendor(vendor: Vendor) -> list[str]:
    errors = []
    if not vendor.company.strip():
        errors.append("Company name is required")
    if vendor.email and not is_valid_email(vendor.email):
        errors.append("Invalid email format")
    if vendor.rating is not None and not 0 <= vendor.rating <= 5:
        errors.append("Rating must be between 0 and 5")
    if vendor.gstin and not is_valid_gstin_format(vendor.gstin):
        errors.append("Invalid GSTIN format")
    return errors


def validate_client(client: Client) -> list[str]:
    errors = []
    if not client.company.strip():
        errors.append("Company name is required")
    if client.email and not is_valid_email(client.email):
        errors.append("Invalid email format")
    return errors


def validate_company_settings(settings: CompanySettings) -> list[str]:
    """Checks needed before the company can issue POs."""
    errors = []
    if not settings.company_name.strip():
        errors.append("Company name is required")
    if not settings.gstin:
        errors.append("Company GSTIN is required")
    elif not is_valid_gstin_format(settings.gstin):
        errors.append("Invalid GSTIN format")
    if not settings.state_code:
        errors.append("Company state code is required")
    elif settings.state_code not in INDIAN_STATE_CODES:
        errors.append(f"Unknown state code: {settings.state_code}")
    elif settings.gstin and settings.gstin[:2] != settings.state_code:
        errors.append("State code does not match the first two digits of the GSTIN")
    if settings.email and not is_valid_email(settings.email):
        errors.append("Invalid email format")
    if not settings.po_number_prefix.strip():
        errors.append("PO number prefix is required")
    return errors


# ---------------------------------------------------------------------------
# Vendor CSV import
# ---------------------------------------------------------------------------

def _header_key(header: str) -> str:
    return re.sub(r"[^a-z]", "", header.lower())


def _row_to_vendor_fields(row: dict) -> dict:
    fields: dict = {}
    for header, raw in row.items():
        if header is None:
            continue
        value = (raw or "").strip() if isinstance(raw, str) else ""
        key = _header_key(header)
        if key in ("company", "name"):
            fields["company"] = value
        elif key == "type":
            fields["type"] = value if value in ("OEM", "Dealer") else "Dealer"
        elif key in ("email", "phone", "website", "address", "notes"):
            fields[key] = value or None
        elif key == "contactperson":
            fields["contact_person"] = value or None
        elif key == "paymentterms":
            fields["payment_terms"] = value or DEFAULT_PAYMENT_TERMS
        elif key == "leadtime":
            fields["lead_time"] = value or DEFAULT_LEAD_TIME
        elif key == "gstin":
            fields["gstin"] = value.upper() or None
    fields.setdefault("company", "")
    return fields


def validate_vendor_row(fields: dict, line_number: int) -> list[str]:
    errors = []
    if not fields.get("company"):
        errors.append(f"Line {line_number}: Company is required")
    if fields.get("email") and not is_valid_email(fields["email"]):
        errors.append(f"Line {line_number}: Invalid email format")
    if fields.get("website") and not is_valid_website(fields["website"]):
        errors.append(f"Line {line_number}: Invalid website format")
    return errors


def parse_vendor_csv(text: str) -> list[Vendor]:
    """
    Parse a vendor import CSV (Company, Type, Email, Phone, Website, Logo,
    PaymentTerms, LeadTime, Address, ContactPerson, Notes).

    Every row is checked; if any row is bad a single ValidationError lists
    all problems with their line numbers (header is line 1).
    """
    lines = [line for line in text.strip().splitlines() if line.strip()]
    if len(lines) < 2:
        raise ValidationError(["CSV file must contain at least a header row and one data row"])

    reader = csv.DictReader(io.StringIO("\n".join(lines)))
    vendors: list[Vendor] = []
    errors: list[str] = []
    for line_number, row in enumerate(reader, start=2):
        fields = _row_to_vendor_fields(row)
        row_errors = validate_vendor_row(fields, line_number)
        if row_errors:
            errors.extend(row_errors)
            continue
        vendors.append(Vendor.model_validate(fields))

    if errors:
        raise ValidationError(errors)
    logger.info("Parsed %d vendors from CSV", len(vendors))
    return vendors
