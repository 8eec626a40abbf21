"""
Purchase Order numbering, assembly and lifecycle.

A PO is created as a draft from a CreatePOInput plus the company settings
stored in settings/company.  Totals are always derived from the lines via
procurement.tax; nothing here accepts a caller-supplied total.

Status transitions
------------------
  draft               -> sent | cancelled
  sent                -> acknowledged | partially-received | completed | cancelled
  acknowledged        -> partially-received | completed | cancelled
  partially-received  -> completed | cancelled

draft -> sent only happens through send_purchase_order(), which hands the
sent PO to a callback so every referenced BOM item can be marked ordered
in one write.
"""
import logging
from datetime import date, datetime, timezone
from typing import Callable, Iterable, Optional

from models.purchase_order import (
    CreatePOInput, NumberFormat, POItem, POStatus, POWarning, PurchaseOrder, UpdatePOInput,
)
from models.settings import CompanySettings
from .errors import (
    ConfigurationError, InvalidStateError, NotFoundError, ProcurementError, ValidationError,
)
from .repository import ProjectRepository
from .tax import (
    DEFAULT_TAX_PERCENTAGE, calculate_po_totals, determine_tax_type, line_amount, to_decimal,
)

logger = logging.getLogger(__name__)

PO_TRANSITIONS: dict[str, tuple[str, ...]] = {
    "draft":              ("sent", "cancelled"),
    "sent":               ("acknowledged", "partially-received", "completed", "cancelled"),
    "acknowledged":       ("partially-received", "completed", "cancelled"),
    "partially-received": ("completed", "cancelled"),
    "completed":          (),
    "cancelled":          (),
}
CLOSED_STATUSES = ("completed", "cancelled")

# Called with the PO after it has been marked sent
UpdateBOMItemsFn = Callable[[PurchaseOrder], None]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ---------------------------------------------------------------------------
# Pure helpers
# ---------------------------------------------------------------------------

def financial_year(today: date) -> str:
    """Indian financial year (April to March) as 'YY-YY'."""
    start = today.year if today.month >= 4 else today.year - 1
    return f"{start % 100:02d}-{(start + 1) % 100:02d}"


def generate_po_number(
    prefix: str,
    fmt: NumberFormat,
    next_number: int,
    today: Optional[date] = None,
) -> str:
    """
    simple          PREFIX-YYYY-NNN    e.g. PO-2025-001
    financial-year  PREFIX/YY-YY/NNN   e.g. PO/25-26/001

    The counter is padded to three digits and grows past that when needed.
    """
    if fmt not in ("simple", "financial-year"):
        raise ValueError(f"Invalid PO number format {fmt!r}. Must be 'simple' or 'financial-year'")
    today = today or date.today()
    counter = f"{next_number:03d}"
    if fmt == "financial-year":
        return f"{prefix}/{financial_year(today)}/{counter}"
    return f"{prefix}-{today.year}-{counter}"


def assign_serial_numbers(items: Iterable[POItem]) -> list[POItem]:
    """Number lines densely from 1 and recompute each line amount."""
    return [
        item.model_copy(update={
            "sl_no": index,
            "amount": line_amount(item.quantity, item.rate, item.discount_percent),
        })
        for index, item in enumerate(items, start=1)
    ]


def validate_vendor_for_po(
    gstin: Optional[str],
    state_code: Optional[str],
    email: Optional[str] = None,
) -> list[POWarning]:
    """Vendor fields a PO depends on.  'error' severity blocks creation."""
    warnings = []
    if not gstin:
        warnings.append(POWarning(
            field="vendor_gstin",
            message="Vendor GSTIN not set. Please update it in the vendor settings",
            severity="error",
        ))
    if not state_code:
        warnings.append(POWarning(
            field="vendor_state_code",
            message="Vendor state code not set. Please update it in the vendor settings",
            severity="error",
        ))
    if not email:
        warnings.append(POWarning(
            field="vendor_email",
            message="Vendor email not set. The PO will have to be sent manually",
            severity="warning",
        ))
    return warnings


def build_purchase_order(
    data: CreatePOInput,
    settings: CompanySettings,
    po_number: str,
    tax_percentage=DEFAULT_TAX_PERCENTAGE,
    warnings: Optional[list[POWarning]] = None,
    now: Optional[datetime] = None,
) -> PurchaseOrder:
    """Assemble a draft PO.  Invoice-to and ship-to come from the company settings."""
    now = now or _utcnow()
    tax_type = determine_tax_type(settings.state_code, data.vendor_state_code)
    items = assign_serial_numbers(data.items)
    totals = calculate_po_totals(items, tax_type, tax_percentage)

    return PurchaseOrder(
        project_id=data.project_id,
        po_number=po_number,
        vendor_id=data.vendor_id,
        vendor_name=data.vendor_name,
        vendor_address=data.vendor_address,
        vendor_gstin=data.vendor_gstin,
        vendor_state_code=data.vendor_state_code,
        vendor_state_name=data.vendor_state_name,
        vendor_email=data.vendor_email,
        vendor_phone=data.vendor_phone,
        project_reference=data.project_reference,
        vendor_quote_reference=data.vendor_quote_reference,
        customer_po_reference=data.customer_po_reference,
        invoice_to_company=settings.company_name,
        invoice_to_address=settings.company_address,
        invoice_to_gstin=settings.gstin,
        invoice_to_state_code=settings.state_code,
        invoice_to_state_name=settings.state_name,
        ship_to_address=settings.company_address,
        ship_to_gstin=settings.gstin,
        ship_to_state_code=settings.state_code,
        ship_to_state_name=settings.state_name,
        items=items,
        subtotal=totals.subtotal,
        tax_type=tax_type,
        tax_percentage=to_decimal(tax_percentage),
        igst_amount=totals.igst_amount,
        cgst_amount=totals.cgst_amount,
        sgst_amount=totals.sgst_amount,
        total_amount=totals.total_amount,
        amount_in_words=totals.amount_in_words,
        payment_terms=data.payment_terms or settings.default_payment_terms or "",
        delivery_terms=data.delivery_terms or settings.default_delivery_terms or "",
        dispatched_through=data.dispatched_through,
        destination=data.destination,
        terms_and_conditions=data.terms_and_conditions or settings.default_terms_and_conditions,
        include_annexure=data.include_annexure,
        po_date=now,
        expected_delivery_date=data.expected_delivery_date,
        status="draft",
        warnings=warnings or [],
        created_at=now,
        created_by=data.created_by,
        updated_at=now,
    )


# ---------------------------------------------------------------------------
# Service
# ---------------------------------------------------------------------------

class PurchaseOrderService:
    """PO persistence and lifecycle on top of a ProjectRepository."""

    def __init__(self, repo: ProjectRepository, tax_percentage=DEFAULT_TAX_PERCENTAGE) -> None:
        self.repo = repo
        self.tax_percentage = to_decimal(tax_percentage)

    def create_purchase_order(self, data: CreatePOInput, today: Optional[date] = None) -> PurchaseOrder:
        """
        Create a draft PO and consume one PO number.

        The PO is written first and the counter incremented afterwards.  If
        the increment fails the PO still exists and the failure is logged;
        the next PO may then reuse the number and needs a manual fix.
        """
        settings = self.repo.get_company_settings()
        if settings is None:
            raise ConfigurationError(
                "Company settings not configured. Set up company details before creating POs."
            )
        if not settings.gstin or not settings.state_code:
            raise ConfigurationError("Company GSTIN and state code must be configured.")
        if not data.items:
            raise ValidationError(["A purchase order needs at least one item"])

        warnings = validate_vendor_for_po(data.vendor_gstin, data.vendor_state_code, data.vendor_email)
        blocking = [w.message for w in warnings if w.severity == "error"]
        if blocking:
            raise ValidationError(blocking)

        po_number = generate_po_number(
            settings.po_number_prefix, settings.po_number_format, settings.next_po_number, today,
        )
        po = build_purchase_order(data, settings, po_number, self.tax_percentage, warnings)
        po = self.repo.add_purchase_order(po)
        logger.info(
            "Created PO %s (%s) for %s: %s lines, total %s",
            po.po_number, po.id, po.vendor_name, len(po.items), po.total_amount,
        )

        try:
            self.repo.increment_po_counter()
        except ProcurementError as e:
            logger.warning("PO %s created but the PO counter was not incremented: %s", po.po_number, e)

        self.repo.log_audit(
            f"purchase_orders/{po.id}", "po_created", data.created_by,
            {"po_number": po.po_number, "total_amount": po.total_amount, "tax_type": po.tax_type},
        )
        return po

    def get_purchase_order(self, po_id: str) -> PurchaseOrder:
        po = self.repo.get_purchase_order(po_id)
        if po is None:
            raise NotFoundError(f"Purchase order not found: {po_id}")
        return po

    def list_purchase_orders(
        self,
        project_id: str,
        vendor_id: Optional[str] = None,
        status: Optional[POStatus] = None,
    ) -> list[PurchaseOrder]:
        return self.repo.list_purchase_orders(project_id, vendor_id, status)

    def update_purchase_order(self, po_id: str, updates: UpdatePOInput) -> PurchaseOrder:
        """Edit terms, dates, references or ship-to of a draft PO."""
        po = self.get_purchase_order(po_id)
        if po.status != "draft":
            raise InvalidStateError(f"PO {po.po_number} is {po.status}; only draft POs can be edited")

        fields = updates.model_dump(exclude_none=True)
        po = po.model_copy(update={**fields, "updated_at": _utcnow()})
        self.repo.save_purchase_order(po)
        logger.info("Updated PO %s: %s", po.po_number, ", ".join(sorted(fields)) or "no changes")
        return po

    def send_purchase_order(
        self,
        po_id: str,
        sent_by: str,
        sent_to_email: Optional[str] = None,
        update_bom_items: Optional[UpdateBOMItemsFn] = None,
    ) -> PurchaseOrder:
        """
        Move a draft PO to sent, then hand it to update_bom_items so the
        referenced BOM items can be marked ordered.  A PO that is not a
        draft raises InvalidStateError.
        """
        po = self.get_purchase_order(po_id)
        if po.status != "draft":
            raise InvalidStateError(
                f"PO {po.po_number} is {po.status}; only draft POs can be sent"
            )

        now = _utcnow()
        po = po.model_copy(update={
            "status": "sent",
            "sent_at": now,
            "sent_by": sent_by,
            "sent_to_email": sent_to_email or po.vendor_email,
            "updated_at": now,
        })
        self.repo.save_purchase_order(po)
        logger.info("Sent PO %s to %s", po.po_number, po.sent_to_email or po.vendor_name)
        self.repo.log_audit(
            f"purchase_orders/{po.id}", "po_sent", sent_by,
            {"po_number": po.po_number, "sent_to_email": po.sent_to_email, "bom_item_ids": po.bom_item_ids},
        )

        if update_bom_items is not None:
            update_bom_items(po)
        return po

    def update_po_status(self, po_id: str, new_status: POStatus, actor: str = "system") -> PurchaseOrder:
        po = self.get_purchase_order(po_id)
        if new_status == "sent":
            raise InvalidStateError("Use send_purchase_order() to send a PO")
        allowed = PO_TRANSITIONS.get(po.status, ())
        if new_status not in allowed:
            raise InvalidStateError(
                f"PO {po.po_number} cannot move from {po.status} to {new_status}"
            )

        now = _utcnow()
        updates = {"status": new_status, "updated_at": now}
        if new_status in CLOSED_STATUSES:
            updates["closed_at"] = now
        old_status = po.status
        po = po.model_copy(update=updates)
        self.repo.save_purchase_order(po)
        logger.info("PO %s: %s -> %s", po.po_number, old_status, new_status)
        self.repo.log_audit(
            f"purchase_orders/{po.id}", "po_status_changed", actor,
            {"from": old_status, "to": new_status},
        )
        return po

    def recalculate_totals(self, po_id: str) -> PurchaseOrder:
        """Re-derive line amounts and totals from the stored lines."""
        po = self.get_purchase_order(po_id)
        items = assign_serial_numbers(po.items)
        totals = calculate_po_totals(items, po.tax_type, po.tax_percentage)
        po = po.model_copy(update={
            "items": items,
            **totals.model_dump(),
            "updated_at": _utcnow(),
        })
        self.repo.save_purchase_order(po)
        return po

    def set_pdf_url(self, po_id: str, pdf_url: str) -> PurchaseOrder:
        po = self.get_purchase_order(po_id)
        po = po.model_copy(update={"pdf_url": pdf_url, "updated_at": _utcnow()})
        self.repo.save_purchase_order(po)
        return po

    def delete_purchase_order(self, po_id: str) -> None:
        po = self.get_purchase_order(po_id)
        self.repo.delete_purchase_order(po_id)
        logger.info("Deleted PO %s (%s)", po.po_number, po.status)
