"""
Pure operations on a project BOM (an ordered list of BOMCategory).

Nothing here mutates its arguments: every operation returns a new
category list built with model_copy(), so a caller holding the previous
snapshot (e.g. a live view) never sees a half-applied change.  Persisting
the result is the caller's job and happens as one write.
"""
import logging
from datetime import date
from decimal import Decimal
from typing import Iterable, Optional

from models.bom import BOMCategory, BOMItem, BOMStatus, VendorQuote, TARGET_STATUSES
from .errors import ConfigurationError, InvalidStateError, NotFoundError, ValidationError
from .inward import calculate_expected_arrival, parse_lead_time_to_days

logger = logging.getLogger(__name__)

# Fields cleared when an ordered item is reverted to not-ordered
ORDER_FIELDS = (
    "order_date",
    "expected_arrival",
    "actual_arrival",
    "po_number",
    "linked_po_document_id",
    "linked_invoice_document_id",
)


def flatten_items(categories: Iterable[BOMCategory]) -> list[BOMItem]:
    return [item for category in categories for item in category.items]


def find_item(categories: Iterable[BOMCategory], item_id: str) -> Optional[BOMItem]:
    for category in categories:
        for item in category.items:
            if item.id == item_id:
                return item
    return None


def get_item(categories: Iterable[BOMCategory], item_id: str) -> BOMItem:
    item = find_item(categories, item_id)
    if item is None:
        raise NotFoundError(f"BOM item not found: {item_id}")
    return item


def get_total_bom_cost(categories: Iterable[BOMCategory]) -> Decimal:
    """
    Sum of price * quantity over every item.

    Unpriced items contribute nothing.  A quantity of 0 counts as unset
    and falls back to 1; a price of 0 is a real price.
    """
    total = Decimal("0")
    for item in flatten_items(categories):
        if item.price is None:
            continue
        total += item.price * (item.quantity or 1)
    return total


def batch_update_item_status(
    categories: list[BOMCategory],
    item_ids: Iterable[str],
    status: BOMStatus,
) -> list[BOMCategory]:
    """
    Return a new category list where every item in item_ids has the given
    status.  Unknown ids are ignored and every other field is preserved.
    Used so that all items of a sent PO flip to 'ordered' in one write.
    """
    if status not in TARGET_STATUSES:
        raise ValueError(f"Invalid target status {status!r}. Must be one of {TARGET_STATUSES}")

    ids = set(item_ids)
    if not ids:
        return list(categories)

    return [
        category.model_copy(update={
            "items": [
                item.model_copy(update={"status": status}) if item.id in ids else item
                for item in category.items
            ],
        })
        for category in categories
    ]


def update_item(categories: list[BOMCategory], item_id: str, updates: dict) -> list[BOMCategory]:
    """Apply field updates to one item.  A None value clears the field."""
    get_item(categories, item_id)
    if "id" in updates or "category" in updates:
        raise ValidationError(["Use move_item() to change an item's category; ids are immutable"])
    locked = [f for f in ("status", *ORDER_FIELDS) if f in updates]
    if locked:
        raise ValidationError([
            f"{field} changes only through mark ordered, mark received or revert" for field in locked
        ])

    updated = []
    for category in categories:
        items = [
            BOMItem.model_validate({**item.model_dump(), **updates}) if item.id == item_id else item
            for item in category.items
        ]
        updated.append(category.model_copy(update={"items": items}))
    return updated


def add_item(categories: list[BOMCategory], item: BOMItem) -> list[BOMCategory]:
    """Append an item to the category named by item.category, as not-ordered."""
    if not categories:
        raise ConfigurationError("No BOM categories configured. Add at least one category first.")
    if find_item(categories, item.id) is not None:
        raise ValidationError([f"Duplicate BOM item id: {item.id}"])
    if not any(c.name == item.category for c in categories):
        raise ValidationError([f"Unknown category: {item.category}"])

    new_item = item.model_copy(update={"status": "not-ordered"})
    return [
        category.model_copy(update={"items": [*category.items, new_item]})
        if category.name == item.category else category
        for category in categories
    ]


def add_category(categories: list[BOMCategory], name: str) -> list[BOMCategory]:
    """Append an empty category.  Names are unique; an existing name is a no-op."""
    name = name.strip()
    if not name:
        raise ValidationError(["Category name is required"])
    if any(c.name == name for c in categories):
        return list(categories)
    return [*categories, BOMCategory(name=name)]


def remove_item(categories: list[BOMCategory], item_id: str) -> list[BOMCategory]:
    return [
        category.model_copy(update={"items": [i for i in category.items if i.id != item_id]})
        for category in categories
    ]


def move_item(categories: list[BOMCategory], item_id: str, target_category: str) -> list[BOMCategory]:
    """Move an item between categories: remove it, then insert it into the target."""
    item = get_item(categories, item_id)
    if not any(c.name == target_category for c in categories):
        raise ValidationError([f"Unknown category: {target_category}"])
    if item.category == target_category:
        return list(categories)

    moved = item.model_copy(update={"category": target_category})
    without = remove_item(categories, item_id)
    return [
        category.model_copy(update={"items": [*category.items, moved]})
        if category.name == target_category else category
        for category in without
    ]


def replace_item(categories: list[BOMCategory], item: BOMItem) -> list[BOMCategory]:
    """Swap in a new version of an existing item (matched by id)."""
    get_item(categories, item.id)
    return [
        category.model_copy(update={
            "items": [item if i.id == item.id else i for i in category.items],
        })
        for category in categories
    ]


# ---------------------------------------------------------------------------
# Single-item status transitions
# ---------------------------------------------------------------------------

def mark_item_ordered(
    item: BOMItem,
    order_date: str | date,
    finalized_vendor: Optional[VendorQuote] = None,
    po_number: Optional[str] = None,
    linked_po_document_id: Optional[str] = None,
    expected_arrival: Optional[str] = None,
) -> BOMItem:
    """
    Return the item as ordered.  A finalized vendor must be known, either
    passed in or already on the item.  Expected arrival defaults to
    order date + the vendor's lead time when that lead time is parseable.
    """
    vendor = finalized_vendor or item.finalized_vendor
    if vendor is None:
        raise InvalidStateError(
            f"Cannot mark '{item.name}' as ordered: no finalized vendor selected"
        )

    order_date_str = order_date.isoformat() if isinstance(order_date, date) else order_date
    if expected_arrival is None:
        days = parse_lead_time_to_days(vendor.lead_time)
        if days > 0:
            expected_arrival = calculate_expected_arrival(order_date_str, days)

    updates = {
        "status": "ordered",
        "finalized_vendor": vendor,
        "order_date": order_date_str,
        "expected_arrival": expected_arrival,
    }
    if po_number is not None:
        updates["po_number"] = po_number
    if linked_po_document_id is not None:
        updates["linked_po_document_id"] = linked_po_document_id
    return item.model_copy(update=updates)


def mark_item_received(
    item: BOMItem,
    actual_arrival: str | date,
    linked_invoice_document_id: Optional[str] = None,
) -> BOMItem:
    if item.status not in ("ordered", "received"):
        raise InvalidStateError(
            f"Cannot mark '{item.name}' as received: item is {item.status}, not ordered"
        )
    updates = {
        "status": "received",
        "actual_arrival": actual_arrival.isoformat() if isinstance(actual_arrival, date) else actual_arrival,
    }
    if linked_invoice_document_id is not None:
        updates["linked_invoice_document_id"] = linked_invoice_document_id
    return item.model_copy(update=updates)


def revert_item_to_not_ordered(item: BOMItem) -> BOMItem:
    """Manual revert.  Order fields are cleared; the finalized vendor is kept."""
    updates = {field: None for field in ORDER_FIELDS}
    updates["status"] = "not-ordered"
    return item.model_copy(update=updates)
