"""
Inward tracking: lead-time parsing, expected arrival dates and the
per-item inward status shown on the tracking view.
"""
import logging
import re
from datetime import date, timedelta
from typing import Iterable, Optional

from models.bom import BOMCategory, BOMItem, InwardStatus

logger = logging.getLogger(__name__)

ARRIVING_SOON_DAYS = 7

# Order matters: "10 working days" hits the week pattern (70 days).
_LEAD_TIME_PATTERNS = [
    (re.compile(r"(\d+)(?:\s*-\s*\d+)?\s*w"), 7),
    (re.compile(r"(\d+)(?:\s*-\s*\d+)?\s*m"), 30),
    (re.compile(r"(\d+)(?:\s*-\s*\d+)?\s*(?:[a-z]+\s+)?d"), 1),
]
_PLAIN_NUMBER = re.compile(r"^(\d+)$")


def parse_lead_time_to_days(lead_time: Optional[str]) -> int:
    """
    Convert vendor lead-time text to days.

      "14 days" -> 14    "2-3 weeks" -> 14    "1 month" -> 30    "14" -> 14
      "ASAP" / "" / None -> 0
    """
    if not lead_time:
        return 0
    text = lead_time.strip().lower()
    for pattern, multiplier in _LEAD_TIME_PATTERNS:
        m = pattern.search(text)
        if m:
            return int(m.group(1)) * multiplier
    m = _PLAIN_NUMBER.match(text)
    if m:
        return int(m.group(1))
    logger.debug("Unrecognised lead time %r, treating as 0 days", lead_time)
    return 0


def _as_date(value: str | date) -> date:
    return value if isinstance(value, date) else date.fromisoformat(value)


def calculate_expected_arrival(order_date: str | date, lead_time_days: int) -> str:
    """Order date plus lead time, as an ISO date string."""
    return (_as_date(order_date) + timedelta(days=lead_time_days)).isoformat()


def get_inward_status(
    item: BOMItem,
    today: Optional[date] = None,
    arriving_soon_days: int = ARRIVING_SOON_DAYS,
) -> InwardStatus:
    """
    Services are never tracked inward.  Ordered components are classified
    by expected arrival: past -> overdue, within arriving_soon_days
    (inclusive) -> arriving-soon, later or unknown -> on-track.
    """
    if item.item_type == "service":
        return "not-ordered"
    if item.status == "received":
        return "received"
    if item.status != "ordered":
        return "not-ordered"
    if not item.expected_arrival:
        return "on-track"

    today = today or date.today()
    days_until = (_as_date(item.expected_arrival) - today).days
    if days_until < 0:
        return "overdue"
    if days_until <= arriving_soon_days:
        return "arriving-soon"
    return "on-track"


def summarize_inward(
    categories: Iterable[BOMCategory],
    today: Optional[date] = None,
    arriving_soon_days: int = ARRIVING_SOON_DAYS,
) -> dict[str, int]:
    """Count of items per inward status across all categories."""
    counts = {s: 0 for s in ("not-ordered", "on-track", "arriving-soon", "overdue", "received")}
    for category in categories:
        for item in category.items:
            counts[get_inward_status(item, today, arriving_soon_days)] += 1
    return counts
