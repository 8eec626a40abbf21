"""
Unit tests for lead-time parsing and inward status.
"""
from datetime import date

import pytest

from models.bom import BOMCategory
from procurement.inward import (
    calculate_expected_arrival, get_inward_status, parse_lead_time_to_days, summarize_inward,
)

TODAY = date(2025, 6, 10)


@pytest.mark.unit
class TestParseLeadTime:

    @pytest.mark.parametrize("text,days", [
        ("14 days", 14),
        ("2-3 weeks", 14),
        ("1 week", 7),
        ("1 month", 30),
        ("2 Months", 60),
        ("14", 14),
        ("  2 WEEKS  ", 14),
        ("2-3 business days", 2),
        ("10 working days", 70),
        ("ASAP", 0),
        ("", 0),
        (None, 0),
    ])
    def test_parse(self, text, days):
        assert parse_lead_time_to_days(text) == days

    def test_expected_arrival(self):
        assert calculate_expected_arrival("2025-01-25", 14) == "2025-02-08"
        assert calculate_expected_arrival(date(2025, 12, 25), 10) == "2026-01-04"


@pytest.mark.unit
class TestInwardStatus:

    def test_not_ordered(self, make_item):
        assert get_inward_status(make_item("x"), TODAY) == "not-ordered"

    def test_received(self, make_item):
        assert get_inward_status(make_item("x", status="received"), TODAY) == "received"

    def test_service_never_tracked(self, make_item):
        item = make_item("x", item_type="service", status="ordered", expected_arrival="2025-06-01")
        assert get_inward_status(item, TODAY) == "not-ordered"

    def test_ordered_without_expected_arrival(self, make_item):
        assert get_inward_status(make_item("x", status="ordered"), TODAY) == "on-track"

    @pytest.mark.parametrize("expected,status", [
        ("2025-06-09", "overdue"),
        ("2025-06-10", "arriving-soon"),
        ("2025-06-17", "arriving-soon"),
        ("2025-06-18", "on-track"),
    ])
    def test_ordered_by_expected_arrival(self, make_item, expected, status):
        item = make_item("x", status="ordered", expected_arrival=expected)
        assert get_inward_status(item, TODAY) == status

    def test_custom_window(self, make_item):
        item = make_item("x", status="ordered", expected_arrival="2025-06-13")
        assert get_inward_status(item, TODAY, arriving_soon_days=2) == "on-track"

    def test_summary_counts(self, make_item):
        categories = [BOMCategory(name="Vision Systems", items=[
            make_item("a"),
            make_item("b", status="ordered", expected_arrival="2025-06-01"),
            make_item("c", status="ordered", expected_arrival="2025-06-12"),
            make_item("d", status="received"),
            make_item("e", status="received"),
        ])]
        assert summarize_inward(categories, TODAY) == {
            "not-ordered": 1, "on-track": 0, "arriving-soon": 1, "overdue": 1, "received": 2,
        }
