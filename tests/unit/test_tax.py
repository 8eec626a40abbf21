"""
Unit tests for GST calculation and amount-in-words.
"""
from decimal import Decimal

import pytest
from pydantic import ValidationError as PydanticValidationError

from models.purchase_order import POItem
from procurement.errors import ValidationError
from procurement.tax import (
    calculate_po_totals, determine_tax_type, extract_state_code_from_gstin,
    get_state_name, line_amount, number_to_words, quantize_money,
)


def _lines(*pairs):
    return [POItem(description=f"Line {i}", quantity=Decimal(q), rate=Decimal(r)) for i, (q, r) in enumerate(pairs)]


@pytest.mark.unit
class TestTaxType:

    def test_same_state_is_intrastate(self):
        assert determine_tax_type("27", "27") == "cgst-sgst"

    def test_different_state_is_interstate(self):
        assert determine_tax_type("27", "29") == "igst"

    def test_state_lookup(self):
        assert get_state_name("29") == "Karnataka"
        assert get_state_name("99") == "Unknown"

    def test_state_code_from_gstin(self):
        assert extract_state_code_from_gstin("27AAPFU0939F1ZV") == "27"
        assert extract_state_code_from_gstin("99AAPFU0939F1ZV") is None
        assert extract_state_code_from_gstin("") is None


@pytest.mark.unit
class TestCalculatePOTotals:

    def test_intrastate_split(self):
        """CGST and SGST are each half the rate."""
        totals = calculate_po_totals(_lines(("10", "100"), ("5", "300")), "cgst-sgst", 18)

        assert totals.subtotal == Decimal("2500")
        assert totals.cgst_amount == Decimal("225")
        assert totals.sgst_amount == Decimal("225")
        assert totals.igst_amount is None
        assert totals.total_amount == Decimal("2950")

    def test_interstate_full_rate(self):
        totals = calculate_po_totals(_lines(("10", "100"), ("5", "300")), "igst", 18)

        assert totals.igst_amount == Decimal("450")
        assert totals.cgst_amount is None
        assert totals.sgst_amount is None
        assert totals.total_amount == Decimal("2950")

    @pytest.mark.parametrize("tax_type,split", [
        ("igst", {"igst_amount": Decimal("1800"), "cgst_amount": None, "sgst_amount": None}),
        ("cgst-sgst", {"igst_amount": None, "cgst_amount": Decimal("900"), "sgst_amount": Decimal("900")}),
    ])
    def test_ten_thousand_at_eighteen_percent(self, tax_type, split):
        totals = calculate_po_totals(_lines(("1", "10000")), tax_type, 18)

        assert totals.subtotal == Decimal("10000")
        for field, expected in split.items():
            assert getattr(totals, field) == expected
        assert totals.total_amount == Decimal("11800")

    def test_bad_lines_reported_together(self):
        items = [
            {"quantity": "-1", "rate": "100"},
            {"quantity": "2", "rate": "-5", "discount_percent": "150"},
        ]
        with pytest.raises(ValidationError) as exc:
            calculate_po_totals(items, "igst", 18)
        assert exc.value.messages == [
            "Line 1: Quantity must not be negative",
            "Line 2: Rate must not be negative",
            "Line 2: Discount must be between 0 and 100",
        ]

    def test_po_item_bounds(self):
        with pytest.raises(PydanticValidationError):
            POItem(description="x", quantity=Decimal("-1"), rate=Decimal("100"))
        with pytest.raises(PydanticValidationError):
            POItem(description="x", quantity=Decimal("1"), rate=Decimal("100"), discount_percent=Decimal("101"))

    def test_total_is_subtotal_plus_tax(self):
        totals = calculate_po_totals(_lines(("3", "333.33"), ("7", "12.5")), "cgst-sgst", 12)
        assert totals.total_amount == totals.subtotal + totals.cgst_amount + totals.sgst_amount

    def test_supplied_amount_is_ignored(self):
        items = [POItem(description="x", quantity=Decimal("2"), rate=Decimal("50"), amount=Decimal("999"))]
        assert calculate_po_totals(items, "igst", 18).subtotal == Decimal("100")

    def test_discount_applied_per_line(self):
        items = [POItem(description="x", quantity=Decimal("10"), rate=Decimal("100"), discount_percent=Decimal("10"))]
        assert calculate_po_totals(items, "igst", 0).subtotal == Decimal("900")

    def test_no_intermediate_rounding(self):
        totals = calculate_po_totals(_lines(("1", "0.333")), "cgst-sgst", 18)
        assert totals.cgst_amount == Decimal("0.333") * Decimal("9") / Decimal("100")
        assert quantize_money(totals.cgst_amount) == Decimal("0.03")

    def test_accepts_plain_dicts(self):
        totals = calculate_po_totals([{"quantity": 2, "rate": "10.5"}], "igst", 18)
        assert totals.subtotal == Decimal("21.0")

    def test_empty_items(self):
        totals = calculate_po_totals([], "igst", 18)
        assert totals.total_amount == Decimal("0")
        assert totals.amount_in_words == "INR Zero Only"

    @pytest.mark.parametrize("rate", [-1, 101])
    def test_rate_out_of_range(self, rate):
        with pytest.raises(ValidationError):
            calculate_po_totals(_lines(("1", "100")), "igst", rate)


@pytest.mark.unit
class TestNumberToWords:

    def test_whole_rupees(self):
        assert number_to_words(2950) == "INR Two Thousand Nine Hundred Fifty Only"

    def test_paise(self):
        assert number_to_words(Decimal("100.50")) == "INR One Hundred and Fifty Paise Only"

    def test_lakh_and_crore(self):
        assert number_to_words(123456) == "INR One Lakh Twenty Three Thousand Four Hundred Fifty Six Only"
        assert number_to_words(10_000_000) == "INR One Crore Only"

    def test_zero(self):
        assert number_to_words(0) == "INR Zero Only"

    def test_rounds_to_paise_first(self):
        assert number_to_words(Decimal("1.005")) == "INR One and One Paise Only"

    def test_negative_rejected(self):
        with pytest.raises(ValueError):
            number_to_words(-1)


@pytest.mark.unit
def test_line_amount_without_discount():
    assert line_amount("2.5", "40") == Decimal("100.0")
