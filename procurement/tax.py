"""
Money and GST calculations for Purchase Orders.

All amounts are Decimal.  Nothing is rounded mid-calculation; rounding to
paise happens only in quantize_money(), which callers use at the display
boundary (amount in words, PDF payloads, CLI output).

Tax rules (Indian GST):
  buyer state == seller state  -> CGST + SGST, each half of the rate (intrastate)
  buyer state != seller state  -> IGST at the full rate (interstate)
"""
import logging
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Iterable, Optional

from models.purchase_order import POTotals, TaxType
from .errors import ValidationError

logger = logging.getLogger(__name__)

DEFAULT_TAX_PERCENTAGE = Decimal("18")   # standard GST rate
PAISE = Decimal("0.01")
_HUNDRED = Decimal("100")

INDIAN_STATE_CODES: dict[str, str] = {
    "01": "Jammu & Kashmir",
    "02": "Himachal Pradesh",
    "03": "Punjab",
    "04": "Chandigarh",
    "05": "Uttarakhand",
    "06": "Haryana",
    "07": "Delhi",
    "08": "Rajasthan",
    "09": "Uttar Pradesh",
    "10": "Bihar",
    "11": "Sikkim",
    "12": "Arunachal Pradesh",
    "13": "Nagaland",
    "14": "Manipur",
    "15": "Mizoram",
    "16": "Tripura",
    "17": "Meghalaya",
    "18": "Assam",
    "19": "West Bengal",
    "20": "Jharkhand",
    "21": "Odisha",
    "22": "Chhattisgarh",
    "23": "Madhya Pradesh",
    "24": "Gujarat",
    "26": "Dadra & Nagar Haveli and Daman & Diu",
    "27": "Maharashtra",
    "28": "Andhra Pradesh (Old)",
    "29": "Karnataka",
    "30": "Goa",
    "31": "Lakshadweep",
    "32": "Kerala",
    "33": "Tamil Nadu",
    "34": "Puducherry",
    "35": "Andaman & Nicobar Islands",
    "36": "Telangana",
    "37": "Andhra Pradesh",
    "38": "Ladakh",
}

_ONES = [
    "", "One", "Two", "Three", "Four", "Five", "Six", "Seven", "Eight", "Nine",
    "Ten", "Eleven", "Twelve", "Thirteen", "Fourteen", "Fifteen", "Sixteen",
    "Seventeen", "Eighteen", "Nineteen",
]
_TENS = ["", "", "Twenty", "Thirty", "Forty", "Fifty", "Sixty", "Seventy", "Eighty", "Ninety"]


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def to_decimal(value: Any) -> Decimal:
    """Coerce int/str/float/Decimal to Decimal.  Floats go through str() to avoid binary noise."""
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        return Decimal(str(value))
    if value is None:
        return Decimal("0")
    return Decimal(value)


def quantize_money(value: Any) -> Decimal:
    """Round to paise (2 dp, half-up).  Display boundary only."""
    return to_decimal(value).quantize(PAISE, rounding=ROUND_HALF_UP)


def _item_value(item: Any, key: str) -> Any:
    if isinstance(item, dict):
        return item.get(key)
    return getattr(item, key, None)


# ---------------------------------------------------------------------------
# State codes
# ---------------------------------------------------------------------------

def get_state_name(state_code: str) -> str:
    return INDIAN_STATE_CODES.get(state_code, "Unknown")


def extract_state_code_from_gstin(gstin: Optional[str]) -> Optional[str]:
    """First two characters of a GSTIN, when they form a known state code."""
    if not gstin or len(gstin) < 2:
        return None
    code = gstin[:2]
    return code if code in INDIAN_STATE_CODES else None


def determine_tax_type(company_state_code: str, vendor_state_code: str) -> TaxType:
    """Same state -> cgst-sgst (intrastate); different states -> igst (interstate)."""
    return "cgst-sgst" if company_state_code == vendor_state_code else "igst"


# ---------------------------------------------------------------------------
# Amount in words (Indian numbering: thousand, lakh, crore)
# ---------------------------------------------------------------------------

def _int_to_words(n: int) -> str:
    if n < 20:
        return _ONES[n] or "Zero"
    if n < 100:
        return _TENS[n // 10] + (" " + _ONES[n % 10] if n % 10 else "")
    if n < 1000:
        rest = n % 100
        return _ONES[n // 100] + " Hundred" + (" " + _int_to_words(rest) if rest else "")
    if n < 100_000:
        rest = n % 1000
        return _int_to_words(n // 1000) + " Thousand" + (" " + _int_to_words(rest) if rest else "")
    if n < 10_000_000:
        rest = n % 100_000
        return _int_to_words(n // 100_000) + " Lakh" + (" " + _int_to_words(rest) if rest else "")
    rest = n % 10_000_000
    return _int_to_words(n // 10_000_000) + " Crore" + (" " + _int_to_words(rest) if rest else "")


def number_to_words(amount: Any) -> str:
    """
    Render an INR amount for printed PO text.

        2950      -> "INR Two Thousand Nine Hundred Fifty Only"
        100.50    -> "INR One Hundred and Fifty Paise Only"
        123456    -> "INR One Lakh Twenty Three Thousand Four Hundred Fifty Six Only"
    """
    value = quantize_money(amount)
    if value < 0:
        raise ValueError(f"Cannot render a negative amount in words: {value}")
    rupees = int(value)
    paise = int((value - rupees) * 100)

    words = "INR " + _int_to_words(rupees)
    if paise:
        words += " and " + _int_to_words(paise) + " Paise"
    return words + " Only"


# ---------------------------------------------------------------------------
# Totals
# ---------------------------------------------------------------------------

def line_amount(quantity: Any, rate: Any, discount_percent: Any = None) -> Decimal:
    """quantity * rate, less an optional percentage discount."""
    amount = to_decimal(quantity) * to_decimal(rate)
    if discount_percent:
        amount = amount * (_HUNDRED - to_decimal(discount_percent)) / _HUNDRED
    return amount


def _line_problems(items: list) -> list[str]:
    problems = []
    for n, item in enumerate(items, start=1):
        if to_decimal(_item_value(item, "quantity")) < 0:
            problems.append(f"Line {n}: Quantity must not be negative")
        if to_decimal(_item_value(item, "rate")) < 0:
            problems.append(f"Line {n}: Rate must not be negative")
        discount = to_decimal(_item_value(item, "discount_percent"))
        if discount < 0 or discount > _HUNDRED:
            problems.append(f"Line {n}: Discount must be between 0 and 100")
    return problems


def calculate_po_totals(
    items: Iterable[Any],
    tax_type: TaxType,
    tax_percentage: Any = DEFAULT_TAX_PERCENTAGE,
) -> POTotals:
    """
    Compute subtotal, GST split and grand total for a list of PO lines.

    Line amounts are always recomputed from quantity/rate/discount; any
    amount supplied by the caller is ignored.
    """
    rate = to_decimal(tax_percentage)
    if rate < 0 or rate > _HUNDRED:
        raise ValidationError([f"Tax percentage must be between 0 and 100, got {rate}"])

    items = list(items)
    problems = _line_problems(items)
    if problems:
        raise ValidationError(problems)

    subtotal = sum(
        (
            line_amount(
                _item_value(item, "quantity"),
                _item_value(item, "rate"),
                _item_value(item, "discount_percent"),
            )
            for item in items
        ),
        Decimal("0"),
    )

    igst_amount = cgst_amount = sgst_amount = None
    if tax_type == "igst":
        igst_amount = subtotal * rate / _HUNDRED
        total = subtotal + igst_amount
    else:
        cgst_amount = subtotal * (rate / 2) / _HUNDRED
        sgst_amount = cgst_amount
        total = subtotal + cgst_amount + sgst_amount

    return POTotals(
        subtotal=subtotal,
        igst_amount=igst_amount,
        cgst_amount=cgst_amount,
        sgst_amount=sgst_amount,
        total_amount=total,
        amount_in_words=number_to_words(total),
    )
