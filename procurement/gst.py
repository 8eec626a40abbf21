"""
GSTIN format checks and the external GST verification lookup.

The lookup only pre-fills vendor details (legal name, address, state); it
plays no part in tax calculation.  Every failure comes back as
GSTVerificationResult(success=False, error=...), never as an exception,
so a vendor form can show the message inline.
"""
import json
import logging
import re
import urllib.error
import urllib.parse
import urllib.request
from typing import Optional

from config import Config
from models.gst import GSTAddress, GSTTaxpayer, GSTVerificationResult
from .tax import INDIAN_STATE_CODES

logger = logging.getLogger(__name__)

# 2-digit state code + PAN (5 letters, 4 digits, 1 letter) + entity + 'Z' + check
_GSTIN_RE = re.compile(r"^[0-9]{2}[A-Z]{5}[0-9]{4}[A-Z][A-Z0-9]Z[A-Z0-9]$")


def is_valid_gstin_format(gstin: Optional[str]) -> bool:
    if not gstin or len(gstin) != 15:
        return False
    return bool(_GSTIN_RE.match(gstin.upper()))


def get_state_from_gstin(gstin: Optional[str]) -> Optional[tuple[str, str]]:
    """(state_code, state_name) from the first two characters, or None."""
    if not gstin or len(gstin) < 2:
        return None
    code = gstin[:2]
    name = INDIAN_STATE_CODES.get(code)
    return (code, name) if name else None


def _format_address(address: GSTAddress) -> str:
    parts = [
        address.building_number,
        address.building_name,
        address.street,
        address.location,
        address.district,
        address.state,
        f"- {address.pincode}" if address.pincode else "",
    ]
    return ", ".join(p for p in parts if p).strip()


class GSTVerifier:
    """Client for an AppyFlow-style verifyGST endpoint."""

    def __init__(self, config: Config) -> None:
        self.api_url = config.gst_api_url
        self.api_key = config.gst_api_key
        self.timeout = config.http_timeout_seconds

    def verify(self, gstin: str) -> GSTVerificationResult:
        gstin = (gstin or "").strip().upper()
        if not is_valid_gstin_format(gstin):
            return GSTVerificationResult(
                success=False, error="Invalid GSTIN format. GSTIN should be 15 characters.",
            )
        if not self.api_url:
            return GSTVerificationResult(success=False, error="GST_API_URL not configured")

        query = urllib.parse.urlencode({"key_secret": self.api_key or "", "gstNo": gstin})
        req = urllib.request.Request(f"{self.api_url}?{query}", method="GET")
        req.add_header("Accept", "application/json")

        try:
            with urllib.request.urlopen(req, timeout=self.timeout) as response:
                data = json.loads(response.read().decode("utf-8", errors="replace"))
        except urllib.error.HTTPError as e:
            logger.warning("GST verification failed for %s: HTTP %d", gstin, e.code)
            return GSTVerificationResult(success=False, error=f"API request failed: {e.code}")
        except (urllib.error.URLError, OSError, ValueError) as e:
            logger.warning("GST verification error for %s: %s", gstin, e)
            return GSTVerificationResult(success=False, error=str(e) or "Failed to verify GSTIN")

        return self.parse_response(gstin, data)

    @staticmethod
    def parse_response(gstin: str, data: dict) -> GSTVerificationResult:
        """Map the API's terse field names onto GSTTaxpayer."""
        if not isinstance(data, dict):
            return GSTVerificationResult(success=False, error="Unexpected response from GST API")
        if data.get("error"):
            return GSTVerificationResult(
                success=False, error=data.get("message") or "GST verification failed",
            )
        taxpayer = data.get("taxpayerInfo")
        if not taxpayer:
            return GSTVerificationResult(success=False, error="No taxpayer information found")

        addr = (taxpayer.get("pradr") or {}).get("addr") or {}
        address = GSTAddress(
            building_number=addr.get("bno") or "",
            building_name=addr.get("bnm") or "",
            street=addr.get("st") or "",
            location=addr.get("loc") or "",
            district=addr.get("dst") or "",
            state=addr.get("stcd") or "",
            pincode=str(addr.get("pncd") or ""),
        )
        state_code = gstin[:2]

        return GSTVerificationResult(
            success=True,
            data=GSTTaxpayer(
                gstin=taxpayer.get("gstin") or gstin,
                trade_name=taxpayer.get("tradeNam") or "",
                legal_name=taxpayer.get("lgnm") or "",
                status=taxpayer.get("sts") or "Unknown",
                registration_date=taxpayer.get("rgdt") or "",
                business_type=taxpayer.get("ctb") or "",
                address=address,
                state_code=state_code,
                state_name=INDIAN_STATE_CODES.get(state_code) or address.state or "Unknown",
                formatted_address=_format_address(address),
            ),
        )

    def is_active(self, gstin: str) -> bool:
        result = self.verify(gstin)
        return result.success and result.data is not None and result.data.status == "Active"
