"""
PO PDF / email dispatch.

Renders a JSON payload for the external PDF service from a Jinja2 template
(config/po_payload_template.json.j2, falling back to the packaged default)
and POSTs it.  The PO goes out exactly as stored: totals, tax split and
amount in words are passed through, never recomputed here.
"""
import json
import logging
import urllib.error
import urllib.request
from pathlib import Path
from typing import Any, Dict, Optional

from jinja2 import ChoiceLoader, FileSystemLoader, TemplateError, TemplateNotFound, select_autoescape
from jinja2.sandbox import SandboxedEnvironment

from config import Config, PROJECT_ROOT, config_dir as default_config_dir
from models.purchase_order import PurchaseOrder
from models.settings import CompanySettings

logger = logging.getLogger(__name__)

DEFAULTS_DIR = PROJECT_ROOT / "defaults"


class PODispatchService:
    """
    Sends a templated JSON payload to the PDF service and reports the outcome.
    """

    def __init__(self, config: Config, config_dir: Optional[Path] = None) -> None:
        self.config = config
        self.config_dir = config_dir or default_config_dir()

        self.jinja_env = SandboxedEnvironment(
            loader=ChoiceLoader([
                FileSystemLoader(str(self.config_dir)),
                FileSystemLoader(str(DEFAULTS_DIR)),
            ]),
            autoescape=select_autoescape(['json', 'xml']),
            keep_trailing_newline=True,
        )

    def render_payload(
        self,
        po: PurchaseOrder,
        company: CompanySettings,
        recipient_email: Optional[str] = None,
        cc_emails: Optional[list[str]] = None,
        send_email: bool = False,
    ) -> str:
        """Render the PDF service payload for a PO."""
        template_name = self.config.po_payload_template
        try:
            template = self.jinja_env.get_template(template_name)
        except TemplateNotFound as e:
            raise ValueError(
                f"PO payload template '{template_name}' not found in {self.config_dir} or {DEFAULTS_DIR}"
            ) from e

        context = {
            "po": po.model_dump(mode="json"),
            "company": company.model_dump(mode="json"),
            "recipient_email": recipient_email,
            "cc_emails": cc_emails or [],
            "send_email": send_email,
        }
        return template.render(**context)

    def dispatch(
        self,
        po: PurchaseOrder,
        company: CompanySettings,
        recipient_email: Optional[str] = None,
        cc_emails: Optional[list[str]] = None,
    ) -> Dict[str, Any]:
        """
        Ask the PDF service to generate (and, with a recipient, email) the PO.

        Returns a dict suitable for the audit log:
          {"status": "success", "pdf_url": ..., "status_code": 200}
          {"status": "failed", "error": ..., "status_code": ...}
          {"status": "skipped", "reason": ...}
        """
        url = self.config.pdf_service_url
        if not url:
            return {"status": "skipped", "reason": "PO_PDF_SERVICE_URL not configured"}

        try:
            payload = self.render_payload(
                po, company, recipient_email, cc_emails, send_email=bool(recipient_email),
            )
            json.loads(payload)
        except (TemplateError, ValueError, TypeError) as e:
            logger.error("Failed to render PO payload for %s: %s", po.po_number, e)
            return {"status": "failed", "error": f"Template rendering failed: {e}"}

        req = urllib.request.Request(url, data=payload.encode("utf-8"), method="POST")
        req.add_header("Content-Type", "application/json; charset=utf-8")
        req.add_header("User-Agent", "BOM-Procurement-PO-Dispatch/1.0")

        if self.config.pdf_service_headers_json:
            try:
                for k, v in json.loads(self.config.pdf_service_headers_json).items():
                    req.add_header(k, str(v))
            except (ValueError, AttributeError) as e:
                logger.warning("Failed to parse PO_PDF_SERVICE_HEADERS: %s", e)

        try:
            with urllib.request.urlopen(req, timeout=self.config.http_timeout_seconds) as response:
                status_code = response.getcode()
                body = response.read().decode("utf-8", errors="replace")
        except urllib.error.HTTPError as e:
            body = e.read().decode("utf-8", errors="replace") if e.fp else str(e)
            logger.error("PO dispatch failed for %s: HTTP %d - %s", po.po_number, e.code, body)
            return {"status": "failed", "status_code": e.code, "error": body[:500]}
        except (urllib.error.URLError, OSError) as e:
            logger.error("PO dispatch error for %s: %s", po.po_number, e)
            return {"status": "failed", "error": str(e)}

        pdf_url = _extract_pdf_url(body)
        if not pdf_url:
            logger.error("PO dispatch for %s returned no PDF URL", po.po_number)
            return {"status": "failed", "status_code": status_code, "error": "Response had no PDF URL"}

        logger.info("PO %s PDF generated: HTTP %d", po.po_number, status_code)
        return {"status": "success", "status_code": status_code, "pdf_url": pdf_url}


def _extract_pdf_url(body: str) -> Optional[str]:
    try:
        data = json.loads(body)
    except ValueError:
        return None
    if not isinstance(data, dict):
        return None
    return data.get("pdfUrl") or data.get("pdf_url") or data.get("downloadUrl")
