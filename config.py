"""
Central configuration for the BOM procurement tracker.

All paths, thresholds, and external endpoints are defined here.
Override via environment variables or by passing a Config instance directly.

Settings priority (highest wins):
  1. Environment variables
  2. config/procurement_settings.json  (admin-editable, persisted)
  3. Hardcoded defaults in this file

Company details (GSTIN, state, PO numbering) are data, not configuration:
they live in the document store under settings/company.
"""
import json
import logging
import os
from dataclasses import dataclass, field
from decimal import Decimal
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)

# Project root (directory containing this file)
PROJECT_ROOT = Path(__file__).parent

DEFAULT_OUTPUT_DIR = PROJECT_ROOT / "output"
DEFAULT_DB_PATH    = DEFAULT_OUTPUT_DIR / "procurement.db"


def config_dir() -> Path:
    return Path(os.getenv("CONFIG_DIR", str(PROJECT_ROOT / "config")))


@dataclass
class Config:
    # --- Storage ---
    output_dir: Path = field(default_factory=lambda: DEFAULT_OUTPUT_DIR)
    db_path:    Path = field(
        default_factory=lambda: Path(os.getenv("DB_PATH", str(DEFAULT_DB_PATH)))
    )

    # --- Procurement defaults ---
    default_tax_percentage: Decimal = field(
        default_factory=lambda: Decimal(os.getenv("DEFAULT_TAX_PERCENTAGE", "18"))
    )
    arriving_soon_days: int = field(
        default_factory=lambda: int(os.getenv("ARRIVING_SOON_DAYS", "7"))
    )

    # --- LLM settings for BOM import (OpenAI-compatible API) ---
    # Ollama:   LLM_BASE_URL=http://localhost:11434/v1  LLM_API_KEY=ollama
    # OpenAI:   LLM_BASE_URL=https://api.openai.com/v1  LLM_API_KEY=sk-...
    llm_model: str = field(
        default_factory=lambda: os.getenv("LLM_MODEL", "llama3.2")
    )
    llm_base_url: str = field(
        default_factory=lambda: os.getenv("LLM_BASE_URL", "http://localhost:11434/v1")
    )
    llm_api_key: str = field(
        default_factory=lambda: os.getenv("LLM_API_KEY", "ollama")
    )
    # Fuzzy score (0-100) for matching extracted makes against known vendor makes
    make_fuzzy_threshold: int = 85

    # --- PO PDF / email service ---
    pdf_service_url: Optional[str] = field(
        default_factory=lambda: os.getenv("PO_PDF_SERVICE_URL")
    )
    pdf_service_headers_json: Optional[str] = field(
        default_factory=lambda: os.getenv("PO_PDF_SERVICE_HEADERS")
    )
    po_payload_template: str = field(
        default_factory=lambda: os.getenv("PO_PAYLOAD_TEMPLATE", "po_payload_template.json.j2")
    )

    # --- GST verification API ---
    gst_api_url: Optional[str] = field(
        default_factory=lambda: os.getenv("GST_API_URL")
    )
    gst_api_key: Optional[str] = field(
        default_factory=lambda: os.getenv("GST_API_KEY")
    )

    http_timeout_seconds: int = field(
        default_factory=lambda: int(os.getenv("HTTP_TIMEOUT", "30"))
    )

    def __post_init__(self) -> None:
        """Overlay runtime-tunable settings from procurement_settings.json if present."""
        settings_file = config_dir() / "procurement_settings.json"
        if not settings_file.exists():
            return
        # key -> (type, env var that takes precedence over the file)
        _type_map: dict[str, tuple[type, str]] = {
            "default_tax_percentage":   (Decimal, "DEFAULT_TAX_PERCENTAGE"),
            "arriving_soon_days":       (int,     "ARRIVING_SOON_DAYS"),
            "make_fuzzy_threshold":     (int,     ""),
            "llm_model":                (str,     "LLM_MODEL"),
            "llm_base_url":             (str,     "LLM_BASE_URL"),
            "pdf_service_url":          (str,     "PO_PDF_SERVICE_URL"),
            "pdf_service_headers_json": (str,     "PO_PDF_SERVICE_HEADERS"),
            "po_payload_template":      (str,     "PO_PAYLOAD_TEMPLATE"),
            "gst_api_url":              (str,     "GST_API_URL"),
            "http_timeout_seconds":     (int,     "HTTP_TIMEOUT"),
        }
        try:
            with open(settings_file, encoding="utf-8") as f:
                overrides = {k: v for k, v in json.load(f).items() if not k.startswith("_")}
            for key, val in overrides.items():
                if key not in _type_map:
                    continue
                cast, env_var = _type_map[key]
                if env_var and os.getenv(env_var) is not None:
                    continue
                setattr(self, key, cast(str(val)) if cast is Decimal else cast(val))
        except Exception as exc:
            logger.warning("Failed to load procurement_settings.json: %s", exc)

    def ensure_output_dir(self) -> None:
        self.output_dir.mkdir(parents=True, exist_ok=True)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
