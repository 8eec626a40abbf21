"""
Pytest configuration and shared fixtures for the procurement test suite.
"""
import os
import shutil
import tempfile
from decimal import Decimal
from pathlib import Path
from typing import Generator

import pytest

PROJECT_ROOT = Path(__file__).parent.parent
os.chdir(PROJECT_ROOT)

COMPANY_GSTIN = "27AAPFU0939F1ZV"          # Maharashtra
INTRASTATE_VENDOR_GSTIN = "27ABCDE1234F1Z5"
INTERSTATE_VENDOR_GSTIN = "29ABCDE1234F1Z5"  # Karnataka


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Provide a temporary directory for test files."""
    tmp_path = tempfile.mkdtemp(prefix="procurement_test_")
    yield Path(tmp_path)
    shutil.rmtree(tmp_path, ignore_errors=True)


@pytest.fixture
def test_config(temp_dir: Path, monkeypatch) -> "Config":
    """Provide a test configuration with isolated directories and no external services."""
    monkeypatch.setenv("CONFIG_DIR", str(temp_dir / "config"))
    monkeypatch.setenv("DB_PATH", str(temp_dir / "output" / "procurement.db"))
    for var in ("PO_PDF_SERVICE_URL", "PO_PDF_SERVICE_HEADERS", "GST_API_URL", "GST_API_KEY"):
        monkeypatch.delenv(var, raising=False)

    from config import Config

    config = Config()
    config.output_dir = temp_dir / "output"
    config.ensure_output_dir()
    return config


@pytest.fixture
def store(test_config) -> "DocumentStore":
    from procurement.store import DocumentStore
    return DocumentStore(test_config.db_path)


@pytest.fixture
def repo(store) -> "ProjectRepository":
    from procurement.repository import ProjectRepository
    return ProjectRepository(store)


@pytest.fixture
def company_settings() -> "CompanySettings":
    from models.settings import CompanySettings
    return CompanySettings(
        company_name="Qualitas Automation Pvt Ltd",
        company_address="Plot 12, MIDC Bhosari, Pune 411026",
        gstin=COMPANY_GSTIN,
        state_code="27",
        state_name="Maharashtra",
        email="purchase@qualitas.example",
        po_number_prefix="PO-QT",
        po_number_format="simple",
        next_po_number=1,
        default_payment_terms="Net 30",
        default_delivery_terms="Ex-works",
    )


@pytest.fixture
def seeded_repo(repo, company_settings):
    """Repository with company settings saved."""
    repo.save_company_settings(company_settings)
    return repo


@pytest.fixture
def tracker(test_config, store, company_settings) -> "BOMTracker":
    from procurement.tracker import BOMTracker
    bom_tracker = BOMTracker(test_config, store)
    bom_tracker.repo.save_company_settings(company_settings)
    return bom_tracker


@pytest.fixture
def make_item():
    """Factory for BOM items with sensible defaults."""
    from models.bom import BOMItem

    def _make(item_id: str, category: str = "Vision Systems", **kwargs) -> BOMItem:
        kwargs.setdefault("name", f"Part {item_id}")
        return BOMItem(id=item_id, category=category, **kwargs)

    return _make


@pytest.fixture
def sample_categories(make_item) -> list:
    """Two categories: a camera and a lens in one, a servo and a service in the other."""
    from models.bom import BOMCategory, VendorQuote

    basler = VendorQuote(name="Basler India", price=Decimal("45000"), lead_time="2-3 weeks")
    return [
        BOMCategory(name="Vision Systems", items=[
            make_item("cam-1", name="Area scan camera", make="Basler", quantity=Decimal("2"),
                      price=Decimal("45000"), vendors=[basler], finalized_vendor=basler),
            make_item("lens-1", name="C-mount lens 16mm", make="Computar", quantity=Decimal("2"),
                      price=Decimal("8500")),
        ]),
        BOMCategory(name="Motors & Drives", items=[
            make_item("servo-1", category="Motors & Drives", name="Servo motor 400W",
                      quantity=Decimal("1"), price=Decimal("32000")),
            make_item("svc-1", category="Motors & Drives", item_type="service",
                      name="Commissioning", quantity=Decimal("1.5"), price=Decimal("12000")),
        ]),
    ]


@pytest.fixture
def seeded_tracker(tracker, sample_categories):
    """Tracker with project P1's BOM saved."""
    tracker.repo.save_bom("P1", sample_categories)
    return tracker


@pytest.fixture
def po_input():
    """Factory for CreatePOInput: two lines for cam-1 and lens-1, subtotal 2500."""
    from models.purchase_order import CreatePOInput, POItem

    def _make(vendor_state_code: str = "27", vendor_gstin: str = INTRASTATE_VENDOR_GSTIN, **kwargs) -> CreatePOInput:
        defaults = dict(
            project_id="P1",
            project_reference="Line 3 inspection cell",
            vendor_name="Vision Components LLP",
            vendor_address="Andheri East, Mumbai",
            vendor_gstin=vendor_gstin,
            vendor_state_code=vendor_state_code,
            vendor_email="sales@visioncomponents.example",
            items=[
                POItem(bom_item_id="cam-1", description="Area scan camera",
                       quantity=Decimal("10"), rate=Decimal("100")),
                POItem(bom_item_id="lens-1", description="C-mount lens 16mm",
                       quantity=Decimal("5"), rate=Decimal("300")),
            ],
            created_by="alice",
        )
        defaults.update(kwargs)
        return CreatePOInput(**defaults)

    return _make


class FakeResponse:
    """Minimal stand-in for the object urllib.request.urlopen returns."""

    def __init__(self, body: bytes, status: int = 200):
        self._body = body
        self._status = status

    def read(self) -> bytes:
        return self._body

    def getcode(self) -> int:
        return self._status

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False


@pytest.fixture
def fake_urlopen(monkeypatch):
    """
    Patch urllib.request.urlopen.  Call with a response body (or an
    exception) and get back the list of captured requests.
    """
    import urllib.request

    def _install(body=b"{}", status: int = 200, error: Exception = None) -> list:
        captured = []

        def _urlopen(req, timeout=None):
            captured.append(req)
            if error is not None:
                raise error
            return FakeResponse(body, status)

        monkeypatch.setattr(urllib.request, "urlopen", _urlopen)
        return captured

    return _install


# Configure pytest markers
def pytest_configure(config):
    """Configure custom pytest markers."""
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "integration: Integration tests")
    config.addinivalue_line("markers", "api: API tests")
