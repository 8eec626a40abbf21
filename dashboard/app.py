"""
BOM Procurement Dashboard — FastAPI backend.

JSON API over BOMTracker.  All state lives in a single SQLite document
store (output/procurement.db).  Money values are serialised as strings so
no precision is lost on the way to the browser.

Endpoints
---------
  GET    /api/health                                         → liveness probe
  GET    /api/projects/{project_id}/bom                      → categories and items
  GET    /api/projects/{project_id}/bom/cost                 → total BOM cost
  POST   /api/projects/{project_id}/bom/status               → batch status update
  POST   /api/projects/{project_id}/bom/import               → extract items from pasted text
  GET    /api/projects/{project_id}/inward                   → inward summary + per-item status
  GET    /api/projects/{project_id}/purchase-orders          → list (?vendor_id= &status=)
  POST   /api/projects/{project_id}/purchase-orders          → create draft PO
  POST   /api/projects/{project_id}/purchase-orders/{po_id}/send → send PO, mark items ordered
  GET    /api/purchase-orders/{po_id}                        → one PO
  PATCH  /api/purchase-orders/{po_id}                        → edit a draft PO
  PATCH  /api/purchase-orders/{po_id}/status                 → lifecycle transition
  POST   /api/purchase-orders/{po_id}/pdf                    → generate (and email) the PDF
  DELETE /api/purchase-orders/{po_id}
  GET    /api/projects/{project_id}/documents                → project documents
  POST   /api/projects/{project_id}/documents                → register an uploaded document
  POST   /api/projects/{project_id}/documents/{document_id}/link → link a BOM item
  GET    /api/projects/{project_id}/documents/{document_id}/deletion-check
  DELETE /api/projects/{project_id}/documents/{document_id}  → delete (guarded)
  GET    /api/gstin/{gstin}                                  → GST verification lookup

Error mapping: ValidationError → 422, InvalidStateError → 409,
ConfigurationError → 400, NotFoundError → 404, PersistenceError → 503.
"""
import logging
from datetime import date
from typing import Optional

from fastapi import FastAPI, HTTPException, Query, Request
from fastapi.responses import JSONResponse

from config import Config
from dashboard.models import (
    BatchStatusUpdate, BOMImportRequest, DocumentCreate, DocumentLinkRequest,
    PDFRequest, POStatusUpdate, SendPORequest,
)
from models.bom import BOMCategory, BOMItem, TARGET_STATUSES
from models.gst import GSTVerificationResult
from models.project_document import DeletionCheck, ProjectDocument
from models.purchase_order import CreatePOInput, POStatus, PurchaseOrder, UpdatePOInput
from procurement.errors import (
    ConfigurationError, InvalidStateError, NotFoundError, PersistenceError, ValidationError,
)
from procurement.gst import GSTVerifier
from procurement.tracker import BOMTracker

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Tracker (lazy: opened on first request so importing the app has no
# side effects on disk)
# ---------------------------------------------------------------------------
_tracker: Optional[BOMTracker] = None


def get_tracker() -> BOMTracker:
    global _tracker
    if _tracker is None:
        _tracker = BOMTracker(Config())
    return _tracker


# ---------------------------------------------------------------------------
# App
# ---------------------------------------------------------------------------
app = FastAPI(title="BOM Procurement Dashboard", docs_url=None, redoc_url=None)


@app.exception_handler(ValidationError)
async def _validation_error(request: Request, exc: ValidationError):
    return JSONResponse(status_code=422, content={"detail": str(exc), "errors": exc.messages})


@app.exception_handler(InvalidStateError)
async def _invalid_state(request: Request, exc: InvalidStateError):
    return JSONResponse(status_code=409, content={"detail": str(exc)})


@app.exception_handler(ConfigurationError)
async def _configuration_error(request: Request, exc: ConfigurationError):
    return JSONResponse(status_code=400, content={"detail": str(exc)})


@app.exception_handler(NotFoundError)
async def _not_found(request: Request, exc: NotFoundError):
    return JSONResponse(status_code=404, content={"detail": str(exc)})


@app.exception_handler(PersistenceError)
async def _persistence_error(request: Request, exc: PersistenceError):
    logger.error("Storage failure on %s %s: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=503, content={"detail": "Storage unavailable, please retry"})


# ── Health ───────────────────────────────────────────────────────────────────

@app.get("/api/health")
def health():
    tracker = get_tracker()
    return {
        "status": "ok",
        "db_path": str(tracker.store.db_path),
        "db_exists": tracker.store.db_path.exists(),
    }


# ── BOM ──────────────────────────────────────────────────────────────────────

@app.get("/api/projects/{project_id}/bom", response_model=list[BOMCategory])
def get_bom(project_id: str):
    return get_tracker().get_bom(project_id)


@app.get("/api/projects/{project_id}/bom/cost")
def get_bom_cost(project_id: str):
    return {"project_id": project_id, "total_cost": str(get_tracker().get_bom_cost(project_id))}


@app.post("/api/projects/{project_id}/bom/status", response_model=list[BOMCategory])
def batch_status(project_id: str, body: BatchStatusUpdate):
    if body.status not in TARGET_STATUSES:
        raise HTTPException(400, f"Cannot set status to {body.status}")
    return get_tracker().set_items_status(project_id, body.item_ids, body.status, body.actor)


@app.post("/api/projects/{project_id}/bom/import", response_model=list[BOMItem])
def import_bom(project_id: str, body: BOMImportRequest):
    return get_tracker().import_bom(project_id, body.text)


@app.get("/api/projects/{project_id}/inward")
def inward(project_id: str, today: Optional[date] = Query(default=None)):
    tracker = get_tracker()
    return {
        "summary": tracker.get_inward_summary(project_id, today),
        "items": tracker.get_inward_report(project_id, today),
    }


# ── Purchase orders ──────────────────────────────────────────────────────────

@app.get("/api/projects/{project_id}/purchase-orders", response_model=list[PurchaseOrder])
def list_purchase_orders(
    project_id: str,
    vendor_id: Optional[str] = Query(default=None),
    status: Optional[POStatus] = Query(default=None),
):
    return get_tracker().po_service.list_purchase_orders(project_id, vendor_id, status)


@app.post("/api/projects/{project_id}/purchase-orders", response_model=PurchaseOrder, status_code=201)
def create_purchase_order(project_id: str, body: CreatePOInput):
    if body.project_id != project_id:
        raise HTTPException(400, "project_id in body does not match the URL")
    return get_tracker().create_purchase_order(body)


@app.post("/api/projects/{project_id}/purchase-orders/{po_id}/send", response_model=PurchaseOrder)
def send_purchase_order(project_id: str, po_id: str, body: SendPORequest):
    return get_tracker().send_purchase_order(project_id, po_id, body.sent_by, body.sent_to_email)


@app.get("/api/purchase-orders/{po_id}", response_model=PurchaseOrder)
def get_purchase_order(po_id: str):
    return get_tracker().po_service.get_purchase_order(po_id)


@app.patch("/api/purchase-orders/{po_id}", response_model=PurchaseOrder)
def update_purchase_order(po_id: str, body: UpdatePOInput):
    return get_tracker().po_service.update_purchase_order(po_id, body)


@app.patch("/api/purchase-orders/{po_id}/status", response_model=PurchaseOrder)
def update_po_status(po_id: str, body: POStatusUpdate):
    return get_tracker().po_service.update_po_status(po_id, body.status, body.actor)


@app.post("/api/purchase-orders/{po_id}/pdf")
def generate_pdf(po_id: str, body: PDFRequest):
    result = get_tracker().generate_po_pdf(po_id, body.recipient_email)
    if result["status"] == "failed":
        raise HTTPException(502, result.get("error") or "PDF service failed")
    return result


@app.delete("/api/purchase-orders/{po_id}")
def delete_purchase_order(po_id: str):
    get_tracker().po_service.delete_purchase_order(po_id)
    return {"deleted": po_id}


# ── Documents ────────────────────────────────────────────────────────────────

@app.get("/api/projects/{project_id}/documents", response_model=list[ProjectDocument])
def list_documents(project_id: str):
    return get_tracker().repo.list_documents(project_id)


@app.post("/api/projects/{project_id}/documents", response_model=ProjectDocument, status_code=201)
def add_document(project_id: str, body: DocumentCreate):
    document = ProjectDocument(id="", project_id=project_id, **body.model_dump())
    return get_tracker().add_document(document)


@app.post("/api/projects/{project_id}/documents/{document_id}/link", response_model=BOMItem)
def link_document(project_id: str, document_id: str, body: DocumentLinkRequest):
    return get_tracker().link_document(project_id, body.item_id, document_id, body.actor)


@app.get("/api/projects/{project_id}/documents/{document_id}/deletion-check", response_model=DeletionCheck)
def deletion_check(project_id: str, document_id: str):
    return get_tracker().check_document_deletion(project_id, document_id)


@app.delete("/api/projects/{project_id}/documents/{document_id}")
def delete_document(project_id: str, document_id: str, actor: str = Query(default="system")):
    get_tracker().delete_document(project_id, document_id, actor)
    return {"deleted": document_id}


# ── GST ──────────────────────────────────────────────────────────────────────

@app.get("/api/gstin/{gstin}", response_model=GSTVerificationResult)
def verify_gstin(gstin: str):
    return GSTVerifier(get_tracker().config).verify(gstin)
