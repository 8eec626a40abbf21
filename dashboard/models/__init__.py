"""
Pydantic models for dashboard API requests.
"""
from pydantic import BaseModel, Field
from typing import Optional

from models.bom import BOMStatus
from models.project_document import DocumentType
from models.purchase_order import POStatus


class BatchStatusUpdate(BaseModel):
    item_ids: list[str]
    status: BOMStatus
    actor: str = "system"


class BOMImportRequest(BaseModel):
    text: str = Field(min_length=1)


class SendPORequest(BaseModel):
    sent_by: str
    sent_to_email: Optional[str] = None


class POStatusUpdate(BaseModel):
    status: POStatus
    actor: str = "system"


class PDFRequest(BaseModel):
    recipient_email: Optional[str] = None   # set to also email the PO


class DocumentCreate(BaseModel):
    name: str
    type: DocumentType
    url: str = ""
    uploaded_by: Optional[str] = None
    file_size: Optional[int] = None


class DocumentLinkRequest(BaseModel):
    item_id: str
    actor: str = "system"
