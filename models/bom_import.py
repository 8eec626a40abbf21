from decimal import Decimal
from pydantic import BaseModel, ConfigDict, Field
from typing import Optional, List


class ExtractedBOMItem(BaseModel):
    """One item extracted from free-form BOM text (AI or keyword fallback)."""
    name: str
    make: Optional[str] = None
    description: str = ""
    sku: Optional[str] = None
    quantity: Decimal = Decimal("1")
    category: str = "Uncategorized"
    unit: str = "pcs"


class BOMAnalysis(BaseModel):
    """
    Structured result of a BOM text analysis.
    Serialised with by_alias=True it matches the extraction endpoint's
    JSON contract: {"items": [...], "totalItems": n}.
    """
    model_config = ConfigDict(populate_by_name=True)

    items: List[ExtractedBOMItem] = Field(default_factory=list)
    total_items: int = Field(default=0, alias="totalItems")
    processing_time_seconds: float = 0.0
    method: str = "ai"                  # "ai" or "keywords"
