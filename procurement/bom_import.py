"""
BOM import from free-form text (pasted spreadsheets, emails, quotes).

Primary path: an OpenAI-compatible chat model returns
{"items": [...], "totalItems": n}.  Any failure there (endpoint down,
unparseable reply after 3 attempts) falls back to a deterministic keyword
analysis, so an import always produces something reviewable.

Makes and categories from either path are snapped onto the names the
project already uses (exact, then rapidfuzz), so "basler ag" lands on the
existing "Basler" make instead of creating a near-duplicate.
"""
import json
import logging
import re
import time
import uuid
from decimal import Decimal, InvalidOperation
from typing import Callable, Optional

from openai import OpenAI
from pydantic import ValidationError as PydanticValidationError
from rapidfuzz import fuzz, process

from models.bom import BOMItem
from models.bom_import import BOMAnalysis, ExtractedBOMItem

logger = logging.getLogger(__name__)

UNCATEGORIZED = "Uncategorized"
MAKE_FUZZY_THRESHOLD = 85
MAX_ATTEMPTS = 3

CATEGORY_KEYWORDS: dict[str, list[str]] = {
    "Vision Systems":  ["camera", "lens", "vision", "optical", "image", "sensor", "detector"],
    "Motors & Drives": ["motor", "drive", "actuator", "servo", "stepper", "brushless", "gearbox"],
    "Sensors":         ["sensor", "proximity", "limit", "pressure", "temperature", "flow", "level"],
    "Control Systems": ["controller", "board", "plc", "hmi", "touchscreen", "display", "interface"],
    "Mechanical":      ["bolt", "screw", "nut", "washer", "bracket", "mount", "housing", "frame"],
    "Electrical":      ["wire", "cable", "connector", "switch", "relay", "fuse", "breaker"],
    "Pneumatic":       ["valve", "cylinder", "compressor", "air", "pneumatic", "vacuum"],
    "Hydraulic":       ["pump", "valve", "cylinder", "hydraulic", "fluid", "pressure"],
    "Tools":           ["tool", "drill", "saw", "grinder", "welder", "cutter"],
    "Safety":          ["guard", "safety", "emergency", "stop", "light", "alarm"],
}

# Lines containing any of these are treated as table headers
_HEADER_WORDS = ("item", "part", "description", "quantity")

# A standalone number (not part of a part number like acA1920-40gc)
_QUANTITY_RE = re.compile(r"(?<![\w.-])(\d+(?:\.\d+)?)(?![\w.-])")
_QUANTITY_SUFFIX_RE = re.compile(r"^\s*(?:x|nos?\.?|pcs?|units?)\b", re.IGNORECASE)
_SKU_RE = re.compile(r"([A-Z0-9][A-Z0-9-]{2,})")


_PROMPT = """You are a BOM (Bill of Materials) extraction expert. Extract items from the provided text.

INSTRUCTIONS:
1. Extract item names, quantities, and descriptions
2. Look for manufacturer/brand names (makes) - match to existing: {makes}
3. Assign logical categories: {categories}
4. Extract part numbers/SKUs when visible
5. Default unit is "pcs" unless specified
6. Return ONLY the JSON object -- no markdown, no explanation, no code fences

Return JSON with this exact structure:
{{
  "items": [
    {{
      "name": "Item Name",
      "make": "Brand Name or null",
      "description": "Item description",
      "sku": "Part number or null",
      "quantity": 1,
      "category": "Category Name",
      "unit": "pcs"
    }}
  ],
  "totalItems": 1
}}

Text:
---
{text}
---"""


# ---------------------------------------------------------------------------
# Name matching
# ---------------------------------------------------------------------------

def match_known_name(value: Optional[str], known: list[str], threshold: int = MAKE_FUZZY_THRESHOLD) -> Optional[str]:
    """Return the known name equal (case-insensitively) or fuzzily close to value."""
    if not value or not known:
        return None
    lowered = value.strip().lower()
    for name in known:
        if name.lower() == lowered:
            return name
    best = process.extractOne(value, known, scorer=fuzz.WRatio, score_cutoff=threshold)
    return best[0] if best else None


def _match_make_in_line(line: str, makes: list[str], threshold: int) -> Optional[str]:
    lowered = line.lower()
    # 1. Whole make name appears in the line
    for make in makes:
        if make.lower() in lowered:
            return make
    # 2. A significant word of the make appears
    for make in makes:
        if any(len(word) > 3 and word in lowered for word in make.lower().split()):
            return make
    # 3. A word of the line is a near-miss spelling of a make
    for word in re.findall(r"[A-Za-z][A-Za-z&.-]{3,}", line):
        best = process.extractOne(word, makes, scorer=fuzz.ratio, score_cutoff=threshold)
        if best:
            return best[0]
    return None


def _suggest_category(text: str) -> str:
    lowered = text.lower()
    best, best_hits = UNCATEGORIZED, 0
    for category, keywords in CATEGORY_KEYWORDS.items():
        hits = sum(1 for k in keywords if k in lowered)
        if hits > best_hits:
            best, best_hits = category, hits
    return best


# ---------------------------------------------------------------------------
# Keyword fallback
# ---------------------------------------------------------------------------

def analyze_with_keywords(
    text: str,
    existing_makes: Optional[list[str]] = None,
    threshold: int = MAKE_FUZZY_THRESHOLD,
) -> BOMAnalysis:
    """
    One item per non-header line.  Quantity is the first standalone
    number (default 1); category is the keyword table entry with the most
    hits; make is matched against existing_makes.
    """
    started = time.monotonic()
    makes = existing_makes or []
    items: list[ExtractedBOMItem] = []

    for line in text.splitlines():
        line = line.strip()
        if not line or any(w in line.lower() for w in _HEADER_WORDS):
            continue

        quantity = Decimal("1")
        name = line
        m = _QUANTITY_RE.search(line)
        if m:
            quantity = Decimal(m.group(1))
            rest = _QUANTITY_SUFFIX_RE.sub("", line[m.end():])
            name = f"{line[:m.start()]} {rest}"
        name = re.sub(r"\s+", " ", name).strip(" -,;:\t")
        if not name:
            continue

        sku = _SKU_RE.search(name)
        items.append(ExtractedBOMItem(
            name=name,
            make=_match_make_in_line(name, makes, threshold),
            description=name,
            sku=sku.group(1) if sku else None,
            quantity=quantity if quantity > 0 else Decimal("1"),
            category=_suggest_category(name),
            unit="pcs",
        ))

    return BOMAnalysis(
        items=items,
        total_items=len(items),
        processing_time_seconds=round(time.monotonic() - started, 3),
        method="keywords",
    )


# ---------------------------------------------------------------------------
# AI importer
# ---------------------------------------------------------------------------

class BOMImporter:
    """
    Extracts BOM items from text with any OpenAI-compatible LLM API,
    falling back to keyword analysis.
    """

    def __init__(
        self,
        model: str = "llama3.2",
        base_url: str = "http://localhost:11434/v1",
        api_key: str = "ollama",
        make_threshold: int = MAKE_FUZZY_THRESHOLD,
    ):
        self.model = model
        self.base_url = base_url
        self.api_key = api_key
        self.make_threshold = make_threshold
        self._client = None

    def _get_client(self):
        """Lazily initialise the OpenAI client."""
        if self._client is None:
            self._client = OpenAI(base_url=self.base_url, api_key=self.api_key)
        return self._client

    def analyze(
        self,
        text: str,
        existing_categories: Optional[list[str]] = None,
        existing_makes: Optional[list[str]] = None,
    ) -> BOMAnalysis:
        """Extract items, snapping makes and categories onto known names."""
        categories = existing_categories or []
        makes = existing_makes or []
        started = time.monotonic()

        try:
            analysis = self._analyze_with_ai(text, categories, makes)
        except Exception as e:
            logger.warning("AI BOM analysis failed, falling back to keyword analysis: %s", e)
            analysis = analyze_with_keywords(text, makes, self.make_threshold)

        items = [self._normalise(item, categories, makes) for item in analysis.items]
        return analysis.model_copy(update={
            "items": items,
            "total_items": len(items),
            "processing_time_seconds": round(time.monotonic() - started, 3),
        })

    def _analyze_with_ai(self, text: str, categories: list[str], makes: list[str]) -> BOMAnalysis:
        prompt = _PROMPT.format(
            makes=", ".join(makes) or "any recognizable brands",
            categories=", ".join(categories) or ", ".join([*CATEGORY_KEYWORDS, UNCATEGORIZED]),
            text=text,
        )
        client = self._get_client()

        for attempt in range(1, MAX_ATTEMPTS + 1):
            logger.debug("BOM extraction attempt %d (model=%s)", attempt, self.model)
            try:
                response = client.chat.completions.create(
                    model=self.model,
                    messages=[{"role": "user", "content": prompt}],
                    temperature=0.0,
                )
                raw = (response.choices[0].message.content or "").strip()
                analysis = self._parse_json_response(raw)
                if analysis is not None:
                    logger.info("AI BOM extraction succeeded on attempt %d: %d items", attempt, len(analysis.items))
                    return analysis
            except Exception as e:
                logger.warning("BOM extraction attempt %d failed: %s", attempt, e)
                if attempt == MAX_ATTEMPTS:
                    raise

        raise ValueError(f"LLM failed to return valid BOM JSON after {MAX_ATTEMPTS} attempts")

    @staticmethod
    def _parse_json_response(raw: str) -> Optional[BOMAnalysis]:
        """
        Extract {"items": [...]} from the model's reply.
        Handles code fences and trailing commas; items that fail
        validation are dropped individually.
        """
        raw = re.sub(r"^```(?:json)?\s*", "", raw, flags=re.IGNORECASE)
        raw = re.sub(r"\s*```$", "", raw).strip()

        start = raw.find("{")
        end = raw.rfind("}") + 1
        if start == -1 or end == 0:
            logger.warning("No JSON object found in LLM response")
            return None

        json_str = raw[start:end]
        try:
            data = json.loads(json_str)
        except json.JSONDecodeError as e:
            logger.warning("JSON decode error: %s", e)
            json_str = re.sub(r",\s*([}\]])", r"\1", json_str)
            try:
                data = json.loads(json_str)
            except json.JSONDecodeError:
                logger.error("Could not repair JSON from LLM response")
                return None

        if not isinstance(data, dict) or not isinstance(data.get("items"), list):
            logger.warning("LLM response has no items list")
            return None

        items = []
        for raw_item in data["items"]:
            if not isinstance(raw_item, dict):
                continue
            cleaned = {k: v for k, v in raw_item.items() if v is not None}
            try:
                items.append(ExtractedBOMItem.model_validate(cleaned))
            except PydanticValidationError as e:
                logger.debug("Dropping invalid extracted item %r: %s", raw_item, e)

        return BOMAnalysis(items=items, total_items=len(items), method="ai")

    def _normalise(self, item: ExtractedBOMItem, categories: list[str], makes: list[str]) -> ExtractedBOMItem:
        updates: dict = {}
        if item.make and makes:
            known = match_known_name(item.make, makes, self.make_threshold)
            if known:
                updates["make"] = known
        if categories:
            updates["category"] = match_known_name(item.category, categories, self.make_threshold) or (
                UNCATEGORIZED if UNCATEGORIZED in categories else item.category
            )
        return item.model_copy(update=updates) if updates else item

    def check_connection(self) -> dict:
        """Verify the LLM endpoint is reachable and the configured model is available."""
        try:
            available = [m.id for m in self._get_client().models.list().data]
            return {
                "ok": True,
                "base_url": self.base_url,
                "model_available": any(self.model in m for m in available),
            }
        except Exception as e:
            return {"ok": False, "base_url": self.base_url, "error": str(e), "model_available": False}


# ---------------------------------------------------------------------------
# Conversion
# ---------------------------------------------------------------------------

def to_bom_items(
    analysis: BOMAnalysis,
    id_factory: Callable[[], str] = lambda: uuid.uuid4().hex,
) -> list[BOMItem]:
    """Turn extracted items into not-ordered, unpriced BOM items."""
    result = []
    for extracted in analysis.items:
        try:
            quantity = Decimal(extracted.quantity)
        except InvalidOperation:
            quantity = Decimal("1")
        result.append(BOMItem(
            id=id_factory(),
            name=extracted.name,
            make=extracted.make,
            description=extracted.description or extracted.name,
            sku=extracted.sku,
            category=extracted.category or UNCATEGORIZED,
            quantity=quantity if quantity > 0 else Decimal("1"),
            status="not-ordered",
        ))
    return result
