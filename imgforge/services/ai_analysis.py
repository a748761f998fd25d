import base64
from typing import Any

import httpx
import structlog

from imgforge.domain.errors import AIAnalysisError, InvalidValueError
from imgforge.domain.image_job import BrandContext, ProductContext
from imgforge.domain.ports import AIAnalysisResult, AIAnalyzer, AIImageIssue
from imgforge.domain.value_objects import CropRegion

logger = structlog.get_logger()

ANALYSIS_INSTRUCTIONS = """Analyze this product image for e-commerce use.
Respond with JSON containing:
- detectedObjects: list of object names
- suggestedCrop: {x, y, width, height} normalised to 0..1 framing the main product
- qualityScore: number between 0 and 100
- dominantColors: list of hex colours
- tags: list of keywords
- description: one sentence
- issues: list of {type, severity, message, suggestion}"""


def build_prompt(
    brand_context: BrandContext | None = None, product_context: ProductContext | None = None
) -> str:
    parts = [ANALYSIS_INSTRUCTIONS]
    if brand_context:
        parts.append(f"Brand: {brand_context.name}")
        if brand_context.vertical:
            parts.append(f"Vertical: {brand_context.vertical}")
        if brand_context.tone:
            parts.append(f"Tone: {brand_context.tone}")
        parts.append(f"Background preference: {brand_context.background or 'pure-white'}")
    if product_context:
        if product_context.category:
            parts.append(f"Product category: {product_context.category}")
        if product_context.attributes:
            attributes = ", ".join(f"{k}={v}" for k, v in product_context.attributes.items())
            parts.append(f"Product attributes: {attributes}")
    return "\n".join(parts)


def parse_crop(raw: Any) -> CropRegion | None:
    """Crop from the service payload; percentage values are scaled to 0..1."""
    if not isinstance(raw, dict):
        return None
    try:
        values = [float(raw[key]) for key in ("x", "y", "width", "height")]
    except (KeyError, TypeError, ValueError):
        return None
    if any(v > 1 for v in values):
        values = [v / 100 for v in values]
    try:
        return CropRegion(*values)
    except InvalidValueError:
        logger.warning("ai_crop_rejected", crop=raw)
        return None


def parse_result(prompt: str, payload: dict[str, Any]) -> AIAnalysisResult:
    issues = [
        AIImageIssue(
            type=str(issue.get("type", "unknown")),
            severity=str(issue.get("severity", "low")),
            message=str(issue.get("message", "")),
            suggestion=issue.get("suggestion"),
        )
        for issue in payload.get("issues") or []
        if isinstance(issue, dict)
    ]
    try:
        quality_score = float(payload.get("qualityScore", 0))
    except (TypeError, ValueError):
        quality_score = 0.0
    return AIAnalysisResult(
        prompt=prompt,
        quality_score=quality_score,
        detected_objects=list(payload.get("detectedObjects") or []),
        suggested_crop=parse_crop(payload.get("suggestedCrop")),
        dominant_colors=list(payload.get("dominantColors") or []),
        tags=list(payload.get("tags") or []),
        description=payload.get("description"),
        issues=issues,
    )


class HttpAIAnalyzer(AIAnalyzer):
    """Client for a JSON image-analysis HTTP service."""

    def __init__(
        self,
        base_url: str,
        api_key: str | None = None,
        timeout: float = 60.0,
        client: httpx.Client | None = None,
    ) -> None:
        headers = {"Authorization": f"Bearer {api_key}"} if api_key else {}
        self.client = client or httpx.Client(base_url=base_url, headers=headers, timeout=timeout)

    def analyze(
        self,
        data: bytes,
        brand_context: BrandContext | None = None,
        product_context: ProductContext | None = None,
    ) -> AIAnalysisResult:
        prompt = build_prompt(brand_context, product_context)
        body = {
            "prompt": prompt,
            "image": base64.b64encode(data).decode("ascii"),
        }
        try:
            response = self.client.post("/analyze", json=body)
            response.raise_for_status()
            payload = response.json()
        except httpx.HTTPError as e:
            raise AIAnalysisError(str(e)) from e
        except ValueError as e:
            raise AIAnalysisError(f"invalid JSON response: {e}") from e

        if not isinstance(payload, dict):
            raise AIAnalysisError("response is not a JSON object")
        return parse_result(prompt, payload)

    def is_available(self) -> bool:
        try:
            return self.client.get("/health").is_success
        except httpx.HTTPError:
            return False
