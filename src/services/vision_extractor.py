
import base64
import json
import re
from dataclasses import dataclass
import httpx
from loguru import logger
from pydantic import ValidationError
from .prompts import PROMPTS, PromptVariant
from ..core.config import settings
from ..core.errors import ExtractorNotConfigured, ExtractorUnavailable, MalformedResponse
from ..models.receipt import ExtractionResult

# Models sometimes wrap the JSON in a markdown fence despite instructions
_FENCE_OPEN = re.compile(r"^```(?:json)?\s*\n?", re.IGNORECASE)
_FENCE_CLOSE = re.compile(r"\n?```\s*$")


@dataclass(frozen=True)
class ReceiptImage:
    data: bytes
    media_type: str = "image/jpeg"


def strip_code_fence(text: str) -> str:
    text = text.strip()
    text = _FENCE_OPEN.sub("", text)
    text = _FENCE_CLOSE.sub("", text)
    return text.strip()


def parse_extraction(text: str) -> ExtractionResult:
    """Parse a model reply strictly; any deviation is a MalformedResponse"""
    try:
        payload = json.loads(strip_code_fence(text))
    except json.JSONDecodeError as e:
        raise MalformedResponse(f"Receipt scanning service returned invalid JSON: {e.msg}") from e

    if not isinstance(payload, dict):
        raise MalformedResponse("Receipt scanning service returned JSON that is not an object")

    try:
        return ExtractionResult.model_validate(payload)
    except ValidationError as e:
        raise MalformedResponse(
            f"Receipt scanning service returned an unexpected shape ({e.error_count()} error(s))"
        ) from e


class VisionExtractor:
    """
    Client for a vision-capable model that turns receipt images into fields.

    One call per extract(); retries and escalation belong to the caller.
    """

    def __init__(
        self,
        api_key: str,
        model: str | None = None,
        base_url: str | None = None,
        api_version: str | None = None,
        max_tokens: int | None = None,
        timeout: float | None = None,
    ):
        self.api_key = api_key
        self.model = model or settings.anthropic_model
        self.base_url = (base_url or settings.anthropic_base_url).rstrip("/")
        self.api_version = api_version or settings.anthropic_version
        self.max_tokens = max_tokens or settings.extractor_max_tokens
        self.timeout = timeout or settings.extractor_timeout_seconds

    @classmethod
    def from_settings(cls) -> "VisionExtractor":
        if not settings.anthropic_api_key:
            logger.error("ANTHROPIC_API_KEY not configured")
            raise ExtractorNotConfigured()
        return cls(api_key=settings.anthropic_api_key)

    def build_payload(self, images: list[ReceiptImage], variant: PromptVariant) -> dict:
        if not 1 <= len(images) <= 2:
            raise ValueError(f"Vision extractor accepts 1 or 2 images, got {len(images)}")

        content: list[dict] = [
            {
                "type": "image",
                "source": {
                    "type": "base64",
                    "media_type": image.media_type,
                    "data": base64.b64encode(image.data).decode("ascii"),
                },
            }
            for image in images
        ]
        content.append({"type": "text", "text": PROMPTS[variant]})

        return {
            "model": self.model,
            "max_tokens": self.max_tokens,
            "messages": [{"role": "user", "content": content}],
        }

    async def extract(self, images: list[ReceiptImage], variant: PromptVariant) -> ExtractionResult:
        payload = self.build_payload(images, variant)
        headers = {
            "x-api-key": self.api_key,
            "anthropic-version": self.api_version,
            "content-type": "application/json",
        }

        logger.info(
            "Calling vision extractor",
            model=self.model,
            variant=variant.value,
            images=len(images),
            image_bytes=sum(len(i.data) for i in images),
        )

        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                r = await client.post(f"{self.base_url}/v1/messages", json=payload, headers=headers)
        except httpx.TimeoutException as e:
            logger.error(f"Vision extractor timed out after {self.timeout}s")
            raise ExtractorUnavailable() from e
        except httpx.HTTPError as e:
            logger.error(f"Vision extractor request failed: {e}")
            raise ExtractorUnavailable() from e

        if r.is_error:
            logger.error("Vision extractor API error", status=r.status_code, body=r.text[:500])
            raise ExtractorUnavailable()

        try:
            body = r.json()
        except ValueError as e:
            raise MalformedResponse() from e

        blocks = body.get("content") if isinstance(body, dict) else None
        text = next(
            (b.get("text") for b in blocks or [] if isinstance(b, dict) and b.get("type") == "text"),
            None,
        )
        if not text:
            raise MalformedResponse("No response from scanning service")

        result = parse_extraction(text)
        logger.info(
            "Vision extraction complete",
            variant=variant.value,
            total=result.total.value,
            total_confidence=result.total.confidence,
            line_items=len(result.line_items),
        )
        return result
