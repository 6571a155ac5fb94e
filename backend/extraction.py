"""Vision API client that turns shop-floor photos into structured readings."""
import base64
import json
import logging
import math
import re
from decimal import Decimal
from typing import Any, Dict, Optional

import httpx
from pydantic import ValidationError

from config import Settings
from schemas import BladeReading, CoilLabelReading, EngelReading

logger = logging.getLogger(__name__)

# Blades cut per foot of coil steel
BLADES_PER_FOOT = Decimal("4.4")

ENGEL_SCREEN_PROMPT = """Extract from this Engel injection molding screen:
1. Production good parts (the number shown as "Production good parts")
2. Reject - startup cycles (the number shown)
3. Production rejects (the number shown)
4. Production total (the total parts produced)

If a value is not visible on the screen, report it as 0.
Return ONLY valid JSON: {"good_parts": number, "scrap_parts": number, "reject_parts": number, "total_parts": number}"""

COIL_LABEL_PROMPT = """Extract from these steel coil labels:
1. Number of coil boxes/labels visible
2. Coil IDs (the alphanumeric codes)
3. Length of each coil (look for measurements in feet)
4. Total length (sum of all coils)

Return ONLY valid JSON: {"coil_count": number, "total_length": number, "coil_ids": ["id1", "id2"]}"""

_FENCE_RE = re.compile(r"```(?:json|JSON)?\s*(.*?)\s*```", re.DOTALL)


class ExtractionFailure(Exception):
    """The vision API could not produce a usable reading."""

    def __init__(self, message: str, cause: Optional[BaseException] = None):
        super().__init__(message)
        self.message = message
        self.cause = cause

    @property
    def details(self) -> Optional[str]:
        return str(self.cause) if self.cause is not None else None


def estimate_blades(total_length: float) -> int:
    """floor(total_length * 4.4), computed on the decimal value as reported."""
    return math.floor(Decimal(str(total_length)) * BLADES_PER_FOOT)


def strip_code_fences(text: str) -> str:
    """Remove markdown fences the model sometimes wraps around its JSON."""
    match = _FENCE_RE.search(text)
    if match:
        return match.group(1).strip()
    return text.strip()


def parse_json_reply(text: str) -> Dict[str, Any]:
    """Parse the model's reply text into a JSON object."""
    if not text or not text.strip():
        raise ExtractionFailure("Empty response from vision API")
    try:
        parsed = json.loads(strip_code_fences(text))
    except json.JSONDecodeError as e:
        raise ExtractionFailure("Vision API reply was not valid JSON", e) from e
    if not isinstance(parsed, dict):
        raise ExtractionFailure(
            f"Vision API reply was JSON {type(parsed).__name__}, expected an object"
        )
    return parsed


def reply_text(result: Any) -> str:
    """Concatenate the text blocks of a Messages API response body."""
    content = result.get("content") if isinstance(result, dict) else None
    if not isinstance(content, list):
        raise ExtractionFailure("Unexpected vision API response shape: content is not a list")

    parts = []
    for block in content:
        if not isinstance(block, dict) or block.get("type") != "text":
            continue
        text = block.get("text")
        if not isinstance(text, str):
            raise ExtractionFailure("Unexpected vision API response shape: text block is not a string")
        parts.append(text)
    return "".join(parts)


class VisionExtractionClient:
    """
    Client for the Anthropic Messages API with image input.

    Each call is a single attempt: no retry, no caching. Transport errors,
    unparseable replies and replies that do not match the requested shape
    all surface as ExtractionFailure.
    """

    ANTHROPIC_VERSION = "2023-06-01"

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        api_key: str,
        model: str,
        api_url: str,
        max_tokens: int = 1000,
    ):
        self.http_client = http_client
        self.api_key = api_key
        self.model = model
        self.api_url = api_url
        self.max_tokens = max_tokens

    @classmethod
    def from_settings(
        cls, http_client: httpx.AsyncClient, settings: Settings
    ) -> "VisionExtractionClient":
        return cls(
            http_client,
            api_key=settings.claude_api_key,
            model=settings.vision_model,
            api_url=settings.vision_api_url,
            max_tokens=settings.vision_max_tokens,
        )

    def _build_payload(self, image_bytes: bytes, task_prompt: str, media_type: str) -> dict:
        return {
            "model": self.model,
            "max_tokens": self.max_tokens,
            "messages": [
                {
                    "role": "user",
                    "content": [
                        {
                            "type": "image",
                            "source": {
                                "type": "base64",
                                "media_type": media_type,
                                "data": base64.b64encode(image_bytes).decode("utf-8"),
                            },
                        },
                        {"type": "text", "text": task_prompt},
                    ],
                }
            ],
        }

    async def extract(
        self, image_bytes: bytes, task_prompt: str, media_type: str = "image/jpeg"
    ) -> Dict[str, Any]:
        """
        Send one image and an instruction to the vision API.

        Args:
            image_bytes: Raw image data
            task_prompt: Instruction describing the JSON shape to return
            media_type: MIME type of the image

        Returns:
            The JSON object parsed from the model's reply
        """
        headers = {
            "x-api-key": self.api_key,
            "anthropic-version": self.ANTHROPIC_VERSION,
            "content-type": "application/json",
        }
        payload = self._build_payload(image_bytes, task_prompt, media_type)

        logger.debug(f"Calling vision API with model: {self.model}")
        try:
            response = await self.http_client.post(self.api_url, headers=headers, json=payload)
            response.raise_for_status()
            result = response.json()
        except httpx.HTTPStatusError as e:
            logger.error(
                f"HTTP error from vision API: {e.response.status_code} - {e.response.text}"
            )
            raise ExtractionFailure(f"Vision API error: {e.response.status_code}", e) from e
        except httpx.TimeoutException as e:
            logger.error("Timeout while calling vision API")
            raise ExtractionFailure("Vision API timeout", e) from e
        except httpx.HTTPError as e:
            logger.error(f"Could not reach vision API: {e}")
            raise ExtractionFailure("Vision API unreachable", e) from e
        except ValueError as e:
            raise ExtractionFailure("Vision API returned a non-JSON body", e) from e

        return parse_json_reply(reply_text(result))

    async def read_engel_screen(
        self, image_bytes: bytes, media_type: str = "image/jpeg"
    ) -> EngelReading:
        data = await self.extract(image_bytes, ENGEL_SCREEN_PROMPT, media_type)
        try:
            return EngelReading.model_validate(data)
        except ValidationError as e:
            raise ExtractionFailure("Screen reading did not match the expected fields", e) from e

    async def read_coil_labels(
        self, image_bytes: bytes, media_type: str = "image/jpeg"
    ) -> BladeReading:
        data = await self.extract(image_bytes, COIL_LABEL_PROMPT, media_type)
        try:
            labels = CoilLabelReading.model_validate(data)
        except ValidationError as e:
            raise ExtractionFailure("Coil label reading did not match the expected fields", e) from e
        return BladeReading(
            **labels.model_dump(),
            estimated_blades=estimate_blades(labels.total_length),
        )
