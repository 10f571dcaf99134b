"""Receipt text extraction providers.

Two providers turn an uploaded receipt image into raw receipt text:

* ``VisionExtractionProvider`` sends the image bytes (base64 data URL)
  together with a fixed instruction prompt to an OpenAI vision model
  and returns the model's text answer.
* ``FallbackExtractionProvider`` performs no I/O at all and returns a
  fixed, well-formed receipt.  It keeps the pipeline usable offline,
  in development and whenever the vision model misbehaves.

The set is deliberately closed; ``OCRService`` in
``snapcart.services.ocr_service`` decides which one runs.
"""

from __future__ import annotations

import asyncio
import base64
import logging
from typing import Optional

from openai import AsyncOpenAI

from snapcart.core.exceptions import ExtractionError, ProviderUnavailable
from snapcart.models.enums import Provenance
from snapcart.models.schemas import UploadedImage
from snapcart.utils.helpers import mime_type_for_filename
from snapcart.utils.prompts import get_default_extraction_prompt

logger = logging.getLogger(__name__)


FALLBACK_RECEIPT_TEXT = """GROCERY STORE
123 Main St
City, State 12345

Date: 2024-01-15

ITEMS:
Milk 2%           $3.99
Bread Wheat       $2.49
Bananas          $1.99
Chicken Breast   $8.99
Total Tax         $0.83
TOTAL            $18.29

Thank you for shopping!"""


class VisionExtractionProvider:
    """Extract receipt text with an OpenAI vision-capable chat model.

    Construction fails with ``ProviderUnavailable`` when no API key is
    given, so an instance always holds a usable client.  Every call is
    bounded by ``timeout`` seconds; timeouts and SDK errors are raised
    as ``ExtractionError``.
    """

    provenance = Provenance.AI

    def __init__(
        self,
        api_key: Optional[str],
        model: str = "gpt-4o-mini",
        timeout: float = 30.0,
        max_tokens: int = 1024,
        prompt: Optional[str] = None,
        client: Optional[AsyncOpenAI] = None,
    ) -> None:
        if not api_key or not api_key.strip():
            raise ProviderUnavailable("OPENAI_API_KEY not configured")
        self.model = model
        self.timeout = timeout
        self.max_tokens = max_tokens
        self.prompt = prompt or get_default_extraction_prompt()
        # Retries are disabled: a failed call degrades to the fallback provider instead.
        self._client = client or AsyncOpenAI(api_key=api_key, max_retries=0, timeout=timeout)

    def _image_to_base64(self, data: bytes) -> str:
        """Encode raw image bytes as a base64 string."""
        return base64.b64encode(data).decode("utf-8")

    def build_messages(self, image: UploadedImage) -> list[dict]:
        mime_type = mime_type_for_filename(image.filename)
        b64 = self._image_to_base64(image.content)
        return [
            {
                "role": "user",
                "content": [
                    {"type": "text", "text": self.prompt},
                    {
                        "type": "image_url",
                        "image_url": {"url": f"data:{mime_type};base64,{b64}", "detail": "auto"},
                    },
                ],
            }
        ]

    async def extract(self, image: UploadedImage) -> str:
        """Return the model's answer for ``image``, trimmed.

        An empty answer is a valid (empty) result rather than an error.
        """
        messages = self.build_messages(image)
        try:
            response = await asyncio.wait_for(
                self._client.chat.completions.create(
                    model=self.model,
                    messages=messages,
                    max_tokens=self.max_tokens,
                ),
                timeout=self.timeout,
            )
        except asyncio.TimeoutError as exc:
            raise ExtractionError(f"vision model timed out after {self.timeout:g}s") from exc
        except Exception as exc:
            raise ExtractionError(f"vision model request failed: {exc}") from exc

        try:
            content = response.choices[0].message.content
        except (AttributeError, IndexError, TypeError) as exc:
            raise ExtractionError("malformed vision model response") from exc
        if isinstance(content, list):
            content = "".join(getattr(part, "text", "") or "" for part in content)
        if content is None:
            return ""
        if not isinstance(content, str):
            raise ExtractionError(f"unexpected vision model content type {type(content).__name__}")
        return content.strip()


class FallbackExtractionProvider:
    """Deterministic provider returning a fixed grocery receipt.

    It never touches the network, which makes it the safety net for
    the vision provider and the only provider in offline setups.
    """

    provenance = Provenance.FALLBACK

    def __init__(self, text: str = FALLBACK_RECEIPT_TEXT) -> None:
        self.text = text

    async def extract(self, image: UploadedImage) -> str:
        logger.info("Fallback OCR processing: %s (%d bytes)", image.filename, image.size)
        return self.text
