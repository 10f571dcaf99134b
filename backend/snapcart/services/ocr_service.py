"""OCR coordination: provider selection and graceful degradation.

``OCRService`` is the single entry point for turning an image into
receipt text.  The policy is:

1. If the vision provider was configured at startup, try it.
2. On any failure from it, log the error and use the fallback provider.
3. Without a configured vision provider, go straight to the fallback.
4. Only a failing fallback provider surfaces, as ``ExtractionFailed``.

Whether the vision provider exists is decided once, by
``build_ocr_service``, and never re-checked per request.
"""

from __future__ import annotations

import logging
from typing import Optional

from snapcart.core.config import Settings, settings as default_settings
from snapcart.core.exceptions import ExtractionFailed, ProviderUnavailable
from snapcart.core.observability import sentry_breadcrumb, sentry_metric_inc
from snapcart.models.enums import Provenance
from snapcart.models.schemas import ExtractionResult, UploadedImage
from snapcart.services.extraction_service import FallbackExtractionProvider, VisionExtractionProvider

logger = logging.getLogger(__name__)


class OCRService:
    """Extract receipt text, degrading to the fallback provider on failure."""

    def __init__(
        self,
        ai_provider: Optional[VisionExtractionProvider] = None,
        fallback_provider: Optional[FallbackExtractionProvider] = None,
    ) -> None:
        self._ai_provider = ai_provider
        self._fallback_provider = fallback_provider or FallbackExtractionProvider()

    @property
    def ai_available(self) -> bool:
        return self._ai_provider is not None

    async def extract(self, image: UploadedImage) -> ExtractionResult:
        """Return the extracted text and which provider produced it."""
        if self._ai_provider is not None:
            try:
                text = await self._ai_provider.extract(image)
                return ExtractionResult(text=text, provenance=Provenance.AI)
            except Exception as exc:
                logger.warning("Vision extraction failed, falling back to mock OCR: %s", exc)
                sentry_breadcrumb(
                    category="ocr",
                    message="ocr.fallback",
                    level="warning",
                    data={"filename": image.filename, "error": str(exc)[:200]},
                )
                sentry_metric_inc("ocr.fallback", tags={"reason": type(exc).__name__})

        try:
            text = await self._fallback_provider.extract(image)
        except Exception as exc:
            logger.error("Fallback OCR extraction failed: %s", exc)
            raise ExtractionFailed() from exc
        return ExtractionResult(text=text, provenance=Provenance.FALLBACK)

    async def extract_text(self, image: UploadedImage) -> str:
        return (await self.extract(image)).text


def build_ocr_service(config: Settings | None = None) -> OCRService:
    """Resolve provider availability once and return the coordinator."""
    config = config or default_settings
    ai_provider: Optional[VisionExtractionProvider] = None
    try:
        ai_provider = VisionExtractionProvider(
            api_key=config.OPENAI_API_KEY,
            model=config.EXTRACTION_MODEL,
            timeout=config.EXTRACTION_TIMEOUT_SECONDS,
            max_tokens=config.EXTRACTION_MAX_TOKENS,
        )
        logger.info("Vision extraction configured (model=%s)", config.EXTRACTION_MODEL)
    except ProviderUnavailable as exc:
        logger.warning("Vision extraction not configured, using fallback OCR only: %s", exc)
    return OCRService(ai_provider=ai_provider)
