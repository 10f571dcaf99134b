"""Domain exceptions raised by the receipt pipeline.

Only ``InvalidUpload``, ``UnparsableReceipt`` and ``ExtractionFailed``
ever leave the ingestion workflow.  ``ProviderUnavailable`` is raised
while wiring providers at startup and ``ExtractionError`` is absorbed
by the OCR coordinator, which degrades to the fallback provider.
The API layer maps the surfaced errors to HTTP responses in
``snapcart.api.error_handlers``.
"""

from __future__ import annotations


class SnapCartError(Exception):
    """Base class for all SnapCart domain errors."""

    title = "Receipt processing error"

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.title
        super().__init__(self.message)


class InvalidUpload(SnapCartError):
    """The uploaded file was rejected before any extraction work."""

    title = "Invalid upload"


class ProviderUnavailable(SnapCartError):
    """The AI provider cannot be constructed (no credential configured)."""

    title = "Extraction provider unavailable"


class ExtractionError(SnapCartError):
    """A transient failure of the AI provider (network, quota, timeout)."""

    title = "Extraction provider error"


class ExtractionFailed(SnapCartError):
    """Even the fallback provider could not produce text."""

    title = "Failed to extract text from image"


class UnparsableReceipt(SnapCartError):
    """No total could be located in the extracted receipt text."""

    title = "Could not read this receipt"


class ReceiptNotFound(SnapCartError):
    """No receipt with the requested id exists for the caller."""

    title = "Receipt not found"
