from __future__ import annotations

import base64

import pytest

from snapcart.core.exceptions import ExtractionError, ProviderUnavailable
from snapcart.models.enums import Provenance
from snapcart.services.extraction_service import (
    FALLBACK_RECEIPT_TEXT,
    FallbackExtractionProvider,
    VisionExtractionProvider,
)


@pytest.mark.parametrize("api_key", [None, "", "   "])
def test_vision_provider_requires_api_key(api_key):
    with pytest.raises(ProviderUnavailable):
        VisionExtractionProvider(api_key=api_key)


@pytest.mark.asyncio
async def test_vision_provider_returns_trimmed_text(fake_openai, make_image):
    client, completions = fake_openai(content="  SHOP\nTOTAL $1.00 \n\n")
    provider = VisionExtractionProvider(api_key="sk-test", model="gpt-4o-mini", client=client)

    text = await provider.extract(make_image(filename="photo.PNG"))

    assert text == "SHOP\nTOTAL $1.00"
    assert provider.provenance is Provenance.AI
    call = completions.calls[0]
    assert call["model"] == "gpt-4o-mini"
    content = call["messages"][0]["content"]
    assert "Store name and address" in content[0]["text"]
    url = content[1]["image_url"]["url"]
    assert url.startswith("data:image/png;base64,")
    assert base64.b64decode(url.split(",", 1)[1]) == make_image(filename="photo.PNG").content


@pytest.mark.asyncio
@pytest.mark.parametrize("filename, mime", [("a.webp", "image/webp"), ("a.gif", "image/gif"), ("a.heic", "image/jpeg"), ("noext", "image/jpeg")])
async def test_vision_provider_mime_type_from_extension(fake_openai, make_image, filename, mime):
    client, completions = fake_openai(content="x")
    provider = VisionExtractionProvider(api_key="sk-test", client=client)
    await provider.extract(make_image(filename=filename))
    url = completions.calls[0]["messages"][0]["content"][1]["image_url"]["url"]
    assert url.startswith(f"data:{mime};base64,")


@pytest.mark.asyncio
@pytest.mark.parametrize("content", ["", "   \n", None])
async def test_vision_provider_empty_answer_is_not_an_error(fake_openai, make_image, content):
    client, _ = fake_openai(content=content)
    provider = VisionExtractionProvider(api_key="sk-test", client=client)
    assert await provider.extract(make_image()) == ""


@pytest.mark.asyncio
async def test_vision_provider_wraps_sdk_errors(fake_openai, make_image):
    client, _ = fake_openai(exc=RuntimeError("quota exceeded"))
    provider = VisionExtractionProvider(api_key="sk-test", client=client)
    with pytest.raises(ExtractionError, match="quota exceeded"):
        await provider.extract(make_image())


@pytest.mark.asyncio
async def test_vision_provider_times_out(fake_openai, make_image):
    client, _ = fake_openai(content="late", delay=5)
    provider = VisionExtractionProvider(api_key="sk-test", timeout=0.05, client=client)
    with pytest.raises(ExtractionError, match="timed out"):
        await provider.extract(make_image())


@pytest.mark.asyncio
async def test_vision_provider_rejects_malformed_response(make_image):
    class NoChoices:
        class chat:
            class completions:
                @staticmethod
                async def create(**kwargs):
                    return object()

    provider = VisionExtractionProvider(api_key="sk-test", client=NoChoices)
    with pytest.raises(ExtractionError, match="malformed"):
        await provider.extract(make_image())


@pytest.mark.asyncio
async def test_fallback_provider_returns_fixed_template(make_image):
    provider = FallbackExtractionProvider()
    first = await provider.extract(make_image())
    second = await provider.extract(make_image(size=10, filename="other.png"))
    assert first == second == FALLBACK_RECEIPT_TEXT
    assert provider.provenance is Provenance.FALLBACK
    assert "TOTAL            $18.29" in first
