from __future__ import annotations

import pytest

from snapcart.core.exceptions import ReceiptNotFound
from snapcart.services.storage_service import StorageService


@pytest.fixture
def storage(tmp_path):
    return StorageService(base_dir=str(tmp_path), backend="filesystem")


@pytest.mark.asyncio
async def test_save_load_delete_roundtrip(storage, make_image):
    image = make_image(filename="../../etc/My Receipt!.jpg")

    key = await storage.save(image, owner_id="user-1")

    owner, name = key.split("/")
    assert owner == "user-1"
    assert name.endswith("_MyReceipt.jpg")
    assert await storage.load(key) == image.content

    await storage.delete(key)
    with pytest.raises(ReceiptNotFound):
        await storage.load(key)
    # deleting twice is harmless
    await storage.delete(key)


@pytest.mark.asyncio
@pytest.mark.parametrize("key", ["../outside.jpg", "/etc/passwd", "user-1/../../x"])
async def test_keys_cannot_escape_base_dir(storage, key):
    with pytest.raises(ReceiptNotFound):
        await storage.load(key)


@pytest.mark.asyncio
async def test_empty_payload_is_refused(storage, make_image):
    with pytest.raises(ValueError):
        await storage.save(make_image(size=0), owner_id="user-1")


def test_unknown_backend():
    with pytest.raises(ValueError):
        StorageService(backend="floppy")
