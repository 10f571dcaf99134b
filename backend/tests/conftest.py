from __future__ import annotations

import asyncio
import sys
from pathlib import Path
from types import SimpleNamespace
from typing import Any

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

# Add backend folder to sys.path so `import snapcart...` works without an install
BACKEND_DIR = Path(__file__).resolve().parents[1]
if str(BACKEND_DIR) not in sys.path:
    sys.path.insert(0, str(BACKEND_DIR))

from snapcart.core.database import Base  # noqa: E402
from snapcart.models import tables  # noqa: E402,F401
from snapcart.models.schemas import UploadedImage  # noqa: E402


class FakeCompletions:
    """Stand-in for ``AsyncOpenAI().chat.completions``."""

    def __init__(self, content: Any = "", exc: Exception | None = None, delay: float = 0.0):
        self.content = content
        self.exc = exc
        self.delay = delay
        self.calls: list[dict] = []

    async def create(self, **kwargs):
        self.calls.append(kwargs)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.exc is not None:
            raise self.exc
        return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=self.content))])


class FakeOpenAI:
    def __init__(self, completions: FakeCompletions):
        self.chat = SimpleNamespace(completions=completions)


class CountingProvider:
    """Provider double that records calls and returns or raises on demand."""

    def __init__(self, text: str = "", exc: Exception | None = None, delay: float = 0.0):
        self.text = text
        self.exc = exc
        self.delay = delay
        self.calls = 0
        self.started = asyncio.Event()

    async def extract(self, image):
        self.calls += 1
        self.started.set()
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.exc is not None:
            raise self.exc
        return self.text


@pytest.fixture
def fake_openai():
    """Factory returning ``(client, completions)`` for the vision provider."""

    def _make(content: Any = "", exc: Exception | None = None, delay: float = 0.0):
        completions = FakeCompletions(content=content, exc=exc, delay=delay)
        return FakeOpenAI(completions), completions

    return _make


@pytest.fixture
def counting_provider():
    return CountingProvider


@pytest.fixture
def make_image():
    def _make(size: int = 2048, filename: str = "receipt.jpg", content_type: str = "image/jpeg") -> UploadedImage:
        content = b"\xff\xd8\xff\xe0" + b"\x00" * max(size - 4, 0)
        return UploadedImage(content=content[:size], filename=filename, content_type=content_type, size=size)

    return _make


@pytest_asyncio.fixture
async def db_session():
    engine = create_async_engine("sqlite+aiosqlite://", poolclass=StaticPool)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    Session = async_sessionmaker(engine, expire_on_commit=False)
    async with Session() as session:
        yield session
    await engine.dispose()
