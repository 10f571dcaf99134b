"""Backend-level pytest configuration.

Test settings are pinned here, before any ``snapcart`` module is
imported, so the import-time ``Settings`` and engine never point at a
developer's real database, storage or credentials.
"""

from __future__ import annotations

import os
import tempfile

os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["STORAGE_BACKEND"] = "filesystem"
os.environ.setdefault("STORAGE_DIRECTORY", tempfile.mkdtemp(prefix="snapcart-test-storage-"))
os.environ["SECRET_KEY"] = "test-secret"
os.environ["SENTRY_DSN"] = ""
