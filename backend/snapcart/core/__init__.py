"""Core application services and infrastructure layer.

Exports configuration settings so tests can simply write
``from snapcart.core import settings``.
"""

from .config import settings  # noqa: F401
