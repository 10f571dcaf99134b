"""Common dependencies for FastAPI routes.

This module defines shared dependency functions: database sessions,
the caller's identity and the pipeline services.  Identity comes from
a bearer JWT issued elsewhere; we only verify its signature with
``SECRET_KEY`` and read the ``sub`` claim.  The OCR service is built
once at startup (see ``snapcart.api.main``) and read from
``app.state``.
"""

from __future__ import annotations

import logging
from functools import lru_cache
from typing import AsyncGenerator

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt
from sqlalchemy.ext.asyncio import AsyncSession

from snapcart.core.config import settings
from snapcart.core.database import get_db
from snapcart.services.ingestion_service import IngestionService
from snapcart.services.ocr_service import OCRService, build_ocr_service
from snapcart.services.receipt_repository import ReceiptRepository
from snapcart.services.storage_service import StorageService

logger = logging.getLogger(__name__)

auth_scheme = HTTPBearer(auto_error=False)


async def get_db_session() -> AsyncGenerator[AsyncSession, None]:
    """Alias for `get_db` to be imported in routers."""
    async for session in get_db():
        yield session


def decode_access_token(token: str) -> dict:
    """Verify an HS256 token and return its claims."""
    try:
        return jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.JWT_ALGORITHM])
    except JWTError as exc:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token") from exc


async def get_current_owner(
    credentials: HTTPAuthorizationCredentials | None = Depends(auth_scheme),
) -> str:
    """Return the authenticated caller's id (the token's ``sub`` claim)."""
    if credentials is None or not credentials.credentials:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing auth token")
    payload = decode_access_token(credentials.credentials)
    owner_id = payload.get("sub")
    if not owner_id:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token: no sub claim")
    return str(owner_id)


def get_ocr_service(request: Request) -> OCRService:
    ocr = getattr(request.app.state, "ocr_service", None)
    if ocr is None:
        # App started without the lifespan hook (e.g. routers mounted in tests)
        ocr = build_ocr_service()
        request.app.state.ocr_service = ocr
    return ocr


@lru_cache(maxsize=1)
def get_storage_service() -> StorageService:
    return StorageService()


def get_receipt_repository(db: AsyncSession = Depends(get_db_session)) -> ReceiptRepository:
    return ReceiptRepository(db)


def get_ingestion_service(
    ocr: OCRService = Depends(get_ocr_service),
    repository: ReceiptRepository = Depends(get_receipt_repository),
    storage: StorageService = Depends(get_storage_service),
) -> IngestionService:
    return IngestionService(
        ocr=ocr,
        repository=repository,
        storage=storage,
        max_upload_size=settings.MAX_UPLOAD_SIZE,
        allowed_mime_types=settings.ALLOWED_MIME_TYPES,
    )
