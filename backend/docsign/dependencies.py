import uuid
from typing import Annotated

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from docsign.auth.models import User
from docsign.auth.service import decode_access_token
from docsign.database import get_db
from docsign.documents.renderer import PdfPageRenderer
from docsign.documents.viewer import ViewerRegistry
from docsign.signatures.embedding import PdfSignatureEmbedder

security = HTTPBearer()


async def get_current_user(
    credentials: Annotated[HTTPAuthorizationCredentials, Depends(security)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> User:
    user_id = decode_access_token(credentials.credentials)
    if user_id is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token")

    try:
        parsed_id = uuid.UUID(user_id)
    except ValueError:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token")

    result = await db.execute(select(User).where(User.id == parsed_id))
    user = result.scalar_one_or_none()
    if user is None or not user.is_active:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="User not found or inactive")
    return user


viewers = ViewerRegistry()


def get_viewers() -> ViewerRegistry:
    return viewers


def get_renderer() -> PdfPageRenderer:
    return PdfPageRenderer()


def get_embedder() -> PdfSignatureEmbedder:
    return PdfSignatureEmbedder()
