import uuid
from datetime import datetime

from pydantic import BaseModel


class DocumentResponse(BaseModel):
    id: uuid.UUID
    owner_id: uuid.UUID
    filename: str
    mime_type: str
    size_bytes: int
    page_count: int
    created_at: datetime

    model_config = {"from_attributes": True}


class DocumentUploadResponse(BaseModel):
    id: uuid.UUID
    filename: str
    size_bytes: int
    page_count: int


class RenderedPageResponse(BaseModel):
    page: int
    total_pages: int
    width: int
    height: float
    scale: float
    reference_width: int
