from collections.abc import Iterable

from pydantic import BaseModel, Field

from docsign.config import settings


class PaginationParams(BaseModel):
    page: int = Field(default=1, ge=1)
    page_size: int = Field(default=settings.default_page_size, ge=1, le=settings.max_page_size)

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.page_size


class PaginatedResponse(BaseModel):
    items: list
    total: int
    page: int
    page_size: int
    total_pages: int

    @classmethod
    def create(cls, items: list, total: int, params: PaginationParams) -> "PaginatedResponse":
        total_pages = -(-total // params.page_size)
        return cls(items=items, total=total, page=params.page, page_size=params.page_size, total_pages=total_pages)

    @classmethod
    def from_rows(
        cls,
        rows: Iterable,
        total: int,
        params: PaginationParams,
        schema: type[BaseModel],
    ) -> "PaginatedResponse":
        """Serialize ORM rows through ``schema`` and wrap them as one page."""
        items = [schema.model_validate(row).model_dump(mode="json") for row in rows]
        return cls.create(items=items, total=total, params=params)
