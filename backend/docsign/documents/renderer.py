import asyncio
import logging
from dataclasses import dataclass
from io import BytesIO

from pypdf import PdfReader, PdfWriter

from docsign.common.errors import InvalidRenderState, RenderError, ValidationError
from docsign.signatures.store import check_page

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RenderedPage:
    page: int
    total_pages: int
    width: int
    height: float
    # Rendered pixels per PDF point.
    scale: float
    # The page extracted as a standalone single-page PDF.
    content: bytes


def count_pages(content: bytes) -> int:
    """Number of pages in an uploaded PDF; rejects anything pypdf cannot read."""
    try:
        total = len(PdfReader(BytesIO(content)).pages)
    except Exception as exc:
        raise ValidationError("Uploaded file is not a readable PDF") from exc
    if total < 1:
        raise ValidationError("Uploaded PDF has no pages")
    return total


class PdfPageRenderer:
    async def render_page(self, document_bytes: bytes, page: int, width: int) -> RenderedPage:
        if width is None or width <= 0:
            raise InvalidRenderState(f"Cannot render at width {width!r}")
        return await asyncio.to_thread(self._render, document_bytes, page, width)

    def _render(self, document_bytes: bytes, page: int, width: int) -> RenderedPage:
        try:
            reader = PdfReader(BytesIO(document_bytes))
            total_pages = len(reader.pages)
        except Exception as exc:
            logger.warning("Unable to parse document for rendering: %s", exc)
            raise RenderError("Document could not be rendered") from exc

        check_page(page, total_pages)
        try:
            pdf_page = reader.pages[page - 1]
            page_width = float(pdf_page.mediabox.width)
            page_height = float(pdf_page.mediabox.height)

            writer = PdfWriter()
            writer.add_page(pdf_page)
            buf = BytesIO()
            writer.write(buf)
        except Exception as exc:
            logger.warning("Unable to extract page %d for rendering: %s", page, exc)
            raise RenderError(f"Page {page} could not be rendered") from exc

        scale = width / page_width
        return RenderedPage(
            page=page,
            total_pages=total_pages,
            width=width,
            height=page_height * scale,
            scale=scale,
            content=buf.getvalue(),
        )
