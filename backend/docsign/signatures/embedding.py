import asyncio
import logging
import uuid
from collections.abc import Sequence
from io import BytesIO

from pypdf import PdfReader, PdfWriter
from reportlab.lib import colors
from reportlab.pdfbase.pdfmetrics import stringWidth
from reportlab.pdfgen import canvas

from docsign.common import storage
from docsign.common.errors import CollaboratorFailure
from docsign.config import settings
from docsign.documents.models import Document
from docsign.signatures.coordinates import Point, to_pdf_points
from docsign.signatures.field import PlacedSignatureData

logger = logging.getLogger(__name__)

# Browser font families mapped onto the PDF base-14 fonts (regular, bold).
_BASE_FONTS = {
    "Times New Roman": ("Times-Roman", "Times-Bold"),
    "Georgia": ("Times-Roman", "Times-Bold"),
    "Courier New": ("Courier", "Courier-Bold"),
    "monospace": ("Courier", "Courier-Bold"),
}
_DEFAULT_FONTS = ("Helvetica", "Helvetica-Bold")


def pdf_font_for(font_family: str, bold: bool) -> str:
    regular, heavy = _BASE_FONTS.get(font_family, _DEFAULT_FONTS)
    return heavy if bold else regular


def pdf_color_for(color: str):
    try:
        return colors.toColor(color)
    except ValueError:
        logger.warning("Unrecognised signature color %r, using default", color)
        return colors.toColor(settings.default_color)


def _overlay_page(width: float, height: float, placements: Sequence[PlacedSignatureData]) -> bytes:
    buf = BytesIO()
    c = canvas.Canvas(buf, pagesize=(width, height))
    scale = width / settings.reference_width
    for placement in placements:
        font = pdf_font_for(placement.font_family, placement.is_bold)
        size = placement.font_size * scale
        # Baseline sits one line below the field's top-left corner.
        origin = to_pdf_points(
            Point(placement.x, placement.y + placement.font_size),
            width,
            height,
            settings.reference_width,
        )
        c.setFillColor(pdf_color_for(placement.color))
        c.setStrokeColor(pdf_color_for(placement.color))
        c.setFont(font, size)
        c.drawString(origin.x, origin.y, placement.signature_text)
        if placement.is_underline:
            text_width = stringWidth(placement.signature_text, font, size)
            c.setLineWidth(max(size / 16, 0.5))
            c.line(origin.x, origin.y - size * 0.15, origin.x + text_width, origin.y - size * 0.15)
    c.showPage()
    c.save()
    return buf.getvalue()


def stamp_pdf(original_pdf_bytes: bytes, placements: Sequence[PlacedSignatureData]) -> bytes:
    reader = PdfReader(BytesIO(original_pdf_bytes))
    writer = PdfWriter()
    for page in reader.pages:
        writer.add_page(page)

    by_page: dict[int, list[PlacedSignatureData]] = {}
    for placement in placements:
        by_page.setdefault(placement.page - 1, []).append(placement)

    for index, page_placements in by_page.items():
        page = reader.pages[index]
        width = float(page.mediabox.width)
        height = float(page.mediabox.height)
        overlay = PdfReader(BytesIO(_overlay_page(width, height, page_placements)))
        writer.pages[index].merge_page(overlay.pages[0])

    out = BytesIO()
    writer.write(out)
    return out.getvalue()


class PdfSignatureEmbedder:
    """Stamps frozen placements into a copy of the document and stores it."""

    async def embed(
        self,
        request_id: uuid.UUID,
        document: Document,
        placements: Sequence[PlacedSignatureData],
    ) -> str:
        original = await storage.get_bytes(document.storage_key)
        try:
            stamped = await asyncio.to_thread(stamp_pdf, original, placements)
        except Exception as exc:
            logger.exception("Embedding failed for signature request %s", request_id)
            raise CollaboratorFailure("Signature could not be embedded into the document") from exc

        key = f"signed/{document.owner_id}/{request_id}.pdf"
        await storage.put_bytes(key, stamped, content_type="application/pdf")
        logger.info("Embedded %d placement(s) for signature request %s", len(placements), request_id)
        return key
