"""
Cancelable page rendering for an interactive viewer.

Each call to ``show`` supersedes the previous one: the in-flight render task is
cancelled and, should it still complete, its result is dropped instead of
replacing the page currently on display.
"""

import asyncio
import logging
import uuid
from typing import Optional

from docsign.documents.renderer import PdfPageRenderer, RenderedPage

logger = logging.getLogger(__name__)


class PageViewer:
    def __init__(self, renderer: PdfPageRenderer, document_bytes: bytes):
        self._renderer = renderer
        self._document = document_bytes
        self._generation = 0
        self._task: Optional[asyncio.Task] = None
        self.current: Optional[RenderedPage] = None

    @property
    def total_pages(self) -> Optional[int]:
        return self.current.total_pages if self.current else None

    def _supersede(self) -> int:
        self._generation += 1
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self._task = None
        return self._generation

    async def show(self, page: int, width: int) -> Optional[RenderedPage]:
        """Render ``page`` at ``width``; returns None when superseded meanwhile."""
        generation = self._supersede()
        task = asyncio.create_task(self._renderer.render_page(self._document, page, width))
        self._task = task
        try:
            result = await task
        except asyncio.CancelledError:
            if generation != self._generation:
                logger.debug("Render of page %d discarded", page)
                return None
            raise
        if generation != self._generation:
            logger.debug("Render of page %d finished after being superseded", page)
            return None
        self.current = result
        return result

    def switch_document(self, document_bytes: bytes) -> None:
        self._supersede()
        self._document = document_bytes
        self.current = None

    def close(self) -> None:
        self._supersede()


class ViewerRegistry:
    """One ``PageViewer`` per user, so a newer page request supersedes older ones.

    Asking for a different document switches the user's viewer, which also
    cancels whatever it was still rendering.
    """

    def __init__(self):
        self._viewers: dict[uuid.UUID, tuple[uuid.UUID, PageViewer]] = {}

    def viewer_for(
        self,
        user_id: uuid.UUID,
        document_id: uuid.UUID,
        document_bytes: bytes,
        renderer: PdfPageRenderer,
    ) -> PageViewer:
        entry = self._viewers.get(user_id)
        if entry is None:
            viewer = PageViewer(renderer, document_bytes)
        else:
            shown_id, viewer = entry
            if shown_id != document_id:
                viewer.switch_document(document_bytes)
        self._viewers[user_id] = (document_id, viewer)
        return viewer

    def __len__(self) -> int:
        return len(self._viewers)

    def close(self) -> None:
        for _, viewer in self._viewers.values():
            viewer.close()
        self._viewers.clear()
