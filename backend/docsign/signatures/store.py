"""
Per-page placements for one signature request, plus the editing workspace
that moves a single active field model between pages.

Navigation is an explicit two-step operation: the active field is committed
into the store, then the destination page is loaded from the store (or seeded
with defaults). Nothing happens implicitly when the page number changes.
"""

import logging
from collections.abc import Iterable
from typing import Optional

from docsign.common.errors import InvalidPage
from docsign.config import settings
from docsign.signatures.coordinates import Point, apply_drag
from docsign.signatures.field import PlacedSignatureData, SignatureFieldModel

logger = logging.getLogger(__name__)


class MultiPageSignatureStore:
    def __init__(self, entries: Iterable[PlacedSignatureData] = ()):
        self._entries: dict[int, PlacedSignatureData] = {}
        for entry in entries:
            self.upsert(entry)

    def get(self, page: int) -> Optional[PlacedSignatureData]:
        return self._entries.get(page)

    def upsert(self, entry: PlacedSignatureData) -> None:
        self._entries[entry.page] = entry

    def all(self) -> list[PlacedSignatureData]:
        return [self._entries[page] for page in sorted(self._entries)]

    def pages(self) -> list[int]:
        return sorted(self._entries)

    def __contains__(self, page: int) -> bool:
        return page in self._entries

    def __len__(self) -> int:
        return len(self._entries)


def check_page(page: int, total_pages: int) -> int:
    if page < 1 or page > total_pages:
        raise InvalidPage(page, total_pages)
    return page


class SigningWorkspace:
    """Editing session for one request: one active field, many stored pages."""

    def __init__(
        self,
        total_pages: int,
        store: Optional[MultiPageSignatureStore] = None,
        start_page: int = 1,
        reference_width: Optional[int] = None,
    ):
        self.total_pages = total_pages
        self.store = store if store is not None else MultiPageSignatureStore()
        self.reference_width = reference_width or settings.reference_width
        self.has_placement = False
        self.field = self.load(start_page)

    @property
    def current_page(self) -> int:
        return self.field.page

    def load(self, page: int) -> SignatureFieldModel:
        """Hydrate the active field for ``page``; call ``commit_current`` first to keep edits."""
        check_page(page, self.total_pages)
        entry = self.store.get(page)
        if entry is not None:
            self.field = SignatureFieldModel.from_placement(entry)
            self.has_placement = True
        else:
            self.field = SignatureFieldModel.with_defaults(page)
            self.has_placement = False
            logger.debug("Seeded defaults for page %d", page)
        return self.field

    def commit_current(self) -> Optional[PlacedSignatureData]:
        if not self.has_placement:
            return None
        entry = self.field.snapshot()
        self.store.upsert(entry)
        return entry

    def place(self) -> PlacedSignatureData:
        """Mark the active field as placed on the current page."""
        self.has_placement = True
        return self.commit_current()

    def drag(self, gesture_delta: Point, render_width: Optional[float]) -> Point:
        position = apply_drag(self.field.position, gesture_delta, render_width, self.reference_width)
        self.field.set_position(position)
        self.has_placement = True
        return position

    def set_style(self, **style) -> None:
        self.field.set_style(**style)
        self.has_placement = True
