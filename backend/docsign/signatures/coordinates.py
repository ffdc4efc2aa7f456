"""
Mapping between on-screen pixels and document-space coordinates.

Document space is the page as it would be rendered at ``reference_width``
pixels wide, origin at the top-left corner. Everything persisted for a
placement lives in this space, so a placement made on a narrow viewport shows
up in the same spot on a wide one.

All functions here are pure; they never keep drag state between calls.
"""

from dataclasses import dataclass
from typing import Optional

from docsign.common.errors import InvalidRenderState


@dataclass(frozen=True)
class Point:
    x: float
    y: float

    def __add__(self, other: "Point") -> "Point":
        return Point(self.x + other.x, self.y + other.y)

    def scaled(self, factor: float) -> "Point":
        return Point(self.x * factor, self.y * factor)


def _require_width(value: Optional[float], label: str) -> float:
    if value is None or value <= 0:
        raise InvalidRenderState(f"{label} must be a positive number of pixels, got {value!r}")
    return float(value)


def to_document_space(screen_delta: Point, render_width: Optional[float], reference_width: Optional[float]) -> Point:
    render = _require_width(render_width, "render_width")
    reference = _require_width(reference_width, "reference_width")
    return screen_delta.scaled(reference / render)


def to_screen_space(document_point: Point, render_width: Optional[float], reference_width: Optional[float]) -> Point:
    render = _require_width(render_width, "render_width")
    reference = _require_width(reference_width, "reference_width")
    return document_point.scaled(render / reference)


def apply_drag(
    committed: Point,
    gesture_delta: Point,
    render_width: Optional[float],
    reference_width: Optional[float],
) -> Point:
    """New document-space position after a drag gesture.

    ``gesture_delta`` is the cumulative pointer offset since the gesture
    started, in screen pixels. It is added to the position committed before
    the gesture, so repeated gestures never accumulate rounding drift.
    """
    return committed + to_document_space(gesture_delta, render_width, reference_width)


def to_pdf_points(
    document_point: Point,
    page_width: float,
    page_height: float,
    reference_width: Optional[float],
) -> Point:
    """Map a document-space point onto PDF user space for a page.

    PDF user space is measured in points from the bottom-left corner, so the
    y axis is flipped after scaling.
    """
    reference = _require_width(reference_width, "reference_width")
    scale = page_width / reference
    return Point(document_point.x * scale, page_height - document_point.y * scale)
