import logging
from dataclasses import asdict, dataclass
from typing import Optional

from docsign.common.errors import ValidationError
from docsign.config import settings
from docsign.signatures.coordinates import Point

logger = logging.getLogger(__name__)

MIN_FONT_SIZE = 8
MAX_FONT_SIZE = 72

KNOWN_FONT_FAMILIES = (
    "Arial",
    "Times New Roman",
    "Courier New",
    "Georgia",
    "Verdana",
    "monospace",
    "Dancing Script",
    "'Pacifico', cursive",
    "'Great Vibes', cursive",
)


@dataclass(frozen=True)
class PlacedSignatureData:
    """Immutable snapshot of one page's placement, in document space."""

    page: int
    x: float
    y: float
    signature_text: str = ""
    font_size: int = 16
    font_family: str = "Arial"
    color: str = "#1E40AF"
    is_bold: bool = False
    is_underline: bool = False

    @property
    def position(self) -> Point:
        return Point(self.x, self.y)

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> "PlacedSignatureData":
        return cls(**{k: data[k] for k in cls.__dataclass_fields__ if k in data})


def validate_font_size(font_size: int) -> int:
    if not MIN_FONT_SIZE <= font_size <= MAX_FONT_SIZE:
        raise ValidationError(f"font_size must be between {MIN_FONT_SIZE} and {MAX_FONT_SIZE}")
    return font_size


def validate_font_family(font_family: str) -> str:
    if not font_family or not font_family.strip():
        raise ValidationError("font_family must not be empty")
    if font_family not in KNOWN_FONT_FAMILIES:
        logger.debug("Keeping unrecognised font family %r", font_family)
    return font_family


def validate_color(color: str) -> str:
    if not color or not color.strip():
        raise ValidationError("color must not be empty")
    return color


class SignatureFieldModel:
    """In-progress signature field for the page being edited."""

    def __init__(
        self,
        page: int,
        position: Point,
        text: str = "",
        font_size: int = 16,
        font_family: str = "Arial",
        color: str = "#1E40AF",
        is_bold: bool = False,
        is_underline: bool = False,
    ):
        self.page = page
        self.position = position
        self.text = text
        self.font_size = validate_font_size(font_size)
        self.font_family = validate_font_family(font_family)
        self.color = validate_color(color)
        self.is_bold = is_bold
        self.is_underline = is_underline

    @classmethod
    def with_defaults(cls, page: int) -> "SignatureFieldModel":
        return cls(
            page=page,
            position=Point(settings.default_position_x, settings.default_position_y),
            font_size=settings.default_font_size,
            font_family=settings.default_font_family,
            color=settings.default_color,
        )

    @classmethod
    def from_placement(cls, entry: PlacedSignatureData) -> "SignatureFieldModel":
        return cls(
            page=entry.page,
            position=entry.position,
            text=entry.signature_text,
            font_size=entry.font_size,
            font_family=entry.font_family,
            color=entry.color,
            is_bold=entry.is_bold,
            is_underline=entry.is_underline,
        )

    def set_position(self, position: Point) -> None:
        self.position = position

    def set_style(
        self,
        text: Optional[str] = None,
        font_size: Optional[int] = None,
        font_family: Optional[str] = None,
        color: Optional[str] = None,
        is_bold: Optional[bool] = None,
        is_underline: Optional[bool] = None,
    ) -> None:
        # Validate everything first so a bad field leaves the model untouched.
        if font_size is not None:
            validate_font_size(font_size)
        if font_family is not None:
            validate_font_family(font_family)
        if color is not None:
            validate_color(color)

        if text is not None:
            self.text = text
        if font_size is not None:
            self.font_size = font_size
        if font_family is not None:
            self.font_family = font_family
        if color is not None:
            self.color = color
        if is_bold is not None:
            self.is_bold = is_bold
        if is_underline is not None:
            self.is_underline = is_underline

    def snapshot(self) -> PlacedSignatureData:
        return PlacedSignatureData(
            page=self.page,
            x=self.position.x,
            y=self.position.y,
            signature_text=self.text,
            font_size=self.font_size,
            font_family=self.font_family,
            color=self.color,
            is_bold=self.is_bold,
            is_underline=self.is_underline,
        )


def merge_style(entry: PlacedSignatureData, **style) -> PlacedSignatureData:
    """Return ``entry`` with the provided (non-None) style fields replaced."""
    model = SignatureFieldModel.from_placement(entry)
    model.set_style(**style)
    return model.snapshot()
