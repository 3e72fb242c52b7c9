"""Read-only geometry of recognized text, in source-image pixel space."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, NamedTuple, Optional, Sequence


class Point(NamedTuple):
    x: float
    y: float


class BoundingBox(NamedTuple):
    left: float
    top: float
    right: float
    bottom: float

    @property
    def width(self) -> float:
        return self.right - self.left

    @property
    def height(self) -> float:
        return self.bottom - self.top

    def as_list(self) -> List[float]:
        return [self.left, self.top, self.right, self.bottom]

    @classmethod
    def around(cls, points: Sequence[Point]) -> "BoundingBox":
        """Smallest axis-aligned box containing all points."""
        xs = [p.x for p in points]
        ys = [p.y for p in points]
        return cls(min(xs), min(ys), max(xs), max(ys))


@dataclass(frozen=True)
class TextSymbol:
    text: str
    bounding_box: Optional[BoundingBox] = None
    corner_points: List[Point] = field(default_factory=list)
    recognized_language: str = ""
    confidence: Optional[float] = None
    angle: Optional[float] = None


@dataclass(frozen=True)
class TextElement:
    text: str
    bounding_box: Optional[BoundingBox] = None
    corner_points: List[Point] = field(default_factory=list)
    recognized_language: str = ""
    confidence: Optional[float] = None
    angle: Optional[float] = None
    symbols: List[TextSymbol] = field(default_factory=list)


@dataclass(frozen=True)
class TextLine:
    text: str
    bounding_box: Optional[BoundingBox] = None
    corner_points: List[Point] = field(default_factory=list)
    recognized_language: str = ""
    confidence: Optional[float] = None
    angle: Optional[float] = None
    elements: List[TextElement] = field(default_factory=list)


@dataclass(frozen=True)
class TextBlock:
    text: str
    bounding_box: Optional[BoundingBox] = None
    corner_points: List[Point] = field(default_factory=list)
    recognized_language: str = ""
    lines: List[TextLine] = field(default_factory=list)


@dataclass(frozen=True)
class RecognizedText:
    """Full recognition result: the page text and its block hierarchy."""

    text: str
    text_blocks: List[TextBlock] = field(default_factory=list)
