"""
Overlay package for drawing recognized text over page images.

Main components:
- geometry: Image-to-surface coordinate transform (scale, centring offsets, mirroring)
- primitives: Read-only geometry of recognized text blocks, lines, elements and symbols
- drawing: Thread-safe overlay set and the compositor that renders it
- serialization: JSON output of recognition results
"""

from .drawing import BoxOverlay, Compositor, LabelOverlay, OverlaySet, TextBlockOverlay, render_annotations
from .geometry import CoordinateTransform, TransformPreconditionError, TransformState
from .primitives import BoundingBox, Point, RecognizedText, TextBlock, TextElement, TextLine, TextSymbol
from .serialization import OcrOutput, coordinates_map, text_from_json, text_to_json

__all__ = [
    "BoundingBox",
    "BoxOverlay",
    "Compositor",
    "CoordinateTransform",
    "LabelOverlay",
    "OcrOutput",
    "OverlaySet",
    "Point",
    "RecognizedText",
    "TextBlock",
    "TextBlockOverlay",
    "TextElement",
    "TextLine",
    "TextSymbol",
    "TransformPreconditionError",
    "TransformState",
    "coordinates_map",
    "render_annotations",
    "text_from_json",
    "text_to_json",
]
