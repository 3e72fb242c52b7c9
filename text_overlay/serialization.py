"""JSON serialization of recognition results."""

from __future__ import annotations

import json
from typing import Any, Dict, List, NamedTuple, Optional

from .primitives import (
    BoundingBox,
    Point,
    RecognizedText,
    TextBlock,
    TextElement,
    TextLine,
    TextSymbol,
)


class OcrOutput(NamedTuple):
    """
    The three strings returned to the caller of a read-text request.

    result is the plain recognized text, coordinates the block coordinate map and
    text the full JSON hierarchy. All three are empty when recognition failed.
    """

    result: str = ""
    coordinates: str = ""
    text: str = ""

    @classmethod
    def from_text(cls, text: RecognizedText) -> "OcrOutput":
        return cls(text.text, json.dumps(coordinates_map(text)), text_to_json(text))


def _rect(box: Optional[BoundingBox]) -> List[int]:
    if box is None:
        return []
    return [int(round(v)) for v in box]


def _corners(points: List[Point]) -> List[int]:
    flat = []
    for point in points:
        flat.extend((int(round(point.x)), int(round(point.y))))
    return flat


def _symbol_to_dict(symbol: TextSymbol) -> Dict[str, Any]:
    return {
        "recognizedLanguage": symbol.recognized_language,
        "text": symbol.text,
        "boundingBox": _rect(symbol.bounding_box),
        "cornerPoints": _corners(symbol.corner_points),
        "confidence": symbol.confidence,
        "angle": symbol.angle,
    }


def _element_to_dict(element: TextElement) -> Dict[str, Any]:
    return {
        "recognizedLanguage": element.recognized_language,
        "text": element.text,
        "boundingBox": _rect(element.bounding_box),
        "cornerPoints": _corners(element.corner_points),
        "confidence": element.confidence,
        "angle": element.angle,
        "symbols": [_symbol_to_dict(s) for s in element.symbols],
    }


def _line_to_dict(line: TextLine) -> Dict[str, Any]:
    return {
        "recognizedLanguage": line.recognized_language,
        "text": line.text,
        "boundingBox": _rect(line.bounding_box),
        "cornerPoints": _corners(line.corner_points),
        "confidence": line.confidence,
        "angle": line.angle,
        "elements": [_element_to_dict(e) for e in line.elements],
    }


def _block_to_dict(block: TextBlock) -> Dict[str, Any]:
    return {
        "text": block.text,
        "boundingBox": _rect(block.bounding_box),
        "cornerPoints": _corners(block.corner_points),
        "recognizedLanguage": block.recognized_language,
        "lines": [_line_to_dict(line) for line in block.lines],
    }


def text_to_dict(text: RecognizedText) -> Dict[str, Any]:
    return {"text": text.text, "textBlocks": [_block_to_dict(b) for b in text.text_blocks]}


def text_to_json(text: RecognizedText) -> str:
    """
    Serialize the full block > line > element > symbol hierarchy.

    Boxes become [left, top, right, bottom] and corner points a flat
    [x1, y1, x2, y2, ...] list, both as integers. Missing boxes serialize as [].
    """
    return json.dumps(text_to_dict(text), ensure_ascii=False)


def coordinates_map(text: RecognizedText) -> List[Dict[str, List[int]]]:
    """
    Build one {block text: [l, t, r, b]} entry per block, in block order.

    Blocks with identical text each keep their own entry.
    """
    return [{block.text: _rect(block.bounding_box)} for block in text.text_blocks]


def _box_from(values: List[Any]) -> Optional[BoundingBox]:
    if not values:
        return None
    if len(values) != 4:
        raise ValueError(f"boundingBox must have 4 values, got {values!r}")
    return BoundingBox(*(float(v) for v in values))


def _points_from(values: List[Any]) -> List[Point]:
    if len(values) % 2:
        raise ValueError(f"cornerPoints must hold x, y pairs, got {values!r}")
    return [Point(float(values[i]), float(values[i + 1])) for i in range(0, len(values), 2)]


def _common(data: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "text": data.get("text", ""),
        "bounding_box": _box_from(data.get("boundingBox") or []),
        "corner_points": _points_from(data.get("cornerPoints") or []),
        "recognized_language": data.get("recognizedLanguage") or "",
    }


def text_from_dict(data: Dict[str, Any]) -> RecognizedText:
    blocks = []
    for block in data.get("textBlocks", []):
        lines = []
        for line in block.get("lines", []):
            elements = []
            for element in line.get("elements", []):
                symbols = [
                    TextSymbol(confidence=s.get("confidence"), angle=s.get("angle"), **_common(s))
                    for s in element.get("symbols", [])
                ]
                elements.append(
                    TextElement(
                        confidence=element.get("confidence"),
                        angle=element.get("angle"),
                        symbols=symbols,
                        **_common(element),
                    )
                )
            lines.append(
                TextLine(confidence=line.get("confidence"), angle=line.get("angle"), elements=elements, **_common(line))
            )
        blocks.append(TextBlock(lines=lines, **_common(block)))
    return RecognizedText(text=data.get("text", ""), text_blocks=blocks)


def text_from_json(payload: str) -> RecognizedText:
    """
    Rebuild a RecognizedText from the output of text_to_json.

    Raises:
        ValueError: If the payload is not valid JSON or has malformed geometry.
    """
    try:
        data = json.loads(payload)
    except json.JSONDecodeError as exc:
        raise ValueError(f"Invalid recognition JSON: {exc}") from exc
    if not isinstance(data, dict):
        raise ValueError("Recognition JSON must be an object")
    return text_from_dict(data)
