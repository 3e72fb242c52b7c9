"""
Tests for recognition result serialization
"""
import json

import pytest

from text_overlay.primitives import (
    BoundingBox,
    Point,
    RecognizedText,
    TextBlock,
    TextElement,
    TextLine,
    TextSymbol,
)
from text_overlay.serialization import OcrOutput, coordinates_map, text_from_json, text_to_json


def sample_text():
    corners = [Point(10, 20), Point(60, 20), Point(60, 40), Point(10, 40)]
    symbol = TextSymbol("h", BoundingBox(10, 20, 15, 40), corners, "en", 0.8, 0.0)
    element = TextElement("hi", BoundingBox(10, 20, 30, 40), corners, "en", 0.85, 0.5, [symbol])
    line = TextLine("hi there", BoundingBox(10, 20, 60, 40), corners, "en", 0.9, 0.5, [element])
    first = TextBlock("1", BoundingBox(151, 33, 154, 72), [], "und", [line])
    second = TextBlock("1", BoundingBox(151.4, 33.6, 171, 67), [], "und")
    return RecognizedText("1\n1", [first, second])


class TestTextToJson:
    """Tests for the full hierarchy output"""

    def test_hierarchy(self):
        data = json.loads(text_to_json(sample_text()))
        assert data["text"] == "1\n1"
        assert len(data["textBlocks"]) == 2

        block = data["textBlocks"][0]
        assert block["boundingBox"] == [151, 33, 154, 72]
        assert block["recognizedLanguage"] == "und"

        line = block["lines"][0]
        assert line["cornerPoints"] == [10, 20, 60, 20, 60, 40, 10, 40]
        assert line["confidence"] == 0.9
        assert line["angle"] == 0.5

        symbol = line["elements"][0]["symbols"][0]
        assert symbol["text"] == "h"
        assert symbol["boundingBox"] == [10, 20, 15, 40]

    def test_boxes_are_rounded_to_integers(self):
        data = json.loads(text_to_json(sample_text()))
        assert data["textBlocks"][1]["boundingBox"] == [151, 34, 171, 67]

    def test_reverse_mapping(self):
        text = sample_text()
        rebuilt = text_from_json(text_to_json(text))
        assert rebuilt.text == text.text
        assert rebuilt.text_blocks[0].lines[0].elements[0].symbols[0].confidence == 0.8
        assert rebuilt.text_blocks[0].lines[0].corner_points[2] == Point(60, 40)

    def test_reverse_mapping_rejects_garbage(self):
        with pytest.raises(ValueError):
            text_from_json("{not json")
        with pytest.raises(ValueError):
            text_from_json("[]")


def test_coordinates_map_keeps_duplicates():
    assert coordinates_map(sample_text()) == [
        {"1": [151, 33, 154, 72]},
        {"1": [151, 34, 171, 67]},
    ]


def test_ocr_output():
    assert OcrOutput() == ("", "", "")
    output = OcrOutput.from_text(sample_text())
    assert output.result == "1\n1"
    assert json.loads(output.coordinates)[0] == {"1": [151, 33, 154, 72]}
    assert json.loads(output.text)["textBlocks"][0]["text"] == "1"
