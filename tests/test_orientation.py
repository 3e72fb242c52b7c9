"""
Tests for EXIF orientation handling
"""
import io

import numpy as np
import pytest

from conftest import encode, make_page
from page_preprocessor.buffers import PixelBuffer
from page_preprocessor.decoder import ImageSource
from page_preprocessor.errors import BufferReleasedError, DecodeError
from page_preprocessor.orientation import (
    IDENTITY,
    Orientation,
    OrientationTag,
    load_upright,
    normalize_orientation,
    orientation_for_tag,
    read_orientation_tag,
)


@pytest.mark.parametrize(
    "tag, expected",
    [
        (OrientationTag.UNDEFINED, (0, False, False)),
        (OrientationTag.NORMAL, (0, False, False)),
        (OrientationTag.FLIP_HORIZONTAL, (0, True, False)),
        (OrientationTag.ROTATE_180, (180, False, False)),
        (OrientationTag.FLIP_VERTICAL, (0, False, True)),
        (OrientationTag.TRANSPOSE, (90, True, False)),
        (OrientationTag.ROTATE_90, (90, False, False)),
        (OrientationTag.TRANSVERSE, (-90, True, False)),
        (OrientationTag.ROTATE_270, (-90, False, False)),
    ],
)
def test_orientation_table(tag, expected):
    assert orientation_for_tag(tag) == Orientation(*expected)


def test_unknown_tag_is_identity():
    assert orientation_for_tag(42) == IDENTITY


class TestNormalizeOrientation:
    """Tests for normalize_orientation"""

    def test_zero_rotation_returns_same_buffer(self, page_buffer):
        result = normalize_orientation(page_buffer, orientation_for_tag(OrientationTag.FLIP_HORIZONTAL))
        assert result is page_buffer
        assert not page_buffer.released

    def test_rotate_90_is_clockwise_and_releases_input(self):
        buffer = PixelBuffer(np.array([[1, 2, 3], [4, 5, 6]], dtype=np.uint8))
        result = normalize_orientation(buffer, Orientation(90, False, False))
        assert result.size == (2, 3)
        assert result.pixels.tolist() == [[4, 1], [5, 2], [6, 3]]
        assert buffer.released
        with pytest.raises(BufferReleasedError):
            buffer.pixels

    def test_rotate_minus_90_is_counter_clockwise(self):
        buffer = PixelBuffer(np.array([[1, 2, 3], [4, 5, 6]], dtype=np.uint8))
        result = normalize_orientation(buffer, Orientation(-90, False, False))
        assert result.pixels.tolist() == [[3, 6], [2, 5], [1, 4]]

    def test_rotate_180(self):
        buffer = PixelBuffer(np.array([[1, 2, 3], [4, 5, 6]], dtype=np.uint8))
        result = normalize_orientation(buffer, Orientation(180, False, False))
        assert result.pixels.tolist() == [[6, 5, 4], [3, 2, 1]]

    def test_one_bit_buffers_rotate(self):
        ink = np.zeros((4, 6), dtype=bool)
        ink[0, 0] = True
        result = normalize_orientation(PixelBuffer(ink), Orientation(90, False, False))
        assert result.depth == 1
        assert result.size == (4, 6)
        assert result.pixels[0, 3]


class TestReadOrientationTag:
    """Tests for reading EXIF orientation"""

    def test_jpeg_with_orientation(self, tmp_path):
        path = tmp_path / "rotated.jpg"
        path.write_bytes(encode(make_page(), "JPEG", orientation=6))
        assert read_orientation_tag(ImageSource.from_path(str(path))) == OrientationTag.ROTATE_90

    def test_content_source_with_orientation(self):
        source = ImageSource.from_bytes(encode(make_page(), "JPEG", orientation=3))
        assert read_orientation_tag(source) == OrientationTag.ROTATE_180

    def test_missing_orientation_is_normal(self, page_png):
        assert read_orientation_tag(ImageSource.from_bytes(page_png)) == OrientationTag.NORMAL

    def test_stream_source_is_undefined(self, page_png):
        source = ImageSource.from_opener(lambda: io.BytesIO(page_png))
        assert read_orientation_tag(source) == OrientationTag.UNDEFINED

    def test_unreadable_file_raises(self, tmp_path):
        with pytest.raises(DecodeError):
            read_orientation_tag(ImageSource.from_path(str(tmp_path / "missing.jpg")))


class TestLoadUpright:
    """Tests for load_upright"""

    def test_rotates_tagged_page(self):
        buffer, orientation = load_upright(encode(make_page(), "JPEG", orientation=6))
        assert orientation == Orientation(90, False, False)
        assert buffer.size == (300, 400)

    def test_untagged_page_is_unchanged(self, page_file):
        buffer, orientation = load_upright(page_file)
        assert orientation == IDENTITY
        assert buffer.size == (400, 300)
