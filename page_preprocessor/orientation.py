"""EXIF orientation handling for decoded pages."""

from __future__ import annotations

import logging
from enum import IntEnum
from typing import NamedTuple, Optional, Tuple

import numpy as np
from PIL import ExifTags, Image, UnidentifiedImageError

from .buffers import PixelBuffer
from .decoder import BoundedDecoder, ImageSource, SourceKind, as_source
from .errors import DecodeError

logger = logging.getLogger(__name__)


class OrientationTag(IntEnum):
    UNDEFINED = 0
    NORMAL = 1
    FLIP_HORIZONTAL = 2
    ROTATE_180 = 3
    FLIP_VERTICAL = 4
    TRANSPOSE = 5
    ROTATE_90 = 6
    TRANSVERSE = 7
    ROTATE_270 = 8


class Orientation(NamedTuple):
    """Corrective transform for a tag. Positive degrees rotate clockwise."""

    rotation_degrees: int
    flip_horizontal: bool
    flip_vertical: bool


IDENTITY = Orientation(0, False, False)

ORIENTATION_TABLE = {
    OrientationTag.UNDEFINED: IDENTITY,
    OrientationTag.NORMAL: IDENTITY,
    OrientationTag.FLIP_HORIZONTAL: Orientation(0, True, False),
    OrientationTag.ROTATE_180: Orientation(180, False, False),
    OrientationTag.FLIP_VERTICAL: Orientation(0, False, True),
    OrientationTag.TRANSPOSE: Orientation(90, True, False),
    OrientationTag.ROTATE_90: Orientation(90, False, False),
    OrientationTag.TRANSVERSE: Orientation(-90, True, False),
    OrientationTag.ROTATE_270: Orientation(-90, False, False),
}

# np.rot90 turns counter-clockwise for positive k
_QUARTER_TURNS = {90: -1, 180: 2, -90: 1}


def orientation_for_tag(tag: int) -> Orientation:
    """Map an EXIF orientation value to its rotation and flips. Unknown values map to identity."""
    try:
        return ORIENTATION_TABLE[OrientationTag(tag)]
    except ValueError:
        return IDENTITY


def read_orientation_tag(source: ImageSource) -> OrientationTag:
    """
    Read the EXIF orientation of a file or content source.

    Stream sources carry no readable metadata and report UNDEFINED. Images
    without an orientation entry report NORMAL.

    Raises:
        DecodeError: If the source cannot be opened to read its metadata.
    """
    source = as_source(source)
    if source.kind not in (SourceKind.FILE, SourceKind.CONTENT):
        return OrientationTag.UNDEFINED

    try:
        with source.open() as stream, Image.open(stream) as image:
            value = image.getexif().get(ExifTags.Base.Orientation, OrientationTag.NORMAL)
    except (UnidentifiedImageError, OSError) as exc:
        raise DecodeError(f"Failed to open file to read rotation metadata: {source.location}") from exc

    try:
        return OrientationTag(int(value))
    except (TypeError, ValueError):
        logger.warning(f"Ignoring unknown orientation value {value!r} in {source.location}")
        return OrientationTag.UNDEFINED


def normalize_orientation(buffer: PixelBuffer, orientation: Orientation) -> PixelBuffer:
    """
    Rotate a buffer upright.

    Only the rotation is applied; the flip fields are informational. A 0 degree
    rotation returns the same buffer. Otherwise the input buffer is released once
    the rotated one exists.
    """
    if orientation.rotation_degrees == 0:
        return buffer
    turns = _QUARTER_TURNS[orientation.rotation_degrees]
    rotated = PixelBuffer(np.ascontiguousarray(np.rot90(buffer.pixels, k=turns)))
    buffer.release()
    return rotated


def load_upright(
    source: ImageSource,
    decoder: Optional[BoundedDecoder] = None,
    req_width: Optional[int] = None,
    req_height: Optional[int] = None,
) -> Tuple[PixelBuffer, Orientation]:
    """Decode a source and rotate it upright, returning the buffer and the orientation applied."""
    source = as_source(source)
    decoder = decoder or BoundedDecoder()
    buffer = decoder.decode(source, req_width, req_height)
    orientation = orientation_for_tag(read_orientation_tag(source))
    if orientation != IDENTITY:
        logger.debug(f"Applying orientation {orientation} to {source.location}")
    return normalize_orientation(buffer, orientation), orientation
