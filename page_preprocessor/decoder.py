"""Bounded decoding of page images into pixel buffers."""

from __future__ import annotations

import io
import logging
import os
from dataclasses import dataclass
from enum import Enum
from functools import lru_cache
from typing import BinaryIO, Callable, NamedTuple, Optional, Tuple, Union

from PIL import Image, UnidentifiedImageError

from .buffers import PixelBuffer
from .config import IMAGE_MAX_BITMAP_DIMENSION, MAX_SAMPLE_SIZE, MAX_TEXTURE_SIZE
from .errors import DecodeError, DecodeFailedError, NotAPictureError

logger = logging.getLogger(__name__)


class SourceKind(str, Enum):
    """Where an image comes from. Only FILE and CONTENT carry readable metadata."""

    FILE = "file"
    CONTENT = "content"
    STREAM = "stream"


@dataclass(frozen=True)
class ImageSource:
    """A readable image source: a file path, in-memory bytes, or a stream opener."""

    kind: SourceKind
    location: str
    data: Optional[bytes] = None
    opener: Optional[Callable[[], BinaryIO]] = None

    @classmethod
    def from_path(cls, path: Union[str, os.PathLike]) -> "ImageSource":
        return cls(SourceKind.FILE, os.fspath(path))

    @classmethod
    def from_bytes(cls, data: bytes, name: str = "<memory>") -> "ImageSource":
        return cls(SourceKind.CONTENT, name, data=data)

    @classmethod
    def from_opener(cls, opener: Callable[[], BinaryIO], name: str = "<stream>") -> "ImageSource":
        return cls(SourceKind.STREAM, name, opener=opener)

    def open(self) -> BinaryIO:
        if self.kind == SourceKind.FILE:
            return open(self.location, "rb")
        if self.kind == SourceKind.CONTENT:
            return io.BytesIO(self.data or b"")
        if self.opener is None:
            raise DecodeError(f"No opener for stream source: {self.location}")
        return self.opener()


def as_source(value: Union[ImageSource, str, os.PathLike, bytes]) -> ImageSource:
    """Coerce a path or raw bytes into an ImageSource."""
    if isinstance(value, ImageSource):
        return value
    if isinstance(value, (bytes, bytearray)):
        return ImageSource.from_bytes(bytes(value))
    return ImageSource.from_path(value)


class SampledBuffer(NamedTuple):
    buffer: PixelBuffer
    sample_size: int


@lru_cache(maxsize=1)
def get_max_texture_size() -> int:
    """
    Get the largest width or height a decoded page may have.

    The limit is read once and cached for the life of the process. It never drops
    below IMAGE_MAX_BITMAP_DIMENSION.
    """
    return max(MAX_TEXTURE_SIZE, IMAGE_MAX_BITMAP_DIMENSION)


def sample_size_for_request(width: int, height: int, req_width: int, req_height: int) -> int:
    """
    Calculate the largest power-of-two sample size that keeps both dimensions
    larger than the requested ones.

    Args:
        width: Source image width in pixels.
        height: Source image height in pixels.
        req_width: Requested width in pixels.
        req_height: Requested height in pixels.

    Returns:
        The sample size (1, 2, 4, ...). 1 when the image already fits.
    """
    sample_size = 1
    if height > req_height or width > req_width:
        while (height // 2 // sample_size) > req_height and (width // 2 // sample_size) > req_width:
            sample_size *= 2
    return sample_size


def sample_size_for_texture(width: int, height: int, max_texture_size: int) -> int:
    """
    Calculate the smallest power-of-two sample size that brings both dimensions
    under the texture ceiling.
    """
    sample_size = 1
    if max_texture_size > 0:
        while (height // sample_size) > max_texture_size or (width // sample_size) > max_texture_size:
            sample_size *= 2
    return sample_size


def _reducible(image: Image.Image) -> Image.Image:
    """
    Convert an image into a mode Pillow can reduce.

    Bilevel scans become 8-bit greyscale, 16-bit greyscale becomes 32-bit and
    palette images become RGB, or RGBA when the palette carries transparency.
    """
    if image.mode == "1":
        return image.convert("L")
    if image.mode.startswith("I;"):
        return image.convert("I")
    if image.mode in ("P", "PA"):
        has_alpha = image.mode == "PA" or "transparency" in image.info
        return image.convert("RGBA" if has_alpha else "RGB")
    return image


class BoundedDecoder:
    """
    Decode images under a pixel budget.

    Dimensions are read first without decoding pixels. The sample size is the
    larger of the request-based and texture-based factors. If decoding runs out of
    memory the sample size is doubled and decoding retried, up to MAX_SAMPLE_SIZE.
    """

    def __init__(self, max_texture_size: Optional[int] = None, max_sample_size: int = MAX_SAMPLE_SIZE) -> None:
        self._max_texture_size = max_texture_size
        self.max_sample_size = max_sample_size

    @property
    def max_texture_size(self) -> int:
        if self._max_texture_size is None:
            self._max_texture_size = get_max_texture_size()
        return self._max_texture_size

    def read_dimensions(self, source: ImageSource) -> Tuple[int, int]:
        """
        Read the image dimensions without decoding pixel data.

        Raises:
            NotAPictureError: If the source cannot be opened or is not an image.
        """
        try:
            with source.open() as stream, Image.open(stream) as image:
                width, height = image.size
        except (UnidentifiedImageError, OSError, Image.DecompressionBombError) as exc:
            raise NotAPictureError(f"File is not a picture: {source.location}") from exc
        if width <= 0 or height <= 0:
            raise NotAPictureError(f"File is not a picture: {source.location}")
        return width, height

    def decode_sampled(
        self,
        source: Union[ImageSource, str, os.PathLike, bytes],
        req_width: Optional[int] = None,
        req_height: Optional[int] = None,
    ) -> SampledBuffer:
        """
        Decode a source, returning the buffer and the sample size actually used.

        Args:
            source: The image source (paths and bytes are accepted too).
            req_width: Optional requested maximum width. Defaults to the image width.
            req_height: Optional requested maximum height. Defaults to the image height.

        Raises:
            NotAPictureError: If the source is unreadable.
            DecodeFailedError: If every sample size up to the limit ran out of memory.
        """
        source = as_source(source)
        width, height = self.read_dimensions(source)
        req_width = width if req_width is None else req_width
        req_height = height if req_height is None else req_height

        sample_size = max(
            sample_size_for_request(width, height, req_width, req_height),
            sample_size_for_texture(width, height, self.max_texture_size),
        )
        logger.debug(f"Decoding {source.location} ({width}x{height}) with sample size {sample_size}")

        while sample_size <= self.max_sample_size:
            try:
                buffer = self._decode_with_sample_size(source, sample_size)
                return SampledBuffer(buffer, sample_size)
            except MemoryError:
                logger.warning(f"Out of memory decoding {source.location} at sample size {sample_size}, retrying")
                sample_size *= 2
        raise DecodeFailedError(f"Failed to decode image: {source.location}")

    def decode(
        self,
        source: Union[ImageSource, str, os.PathLike, bytes],
        req_width: Optional[int] = None,
        req_height: Optional[int] = None,
    ) -> PixelBuffer:
        return self.decode_sampled(source, req_width, req_height).buffer

    def _decode_with_sample_size(self, source: ImageSource, sample_size: int) -> PixelBuffer:
        try:
            with source.open() as stream, Image.open(stream) as image:
                full_width = image.width
                if sample_size > 1:
                    # JPEG can downscale during decoding; other formats ignore the hint
                    image.draft(image.mode, (image.width // sample_size, image.height // sample_size))
                image.load()
                drafted = max(1, round(full_width / image.width))
                remaining = max(1, sample_size // drafted)
                if remaining > 1:
                    image = _reducible(image).reduce(remaining)
                return PixelBuffer.from_image(image)
        except (UnidentifiedImageError, Image.DecompressionBombError) as exc:
            raise NotAPictureError(f"File is not a picture: {source.location}") from exc
        except (OSError, ValueError) as exc:
            raise DecodeError(f"Failed to load sampled image: {source.location}: {exc}") from exc
