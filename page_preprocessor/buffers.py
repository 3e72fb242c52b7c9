"""Owned pixel buffers passed between preprocessing stages."""

from __future__ import annotations

from typing import Optional

import numpy as np
from PIL import Image

from .errors import BufferReleasedError

SUPPORTED_DEPTHS = (1, 8, 24, 32)


def depth_of(pixels: np.ndarray) -> int:
    """
    Work out the colour depth (bits per pixel) of a numpy pixel array.

    Args:
        pixels: 2-D bool (1 bpp), 2-D uint8 (8 bpp), or (h, w, 3|4) uint8 array.

    Returns:
        One of 1, 8, 24 or 32.

    Raises:
        ValueError: If the array layout does not match a supported depth.
    """
    if pixels.ndim == 2 and pixels.dtype == np.bool_:
        return 1
    if pixels.dtype != np.uint8:
        raise ValueError(f"Unsupported pixel dtype: {pixels.dtype}")
    if pixels.ndim == 2:
        return 8
    if pixels.ndim == 3 and pixels.shape[2] == 3:
        return 24
    if pixels.ndim == 3 and pixels.shape[2] == 4:
        return 32
    raise ValueError(f"Unsupported pixel layout: {pixels.shape}")


class PixelBuffer:
    """
    A decoded image owned by exactly one stage at a time.

    1 bpp buffers hold a bool array where True marks ink (black) and False paper.
    Colour buffers are RGB or RGBA. Once ``release()`` is called the pixels are
    dropped and any further access raises BufferReleasedError.
    """

    __slots__ = ("_pixels", "width", "height", "depth")

    def __init__(self, pixels: np.ndarray) -> None:
        self.depth = depth_of(pixels)
        self.height, self.width = int(pixels.shape[0]), int(pixels.shape[1])
        self._pixels: Optional[np.ndarray] = pixels

    @property
    def pixels(self) -> np.ndarray:
        if self._pixels is None:
            raise BufferReleasedError("Pixel buffer was already released")
        return self._pixels

    @property
    def released(self) -> bool:
        return self._pixels is None

    @property
    def channels(self) -> int:
        return 1 if self.depth in (1, 8) else self.depth // 8

    @property
    def size(self) -> tuple:
        return self.width, self.height

    def release(self) -> None:
        self._pixels = None

    def copy(self) -> "PixelBuffer":
        return PixelBuffer(self.pixels.copy())

    def to_image(self) -> Image.Image:
        """Convert to a Pillow image (1 bpp becomes mode "1" with ink as black)."""
        pixels = self.pixels
        if self.depth == 1:
            return Image.fromarray(np.where(pixels, 0, 255).astype(np.uint8)).convert("1")
        return Image.fromarray(pixels)

    @classmethod
    def from_image(cls, image: Image.Image) -> "PixelBuffer":
        """
        Build a buffer from a Pillow image.

        Palette, CMYK, 16-bit and other modes are normalised to RGB, or RGBA when
        the source carries transparency.
        """
        if image.mode == "1":
            return cls(~np.array(image, dtype=bool))
        if image.mode in ("I", "F") or image.mode.startswith("I;"):
            # 16/32-bit greyscale: rescale into 8 bits
            values = np.array(image, dtype=np.float64)
            peak = values.max() if values.size else 0.0
            if peak > 255:
                values = values * (255.0 / peak)
            return cls(np.clip(values, 0, 255).astype(np.uint8))
        if image.mode not in ("L", "RGB", "RGBA"):
            has_alpha = "A" in image.getbands() or "transparency" in image.info
            image = image.convert("RGBA" if has_alpha else "RGB")
        return cls(np.array(image, dtype=np.uint8))

    def __repr__(self) -> str:
        state = "released" if self.released else f"{self.width}x{self.height}"
        return f"PixelBuffer({state}, depth={self.depth})"
