"""Mapping between source-image pixel space and a display surface."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Tuple

import numpy as np

from .primitives import BoundingBox, Point

logger = logging.getLogger(__name__)


class TransformPreconditionError(ValueError):
    """Raised when a translation is requested before valid dimensions are known."""


@dataclass(frozen=True)
class TransformState:
    scale_factor: float
    offset_x: float
    offset_y: float
    image_width: int
    image_height: int
    surface_width: int
    surface_height: int
    is_flipped: bool
    dirty: bool


def compute_fit(image_width: int, image_height: int, surface_width: int, surface_height: int) -> Tuple[float, float, float]:
    """
    Compute the scale and centring offsets that make an image fill a surface.

    The image is scaled to cover the whole surface while keeping its aspect
    ratio. The overflowing dimension is cropped equally on both sides.

    Args:
        image_width: Source image width in pixels.
        image_height: Source image height in pixels.
        surface_width: Surface width in pixels.
        surface_height: Surface height in pixels.

    Returns:
        A (scale_factor, offset_x, offset_y) tuple.

    Raises:
        TransformPreconditionError: If any dimension is not positive.
    """
    if min(image_width, image_height, surface_width, surface_height) <= 0:
        raise TransformPreconditionError(
            f"Image ({image_width}x{image_height}) and surface ({surface_width}x{surface_height}) "
            "dimensions must be positive"
        )
    view_aspect = surface_width / surface_height
    image_aspect = image_width / image_height
    if view_aspect > image_aspect:
        # Surface is relatively wider: fit width, crop top and bottom
        scale_factor = surface_width / image_width
        offset_x = 0.0
        offset_y = (surface_width / image_aspect - surface_height) / 2
    else:
        # Surface is relatively taller: fit height, crop left and right
        scale_factor = surface_height / image_height
        offset_x = (surface_height * image_aspect - surface_width) / 2
        offset_y = 0.0
    return scale_factor, offset_x, offset_y


class CoordinateTransform:
    """
    Translate image-space coordinates onto a surface of another size.

    Supports horizontal mirroring for front-facing sources. The cached scale and
    offsets are recomputed lazily whenever the transform is dirty, which happens
    on surface resize.
    """

    def __init__(self, surface_width: int = 0, surface_height: int = 0) -> None:
        self._surface_width = surface_width
        self._surface_height = surface_height
        self._image_width = 0
        self._image_height = 0
        self._is_flipped = False
        self._scale_factor = 1.0
        self._offset_x = 0.0
        self._offset_y = 0.0
        self._dirty = True

    @property
    def dirty(self) -> bool:
        return self._dirty

    @property
    def is_flipped(self) -> bool:
        return self._is_flipped

    @property
    def surface_size(self) -> Tuple[int, int]:
        return self._surface_width, self._surface_height

    @property
    def image_size(self) -> Tuple[int, int]:
        return self._image_width, self._image_height

    def set_surface_size(self, width: int, height: int) -> None:
        self._surface_width = width
        self._surface_height = height
        self._dirty = True

    def set_image_source_info(self, image_width: int, image_height: int, is_flipped: bool = False) -> None:
        """
        Set the dimensions of the image the coordinates refer to.

        The transform is recomputed immediately when the surface size is known,
        leaving it clean.

        Raises:
            TransformPreconditionError: If either image dimension is not positive.
        """
        if image_width <= 0 or image_height <= 0:
            raise TransformPreconditionError(f"Image dimensions must be positive, got {image_width}x{image_height}")
        self._image_width = image_width
        self._image_height = image_height
        self._is_flipped = is_flipped
        self._dirty = True
        if self._surface_width > 0 and self._surface_height > 0:
            self.update_if_needed()

    def update_if_needed(self) -> None:
        if not self._dirty:
            return
        self._scale_factor, self._offset_x, self._offset_y = compute_fit(
            self._image_width, self._image_height, self._surface_width, self._surface_height
        )
        self._dirty = False
        logger.debug(
            f"Transform updated: scale={self._scale_factor:.4f} "
            f"offset=({self._offset_x:.1f}, {self._offset_y:.1f}) flipped={self._is_flipped}"
        )

    @property
    def state(self) -> TransformState:
        self.update_if_needed()
        return TransformState(
            scale_factor=self._scale_factor,
            offset_x=self._offset_x,
            offset_y=self._offset_y,
            image_width=self._image_width,
            image_height=self._image_height,
            surface_width=self._surface_width,
            surface_height=self._surface_height,
            is_flipped=self._is_flipped,
            dirty=self._dirty,
        )

    def scale(self, value: float) -> float:
        self.update_if_needed()
        return value * self._scale_factor

    def translate_x(self, x: float) -> float:
        self.update_if_needed()
        translated = x * self._scale_factor - self._offset_x
        if self._is_flipped:
            return self._surface_width - translated
        return translated

    def translate_y(self, y: float) -> float:
        self.update_if_needed()
        return y * self._scale_factor - self._offset_y

    def translate_point(self, point: Point) -> Point:
        return Point(self.translate_x(point.x), self.translate_y(point.y))

    def translate_rect(self, box: BoundingBox) -> BoundingBox:
        """Translate a box, swapping left and right when mirrored so that left <= right."""
        x1 = self.translate_x(box.left)
        x2 = self.translate_x(box.right)
        return BoundingBox(
            left=min(x1, x2),
            top=self.translate_y(box.top),
            right=max(x1, x2),
            bottom=self.translate_y(box.bottom),
        )

    def matrix(self) -> np.ndarray:
        """
        Get the 2x3 affine matrix equivalent to translate_x/translate_y.

        Suitable for cv2.warpAffine to draw a whole image onto the surface.
        """
        self.update_if_needed()
        if self._is_flipped:
            row_x = [-self._scale_factor, 0.0, self._surface_width + self._offset_x]
        else:
            row_x = [self._scale_factor, 0.0, -self._offset_x]
        row_y = [0.0, self._scale_factor, -self._offset_y]
        return np.array([row_x, row_y], dtype=np.float64)
