"""Compositing recognized-text overlays onto a display surface and an offscreen image."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Callable, Iterator, List, Optional, Tuple, Union

import numpy as np
from PIL import Image, ImageDraw, ImageFont

from page_preprocessor.buffers import PixelBuffer

from .geometry import CoordinateTransform
from .primitives import BoundingBox, Point, RecognizedText

logger = logging.getLogger(__name__)

TEXT_COLOR = (0, 0, 0, 255)
"""Label text colour."""

MARKER_COLOR = (255, 255, 255, 255)
"""Box outline and label background colour."""

TEXT_SIZE = 54
"""Label font size in surface pixels."""

STROKE_WIDTH = 4
"""Box outline width in surface pixels."""

CLEAR_COLOR = (0, 0, 0, 0)


@dataclass(frozen=True)
class TextBlockOverlay:
    """
    Boxes and labels for a recognition result.

    Draws one box per line, or per block when ``group_in_blocks`` is set. Line
    labels may carry the recognized language and the confidence.
    """

    text: RecognizedText
    group_in_blocks: bool = False
    show_language_tag: bool = True
    show_confidence: bool = True


@dataclass(frozen=True)
class BoxOverlay:
    box: BoundingBox
    color: Tuple[int, int, int, int] = MARKER_COLOR
    stroke_width: int = STROKE_WIDTH


@dataclass(frozen=True)
class LabelOverlay:
    text: str
    position: Point
    color: Tuple[int, int, int, int] = TEXT_COLOR


Overlay = Union[TextBlockOverlay, BoxOverlay, LabelOverlay]


class OverlaySet:
    """
    Ordered overlays shared between producers and the render pass.

    Every mutation and every render holds the same lock, so a render draws either
    all or none of a concurrent add.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._overlays: List[Overlay] = []

    @property
    def lock(self) -> threading.Lock:
        return self._lock

    def add(self, overlay: Overlay) -> None:
        with self._lock:
            self._overlays.append(overlay)

    def remove(self, overlay: Overlay) -> None:
        with self._lock:
            if overlay in self._overlays:
                self._overlays.remove(overlay)

    def clear(self) -> None:
        with self._lock:
            self._overlays.clear()

    def snapshot(self) -> List[Overlay]:
        with self._lock:
            return list(self._overlays)

    def __len__(self) -> int:
        with self._lock:
            return len(self._overlays)

    def _iter_locked(self) -> Iterator[Overlay]:
        # Caller must hold the lock
        return iter(self._overlays)


class DisplaySurface:
    """A resizable RGBA canvas standing in for an on-screen view."""

    def __init__(self, width: int, height: int) -> None:
        self.image = Image.new("RGBA", (width, height), CLEAR_COLOR)

    @property
    def size(self) -> Tuple[int, int]:
        return self.image.size

    def resize(self, width: int, height: int) -> None:
        self.image = Image.new("RGBA", (width, height), CLEAR_COLOR)

    def clear(self) -> None:
        self.image.paste(CLEAR_COLOR, (0, 0) + self.image.size)


def _font(size: float) -> ImageFont.ImageFont:
    return ImageFont.load_default(size=max(1, int(round(size))))


def _box_of(item) -> Optional[BoundingBox]:
    if item.bounding_box is not None:
        return item.bounding_box
    if item.corner_points:
        return BoundingBox.around(item.corner_points)
    return None


def _draw_box(canvas: ImageDraw.ImageDraw, transform: CoordinateTransform, overlay: BoxOverlay) -> None:
    rect = transform.translate_rect(overlay.box)
    canvas.rectangle(rect.as_list(), outline=overlay.color, width=overlay.stroke_width)


def _draw_label(canvas: ImageDraw.ImageDraw, transform: CoordinateTransform, overlay: LabelOverlay) -> None:
    point = transform.translate_point(overlay.position)
    canvas.text((point.x, point.y), overlay.text, fill=overlay.color, font=_font(TEXT_SIZE))


def _line_label(text: str, language: str, confidence: Optional[float], overlay: TextBlockOverlay) -> str:
    label = text
    if overlay.show_language_tag and language:
        label = f"{language}: {label}"
    if overlay.show_confidence and confidence is not None:
        label = f"{label} ({confidence:.2f})"
    return label


def _draw_text_box(canvas: ImageDraw.ImageDraw, transform: CoordinateTransform, box: BoundingBox, label: str) -> None:
    rect = transform.translate_rect(box)
    canvas.rectangle(rect.as_list(), outline=MARKER_COLOR, width=STROKE_WIDTH)

    font = _font(TEXT_SIZE)
    text_left, text_top, text_right, text_bottom = canvas.textbbox((0, 0), label, font=font)
    text_width, text_height = text_right - text_left, text_bottom - text_top
    label_top = rect.top - text_height - 2 * STROKE_WIDTH
    canvas.rectangle(
        [rect.left - STROKE_WIDTH, label_top, rect.left + text_width + 2 * STROKE_WIDTH, rect.top],
        fill=MARKER_COLOR,
    )
    canvas.text((rect.left, label_top + STROKE_WIDTH - text_top), label, fill=TEXT_COLOR, font=font)


def _draw_text_blocks(canvas: ImageDraw.ImageDraw, transform: CoordinateTransform, overlay: TextBlockOverlay) -> None:
    for block in overlay.text.text_blocks:
        if overlay.group_in_blocks:
            box = _box_of(block)
            if box is not None:
                label = _line_label(block.text, block.recognized_language, None, overlay)
                _draw_text_box(canvas, transform, box, label)
            continue
        for line in block.lines:
            box = _box_of(line)
            if box is None:
                continue
            label = _line_label(line.text, line.recognized_language, line.confidence, overlay)
            _draw_text_box(canvas, transform, box, label)


_DRAWERS = {
    TextBlockOverlay: _draw_text_blocks,
    BoxOverlay: _draw_box,
    LabelOverlay: _draw_label,
}


def draw_overlay(canvas: ImageDraw.ImageDraw, transform: CoordinateTransform, overlay: Overlay) -> None:
    """
    Draw a single overlay through a transform.

    Raises:
        TypeError: If the overlay kind is not one of the supported dataclasses.
    """
    drawer = _DRAWERS.get(type(overlay))
    if drawer is None:
        raise TypeError(f"Unsupported overlay type: {type(overlay).__name__}")
    drawer(canvas, transform, overlay)


class Compositor:
    """
    Renders an OverlaySet onto a display surface and onto an offscreen copy of
    the source image.

    The display surface is optional; without one only the offscreen image is
    produced, which is what batch and background callers need.
    """

    def __init__(self, surface_size: Optional[Tuple[int, int]] = None) -> None:
        self.overlays = OverlaySet()
        self.surface: Optional[DisplaySurface] = None
        self.transform = CoordinateTransform()
        if surface_size is not None:
            self.resize(*surface_size)

    def resize(self, width: int, height: int) -> None:
        with self.overlays.lock:
            if self.surface is None:
                self.surface = DisplaySurface(width, height)
            else:
                self.surface.resize(width, height)
            self.transform.set_surface_size(width, height)

    def set_image_source_info(self, image_width: int, image_height: int, is_flipped: bool = False) -> None:
        with self.overlays.lock:
            self.transform.set_image_source_info(image_width, image_height, is_flipped)

    def render(
        self,
        offscreen_source: Optional[PixelBuffer] = None,
        on_completed: Optional[Callable[[PixelBuffer], None]] = None,
    ) -> None:
        """
        Draw every overlay on the display surface and on an RGB copy of
        ``offscreen_source``, then hand the finished copy to ``on_completed``.

        The copy is drawn in the source's own pixel space. The callback runs
        exactly once, after the lock has been released, and takes ownership of the
        buffer it receives. ``offscreen_source`` itself is left untouched.

        Raises:
            ValueError: If a callback is given without an offscreen source.
            TransformPreconditionError: If overlays must be drawn on the display
                surface before image source info was set.
        """
        if on_completed is not None and offscreen_source is None:
            raise ValueError("on_completed needs an offscreen_source to deliver")
        offscreen_image = None
        if offscreen_source is not None:
            offscreen_image = offscreen_source.to_image().convert("RGB")

        with self.overlays.lock:
            overlays = list(self.overlays._iter_locked())
            if self.surface is not None:
                self.surface.clear()
                if overlays:
                    self.transform.update_if_needed()
                    display_canvas = ImageDraw.Draw(self.surface.image)
                    for overlay in overlays:
                        draw_overlay(display_canvas, self.transform, overlay)

            if offscreen_image is not None and overlays:
                image_width, image_height = self.transform.image_size
                if image_width <= 0 or image_height <= 0:
                    image_width, image_height = offscreen_image.size
                offscreen_transform = CoordinateTransform(*offscreen_image.size)
                offscreen_transform.set_image_source_info(image_width, image_height)
                offscreen_canvas = ImageDraw.Draw(offscreen_image)
                for overlay in overlays:
                    draw_overlay(offscreen_canvas, offscreen_transform, overlay)

        logger.debug(f"Rendered {len(overlays)} overlays")
        if offscreen_image is not None:
            finished = PixelBuffer(np.array(offscreen_image, dtype=np.uint8))
            if on_completed is not None:
                on_completed(finished)


def render_annotations(buffer: PixelBuffer, text: RecognizedText, **options) -> PixelBuffer:
    """
    Draw a recognition result onto a copy of a buffer.

    Args:
        buffer: The image the recognition ran on. Left untouched.
        text: The recognition result, in the buffer's pixel space.
        **options: TextBlockOverlay flags (group_in_blocks, show_language_tag,
            show_confidence).

    Returns:
        A new 24 bpp buffer with the annotations drawn.
    """
    compositor = Compositor()
    compositor.overlays.add(TextBlockOverlay(text, **options))
    compositor.set_image_source_info(buffer.width, buffer.height)
    finished: List[PixelBuffer] = []
    compositor.render(buffer, finished.append)
    return finished[0]
