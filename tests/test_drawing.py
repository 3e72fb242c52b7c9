"""
Tests for overlay compositing
"""
import threading
import time

import numpy as np
import pytest

from page_preprocessor.buffers import PixelBuffer
from text_overlay import drawing
from text_overlay.drawing import (
    BoxOverlay,
    Compositor,
    LabelOverlay,
    OverlaySet,
    TextBlockOverlay,
    draw_overlay,
    render_annotations,
)
from text_overlay.geometry import CoordinateTransform, TransformPreconditionError
from text_overlay.primitives import BoundingBox, Point, RecognizedText, TextBlock, TextLine

RED = (255, 0, 0, 255)


def white_page(width=200, height=100):
    return PixelBuffer(np.full((height, width), 255, dtype=np.uint8))


def sample_text():
    line = TextLine("hello", BoundingBox(20, 40, 120, 70), recognized_language="en", confidence=0.9)
    return RecognizedText("hello", [TextBlock("hello", BoundingBox(20, 40, 120, 70), lines=[line])])


class TestOverlaySet:
    """Tests for the shared overlay collection"""

    def test_add_remove_clear(self):
        overlays = OverlaySet()
        box = BoxOverlay(BoundingBox(0, 0, 1, 1))
        overlays.add(box)
        overlays.add(LabelOverlay("x", Point(0, 0)))
        assert len(overlays) == 2
        overlays.remove(box)
        assert overlays.snapshot() == [LabelOverlay("x", Point(0, 0))]
        overlays.clear()
        assert len(overlays) == 0

    def test_add_during_render_is_not_torn(self, monkeypatch):
        drawn = []
        drawing_started = threading.Event()

        def slow_draw_box(canvas, transform, overlay):
            drawing_started.set()
            time.sleep(0.05)
            drawn.append(overlay)

        monkeypatch.setitem(drawing._DRAWERS, BoxOverlay, slow_draw_box)
        compositor = Compositor()
        initial = [BoxOverlay(BoundingBox(i, i, i + 5, i + 5)) for i in range(3)]
        for overlay in initial:
            compositor.overlays.add(overlay)
        compositor.set_image_source_info(200, 100)

        received = []
        drawn_when_added = []
        late = BoxOverlay(BoundingBox(50, 50, 60, 60))

        def producer():
            drawing_started.wait(5)
            compositor.overlays.add(late)
            drawn_when_added.append(len(drawn))

        thread = threading.Thread(target=producer)
        thread.start()
        compositor.render(white_page(), received.append)
        thread.join(timeout=5)

        assert drawn == initial
        assert drawn_when_added == [len(initial)]
        assert len(received) == 1
        assert compositor.overlays.snapshot() == initial + [late]


class TestCompositor:
    """Tests for Compositor.render"""

    def test_callback_runs_once_with_annotated_copy(self):
        source = white_page()
        compositor = Compositor()
        compositor.overlays.add(BoxOverlay(BoundingBox(10, 10, 50, 50), color=RED))
        compositor.set_image_source_info(source.width, source.height)

        received = []
        compositor.render(source, received.append)

        assert len(received) == 1
        finished = received[0]
        assert finished is not source
        assert finished.depth == 24
        assert finished.size == (200, 100)
        assert tuple(finished.pixels[30, 11]) == (255, 0, 0)
        assert tuple(finished.pixels[30, 30]) == (255, 255, 255)
        assert not source.released
        assert (source.pixels == 255).all()

    def test_display_surface_uses_scaled_transform(self):
        compositor = Compositor((400, 200))
        compositor.overlays.add(BoxOverlay(BoundingBox(10, 10, 50, 50), color=RED))
        compositor.set_image_source_info(200, 100)
        compositor.render()
        assert compositor.surface.image.getpixel((21, 60)) == RED
        assert compositor.surface.image.getpixel((60, 60))[3] == 0

    def test_render_clears_surface(self):
        compositor = Compositor((400, 200))
        box = BoxOverlay(BoundingBox(10, 10, 50, 50), color=RED)
        compositor.overlays.add(box)
        compositor.set_image_source_info(200, 100)
        compositor.render()
        compositor.overlays.remove(box)
        compositor.render()
        assert compositor.surface.image.getpixel((21, 60))[3] == 0

    def test_render_without_image_info_fails(self):
        compositor = Compositor((400, 200))
        compositor.overlays.add(BoxOverlay(BoundingBox(10, 10, 50, 50)))
        with pytest.raises(TransformPreconditionError):
            compositor.render()

    def test_callback_without_offscreen_source_is_rejected(self):
        received = []
        compositor = Compositor((400, 200))
        with pytest.raises(ValueError):
            compositor.render(None, received.append)
        assert received == []

    def test_empty_overlay_set_still_completes(self):
        received = []
        Compositor().render(white_page(), received.append)
        assert len(received) == 1

    def test_text_blocks_are_drawn(self):
        annotated = render_annotations(white_page(), sample_text())
        assert annotated.size == (200, 100)
        assert not (annotated.pixels == 255).all()

    def test_grouped_blocks_are_drawn(self):
        annotated = render_annotations(white_page(), sample_text(), group_in_blocks=True, show_confidence=False)
        assert annotated.depth == 24


def test_unknown_overlay_type():
    transform = CoordinateTransform(10, 10)
    transform.set_image_source_info(10, 10)
    with pytest.raises(TypeError):
        draw_overlay(None, transform, object())


def test_text_block_overlay_without_geometry_draws_nothing():
    text = RecognizedText("x", [TextBlock("x", lines=[TextLine("x")])])
    received = []
    compositor = Compositor()
    compositor.overlays.add(TextBlockOverlay(text))
    compositor.set_image_source_info(200, 100)
    compositor.render(white_page(), received.append)
    assert (received[0].pixels == 255).all()
