"""Shared fixtures: synthetic pages built with numpy and Pillow."""

import io

import numpy as np
import pytest
from PIL import ExifTags, Image

from page_preprocessor.buffers import PixelBuffer


def make_page(width=400, height=300, line_spacing=24, margin=30):
    """White RGB page with dark horizontal bars standing in for text lines."""
    pixels = np.full((height, width, 3), 255, dtype=np.uint8)
    for top in range(margin, height - margin, line_spacing):
        pixels[top : top + 6, margin : width - margin] = 20
    return pixels


def make_ink_lines(width=400, height=300, line_spacing=20, margin=40):
    """1 bpp page where True rows form horizontal text lines."""
    ink = np.zeros((height, width), dtype=bool)
    for top in range(margin, height - margin, line_spacing):
        ink[top : top + 4, margin : width - margin] = True
    return ink


def encode(pixels, fmt="PNG", orientation=None):
    image = Image.fromarray(pixels)
    out = io.BytesIO()
    if orientation is not None:
        exif = Image.Exif()
        exif[ExifTags.Base.Orientation] = orientation
        image.save(out, fmt, exif=exif)
    else:
        image.save(out, fmt)
    return out.getvalue()


@pytest.fixture
def page_pixels():
    return make_page()


@pytest.fixture
def page_buffer(page_pixels):
    return PixelBuffer(page_pixels.copy())


@pytest.fixture
def page_png(page_pixels):
    return encode(page_pixels)


@pytest.fixture
def page_file(tmp_path, page_png):
    path = tmp_path / "page.png"
    path.write_bytes(page_png)
    return str(path)
