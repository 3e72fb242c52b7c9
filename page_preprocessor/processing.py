"""Core image processing pipeline for page preprocessing."""

from __future__ import annotations

import logging
from typing import Callable

import cv2
import numpy as np
from PIL import Image, ImageFilter
from skimage.filters import threshold_otsu

from .buffers import PixelBuffer
from .config import (
    CONTRAST_MIN_DIFF,
    CONTRAST_SMOOTH_X,
    CONTRAST_SMOOTH_Y,
    CONTRAST_TILE_HEIGHT,
    CONTRAST_TILE_WIDTH,
    OTSU_SMOOTH_X,
    OTSU_SMOOTH_Y,
    OTSU_TILE_HEIGHT,
    OTSU_TILE_WIDTH,
    PAPER_WHITE,
    SKEW_MAX_SAMPLES,
    SKEW_MIN_ANGLE,
    SKEW_SEARCH_STEP,
    SKEW_SWEEP_RANGE,
    SKEW_SWEEP_STEP,
    UNSHARP_FRACTION,
    UNSHARP_HALFWIDTH,
    UNSHARP_THRESHOLD,
)
from .errors import PipelineStageError
from .options import AdaptiveThresholdParams, PreprocessConfig

logger = logging.getLogger(__name__)


def gray_pixels(buffer: PixelBuffer) -> np.ndarray:
    """
    Get an 8-bit single channel view of a buffer without consuming it.

    1 bpp ink becomes 0 and paper 255. Colour buffers are converted by luminance.
    """
    pixels = buffer.pixels
    if buffer.depth == 1:
        return np.where(pixels, 0, PAPER_WHITE).astype(np.uint8)
    if buffer.depth == 8:
        return pixels
    if buffer.depth == 24:
        return cv2.cvtColor(pixels, cv2.COLOR_RGB2GRAY)
    return cv2.cvtColor(pixels, cv2.COLOR_RGBA2GRAY)


def convert_to_8(buffer: PixelBuffer) -> PixelBuffer:
    """Convert a buffer to 8 bpp greyscale. An 8 bpp buffer is returned as is."""
    if buffer.depth == 8:
        return buffer
    return PixelBuffer(gray_pixels(buffer))


def _require_8bpp(buffer: PixelBuffer, operation: str) -> np.ndarray:
    if buffer.depth != 8:
        raise ValueError(f"{operation} requires an 8 bpp buffer, got {buffer.depth} bpp")
    return buffer.pixels


def _tile_view(img: np.ndarray, tile_w: int, tile_h: int) -> np.ndarray:
    """Pad an image by edge replication and reshape it into (rows, tile_h, cols, tile_w)."""
    h, w = img.shape
    rows, cols = -(-h // tile_h), -(-w // tile_w)
    padded = np.pad(img, ((0, rows * tile_h - h), (0, cols * tile_w - w)), mode="edge")
    return padded.reshape(rows, tile_h, cols, tile_w)


def _expand_tiles(tile_map: np.ndarray, tile_w: int, tile_h: int, shape) -> np.ndarray:
    expanded = np.repeat(np.repeat(tile_map, tile_h, axis=0), tile_w, axis=1)
    return expanded[: shape[0], : shape[1]]


def _smooth_tiles(tile_map: np.ndarray, half_x: int, half_y: int) -> np.ndarray:
    kernel = (2 * half_x + 1, 2 * half_y + 1)
    return cv2.blur(tile_map.astype(np.float32), kernel, borderType=cv2.BORDER_REPLICATE)


def normalize_contrast(
    buffer: PixelBuffer,
    tile_width: int = CONTRAST_TILE_WIDTH,
    tile_height: int = CONTRAST_TILE_HEIGHT,
    min_diff: int = CONTRAST_MIN_DIFF,
) -> PixelBuffer:
    """
    Stretch local contrast using tiled min/max estimates.

    For each tile the darkest and brightest values are found, the min/max maps
    are smoothed across neighbouring tiles, and each pixel is mapped linearly so
    that the local minimum becomes 0 and the local maximum 255. Tiles whose spread
    is below min_diff count as a full 0..255 range, so flat paper is barely changed.

    Args:
        buffer: 8 bpp input buffer.
        tile_width: Tile width in pixels.
        tile_height: Tile height in pixels.
        min_diff: Minimum max-min spread for a tile to be stretched.

    Returns:
        A new 8 bpp buffer.

    Raises:
        ValueError: If the buffer is not 8 bpp.
    """
    img = _require_8bpp(buffer, "Contrast normalization")
    tiles = _tile_view(img, tile_width, tile_height)
    mins = tiles.min(axis=(1, 3)).astype(np.float32)
    maxs = tiles.max(axis=(1, 3)).astype(np.float32)

    flat = (maxs - mins) < min_diff
    mins[flat] = 0.0
    maxs[flat] = 255.0

    low = _expand_tiles(_smooth_tiles(mins, CONTRAST_SMOOTH_X, CONTRAST_SMOOTH_Y), tile_width, tile_height, img.shape)
    high = _expand_tiles(_smooth_tiles(maxs, CONTRAST_SMOOTH_X, CONTRAST_SMOOTH_Y), tile_width, tile_height, img.shape)
    span = np.maximum(high - low, 1.0)

    stretched = (img.astype(np.float32) - low) * (255.0 / span)
    return PixelBuffer(np.clip(stretched, 0, 255).astype(np.uint8))


def unsharp_mask(
    buffer: PixelBuffer,
    halfwidth: int = UNSHARP_HALFWIDTH,
    fraction: float = UNSHARP_FRACTION,
) -> PixelBuffer:
    """
    Sharpen edges with an unsharp mask.

    Args:
        buffer: Input buffer of any depth. 1 bpp buffers have no edges to sharpen
            and are returned unchanged.
        halfwidth: Radius of the blur used to build the mask.
        fraction: Strength of the sharpening (0.3 adds back 30% of the detail).

    Returns:
        A sharpened buffer with the same depth as the input.
    """
    if buffer.depth == 1 or fraction <= 0:
        return buffer
    mask = ImageFilter.UnsharpMask(radius=halfwidth, percent=int(round(fraction * 100)), threshold=UNSHARP_THRESHOLD)
    image = Image.fromarray(buffer.pixels)
    if image.mode == "RGBA":
        sharpened = image.convert("RGB").filter(mask)
        sharpened.putalpha(image.getchannel("A"))
    else:
        sharpened = image.filter(mask)
    return PixelBuffer(np.array(sharpened, dtype=np.uint8))


def _otsu_threshold_or_none(values: np.ndarray):
    if values.size == 0 or values.min() == values.max():
        return None
    return float(threshold_otsu(values))


def otsu_adaptive_threshold(
    buffer: PixelBuffer,
    tile_width: int = OTSU_TILE_WIDTH,
    tile_height: int = OTSU_TILE_HEIGHT,
) -> PixelBuffer:
    """
    Binarize with per-tile Otsu thresholds.

    A threshold is computed for every tile and the threshold map is smoothed
    across neighbouring tiles. Tiles with less spread than CONTRAST_MIN_DIFF use
    the global Otsu threshold instead, so blank paper does not turn into noise.

    Args:
        buffer: 8 bpp input buffer.
        tile_width: Tile width in pixels.
        tile_height: Tile height in pixels.

    Returns:
        A 1 bpp buffer where True marks ink.

    Raises:
        ValueError: If the buffer is not 8 bpp.
    """
    img = _require_8bpp(buffer, "Otsu thresholding")
    global_threshold = _otsu_threshold_or_none(img)
    if global_threshold is None:
        # A single grey level holds no ink
        return PixelBuffer(np.zeros(img.shape, dtype=bool))

    tiles = _tile_view(img, tile_width, tile_height)
    rows, cols = tiles.shape[0], tiles.shape[2]
    thresholds = np.full((rows, cols), global_threshold, dtype=np.float32)
    for row in range(rows):
        for col in range(cols):
            tile = tiles[row, :, col, :]
            if int(tile.max()) - int(tile.min()) < CONTRAST_MIN_DIFF:
                continue
            thresholds[row, col] = _otsu_threshold_or_none(tile)

    smoothed = _smooth_tiles(thresholds, OTSU_SMOOTH_X, OTSU_SMOOTH_Y)
    threshold_map = _expand_tiles(smoothed, tile_width, tile_height, img.shape)
    return PixelBuffer(img <= threshold_map)


def _ink_coordinates(buffer: PixelBuffer):
    if buffer.depth == 1:
        ink = buffer.pixels
    else:
        gray = gray_pixels(buffer)
        threshold = _otsu_threshold_or_none(gray)
        if threshold is None:
            return None, None
        ink = gray <= threshold
    ys, xs = np.nonzero(ink)
    if xs.size == 0:
        return None, None
    if xs.size > SKEW_MAX_SAMPLES:
        step = -(-xs.size // SKEW_MAX_SAMPLES)
        ys, xs = ys[::step], xs[::step]
    return xs.astype(np.float64), ys.astype(np.float64)


def _projection_score(xs: np.ndarray, ys: np.ndarray, angle: float) -> float:
    rad = np.deg2rad(angle)
    rows = np.round(xs * np.sin(rad) + ys * np.cos(rad)).astype(np.int64)
    counts = np.bincount(rows - rows.min()).astype(np.float64)
    return float(np.sum(np.diff(counts) ** 2))


def _best_angle(xs: np.ndarray, ys: np.ndarray, angles: np.ndarray) -> float:
    scores = np.array([_projection_score(xs, ys, angle) for angle in angles])
    # Tiny angles often score the same; prefer the one closest to level
    tied = angles[scores == scores.max()]
    return float(tied[int(np.argmin(np.abs(tied)))])


def find_skew(buffer: PixelBuffer) -> float:
    """
    Detect the skew of text lines with a projection profile search.

    Ink pixels are projected onto the vertical axis for a sweep of candidate
    angles; the angle whose projection has the sharpest row transitions wins. A
    coarse sweep is followed by a finer search around the best coarse angle.

    Args:
        buffer: Input buffer of any depth.

    Returns:
        The skew in degrees. Positive values mean the text lines are rotated
        counter-clockwise as displayed (rising to the right). Returns 0.0 when
        the buffer holds no ink.
    """
    xs, ys = _ink_coordinates(buffer)
    if xs is None:
        return 0.0
    coarse = np.arange(-SKEW_SWEEP_RANGE, SKEW_SWEEP_RANGE + SKEW_SWEEP_STEP / 2, SKEW_SWEEP_STEP)
    best = _best_angle(xs, ys, coarse)
    fine = np.arange(best - SKEW_SWEEP_STEP, best + SKEW_SWEEP_STEP + SKEW_SEARCH_STEP / 2, SKEW_SEARCH_STEP)
    return round(_best_angle(xs, ys, fine), 3)


def rotate_buffer(buffer: PixelBuffer, angle: float) -> PixelBuffer:
    """
    Rotate a buffer counter-clockwise by angle degrees on an expanded canvas.

    The canvas grows so no content is clipped; uncovered areas are filled with
    paper white (no ink for 1 bpp buffers).
    """
    h, w = buffer.height, buffer.width
    center = (w / 2.0, h / 2.0)
    rotation_matrix = cv2.getRotationMatrix2D(center, angle, 1.0)

    cos_angle = abs(rotation_matrix[0, 0])
    sin_angle = abs(rotation_matrix[0, 1])
    new_w = int(round(h * sin_angle + w * cos_angle))
    new_h = int(round(h * cos_angle + w * sin_angle))
    rotation_matrix[0, 2] += (new_w - w) / 2
    rotation_matrix[1, 2] += (new_h - h) / 2

    if buffer.depth == 1:
        ink = buffer.pixels.astype(np.uint8)
        rotated = cv2.warpAffine(
            ink, rotation_matrix, (new_w, new_h), flags=cv2.INTER_NEAREST, borderMode=cv2.BORDER_CONSTANT, borderValue=0
        )
        return PixelBuffer(rotated.astype(bool))

    fill = (PAPER_WHITE,) * buffer.channels
    rotated = cv2.warpAffine(
        buffer.pixels,
        rotation_matrix,
        (new_w, new_h),
        flags=cv2.INTER_LINEAR,
        borderMode=cv2.BORDER_CONSTANT,
        borderValue=fill,
    )
    return PixelBuffer(rotated)


def deskew(buffer: PixelBuffer) -> PixelBuffer:
    """Detect the skew angle and rotate by its negative. Negligible skew returns the buffer as is."""
    angle = find_skew(buffer)
    logger.debug(f"Detected skew angle {angle:.2f} degrees")
    if abs(angle) < SKEW_MIN_ANGLE:
        return buffer
    return rotate_buffer(buffer, -angle)


def adaptive_threshold(buffer: PixelBuffer, params: AdaptiveThresholdParams) -> PixelBuffer:
    """
    Binarize with OpenCV's local (mean or gaussian) adaptive threshold.

    Multi-channel and 1 bpp buffers are converted to single channel greyscale
    first. The result is an 8 bpp buffer holding 0 and params.max_value.
    """
    gray = gray_pixels(buffer)
    binary = cv2.adaptiveThreshold(
        gray,
        params.max_value,
        int(params.method),
        int(params.threshold_type),
        params.block_size,
        params.constant_offset,
    )
    return PixelBuffer(binary)


def _run_stage(name: str, operation: Callable[..., PixelBuffer], buffer: PixelBuffer, *args) -> PixelBuffer:
    try:
        result = operation(buffer, *args)
    except (cv2.error, ValueError, TypeError, MemoryError) as exc:
        logger.error(f"Preprocessing stage '{name}' failed: {exc}")
        buffer.release()
        raise PipelineStageError(name, str(exc)) from exc
    if result is not buffer:
        buffer.release()
    logger.debug(f"Stage '{name}' -> {result.width}x{result.height} @ {result.depth} bpp")
    return result


def preprocess(buffer: PixelBuffer, config: PreprocessConfig) -> PixelBuffer:
    """
    Run a page through the preprocessing pipeline.

    Stages run in a fixed order, each switched on or off by the config:
    1. Greyscale conversion to 8 bpp
    2. Contrast normalization (forces 8 bpp first)
    3. Unsharp masking
    4. Otsu adaptive threshold (forces 8 bpp first)
    5. Skew detection and correction
    6. Adaptive threshold with the configured parameters

    A skipped stage passes the very same buffer on. Every stage that produces a
    new buffer releases its input, so the caller must not reuse ``buffer`` once
    it has been handed over.

    Args:
        buffer: The upright page buffer.
        config: Stage toggles and adaptive threshold parameters.

    Returns:
        The processed buffer, or the input buffer itself when no stage is enabled.

    Raises:
        PipelineStageError: If any stage fails. No partial output is produced and
            the buffer in flight is released.
    """
    current = buffer
    if config.grayscale:
        current = _run_stage("grayscale", convert_to_8, current)
    if config.contrast_norm:
        current = _run_stage("grayscale", convert_to_8, current)
        current = _run_stage("contrast_norm", normalize_contrast, current)
    if config.unsharp_mask:
        current = _run_stage("unsharp_mask", unsharp_mask, current)
    if config.otsu_threshold:
        current = _run_stage("grayscale", convert_to_8, current)
        current = _run_stage("otsu_threshold", otsu_adaptive_threshold, current)
    if config.deskew:
        current = _run_stage("deskew", deskew, current)
    if config.adaptive_threshold:
        current = _run_stage("adaptive_threshold", adaptive_threshold, current, config.adaptive_params)
    return current
