"""Configuration constants for page preprocessing."""

from __future__ import annotations

import os

# Decoding limits
IMAGE_MAX_BITMAP_DIMENSION = 2048
"""Safe minimum for the largest width or height a decoded page may have."""

MAX_TEXTURE_SIZE = int(os.getenv("PAGE_PREPROCESSOR_MAX_TEXTURE_SIZE", "4096"))
"""
Largest width or height allowed for a decoded page.

Can be overridden via the PAGE_PREPROCESSOR_MAX_TEXTURE_SIZE environment variable.
Values below IMAGE_MAX_BITMAP_DIMENSION are raised to it.
"""

MAX_SAMPLE_SIZE = 512
"""Largest downsampling factor tried before decoding is abandoned."""

# Contrast normalization (tiled min/max stretch)
CONTRAST_TILE_WIDTH = 10
"""Tile width in pixels for local min/max estimation."""

CONTRAST_TILE_HEIGHT = 15
"""Tile height in pixels for local min/max estimation."""

CONTRAST_MIN_DIFF = 40
"""Minimum max-min spread for a tile to be stretched. Flatter tiles keep their values."""

CONTRAST_SMOOTH_X = 2
"""Horizontal half-width (in tiles) of the smoothing applied to the min/max maps."""

CONTRAST_SMOOTH_Y = 1
"""Vertical half-height (in tiles) of the smoothing applied to the min/max maps."""

# Unsharp masking
UNSHARP_HALFWIDTH = 1
"""Half-width of the blur used to build the unsharp mask."""

UNSHARP_FRACTION = 0.3
"""Fraction of the high-frequency component added back (0.3 = 30%)."""

UNSHARP_THRESHOLD = 0
"""Minimum brightness change to be sharpened."""

# Otsu adaptive threshold
OTSU_TILE_WIDTH = 32
"""Tile width in pixels for local Otsu thresholds."""

OTSU_TILE_HEIGHT = 32
"""Tile height in pixels for local Otsu thresholds."""

OTSU_SMOOTH_X = 2
"""Horizontal half-width (in tiles) of the threshold map smoothing."""

OTSU_SMOOTH_Y = 2
"""Vertical half-height (in tiles) of the threshold map smoothing."""

# Skew detection
SKEW_SWEEP_RANGE = 10.0
"""Half-range in degrees searched by the coarse skew sweep."""

SKEW_SWEEP_STEP = 0.5
"""Step in degrees of the coarse skew sweep."""

SKEW_SEARCH_STEP = 0.05
"""Step in degrees of the refining skew search around the coarse peak."""

SKEW_MIN_ANGLE = 0.05
"""Detected skew below this magnitude (degrees) is not corrected."""

SKEW_MAX_SAMPLES = 200_000
"""Upper bound on ink pixels sampled for the projection profile."""

PAPER_WHITE = 255
"""Fill value for canvas areas uncovered by rotation."""
