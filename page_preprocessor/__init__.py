"""
Page preprocessing package for text recognition.

This package turns raw page photographs into clean, upright, binarized images.
Pages are decoded within a memory budget, rotated upright from their EXIF
orientation, and run through a fixed pipeline of optional stages.

Main components:
- decoder: Bounded decoding with power-of-two downsampling and out-of-memory retry
- orientation: EXIF orientation lookup and upright rotation
- processing: Greyscale, contrast, sharpening, thresholding and deskew stages
- options: Per-request stage toggles and adaptive threshold parameters
- buffers: Pixel buffers handed from stage to stage
- runner: CLI entry point for batch processing
- config: Tuning constants for the stages
"""

from .buffers import PixelBuffer
from .decoder import BoundedDecoder, ImageSource
from .errors import DecodeError, DecodeFailedError, NotAPictureError, PipelineStageError
from .options import AdaptiveThresholdParams, ConfigValidationError, PreprocessConfig
from .orientation import load_upright
from .processing import preprocess

__all__ = [
    "AdaptiveThresholdParams",
    "BoundedDecoder",
    "ConfigValidationError",
    "DecodeError",
    "DecodeFailedError",
    "ImageSource",
    "NotAPictureError",
    "PipelineStageError",
    "PixelBuffer",
    "PreprocessConfig",
    "load_upright",
    "preprocess",
]
