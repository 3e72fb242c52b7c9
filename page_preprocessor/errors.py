"""Exceptions raised by the page preprocessing stages."""

from __future__ import annotations


class DecodeError(Exception):
    """Raised when a source cannot be turned into a pixel buffer."""


class NotAPictureError(DecodeError):
    """Raised when the source cannot be read as an image at all."""


class DecodeFailedError(DecodeError):
    """Raised when decoding keeps running out of memory at every sample size."""


class BufferReleasedError(RuntimeError):
    """Raised when pixels are accessed after the owning stage released them."""


class PipelineStageError(Exception):
    """Raised when a preprocessing stage fails. The pipeline produces no output."""

    def __init__(self, stage: str, message: str) -> None:
        super().__init__(f"{stage}: {message}")
        self.stage = stage
