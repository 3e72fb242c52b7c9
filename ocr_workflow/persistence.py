"""Saving annotated pages to local storage."""

from __future__ import annotations

import os
import uuid

from page_preprocessor.buffers import PixelBuffer

from .settings import OUTPUT_DIR, logger

JPEG_QUALITY = 30
"""Saved images favour size over fidelity; they are previews of the recognition."""


class AnnotatedImageStore:
    """Writes finished buffers as uniquely named JPEG files into one directory."""

    def __init__(self, directory: str = OUTPUT_DIR) -> None:
        self.directory = directory

    def save(self, buffer: PixelBuffer) -> str:
        """
        Save a buffer as ``<uuid4>.jpeg``.

        Returns:
            The absolute path of the written file.

        Raises:
            OSError: If the directory cannot be created or the file written.
        """
        os.makedirs(self.directory, exist_ok=True)
        path = os.path.join(self.directory, f"{uuid.uuid4()}.jpeg")
        image = buffer.to_image()
        if image.mode not in ("RGB", "L"):
            image = image.convert("RGB")
        image.save(path, "JPEG", quality=JPEG_QUALITY)
        logger.info(f"Saved annotated image to {path}")
        return os.path.abspath(path)
