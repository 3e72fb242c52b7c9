"""Text recognition collaborator interface and the background worker that calls it."""

from __future__ import annotations

from abc import ABC, abstractmethod
from concurrent.futures import Future, ThreadPoolExecutor
from typing import NamedTuple, Optional

from page_preprocessor.buffers import PixelBuffer
from text_overlay.primitives import RecognizedText

from .settings import logger


class Recognizer(ABC):
    """A text recognition engine. Implementations live outside this package."""

    @abstractmethod
    def recognize(self, image: PixelBuffer, rotation_degrees: int) -> RecognizedText:
        """
        Recognize the text in an image.

        Args:
            image: The preprocessed page. Must not be released or kept.
            rotation_degrees: Clockwise rotation the engine should assume.

        Returns:
            The recognized text with geometry in the image's pixel space.
        """


class RecognitionOutcome(NamedTuple):
    ok: bool
    text: Optional[RecognizedText] = None
    error: Optional[BaseException] = None


class RecognitionWorker:
    """
    Runs recognition off the calling thread.

    A single worker thread serves all requests in submission order. Each
    submitted request completes exactly once, with success or failure.
    """

    def __init__(self, recognizer: Recognizer) -> None:
        self.recognizer = recognizer
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="recognition")

    def _recognize(self, image: PixelBuffer, rotation_degrees: int) -> RecognitionOutcome:
        try:
            text = self.recognizer.recognize(image, rotation_degrees)
        except Exception as exc:
            logger.exception(f"Text recognition failed: {exc}")
            return RecognitionOutcome(ok=False, error=exc)
        if text is None:
            logger.warning("Text recognition returned no result")
            return RecognitionOutcome(ok=False)
        return RecognitionOutcome(ok=True, text=text)

    def submit(self, image: PixelBuffer, rotation_degrees: int = 0) -> "Future[RecognitionOutcome]":
        return self._executor.submit(self._recognize, image, rotation_degrees)

    def shutdown(self, wait: bool = True) -> None:
        self._executor.shutdown(wait=wait)

    def __enter__(self) -> "RecognitionWorker":
        return self

    def __exit__(self, *exc_info) -> None:
        self.shutdown()
