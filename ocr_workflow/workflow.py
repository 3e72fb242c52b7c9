"""Read-text request orchestration: decode, preprocess, recognize, annotate, persist."""

from __future__ import annotations

from concurrent.futures import Future
from typing import Any, Mapping, Optional, Tuple, Union

from page_preprocessor.buffers import PixelBuffer
from page_preprocessor.decoder import BoundedDecoder
from page_preprocessor.options import PreprocessConfig
from page_preprocessor.orientation import load_upright
from page_preprocessor.processing import preprocess
from text_overlay.drawing import Compositor, TextBlockOverlay
from text_overlay.serialization import OcrOutput

from .persistence import AnnotatedImageStore
from .recognition import RecognitionOutcome, RecognitionWorker, Recognizer
from .settings import load_preprocess_config, logger

Settings = Union[PreprocessConfig, Mapping[str, Any]]


class OcrWorkflow:
    """
    Runs read-text requests end to end.

    Decoding, orientation and preprocessing run on the calling thread and their
    errors propagate to the caller of ``read_text``. Recognition runs on the
    background worker. On success the result is drawn onto a copy of the
    preprocessed page, which is saved or discarded depending on
    ``persist_data``. The returned future completes after that, with an empty
    OcrOutput when recognition failed.
    """

    def __init__(
        self,
        recognizer: Recognizer,
        settings: Optional[Settings] = None,
        store: Optional[AnnotatedImageStore] = None,
        decoder: Optional[BoundedDecoder] = None,
        surface_size: Optional[Tuple[int, int]] = None,
        group_in_blocks: bool = False,
        show_language_tag: bool = True,
        show_confidence: bool = True,
    ) -> None:
        self.worker = RecognitionWorker(recognizer)
        self.settings = settings if settings is not None else {}
        self.store = store or AnnotatedImageStore()
        self.decoder = decoder or BoundedDecoder()
        self.surface_size = surface_size
        self.overlay_options = {
            "group_in_blocks": group_in_blocks,
            "show_language_tag": show_language_tag,
            "show_confidence": show_confidence,
        }

    def _request_config(self) -> PreprocessConfig:
        if isinstance(self.settings, PreprocessConfig):
            return self.settings
        return load_preprocess_config(self.settings)

    def read_text(self, source) -> "Future[OcrOutput]":
        """
        Start a read-text request for an image source.

        Args:
            source: An ImageSource, a file path, or raw image bytes.

        Returns:
            A future resolving to the OcrOutput of the request.

        Raises:
            ConfigValidationError: If the stored settings are invalid.
            DecodeError: If the image cannot be decoded.
            PipelineStageError: If a preprocessing stage fails.
        """
        config = self._request_config()
        buffer, orientation = load_upright(source, self.decoder)
        logger.info(f"Decoded page {buffer.width}x{buffer.height} (rotation {orientation.rotation_degrees})")
        processed = preprocess(buffer, config)

        result: "Future[OcrOutput]" = Future()
        recognition = self.worker.submit(processed, 0)
        recognition.add_done_callback(lambda done: self._on_recognized(done, processed, config, result))
        return result

    def read_text_sync(self, source, timeout: Optional[float] = None) -> OcrOutput:
        return self.read_text(source).result(timeout=timeout)

    def _on_recognized(
        self,
        done: "Future[RecognitionOutcome]",
        processed: PixelBuffer,
        config: PreprocessConfig,
        result: "Future[OcrOutput]",
    ) -> None:
        try:
            outcome = done.result()
            if not outcome.ok:
                logger.warning("Recognition failed; returning empty output")
                output = OcrOutput()
            else:
                output = OcrOutput.from_text(outcome.text)
                self._draw_and_save(processed, outcome, config)
        except Exception as exc:
            logger.exception(f"Read-text request failed after recognition: {exc}")
            processed.release()
            result.set_exception(exc)
            return
        processed.release()
        result.set_result(output)

    def _draw_and_save(self, processed: PixelBuffer, outcome: RecognitionOutcome, config: PreprocessConfig) -> None:
        compositor = Compositor(self.surface_size)
        compositor.overlays.add(TextBlockOverlay(outcome.text, **self.overlay_options))
        compositor.set_image_source_info(processed.width, processed.height, False)
        compositor.render(processed, lambda finished: self._on_draw_completed(finished, config))

    def _on_draw_completed(self, finished: PixelBuffer, config: PreprocessConfig) -> None:
        try:
            if config.persist_data:
                self.store.save(finished)
            else:
                logger.debug("Persistence disabled; discarding annotated image")
        except OSError as exc:
            # The recognition result still completes the request
            logger.exception(f"Failed to save annotated image: {exc}")
        finally:
            finished.release()

    def close(self) -> None:
        self.worker.shutdown()

    def __enter__(self) -> "OcrWorkflow":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()
