"""
OCR workflow package: runs read-text requests against an external recognizer.

Main components:
- settings: Logger setup and the settings-to-config adapter
- recognition: Recognizer interface and the background recognition worker
- persistence: Saving annotated pages
- workflow: The read-text request flow
"""

from .persistence import AnnotatedImageStore
from .recognition import RecognitionOutcome, RecognitionWorker, Recognizer
from .settings import load_preprocess_config, load_settings_file, validate_setting
from .workflow import OcrWorkflow

__all__ = [
    "AnnotatedImageStore",
    "OcrWorkflow",
    "RecognitionOutcome",
    "RecognitionWorker",
    "Recognizer",
    "load_preprocess_config",
    "load_settings_file",
    "validate_setting",
]
