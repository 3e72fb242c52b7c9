"""Shared configuration and logging helpers for the OCR workflow."""

from __future__ import annotations

import json
import logging
import os
import sys
from typing import Any, Mapping

from page_preprocessor.options import (
    DEFAULT_BLOCK_SIZE,
    DEFAULT_CONSTANT_OFFSET,
    DEFAULT_MAX_VALUE,
    AdaptiveThresholdParams,
    ConfigValidationError,
    PreprocessConfig,
    check_block_size,
    check_max_value,
)

# --- USER CONFIGURATION ---
LOG_DIR = os.getenv("OCR_WORKFLOW_LOG_DIR")
OUTPUT_DIR = os.getenv("OCR_WORKFLOW_OUTPUT_DIR", os.path.join(os.getcwd(), "ocr_output"))

# Settings keys, as stored by the settings screen
KEY_GRAYSCALE = "key_grayscale"
KEY_CONTRAST = "process_contrast"
KEY_UNSHARP_MASK = "un_sharp_mask"
KEY_OTSU_THRESHOLD = "otsu_threshold"
KEY_DESKEW = "deskew_img"
KEY_ADAPTIVE_THRESHOLD = "adaptive_threshold"
KEY_ADAPTIVE_METHOD = "key_adaptive_threshold_method"
KEY_ADAPTIVE_TYPE = "key_adaptive_threshold_type"
KEY_ADAPTIVE_BLOCK_SIZE = "key_adaptive_threshold_block_size"
KEY_ADAPTIVE_MEAN = "key_adaptive_threshold_mean"
KEY_ADAPTIVE_MAX_VALUE = "key_adaptive_threshold_max_value"
KEY_PERSIST_DATA = "persist_data"

STAGE_KEYS = {
    KEY_GRAYSCALE: "grayscale",
    KEY_CONTRAST: "contrast_norm",
    KEY_UNSHARP_MASK: "unsharp_mask",
    KEY_OTSU_THRESHOLD: "otsu_threshold",
    KEY_DESKEW: "deskew",
    KEY_ADAPTIVE_THRESHOLD: "adaptive_threshold",
}

DEFAULT_SETTINGS = {
    KEY_GRAYSCALE: True,
    KEY_CONTRAST: True,
    KEY_UNSHARP_MASK: True,
    KEY_OTSU_THRESHOLD: True,
    KEY_DESKEW: True,
    KEY_ADAPTIVE_THRESHOLD: True,
    KEY_ADAPTIVE_METHOD: "0",
    KEY_ADAPTIVE_TYPE: "0",
    KEY_ADAPTIVE_BLOCK_SIZE: str(DEFAULT_BLOCK_SIZE),
    KEY_ADAPTIVE_MEAN: str(DEFAULT_CONSTANT_OFFSET),
    KEY_ADAPTIVE_MAX_VALUE: str(DEFAULT_MAX_VALUE),
    KEY_PERSIST_DATA: True,
}

_TRUE_STRINGS = {"true", "1", "yes", "on"}
_FALSE_STRINGS = {"false", "0", "no", "off"}


def _configure_logger() -> logging.Logger:
    logger = logging.getLogger("ocr_workflow")
    logger.setLevel(logging.DEBUG)

    # Avoid duplicate handlers when re-imported
    if logger.handlers:
        return logger

    formatter = logging.Formatter(
        "%(asctime)s - %(levelname)s - [%(funcName)s] - %(message)s"
    )

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(logging.INFO)
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    if LOG_DIR:
        os.makedirs(LOG_DIR, exist_ok=True)
        file_handler = logging.FileHandler(
            os.path.join(LOG_DIR, "debug.log"), mode="w", encoding="utf-8"
        )
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    return logger


logger = _configure_logger()


def parse_bool(key: str, value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str) and value.strip().lower() in _TRUE_STRINGS | _FALSE_STRINGS:
        return value.strip().lower() in _TRUE_STRINGS
    raise ConfigValidationError(f"Setting '{key}' must be a boolean, got {value!r}")


def parse_int(key: str, value: Any) -> int:
    if isinstance(value, bool):
        raise ConfigValidationError(f"Setting '{key}' must be an integer, got {value!r}")
    if isinstance(value, int):
        return value
    try:
        return int(str(value).strip())
    except ValueError as exc:
        raise ConfigValidationError(f"Setting '{key}' must be an integer, got {value!r}") from exc


def parse_float(key: str, value: Any) -> float:
    if isinstance(value, bool):
        raise ConfigValidationError(f"Setting '{key}' must be a number, got {value!r}")
    if isinstance(value, (int, float)):
        return float(value)
    try:
        return float(str(value).strip())
    except ValueError as exc:
        raise ConfigValidationError(f"Setting '{key}' must be a number, got {value!r}") from exc


def validate_setting(key: str, value: Any) -> Any:
    """
    Validate a single settings edit before it is stored.

    Args:
        key: One of the settings keys.
        value: The raw value (usually a string from a text field).

    Returns:
        The parsed value.

    Raises:
        ConfigValidationError: If the value is malformed or out of range.
            Block size must be an odd integer greater than 1 and the max value a
            positive number.
    """
    if key in STAGE_KEYS or key == KEY_PERSIST_DATA:
        return parse_bool(key, value)
    if key in (KEY_ADAPTIVE_METHOD, KEY_ADAPTIVE_TYPE):
        return parse_int(key, value)
    if key == KEY_ADAPTIVE_BLOCK_SIZE:
        return check_block_size(parse_int(key, value))
    if key == KEY_ADAPTIVE_MEAN:
        return parse_float(key, value)
    if key == KEY_ADAPTIVE_MAX_VALUE:
        return check_max_value(parse_float(key, value))
    raise ConfigValidationError(f"Unknown setting: {key}")


def load_preprocess_config(values: Mapping[str, Any]) -> PreprocessConfig:
    """
    Build the per-request pipeline config from stored settings.

    Missing keys take their defaults (every stage on, mean/binary threshold,
    block size 25, offset 10.0, max value 200.0, persistence on). Unknown keys
    are ignored.

    Raises:
        ConfigValidationError: If any value is malformed or out of range.
    """
    settings = dict(DEFAULT_SETTINGS)
    settings.update({k: v for k, v in values.items() if k in DEFAULT_SETTINGS and v is not None})

    toggles = {field_name: parse_bool(key, settings[key]) for key, field_name in STAGE_KEYS.items()}
    params = AdaptiveThresholdParams(
        method=parse_int(KEY_ADAPTIVE_METHOD, settings[KEY_ADAPTIVE_METHOD]),
        threshold_type=parse_int(KEY_ADAPTIVE_TYPE, settings[KEY_ADAPTIVE_TYPE]),
        block_size=parse_int(KEY_ADAPTIVE_BLOCK_SIZE, settings[KEY_ADAPTIVE_BLOCK_SIZE]),
        constant_offset=parse_float(KEY_ADAPTIVE_MEAN, settings[KEY_ADAPTIVE_MEAN]),
        max_value=parse_float(KEY_ADAPTIVE_MAX_VALUE, settings[KEY_ADAPTIVE_MAX_VALUE]),
    )
    config = PreprocessConfig(
        adaptive_params=params,
        persist_data=parse_bool(KEY_PERSIST_DATA, settings[KEY_PERSIST_DATA]),
        **toggles,
    )
    logger.debug(f"Loaded preprocess config: {config}")
    return config


def load_settings_file(path: str) -> PreprocessConfig:
    """
    Load settings from a JSON object file.

    Raises:
        ConfigValidationError: If the file is not a JSON object or holds bad values.
        OSError: If the file cannot be read.
    """
    with open(path, "r", encoding="utf-8") as f:
        try:
            values = json.load(f)
        except json.JSONDecodeError as exc:
            raise ConfigValidationError(f"Settings file {path} is not valid JSON: {exc}") from exc
    if not isinstance(values, dict):
        raise ConfigValidationError(f"Settings file {path} must contain a JSON object")
    return load_preprocess_config(values)
