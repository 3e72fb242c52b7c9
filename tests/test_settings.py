"""
Tests for settings loading and validation
"""
import json

import pytest

from ocr_workflow.settings import (
    KEY_ADAPTIVE_BLOCK_SIZE,
    KEY_ADAPTIVE_MAX_VALUE,
    KEY_ADAPTIVE_MEAN,
    KEY_ADAPTIVE_METHOD,
    KEY_ADAPTIVE_TYPE,
    KEY_DESKEW,
    KEY_GRAYSCALE,
    KEY_PERSIST_DATA,
    load_preprocess_config,
    load_settings_file,
    validate_setting,
)
from page_preprocessor.options import (
    AdaptiveThresholdParams,
    ConfigValidationError,
    PreprocessConfig,
    ThresholdMethod,
    ThresholdType,
)


class TestLoadPreprocessConfig:
    """Tests for building a PreprocessConfig from stored settings"""

    def test_defaults(self):
        config = load_preprocess_config({})
        assert config == PreprocessConfig()
        assert config.grayscale and config.deskew and config.adaptive_threshold
        assert config.persist_data
        params = config.adaptive_params
        assert params.method == ThresholdMethod.MEAN
        assert params.threshold_type == ThresholdType.BINARY
        assert params.block_size == 25
        assert params.constant_offset == 10.0
        assert params.max_value == 200.0

    def test_string_values(self):
        config = load_preprocess_config(
            {
                KEY_GRAYSCALE: "false",
                KEY_DESKEW: False,
                KEY_ADAPTIVE_METHOD: "1",
                KEY_ADAPTIVE_TYPE: "1",
                KEY_ADAPTIVE_BLOCK_SIZE: "31",
                KEY_ADAPTIVE_MEAN: "2.5",
                KEY_ADAPTIVE_MAX_VALUE: "255",
                KEY_PERSIST_DATA: "0",
            }
        )
        assert not config.grayscale
        assert not config.deskew
        assert config.contrast_norm
        assert not config.persist_data
        assert config.adaptive_params == AdaptiveThresholdParams(
            ThresholdMethod.GAUSSIAN, ThresholdType.BINARY_INVERTED, 31, 2.5, 255.0
        )

    @pytest.mark.parametrize("block_size", ["24", "1", "0", "-3", "abc", "25.0"])
    def test_rejects_bad_block_size(self, block_size):
        with pytest.raises(ConfigValidationError):
            load_preprocess_config({KEY_ADAPTIVE_BLOCK_SIZE: block_size})

    @pytest.mark.parametrize("max_value", ["0", "0.0", "-5", "lots"])
    def test_rejects_bad_max_value(self, max_value):
        with pytest.raises(ConfigValidationError):
            load_preprocess_config({KEY_ADAPTIVE_MAX_VALUE: max_value})

    def test_rejects_bad_toggle_and_method(self):
        with pytest.raises(ConfigValidationError):
            load_preprocess_config({KEY_GRAYSCALE: "sometimes"})
        with pytest.raises(ConfigValidationError):
            load_preprocess_config({KEY_ADAPTIVE_METHOD: "7"})

    def test_unknown_keys_are_ignored(self):
        assert load_preprocess_config({"theme": "dark"}) == PreprocessConfig()

    def test_config_errors_are_value_errors(self):
        assert issubclass(ConfigValidationError, ValueError)


class TestValidateSetting:
    """Tests for single settings edits"""

    def test_block_size(self):
        assert validate_setting(KEY_ADAPTIVE_BLOCK_SIZE, "25") == 25
        with pytest.raises(ConfigValidationError):
            validate_setting(KEY_ADAPTIVE_BLOCK_SIZE, "24")
        with pytest.raises(ConfigValidationError):
            validate_setting(KEY_ADAPTIVE_BLOCK_SIZE, "1")

    def test_max_value(self):
        assert validate_setting(KEY_ADAPTIVE_MAX_VALUE, "0.5") == 0.5
        with pytest.raises(ConfigValidationError):
            validate_setting(KEY_ADAPTIVE_MAX_VALUE, "0")

    def test_toggle_and_unknown(self):
        assert validate_setting(KEY_PERSIST_DATA, "true") is True
        with pytest.raises(ConfigValidationError):
            validate_setting("no_such_key", "1")


class TestAdaptiveThresholdParams:
    """Tests for direct construction"""

    def test_rejects_even_block_size(self):
        with pytest.raises(ConfigValidationError):
            AdaptiveThresholdParams(block_size=24)

    def test_rejects_unknown_method(self):
        with pytest.raises(ConfigValidationError):
            AdaptiveThresholdParams(method=3)

    def test_coerces_enums(self):
        params = AdaptiveThresholdParams(method=1, threshold_type=0)
        assert params.method is ThresholdMethod.GAUSSIAN
        assert params.threshold_type is ThresholdType.BINARY


def test_load_settings_file(tmp_path):
    path = tmp_path / "settings.json"
    path.write_text(json.dumps({KEY_ADAPTIVE_BLOCK_SIZE: "11", KEY_PERSIST_DATA: False}))
    config = load_settings_file(str(path))
    assert config.adaptive_params.block_size == 11
    assert not config.persist_data


def test_load_settings_file_rejects_non_object(tmp_path):
    path = tmp_path / "settings.json"
    path.write_text("[1, 2, 3]")
    with pytest.raises(ConfigValidationError):
        load_settings_file(str(path))
