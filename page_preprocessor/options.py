"""Per-request preprocessing options."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import IntEnum

DEFAULT_BLOCK_SIZE = 25
DEFAULT_CONSTANT_OFFSET = 10.0
DEFAULT_MAX_VALUE = 200.0


class ConfigValidationError(ValueError):
    """Raised for option values the pipeline must never run with."""


class ThresholdMethod(IntEnum):
    """Local threshold statistic. Values match OpenCV's ADAPTIVE_THRESH_* constants."""

    MEAN = 0
    GAUSSIAN = 1


class ThresholdType(IntEnum):
    """Output polarity. Values match OpenCV's THRESH_BINARY / THRESH_BINARY_INV."""

    BINARY = 0
    BINARY_INVERTED = 1


def check_block_size(block_size: int) -> int:
    if isinstance(block_size, bool) or not isinstance(block_size, int):
        raise ConfigValidationError(f"block_size must be an integer, got {block_size!r}")
    if block_size <= 1 or block_size % 2 == 0:
        raise ConfigValidationError(f"block_size must be odd and greater than 1, got {block_size}")
    return block_size


def check_max_value(max_value: float) -> float:
    if isinstance(max_value, bool) or not isinstance(max_value, (int, float)):
        raise ConfigValidationError(f"max_value must be a number, got {max_value!r}")
    if max_value <= 0:
        raise ConfigValidationError(f"max_value must be greater than 0, got {max_value}")
    return float(max_value)


@dataclass(frozen=True)
class AdaptiveThresholdParams:
    method: ThresholdMethod = ThresholdMethod.MEAN
    threshold_type: ThresholdType = ThresholdType.BINARY
    block_size: int = DEFAULT_BLOCK_SIZE
    constant_offset: float = DEFAULT_CONSTANT_OFFSET
    max_value: float = DEFAULT_MAX_VALUE

    def __post_init__(self) -> None:
        try:
            object.__setattr__(self, "method", ThresholdMethod(self.method))
        except ValueError as exc:
            raise ConfigValidationError(f"Unknown adaptive threshold method: {self.method!r}") from exc
        try:
            object.__setattr__(self, "threshold_type", ThresholdType(self.threshold_type))
        except ValueError as exc:
            raise ConfigValidationError(f"Unknown adaptive threshold type: {self.threshold_type!r}") from exc
        check_block_size(self.block_size)
        object.__setattr__(self, "max_value", check_max_value(self.max_value))
        if isinstance(self.constant_offset, bool) or not isinstance(self.constant_offset, (int, float)):
            raise ConfigValidationError(f"constant_offset must be a number, got {self.constant_offset!r}")
        object.__setattr__(self, "constant_offset", float(self.constant_offset))


@dataclass(frozen=True)
class PreprocessConfig:
    """
    Stage toggles and adaptive threshold parameters for one request.

    Built once when a request starts and passed explicitly; never mutated.
    """

    grayscale: bool = True
    contrast_norm: bool = True
    unsharp_mask: bool = True
    otsu_threshold: bool = True
    deskew: bool = True
    adaptive_threshold: bool = True
    adaptive_params: AdaptiveThresholdParams = field(default_factory=AdaptiveThresholdParams)
    persist_data: bool = True

    @classmethod
    def disabled(cls) -> "PreprocessConfig":
        """A config with every stage switched off."""
        return cls(
            grayscale=False,
            contrast_norm=False,
            unsharp_mask=False,
            otsu_threshold=False,
            deskew=False,
            adaptive_threshold=False,
        )

    def with_stages(self, **toggles: bool) -> "PreprocessConfig":
        return replace(self, **toggles)
