'''
 #  Copyright (c) 2025 Gahan AI Private Limited
 #  Author: Pallab Maji
 #  Create Time: 2025-11-03 10:05:00
 #  Modified time: 2025-11-03 10:05:00
 #  Description: Typed configuration for the RefineDet two-stage detection loss.
 #  Description (Legacy): Replaces runtime property-string parsing with a frozen
 #       dataclass validated at construction time.
'''

from __future__ import annotations

from dataclasses import dataclass, fields
from typing import Any, Dict, Mapping, Sequence, Tuple

from .exceptions import ConfigurationError


@dataclass(frozen=True)
class LossConfig:
    """Normalized configuration for the ARM/ODM loss.

    The defaults reproduce the reference detector: four feature-map scales,
    three aspect ratios, 21 classes and up to five ground-truth boxes per image.
    """

    num_classes: int = 21
    max_gt_boxes: int = 5
    feature_map_sizes: Tuple[int, ...] = (28, 14, 4, 2)
    strides: Tuple[int, ...] = (8, 16, 32, 64)
    anchor_sizes: Tuple[float, ...] = (32.0, 64.0, 128.0, 256.0)
    aspect_ratios: Tuple[float, ...] = (0.5, 1.0, 2.0)
    positive_iou_threshold: float = 0.5
    background_confidence_threshold: float = 0.99
    negative_ratio: float = 3.0
    arm_conf_loss_divider: float = 1.0
    epsilon: float = 1e-20

    def __post_init__(self) -> None:
        for name in ("feature_map_sizes", "strides", "anchor_sizes", "aspect_ratios"):
            value = getattr(self, name)
            if not isinstance(value, tuple):
                object.__setattr__(self, name, tuple(value))

        if self.num_classes < 2:
            raise ConfigurationError("num_classes must include background and at least one object class")
        if self.max_gt_boxes <= 0:
            raise ConfigurationError("max_gt_boxes must be a positive integer")
        if not self.feature_map_sizes:
            raise ConfigurationError("At least one feature map scale is required")
        if not len(self.feature_map_sizes) == len(self.strides) == len(self.anchor_sizes):
            raise ConfigurationError("feature_map_sizes, strides and anchor_sizes must have the same length")
        if any(size <= 0 for size in self.feature_map_sizes):
            raise ConfigurationError("feature_map_sizes must be positive")
        if any(stride <= 0 for stride in self.strides):
            raise ConfigurationError("strides must be positive")
        if any(size <= 0 for size in self.anchor_sizes):
            raise ConfigurationError("anchor_sizes must be positive")
        if not self.aspect_ratios or any(ratio <= 0 for ratio in self.aspect_ratios):
            raise ConfigurationError("aspect_ratios must be a non-empty sequence of positive values")
        if not 0.0 <= self.positive_iou_threshold <= 1.0:
            raise ConfigurationError("positive_iou_threshold must lie in [0, 1]")
        if not 0.0 < self.background_confidence_threshold <= 1.0:
            raise ConfigurationError("background_confidence_threshold must lie in (0, 1]")
        if self.negative_ratio < 0:
            raise ConfigurationError("negative_ratio must be non-negative")
        if self.arm_conf_loss_divider <= 0:
            raise ConfigurationError("arm_conf_loss_divider must be positive")
        if self.epsilon < 0:
            raise ConfigurationError("epsilon must be non-negative")

    @property
    def prediction_width(self) -> int:
        # ARM yx, ARM hw, ARM conf, ODM yx, ODM hw, ODM conf
        return 2 + 2 + 2 + 2 + 2 + self.num_classes

    @property
    def label_width(self) -> int:
        # presence flag, yx1, yx2, one-hot class
        return 1 + 2 + 2 + self.num_classes

    @property
    def num_anchors(self) -> int:
        cells = sum(size * size for size in self.feature_map_sizes)
        return cells * len(self.aspect_ratios)

    @classmethod
    def from_config(cls, raw_config: Mapping[str, Any] | None) -> "LossConfig":
        raw_config = raw_config or {}
        section = raw_config.get("loss", {}) if "loss" in raw_config else raw_config
        if section is None:
            section = {}
        if not isinstance(section, Mapping):
            raise ConfigurationError(f"Expected a mapping for the loss section, got {type(section)!r}")

        known = {item.name for item in fields(cls)}
        unknown = sorted(set(section) - known)
        if unknown:
            raise ConfigurationError(f"Unknown loss configuration keys: {unknown}")

        kwargs: Dict[str, Any] = {}
        for item in fields(cls):
            if item.name not in section:
                continue
            value = section[item.name]
            if item.name in ("num_classes", "max_gt_boxes"):
                kwargs[item.name] = int(value)
            elif item.name in ("feature_map_sizes", "strides"):
                kwargs[item.name] = tuple(int(v) for v in value)
            elif item.name in ("anchor_sizes", "aspect_ratios"):
                kwargs[item.name] = tuple(float(v) for v in value)
            else:
                kwargs[item.name] = float(value)
        return cls(**kwargs)

    def to_dict(self) -> Dict[str, Any]:
        return {
            item.name: list(getattr(self, item.name)) if isinstance(getattr(self, item.name), tuple)
            else getattr(self, item.name)
            for item in fields(self)
        }


def validate_properties(values: Sequence[str] | None) -> None:
    """Reject host-supplied property strings; the loss takes no runtime properties."""
    if values:
        raise ConfigurationError(f"Unknown loss properties count {len(values)}: {list(values)}")


__all__ = ["LossConfig", "validate_properties"]
