'''
 #  Copyright (c) 2025 Gahan AI Private Limited
 #  Author: Pallab Maji
 #  Create Time: 2025-11-04 11:40:00
 #  Modified time: 2025-11-04 11:40:00
 #  Description: Tests for the loss configuration and factory helpers.
 #  Description (Legacy): Ensures configuration parsing rejects unknown keys and
 #       the factory builds a working criterion from YAML or mapping input.
'''

from __future__ import annotations

import sys
from pathlib import Path

import pytest
import torch

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from refinedet import ConfigurationError, LossConfig, RefineDetCriterion, build_loss, create_loss, validate_properties
from refinedet.utils import load_yaml_config


def test_loss_config_defaults() -> None:
    config = LossConfig()
    assert config.num_classes == 21
    assert config.max_gt_boxes == 5
    assert config.feature_map_sizes == (28, 14, 4, 2)
    assert config.strides == (8, 16, 32, 64)
    assert config.prediction_width == 31
    assert config.label_width == 26
    assert config.background_confidence_threshold == 0.99
    assert config.negative_ratio == 3.0
    assert config.arm_conf_loss_divider == 1.0


def test_loss_config_from_root_mapping() -> None:
    config = LossConfig.from_config({"loss": {"negative_ratio": 2, "aspect_ratios": [1, 2]}})
    assert config.negative_ratio == 2.0
    assert config.aspect_ratios == (1.0, 2.0)
    assert config.num_anchors == 2 * (28 ** 2 + 14 ** 2 + 4 ** 2 + 2 ** 2)
    assert LossConfig.from_config(None) == LossConfig()


def test_loss_config_rejects_unknown_keys() -> None:
    with pytest.raises(ConfigurationError):
        LossConfig.from_config({"loss": {"nms_threshold": 0.45}})


@pytest.mark.parametrize(
    "overrides",
    [
        {"num_classes": 1},
        {"max_gt_boxes": 0},
        {"strides": (8, 16)},
        {"aspect_ratios": ()},
        {"positive_iou_threshold": 1.5},
        {"background_confidence_threshold": 0.0},
        {"negative_ratio": -1.0},
        {"arm_conf_loss_divider": 0.0},
    ],
)
def test_loss_config_validation(overrides: dict[str, object]) -> None:
    with pytest.raises(ConfigurationError):
        LossConfig(**overrides)


def test_validate_properties() -> None:
    validate_properties(None)
    validate_properties([])
    with pytest.raises(ConfigurationError) as excinfo:
        validate_properties(["num_classes=3"])
    assert "count 1" in str(excinfo.value)
    assert isinstance(excinfo.value, ValueError)


def test_create_loss_metadata() -> None:
    bundle = create_loss()
    assert isinstance(bundle.criterion, RefineDetCriterion)
    assert bundle.metadata["num_anchors"] == 3000
    assert len(bundle.anchors) == 3000
    assert bundle.metadata["num_classes"] == 21
    assert isinstance(build_loss({"loss": {}}), RefineDetCriterion)


def test_create_loss_from_yaml_runs_small_grid(tmp_path) -> None:
    config_path = tmp_path / "loss.yaml"
    config_path.write_text(
        "loss:\n"
        "  num_classes: 3\n"
        "  max_gt_boxes: 2\n"
        "  feature_map_sizes: [2]\n"
        "  strides: [16]\n"
        "  anchor_sizes: [16]\n"
        "  aspect_ratios: [1.0]\n",
        encoding="utf-8",
    )
    bundle = create_loss(load_yaml_config(config_path))
    assert bundle.metadata["num_anchors"] == 4
    assert bundle.metadata["prediction_width"] == 13

    predictions = torch.zeros(1, 1, 4, 13, requires_grad=True)
    labels = torch.zeros(1, 1, 2, 8)
    labels[0, 0, 0, :5] = torch.tensor([1.0, 0.0, 0.0, 16.0, 16.0])
    labels[0, 0, 0, 5 + 2] = 1.0

    loss = bundle.criterion(predictions, labels)
    loss.backward()
    assert torch.isfinite(loss).item()
    assert predictions.grad is not None
    assert predictions.grad.shape == predictions.shape


def test_load_yaml_config_errors(tmp_path) -> None:
    with pytest.raises(FileNotFoundError):
        load_yaml_config(tmp_path / "missing.yaml")
    listing = tmp_path / "list.yaml"
    listing.write_text("- 1\n- 2\n", encoding="utf-8")
    with pytest.raises(ValueError):
        load_yaml_config(listing)


def test_shipped_config_matches_defaults() -> None:
    raw = load_yaml_config(PROJECT_ROOT / "config.yaml")
    assert LossConfig.from_config(raw) == LossConfig()
