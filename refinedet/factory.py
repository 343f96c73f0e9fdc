'''
 # @ Copyright: @copyright (c) 2025 Gahan AI Private Limited
 # @ Author: Pallab Maji
 # @ Create Time: 2025-11-03 13:40:00
 # @ Modified time: 2025-11-03 13:40:00
 # @ Description: Factory utilities to construct the RefineDet loss stack.
 # @ Description (Legacy): This module builds the criterion and anchor grid from
 #      configuration mappings or an existing LossConfig instance.
'''

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional, Sequence

from torch import nn

from .anchors import AnchorSet
from .config import LossConfig
from .criterion import RefineDetCriterion

LOGGER = logging.getLogger("gai_refinedet.factory")

DEFAULT_LOSS_CONFIG: Dict[str, Any] = LossConfig().to_dict()


@dataclass
class LossBundle:
    """Container for the assembled loss components."""

    criterion: RefineDetCriterion
    anchors: AnchorSet
    metadata: Dict[str, Any]


def create_loss(
    config: Mapping[str, Any] | LossConfig | None = None,
    *,
    properties: Optional[Sequence[str]] = None,
) -> LossBundle:
    """Build the criterion and its anchor grid from configuration data.

    Args:
        config: Either a mapping (root config with a ``loss`` section, or the
            section itself) or an existing :class:`LossConfig` instance.
        properties: Host-supplied property strings. The loss accepts none, so any
            non-empty sequence is rejected.

    Returns:
        A :class:`LossBundle` with the criterion, the shared anchors and metadata.
    """

    loss_config = config if isinstance(config, LossConfig) else LossConfig.from_config(config)
    criterion = RefineDetCriterion(loss_config, properties=properties)
    anchors = criterion.engine.anchors

    metadata = {
        "num_anchors": len(anchors),
        "num_classes": loss_config.num_classes,
        "max_gt_boxes": loss_config.max_gt_boxes,
        "prediction_width": loss_config.prediction_width,
        "label_width": loss_config.label_width,
    }
    LOGGER.info(
        "Created RefineDet loss | anchors=%d | classes=%d | max_gt_boxes=%d",
        metadata["num_anchors"],
        metadata["num_classes"],
        metadata["max_gt_boxes"],
    )
    return LossBundle(criterion=criterion, anchors=anchors, metadata=metadata)


def build_loss(config: Mapping[str, Any] | LossConfig | None = None) -> nn.Module:
    merged_config = config if isinstance(config, LossConfig) else {**DEFAULT_LOSS_CONFIG, **_loss_section(config)}
    return create_loss(merged_config).criterion


def _loss_section(config: Mapping[str, Any] | None) -> Dict[str, Any]:
    if not config:
        return {}
    section = config.get("loss", {}) if "loss" in config else config
    return dict(section or {})
