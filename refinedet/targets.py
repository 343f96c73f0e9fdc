'''
 #  Copyright (c) 2025 Gahan AI Private Limited
 #  Author: Pallab Maji
 #  Create Time: 2025-11-03 11:00:00
 #  Modified time: 2025-11-03 11:00:00
 #  Description: Shared dataclasses for RefineDet matching, mining and loss state.
 #  Description (Legacy): Provides structured containers for per-image ground
 #       truth, anchor assignments and the forward state replayed by backward.
'''

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Sequence

import torch

from .boxes import corners_to_center

POSITIVE = 1
NEGATIVE = 0
IGNORED = -1


@dataclass
class GroundTruth:
    """Present ground-truth boxes of one image in center/size form.

    Attributes:
        centers: Tensor of shape (G, 2) with (center_y, center_x).
        sizes: Tensor of shape (G, 2) with (height, width).
        class_ids: Tensor of shape (G,) with integer class indices.
    """

    centers: torch.Tensor
    sizes: torch.Tensor
    class_ids: torch.Tensor

    @property
    def num_boxes(self) -> int:
        return int(self.centers.shape[0])

    @classmethod
    def from_label_rows(cls, rows: torch.Tensor) -> "GroundTruth":
        """Parse label rows laid out as [presence, y1, x1, y2, x2, one-hot class...].

        Boxes are front-packed, so parsing stops at the first row whose presence
        flag is zero.
        """
        presence = rows[:, 0]
        absent = (presence == 0).nonzero()
        num_boxes = int(absent[0].item()) if absent.numel() > 0 else int(rows.shape[0])
        present = rows[:num_boxes]
        centers, sizes = corners_to_center(present[:, 1:3], present[:, 3:5])
        class_ids = present[:, 5:].argmax(dim=-1) if num_boxes > 0 else present.new_zeros((0,), dtype=torch.long)
        return cls(centers=centers, sizes=sizes, class_ids=class_ids.to(torch.long))


@dataclass
class AnchorAssignment:
    """Best ground-truth match of every anchor for one image.

    Attributes:
        matched_gt: Tensor of shape (A,) with the matched box index, -1 when unmatched.
        best_iou: Tensor of shape (A,) with the IoU of that match.
        target_centers: Tensor of shape (A, 2), zero for unmatched anchors.
        target_sizes: Tensor of shape (A, 2), zero for unmatched anchors.
        target_class: Tensor of shape (A,) with the matched class, 0 when unmatched.
        positive_mask: Boolean tensor of shape (A,).
    """

    matched_gt: torch.Tensor
    best_iou: torch.Tensor
    target_centers: torch.Tensor
    target_sizes: torch.Tensor
    target_class: torch.Tensor
    positive_mask: torch.Tensor

    @property
    def num_positives(self) -> int:
        return int(self.positive_mask.sum().item())


@dataclass
class MiningResult:
    """Negative selection for one image."""

    negative_mask: torch.Tensor
    pos_neg_mask: torch.Tensor
    num_negatives: int
    num_filtered: int


@dataclass
class LossBreakdown:
    """Individual loss terms of one image, or their batch mean."""

    arm_conf: float = 0.0
    arm_loc: float = 0.0
    odm_conf: float = 0.0
    odm_loc: float = 0.0

    @property
    def total(self) -> float:
        return self.arm_conf + self.arm_loc + self.odm_conf + self.odm_loc

    @classmethod
    def mean(cls, items: Sequence["LossBreakdown"]) -> "LossBreakdown":
        if not items:
            return cls()
        count = float(len(items))
        return cls(
            arm_conf=sum(item.arm_conf for item in items) / count,
            arm_loc=sum(item.arm_loc for item in items) / count,
            odm_conf=sum(item.odm_conf for item in items) / count,
            odm_loc=sum(item.odm_loc for item in items) / count,
        )


@dataclass
class ItemLossState:
    """Forward-pass results for one image that backward replays.

    Attributes:
        positive_mask: Boolean tensor of shape (A,).
        pos_neg_mask: Boolean tensor of shape (A,), positives plus kept negatives.
        class_labels: Tensor of shape (A,) with ODM labels, 0 for negatives.
        box_targets: Tensor of shape (A, 4) with encoded regression targets.
        num_positives: Normalizer shared by every loss term of the image.
        breakdown: Loss terms computed in forward.
    """

    positive_mask: torch.Tensor
    pos_neg_mask: torch.Tensor
    class_labels: torch.Tensor
    box_targets: torch.Tensor
    num_positives: int
    breakdown: LossBreakdown = field(default_factory=LossBreakdown)

    @property
    def anchor_labels(self) -> torch.Tensor:
        """Tri-state label per anchor: 1 positive, 0 negative, -1 ignored."""
        labels = torch.full_like(self.class_labels, IGNORED, dtype=torch.int8)
        labels[self.pos_neg_mask] = NEGATIVE
        labels[self.positive_mask] = POSITIVE
        return labels

    @property
    def num_negatives(self) -> int:
        return int((self.pos_neg_mask & ~self.positive_mask).sum().item())


@dataclass
class BatchLossState:
    """Cached forward state of one batch; consumed by exactly one backward call."""

    predictions: torch.Tensor
    items: List[ItemLossState]
    consumed: bool = False

    @property
    def batch_size(self) -> int:
        return len(self.items)

    @property
    def breakdown(self) -> LossBreakdown:
        return LossBreakdown.mean([item.breakdown for item in self.items])


__all__ = [
    "POSITIVE",
    "NEGATIVE",
    "IGNORED",
    "GroundTruth",
    "AnchorAssignment",
    "MiningResult",
    "LossBreakdown",
    "ItemLossState",
    "BatchLossState",
]
