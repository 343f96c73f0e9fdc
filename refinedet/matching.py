'''
 #  Copyright (c) 2025 Gahan AI Private Limited
 #  Author: Pallab Maji
 #  Create Time: 2025-11-03 11:30:00
 #  Modified time: 2025-11-03 11:30:00
 #  Description: Anchor to ground-truth matching for the RefineDet loss.
 #  Description (Legacy): Every ground truth claims its best anchor, every anchor
 #       above the IoU threshold becomes positive, and each anchor keeps the
 #       ground truth it overlaps most.
'''

from __future__ import annotations

import logging

import torch

from .anchors import AnchorSet
from .boxes import box_iou_center
from .targets import AnchorAssignment, GroundTruth

LOGGER = logging.getLogger("gai_refinedet.matching")


class AnchorMatcher:
    """Assigns ground-truth boxes to anchors with the SSD/RefineDet policy."""

    def __init__(self, *, positive_iou_threshold: float = 0.5) -> None:
        if not 0.0 <= positive_iou_threshold <= 1.0:
            raise ValueError("positive_iou_threshold must lie in [0, 1]")
        self.positive_iou_threshold = float(positive_iou_threshold)

    @torch.no_grad()
    def __call__(self, anchors: AnchorSet, ground_truth: GroundTruth) -> AnchorAssignment:
        num_anchors = len(anchors)
        device = anchors.centers.device
        dtype = anchors.centers.dtype

        matched_gt = torch.full((num_anchors,), -1, dtype=torch.long, device=device)
        best_iou = torch.zeros(num_anchors, dtype=dtype, device=device)
        target_centers = torch.zeros((num_anchors, 2), dtype=dtype, device=device)
        target_sizes = torch.zeros((num_anchors, 2), dtype=dtype, device=device)
        positive_mask = torch.zeros(num_anchors, dtype=torch.bool, device=device)

        gt_centers = ground_truth.centers.to(device=device, dtype=dtype)
        gt_sizes = ground_truth.sizes.to(device=device, dtype=dtype)
        class_ids = ground_truth.class_ids.to(device=device)

        if ground_truth.num_boxes > 0:
            ious = box_iou_center(anchors.centers, anchors.sizes, gt_centers, gt_sizes)
            for gt_index in range(ground_truth.num_boxes):
                gt_ious = ious[:, gt_index]

                # strict comparison: ties keep the earlier ground truth
                improved = gt_ious > best_iou
                matched_gt[improved] = gt_index
                best_iou[improved] = gt_ious[improved]
                target_centers[improved] = gt_centers[gt_index]
                target_sizes[improved] = gt_sizes[gt_index]

                best_anchor = int(torch.argmax(gt_ious).item())
                positive_mask[best_anchor] = True
                if matched_gt[best_anchor] < 0:
                    # box overlaps no anchor at all; keep a target for its forced positive
                    matched_gt[best_anchor] = gt_index
                    target_centers[best_anchor] = gt_centers[gt_index]
                    target_sizes[best_anchor] = gt_sizes[gt_index]

                positive_mask |= gt_ious > self.positive_iou_threshold

        target_class = torch.where(
            matched_gt >= 0,
            class_ids[matched_gt.clamp(min=0)] if ground_truth.num_boxes > 0 else torch.zeros_like(matched_gt),
            torch.zeros_like(matched_gt),
        )

        assignment = AnchorAssignment(
            matched_gt=matched_gt,
            best_iou=best_iou,
            target_centers=target_centers,
            target_sizes=target_sizes,
            target_class=target_class,
            positive_mask=positive_mask,
        )
        LOGGER.debug(
            "Matched %d ground-truth boxes to %d positive anchors",
            ground_truth.num_boxes,
            assignment.num_positives,
        )
        return assignment


__all__ = ["AnchorMatcher"]
