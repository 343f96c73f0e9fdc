'''
 #  Copyright (c) 2025 Gahan AI Private Limited
 #  Author: Pallab Maji
 #  Create Time: 2025-11-04 09:40:00
 #  Modified time: 2025-11-04 09:40:00
 #  Description: Tests for anchor matching and ground-truth parsing.
'''

from __future__ import annotations

import sys
from pathlib import Path

import torch

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from refinedet import AnchorGrid, AnchorMatcher, GroundTruth, LossConfig
from refinedet.boxes import box_iou_center


def _anchors():
    return AnchorGrid.from_config(LossConfig()).anchors


def _ground_truth(boxes: list[tuple[float, float, float, float]], classes: list[int]) -> GroundTruth:
    centers = torch.tensor([[cy, cx] for cy, cx, _, _ in boxes], dtype=torch.float32).reshape(-1, 2)
    sizes = torch.tensor([[h, w] for _, _, h, w in boxes], dtype=torch.float32).reshape(-1, 2)
    return GroundTruth(centers=centers, sizes=sizes, class_ids=torch.tensor(classes, dtype=torch.long))


def test_exact_anchor_match_is_positive() -> None:
    grid = AnchorGrid.from_config(LossConfig())
    anchors = grid.anchors
    index = grid.index_of(2, 1, 2, 1)
    center = anchors.centers[index].tolist()
    size = anchors.sizes[index].tolist()

    assignment = AnchorMatcher()(anchors, _ground_truth([(center[0], center[1], size[0], size[1])], [7]))

    assert assignment.positive_mask[index]
    assert assignment.matched_gt[index].item() == 0
    assert assignment.best_iou[index].item() == 1.0
    assert assignment.target_class[index].item() == 7
    torch.testing.assert_close(assignment.target_centers[index], anchors.centers[index])


def test_every_ground_truth_gets_a_positive_anchor() -> None:
    anchors = _anchors()
    boxes = [(40.0, 50.0, 30.0, 20.0), (150.0, 100.0, 90.0, 120.0), (200.0, 30.0, 12.0, 12.0)]
    ground_truth = _ground_truth(boxes, [1, 2, 3])
    assignment = AnchorMatcher()(anchors, ground_truth)

    ious = box_iou_center(anchors.centers, anchors.sizes, ground_truth.centers, ground_truth.sizes)
    for gt_index in range(len(boxes)):
        assert assignment.positive_mask[ious[:, gt_index].argmax()]

    expected = (ious > 0.5).any(dim=1)
    expected[ious.argmax(dim=0)] = True
    assert torch.equal(assignment.positive_mask, expected)
    assert assignment.num_positives == int(expected.sum().item())


def test_each_anchor_keeps_its_best_ground_truth() -> None:
    anchors = _anchors()
    boxes = [(60.0, 60.0, 64.0, 64.0), (80.0, 70.0, 64.0, 96.0), (180.0, 180.0, 100.0, 60.0)]
    ground_truth = _ground_truth(boxes, [4, 5, 6])
    assignment = AnchorMatcher()(anchors, ground_truth)

    ious = box_iou_center(anchors.centers, anchors.sizes, ground_truth.centers, ground_truth.sizes)
    best_iou, best_gt = ious.max(dim=1)
    overlapping = best_iou > 0
    assert torch.equal(assignment.matched_gt[overlapping], best_gt[overlapping])
    torch.testing.assert_close(assignment.best_iou, best_iou)
    assert (assignment.matched_gt[~overlapping] == -1).all()

    classes = torch.tensor([4, 5, 6])
    assert torch.equal(assignment.target_class[overlapping], classes[best_gt[overlapping]])
    assert (assignment.target_class[~overlapping] == 0).all()
    assert (assignment.target_sizes[~overlapping] == 0).all()


def test_ties_keep_the_earlier_ground_truth() -> None:
    anchors = _anchors()
    box = (100.0, 100.0, 64.0, 64.0)
    assignment = AnchorMatcher()(anchors, _ground_truth([box, box], [3, 9]))

    matched = assignment.matched_gt >= 0
    assert matched.any()
    assert (assignment.matched_gt[matched] == 0).all()
    assert (assignment.target_class[matched] == 3).all()


def test_box_without_overlap_still_claims_an_anchor() -> None:
    anchors = _anchors()
    assignment = AnchorMatcher()(anchors, _ground_truth([(5000.0, 5000.0, 10.0, 10.0)], [2]))

    assert assignment.num_positives == 1
    assert assignment.positive_mask[0]
    assert assignment.matched_gt[0].item() == 0
    assert assignment.target_class[0].item() == 2
    torch.testing.assert_close(assignment.target_centers[0], torch.tensor([5000.0, 5000.0]))


def test_no_ground_truth_yields_no_positives() -> None:
    anchors = _anchors()
    assignment = AnchorMatcher()(anchors, _ground_truth([], []))
    assert assignment.num_positives == 0
    assert (assignment.matched_gt == -1).all()
    assert (assignment.target_class == 0).all()


def test_ground_truth_rows_are_front_packed() -> None:
    num_classes = 4
    rows = torch.zeros(3, 5 + num_classes)
    rows[0, :5] = torch.tensor([1.0, 10.0, 20.0, 30.0, 60.0])
    rows[0, 5 + 2] = 1.0
    rows[2, :5] = torch.tensor([1.0, 0.0, 0.0, 8.0, 8.0])
    rows[2, 5 + 1] = 1.0

    ground_truth = GroundTruth.from_label_rows(rows)
    assert ground_truth.num_boxes == 1
    torch.testing.assert_close(ground_truth.centers, torch.tensor([[20.0, 40.0]]))
    torch.testing.assert_close(ground_truth.sizes, torch.tensor([[20.0, 40.0]]))
    assert ground_truth.class_ids.tolist() == [2]

    rows[0, 0] = 0.0
    assert GroundTruth.from_label_rows(rows).num_boxes == 0
