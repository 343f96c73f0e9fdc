'''
 #  Copyright (c) 2025 Gahan AI Private Limited
 #  Author: Pallab Maji
 #  Create Time: 2025-11-03 10:40:00
 #  Modified time: 2025-11-03 10:40:00
 #  Description: Box geometry helpers for anchor matching and target encoding.
 #  Description (Legacy): Converts between corner and center/size forms, computes
 #       pairwise IoU and encodes center-offset/log-size regression targets.
'''

from __future__ import annotations

from typing import Tuple

import torch
from torchvision.ops import box_convert


def center_to_corners(centers: torch.Tensor, sizes: torch.Tensor) -> Tuple[torch.Tensor, torch.Tensor]:
    """Convert (y, x)/(h, w) boxes into their (y1, x1) and (y2, x2) corners."""
    corners = box_convert(torch.cat([centers, sizes], dim=-1).reshape(-1, 4), in_fmt="cxcywh", out_fmt="xyxy")
    corners = corners.reshape(*centers.shape[:-1], 4)
    return corners[..., 0:2], corners[..., 2:4]


def corners_to_center(yx1: torch.Tensor, yx2: torch.Tensor) -> Tuple[torch.Tensor, torch.Tensor]:
    """Convert (y1, x1)/(y2, x2) corners into (y, x) centers and (h, w) sizes."""
    boxes = box_convert(torch.cat([yx1, yx2], dim=-1).reshape(-1, 4), in_fmt="xyxy", out_fmt="cxcywh")
    boxes = boxes.reshape(*yx1.shape[:-1], 4)
    return boxes[..., 0:2], boxes[..., 2:4]


def box_iou_center(
    centers_a: torch.Tensor,
    sizes_a: torch.Tensor,
    centers_b: torch.Tensor,
    sizes_b: torch.Tensor,
) -> torch.Tensor:
    """Pairwise IoU between boxes given in center/size form.

    Args:
        centers_a: Tensor of shape (N, 2).
        sizes_a: Tensor of shape (N, 2).
        centers_b: Tensor of shape (M, 2) or (2,) for a single box.
        sizes_b: Tensor of shape (M, 2) or (2,) for a single box.

    Returns:
        Tensor of shape (N, M), or (N,) when a single box ``b`` is given. Pairs
        whose union is not positive get an IoU of zero.
    """
    single = centers_b.dim() == 1
    if single:
        centers_b = centers_b.unsqueeze(0)
        sizes_b = sizes_b.unsqueeze(0)

    a_min, a_max = center_to_corners(centers_a, sizes_a)
    b_min, b_max = center_to_corners(centers_b, sizes_b)

    inter_min = torch.maximum(a_min[:, None, :], b_min[None, :, :])
    inter_max = torch.minimum(a_max[:, None, :], b_max[None, :, :])
    inter_hw = (inter_max - inter_min).clamp(min=0.0)
    inter_area = inter_hw[..., 0] * inter_hw[..., 1]

    area_a = sizes_a[:, 0] * sizes_a[:, 1]
    area_b = sizes_b[:, 0] * sizes_b[:, 1]
    union = area_a[:, None] + area_b[None, :] - inter_area

    valid = union > 0
    safe_union = torch.where(valid, union, torch.ones_like(union))
    iou = torch.where(valid, inter_area / safe_union, torch.zeros_like(union))
    return iou[:, 0] if single else iou


def encode_offsets(
    target_centers: torch.Tensor,
    target_sizes: torch.Tensor,
    anchor_centers: torch.Tensor,
    anchor_sizes: torch.Tensor,
    *,
    eps: float = 1e-20,
) -> torch.Tensor:
    """Encode boxes relative to anchors as (dy, dx, log dh, log dw), shape (A, 4)."""
    center_offsets = (target_centers - anchor_centers) / anchor_sizes
    size_offsets = torch.log(target_sizes / anchor_sizes + eps)
    return torch.cat([center_offsets, size_offsets], dim=-1)


__all__ = ["center_to_corners", "corners_to_center", "box_iou_center", "encode_offsets"]
