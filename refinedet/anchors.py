'''
 #  Copyright (c) 2025 Gahan AI Private Limited
 #  Author: Pallab Maji
 #  Create Time: 2025-11-03 10:20:00
 #  Modified time: 2025-11-03 10:20:00
 #  Description: Multi-scale anchor grid used by the RefineDet loss.
 #  Description (Legacy): Generates fixed center/size anchors for every feature
 #       map cell and aspect ratio, enumerated as (scale, row, col, ratio).
'''

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

import torch

from .config import LossConfig

LOGGER = logging.getLogger("gai_refinedet.anchors")


@dataclass(frozen=True)
class AnchorSet:
    """Flattened anchors shared by every batch item.

    Attributes:
        centers: Tensor of shape (A, 2) holding (center_y, center_x).
        sizes: Tensor of shape (A, 2) holding (height, width).
    """

    centers: torch.Tensor
    sizes: torch.Tensor

    def __len__(self) -> int:
        return int(self.centers.shape[0])

    def to(self, device: Optional[torch.device] = None, dtype: Optional[torch.dtype] = None) -> "AnchorSet":
        return AnchorSet(
            centers=self.centers.to(device=device, dtype=dtype),
            sizes=self.sizes.to(device=device, dtype=dtype),
        )


class AnchorGrid:
    """Deterministic anchor generator for a fixed set of feature-map scales."""

    def __init__(
        self,
        *,
        feature_map_sizes: Sequence[int],
        strides: Sequence[int],
        anchor_sizes: Sequence[float],
        aspect_ratios: Sequence[float],
    ) -> None:
        if not len(feature_map_sizes) == len(strides) == len(anchor_sizes):
            raise ValueError("feature_map_sizes, strides and anchor_sizes must have the same length")
        if not aspect_ratios:
            raise ValueError("At least one aspect ratio is required")
        self.feature_map_sizes = tuple(int(size) for size in feature_map_sizes)
        self.strides = tuple(int(stride) for stride in strides)
        self.anchor_sizes = tuple(float(size) for size in anchor_sizes)
        self.aspect_ratios = tuple(float(ratio) for ratio in aspect_ratios)
        self._cache: Optional[AnchorSet] = None

    @classmethod
    def from_config(cls, config: LossConfig) -> "AnchorGrid":
        return cls(
            feature_map_sizes=config.feature_map_sizes,
            strides=config.strides,
            anchor_sizes=config.anchor_sizes,
            aspect_ratios=config.aspect_ratios,
        )

    @property
    def num_anchors(self) -> int:
        return sum(size * size for size in self.feature_map_sizes) * len(self.aspect_ratios)

    @property
    def anchors(self) -> AnchorSet:
        if self._cache is None:
            centers, sizes = self._build()
            self._cache = AnchorSet(centers=centers, sizes=sizes)
            LOGGER.info("Generated %d anchors over %d scales", len(self._cache), len(self.feature_map_sizes))
        return self._cache

    def generate(self) -> Tuple[torch.Tensor, torch.Tensor]:
        """Return ``(centers, sizes)`` tensors of shape (A, 2).

        The tensors are cached after the first call, so repeated calls return
        identical values.
        """
        anchors = self.anchors
        return anchors.centers, anchors.sizes

    def index_of(self, scale: int, row: int, col: int, ratio: int) -> int:
        """Flat anchor index of ``(scale, row, col, ratio)``."""
        if not 0 <= scale < len(self.feature_map_sizes):
            raise IndexError(f"Scale index {scale} out of range")
        size = self.feature_map_sizes[scale]
        if not (0 <= row < size and 0 <= col < size and 0 <= ratio < len(self.aspect_ratios)):
            raise IndexError(f"Anchor position ({row}, {col}, {ratio}) out of range for scale {scale}")
        num_ratios = len(self.aspect_ratios)
        offset = sum(s * s for s in self.feature_map_sizes[:scale]) * num_ratios
        return offset + (row * size + col) * num_ratios + ratio

    def _build(self) -> Tuple[torch.Tensor, torch.Tensor]:
        centers: List[torch.Tensor] = []
        sizes: List[torch.Tensor] = []
        for feature_map_size, stride, anchor_size in zip(self.feature_map_sizes, self.strides, self.anchor_sizes):
            scale_centers, scale_sizes = self._build_scale(feature_map_size, stride, anchor_size)
            centers.append(scale_centers)
            sizes.append(scale_sizes)
        return torch.cat(centers, dim=0), torch.cat(sizes, dim=0)

    def _build_scale(self, feature_map_size: int, stride: int, anchor_size: float) -> Tuple[torch.Tensor, torch.Tensor]:
        num_ratios = len(self.aspect_ratios)
        offsets = (torch.arange(feature_map_size, dtype=torch.float32) + 0.5) * stride
        rows, cols = torch.meshgrid(offsets, offsets, indexing="ij")
        cell_centers = torch.stack([rows, cols], dim=-1).reshape(-1, 1, 2)
        centers = cell_centers.expand(-1, num_ratios, 2).reshape(-1, 2)

        priors = torch.tensor(
            [[anchor_size * math.sqrt(ratio), anchor_size / math.sqrt(ratio)] for ratio in self.aspect_ratios],
            dtype=torch.float32,
        )
        sizes = priors.unsqueeze(0).expand(feature_map_size * feature_map_size, -1, -1).reshape(-1, 2)
        return centers.contiguous(), sizes.contiguous()


__all__ = ["AnchorGrid", "AnchorSet"]
