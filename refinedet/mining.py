'''
 #  Copyright (c) 2025 Gahan AI Private Limited
 #  Author: Pallab Maji
 #  Create Time: 2025-11-03 12:30:00
 #  Modified time: 2025-11-03 12:30:00
 #  Description: Hard negative mining for the ODM classification loss.
'''

from __future__ import annotations

import logging
import math

import torch

from .losses import LOG_EPSILON, cross_entropy_per_anchor
from .targets import MiningResult

LOGGER = logging.getLogger("gai_refinedet.mining")


class HardNegativeMiner:
    """Selects negatives for the ODM loss.

    Negatives the ARM already rejects with high background confidence are
    dropped first. If more than ``negative_ratio`` negatives per positive remain,
    the lowest-loss ones are dropped until the cap holds, so the kept set is the
    hardest negatives.
    """

    def __init__(
        self,
        *,
        background_confidence_threshold: float = 0.99,
        negative_ratio: float = 3.0,
        eps: float = LOG_EPSILON,
    ) -> None:
        if negative_ratio < 0:
            raise ValueError("negative_ratio must be non-negative")
        self.background_confidence_threshold = float(background_confidence_threshold)
        self.negative_ratio = float(negative_ratio)
        self.eps = float(eps)

    @torch.no_grad()
    def __call__(self, arm_logits: torch.Tensor, positive_mask: torch.Tensor) -> MiningResult:
        num_positives = int(positive_mask.sum().item())
        negative_mask = ~positive_mask

        background_prob = torch.softmax(arm_logits, dim=-1)[:, 0]
        easy = negative_mask & (background_prob > self.background_confidence_threshold)
        num_filtered = int(easy.sum().item())
        negative_mask = negative_mask & ~easy
        num_negatives = int(negative_mask.sum().item())

        max_negatives = int(math.floor(self.negative_ratio * num_positives))
        if num_negatives > max_negatives:
            excess = num_negatives - max_negatives
            _, losses = cross_entropy_per_anchor(arm_logits, positive_mask.long(), eps=self.eps)
            order = torch.argsort(losses, stable=True)
            ordered_negatives = negative_mask[order]
            rank = torch.cumsum(ordered_negatives.long(), dim=0)
            dropped = order[ordered_negatives & (rank <= excess)]
            negative_mask[dropped] = False
            num_negatives -= int(dropped.numel())

        LOGGER.debug(
            "Mining kept %d negatives for %d positives (%d filtered by background confidence)",
            num_negatives,
            num_positives,
            num_filtered,
        )
        return MiningResult(
            negative_mask=negative_mask,
            pos_neg_mask=positive_mask | negative_mask,
            num_negatives=num_negatives,
            num_filtered=num_filtered,
        )


__all__ = ["HardNegativeMiner"]
