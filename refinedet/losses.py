'''
 #  Copyright (c) 2025 Gahan AI Private Limited
 #  Author: Pallab Maji
 #  Create Time: 2025-11-03 12:00:00
 #  Modified time: 2025-11-03 12:00:00
 #  Description: Masked classification and box regression losses with analytic gradients.
 #  Description (Legacy): Softmax cross-entropy with an additive log guard,
 #       per-anchor cross-entropy for hard negative mining and smooth-L1 over
 #       center-offset/log-size encodings.
'''

from __future__ import annotations

from typing import Optional, Tuple

import torch
import torch.nn.functional as F

LOG_EPSILON = 1e-20


def _label_log_probs(logits: torch.Tensor, labels: torch.Tensor, eps: float) -> torch.Tensor:
    probs = torch.softmax(logits, dim=-1)
    label_probs = probs.gather(-1, labels.long().unsqueeze(-1)).squeeze(-1)
    return torch.log(label_probs + eps)


def cross_entropy(
    logits: torch.Tensor,
    labels: torch.Tensor,
    mask: Optional[torch.Tensor] = None,
    *,
    eps: float = LOG_EPSILON,
) -> torch.Tensor:
    """Summed softmax cross-entropy ``-sum(log(softmax(logits)[label] + eps))``.

    Args:
        logits: Tensor of shape (A, K).
        labels: Integer tensor of shape (A,).
        mask: Optional boolean tensor of shape (A,); anchors where it is false
            are left out of the sum.
        eps: Additive guard applied before the log.
    """
    per_anchor = -_label_log_probs(logits, labels, eps)
    if mask is not None:
        per_anchor = torch.where(mask, per_anchor, torch.zeros_like(per_anchor))
    return per_anchor.sum()


def cross_entropy_per_anchor(
    logits: torch.Tensor,
    labels: torch.Tensor,
    *,
    eps: float = LOG_EPSILON,
) -> Tuple[torch.Tensor, torch.Tensor]:
    """Unreduced cross-entropy as ``(anchor_indices, losses)``, used for mining."""
    losses = -_label_log_probs(logits, labels, eps)
    indices = torch.arange(losses.shape[0], device=losses.device)
    return indices, losses


def cross_entropy_derivative(
    logits: torch.Tensor,
    labels: torch.Tensor,
    normalizer: float,
    mask: Optional[torch.Tensor] = None,
) -> torch.Tensor:
    """Gradient of :func:`cross_entropy` divided by ``normalizer``."""
    grad = torch.softmax(logits, dim=-1) - F.one_hot(labels.long(), num_classes=logits.shape[-1]).to(logits.dtype)
    if mask is not None:
        grad = torch.where(mask.unsqueeze(-1), grad, torch.zeros_like(grad))
    return grad / normalizer


def smooth_l1(predictions: torch.Tensor, targets: torch.Tensor, mask: torch.Tensor) -> torch.Tensor:
    """Smooth-L1 summed over the 4 box channels and over anchors where ``mask`` is set."""
    per_element = F.smooth_l1_loss(predictions, targets, reduction="none", beta=1.0)
    per_anchor = per_element.sum(dim=-1)
    per_anchor = torch.where(mask, per_anchor, torch.zeros_like(per_anchor))
    return per_anchor.sum()


def smooth_l1_derivative(
    predictions: torch.Tensor,
    targets: torch.Tensor,
    mask: torch.Tensor,
    normalizer: float,
) -> Tuple[torch.Tensor, torch.Tensor]:
    """Gradient of :func:`smooth_l1` split into center-offset and size-offset blocks."""
    grad = (predictions - targets).clamp(min=-1.0, max=1.0)
    grad = torch.where(mask.unsqueeze(-1), grad, torch.zeros_like(grad)) / normalizer
    return grad[..., 0:2], grad[..., 2:4]


__all__ = [
    "LOG_EPSILON",
    "cross_entropy",
    "cross_entropy_per_anchor",
    "cross_entropy_derivative",
    "smooth_l1",
    "smooth_l1_derivative",
]
