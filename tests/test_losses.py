'''
 #  Copyright (c) 2025 Gahan AI Private Limited
 #  Author: Pallab Maji
 #  Create Time: 2025-11-04 10:20:00
 #  Modified time: 2025-11-04 10:20:00
 #  Description: Tests for the masked cross-entropy and smooth-L1 losses and their gradients.
'''

from __future__ import annotations

import math
import sys
from pathlib import Path

import torch
import torch.nn.functional as F

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from refinedet.losses import (
    cross_entropy,
    cross_entropy_derivative,
    cross_entropy_per_anchor,
    smooth_l1,
    smooth_l1_derivative,
)


def test_smooth_l1_is_piecewise() -> None:
    predictions = torch.tensor([[0.5, -0.5, 2.0, -3.0], [9.0, 9.0, 9.0, 9.0]])
    targets = torch.zeros(2, 4)
    mask = torch.tensor([True, False])
    loss = smooth_l1(predictions, targets, mask)
    assert math.isclose(loss.item(), 0.125 + 0.125 + 1.5 + 2.5, rel_tol=1e-6)


def test_smooth_l1_derivative_matches_autograd() -> None:
    generator = torch.Generator().manual_seed(0)
    predictions = (torch.randn(64, 4, generator=generator, dtype=torch.float64) * 2.0).requires_grad_(True)
    targets = torch.randn(64, 4, generator=generator, dtype=torch.float64)
    mask = torch.rand(64, generator=generator) > 0.5

    smooth_l1(predictions, targets, mask).backward()
    center_grad, size_grad = smooth_l1_derivative(predictions.detach(), targets, mask, normalizer=1.0)

    torch.testing.assert_close(torch.cat([center_grad, size_grad], dim=-1), predictions.grad)
    assert (center_grad[~mask] == 0).all()
    assert center_grad.abs().max().item() <= 1.0


def test_smooth_l1_derivative_is_divided_by_normalizer() -> None:
    predictions = torch.tensor([[0.5, -2.0, 0.25, 4.0]])
    center_grad, size_grad = smooth_l1_derivative(predictions, torch.zeros(1, 4), torch.tensor([True]), normalizer=4.0)
    torch.testing.assert_close(center_grad, torch.tensor([[0.125, -0.25]]))
    torch.testing.assert_close(size_grad, torch.tensor([[0.0625, 0.25]]))


def test_cross_entropy_confident_prediction() -> None:
    logits = torch.tensor([[0.0, 50.0]])
    assert cross_entropy(logits, torch.tensor([1])).item() < 1e-6
    assert cross_entropy(logits, torch.tensor([0])).item() > 40.0


def test_cross_entropy_matches_negative_log_probability() -> None:
    logits = torch.tensor([[1.0, 2.0, 0.5]])
    expected = -torch.log_softmax(logits, dim=-1)[0, 1]
    torch.testing.assert_close(cross_entropy(logits, torch.tensor([1])), expected)


def test_masked_cross_entropy_skips_rows() -> None:
    generator = torch.Generator().manual_seed(3)
    logits = torch.randn(10, 5, generator=generator)
    labels = torch.randint(0, 5, (10,), generator=generator)
    mask = torch.zeros(10, dtype=torch.bool)
    mask[[1, 4, 7]] = True

    expected = F.cross_entropy(logits[mask], labels[mask], reduction="sum")
    torch.testing.assert_close(cross_entropy(logits, labels, mask), expected)
    torch.testing.assert_close(cross_entropy(logits, labels), F.cross_entropy(logits, labels, reduction="sum"))


def test_cross_entropy_per_anchor_is_consistent() -> None:
    generator = torch.Generator().manual_seed(4)
    logits = torch.randn(6, 3, generator=generator)
    labels = torch.tensor([0, 1, 2, 0, 1, 2])

    indices, losses = cross_entropy_per_anchor(logits, labels)
    assert indices.tolist() == list(range(6))
    torch.testing.assert_close(losses, F.cross_entropy(logits, labels, reduction="none"))
    torch.testing.assert_close(losses.sum(), cross_entropy(logits, labels))


def test_cross_entropy_derivative_matches_autograd() -> None:
    generator = torch.Generator().manual_seed(5)
    logits = torch.randn(12, 21, generator=generator, dtype=torch.float64).requires_grad_(True)
    labels = torch.randint(0, 21, (12,), generator=generator)
    mask = torch.rand(12, generator=generator) > 0.3

    (cross_entropy(logits, labels, mask) / 3.0).backward()
    grad = cross_entropy_derivative(logits.detach(), labels, 3.0, mask=mask)

    torch.testing.assert_close(grad, logits.grad)
    assert (grad[~mask] == 0).all()
    torch.testing.assert_close(grad.sum(dim=-1), torch.zeros(12, dtype=torch.float64))
