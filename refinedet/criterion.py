'''
 #  Copyright (c) 2025 Gahan AI Private Limited
 #  Author: Pallab Maji
 #  Create Time: 2025-11-03 13:00:00
 #  Modified time: 2025-11-03 13:00:00
 #  Description: Two-stage RefineDet loss with a hand-derived backward pass.
 #  Description (Legacy): Runs matching, hard negative mining and the four
 #       ARM/ODM loss terms per image in forward, caches the masks and targets,
 #       and replays them in backward to assemble the prediction gradient.
'''

from __future__ import annotations

import logging
from typing import List, Optional, Sequence, Tuple

import torch
from torch import nn

from .anchors import AnchorGrid, AnchorSet
from .boxes import encode_offsets
from .config import LossConfig, validate_properties
from .exceptions import LossStateError, ShapeError
from .losses import (
    cross_entropy,
    cross_entropy_derivative,
    smooth_l1,
    smooth_l1_derivative,
)
from .matching import AnchorMatcher
from .mining import HardNegativeMiner
from .targets import BatchLossState, GroundTruth, ItemLossState, LossBreakdown

LOGGER = logging.getLogger("gai_refinedet.criterion")


class RefineDetLoss:
    """Forward/backward driver for the ARM and ODM losses.

    ``forward`` caches a :class:`BatchLossState` that ``backward`` consumes.
    Each forward call replaces the cached state; backward performs no matching
    or mining and only replays what forward recorded.
    """

    def __init__(self, config: Optional[LossConfig] = None, *, properties: Optional[Sequence[str]] = None) -> None:
        validate_properties(properties)
        self.config = config if config is not None else LossConfig()
        self.anchor_grid = AnchorGrid.from_config(self.config)
        self.matcher = AnchorMatcher(positive_iou_threshold=self.config.positive_iou_threshold)
        self.miner = HardNegativeMiner(
            background_confidence_threshold=self.config.background_confidence_threshold,
            negative_ratio=self.config.negative_ratio,
            eps=self.config.epsilon,
        )
        self._split_sizes = [2, 2, 2, 2, 2, self.config.num_classes]
        self._state: Optional[BatchLossState] = None
        self._last_breakdown: Optional[LossBreakdown] = None

    @property
    def anchors(self) -> AnchorSet:
        return self.anchor_grid.anchors

    @property
    def state(self) -> Optional[BatchLossState]:
        return self._state

    @property
    def last_breakdown(self) -> Optional[LossBreakdown]:
        return self._last_breakdown

    def forward(self, predictions: torch.Tensor, labels: torch.Tensor) -> torch.Tensor:
        """Compute the batch-mean loss and cache the state for :meth:`backward`.

        Args:
            predictions: Tensor of shape (B, 1, A, 10 + num_classes) or (B, A, 10 + num_classes).
            labels: Tensor of shape (B, 1, max_gt_boxes, 5 + num_classes) or
                (B, max_gt_boxes, 5 + num_classes).

        Returns:
            Zero-dimensional loss tensor.
        """
        batch_predictions, batch_labels = self._validate_inputs(predictions, labels)
        self._state = None

        batch_predictions = batch_predictions.detach()
        batch_labels = batch_labels.detach().to(dtype=batch_predictions.dtype)
        anchors = self.anchors.to(device=batch_predictions.device, dtype=batch_predictions.dtype)

        items: List[ItemLossState] = []
        total = batch_predictions.new_zeros(())
        for batch_index in range(batch_predictions.shape[0]):
            item, item_loss = self._forward_item(batch_predictions[batch_index], batch_labels[batch_index], anchors)
            LOGGER.debug(
                "Item %d | positives=%d negatives=%d | arm_conf=%.4f arm_loc=%.4f odm_conf=%.4f odm_loc=%.4f",
                batch_index,
                item.num_positives,
                item.num_negatives,
                item.breakdown.arm_conf,
                item.breakdown.arm_loc,
                item.breakdown.odm_conf,
                item.breakdown.odm_loc,
            )
            items.append(item)
            total = total + item_loss

        state = BatchLossState(predictions=predictions.detach().clone(), items=items)
        self._state = state
        self._last_breakdown = state.breakdown
        return total / len(items)

    __call__ = forward

    def backward(
        self,
        state: Optional[BatchLossState] = None,
        *,
        grad_output: float | torch.Tensor = 1.0,
    ) -> torch.Tensor:
        """Gradient of the last forward loss with respect to the predictions.

        Args:
            state: State returned by a forward call; defaults to the cached one.
            grad_output: Upstream gradient of the scalar loss.

        Returns:
            Tensor with the shape of the prediction tensor passed to forward.
        """
        if state is None:
            state = self._state
        if state is None:
            raise LossStateError("backward called without a preceding forward pass")
        if state.consumed:
            raise LossStateError("Loss state has already been consumed by a backward pass")

        predictions = state.predictions
        batch_predictions = predictions.reshape(state.batch_size, -1, predictions.shape[-1])
        anchor_grads = [
            self._backward_item(batch_predictions[batch_index], item)
            for batch_index, item in enumerate(state.items)
        ]
        grad = torch.stack(anchor_grads, dim=0) / state.batch_size
        grad = grad * grad_output

        state.consumed = True
        if state is self._state:
            self._state = None
        return grad.reshape(predictions.shape)

    def _forward_item(
        self,
        predictions: torch.Tensor,
        label_rows: torch.Tensor,
        anchors: AnchorSet,
    ) -> Tuple[ItemLossState, torch.Tensor]:
        arm_yx, arm_hw, arm_conf, odm_yx, odm_hw, odm_conf = torch.split(predictions, self._split_sizes, dim=-1)

        ground_truth = GroundTruth.from_label_rows(label_rows)
        assignment = self.matcher(anchors, ground_truth)
        positive_mask = assignment.positive_mask
        num_positives = assignment.num_positives

        box_targets = encode_offsets(
            assignment.target_centers,
            assignment.target_sizes,
            anchors.centers,
            anchors.sizes,
            eps=self.config.epsilon,
        )
        mining = self.miner(arm_conf, positive_mask)
        class_labels = torch.where(
            mining.negative_mask,
            torch.zeros_like(assignment.target_class),
            assignment.target_class,
        )

        item = ItemLossState(
            positive_mask=positive_mask,
            pos_neg_mask=mining.pos_neg_mask,
            class_labels=class_labels,
            box_targets=box_targets,
            num_positives=num_positives,
        )
        if num_positives == 0:
            return item, predictions.new_zeros(())

        eps = self.config.epsilon
        arm_conf_loss = cross_entropy(arm_conf, positive_mask.long(), eps=eps) / (
            num_positives * self.config.arm_conf_loss_divider
        )
        arm_loc_loss = smooth_l1(torch.cat([arm_yx, arm_hw], dim=-1), box_targets, positive_mask) / num_positives
        odm_conf_loss = cross_entropy(odm_conf, class_labels, mining.pos_neg_mask, eps=eps) / num_positives
        odm_loc_loss = smooth_l1(torch.cat([odm_yx, odm_hw], dim=-1), box_targets, positive_mask) / num_positives

        item.breakdown = LossBreakdown(
            arm_conf=float(arm_conf_loss.item()),
            arm_loc=float(arm_loc_loss.item()),
            odm_conf=float(odm_conf_loss.item()),
            odm_loc=float(odm_loc_loss.item()),
        )
        return item, arm_conf_loss + arm_loc_loss + odm_conf_loss + odm_loc_loss

    def _backward_item(self, predictions: torch.Tensor, item: ItemLossState) -> torch.Tensor:
        if item.num_positives == 0:
            return torch.zeros_like(predictions)

        arm_yx, arm_hw, arm_conf, odm_yx, odm_hw, odm_conf = torch.split(predictions, self._split_sizes, dim=-1)
        num_positives = float(item.num_positives)

        arm_conf_grad = cross_entropy_derivative(
            arm_conf,
            item.positive_mask.long(),
            num_positives * self.config.arm_conf_loss_divider,
        )
        arm_yx_grad, arm_hw_grad = smooth_l1_derivative(
            torch.cat([arm_yx, arm_hw], dim=-1), item.box_targets, item.positive_mask, num_positives
        )
        odm_conf_grad = cross_entropy_derivative(
            odm_conf, item.class_labels, num_positives, mask=item.pos_neg_mask
        )
        odm_yx_grad, odm_hw_grad = smooth_l1_derivative(
            torch.cat([odm_yx, odm_hw], dim=-1), item.box_targets, item.positive_mask, num_positives
        )
        return torch.cat([arm_yx_grad, arm_hw_grad, arm_conf_grad, odm_yx_grad, odm_hw_grad, odm_conf_grad], dim=-1)

    def _validate_inputs(self, predictions: torch.Tensor, labels: torch.Tensor) -> Tuple[torch.Tensor, torch.Tensor]:
        batch_predictions = _as_batched(predictions, "prediction")
        batch_labels = _as_batched(labels, "label")

        if not torch.is_floating_point(batch_predictions):
            raise ShapeError(f"Prediction tensor must be floating point, got {batch_predictions.dtype}")
        if batch_predictions.shape[0] == 0:
            raise ShapeError("Prediction tensor has an empty batch dimension")
        if batch_predictions.shape[-1] != self.config.prediction_width:
            raise ShapeError(
                f"Prediction last axis must be {self.config.prediction_width} wide, got {batch_predictions.shape[-1]}"
            )
        if batch_predictions.shape[1] != self.anchor_grid.num_anchors:
            raise ShapeError(
                f"Prediction tensor must cover {self.anchor_grid.num_anchors} anchors, got {batch_predictions.shape[1]}"
            )
        if batch_labels.shape[-1] != self.config.label_width:
            raise ShapeError(f"Label last axis must be {self.config.label_width} wide, got {batch_labels.shape[-1]}")
        if batch_labels.shape[1] != self.config.max_gt_boxes:
            raise ShapeError(
                f"Label tensor must hold {self.config.max_gt_boxes} boxes per image, got {batch_labels.shape[1]}"
            )
        if batch_labels.shape[0] != batch_predictions.shape[0]:
            raise ShapeError(
                f"Batch size mismatch: predictions {batch_predictions.shape[0]} vs labels {batch_labels.shape[0]}"
            )
        return batch_predictions, batch_labels


def _as_batched(tensor: torch.Tensor, name: str) -> torch.Tensor:
    if tensor.dim() == 4:
        if tensor.shape[1] != 1:
            raise ShapeError(f"{name.capitalize()} tensor channel axis must be 1, got {tensor.shape[1]}")
        return tensor.squeeze(1)
    if tensor.dim() == 3:
        return tensor
    raise ShapeError(f"{name.capitalize()} tensor must be 3-D or 4-D, got shape {tuple(tensor.shape)}")


class _RefineDetLossFunction(torch.autograd.Function):
    @staticmethod
    def forward(ctx, predictions: torch.Tensor, labels: torch.Tensor, engine: RefineDetLoss) -> torch.Tensor:  # noqa: D401
        loss = engine.forward(predictions, labels)
        ctx.engine = engine
        ctx.state = engine.state
        return loss

    @staticmethod
    def backward(ctx, grad_output: torch.Tensor):  # noqa: D401
        grad = ctx.engine.backward(ctx.state, grad_output=grad_output)
        ctx.state = None
        return grad, None, None


class RefineDetCriterion(nn.Module):
    """``nn.Module`` adapter so the loss participates in autograd graphs."""

    def __init__(self, config: Optional[LossConfig] = None, *, properties: Optional[Sequence[str]] = None) -> None:
        super().__init__()
        self.engine = RefineDetLoss(config, properties=properties)

    @property
    def config(self) -> LossConfig:
        return self.engine.config

    @property
    def last_breakdown(self) -> Optional[LossBreakdown]:
        return self.engine.last_breakdown

    def forward(self, predictions: torch.Tensor, labels: torch.Tensor) -> torch.Tensor:  # noqa: D401
        return _RefineDetLossFunction.apply(predictions, labels, self.engine)


__all__ = ["RefineDetLoss", "RefineDetCriterion"]
