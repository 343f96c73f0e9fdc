'''
 # @ Copyright: @copyright (c) 2025 Gahan AI Private Limited
 # @ Author: Pallab Maji
 # @ Create Time: 2025-11-03 14:30:00
 # @ Modified time: 2025-11-03 14:30:00
 # @ Description: Command-line entry point that runs the RefineDet loss on a synthetic batch.
'''
import argparse
import logging
from pathlib import Path

import torch

from refinedet import LossConfig, create_loss
from refinedet.utils import load_yaml_config


def _setup_logging(log_level: str) -> None:
    level = getattr(logging, log_level.upper(), logging.INFO)
    logging.basicConfig(
        level=level,
        format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
    )


def build_synthetic_batch(
    config: LossConfig,
    *,
    batch_size: int,
    num_boxes: int,
    generator: torch.Generator,
) -> tuple[torch.Tensor, torch.Tensor]:
    """Random predictions and front-packed ground truth matching the loss layout."""
    predictions = torch.randn(batch_size, 1, config.num_anchors, config.prediction_width, generator=generator)

    image_size = float(config.feature_map_sizes[0] * config.strides[0])
    labels = torch.zeros(batch_size, 1, config.max_gt_boxes, config.label_width)
    count = max(0, min(num_boxes, config.max_gt_boxes))
    for batch_index in range(batch_size):
        for box_index in range(count):
            size = torch.empty(2).uniform_(0.1 * image_size, 0.5 * image_size, generator=generator)
            top_left = torch.rand(2, generator=generator) * (image_size - size)
            class_id = int(torch.randint(1, config.num_classes, (1,), generator=generator).item())
            labels[batch_index, 0, box_index, 0] = 1.0
            labels[batch_index, 0, box_index, 1:3] = top_left
            labels[batch_index, 0, box_index, 3:5] = top_left + size
            labels[batch_index, 0, box_index, 5 + class_id] = 1.0
    return predictions, labels


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="RefineDet loss diagnostic run",
        epilog="""
Examples:
  python main.py                                  # Default configuration, 2 images, 2 boxes each
  python main.py --config config.yaml             # Read the loss section from a YAML file
  python main.py --batch-size 4 --num-boxes 5     # Larger synthetic batch
        """,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "--config",
        type=str,
        default=None,
        help="Path to a YAML configuration file with a 'loss' section",
    )
    parser.add_argument("--batch-size", type=int, default=2, help="Number of synthetic images (default: 2)")
    parser.add_argument("--num-boxes", type=int, default=2, help="Ground-truth boxes per image (default: 2)")
    parser.add_argument("--seed", type=int, default=0, help="Random seed for the synthetic batch")
    parser.add_argument(
        "--log-level",
        type=str,
        default="INFO",
        help="Logging level (DEBUG, INFO, WARNING, ERROR)",
    )
    return parser.parse_args()


def main() -> None:
    args = parse_args()
    _setup_logging(args.log_level)
    logger = logging.getLogger(__name__)

    raw_config = {}
    if args.config:
        config_path = Path(args.config)
        logger.info("Loading configuration from %s", config_path)
        raw_config = load_yaml_config(config_path)

    bundle = create_loss(raw_config)
    engine = bundle.criterion.engine

    generator = torch.Generator().manual_seed(args.seed)
    predictions, labels = build_synthetic_batch(
        engine.config,
        batch_size=max(1, args.batch_size),
        num_boxes=args.num_boxes,
        generator=generator,
    )

    loss = engine.forward(predictions, labels)
    breakdown = engine.last_breakdown
    state = engine.state
    positives = [item.num_positives for item in state.items] if state is not None else []
    gradient = engine.backward()

    logger.info(
        "Loss=%.4f | arm_conf=%.4f | arm_loc=%.4f | odm_conf=%.4f | odm_loc=%.4f",
        loss.item(),
        breakdown.arm_conf,
        breakdown.arm_loc,
        breakdown.odm_conf,
        breakdown.odm_loc,
    )
    logger.info("Positive anchors per image: %s", positives)
    logger.info("Gradient shape=%s | norm=%.6f", tuple(gradient.shape), gradient.norm().item())


if __name__ == "__main__":
    main()
