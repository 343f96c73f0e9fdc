'''
 # @ Copyright: @copyright (c) 2025 Gahan AI Private Limited
 # @ Author: Pallab Maji
 # @ Create Time: 2025-11-03 14:10:00
 # @ Modified time: 2025-11-03 14:10:00
 # @ Description: Public interface for the RefineDet two-stage detection loss.
 # @ Description (Legacy): This package exposes the anchor grid, matching and
 #      mining helpers, and the ARM/ODM criterion with its hand-derived backward.
'''

from .anchors import AnchorGrid, AnchorSet
from .config import LossConfig, validate_properties
from .criterion import RefineDetCriterion, RefineDetLoss
from .exceptions import ConfigurationError, LossStateError, RefineDetError, ShapeError
from .factory import LossBundle, build_loss, create_loss
from .matching import AnchorMatcher
from .mining import HardNegativeMiner
from .targets import BatchLossState, GroundTruth, ItemLossState, LossBreakdown

__all__ = [
    "AnchorGrid",
    "AnchorSet",
    "AnchorMatcher",
    "HardNegativeMiner",
    "LossConfig",
    "validate_properties",
    "RefineDetLoss",
    "RefineDetCriterion",
    "LossBundle",
    "create_loss",
    "build_loss",
    "GroundTruth",
    "ItemLossState",
    "BatchLossState",
    "LossBreakdown",
    "RefineDetError",
    "ConfigurationError",
    "ShapeError",
    "LossStateError",
]
