'''
 #  Copyright (c) 2025 Gahan AI Private Limited
 #  Author: Pallab Maji
 #  Create Time: 2025-11-03 10:00:00
 #  Modified time: 2025-11-03 10:00:00
 #  Description: Error types raised by the RefineDet loss components.
'''

from __future__ import annotations


class RefineDetError(Exception):
    """Base class for every error raised by this package."""


class ConfigurationError(RefineDetError, ValueError):
    """Raised for invalid or unrecognised loss configuration."""


class ShapeError(RefineDetError, ValueError):
    """Raised when prediction or label tensors do not match the expected layout."""


class LossStateError(RefineDetError, RuntimeError):
    """Raised when backward is requested without a matching forward pass."""


__all__ = ["RefineDetError", "ConfigurationError", "ShapeError", "LossStateError"]
