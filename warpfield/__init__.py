# -*- coding: utf-8 -*-
"""Non-rigid warp field: deformation nodes, DQB blending and KNN queries."""

from .dual_quaternion import DualQuaternion
from .errors import (
    DegenerateBlendError,
    InvalidSampleError,
    UninitializedFieldError,
    WarpFieldError,
)
from .warp_field import IntakeReport, WarpField, WarpFieldConfig
from .weighting import weighting

__all__ = [
    "DualQuaternion",
    "DegenerateBlendError",
    "InvalidSampleError",
    "IntakeReport",
    "UninitializedFieldError",
    "WarpField",
    "WarpFieldConfig",
    "WarpFieldError",
    "weighting",
]
