# -*- coding: utf-8 -*-
"""Distance-based blending weights for warp field nodes."""

from __future__ import annotations

import numpy as np


def gaussian_weights(distances: np.ndarray, scale: float) -> np.ndarray:
    """
    exp(-d^2 / (2*scale^2)) for an array of Euclidean distances.

    `scale` is the falloff ("voxel size"): larger values widen a node's
    influence radius.
    """
    scale = float(scale)
    if not scale > 0.0:
        raise ValueError(f"scale must be positive, got {scale!r}")
    d = np.asarray(distances, dtype=np.float64)
    s2 = 2.0 * scale * scale
    return np.exp(-(d * d) / s2)


def weighting(vertex, node_position, scale: float) -> float:
    """Weight of a node at `node_position` for a query at `vertex`."""
    diff = np.asarray(vertex, dtype=np.float64) - np.asarray(node_position, dtype=np.float64)
    if diff.shape != (3,):
        raise ValueError("vertex and node_position must be 3D points")
    return float(gaussian_weights(np.linalg.norm(diff), scale))
