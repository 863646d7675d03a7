# -*- coding: utf-8 -*-
"""
Dual Quaternion Blending (DQB) and skinning with blended motions.

Interfaces
----------
blend_motions(motions, indices, weights, ...)
    Weighted sum of node motions over each point's own neighbor list,
    normalized back to rigid motions.
blend_anchors(positions, indices, weights)
    Weighted mean of the canonical positions over the same neighbor lists.
dual_quaternion_skinning(points, blended, anchors=None, ...)
    Apply one blended motion per point (and optionally to normals).

Notes
-----
- `indices`/`weights` are (P,k): each point only sums over the k neighbors it
  selected, never over the whole node set.
- Node translations are absolute live positions, so a canonical point is
  moved by its offset from the blended anchor: R (p - anchor) + t.
- Quaternions q and -q are the same rotation; before summing, every neighbor
  is flipped into the hemisphere of the point's highest-weight neighbor so
  that antipodal copies do not cancel.
"""

from __future__ import annotations

from typing import Optional, Tuple

import numpy as np

from .dual_quaternion import IDENTITY_ARRAY, dq_normalize, dq_transform_points, dq_transform_vectors


def _gather_neighbor_motions(motions: np.ndarray, indices: np.ndarray) -> np.ndarray:
    """motions: (N,8), indices: (P,k) -> (P,k,8)"""
    if motions.ndim != 2 or motions.shape[1] != 8:
        raise ValueError("motions must be (N,8)")
    if indices.ndim != 2:
        raise ValueError("indices must be (P,k)")
    return motions[indices]


def _align_hemisphere(neigh: np.ndarray, weights: np.ndarray) -> np.ndarray:
    """Flip neighbors whose rotation opposes the dominant one."""
    pivot_col = np.argmax(weights, axis=1)                          # (P,)
    rows = np.arange(neigh.shape[0])
    pivot = neigh[rows, pivot_col, :4]                              # (P,4)
    dots = np.einsum("pkj,pj->pk", neigh[..., :4], pivot)           # (P,k)
    sign = np.where(dots < 0.0, -1.0, 1.0)
    return neigh * sign[..., None]


def blend_motions(
    motions: np.ndarray,
    indices: np.ndarray,
    weights: np.ndarray,
    *,
    eps: float = 1e-12,
) -> Tuple[np.ndarray, np.ndarray]:
    """
    DQB over per-point neighbor lists.

    Parameters
    ----------
    motions : (N,8) float
        Packed node motions.
    indices : (P,k) int
        Neighbor node indices per point.
    weights : (P,k) float
        Blend weight of each neighbor.
    eps : float
        Rotation-norm threshold below which a blend counts as degenerate.

    Returns
    -------
    blended : (P,8)
        Normalized motions; degenerate rows hold the identity.
    degenerate : (P,) bool
        Rows whose total weight was zero or whose sum had no rotation part.
    """
    M = np.asarray(motions, dtype=np.float64)
    I = np.asarray(indices, dtype=np.int64)
    W = np.asarray(weights, dtype=np.float64)
    if W.shape != I.shape:
        raise ValueError("weights and indices must have the same (P,k) shape")

    neigh = _gather_neighbor_motions(M, I)                          # (P,k,8)
    neigh = _align_hemisphere(neigh, W)

    # dual-number normalization is invariant to a common weight scale
    w_sum = np.sum(W, axis=1, keepdims=True)                        # (P,1)
    zero_weight = ~np.isfinite(w_sum[:, 0]) | (w_sum[:, 0] <= 0.0)
    w_sum[zero_weight] = 1.0
    Wn = W / w_sum

    summed = np.einsum("pkj,pk->pj", neigh, Wn)                     # (P,8)
    blended, degenerate = dq_normalize(summed, eps=eps)
    degenerate |= zero_weight
    blended[zero_weight] = IDENTITY_ARRAY
    return blended, degenerate


def blend_anchors(positions: np.ndarray, indices: np.ndarray, weights: np.ndarray) -> np.ndarray:
    """
    positions: (N,3), indices/weights: (P,k) -> (P,3) weighted mean position.

    Rows with zero or non-finite total weight return the origin.
    """
    X = np.asarray(positions, dtype=np.float64)
    I = np.asarray(indices, dtype=np.int64)
    W = np.asarray(weights, dtype=np.float64)
    if W.shape != I.shape or I.ndim != 2:
        raise ValueError("weights and indices must have the same (P,k) shape")
    w_sum = np.sum(W, axis=1)
    ok = np.isfinite(w_sum) & (w_sum > 0.0)
    out = np.zeros((I.shape[0], 3), dtype=np.float64)
    if np.any(ok):
        out[ok] = np.einsum("pkj,pk->pj", X[I[ok]], W[ok]) / w_sum[ok, None]
    return out


def dual_quaternion_skinning(
    points: np.ndarray,
    blended: np.ndarray,
    *,
    anchors: Optional[np.ndarray] = None,
    normals: Optional[np.ndarray] = None,
    return_normals: bool = False,
) -> np.ndarray | Tuple[np.ndarray, np.ndarray]:
    """
    Apply blended motions to points.

    Parameters
    ----------
    points : (P,3) float
        Points in the canonical frame.
    blended : (P,8) float
        One normalized motion per point (output of `blend_motions`).
    anchors : (P,3) float, optional
        Canonical point each motion is expressed about (see `blend_anchors`).
        Points are offset by it before the motion is applied.
    normals : (P,3) float, optional
        Canonical normals; rotated and renormalized when return_normals=True.
    return_normals : bool, default False

    Returns
    -------
    warped_points : (P,3)
    (optional) warped_normals : (P,3)
    """
    p = np.asarray(points, dtype=np.float64)
    if p.ndim != 2 or p.shape[1] != 3:
        raise ValueError("points must be (P,3)")
    B = np.asarray(blended, dtype=np.float64)
    if B.shape != (p.shape[0], 8):
        raise ValueError("blended must be (P,8) and match points")

    if anchors is not None:
        a = np.asarray(anchors, dtype=np.float64)
        if a.shape != p.shape:
            raise ValueError("anchors must be (P,3) and match points")
        p = p - a

    out = dq_transform_points(B, p)
    if not return_normals or normals is None:
        return out

    n = np.asarray(normals, dtype=np.float64)
    if n.shape != p.shape:
        raise ValueError("normals must be (P,3) and match points shape")
    n_out = dq_transform_vectors(B, n)
    n_norm = np.linalg.norm(n_out, axis=1, keepdims=True)
    n_norm[n_norm < 1e-20] = 1.0
    return out, n_out / n_norm
