# -*- coding: utf-8 -*-
"""
Quaternion helpers.

All quaternions are plain numpy arrays stored as (w, x, y, z).
Functions accept a single quaternion (4,) or a batch (..., 4).
"""

from __future__ import annotations

import numpy as np


def quat_identity(dtype=np.float64) -> np.ndarray:
    return np.array([1.0, 0.0, 0.0, 0.0], dtype=dtype)


def quat_mul(q1: np.ndarray, q2: np.ndarray) -> np.ndarray:
    """Hamilton product, broadcasting over leading axes."""
    q1 = np.asarray(q1)
    q2 = np.asarray(q2)
    w1, x1, y1, z1 = q1[..., 0], q1[..., 1], q1[..., 2], q1[..., 3]
    w2, x2, y2, z2 = q2[..., 0], q2[..., 1], q2[..., 2], q2[..., 3]
    w = w1 * w2 - x1 * x2 - y1 * y2 - z1 * z2
    x = w1 * x2 + x1 * w2 + y1 * z2 - z1 * y2
    y = w1 * y2 - x1 * z2 + y1 * w2 + z1 * x2
    z = w1 * z2 + x1 * y2 - y1 * x2 + z1 * w2
    return np.stack([w, x, y, z], axis=-1)


def quat_conj(q: np.ndarray) -> np.ndarray:
    return np.asarray(q, dtype=np.float64) * np.array([1.0, -1.0, -1.0, -1.0])


def quat_from_vector(v: np.ndarray) -> np.ndarray:
    """Pure quaternion (0, v)."""
    v = np.asarray(v, dtype=np.float64)
    zeros = np.zeros(v.shape[:-1] + (1,), dtype=v.dtype)
    return np.concatenate([zeros, v], axis=-1)


def quat_from_axis_angle(axis: np.ndarray, angle: float) -> np.ndarray:
    """Unit quaternion rotating by `angle` radians about `axis`."""
    axis = np.asarray(axis, dtype=np.float64)
    n = float(np.linalg.norm(axis))
    if n < 1e-15:
        return quat_identity()
    s = np.sin(0.5 * angle)
    return np.array([np.cos(0.5 * angle), *(axis / n * s)], dtype=np.float64)


def quat_from_rotation_vector(r: np.ndarray) -> np.ndarray:
    """
    Exponential map: rotation vector (axis * angle) -> unit quaternion.

    A zero vector maps to the identity. Works on (3,) or (...,3).
    """
    r = np.asarray(r, dtype=np.float64)
    angle = np.linalg.norm(r, axis=-1, keepdims=True)          # (...,1)
    half = 0.5 * angle
    # sin(a/2)/a, with the small-angle limit 1/2
    safe = np.where(angle > 1e-12, angle, 1.0)
    scale = np.where(angle > 1e-12, np.sin(half) / safe, 0.5)
    return np.concatenate([np.cos(half), r * scale], axis=-1)


def quat_rotate(q: np.ndarray, v: np.ndarray) -> np.ndarray:
    """Rotate vector(s) v by unit quaternion(s) q."""
    q = np.asarray(q, dtype=np.float64)
    v = np.asarray(v, dtype=np.float64)
    w = q[..., :1]
    u = q[..., 1:]
    t = 2.0 * np.cross(u, v)
    return v + w * t + np.cross(u, t)


def quat_to_rot(q: np.ndarray) -> np.ndarray:
    """Unit quaternion (w,x,y,z) to 3x3 rotation."""
    w, x, y, z = np.asarray(q, dtype=np.float64)
    xx, yy, zz = x*x, y*y, z*z
    xy, xz, yz = x*y, x*z, y*z
    wx, wy, wz = w*x, w*y, w*z
    return np.array([
        [1 - 2*(yy+zz),     2*(xy - wz),     2*(xz + wy)],
        [    2*(xy + wz), 1 - 2*(xx+zz),     2*(yz - wx)],
        [    2*(xz - wy),     2*(yz + wx), 1 - 2*(xx+yy)]
    ], dtype=np.float64)


def rot_to_quat(R: np.ndarray) -> np.ndarray:
    """3x3 rotation to unit quaternion (w,x,y,z), w >= 0."""
    R = np.asarray(R, dtype=np.float64)
    if R.shape != (3, 3):
        raise ValueError(f"R must be (3,3), got {R.shape}")
    tr = float(np.trace(R))
    if tr > 0.0:
        s = np.sqrt(tr + 1.0) * 2.0
        q = np.array([0.25 * s,
                      (R[2, 1] - R[1, 2]) / s,
                      (R[0, 2] - R[2, 0]) / s,
                      (R[1, 0] - R[0, 1]) / s])
    elif R[0, 0] > R[1, 1] and R[0, 0] > R[2, 2]:
        s = np.sqrt(1.0 + R[0, 0] - R[1, 1] - R[2, 2]) * 2.0
        q = np.array([(R[2, 1] - R[1, 2]) / s,
                      0.25 * s,
                      (R[0, 1] + R[1, 0]) / s,
                      (R[0, 2] + R[2, 0]) / s])
    elif R[1, 1] > R[2, 2]:
        s = np.sqrt(1.0 + R[1, 1] - R[0, 0] - R[2, 2]) * 2.0
        q = np.array([(R[0, 2] - R[2, 0]) / s,
                      (R[0, 1] + R[1, 0]) / s,
                      0.25 * s,
                      (R[1, 2] + R[2, 1]) / s])
    else:
        s = np.sqrt(1.0 + R[2, 2] - R[0, 0] - R[1, 1]) * 2.0
        q = np.array([(R[1, 0] - R[0, 1]) / s,
                      (R[0, 2] + R[2, 0]) / s,
                      (R[1, 2] + R[2, 1]) / s,
                      0.25 * s])
    q /= np.linalg.norm(q)
    return q if q[0] >= 0.0 else -q
