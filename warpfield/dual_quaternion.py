# -*- coding: utf-8 -*-
"""
Rigid motions as dual quaternions.

Representation
--------------
A rigid motion (R, t) is stored as q = r + eps * d with
    r = rotation quaternion            (w, x, y, z)
    d = 0.5 * (0, t) * r
Packed arrays use 8 floats: [r_w, r_x, r_y, r_z, d_w, d_x, d_y, d_z].

Weighted sums of unit dual quaternions are not unit; `magnitude()` returns the
dual-number norm |q| = a + eps * b with
    a = |r|            (rotation norm)
    b = <r, d> / |r|   (translation norm)
and `normalized()` divides the sum by it, which maps a blend back onto the
set of rigid motions.
"""

from __future__ import annotations

from typing import Tuple

import numpy as np

from .errors import DegenerateBlendError
from .quaternion import (
    quat_conj,
    quat_from_vector,
    quat_identity,
    quat_mul,
    quat_rotate,
    quat_to_rot,
    rot_to_quat,
)

IDENTITY_ARRAY = np.array([1.0, 0.0, 0.0, 0.0, 0.0, 0.0, 0.0, 0.0], dtype=np.float64)


class DualQuaternion:
    """Unit (or blended, non-unit) dual quaternion."""

    __slots__ = ("real", "dual")
    # numpy scalars defer to __rmul__ instead of building object arrays
    __array_ufunc__ = None

    def __init__(self, real=None, dual=None):
        self.real = quat_identity() if real is None else np.asarray(real, dtype=np.float64).copy()
        self.dual = np.zeros(4, dtype=np.float64) if dual is None else np.asarray(dual, dtype=np.float64).copy()
        if self.real.shape != (4,) or self.dual.shape != (4,):
            raise ValueError("real and dual parts must be (4,) quaternions")

    # -------- constructors --------
    @staticmethod
    def identity() -> "DualQuaternion":
        return DualQuaternion()

    @staticmethod
    def from_rotation_translation(rotation, translation) -> "DualQuaternion":
        """Build from a rotation quaternion (w,x,y,z) and a translation (3,)."""
        r = np.asarray(rotation, dtype=np.float64)
        t = np.asarray(translation, dtype=np.float64)
        if r.shape != (4,):
            raise ValueError(f"rotation must be (4,), got {r.shape}")
        if t.shape != (3,):
            raise ValueError(f"translation must be (3,), got {t.shape}")
        d = 0.5 * quat_mul(quat_from_vector(t), r)
        return DualQuaternion(r, d)

    @staticmethod
    def from_matrix(M: np.ndarray) -> "DualQuaternion":
        M = np.asarray(M, dtype=np.float64)
        if M.shape != (4, 4):
            raise ValueError(f"M must be (4,4), got {M.shape}")
        return DualQuaternion.from_rotation_translation(rot_to_quat(M[:3, :3]), M[:3, 3])

    @staticmethod
    def from_array(a: np.ndarray) -> "DualQuaternion":
        a = np.asarray(a, dtype=np.float64)
        if a.shape != (8,):
            raise ValueError(f"packed dual quaternion must be (8,), got {a.shape}")
        return DualQuaternion(a[:4], a[4:])

    def as_array(self) -> np.ndarray:
        return np.concatenate([self.real, self.dual])

    # -------- algebra --------
    def __add__(self, other: "DualQuaternion") -> "DualQuaternion":
        if not isinstance(other, DualQuaternion):
            return NotImplemented
        return DualQuaternion(self.real + other.real, self.dual + other.dual)

    def __neg__(self) -> "DualQuaternion":
        return DualQuaternion(-self.real, -self.dual)

    def __mul__(self, other):
        if isinstance(other, DualQuaternion):
            # (r1 + eps d1)(r2 + eps d2) = r1 r2 + eps (r1 d2 + d1 r2)
            return DualQuaternion(
                quat_mul(self.real, other.real),
                quat_mul(self.real, other.dual) + quat_mul(self.dual, other.real),
            )
        if np.isscalar(other):
            s = float(other)
            return DualQuaternion(self.real * s, self.dual * s)
        return NotImplemented

    def __rmul__(self, other):
        if np.isscalar(other):
            return self.__mul__(other)
        return NotImplemented

    def conjugate(self) -> "DualQuaternion":
        """Quaternion conjugate of both parts; the inverse of a unit motion."""
        return DualQuaternion(quat_conj(self.real), quat_conj(self.dual))

    def magnitude(self) -> Tuple[float, float]:
        """Dual-number norm as (rotation_norm, translation_norm)."""
        a = float(np.linalg.norm(self.real))
        if a == 0.0:
            return 0.0, 0.0
        b = float(np.dot(self.real, self.dual)) / a
        return a, b

    def normalized(self, eps: float = 1e-12) -> "DualQuaternion":
        a, b = self.magnitude()
        if not np.isfinite(a) or a < eps:
            raise DegenerateBlendError(f"rotation magnitude {a!r} too small to normalize")
        real = self.real / a
        dual = self.dual / a - self.real * (b / (a * a))
        return DualQuaternion(real, dual)

    # -------- decomposition --------
    def get_rotation(self) -> np.ndarray:
        """Rotation quaternion (w,x,y,z)."""
        return self.real.copy()

    def get_translation(self) -> np.ndarray:
        """Translation (3,), t = 2 d r* / |r|^2."""
        n2 = float(np.dot(self.real, self.real))
        if n2 == 0.0:
            return np.zeros(3, dtype=np.float64)
        return 2.0 * quat_mul(self.dual, quat_conj(self.real))[1:] / n2

    def rotation_matrix(self) -> np.ndarray:
        n = float(np.linalg.norm(self.real))
        return quat_to_rot(self.real / n if n > 0.0 else quat_identity())

    def to_matrix(self) -> np.ndarray:
        M = np.eye(4, dtype=np.float64)
        M[:3, :3] = self.rotation_matrix()
        M[:3, 3] = self.get_translation()
        return M

    def transform_point(self, p) -> np.ndarray:
        return self.transform_vector(p) + self.get_translation()

    def transform_vector(self, v) -> np.ndarray:
        n = float(np.linalg.norm(self.real))
        r = self.real / n if n > 0.0 else quat_identity()
        return quat_rotate(r, np.asarray(v, dtype=np.float64))

    # -------- comparison --------
    def allclose(self, other: "DualQuaternion", atol: float = 1e-8) -> bool:
        """Equality as rigid motions (q and -q describe the same motion)."""
        a = self.as_array()
        b = other.as_array()
        return bool(np.allclose(a, b, atol=atol) or np.allclose(a, -b, atol=atol))

    def __repr__(self) -> str:
        return (f"DualQuaternion(rotation={np.round(self.real, 6).tolist()}, "
                f"translation={np.round(self.get_translation(), 6).tolist()})")


# -----------------------
# Packed-array helpers (...,8)
# -----------------------

def dq_from_rotation_translation(rotations: np.ndarray, translations: np.ndarray) -> np.ndarray:
    """(...,4) rotations + (...,3) translations -> (...,8) packed."""
    r = np.asarray(rotations, dtype=np.float64)
    t = np.asarray(translations, dtype=np.float64)
    d = 0.5 * quat_mul(quat_from_vector(t), r)
    return np.concatenate([r, d], axis=-1)


def dq_translation(dqs: np.ndarray) -> np.ndarray:
    """(...,8) -> (...,3) translations."""
    dqs = np.asarray(dqs, dtype=np.float64)
    r = dqs[..., :4]
    d = dqs[..., 4:]
    n2 = np.sum(r * r, axis=-1, keepdims=True)
    n2 = np.where(n2 > 0.0, n2, 1.0)
    return 2.0 * quat_mul(d, quat_conj(r))[..., 1:] / n2


def dq_normalize(dqs: np.ndarray, eps: float = 1e-12) -> Tuple[np.ndarray, np.ndarray]:
    """
    Normalize packed dual quaternions by their dual-number norm.

    Returns
    -------
    out : (...,8)
        Normalized motions; degenerate rows are replaced by the identity.
    degenerate : (...,) bool
        True where the rotation norm was below `eps` (or non-finite).
    """
    dqs = np.asarray(dqs, dtype=np.float64)
    r = dqs[..., :4]
    d = dqs[..., 4:]
    a = np.linalg.norm(r, axis=-1, keepdims=True)                 # (...,1)
    degenerate = ~np.isfinite(a[..., 0]) | (a[..., 0] < eps)
    a_safe = np.where(degenerate[..., None], 1.0, a)
    b = np.sum(r * d, axis=-1, keepdims=True) / a_safe
    real = r / a_safe
    dual = d / a_safe - r * (b / (a_safe * a_safe))
    out = np.concatenate([real, dual], axis=-1)
    out[degenerate] = IDENTITY_ARRAY
    return out, degenerate


def dq_transform_points(dqs: np.ndarray, points: np.ndarray) -> np.ndarray:
    """Apply unit motions (N,8) to points (N,3)."""
    dqs = np.asarray(dqs, dtype=np.float64)
    return quat_rotate(dqs[..., :4], points) + dq_translation(dqs)


def dq_transform_vectors(dqs: np.ndarray, vectors: np.ndarray) -> np.ndarray:
    """Rotate vectors (N,3) by the rotation part of unit motions (N,8)."""
    dqs = np.asarray(dqs, dtype=np.float64)
    return quat_rotate(dqs[..., :4], vectors)
