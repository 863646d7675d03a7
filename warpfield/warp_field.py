# -*- coding: utf-8 -*-
"""
Warp field: a sparse deformation graph over the canonical surface.

Lifecycle
---------
    field = WarpField(WarpFieldConfig(voxel_size=..., k_neighbors=8))
    field.init(canonical_positions)          # Uninitialized -> Ready
    for each frame:
        report = field.energy(positions, normals, pose, volume, edges)
        motion = field.warp(point)           # or warp_batch / warp_points

Only `init`/`energy` mutate nodes. Queries read a KD-tree snapshot over the
current node translations, which is rebuilt after every mutation.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Sequence, Tuple

import numpy as np

from .dual_quaternion import DualQuaternion, dq_from_rotation_translation
from .errors import DegenerateBlendError, InvalidSampleError, UninitializedFieldError
from .knn import KnnIndex, build_index
from .nodes import NodeStore
from .quaternion import quat_from_rotation_vector
from .skinning import blend_anchors, blend_motions, dual_quaternion_skinning
from .weighting import gaussian_weights

logger = logging.getLogger(__name__)

# selector(flat_positions (M,3), valid (M,) bool) -> indices into flat_positions
FrameSelector = Callable[[np.ndarray, np.ndarray], np.ndarray]


@dataclass
class WarpFieldConfig:
    k_neighbors: int = 8           # nodes blended per query point
    voxel_size: float = 100.0      # falloff scale of the Gaussian weight
    kdtree_leafsize: int = 10
    cache_index: bool = True       # reuse one index until the next mutation
    stop_on_invalid: bool = True   # False: skip bad samples and keep scanning
    node_stride: int = 1           # default init_from_frame subsampling
    workers: int = 1               # cKDTree query workers for batch queries (-1: all cores)
    eps: float = 1e-12

    def __post_init__(self):
        if int(self.k_neighbors) < 1:
            raise ValueError(f"k_neighbors must be >= 1, got {self.k_neighbors}")
        if not float(self.voxel_size) > 0.0:
            raise ValueError(f"voxel_size must be positive, got {self.voxel_size}")
        if int(self.kdtree_leafsize) < 1:
            raise ValueError(f"kdtree_leafsize must be >= 1, got {self.kdtree_leafsize}")
        if int(self.node_stride) < 1:
            raise ValueError(f"node_stride must be >= 1, got {self.node_stride}")
        if int(self.workers) == 0 or int(self.workers) < -1:
            raise ValueError(f"workers must be -1 or >= 1, got {self.workers}")
        if not float(self.eps) > 0.0:
            raise ValueError(f"eps must be positive, got {self.eps}")


@dataclass
class IntakeReport:
    """Outcome of one `energy` call."""
    updated: int                     # nodes whose motion was replaced
    scanned: int                     # samples examined (bounded by node count)
    stopped_at: Optional[int] = None # index of the sample that halted intake
    skipped: List[int] = field(default_factory=list)

    @property
    def halted(self) -> bool:
        return self.stopped_at is not None

    def raise_if_stopped(self) -> None:
        """Turn a halted or lossy intake into an InvalidSampleError."""
        if self.stopped_at is not None:
            raise InvalidSampleError(self.stopped_at)
        if self.skipped:
            raise InvalidSampleError(self.skipped[0])


def _flatten_points(a, name: str) -> np.ndarray:
    """(N,3) or organized (H,W,3) -> (N,3), row-major."""
    arr = np.asarray(a, dtype=np.float64)
    if arr.ndim < 2 or arr.shape[-1] != 3:
        raise ValueError(f"{name} must be (N,3) or (H,W,3), got {arr.shape}")
    return arr.reshape(-1, 3)


def _strided_valid_selector(stride: int) -> FrameSelector:
    def select(positions: np.ndarray, valid: np.ndarray) -> np.ndarray:
        return np.flatnonzero(valid)[::stride]
    return select


class WarpField:
    """Node store + observation intake + blended-motion queries."""

    def __init__(self, config: Optional[WarpFieldConfig] = None):
        self.config = config if config is not None else WarpFieldConfig()
        self._store = NodeStore()
        self._version = 0
        self._index: Optional[KnnIndex] = None

    # -------- basic props --------
    @property
    def n_nodes(self) -> int:
        return self._store.n

    @property
    def is_initialized(self) -> bool:
        return self._store.n > 0

    @property
    def nodes(self) -> NodeStore:
        return self._store

    @property
    def version(self) -> int:
        """Incremented on every node mutation."""
        return self._version

    def _require_initialized(self) -> None:
        if not self.is_initialized:
            raise UninitializedFieldError("warp field has no nodes; call init() first")

    def _mutated(self) -> None:
        self._version += 1
        self._index = None

    # -------- initialization --------
    def init(self, positions: Sequence[Sequence[float]]) -> None:
        """One node per position, identity motion. Replaces any prior nodes."""
        pos = np.asarray(positions, dtype=np.float64)
        if pos.size == 0:
            pos = pos.reshape(0, 3)
        self._store = NodeStore(pos)
        self._mutated()
        if self._store.n == 0:
            logger.warning("init() with no positions; warp field stays uninitialized")
        else:
            logger.info("Initialized warp field with %d nodes", self._store.n)

    def init_from_frame(self, positions, selector: Optional[FrameSelector] = None) -> np.ndarray:
        """
        Seed nodes from a reference frame (pose assumed identity).

        `selector(flat_positions, valid_mask)` picks the sample indices to
        use; by default every `config.node_stride`-th finite sample.
        Returns the selected flat sample indices.
        """
        flat = _flatten_points(positions, "positions")
        valid = np.all(np.isfinite(flat), axis=1)
        if selector is None:
            selector = _strided_valid_selector(int(self.config.node_stride))
        chosen = np.asarray(selector(flat, valid), dtype=np.int64).reshape(-1)
        if chosen.size and not np.all(valid[chosen]):
            raise ValueError("selector returned invalid (non-finite) samples")
        self.init(flat[chosen])
        return chosen

    def set_motions(self, motions: np.ndarray, observed: Optional[np.ndarray] = None) -> None:
        """
        Overwrite all node motions with packed (N,8) values.

        `observed` (N,) marks nodes whose motion is a live placement; by
        default every node counts as observed.
        """
        self._require_initialized()
        self._store.set_motions(motions, observed)
        self._mutated()

    # -------- per-frame intake --------
    def energy(
        self,
        positions,
        normals,
        pose: Optional[np.ndarray] = None,
        volume=None,
        edges: Sequence[Tuple[DualQuaternion, DualQuaternion]] = (),
    ) -> IntakeReport:
        """
        Replace node motions from a live frame's samples.

        Sample i (row-major) drives node i: its position becomes the
        translation and its normal, read as a rotation vector, the rotation.
        Samples past the node count are ignored; nodes past the sample count
        keep their motion. Intake stops at the first non-finite position
        unless `config.stop_on_invalid` is False, in which case bad samples
        are skipped.

        `pose`, `volume` and `edges` are accepted for the tracking loop's
        sake and currently not used.
        """
        self._require_initialized()
        P = _flatten_points(positions, "positions")
        Nrm = _flatten_points(normals, "normals")
        if P.shape != Nrm.shape:
            raise ValueError(f"positions {P.shape} and normals {Nrm.shape} must match")
        if pose is not None and np.asarray(pose).shape != (4, 4):
            raise ValueError("pose must be a (4,4) matrix")
        logger.debug("energy(): pose=%s volume=%s edges=%d (unused)",
                     pose is not None, volume is not None, len(edges))

        n_scan = min(P.shape[0], self._store.n)
        finite = np.all(np.isfinite(P[:n_scan]), axis=1)
        stopped_at: Optional[int] = None
        skipped: List[int] = []
        if self.config.stop_on_invalid:
            bad = np.flatnonzero(~finite)
            if bad.size:
                stopped_at = int(bad[0])
                use = np.arange(stopped_at)
                logger.warning("Non-finite sample at index %d; intake stopped after %d samples",
                               stopped_at, stopped_at)
            else:
                use = np.arange(n_scan)
        else:
            use = np.flatnonzero(finite)
            skipped = np.flatnonzero(~finite).tolist()
            if skipped:
                logger.warning("Skipped %d non-finite samples", len(skipped))

        if use.size:
            rv = Nrm[use]
            # a missing normal contributes no rotation
            rv = np.where(np.all(np.isfinite(rv), axis=1, keepdims=True), rv, 0.0)
            motions = self._store.motions
            motions[use] = dq_from_rotation_translation(quat_from_rotation_vector(rv), P[use])
            observed = self._store.observed
            observed[use] = True
            self.set_motions(motions, observed)

        scanned = stopped_at + 1 if stopped_at is not None else n_scan
        return IntakeReport(updated=int(use.size), scanned=int(scanned),
                            stopped_at=stopped_at, skipped=skipped)

    # -------- spatial index --------
    def spatial_index(self) -> KnnIndex:
        """KD-tree over current node translations (cached per mutation)."""
        self._require_initialized()
        idx = self._index
        if idx is not None and idx.version == self._version:
            return idx
        idx = build_index(self._store.current_positions(),
                          leafsize=self.config.kdtree_leafsize,
                          version=self._version)
        if self.config.cache_index:
            self._index = idx
        return idx

    @property
    def k(self) -> int:
        return min(int(self.config.k_neighbors), self._store.n)

    def neighbors(self, point) -> Tuple[np.ndarray, np.ndarray]:
        """(k,) node indices and distances, nearest first."""
        return self.spatial_index().query(point, self.k)

    # -------- blending --------
    def blend(self, point, indices, distances, *, strict: bool = False) -> DualQuaternion:
        """
        DQB of the given neighbors for a query at `point`.

        Weights are recomputed from `distances`; `point` only labels log
        output. With strict=True a degenerate blend raises
        DegenerateBlendError instead of returning the identity.
        """
        I = np.asarray(indices, dtype=np.int64).reshape(1, -1)
        d = np.asarray(distances, dtype=np.float64).reshape(1, -1)
        if I.shape != d.shape or I.size == 0:
            raise ValueError("indices and distances must be non-empty and of equal length")
        w = gaussian_weights(d, self.config.voxel_size)
        blended, degenerate = blend_motions(self._store.motions, I, w, eps=self.config.eps)
        if degenerate[0]:
            if strict:
                raise DegenerateBlendError(f"zero blend weight at {np.asarray(point).tolist()}")
            logger.warning("Degenerate blend at %s; using identity motion", np.asarray(point).tolist())
        return DualQuaternion.from_array(blended[0])

    def warp(self, point) -> DualQuaternion:
        """Blended rigid motion at a single point."""
        self._require_initialized()
        idx, dist = self.neighbors(point)
        return self.blend(point, idx, dist)

    def warp_arrays(self, points) -> Tuple[np.ndarray, np.ndarray]:
        """(P,3) -> packed (P,8) blended motions and (P,) degenerate flags."""
        self._require_initialized()
        pts = np.asarray(points, dtype=np.float64)
        if pts.size == 0:
            return np.zeros((0, 8)), np.zeros(0, dtype=bool)
        if pts.ndim != 2 or pts.shape[1] != 3:
            raise ValueError("points must be (P,3)")
        I, W = self._neighbor_weights(pts)
        blended, degenerate = blend_motions(self._store.motions, I, W, eps=self.config.eps)
        if np.any(degenerate):
            logger.warning("%d of %d points had a degenerate blend; using identity motion",
                           int(np.count_nonzero(degenerate)), pts.shape[0])
        return blended, degenerate

    def _neighbor_weights(self, pts: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
        """(P,3) -> (P,k) neighbor indices and Gaussian weights."""
        I, D = self.spatial_index().query_batch(pts, self.k, workers=self.config.workers)
        return I, gaussian_weights(D, self.config.voxel_size)

    def warp_batch(self, points) -> List[DualQuaternion]:
        """One blended motion per input point, in input order."""
        blended, _ = self.warp_arrays(points)
        return [DualQuaternion.from_array(b) for b in blended]

    def warp_points(self, points, normals=None):
        """
        Place canonical points (and normals) in the live frame.

        Each point blends the live placement of its k neighbors and is moved
        by its offset from their weighted canonical mean, so a live frame
        equal to the canonical one leaves points where they are. Nodes not
        yet observed are placed at their canonical position.

        Returns warped points (P,3), or (points, normals) when normals given.
        """
        self._require_initialized()
        pts = np.asarray(points, dtype=np.float64).reshape(-1, 3)
        if pts.shape[0] == 0:
            empty = np.zeros((0, 3))
            return empty if normals is None else (empty, empty.copy())
        I, W = self._neighbor_weights(pts)
        blended, degenerate = blend_motions(self._store.placements(), I, W, eps=self.config.eps)
        anchors = blend_anchors(self._store.canonical_positions, I, W)
        if np.any(degenerate):
            logger.warning("%d of %d points had a degenerate blend; left in place",
                           int(np.count_nonzero(degenerate)), pts.shape[0])
            anchors[degenerate] = 0.0
        if normals is None:
            return dual_quaternion_skinning(pts, blended, anchors=anchors)
        return dual_quaternion_skinning(pts, blended, anchors=anchors,
                                        normals=np.asarray(normals, dtype=np.float64).reshape(-1, 3),
                                        return_normals=True)
