# -*- coding: utf-8 -*-
"""
Canonical geometry I/O and node seeding.

Design goals
------------
1) Load the canonical (first-frame) surface from any mesh format trimesh reads,
   robust to Scenes (multi-geometry).
2) Turn dense surface vertices into sparse warp-field node positions by
   voxel-grid subsampling (one node per occupied voxel).

Notes
-----
- No transforms are applied to the loaded geometry; canonical space is
  whatever frame the file was written in.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Union

import numpy as np
import trimesh

logger = logging.getLogger(__name__)


# -----------------------
# Core data structure
# -----------------------

@dataclass
class CanonicalSurface:
    """Vertices (+ normals) of the reference surface."""
    vertices: np.ndarray                  # (N,3) float32
    normals: Optional[np.ndarray] = None  # (N,3) or None
    faces: Optional[np.ndarray] = None    # (M,3) int32 or None

    def __post_init__(self):
        self.vertices = np.asarray(self.vertices, dtype=np.float32)
        if self.vertices.ndim != 2 or self.vertices.shape[1] != 3:
            raise ValueError(f"vertices must be (N,3), got {self.vertices.shape}")
        if self.normals is not None:
            self.normals = np.asarray(self.normals, dtype=np.float32)
            if self.normals.shape != self.vertices.shape:
                raise ValueError("normals must match vertices shape")

    @property
    def n_vertices(self) -> int:
        return int(self.vertices.shape[0])

    @staticmethod
    def from_trimesh(tm: trimesh.Trimesh) -> "CanonicalSurface":
        v = np.asarray(tm.vertices)
        f = np.asarray(tm.faces, dtype=np.int32) if len(tm.faces) else None
        n = None
        if f is not None:
            # trimesh computes smooth vertex normals lazily
            n = np.asarray(tm.vertex_normals)
        return CanonicalSurface(vertices=v, normals=n, faces=f)


# -----------------------
# Loading
# -----------------------

def _merge_scene(scene: trimesh.Scene) -> trimesh.Trimesh:
    """Merge all geometry from a trimesh.Scene into a single Trimesh (world coords)."""
    return trimesh.util.concatenate(
        [g.copy().apply_transform(scene.graph.get_transform(node))
         for node, g in scene.geometry.items()]
    )


def load_canonical_surface(path: Union[str, Path], *, weld: bool = True) -> CanonicalSurface:
    """Load a mesh or point cloud file as the canonical surface."""
    path = str(path)
    loaded = trimesh.load(path, process=False)
    if isinstance(loaded, trimesh.Scene):
        loaded = _merge_scene(loaded)
    if isinstance(loaded, trimesh.PointCloud):
        surface = CanonicalSurface(vertices=np.asarray(loaded.vertices))
    elif isinstance(loaded, trimesh.Trimesh):
        if weld:
            loaded.merge_vertices()
        surface = CanonicalSurface.from_trimesh(loaded)
    else:
        raise RuntimeError(f"Unsupported geometry container from {path}: {type(loaded)}")
    logger.info("Loaded canonical surface %s: %d vertices", path, surface.n_vertices)
    return surface


# -----------------------
# Node seeding
# -----------------------

def voxel_downsample_indices(points: np.ndarray, voxel_size: float) -> np.ndarray:
    """
    One representative point per occupied voxel.

    The representative is the point closest to its voxel's centroid; the
    returned indices are sorted so node order follows input order.
    """
    P = np.asarray(points, dtype=np.float64)
    if P.ndim != 2 or P.shape[1] != 3:
        raise ValueError("points must be (N,3)")
    if not float(voxel_size) > 0.0:
        raise ValueError(f"voxel_size must be positive, got {voxel_size!r}")
    finite = np.all(np.isfinite(P), axis=1)
    src = np.flatnonzero(finite)
    if src.size == 0:
        return np.zeros(0, dtype=np.int64)
    Q = P[src]

    keys = np.floor(Q / float(voxel_size)).astype(np.int64)
    _, inverse, counts = np.unique(keys, axis=0, return_inverse=True, return_counts=True)
    inverse = inverse.reshape(-1)
    n_vox = counts.shape[0]

    centroids = np.zeros((n_vox, 3), dtype=np.float64)
    np.add.at(centroids, inverse, Q)
    centroids /= counts[:, None]

    d2 = np.sum((Q - centroids[inverse]) ** 2, axis=1)
    # stable sort by (voxel, distance) and keep the first entry of each voxel
    order = np.lexsort((d2, inverse))
    first = np.ones(order.shape[0], dtype=bool)
    first[1:] = inverse[order[1:]] != inverse[order[:-1]]
    return np.sort(src[order[first]])


def sample_node_positions(surface: CanonicalSurface, voxel_size: float) -> np.ndarray:
    """(M,3) node seed positions from a canonical surface."""
    idx = voxel_downsample_indices(surface.vertices, voxel_size)
    logger.debug("Voxel size %.4g: %d vertices -> %d nodes", voxel_size, surface.n_vertices, idx.size)
    return surface.vertices[idx].astype(np.float64)


def load_canonical_points(path: Union[str, Path], voxel_size: float) -> np.ndarray:
    """Load a mesh file and return voxel-subsampled node seed positions."""
    return sample_node_positions(load_canonical_surface(path), voxel_size)


def make_unit_box(center: bool = True) -> CanonicalSurface:
    """Utility: a unit cube surface for tests and demos."""
    tm = trimesh.creation.box(extents=(1.0, 1.0, 1.0))
    surface = CanonicalSurface.from_trimesh(tm)
    if not center:
        surface.vertices = surface.vertices + np.array([0.5, 0.5, 0.5], dtype=np.float32)
    return surface
