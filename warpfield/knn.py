# -*- coding: utf-8 -*-
"""
k-nearest-neighbor index over node positions.

Interface
---------
build_index(positions, leafsize) -> KnnIndex
    Snapshot the positions into a KD-tree.
query_index(index, point, k) -> (indices, distances)
    Nearest first; k is clipped to the number of indexed points.

The index never observes later changes to the array it was built from;
callers rebuild it whenever node motions change.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Tuple

import numpy as np
from scipy.spatial import cKDTree


@dataclass(frozen=True)
class KnnIndex:
    """Read-only KD-tree snapshot over (N,3) positions."""
    tree: cKDTree
    n: int
    version: int = 0  # owner's mutation counter at build time

    def query(self, point, k: int) -> Tuple[np.ndarray, np.ndarray]:
        """Single point -> (k,) int indices, (k,) distances."""
        p = np.asarray(point, dtype=np.float64)
        if p.shape != (3,):
            raise ValueError(f"point must be (3,), got {p.shape}")
        idx, dist = self.query_batch(p[None, :], k)
        return idx[0], dist[0]

    def query_batch(self, points, k: int, workers: int = 1) -> Tuple[np.ndarray, np.ndarray]:
        """(P,3) points -> (P,k) int indices, (P,k) distances."""
        P = np.asarray(points, dtype=np.float64)
        if P.ndim != 2 or P.shape[1] != 3:
            raise ValueError("points must be (P,3)")
        k = min(int(k), self.n)
        if k <= 0:
            raise ValueError("k must be >= 1")
        dist, idx = self.tree.query(P, k=k, workers=workers)
        # cKDTree drops the neighbor axis when k == 1
        dist = np.asarray(dist, dtype=np.float64).reshape(P.shape[0], k)
        idx = np.asarray(idx, dtype=np.int64).reshape(P.shape[0], k)
        return idx, dist


def build_index(positions, leafsize: int = 10, version: int = 0) -> KnnIndex:
    pos = np.asarray(positions, dtype=np.float64)
    if pos.ndim != 2 or pos.shape[1] != 3:
        raise ValueError("positions must be (N,3)")
    if pos.shape[0] == 0:
        raise ValueError("cannot build an index over zero points")
    # copy_data keeps the tree a true snapshot of the caller's buffer
    tree = cKDTree(pos, leafsize=int(leafsize), copy_data=True)
    return KnnIndex(tree=tree, n=int(pos.shape[0]), version=version)


def query_index(index: KnnIndex, point, k: int) -> Tuple[np.ndarray, np.ndarray]:
    return index.query(point, k)
