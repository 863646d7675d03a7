# -*- coding: utf-8 -*-
"""Deformation nodes and the index-addressed store that owns them."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterator, Optional

import numpy as np

from .dual_quaternion import IDENTITY_ARRAY, DualQuaternion, dq_from_rotation_translation, dq_translation
from .quaternion import quat_identity


@dataclass
class Node:
    """A graph vertex: canonical position + current rigid motion."""
    canonical_position: np.ndarray  # (3,)
    motion: DualQuaternion

    def __post_init__(self):
        self.canonical_position = np.asarray(self.canonical_position, dtype=np.float64)
        if self.canonical_position.shape != (3,):
            raise ValueError(f"canonical_position must be (3,), got {self.canonical_position.shape}")


class NodeStore:
    """
    Arena of nodes, addressed by index 0..N-1.

    Canonical positions are kept read-only after construction; motions live in
    one packed (N,8) array so blends can gather them by index.
    """
    def __init__(self, positions: Optional[np.ndarray] = None):
        pos = np.zeros((0, 3), dtype=np.float64) if positions is None else np.asarray(positions, dtype=np.float64)
        if pos.size == 0:
            pos = pos.reshape(0, 3)
        if pos.ndim != 2 or pos.shape[1] != 3:
            raise ValueError("positions must be (N,3) array")
        self._canonical = pos.copy()
        self._canonical.setflags(write=False)
        self._motions = np.tile(IDENTITY_ARRAY, (pos.shape[0], 1))
        self._observed = np.zeros(pos.shape[0], dtype=bool)

    # -------- basic props --------
    @property
    def n(self) -> int:
        return int(self._canonical.shape[0])

    def __len__(self) -> int:
        return self.n

    def __iter__(self) -> Iterator[Node]:
        for i in range(self.n):
            yield self[i]

    def __getitem__(self, i: int) -> Node:
        return Node(self._canonical[i], DualQuaternion.from_array(self._motions[i]))

    @property
    def canonical_positions(self) -> np.ndarray:
        """(N,3) read-only view."""
        return self._canonical

    @property
    def motions(self) -> np.ndarray:
        """(N,8) packed motions (copy)."""
        return self._motions.copy()

    def current_positions(self) -> np.ndarray:
        """(N,3) translation part of every node's motion."""
        return dq_translation(self._motions)

    @property
    def observed(self) -> np.ndarray:
        """(N,) True for nodes whose motion came from a live sample."""
        return self._observed.copy()

    def placements(self) -> np.ndarray:
        """
        (N,8) motions that place each node in the live frame.

        Observed nodes use their motion; nodes never observed stay at their
        canonical position with no rotation.
        """
        out = self._motions.copy()
        rest = ~self._observed
        if np.any(rest):
            out[rest] = dq_from_rotation_translation(
                np.tile(quat_identity(), (int(np.count_nonzero(rest)), 1)),
                self._canonical[rest],
            )
        return out

    # -------- mutation --------
    def set_motions(self, motions: np.ndarray, observed: Optional[np.ndarray] = None) -> None:
        """Overwrite all motions; `observed` (N,) bool defaults to every node."""
        m = np.asarray(motions, dtype=np.float64)
        if m.shape != self._motions.shape:
            raise ValueError(f"motions must be {self._motions.shape}, got {m.shape}")
        if observed is None:
            obs = np.ones(self.n, dtype=bool)
        else:
            obs = np.asarray(observed, dtype=bool)
            if obs.shape != (self.n,):
                raise ValueError(f"observed must be ({self.n},), got {obs.shape}")
        self._motions[:] = m
        self._observed[:] = obs
