# -*- coding: utf-8 -*-
"""Live-frame sample buffers as handed over by the depth pipeline."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Tuple

import numpy as np


@dataclass
class Frame:
    """
    Positions + normals of one depth frame.

    `positions` is organized (H,W,3) or flat (N,3); missing depth is marked by
    a non-finite coordinate (NaN sentinel). `normals` is index-aligned.
    """
    positions: np.ndarray
    normals: np.ndarray
    pose: Optional[np.ndarray] = None  # (4,4) camera pose from the tracker, if any

    def __post_init__(self):
        self.positions = np.asarray(self.positions, dtype=np.float64)
        self.normals = np.asarray(self.normals, dtype=np.float64)
        if self.positions.ndim not in (2, 3) or self.positions.shape[-1] != 3:
            raise ValueError(f"positions must be (N,3) or (H,W,3), got {self.positions.shape}")
        if self.normals.shape != self.positions.shape:
            raise ValueError(
                f"normals {self.normals.shape} must match positions {self.positions.shape}"
            )
        if self.pose is not None:
            self.pose = np.asarray(self.pose, dtype=np.float64)
            if self.pose.shape != (4, 4):
                raise ValueError(f"pose must be (4,4), got {self.pose.shape}")

    # ---------- basic props ----------
    @property
    def shape(self) -> Tuple[int, ...]:
        return self.positions.shape[:-1]

    @property
    def n_samples(self) -> int:
        return int(np.prod(self.shape))

    def flat_positions(self) -> np.ndarray:
        """(N,3), row-major."""
        return self.positions.reshape(-1, 3)

    def flat_normals(self) -> np.ndarray:
        return self.normals.reshape(-1, 3)

    def valid_mask(self) -> np.ndarray:
        """(N,) True where the sample position is finite."""
        return np.all(np.isfinite(self.flat_positions()), axis=1)

    def n_valid(self) -> int:
        return int(np.count_nonzero(self.valid_mask()))
