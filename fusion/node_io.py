# -*- coding: utf-8 -*-
"""Warp-field node snapshot I/O (.npz)."""

from __future__ import annotations

import logging
import os
from dataclasses import asdict

import numpy as np

from warpfield.warp_field import WarpField, WarpFieldConfig

logger = logging.getLogger(__name__)

_CONFIG_KEYS = tuple(WarpFieldConfig.__dataclass_fields__.keys())


def save_nodes_npz(path: str, field: WarpField) -> None:
    """Save canonical positions, packed motions, the observed mask and config to a .npz file."""
    dir_path = os.path.dirname(path)
    if dir_path:
        os.makedirs(dir_path, exist_ok=True)

    cfg = asdict(field.config)
    np.savez_compressed(
        path,
        canonical=np.asarray(field.nodes.canonical_positions, dtype=np.float64),
        motions=np.asarray(field.nodes.motions, dtype=np.float64),
        observed=np.asarray(field.nodes.observed, dtype=bool),
        **{f"config_{k}": np.asarray(v) for k, v in cfg.items()},
    )
    logger.info("Saved %d nodes to %s", field.n_nodes, path)


def load_nodes_npz(path: str) -> WarpField:
    """Restore a WarpField saved by `save_nodes_npz`."""
    with np.load(path) as data:
        canonical = np.asarray(data["canonical"], dtype=np.float64)
        motions = np.asarray(data["motions"], dtype=np.float64)
        if canonical.ndim != 2 or canonical.shape[1] != 3:
            raise ValueError(f"canonical must be (N,3), got {canonical.shape}")
        if motions.shape != (canonical.shape[0], 8):
            raise ValueError(f"motions must be ({canonical.shape[0]},8), got {motions.shape}")
        # snapshots without the mask treat every stored motion as observed
        observed = np.asarray(data["observed"], dtype=bool) if "observed" in data.files else None
        if observed is not None and observed.shape != (canonical.shape[0],):
            raise ValueError(f"observed must be ({canonical.shape[0]},), got {observed.shape}")
        kwargs = {}
        for k in _CONFIG_KEYS:
            key = f"config_{k}"
            if key in data.files:
                kwargs[k] = data[key].item()

    field = WarpField(WarpFieldConfig(**kwargs))
    field.init(canonical)
    if field.n_nodes:
        field.set_motions(motions, observed)
    return field
