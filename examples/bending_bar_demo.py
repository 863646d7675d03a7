# -*- coding: utf-8 -*-
"""Synthetic bending-bar demo: seed nodes, feed bent frames, warp the bar."""

from __future__ import annotations

import logging

import numpy as np

from fusion.frame import Frame
from fusion.session import ReconstructionSession
from warpfield.logging_config import setup_logging
from warpfield.warp_field import WarpField, WarpFieldConfig

logger = logging.getLogger("fusion.demo")


def make_bar(n: int = 40, length: float = 1.0) -> np.ndarray:
    x = np.linspace(0.0, length, n)
    return np.stack([x, np.zeros_like(x), np.zeros_like(x)], axis=1)


def bend_frame(bar: np.ndarray, max_angle: float) -> Frame:
    """Bend the bar about +z; normals carry each sample's rotation vector."""
    length = float(bar[:, 0].max()) or 1.0
    angles = max_angle * bar[:, 0] / length
    c, s = np.cos(angles), np.sin(angles)
    x = bar[:, 0]
    positions = np.stack([c * x, s * x, bar[:, 2]], axis=1)
    normals = np.stack([np.zeros_like(angles), np.zeros_like(angles), angles], axis=1)
    return Frame(positions=positions, normals=normals)


def build_session(voxel_size: float = 0.05) -> tuple[ReconstructionSession, np.ndarray]:
    bar = make_bar()
    field = WarpField(WarpFieldConfig(voxel_size=voxel_size, k_neighbors=8))
    session = ReconstructionSession(field)
    reference = Frame(positions=bar, normals=np.zeros_like(bar))
    session.process(reference)
    return session, bar


if __name__ == "__main__":
    setup_logging(logging.INFO)
    session, bar = build_session()
    for angle in np.linspace(0.1, 0.6, 6):
        out = session.process(bend_frame(bar, float(angle)), query_points=bar)
        tip = out.warped_points[-1]
        logger.info("frame %d: bend=%.2f rad, tip=(%.3f, %.3f, %.3f)", out.index, angle, *tip)
