# -*- coding: utf-8 -*-
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import List, Optional, Sequence, Tuple

import numpy as np

from warpfield.dual_quaternion import DualQuaternion
from warpfield.warp_field import IntakeReport, WarpField

from .frame import Frame

logger = logging.getLogger(__name__)


@dataclass
class SessionFrame:
    """某一帧处理完成后的结果."""

    index: int
    report: Optional[IntakeReport]  # 首帧用于初始化时为 None
    points: np.ndarray              # 查询点 (P, 3), canonical 空间
    warped_points: np.ndarray       # 变形后的查询点 (P, 3)
    motions: np.ndarray             # 每个查询点的混合运动 (P, 8)
    degenerate: np.ndarray          # (P,) bool


@dataclass
class ReconstructionSession:
    """按帧同步驱动 WarpField 的简单循环.

    每一帧的顺序固定:
    - 先做观测输入 (WarpField.energy), 这是唯一修改节点的步骤
    - 再对同一节点快照做若干次 warp 查询

    若 WarpField 尚未初始化, 第一帧视为参考帧, 用 init_from_frame 生成节点。
    """

    warp_field: WarpField
    frame_index: int = 0
    history: List[IntakeReport] = field(default_factory=list)

    def process(
        self,
        frame: Frame,
        query_points: Optional[np.ndarray] = None,
        pose: Optional[np.ndarray] = None,
        volume=None,
        edges: Sequence[Tuple[DualQuaternion, DualQuaternion]] = (),
    ) -> SessionFrame:
        """处理一帧, 返回查询点的混合运动与变形结果.

        query_points 为空时默认查询节点的 canonical 位置。
        pose 为空时使用 frame.pose。
        """
        report: Optional[IntakeReport] = None
        if not self.warp_field.is_initialized:
            chosen = self.warp_field.init_from_frame(frame.positions)
            logger.info("Frame %d: seeded %d nodes from reference frame",
                        self.frame_index, chosen.size)
        else:
            report = self.warp_field.energy(
                frame.positions, frame.normals,
                pose=frame.pose if pose is None else pose, volume=volume, edges=edges,
            )
            self.history.append(report)
            if report.halted:
                logger.warning("Frame %d: intake halted at sample %d (%d nodes updated)",
                               self.frame_index, report.stopped_at, report.updated)

        if not self.warp_field.is_initialized:
            # 参考帧没有有效采样, 下一帧再尝试初始化
            idx = self.frame_index
            self.frame_index += 1
            empty = np.zeros((0, 3), dtype=np.float64)
            return SessionFrame(idx, report, empty, empty.copy(),
                                np.zeros((0, 8)), np.zeros(0, dtype=bool))

        if query_points is None:
            pts = np.array(self.warp_field.nodes.canonical_positions, dtype=np.float64)
        else:
            pts = np.asarray(query_points, dtype=np.float64).reshape(-1, 3)

        motions, degenerate = self.warp_field.warp_arrays(pts)
        warped = self.warp_field.warp_points(pts)

        result = SessionFrame(
            index=self.frame_index,
            report=report,
            points=pts,
            warped_points=warped,
            motions=motions,
            degenerate=degenerate,
        )
        self.frame_index += 1
        return result
