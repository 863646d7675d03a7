# -*- coding: utf-8 -*-
"""
fusion 包：连接深度流水线与 warp field 的外围部分。

当前提供：
- Frame: 一帧的采样位置 + 法线（NaN 表示缺失深度）。
- load_canonical_surface / load_canonical_points: 用 trimesh 读取参考表面并体素下采样出节点。
- save_nodes_npz / load_nodes_npz: 节点快照读写。
- ReconstructionSession: 按帧同步的输入 + 查询循环。
"""

from .frame import Frame  # noqa: F401
from .mesh_io import load_canonical_points, load_canonical_surface  # noqa: F401
from .node_io import load_nodes_npz, save_nodes_npz  # noqa: F401
from .session import ReconstructionSession, SessionFrame  # noqa: F401
