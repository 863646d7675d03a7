import numpy as np
import pytest

from examples.bending_bar_demo import bend_frame, build_session
from fusion.frame import Frame
from fusion.session import ReconstructionSession
from warpfield.warp_field import WarpField, WarpFieldConfig


def _line(n=5):
    x = np.arange(n, dtype=np.float64)
    return np.stack([x, np.zeros(n), np.zeros(n)], axis=1)


def test_frame_validates_buffers():
    with pytest.raises(ValueError):
        Frame(positions=np.zeros((4, 3)), normals=np.zeros((3, 3)))
    with pytest.raises(ValueError):
        Frame(positions=np.zeros((4, 2)), normals=np.zeros((4, 2)))
    with pytest.raises(ValueError):
        Frame(positions=np.zeros((4, 3)), normals=np.zeros((4, 3)), pose=np.eye(3))


def test_frame_keeps_double_precision():
    pos = np.array([[1.0 + 1e-12, 0.0, 0.0]])
    frame = Frame(positions=pos, normals=np.zeros((1, 3)))
    assert frame.positions.dtype == np.float64
    assert frame.positions[0, 0] == pos[0, 0]


def test_frame_valid_mask_row_major():
    pos = np.zeros((2, 2, 3))
    pos[1, 0, 2] = np.nan
    frame = Frame(positions=pos, normals=np.zeros_like(pos))
    assert frame.n_samples == 4
    assert frame.valid_mask().tolist() == [True, True, False, True]
    assert frame.n_valid() == 3


def test_first_frame_seeds_nodes():
    session = ReconstructionSession(WarpField(WarpFieldConfig(voxel_size=1.0)))
    out = session.process(Frame(positions=_line(), normals=np.zeros((5, 3))))
    assert out.index == 0
    assert out.report is None
    assert session.warp_field.n_nodes == 5
    np.testing.assert_allclose(out.points, _line())
    # identity motions leave the nodes in place
    np.testing.assert_allclose(out.warped_points, _line(), atol=1e-12)


def test_later_frames_run_intake_then_queries():
    session = ReconstructionSession(WarpField(WarpFieldConfig(voxel_size=1.0)))
    session.process(Frame(positions=_line(), normals=np.zeros((5, 3))))

    live = _line() + [0.0, 0.0, 2.0]
    live[3] = np.nan
    out = session.process(Frame(positions=live, normals=np.zeros((5, 3))),
                          query_points=[[0.0, 0.0, 2.0], [1.0, 0.0, 2.0]])
    assert out.index == 1
    assert out.report.halted
    assert out.report.updated == 3
    assert session.history == [out.report]
    assert out.motions.shape == (2, 8)
    assert out.warped_points.shape == (2, 3)
    assert not out.degenerate.any()


def test_repeating_reference_frame_leaves_points_in_place():
    line = _line() + [1.0, 0.0, 0.0]
    session = ReconstructionSession(WarpField(WarpFieldConfig(voxel_size=1.0)))
    session.process(Frame(positions=line, normals=np.zeros((5, 3))))
    out = session.process(Frame(positions=line, normals=np.zeros((5, 3))))
    assert out.report.updated == 5
    np.testing.assert_allclose(out.warped_points, line, atol=1e-9)


def test_shifted_frame_moves_query_points():
    session = ReconstructionSession(WarpField(WarpFieldConfig(voxel_size=1.0)))
    session.process(Frame(positions=_line(), normals=np.zeros((5, 3))))
    out = session.process(Frame(positions=_line() + [0.0, 0.0, 2.0], normals=np.zeros((5, 3))),
                          query_points=[[1.5, 0.0, 0.0]])
    np.testing.assert_allclose(out.warped_points, [[1.5, 0.0, 2.0]], atol=1e-9)


def test_explicit_pose_overrides_frame_pose():
    session = ReconstructionSession(WarpField())
    session.process(Frame(positions=_line(), normals=np.zeros((5, 3))))
    frame = Frame(positions=_line(), normals=np.zeros((5, 3)), pose=np.eye(4))
    # the explicit pose is the one handed to intake
    with pytest.raises(ValueError):
        session.process(frame, pose=np.eye(3))
    out = session.process(frame, pose=np.eye(4))
    assert out.report.updated == 5


def test_reference_frame_without_valid_samples_is_retried():
    session = ReconstructionSession(WarpField())
    out = session.process(Frame(positions=np.full((3, 3), np.nan), normals=np.zeros((3, 3))))
    assert out.points.shape == (0, 3)
    assert not session.warp_field.is_initialized

    session.process(Frame(positions=_line(3), normals=np.zeros((3, 3))))
    assert session.warp_field.n_nodes == 3
    assert session.frame_index == 2


def test_bending_bar_demo_runs():
    session, bar = build_session()
    out = session.process(bend_frame(bar, 0.3), query_points=bar)
    assert out.report.updated == bar.shape[0]
    assert np.all(np.isfinite(out.warped_points))
    assert np.all(np.isfinite(out.motions))
