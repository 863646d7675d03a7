import numpy as np
import pytest

from warpfield.dual_quaternion import (
    DualQuaternion,
    dq_from_rotation_translation,
    dq_normalize,
    dq_translation,
)
from warpfield.errors import DegenerateBlendError
from warpfield.quaternion import (
    quat_from_axis_angle,
    quat_from_rotation_vector,
    quat_to_rot,
    rot_to_quat,
)


def _motion(axis, angle, t):
    return DualQuaternion.from_rotation_translation(quat_from_axis_angle(axis, angle), t)


def test_identity_decomposes_to_no_motion():
    dq = DualQuaternion.identity()
    np.testing.assert_allclose(dq.get_rotation(), [1.0, 0.0, 0.0, 0.0])
    np.testing.assert_allclose(dq.get_translation(), [0.0, 0.0, 0.0])
    np.testing.assert_allclose(dq.to_matrix(), np.eye(4))


def test_rotation_translation_round_trip():
    q = quat_from_axis_angle([0.0, 0.0, 1.0], 0.3)
    t = np.array([1.0, 2.0, 3.0])
    dq = DualQuaternion.from_rotation_translation(q, t)
    np.testing.assert_allclose(dq.get_rotation(), q)
    np.testing.assert_allclose(dq.get_translation(), t, atol=1e-12)


def test_transform_point_matches_matrix():
    dq = _motion([1.0, 1.0, 0.0], 0.7, [0.5, -1.0, 2.0])
    p = np.array([0.3, 0.2, -0.4])
    M = dq.to_matrix()
    expected = M[:3, :3] @ p + M[:3, 3]
    np.testing.assert_allclose(dq.transform_point(p), expected, atol=1e-12)


def test_product_composes_motions():
    a = _motion([0.0, 0.0, 1.0], 0.4, [1.0, 0.0, 0.0])
    b = _motion([0.0, 1.0, 0.0], -0.9, [0.0, 2.0, -1.0])
    p = np.array([0.2, 0.1, 0.3])
    np.testing.assert_allclose((a * b).transform_point(p),
                               a.transform_point(b.transform_point(p)), atol=1e-12)


def test_conjugate_inverts_unit_motion():
    a = _motion([1.0, 0.0, 0.0], 1.1, [0.3, 0.4, 0.5])
    assert (a * a.conjugate()).allclose(DualQuaternion.identity(), atol=1e-12)


def test_unit_magnitude():
    a = _motion([0.0, 1.0, 1.0], 0.5, [3.0, -2.0, 1.0])
    rot_norm, trans_norm = a.magnitude()
    assert rot_norm == pytest.approx(1.0)
    assert trans_norm == pytest.approx(0.0, abs=1e-12)


def test_single_weighted_motion_normalizes_to_itself():
    a = _motion([0.0, 0.0, 1.0], 0.8, [1.0, 2.0, 3.0])
    assert (3.0 * a).normalized().allclose(a, atol=1e-12)
    assert (1.0 * a).normalized().allclose(a, atol=1e-12)


def test_numpy_scalar_multiplies_from_the_left():
    a = _motion([0.0, 0.0, 1.0], 0.2, [1.0, 0.0, 0.0])
    scaled = np.float64(2.0) * a
    assert isinstance(scaled, DualQuaternion)
    np.testing.assert_allclose(scaled.real, 2.0 * a.real)


def test_weighted_sum_is_order_independent():
    motions = [
        _motion([0.0, 0.0, 1.0], 0.1, [0.0, 0.0, 0.0]),
        _motion([0.0, 0.0, 1.0], 0.3, [1.0, 0.0, 0.0]),
        _motion([1.0, 0.0, 0.0], 0.2, [0.0, 1.0, 0.0]),
    ]
    weights = [1.0, 0.6, 0.2]

    def blend(order):
        total = DualQuaternion(np.zeros(4), np.zeros(4))
        for i in order:
            total = total + weights[i] * motions[i]
        return total.normalized()

    assert blend([0, 1, 2]).allclose(blend([2, 0, 1]), atol=1e-12)


def test_normalized_blend_is_unit():
    a = _motion([0.0, 0.0, 1.0], 0.3, [1.0, 0.0, 0.0])
    b = _motion([0.0, 1.0, 0.0], 0.6, [0.0, 1.0, 0.0])
    n = (0.7 * a + 0.4 * b).normalized()
    rot_norm, trans_norm = n.magnitude()
    assert rot_norm == pytest.approx(1.0)
    assert trans_norm == pytest.approx(0.0, abs=1e-12)


def test_zero_motion_cannot_be_normalized():
    with pytest.raises(DegenerateBlendError):
        DualQuaternion(np.zeros(4), np.zeros(4)).normalized()


def test_from_matrix_matches_to_matrix():
    a = _motion([1.0, 2.0, 3.0], 1.3, [0.1, 0.2, 0.3])
    b = DualQuaternion.from_matrix(a.to_matrix())
    assert b.allclose(a, atol=1e-10)


def test_bad_shapes_raise():
    with pytest.raises(ValueError):
        DualQuaternion.from_rotation_translation([1.0, 0.0, 0.0], [0.0, 0.0, 0.0])
    with pytest.raises(ValueError):
        DualQuaternion.from_array(np.zeros(7))


def test_packed_helpers():
    rots = np.stack([quat_from_axis_angle([0, 0, 1], 0.2), quat_from_axis_angle([1, 0, 0], -0.5)])
    trans = np.array([[1.0, 2.0, 3.0], [-1.0, 0.0, 0.5]])
    packed = dq_from_rotation_translation(rots, trans)
    np.testing.assert_allclose(dq_translation(packed), trans, atol=1e-12)

    stacked = np.vstack([3.0 * packed, np.zeros((1, 8))])
    out, degenerate = dq_normalize(stacked)
    np.testing.assert_allclose(out[:2], packed, atol=1e-12)
    np.testing.assert_allclose(out[2], [1, 0, 0, 0, 0, 0, 0, 0])
    assert degenerate.tolist() == [False, False, True]


def test_rotation_vector_map():
    q = quat_from_rotation_vector([0.0, 0.0, 0.5])
    np.testing.assert_allclose(q, [np.cos(0.25), 0.0, 0.0, np.sin(0.25)])
    np.testing.assert_allclose(quat_from_rotation_vector([0.0, 0.0, 0.0]), [1.0, 0.0, 0.0, 0.0])


def test_rot_to_quat_round_trip():
    q = quat_from_axis_angle([0.3, -0.2, 0.9], 2.5)
    q2 = rot_to_quat(quat_to_rot(q))
    assert np.allclose(q2, q, atol=1e-10) or np.allclose(q2, -q, atol=1e-10)
