import numpy as np
import pytest

from slamkit.lie import SE3
from slamkit.triangulation import triangulate


def _observe(poses, pt_world):
    points = []
    for pose in poses:
        pc = pose * pt_world
        pc = pc / pc[2]
        points.append(np.array([pc[0], pc[1], 1.0]))
    return points


def test_triangulation_recovers_point():
    pt_world = np.array([30.0, 20.0, 10.0])
    poses = [
        SE3.from_quaternion(0, 0, 0, 1, (0, 0, 0)),
        SE3.from_quaternion(0, 0, 0, 1, (0, -10, 0)),
        SE3.from_quaternion(0, 0, 0, 1, (0, 10, 0)),
    ]
    estimate = triangulate(poses, _observe(poses, pt_world))
    assert estimate is not None
    assert estimate[0] == pytest.approx(30.0, abs=0.01)
    assert estimate[1] == pytest.approx(20.0, abs=0.01)
    assert estimate[2] == pytest.approx(10.0, abs=0.01)


def test_triangulation_with_stereo_pair():
    pt_world = np.array([0.5, -0.2, 4.0])
    poses = [SE3(), SE3(translation=(-0.5, 0, 0))]
    estimate = triangulate(poses, _observe(poses, pt_world))
    np.testing.assert_allclose(estimate, pt_world, atol=1e-8)


def test_inconsistent_observations_are_rejected():
    poses = [SE3(), SE3(translation=(-1, 0, 0))]
    points = [np.array([0.0, 0.0, 1.0]), np.array([0.0, 5.0, 1.0])]
    assert triangulate(poses, points) is None


def test_mismatched_lengths_raise():
    with pytest.raises(ValueError):
        triangulate([SE3(), SE3()], [np.array([0.0, 0.0, 1.0])])


def test_single_observation_raises():
    with pytest.raises(ValueError):
        triangulate([SE3()], [np.array([0.0, 0.0, 1.0])])