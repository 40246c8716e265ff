import numpy as np
import pytest

from slamkit.stereo import CX, CY, FX, FY, BASELINE, MAX_DISPARITY, disparity_to_pointcloud


def test_no_valid_disparity_gives_empty_cloud():
    left = np.zeros((5, 6), dtype=np.uint8)
    cloud = disparity_to_pointcloud(left, np.zeros((5, 6)))
    assert cloud.shape == (0, 4)


def test_point_geometry_round_trips():
    left = np.zeros((300, 700), dtype=np.uint8)
    left[120, 450] = 204
    disparity = np.zeros((300, 700))
    disparity[120, 450] = 32.0
    cloud = disparity_to_pointcloud(left, disparity)
    assert cloud.shape == (1, 4)
    x, y, z, grey = cloud[0]
    assert z * 32.0 == pytest.approx(FX * BASELINE)
    assert x / z * FX + CX == pytest.approx(450.0)
    assert y / z * FY + CY == pytest.approx(120.0)
    assert grey == pytest.approx(204 / 255.0)


def test_out_of_range_disparities_are_dropped():
    left = np.full((2, 3), 10, dtype=np.uint8)
    disparity = np.array([[-1.0, 0.0, MAX_DISPARITY], [MAX_DISPARITY + 5, 50.0, 0.5]])
    cloud = disparity_to_pointcloud(left, disparity)
    assert len(cloud) == 2
    assert np.allclose(cloud[:, 2] * np.array([50.0, 0.5]), FX * BASELINE)


def test_points_in_row_major_order():
    left = np.zeros((4, 4), dtype=np.uint8)
    disparity = np.zeros((4, 4))
    disparity[3, 0] = 10.0
    disparity[1, 2] = 20.0
    cloud = disparity_to_pointcloud(left, disparity, fx=1.0, fy=1.0, cx=0.0, cy=0.0, baseline=1.0)
    assert np.allclose(cloud[:, 2], [1 / 20.0, 1 / 10.0])
    assert np.allclose(cloud[:, 0] / cloud[:, 2], [2.0, 0.0])


def test_custom_max_disparity():
    left = np.zeros((1, 2), dtype=np.uint8)
    disparity = np.array([[5.0, 15.0]])
    assert len(disparity_to_pointcloud(left, disparity, max_disparity=10.0)) == 1
    assert len(disparity_to_pointcloud(left, disparity, max_disparity=20.0)) == 2


def test_shape_mismatch_raises():
    with pytest.raises(ValueError):
        disparity_to_pointcloud(np.zeros((3, 3)), np.zeros((3, 4)))