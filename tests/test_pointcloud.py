import numpy as np
import pytest

from slamkit.lie import SE3, quaternion_to_matrix
from slamkit.pointcloud import (
    backproject,
    main,
    parse_poses,
    statistical_outlier_removal,
    voxel_downsample,
    write_pcd,
)


def test_parse_poses_reads_translation_and_quaternion():
    poses = parse_poses(["1 2 3 0 0 0 1", "4 5 6 0 0 1 0"], 2)
    assert len(poses) == 2
    np.testing.assert_allclose(poses[0].translation, [1, 2, 3])
    np.testing.assert_allclose(poses[0].rotation.matrix, np.eye(3), atol=1e-12)
    np.testing.assert_allclose(poses[1].translation, [4, 5, 6])
    np.testing.assert_allclose(poses[1].rotation.matrix, quaternion_to_matrix(0, 0, 0, 1), atol=1e-12)


def test_parse_poses_ignores_line_breaks_and_extra_values():
    poses = parse_poses(["1 2 3", "0 0 0 1 9 9"], 1)
    assert len(poses) == 1
    np.testing.assert_allclose(poses[0].translation, [1, 2, 3])


def test_parse_poses_too_few_values():
    with pytest.raises(ValueError):
        parse_poses(["1 2 3 0 0 0 1"], 2)


def test_parse_poses_bad_number():
    with pytest.raises(ValueError):
        parse_poses(["1 2 x 0 0 0 1"], 1)


def _frame():
    depth = np.zeros((4, 5), dtype=np.uint16)
    depth[1, 2] = 2000
    depth[3, 4] = 500
    color = np.arange(4 * 5 * 3, dtype=np.uint8).reshape(4, 5, 3)
    return color, depth


def test_backproject_skips_zero_depth_and_copies_colour():
    color, depth = _frame()
    cloud = backproject(color, depth, SE3(), 2.0, 3.0, 1.0, 1.5, 1000.0)
    assert cloud.shape == (np.count_nonzero(depth), 6)
    np.testing.assert_array_equal(cloud[0, 3:], color[1, 2])
    np.testing.assert_array_equal(cloud[1, 3:], color[3, 4])


def test_backproject_points_reproject_onto_their_pixels():
    color, depth = _frame()
    fx, fy, cx, cy = 2.0, 3.0, 1.0, 1.5
    cloud = backproject(color, depth, SE3(), fx, fy, cx, cy, 1000.0)
    pixels = [(2, 1), (4, 3)]
    for (u, v), point in zip(pixels, cloud):
        x, y, z = point[:3]
        assert fx * x / z + cx == pytest.approx(u)
        assert fy * y / z + cy == pytest.approx(v)
        assert z == pytest.approx(depth[v, u] / 1000.0)


def test_backproject_applies_pose():
    color, depth = _frame()
    pose = SE3.exp([0.5, -1.0, 2.0, 0.1, 0.2, 0.3])
    local = backproject(color, depth, SE3(), 2.0, 3.0, 1.0, 1.5, 1000.0)
    world = backproject(color, depth, pose, 2.0, 3.0, 1.0, 1.5, 1000.0)
    np.testing.assert_allclose(world[:, :3], pose * local[:, :3])


def test_backproject_size_mismatch():
    with pytest.raises(ValueError):
        backproject(np.zeros((3, 3, 3)), np.zeros((4, 4)), SE3(), 1, 1, 0, 0, 1)


def test_statistical_outlier_removal_drops_far_point():
    grid = np.stack(np.meshgrid(*[np.arange(3.0)] * 3, indexing="ij"), axis=-1).reshape(-1, 3)
    far = np.array([[100.0, 100.0, 100.0]])
    points = np.hstack([np.vstack([grid, far]), np.zeros((len(grid) + 1, 3))])
    kept = statistical_outlier_removal(points, 8, 1.0)
    assert len(kept) == len(grid)
    assert not np.any(np.all(kept[:, :3] == far[0], axis=1))
    assert kept.shape[1] == 6


def test_statistical_outlier_removal_rejects_bad_k():
    with pytest.raises(ValueError):
        statistical_outlier_removal(np.zeros((5, 3)), 0, 1.0)


def test_voxel_downsample_averages_within_voxel():
    points = np.array(
        [
            [0.01, 0.01, 0.01, 10, 20, 30],
            [0.03, 0.05, 0.07, 30, 40, 50],
            [0.55, 0.55, 0.55, 0, 0, 0],
        ]
    )
    out = voxel_downsample(points, 0.1)
    assert len(out) == 2
    np.testing.assert_allclose(out[0], points[:2].mean(axis=0))
    np.testing.assert_allclose(out[1], points[2])


def test_voxel_downsample_is_idempotent():
    rng = np.random.default_rng(3)
    points = np.hstack([rng.uniform(-1, 1, (200, 3)), rng.uniform(0, 255, (200, 3))])
    once = voxel_downsample(points, 0.25)
    twice = voxel_downsample(once, 0.25)
    assert len(once) < len(points)
    np.testing.assert_allclose(twice, once)


def test_voxel_downsample_rejects_bad_leaf():
    with pytest.raises(ValueError):
        voxel_downsample(np.zeros((2, 3)), 0.0)


def test_write_pcd_binary_layout(tmp_path):
    points = np.array([[1.0, 2.0, 3.0, 255, 0, 1], [-0.5, 0.25, 4.0, 1, 2, 3]])
    path = tmp_path / "cloud.pcd"
    write_pcd(path, points)
    raw = path.read_bytes()
    marker = b"DATA binary\n"
    header, body = raw.split(marker, 1)
    text = header.decode("ascii")
    assert "FIELDS x y z rgb" in text
    assert "POINTS 2" in text
    record = np.frombuffer(
        body, dtype=[("x", "<f4"), ("y", "<f4"), ("z", "<f4"), ("rgb", "<u4")]
    )
    assert len(record) == 2
    np.testing.assert_allclose(record["x"], points[:, 0])
    np.testing.assert_allclose(record["z"], points[:, 2])
    rgb = points[:, 3:].astype(np.uint32)
    np.testing.assert_array_equal(record["rgb"], (rgb[:, 0] << 16) | (rgb[:, 1] << 8) | rgb[:, 2])


def test_write_pcd_rejects_bad_shape(tmp_path):
    with pytest.raises(ValueError):
        write_pcd(tmp_path / "x.pcd", np.zeros((2, 4)))


def test_main_without_pose_file(tmp_path):
    assert main(["--data-dir", str(tmp_path), "-o", str(tmp_path / "map.pcd")]) == 1
    assert not (tmp_path / "map.pcd").exists()