# slamkit

Building blocks for visual SLAM in Python and NumPy: rigid-body transforms
on SO(3)/SE(3), linear triangulation, a pinhole camera model, trajectory
evaluation, monocular dense depth filtering, image undistortion, stereo and
RGB-D point clouds, pose-graph optimisation, the map data structures of a
stereo odometry system, and corner detection with pyramidal Lucas–Kanade
tracking.

## Installation

```
pip install .
```

For running the test suite:

```
pip install ".[test]"
pytest
```

## Library overview

| Module | What it offers |
| --- | --- |
| `slamkit.lie` | `SO3`, `SE3`, `hat`, `vee`, `se3_hat`, `se3_vee`, `angle_axis_matrix`, `quaternion_to_matrix`, `matrix_to_quaternion`, `euler_angles_zyx` |
| `slamkit.triangulation` | `triangulate(poses, points)`: SVD triangulation from several views |
| `slamkit.camera` | `Camera`: intrinsics plus stereo extrinsic, world/camera/pixel conversions |
| `slamkit.trajectory` | `parse_trajectory`, `read_trajectory`, `trajectory_rmse` |
| `slamkit.dense_depth` | `read_dataset`, `ncc`, `epipolar_search`, `update_depth_filter`, `update`, `evaluate_depth` |
| `slamkit.undistort` | `Intrinsics`, `Distortion`, `undistort_image` (radial-tangential model) |
| `slamkit.stereo` | `disparity_to_pointcloud` |
| `slamkit.pointcloud` | `parse_poses`, `backproject`, `statistical_outlier_removal`, `voxel_downsample`, `write_pcd` |
| `slamkit.pose_graph` | `PoseGraph`, `PoseVertex`, `PoseEdge`, `parse_g2o`, `load_g2o` |
| `slamkit.feature`, `slamkit.frame`, `slamkit.mappoint`, `slamkit.map` | `KeyPoint`, `Feature`, `Frame`, `MapPoint`, `Map` |
| `slamkit.config` | `Config`, `ConfigError`: shared parameters read from a YAML file |
| `slamkit.dataset` | `Dataset`, `DatasetError`: KITTI-style stereo sequences |
| `slamkit.klt` | `detect_good_features`, `track_pyramidal_lk` |

Quaternions are passed and returned as `(w, x, y, z)`. SE(3) tangent
vectors are ordered translation first, rotation second.

### Lie groups

```python
import numpy as np
from slamkit.lie import SO3, SE3, hat, vee

R = SO3.exp(np.array([0.0, 0.0, np.pi / 2]))   # 90 degrees about Z
omega = R.log()
assert np.allclose(vee(hat(omega)), omega)

T = SE3.exp(np.array([1.0, 0.0, 0.0, 0.0, 0.0, np.pi / 2]))
xi = T.log()                                   # translation first, rotation last
print(T.matrix())
print((T * T.inverse()).matrix())              # identity
```

`SO3` and `SE3` multiply with each other and with points: `T * p` maps a
point (or an `(N, 3)` array of points). `SE3.adjoint()` gives the 6×6
adjoint and `SE3.matrix3x4()` the top three rows of the homogeneous matrix.

### Triangulation

`triangulate(poses, points)` takes the world-to-camera `SE3` pose of every
view and the matching point on each view's normalised image plane, and
returns the point in world coordinates, or `None` when the solution lies at
infinity or is not well determined.

### Camera model

`Camera(fx, fy, cx, cy, baseline, pose)` converts between world, camera and
pixel coordinates (`world_to_camera`, `camera_to_world`, `camera_to_pixel`,
`pixel_to_camera`, `pixel_to_world`, `world_to_pixel`);
`Camera.intrinsics()` returns the 3×3 matrix K.

### Trajectory evaluation

Trajectory files hold one pose per line as
`timestamp tx ty tz qx qy qz qw`. `read_trajectory` loads such a file and
`trajectory_rmse(groundtruth, estimated)` gives the root mean square of the
norm of the SE(3) logarithm of `groundtruth[i].inverse() * estimated[i]`.
Empty trajectories or trajectories of different lengths raise `ValueError`.

### Dense depth

`slamkit.dense_depth` tracks the depth of every pixel of a reference
image as a Gaussian. For each new image with a known pose, `update`
searches the epipolar line with zero-mean NCC, triangulates the best match
and fuses it into the depth and variance maps in place.

### Point clouds

`backproject` turns an RGB-D frame and its camera-to-world pose into
`(x, y, z, r, g, b)` world points. `statistical_outlier_removal` drops
points far from their neighbours, `voxel_downsample` averages the points in
each voxel, and `write_pcd` saves a binary PCD file.
`disparity_to_pointcloud` builds `(x, y, z, grey)` points from a stereo
disparity map.

### Pose graphs

`load_g2o` reads a `.g2o` file with `VERTEX_SE3:QUAT` and `EDGE_SE3:QUAT`
records into a `PoseGraph`; `PoseGraph.optimize` runs Levenberg–Marquardt
with left-multiplicative updates on the Lie algebra, vertex 0 held fixed,
and `PoseGraph.dump` writes the graph back in the same text format.

### Map structures

`Frame.create()` and `MapPoint.create()` hand out unique ids, and
`Frame.set_keyframe()` a unique keyframe id. Features refer to their frame
and map point weakly. `Map` keeps all keyframes and landmarks by id plus a
window of active ones (seven by default): when the window is full, a very
close keyframe is retired if there is one, otherwise the farthest, and
landmarks left without observations are deactivated.

### Configuration and datasets

`Config.set_parameter_file(path)` loads a YAML file (a leading `%YAML:1.0`
line and `!!opencv-matrix` entries are accepted) and `Config.get(key)`
reads a value. `Dataset(path).init()` reads four projection matrices from
`calib.txt` into `Camera` objects at half scale; `Dataset.next_frame()`
loads the next `image_0`/`image_1` pair as a half-size `Frame`, or returns
`None` when there is none.

### Feature tracking

`detect_good_features` finds Shi–Tomasi corners at least `min_distance`
apart, optionally inside a mask. `track_pyramidal_lk` tracks points from
one image to another and returns their positions and a success flag for
each.

## Command-line tools

| Command | Purpose | Options |
| --- | --- | --- |
| `slamkit-trajectory-error [GROUNDTRUTH] [ESTIMATED]` | RMSE between two trajectory files | defaults `./example/groundtruth.txt`, `./example/estimated.txt` |
| `slamkit-dense-depth DATASET` | dense depth estimation on a REMODE-style dataset directory | `-o/--output` (default `depth.png`) |
| `slamkit-undistort [IMAGE]` | undistort a grey-scale image | `-o/--output` (default `undistorted.png`) |
| `slamkit-join-map` | join RGB-D frames and `pose.txt` into one point cloud | `--preset {dense,rgbd}`, `--data-dir`, `--frames` (default 5), `-o/--output` (default `map.pcd`) |
| `slamkit-pose-graph GRAPH` | optimise a pose graph in g2o text format | `-o/--output` (default `result_lie.g2o`), `-n/--iterations` (default 30) |

For example:

```
slamkit-pose-graph sphere.g2o
slamkit-dense-depth path/to/remode_dataset
```

## What the package does not do

- It has no complete visual odometry: there is no tracking front end that
  decides keyframes, no bundle-adjusting back end and no command that runs
  odometry over a stereo sequence. The frame, map, dataset, configuration
  and tracking modules are the pieces such a system would be built from.
- It opens no windows: trajectories, point clouds and depth maps are
  written to files or returned as arrays, never displayed.
- It does not compute disparity maps from stereo images; 
  `disparity_to_pointcloud` expects one already computed.