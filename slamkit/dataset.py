"""Reading a KITTI-style stereo sequence: calibration and image pairs."""

from __future__ import annotations

import logging
from pathlib import Path

import imageio.v3 as iio
import numpy as np

from slamkit.camera import Camera
from slamkit.frame import Frame
from slamkit.lie import SE3

logger = logging.getLogger(__name__)

NUM_CAMERAS = 4
_PROJECTION_VALUES = 12
_SCALE = 0.5


class DatasetError(Exception):
    """The dataset calibration could not be read."""


def _half_size(image: np.ndarray) -> np.ndarray:
    """Nearest-neighbour downscale by two, keeping every second pixel."""
    rows, cols = image.shape[:2]
    new_rows, new_cols = round(rows * _SCALE), round(cols * _SCALE)
    return image[0 : 2 * new_rows : 2, 0 : 2 * new_cols : 2].copy()


class Dataset:
    """A stereo sequence on disk: ``calib.txt`` plus ``image_0``/``image_1`` folders."""

    def __init__(self, dataset_path, sequence_name: str = ""):
        self.dataset_path = Path(dataset_path)
        self.sequence_name = sequence_name
        self.current_image_index = 0
        self.cameras: list[Camera] = []

    def init(self) -> None:
        """Read the four projection matrices of ``calib.txt`` into cameras (at half scale)."""
        calib = self.dataset_path / "calib.txt"
        try:
            tokens = calib.read_text(encoding="utf-8").split()
        except OSError as exc:
            raise DatasetError(f"cannot find {calib}") from exc

        per_camera = 1 + _PROJECTION_VALUES
        if len(tokens) < NUM_CAMERAS * per_camera:
            raise DatasetError(f"{calib} does not hold {NUM_CAMERAS} projection matrices")
        cameras = []
        for i in range(NUM_CAMERAS):
            values = tokens[i * per_camera + 1 : (i + 1) * per_camera]
            try:
                projection = np.array(values, dtype=float).reshape(3, 4)
            except ValueError as exc:
                raise DatasetError(f"{calib}: bad projection matrix for camera {i}") from exc
            k = projection[:, :3]
            t = np.linalg.solve(k, projection[:, 3])
            k = k * _SCALE
            cameras.append(
                Camera(k[0, 0], k[1, 1], k[0, 2], k[1, 2], float(np.linalg.norm(t)), SE3(translation=t))
            )
            logger.info("Camera %d extrinsics: %s", i, t)
        self.cameras = cameras
        self.current_image_index = 0

    def _image_path(self, camera_id: int) -> Path:
        return (
            self.dataset_path
            / self.sequence_name
            / f"image_{camera_id}"
            / f"{self.current_image_index:06d}.png"
        )

    def next_frame(self) -> Frame | None:
        """The next stereo pair as a frame at half size, or ``None`` when it cannot be read."""
        try:
            left = np.asarray(iio.imread(self._image_path(0), mode="L"))
            right = np.asarray(iio.imread(self._image_path(1), mode="L"))
        except (OSError, ValueError):
            logger.warning("cannot find images at index %d", self.current_image_index)
            return None
        frame = Frame.create()
        frame.left_img = _half_size(left)
        frame.right_img = _half_size(right)
        self.current_image_index += 1
        return frame

    def camera(self, camera_id: int) -> Camera:
        if not 0 <= camera_id < len(self.cameras):
            raise IndexError(f"no camera {camera_id}")
        return self.cameras[camera_id]