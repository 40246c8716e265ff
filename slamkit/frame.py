"""Frames of a stereo sequence; some of them become keyframes."""

from __future__ import annotations

import itertools
import threading
from typing import TYPE_CHECKING

from slamkit.lie import SE3

if TYPE_CHECKING:
    from slamkit.feature import Feature


class Frame:
    """A stereo image pair with its world-to-camera pose ``T_c_w``.

    Every frame made by :meth:`create` gets a unique id; frames promoted
    with :meth:`set_keyframe` also get a unique keyframe id.
    """

    _ids = itertools.count()
    _keyframe_ids = itertools.count()
    _id_lock = threading.Lock()

    def __init__(
        self,
        id: int = 0,
        time_stamp: float = 0.0,
        pose: SE3 | None = None,
        left_img=None,
        right_img=None,
    ):
        self.id = id
        self.keyframe_id = 0
        self.is_keyframe = False
        self.time_stamp = time_stamp
        self._pose = pose if pose is not None else SE3()
        self._pose_lock = threading.Lock()
        self.left_img = left_img
        self.right_img = right_img
        self.features_left: list[Feature] = []
        self.features_right: list[Feature | None] = []

    @classmethod
    def create(cls) -> "Frame":
        """A new frame with the next frame id."""
        with cls._id_lock:
            frame_id = next(cls._ids)
        return cls(id=frame_id)

    def pose(self) -> SE3:
        with self._pose_lock:
            return self._pose

    def set_pose(self, pose: SE3) -> None:
        with self._pose_lock:
            self._pose = pose

    def set_keyframe(self) -> None:
        """Mark this frame as a keyframe and give it the next keyframe id."""
        with Frame._id_lock:
            keyframe_id = next(Frame._keyframe_ids)
        self.is_keyframe = True
        self.keyframe_id = keyframe_id

    def __repr__(self) -> str:
        return f"Frame(id={self.id}, keyframe_id={self.keyframe_id}, is_keyframe={self.is_keyframe})"