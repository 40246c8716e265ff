"""2D image features, later tied to the map point they were triangulated into."""

from __future__ import annotations

import weakref
from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from slamkit.frame import Frame
    from slamkit.mappoint import MapPoint

DEFAULT_KEYPOINT_SIZE = 7.0


@dataclass
class KeyPoint:
    """An image location with the diameter of its neighbourhood."""

    x: float
    y: float
    size: float = DEFAULT_KEYPOINT_SIZE

    @property
    def pt(self) -> tuple[float, float]:
        return (self.x, self.y)


class Feature:
    """A keypoint in one image of a frame.

    The frame and the map point are held by weak reference, so a feature
    never keeps either of them alive.
    """

    def __init__(self, frame: "Frame | None" = None, position: KeyPoint | None = None):
        self._frame_ref = weakref.ref(frame) if frame is not None else None
        self.position = position if position is not None else KeyPoint(0.0, 0.0)
        self._map_point_ref: weakref.ref | None = None
        self.is_outlier = False
        self.is_on_left_image = True

    def frame(self) -> "Frame | None":
        """The frame holding this feature, or ``None`` once it is gone."""
        return self._frame_ref() if self._frame_ref is not None else None

    def map_point(self) -> "MapPoint | None":
        """The associated map point, or ``None`` if there is none (any more)."""
        return self._map_point_ref() if self._map_point_ref is not None else None

    def set_map_point(self, map_point: "MapPoint | None") -> None:
        """Associate a map point with this feature; ``None`` drops the association."""
        self._map_point_ref = weakref.ref(map_point) if map_point is not None else None

    def __repr__(self) -> str:
        return (
            f"Feature(position={self.position!r}, is_outlier={self.is_outlier}, "
            f"is_on_left_image={self.is_on_left_image})"
        )