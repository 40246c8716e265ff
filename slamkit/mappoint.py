"""Landmarks: 3D points triangulated from features."""

from __future__ import annotations

import itertools
import threading
import weakref
from typing import TYPE_CHECKING

import numpy as np

if TYPE_CHECKING:
    from slamkit.feature import Feature


class MapPoint:
    """A world point with the features that observe it (held weakly)."""

    _ids = itertools.count()
    _id_lock = threading.Lock()

    def __init__(self, id: int = 0, position=None):
        self.id = id
        self.is_outlier = False
        self._pos = np.zeros(3) if position is None else np.asarray(position, dtype=float).reshape(3).copy()
        self._lock = threading.Lock()
        self.observed_times = 0
        self._observations: list[weakref.ref] = []

    @classmethod
    def create(cls) -> "MapPoint":
        """A new map point with the next id."""
        with cls._id_lock:
            point_id = next(cls._ids)
        return cls(id=point_id)

    def position(self) -> np.ndarray:
        with self._lock:
            return self._pos.copy()

    def set_position(self, position) -> None:
        value = np.asarray(position, dtype=float).reshape(3).copy()
        with self._lock:
            self._pos = value

    def add_observation(self, feature: "Feature") -> None:
        with self._lock:
            self._observations.append(weakref.ref(feature))
            self.observed_times += 1

    def remove_observation(self, feature: "Feature") -> None:
        """Forget one observation by ``feature`` and detach the feature from this point."""
        with self._lock:
            for index, ref in enumerate(self._observations):
                if ref() is feature:
                    del self._observations[index]
                    feature.set_map_point(None)
                    self.observed_times -= 1
                    break

    def observations(self) -> list["Feature"]:
        """The observing features that still exist, in insertion order."""
        with self._lock:
            refs = list(self._observations)
        return [feat for feat in (ref() for ref in refs) if feat is not None]

    def __repr__(self) -> str:
        return f"MapPoint(id={self.id}, position={self._pos.tolist()!r}, observed_times={self.observed_times})"