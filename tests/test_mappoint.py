import gc

import numpy as np

from slamkit.feature import Feature, KeyPoint
from slamkit.mappoint import MapPoint


def _feature():
    return Feature(None, KeyPoint(0.0, 0.0))


def test_create_assigns_consecutive_ids():
    a = MapPoint.create()
    b = MapPoint.create()
    assert b.id == a.id + 1


def test_new_point_is_at_origin_and_unobserved():
    mp = MapPoint.create()
    assert np.allclose(mp.position(), np.zeros(3))
    assert mp.observed_times == 0
    assert mp.observations() == []


def test_position_round_trip():
    mp = MapPoint(3, [1.0, 2.0, 3.0])
    assert mp.id == 3
    mp.set_position([4.0, 5.0, 6.0])
    assert np.allclose(mp.position(), [4.0, 5.0, 6.0])


def test_add_observation_counts_and_lists():
    mp = MapPoint.create()
    f1, f2 = _feature(), _feature()
    mp.add_observation(f1)
    mp.add_observation(f2)
    assert mp.observed_times == 2
    assert mp.observations() == [f1, f2]


def test_remove_observation_detaches_feature():
    mp = MapPoint.create()
    f1, f2 = _feature(), _feature()
    for feat in (f1, f2):
        feat.set_map_point(mp)
        mp.add_observation(feat)
    mp.remove_observation(f1)
    assert mp.observed_times == 1
    assert mp.observations() == [f2]
    assert f1.map_point() is None
    assert f2.map_point() is mp


def test_remove_unknown_observation_changes_nothing():
    mp = MapPoint.create()
    f1 = _feature()
    mp.add_observation(f1)
    mp.remove_observation(_feature())
    assert mp.observed_times == 1
    assert mp.observations() == [f1]


def test_observations_skip_dead_features():
    mp = MapPoint.create()
    keep = _feature()
    gone = _feature()
    mp.add_observation(keep)
    mp.add_observation(gone)
    del gone
    gc.collect()
    assert mp.observations() == [keep]