from slamkit.feature import Feature, KeyPoint
from slamkit.frame import Frame
from slamkit.lie import SE3
from slamkit.map import Map
from slamkit.mappoint import MapPoint


def _keyframe(x):
    frame = Frame.create()
    frame.set_pose(SE3(translation=(x, 0.0, 0.0)))
    frame.set_keyframe()
    return frame


def test_insert_keyframe_is_active_and_stored():
    world = Map()
    kf = _keyframe(0.0)
    world.insert_keyframe(kf)
    assert world.all_keyframes() == {kf.keyframe_id: kf}
    assert world.active_keyframes() == {kf.keyframe_id: kf}


def test_insert_map_point_is_active_and_stored():
    world = Map()
    mp = MapPoint.create()
    world.insert_map_point(mp)
    assert world.all_map_points()[mp.id] is mp
    assert world.active_map_points()[mp.id] is mp


def test_reinserting_replaces_entry():
    world = Map()
    mp = MapPoint.create()
    replacement = MapPoint(mp.id, [1.0, 1.0, 1.0])
    world.insert_map_point(mp)
    world.insert_map_point(replacement)
    assert len(world.all_map_points()) == 1
    assert world.all_map_points()[mp.id] is replacement


def test_returned_dicts_are_copies():
    world = Map()
    mp = MapPoint.create()
    world.insert_map_point(mp)
    world.active_map_points().clear()
    assert mp.id in world.active_map_points()


def test_farthest_keyframe_retired_when_window_full():
    world = Map()
    frames = [_keyframe(float(i)) for i in range(8)]
    for frame in frames:
        world.insert_keyframe(frame)
    assert len(world.active_keyframes()) == world.num_active_keyframes
    assert len(world.all_keyframes()) == 8
    assert frames[0].keyframe_id not in world.active_keyframes()
    assert frames[0].keyframe_id in world.all_keyframes()


def test_close_keyframe_retired_first():
    world = Map()
    frames = [_keyframe(float(i)) for i in range(7)]
    frames.append(_keyframe(6.05))
    for frame in frames:
        world.insert_keyframe(frame)
    active = world.active_keyframes()
    assert frames[6].keyframe_id not in active
    assert frames[0].keyframe_id in active
    assert frames[7].keyframe_id in active


def test_retiring_keyframe_drops_observations_and_landmarks():
    world = Map()
    frames = [_keyframe(float(i)) for i in range(8)]
    feat = Feature(frames[0], KeyPoint(1.0, 1.0))
    frames[0].features_left.append(feat)
    frames[0].features_right.append(None)
    mp = MapPoint.create()
    feat.set_map_point(mp)
    mp.add_observation(feat)
    world.insert_map_point(mp)
    for frame in frames:
        world.insert_keyframe(frame)
    assert mp.observed_times == 0
    assert feat.map_point() is None
    assert mp.id not in world.active_map_points()
    assert mp.id in world.all_map_points()


def test_clean_map_removes_unobserved_landmarks():
    world = Map()
    lonely = MapPoint.create()
    seen = MapPoint.create()
    seen.add_observation(Feature(None, KeyPoint(0.0, 0.0)))
    world.insert_map_point(lonely)
    world.insert_map_point(seen)
    assert world.clean_map() == 1
    assert list(world.active_map_points()) == [seen.id]