import gc

from slamkit.feature import Feature, KeyPoint
from slamkit.frame import Frame
from slamkit.mappoint import MapPoint


def test_keypoint_pt_and_default_size():
    kp = KeyPoint(3.5, 4.0)
    assert kp.pt == (3.5, 4.0)
    assert kp.size == 7.0


def test_feature_defaults():
    feat = Feature(None, KeyPoint(1.0, 2.0))
    assert feat.is_outlier is False
    assert feat.is_on_left_image is True
    assert feat.frame() is None
    assert feat.map_point() is None
    assert feat.position.pt == (1.0, 2.0)


def test_feature_refers_to_its_frame():
    frame = Frame.create()
    feat = Feature(frame, KeyPoint(0.0, 0.0))
    assert feat.frame() is frame


def test_frame_reference_is_weak():
    frame = Frame.create()
    feat = Feature(frame, KeyPoint(0.0, 0.0))
    del frame
    gc.collect()
    assert feat.frame() is None


def test_map_point_association_and_reset():
    mp = MapPoint.create()
    feat = Feature(None, KeyPoint(0.0, 0.0))
    feat.set_map_point(mp)
    assert feat.map_point() is mp
    feat.set_map_point(None)
    assert feat.map_point() is None


def test_map_point_reference_is_weak():
    mp = MapPoint.create()
    feat = Feature(None, KeyPoint(0.0, 0.0))
    feat.set_map_point(mp)
    del mp
    gc.collect()
    assert feat.map_point() is None