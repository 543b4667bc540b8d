import numpy as np
import pytest

from nepal_landslides.errors import InvalidBoundingBox
from nepal_landslides.geometry import (
    BoundingBox,
    DistanceOracle,
    GeoPoint,
    LandslideRecord,
    haversine_distance,
)


def test_bounding_box_rejects_inverted_bounds():
    with pytest.raises(InvalidBoundingBox):
        BoundingBox(88.2, 26.3, 80.0, 30.5)
    with pytest.raises(InvalidBoundingBox):
        BoundingBox(80.0, 30.5, 88.2, 30.5)


def test_invalid_bounding_box_is_a_value_error():
    with pytest.raises(ValueError):
        BoundingBox.from_sequence([1.0, 1.0, 1.0, 2.0])
    with pytest.raises(InvalidBoundingBox):
        BoundingBox.from_sequence([1.0, 2.0, 3.0])


def test_bounding_box_contains_is_inclusive():
    bbox = BoundingBox(80.0, 26.3, 88.2, 30.5)
    assert bbox.contains(GeoPoint(26.3, 80.0))
    assert bbox.contains(GeoPoint(30.5, 88.2))
    assert not bbox.contains(GeoPoint(30.6, 85.0))


def test_landslide_record_label_must_be_binary():
    with pytest.raises(ValueError):
        LandslideRecord(GeoPoint(27.7, 85.3), label=2)


def test_haversine_one_degree_on_equator():
    assert haversine_distance(0.0, 0.0, 0.0, 1.0) == pytest.approx(111194.93, rel=1e-6)
    assert haversine_distance(27.7, 85.3, 27.7, 85.3) == 0.0


def test_haversine_broadcasts():
    d = haversine_distance(0.0, 0.0, np.array([0.0, 1.0]), np.array([1.0, 0.0]))
    assert d.shape == (2,)
    assert d[0] == pytest.approx(d[1])


def test_empty_reference_set_accepts_everything():
    oracle = DistanceOracle([], 100000.0)
    assert not oracle.is_too_close(GeoPoint(27.7, 85.3))
    assert oracle.filter_candidates(np.array([27.7, 28.0]), np.array([85.3, 84.0])).all()


def test_oracle_rejects_points_inside_threshold():
    oracle = DistanceOracle([GeoPoint(27.70, 85.30)], 100000.0)
    assert oracle.is_too_close(GeoPoint(27.70, 85.30))
    assert oracle.is_too_close(GeoPoint(28.00, 85.30))  # ~33 km north
    assert not oracle.is_too_close(GeoPoint(29.00, 85.30))  # ~145 km north


def test_oracle_requires_positive_threshold():
    with pytest.raises(ValueError):
        DistanceOracle([GeoPoint(27.7, 85.3)], 0.0)


def test_filter_candidates_matches_single_queries():
    refs = [GeoPoint(27.7, 85.3), GeoPoint(28.2, 83.9)]
    oracle = DistanceOracle(refs, 50000.0)
    rng = np.random.default_rng(3)
    lats = rng.uniform(26.3, 30.5, 200)
    lons = rng.uniform(80.0, 88.2, 200)
    mask = oracle.filter_candidates(lats, lons)
    expected = [not oracle.is_too_close(GeoPoint(a, o)) for a, o in zip(lats, lons)]
    assert mask.tolist() == expected


def test_oracle_does_not_mutate_reference():
    refs = [GeoPoint(27.7, 85.3)]
    DistanceOracle(refs, 1000.0).is_too_close(GeoPoint(27.0, 85.0))
    assert refs == [GeoPoint(27.7, 85.3)]
