"""Tests for radius searches built on the SQL distance expression."""

import pytest

from geocodable.models import Event
from geocodable.schemas_location import Units
from geocodable.services.location.distance import sphere_distance_between
from geocodable.services.location.proximity import (
    distance_expression,
    find_within_distance,
    find_within_distance_with_distance,
)
from tests.factories import make_event

# Around Philadelphia
CITY_HALL = (39.9526, -75.1652)
ART_MUSEUM = (39.9656, -75.1810)       # ~1.2 miles
CAMDEN = (39.9259, -75.1196)            # ~3 miles
TRENTON = (40.2206, -74.7597)           # ~28 miles
PITTSBURGH = (40.4406, -79.9959)        # ~250 miles


@pytest.fixture
def origin(db):
    return make_event(db, title="City Hall", latitude=CITY_HALL[0], longitude=CITY_HALL[1])


@pytest.fixture
def neighbours(db):
    return {
        name: make_event(db, title=name, latitude=lat, longitude=lng)
        for name, (lat, lng) in {
            "art_museum": ART_MUSEUM,
            "camden": CAMDEN,
            "trenton": TRENTON,
            "pittsburgh": PITTSBURGH,
        }.items()
    }


class TestFindWithinDistance:
    def test_only_records_inside_radius(self, db, origin, neighbours):
        found = find_within_distance(db, origin, 10)

        assert {e.title for e in found} == {"art_museum", "camden"}
        for event in found:
            assert sphere_distance_between(origin, event) <= 10

    def test_larger_radius(self, db, origin, neighbours):
        found = find_within_distance(db, origin, 50)
        assert {e.title for e in found} == {"art_museum", "camden", "trenton"}

    def test_excludes_origin_and_ungeocoded_records(self, db, origin, neighbours):
        make_event(db, title="somewhere", location="Center City")
        found = find_within_distance(db, origin, 10000)

        ids = {e.id for e in found}
        assert origin.id not in ids
        assert {e.title for e in found} == {"art_museum", "camden", "trenton", "pittsburgh"}

    def test_radius_is_inclusive(self, db, origin, neighbours):
        camden = neighbours["camden"]
        exact = sphere_distance_between(origin, camden)

        assert camden in find_within_distance(db, origin, exact)
        assert camden not in find_within_distance(db, origin, exact * 0.999)

    def test_ordered_by_distance(self, db, origin, neighbours):
        found = find_within_distance(db, origin, 10000, order_by_distance=True)
        assert [e.title for e in found] == ["art_museum", "camden", "trenton", "pittsburgh"]

    def test_distances_agree_with_python(self, db, origin, neighbours):
        pairs = find_within_distance_with_distance(db, origin, 10000)

        assert len(pairs) == 4
        for event, dist in pairs:
            assert dist == pytest.approx(sphere_distance_between(origin, event))

    def test_kms(self, db, origin, neighbours):
        # Trenton is ~45km away
        found = find_within_distance(db, origin, 40, units=Units.KMS)
        assert {e.title for e in found} == {"art_museum", "camden"}

        pairs = find_within_distance_with_distance(db, origin, 10, units="kms")
        for event, dist in pairs:
            assert dist == pytest.approx(sphere_distance_between(origin, event, Units.KMS))

    def test_same_coordinates_are_distance_zero(self, db, origin):
        twin = make_event(db, title="twin", latitude=CITY_HALL[0], longitude=CITY_HALL[1])
        pairs = find_within_distance_with_distance(db, origin, 0.01)

        assert [e for e, _ in pairs] == [twin]
        assert pairs[0][1] == pytest.approx(0.0, abs=1e-3)

    def test_ungeocoded_origin_fails_loudly(self, db):
        origin = make_event(db, location="Center City")
        with pytest.raises(ValueError, match="must be geocoded"):
            find_within_distance(db, origin, 10)


class TestDistanceExpression:
    def test_origin_values_are_bound_parameters(self):
        expr = distance_expression(Event, 39.9526, -75.1652)
        sql = str(expr.compile())

        assert "39.9526" not in sql
        assert "75.1652" not in sql
        assert "acos" in sql.lower()
