"""Tests for result row hydration."""
import pytest
from locator.core.errors import SchemaMismatchError
from locator.core.hydrator import ResultHydrator
from locator.core.models import Candidate, Coordinate


def base_row(**extra):
    row = {
        "id": 3,
        "geoname_id": 2950159,
        "name": "Berlin",
        "latitude": 52.52437,
        "longitude": 13.41053,
        "feature_class": "P",
        "feature_code": "PPLC",
        "country_code": "DE",
        "admin1_code": "16",
        "admin2_code": "00",
        "admin3_code": "11000",
        "admin4_code": "11000000",
        "population": 3426354,
    }
    row.update(extra)
    return row


@pytest.fixture
def hydrator():
    return ResultHydrator()


def test_hydrate_canonical_fields(hydrator):
    [candidate] = hydrator.hydrate([base_row()])
    assert isinstance(candidate, Candidate)
    assert candidate.geoname_id == 2950159
    assert candidate.coordinate == Coordinate(52.52437, 13.41053)
    assert candidate.admin_codes == ("16", "00", "11000", "11000000")
    assert candidate.distance_meters is None
    assert candidate.closest_point is None
    assert candidate.alternate_names == []


def test_hydrate_extras(hydrator):
    candidate = hydrator.hydrate_row(base_row(
        relevance_score=9307,
        closest_distance="123.5",
        closest_point="POINT (13.05 52.4)",
        alternate_names="Berlín|Berlin",
    ))
    assert candidate.relevance_score == 9307
    assert candidate.distance_meters == 123.5
    assert isinstance(candidate.distance_meters, float)
    assert candidate.closest_point == Coordinate(52.4, 13.05)
    assert candidate.alternate_names == ["Berlín", "Berlin"]


def test_unknown_column_is_schema_error(hydrator):
    with pytest.raises(SchemaMismatchError, match="unexpected_column"):
        hydrator.hydrate_row(base_row(unexpected_column=1))


def test_missing_column_is_schema_error(hydrator):
    row = base_row()
    del row["feature_code"]
    with pytest.raises(SchemaMismatchError, match="feature_code"):
        hydrator.hydrate_row(row)


def test_non_numeric_distance_is_schema_error(hydrator):
    with pytest.raises(SchemaMismatchError):
        hydrator.hydrate_row(base_row(closest_distance="far away"))


def test_bad_point_is_schema_error(hydrator):
    with pytest.raises(SchemaMismatchError):
        hydrator.hydrate_row(base_row(closest_point="LINESTRING (0 0, 1 1)", closest_distance=1.0))


def test_river_point_requires_distance(hydrator):
    with pytest.raises(SchemaMismatchError):
        hydrator.hydrate_row(base_row(closest_point="POINT (13.05 52.4)"))


def test_null_extras_stay_empty(hydrator):
    candidate = hydrator.hydrate_row(base_row(closest_distance=None, closest_point=None, alternate_names=None))
    assert candidate.distance_meters is None
    assert candidate.closest_point is None
    assert candidate.alternate_names == []


def test_custom_extra_column():
    hydrator = ResultHydrator(extra_columns={"score": ("relevance_score", lambda value, column: int(value) * 2)})
    assert hydrator.hydrate_row(base_row(score="21")).relevance_score == 42
