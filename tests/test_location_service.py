"""End-to-end tests for the location service."""
import pytest
from locator.core.errors import MalformedInputError, UnsupportedQueryShapeError
from locator.core.location_service import merge_inline_options
from locator.core.models import (
    Coordinate,
    CoordinateLookup,
    FeatureFilter,
    FreeTextSearch,
    QueryOptions,
    SearchOptions,
    SortBy,
)


def test_free_text_search(service):
    result = service.search(FreeTextSearch(("berlin",)))
    assert result.total == 6
    assert result.candidates[0].geoname_id == 2950159
    assert result.candidates[0].relevance_score == 9307
    scores = [c.relevance_score for c in result.candidates]
    assert scores == sorted(scores, reverse=True)


def test_locate_by_name(service):
    result = service.locate("cecilienhof")
    assert result.total == 1
    assert result.candidates[0].name == "Schloss Cecilienhof"


def test_locate_by_geoname_id(service):
    result = service.locate("2950159")
    assert result.total == 1
    assert result.candidates[0].name == "Berlin"
    assert result.candidates[0].feature_code == "PPLC"


def test_locate_unknown_geoname_id(service):
    result = service.locate("123")
    assert result.total == 0
    assert result.candidates == []


def test_coordinate_with_feature_code(service):
    result = service.locate("AIRP 52.52,13.40")
    assert result.total == 1
    assert result.candidates[0].name == "Berlin Tegel Airport"
    assert result.candidates[0].distance_meters > 0


def test_coordinate_sorted_by_distance(service):
    result = service.locate("52.52437,13.41053", SearchOptions(sort_by=SortBy.DISTANCE, limit=3))
    assert result.candidates[0].geoname_id == 2950159
    assert result.candidates[0].distance_meters == pytest.approx(0.0, abs=0.01)
    distances = [c.distance_meters for c in result.candidates]
    assert distances == sorted(distances)
    assert result.total == 17


def test_distance_penalty_orders_equal_relevance(service):
    """Two villages with the same index relevance rank by distance to the user."""
    options = SearchOptions(coordinate=Coordinate(48.0, 11.0))
    result = service.search(FreeTextSearch(("gleichdorf",)), options)
    assert [c.name for c in result.candidates] == ["Gleichdorf Nord", "Gleichdorf Süd"]
    assert [c.relevance_score for c in result.candidates] == [995, 980]
    assert result.candidates[0].distance_meters == pytest.approx(500, abs=5)


def test_river_distance_replaces_point_distance(service):
    options = SearchOptions(coordinate=Coordinate(52.401, 13.05))
    [candidate] = service.search(FreeTextSearch(("havelufer",)), options).candidates
    assert candidate.distance_meters == pytest.approx(111.3, abs=0.5)
    assert candidate.closest_point.latitude == pytest.approx(52.4)
    assert candidate.closest_point.longitude == pytest.approx(13.05)
    assert candidate.relevance_score == 2999


def test_places_without_river_have_no_closest_point(service):
    options = SearchOptions(coordinate=Coordinate(52.401, 13.05))
    [candidate] = service.search(FreeTextSearch(("potsdam",)), options).candidates
    assert candidate.closest_point is None
    assert candidate.distance_meters > 0


def test_radius_filter(service):
    options = SearchOptions(coordinate=Coordinate(48.0, 11.0), radius_meters=1000)
    result = service.search(FreeTextSearch(("gleichdorf",)), options)
    assert result.total == 1
    assert result.candidates[0].name == "Gleichdorf Nord"


def test_paging_is_consistent_with_total(service):
    seen = []
    for page in (1, 2, 3, 4):
        result = service.search(["berlin"], SearchOptions(limit=2, page=page))
        assert result.total == 6
        seen.extend(c.id for c in result.candidates)
    assert len(seen) == 6
    assert len(set(seen)) == 6


def test_search_is_repeatable(service):
    options = SearchOptions(sort_by=SortBy.NAME)
    first = service.search(["berlin"], options)
    second = service.search(["berlin"], options)
    assert [c.id for c in first.candidates] == [c.id for c in second.candidates]
    assert [c.name for c in first.candidates][:2] == ["Berlin", "Berlin"]


def test_feature_and_country_filters(service):
    result = service.search(["berlin"], SearchOptions(feature_filter=FeatureFilter(("A",))))
    assert {c.feature_class for c in result.candidates} == {"A"}
    assert result.total == 4

    assert service.search(["berlin"], SearchOptions(country="fr")).total == 0


def test_alternate_name_search(service):
    assert service.locate("munich").candidates[0].geoname_id == 2867714
    assert service.locate("Berlín").candidates[0].geoname_id == 2950159


def test_alternate_names_in_language(service):
    result = service.search(["munchen"], SearchOptions(iso_language="it"))
    assert result.candidates[0].alternate_names == ["Monaco di Baviera"]


def test_inline_options(service):
    result = service.locate("berlin limit:2 feature-classes:A")
    assert len(result.candidates) == 2
    assert result.total == 4

    assert service.locate("berlin country:FR").total == 0


def test_merge_inline_options():
    intent = FreeTextSearch(("berlin",), options=QueryOptions(limit=3, country="DE"))
    merged = merge_inline_options(intent, SearchOptions(limit=20, iso_language="de"))
    assert merged.limit == 3
    assert merged.country == "DE"
    assert merged.iso_language == "de"

    plain = SearchOptions(limit=20)
    assert merge_inline_options(CoordinateLookup(Coordinate(1.0, 2.0)), plain) is plain


def test_malformed_query(service):
    with pytest.raises(MalformedInputError):
        service.locate("berlin limit:many")


def test_distance_sort_without_coordinate(service):
    with pytest.raises(UnsupportedQueryShapeError):
        service.search(["berlin"], SearchOptions(sort_by=SortBy.DISTANCE))


def test_autocomplete_ranks_prefix_matches_first(service):
    suggestions = service.autocomplete("berlin")
    assert [s.name for s in suggestions] == [
        "Berlin",
        "Berlin, Stadt",
        "Berlin Tegel Airport",
        "Land Berlin",
        "Kreisfreie Stadt Berlin",
    ]
    assert all(s.relevance_score is None for s in suggestions)


def test_autocomplete_uses_alternate_names(service):
    suggestions = service.autocomplete("mun", iso_language="en")
    assert [s.name for s in suggestions] == ["Munich"]


def test_autocomplete_with_filter_and_limit(service):
    suggestions = service.autocomplete("berl", feature_filter=FeatureFilter(feature_codes=("AIRP",)))
    assert [s.name for s in suggestions] == ["Berlin Tegel Airport"]
    assert len(service.autocomplete("berlin", limit=2)) == 2


def test_autocomplete_empty(service):
    assert service.autocomplete("   ") == []
    assert service.autocomplete([]) == []


def test_stop_words_removed_without_language(service):
    assert service.locate("the berlin").total == service.locate("berlin").total == 6
    assert [s.name for s in service.autocomplete("the berlin")][0] == "Berlin"
