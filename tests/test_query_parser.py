"""Tests for query classification."""
import pytest
from locator.core.errors import MalformedInputError
from locator.core.models import (
    CoordinateLookup,
    CoordinateWithFeatureFilter,
    FeatureFilter,
    FreeTextSearch,
    GeonameIdLookup,
)
from locator.core.query_parser import (
    FeatureFilterExtractor,
    QueryParser,
    match_coordinate,
    match_coordinate_with_features,
    match_geoname_id,
)


@pytest.fixture
def parser():
    return QueryParser()


def test_parse_geoname_id(parser):
    """Scenario: a bare number is a geoname id lookup."""
    intent = parser.parse("2956832")
    assert intent == GeonameIdLookup(geoname_id=2956832)


@pytest.mark.parametrize("text", ["0", "7", "42", "2950159", "000123"])
def test_numeric_strings_are_ids(parser, text):
    intent = parser.parse(text)
    assert isinstance(intent, GeonameIdLookup)
    assert intent.geoname_id == int(text)


def test_parse_decimal_coordinate(parser):
    intent = parser.parse("52.524889,13.3692797")
    assert isinstance(intent, CoordinateLookup)
    assert intent.coordinate.latitude == pytest.approx(52.524889)
    assert intent.coordinate.longitude == pytest.approx(13.3692797)


@pytest.mark.parametrize("separator", [",", ", ", "/", " / ", "|", " ", "  ,  "])
def test_coordinate_separators(parser, separator):
    intent = parser.parse(f"-33.8688{separator}151.2093")
    assert isinstance(intent, CoordinateLookup)
    assert intent.coordinate.latitude == pytest.approx(-33.8688)
    assert intent.coordinate.longitude == pytest.approx(151.2093)


def test_coordinate_with_degree_signs_and_comma_decimals(parser):
    intent = parser.parse("52,5° 13,4°")
    assert isinstance(intent, CoordinateLookup)
    assert intent.coordinate.latitude == pytest.approx(52.5)
    assert intent.coordinate.longitude == pytest.approx(13.4)


def test_parse_dms_coordinate(parser):
    intent = parser.parse("52°31′29.600″N, 13°22′9.407″E")
    assert isinstance(intent, CoordinateLookup)
    assert intent.coordinate.latitude == pytest.approx(52.524889, abs=1e-6)
    assert intent.coordinate.longitude == pytest.approx(13.369280, abs=1e-6)


def test_parse_mixed_notation_southern_western(parser):
    intent = parser.parse("33°52′7.680″S 151.2093")
    assert isinstance(intent, CoordinateLookup)
    assert intent.coordinate.latitude == pytest.approx(-33.8688, abs=1e-6)

    intent = parser.parse("28.137008, 15°26′18.010″W")
    assert intent.coordinate.longitude == pytest.approx(-15.438336, abs=1e-6)


def test_parse_coordinate_with_feature_code(parser):
    """Scenario: a feature code prefix filters a coordinate search."""
    intent = parser.parse("AIRP 52.524889,13.3692797")
    assert isinstance(intent, CoordinateWithFeatureFilter)
    assert intent.coordinate.latitude == pytest.approx(52.524889)
    assert intent.coordinate.longitude == pytest.approx(13.3692797)
    assert intent.feature_filter == FeatureFilter(feature_classes=(), feature_codes=("AIRP",))


def test_parse_coordinate_with_class_and_code(parser):
    """Scenario: mixed classes and codes joined by a pipe."""
    intent = parser.parse("S|AIRP 28.137008, -15.438614")
    assert isinstance(intent, CoordinateWithFeatureFilter)
    assert intent.feature_filter.feature_classes == ("S",)
    assert intent.feature_filter.feature_codes == ("AIRP",)
    assert intent.coordinate.longitude == pytest.approx(-15.438614)


def test_parse_coordinate_with_features_colon_separator(parser):
    intent = parser.parse("P|PPLC:52.52, 13.40")
    assert isinstance(intent, CoordinateWithFeatureFilter)
    assert intent.feature_filter.feature_classes == ("P",)
    assert intent.feature_filter.feature_codes == ("PPLC",)


def test_parse_free_text(parser):
    """Scenario: anything else is a single free text term."""
    assert parser.parse("cecilienhof") == FreeTextSearch(terms=("cecilienhof",))
    assert parser.parse("  Schloss Cecilienhof  ").terms == ("Schloss Cecilienhof",)


@pytest.mark.parametrize("text", ["", "   ", None])
def test_empty_input_is_empty_term(parser, text):
    intent = parser.parse(text)
    assert isinstance(intent, FreeTextSearch)
    assert intent.terms == ("",)


@pytest.mark.parametrize("text", ["+42", "42.0", "4 2", "42a"])
def test_not_an_id(parser, text):
    assert not isinstance(parser.parse(text), GeonameIdLookup)


def test_out_of_range_coordinates_are_not_rejected(parser):
    intent = parser.parse("123.0, 456.0")
    assert isinstance(intent, CoordinateLookup)
    assert intent.coordinate.latitude == 123.0


def test_lowercase_feature_prefix_is_free_text(parser):
    assert isinstance(parser.parse("airp 52.5,13.3"), FreeTextSearch)


def test_matchers_are_independent():
    assert match_geoname_id("123") == ("123",)
    assert match_geoname_id("12.3") is None
    assert match_coordinate("1.5,2.5") == ("1.5", "2.5")
    assert match_coordinate("AIRP 1.5,2.5") is None
    assert match_coordinate_with_features("AIRP 1.5,2.5") == ("AIRP", "1.5", "2.5")


def test_feature_extractor_by_length():
    extractor = FeatureFilterExtractor()
    assert extractor.classify_token("P") == "class"
    assert extractor.classify_token("PP") == "code"
    assert extractor.classify_token("PPLA2") == "code"

    with pytest.raises(MalformedInputError):
        extractor.classify_token("")
    with pytest.raises(MalformedInputError):
        extractor.classify_token("PPLAXX")


def test_feature_extractor_dedupes_and_uppercases():
    extractor = FeatureFilterExtractor()
    result = extractor.extract(["p", "PPLA", "P", "ppla", "AIRP"])
    assert result.feature_classes == ("P",)
    assert result.feature_codes == ("PPLA", "AIRP")


def test_feature_extractor_rejects_unknown_class():
    with pytest.raises(MalformedInputError):
        FeatureFilterExtractor().extract(["X"])


def test_inline_options(parser):
    intent = parser.parse("berlin distance:5000 limit:3 country:de")
    assert isinstance(intent, FreeTextSearch)
    assert intent.terms == ("berlin",)
    assert intent.options.distance == 5000
    assert intent.options.limit == 3
    assert intent.options.country == "DE"


def test_inline_feature_options(parser):
    intent = parser.parse("feature-classes:P|S feature-codes:AIRP tegel")
    assert intent.terms == ("tegel",)
    assert intent.options.feature_filter.feature_classes == ("P", "S")
    assert intent.options.feature_filter.feature_codes == ("AIRP",)


@pytest.mark.parametrize("text", [
    "berlin limit:abc",
    "berlin distance:-5",
    "berlin country:DEU",
    "berlin feature-codes:TOOLONG",
    "berlin feature-classes:Q",
])
def test_malformed_inline_options(parser, text):
    with pytest.raises(MalformedInputError):
        parser.parse(text)


def test_plain_colon_text_is_not_an_option(parser):
    intent = parser.parse("re:publica")
    assert intent.terms == ("re:publica",)
    assert intent.options.is_empty
