"""Ranked search query construction for the location store."""
from typing import List, Optional, Sequence, Tuple, Union
from locator.core.config import DEFAULT_ISO_LANGUAGE, DISTANCE_PENALTY_FACTOR, SEARCH_LANGUAGE
from locator.core.errors import UnsupportedQueryShapeError
from locator.core.models import (
    Coordinate,
    CoordinateLookup,
    CoordinateWithFeatureFilter,
    FeatureFilter,
    FreeTextSearch,
    GeonameIdLookup,
    QueryIntent,
    SearchOptions,
    SortBy,
)
from locator.core.normalization import normalize_text, prepare_search_terms, stem_text
from locator.core.sql import (
    AllOf,
    Aliased,
    AnyOf,
    Compare,
    Expr,
    In,
    IsNull,
    Node,
    Param,
    Raw,
    SelectQuery,
)


# Canonical place columns, in projection order
LOCATION_COLUMNS = [
    "id",
    "geoname_id",
    "name",
    "latitude",
    "longitude",
    "feature_class",
    "feature_code",
    "country_code",
    "admin1_code",
    "admin2_code",
    "admin3_code",
    "admin4_code",
    "population",
]

SORT_ORDER = {
    SortBy.RELEVANCE: "relevance_score DESC",
    SortBy.RELEVANCE_USER: "relevance_score DESC",
    SortBy.DISTANCE: "closest_distance ASC",
    SortBy.DISTANCE_USER: "closest_distance ASC",
    SortBy.NAME: "l.name ASC",
    SortBy.GEONAME_ID: "l.geoname_id ASC",
}

DISTANCE_SORTS = {SortBy.DISTANCE, SortBy.DISTANCE_USER}

# Keeps ordering stable when the primary key ties
TIE_BREAK = "l.id ASC"

RIVER_NEAREST_CTE = """    SELECT lr.location_id,
           min(river_point_distance(rp.geometry_wkt, {lat}, {lon})) AS closest_distance,
           arg_min(river_closest_point(rp.geometry_wkt, {lat}, {lon}),
                   river_point_distance(rp.geometry_wkt, {lat}, {lon})) AS closest_point
    FROM location_river lr
    JOIN river_part rp ON rp.river_id = lr.river_id
    GROUP BY lr.location_id"""

ALTERNATE_NAMES_SUBQUERY = (
    "(SELECT string_agg(an.alternate_name, '|' ORDER BY an.is_preferred DESC, an.alternate_name) "
    "FROM alternate_name an WHERE an.location_id = l.id AND an.iso_language = {iso_language})"
)


def location_projection(alias: str = "l") -> List[Node]:
    return [Raw(f"{alias}.{column}") for column in LOCATION_COLUMNS]


def coordinate_params(coordinate: Coordinate) -> dict:
    return {
        "lat": Param("latitude", coordinate.latitude, "DOUBLE"),
        "lon": Param("longitude", coordinate.longitude, "DOUBLE"),
    }


def point_distance(coordinate: Coordinate, alias: str = "l") -> Expr:
    """Geodesic distance from a place's stored point to the coordinate."""
    return Expr(
        f"geo_distance({alias}.latitude, {alias}.longitude, {{lat}}, {{lon}})",
        **coordinate_params(coordinate),
    )


def effective_distance(coordinate: Coordinate) -> Expr:
    """Distance along the mapped river when there is one, else to the place point."""
    return Expr("COALESCE(rn.closest_distance, {point})", point=point_distance(coordinate))


def feature_predicate(feature_filter: Optional[FeatureFilter], alias: str = "l") -> Optional[Node]:
    """Rows whose feature class or feature code is allowed; None means unrestricted."""
    if feature_filter is None or feature_filter.is_empty:
        return None
    predicates = []
    if feature_filter.feature_classes:
        predicates.append(In(f"{alias}.feature_class", "feature_class", feature_filter.feature_classes, "VARCHAR"))
    if feature_filter.feature_codes:
        predicates.append(In(f"{alias}.feature_code", "feature_code", feature_filter.feature_codes, "VARCHAR"))
    return AnyOf(*predicates)


class SearchQueryBuilder:
    """
    Builds the ranked data query and its count query from one predicate tree.

    Relevance is the precomputed index score; with a coordinate it is lowered
    by ``round(effective distance * DISTANCE_PENALTY_FACTOR)``.
    """

    def __init__(self, language: str = SEARCH_LANGUAGE, penalty_factor: float = DISTANCE_PENALTY_FACTOR):
        self.language = language
        self.penalty_factor = penalty_factor

    def build(
        self,
        intent: Union[QueryIntent, Sequence[str]],
        options: Optional[SearchOptions] = None,
    ) -> Tuple[SelectQuery, SelectQuery]:
        """
        Build the (data, count) query pair.

        Args:
            intent: Parsed intent, or an already split list of search terms
            options: Filters, coordinate, radius, sorting and paging

        Returns:
            Tuple of (data query, count query)
        """
        options = options or SearchOptions()
        geoname_ids: Optional[List[int]] = None
        terms: List[str] = []
        coordinate = options.coordinate
        feature_filter = options.feature_filter

        if isinstance(intent, GeonameIdLookup):
            geoname_ids = [intent.geoname_id]
        elif isinstance(intent, CoordinateWithFeatureFilter):
            coordinate = intent.coordinate
            feature_filter = intent.feature_filter
        elif isinstance(intent, CoordinateLookup):
            coordinate = intent.coordinate
        elif isinstance(intent, FreeTextSearch):
            terms = prepare_search_terms(intent.text, options.iso_language or DEFAULT_ISO_LANGUAGE)
        elif isinstance(intent, (list, tuple)):
            terms = [term for term in intent if term and term.strip()]
        else:
            raise UnsupportedQueryShapeError(f"Unsupported query intent: {type(intent).__name__}")

        sort_by = self.resolve_sort(options.sort_by, coordinate)
        self.validate_paging(options.page, options.limit)
        if options.radius_meters is not None and coordinate is None:
            raise UnsupportedQueryShapeError("A radius needs a coordinate")

        data = SelectQuery(
            projection=self._projection(coordinate, options.iso_language),
            source=Raw("location l"),
            joins=self._joins(coordinate),
            where=self._where(terms, geoname_ids, coordinate, feature_filter, options),
            ctes=self._ctes(coordinate),
            order_by=[SORT_ORDER[sort_by], TIE_BREAK],
            limit=options.limit,
            offset=(options.page - 1) * options.limit if options.limit and options.page > 1 else None,
        )
        return data, data.as_count()

    def resolve_sort(self, sort_by: Union[SortBy, str], coordinate: Optional[Coordinate]) -> SortBy:
        try:
            sort = SortBy(sort_by)
        except ValueError:
            raise UnsupportedQueryShapeError(f"Unsupported sort key: {sort_by!r}") from None
        if sort in DISTANCE_SORTS and coordinate is None:
            raise UnsupportedQueryShapeError(f"Sorting by {sort.value} needs a coordinate")
        return sort

    @staticmethod
    def validate_paging(page: int, limit: Optional[int]):
        if not isinstance(page, int) or page < 1:
            raise UnsupportedQueryShapeError(f"Page must be a positive integer, got {page!r}")
        if limit is not None and (not isinstance(limit, int) or limit < 1):
            raise UnsupportedQueryShapeError(f"Limit must be a positive integer or None, got {limit!r}")
        if limit is None and page > 1:
            raise UnsupportedQueryShapeError("Paging past page 1 needs a limit")

    def _ctes(self, coordinate: Optional[Coordinate]) -> List[Tuple[str, Node]]:
        if coordinate is None:
            return []
        return [("river_nearest", Expr(RIVER_NEAREST_CTE, **coordinate_params(coordinate)))]

    def _joins(self, coordinate: Optional[Coordinate]) -> List[Node]:
        joins: List[Node] = [Raw("LEFT JOIN search_index si ON si.location_id = l.id")]
        if coordinate is not None:
            joins.append(Raw("LEFT JOIN river_nearest rn ON rn.location_id = l.id"))
        return joins

    def _projection(self, coordinate: Optional[Coordinate], iso_language: Optional[str]) -> List[Node]:
        projection = location_projection()
        if coordinate is None:
            projection.append(Raw("COALESCE(si.relevance_score, 0) AS relevance_score"))
        else:
            distance = effective_distance(coordinate)
            projection.append(Expr(
                f"CAST(COALESCE(si.relevance_score, 0) - round({{distance}} * {self.penalty_factor}) AS BIGINT)"
                " AS relevance_score",
                distance=distance,
            ))
            projection.append(Aliased(distance, "closest_distance"))
            projection.append(Raw("rn.closest_point AS closest_point"))
        if iso_language:
            projection.append(Aliased(
                Expr(ALTERNATE_NAMES_SUBQUERY, iso_language=Param("iso_language", iso_language, "VARCHAR")),
                "alternate_names",
            ))
        return projection

    def _where(
        self,
        terms: List[str],
        geoname_ids: Optional[List[int]],
        coordinate: Optional[Coordinate],
        feature_filter: Optional[FeatureFilter],
        options: SearchOptions,
    ) -> Node:
        predicates: List[Node] = []
        if geoname_ids is not None:
            predicates.append(In("l.geoname_id", "geoname_id", geoname_ids, "BIGINT"))
        else:
            predicates.append(self.text_predicate(terms))

        predicates.append(feature_predicate(feature_filter))

        if options.country:
            predicates.append(Compare(Raw("l.country_code"), "=", Param("country", options.country.upper(), "VARCHAR")))

        if options.radius_meters is not None:
            predicates.append(Compare(
                effective_distance(coordinate), "<=", Param("radius", float(options.radius_meters), "DOUBLE")
            ))
        return AllOf(*predicates)

    def text_predicate(self, terms: Sequence[str]) -> Node:
        """
        Prefix-match every term against either index representation.

        Returns:
            Predicate requiring an index entry when there are no usable terms
        """
        simple_terms = [normalize_text(term) for term in terms]
        simple_terms = [term for term in simple_terms if term]
        if not simple_terms:
            return IsNull("si.location_id", negate=True)

        simple = AllOf(*[
            self._prefix_match("si.search_text_simple", f"term_simple_{index}", term)
            for index, term in enumerate(simple_terms)
        ])
        stemmed = AllOf(*[
            self._prefix_match("si.search_text_stemmed", f"term_stemmed_{index}", stem_text(term, self.language))
            for index, term in enumerate(simple_terms)
        ])
        return AnyOf(simple, stemmed)

    @staticmethod
    def _prefix_match(column: str, name: str, term: str) -> Node:
        # A term matches at the start of any word of the indexed text
        return Compare(Raw(f"(' ' || {column})"), "LIKE", Param(name, f"% {term}%", "VARCHAR"))
