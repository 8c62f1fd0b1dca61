"""Admin hierarchy resolution: best-fit district, borough, city, state and country for a coordinate."""
from typing import Dict, List, Optional, Tuple
from locator.core.admin_levels import (
    ADM_BUCKET_BY_DEPTH,
    ADM_FEATURE_CODES,
    COUNTRY_FEATURE_CODES,
    STATE_FEATURE_CODES,
    CountryAdminConfig,
    feature_code_priority,
    get_admin_config,
)
from locator.core.config import ADMIN_RADIUS_METERS
from locator.core.coordinates import bounding_box
from locator.core.hydrator import ResultHydrator
from locator.core.models import (
    ANY_CODE,
    AdminHierarchy,
    AdminLevel,
    AdminLevelMatch,
    AdminMatchLevel,
    AdminPath,
    AdminUnit,
    Candidate,
    Coordinate,
    LocationType,
)
from locator.core.query_builder import location_projection, point_distance
from locator.core.sql import (
    AllOf,
    Aliased,
    AnyOf,
    Case,
    Compare,
    In,
    IsNull,
    Node,
    Param,
    Raw,
    SelectQuery,
    Subquery,
)
from locator.utils.logging import log_structured


PLACE_BUCKETS = (LocationType.CITY, LocationType.DISTRICT, LocationType.CITY_DISTRICT)

ADMIN_COLUMNS = ("l.admin1_code", "l.admin2_code", "l.admin3_code", "l.admin4_code")


def admin_code_predicate(level: int, code: Optional[str]) -> Optional[Node]:
    """
    Predicate for one admin path level.

    Args:
        level: Admin level 1..4
        code: Concrete code, ``None`` for "must be absent" or ``ANY_CODE``

    Returns:
        Node, or None when the level is unconstrained
    """
    column = ADMIN_COLUMNS[level - 1]
    if code == ANY_CODE:
        return None
    if code is None:
        return IsNull(column)
    return Compare(Raw(column), "=", Param(f"admin{level}", code, "VARCHAR"))


def admin_path_predicates(admin_path: AdminPath, depth: int) -> List[Node]:
    """Predicates for levels 1..depth of the path; deeper levels are ignored."""
    return [
        admin_code_predicate(level, code)
        for level, code in enumerate(admin_path.codes()[:depth], start=1)
    ]


def classify_location_type(admin_path: AdminPath, config: CountryAdminConfig) -> Case:
    """CASE expression assigning each row to one LocationType bucket."""
    whens: List[Tuple[Node, int]] = [
        (AllOf(
            In("l.feature_code", "adm2_code", ADM_FEATURE_CODES[LocationType.ADM2], "VARCHAR"),
            *admin_path_predicates(admin_path, 2),
            IsNull("l.admin3_code"),
            IsNull("l.admin4_code"),
        ), int(LocationType.ADM2)),
        (AllOf(
            In("l.feature_code", "adm3_code", ADM_FEATURE_CODES[LocationType.ADM3], "VARCHAR"),
            *admin_path_predicates(admin_path, 3),
            IsNull("l.admin4_code"),
        ), int(LocationType.ADM3)),
        (AllOf(
            In("l.feature_code", "adm4_code", ADM_FEATURE_CODES[LocationType.ADM4], "VARCHAR"),
            *admin_path_predicates(admin_path, 4),
        ), int(LocationType.ADM4)),
        (AllOf(
            In("l.feature_code", "adm5_code", ADM_FEATURE_CODES[LocationType.ADM5], "VARCHAR"),
            *admin_path_predicates(admin_path, 4),
        ), int(LocationType.ADM5)),
    ]

    place_codes = (
        (config.city_only_codes, "city_code", LocationType.CITY),
        (config.district_only_codes, "district_code", LocationType.DISTRICT),
        (config.city_district_codes, "city_district_code", LocationType.CITY_DISTRICT),
    )
    for codes, name, location_type in place_codes:
        if codes:
            whens.append((
                AllOf(In("l.feature_code", name, codes, "VARCHAR"), *admin_path_predicates(admin_path, 4)),
                int(location_type),
            ))

    return Case(whens, int(LocationType.UNKNOWN), alias="location_type")


class AdminHierarchyResolver:
    """
    Resolves the admin levels around a coordinate.

    Candidates within the radius are classified into LocationType buckets by
    SQL, then ranked here: feature-code priority first, then population for
    place buckets, then distance. Every bucket keeps its best row except
    CITY_DISTRICT, which keeps all rows.
    """

    def __init__(self, store, hydrator: Optional[ResultHydrator] = None, radius_meters: int = ADMIN_RADIUS_METERS):
        """
        Initialize resolver.

        Args:
            store: DuckDBStore to run queries against
            hydrator: Row hydrator, a default one is created when omitted
            radius_meters: Default search radius around the anchor coordinate
        """
        self.store = store
        self.hydrator = hydrator or ResultHydrator()
        self.radius_meters = radius_meters

    def build_candidate_query(
        self,
        coordinate: Coordinate,
        country_code: str,
        admin_path: AdminPath,
        config: CountryAdminConfig,
        radius_meters: int,
    ) -> SelectQuery:
        min_lat, max_lat, min_lon, max_lon = bounding_box(coordinate.latitude, coordinate.longitude, radius_meters)
        inner = SelectQuery(
            projection=location_projection() + [
                classify_location_type(admin_path, config),
                Aliased(point_distance(coordinate), "closest_distance"),
            ],
            source=Raw("location l"),
            where=AllOf(
                Compare(Raw("l.country_code"), "=", Param("country", country_code.upper(), "VARCHAR")),
                Compare(Raw("l.latitude"), ">=", Param("min_lat", min_lat, "DOUBLE")),
                Compare(Raw("l.latitude"), "<=", Param("max_lat", max_lat, "DOUBLE")),
                Compare(Raw("l.longitude"), ">=", Param("min_lon", min_lon, "DOUBLE")),
                Compare(Raw("l.longitude"), "<=", Param("max_lon", max_lon, "DOUBLE")),
            ),
        )
        return SelectQuery(
            projection=[Raw("c.*")],
            source=Subquery(inner, "c"),
            where=AllOf(
                Compare(Raw("c.location_type"), "<>", Raw(str(int(LocationType.UNKNOWN)))),
                Compare(Raw("c.closest_distance"), "<=", Param("radius", float(radius_meters), "DOUBLE")),
            ),
            order_by=["c.location_type ASC", "c.closest_distance ASC", "c.id ASC"],
        )

    def build_container_query(self, coordinate: Coordinate, country_code: str, admin_path: AdminPath) -> SelectQuery:
        """State (ADM1 with the path's admin1 code) and country-level rows of the country."""
        containers: List[Node] = [In("l.feature_code", "country_code", COUNTRY_FEATURE_CODES, "VARCHAR")]
        if admin_path.a1 not in (None, ANY_CODE):
            containers.append(AllOf(
                In("l.feature_code", "state_code", STATE_FEATURE_CODES, "VARCHAR"),
                admin_code_predicate(1, admin_path.a1),
            ))
        return SelectQuery(
            projection=location_projection() + [Aliased(point_distance(coordinate), "closest_distance")],
            source=Raw("location l"),
            where=AllOf(
                Compare(Raw("l.country_code"), "=", Param("country", country_code.upper(), "VARCHAR")),
                AnyOf(*containers),
            ),
            order_by=["closest_distance ASC", "l.id ASC"],
        )

    def rank(self, candidates: List[Candidate], location_type: LocationType, config: CountryAdminConfig) -> List[Candidate]:
        """
        Order candidates of one bucket best-first.

        Args:
            candidates: Rows of the bucket
            location_type: Bucket the rows belong to
            config: Country ranking settings

        Returns:
            Sorted copy of the candidates
        """
        priorities = config.feature_codes_for(location_type)
        is_place = location_type in PLACE_BUCKETS

        def sort_key(candidate: Candidate):
            priority = feature_code_priority(candidate.feature_code, priorities)
            population = 0
            if is_place:
                if not config.sort_by_feature_codes:
                    priority = 0
                if config.sort_by_population:
                    population = -(candidate.population or 0)
            distance = candidate.distance_meters if candidate.distance_meters is not None else float("inf")
            return (priority, population, distance, candidate.id)

        return sorted(candidates, key=sort_key)

    def rank_buckets(self, candidates: List[Candidate], config: CountryAdminConfig) -> Dict[LocationType, List[Candidate]]:
        """Group candidates by location_type and rank each group."""
        grouped: Dict[LocationType, List[Candidate]] = {}
        for candidate in candidates:
            if candidate.location_type is None:
                continue
            location_type = LocationType(candidate.location_type)
            if location_type == LocationType.UNKNOWN:
                continue
            grouped.setdefault(location_type, []).append(candidate)
        return {
            location_type: self.rank(rows, location_type, config)
            for location_type, rows in grouped.items()
        }

    @staticmethod
    def select_buckets(ranked: Dict[LocationType, List[Candidate]]) -> Dict[LocationType, List[Candidate]]:
        """Keep the best row of each bucket and every row of CITY_DISTRICT."""
        selected = {}
        for location_type, rows in ranked.items():
            selected[location_type] = list(rows) if location_type == LocationType.CITY_DISTRICT else rows[:1]
        return selected

    def select_levels(
        self,
        ranked: Dict[LocationType, List[Candidate]],
        containers: List[Candidate],
        config: CountryAdminConfig,
        match_level: AdminMatchLevel,
    ) -> List[AdminLevelMatch]:
        """
        Pick one unit per output level from ranked buckets.

        Args:
            ranked: Ranked rows per bucket
            containers: State and country rows, nearest first
            config: Country ranking settings
            match_level: Admin depth that represents a city

        Returns:
            Five AdminLevelMatch entries, unmatched levels carry None
        """
        depth = match_level.depth

        def best_adm(adm_depth: int) -> Optional[Candidate]:
            location_type = ADM_BUCKET_BY_DEPTH.get(adm_depth)
            rows = ranked.get(location_type) if location_type else None
            return rows[0] if rows else None

        city_adm = best_adm(depth) if depth >= 2 else None
        district_adm = best_adm(depth + 1) if depth >= 1 else None
        borough_adm = best_adm(depth + 2) if depth >= 1 else None

        overlapping = ranked.get(LocationType.CITY_DISTRICT, [])
        cities = self.rank(ranked.get(LocationType.CITY, []) + overlapping, LocationType.CITY, config)
        districts = self.rank(ranked.get(LocationType.DISTRICT, []) + overlapping, LocationType.DISTRICT, config)

        city = cities[0] if cities else None
        district = districts[0] if districts else None
        if city is not None and district is not None and city.id == district.id:
            city = cities[1] if len(cities) > 1 else None

        city = city or city_adm
        district = district or district_adm
        if city is not None and district is not None and city.id == district.id:
            district = None

        taken = {unit.id for unit in (city, district) if unit is not None}
        borough = borough_adm if borough_adm is not None and borough_adm.id not in taken else None

        state = next((row for row in containers if row.feature_code in STATE_FEATURE_CODES), None)
        countries = [row for row in containers if row.feature_code in COUNTRY_FEATURE_CODES]
        countries.sort(key=lambda row: (feature_code_priority(row.feature_code, COUNTRY_FEATURE_CODES), row.id))
        country = countries[0] if countries else None

        def unit(candidate: Optional[Candidate]) -> Optional[AdminUnit]:
            return AdminUnit.from_candidate(candidate) if candidate is not None else None

        return [
            AdminLevelMatch(AdminLevel.DISTRICT_LOCALITY, unit(district)),
            AdminLevelMatch(AdminLevel.BOROUGH_LOCALITY, unit(borough)),
            AdminLevelMatch(AdminLevel.CITY_MUNICIPALITY, unit(city)),
            AdminLevelMatch(AdminLevel.STATE, unit(state)),
            AdminLevelMatch(AdminLevel.COUNTRY, unit(country)),
        ]

    def resolve(
        self,
        coordinate: Coordinate,
        country_code: Optional[str],
        admin_path: Optional[AdminPath] = None,
        radius_meters: Optional[int] = None,
        match_level: Optional[AdminMatchLevel] = None,
    ) -> AdminHierarchy:
        """
        Resolve the admin hierarchy around a coordinate.

        Args:
            coordinate: Anchor coordinate
            country_code: ISO country code of the anchor
            admin_path: Admin codes candidates must share; unconstrained by default
            radius_meters: Search radius, defaults to the resolver's radius
            match_level: Depth representing a city, defaults to the country setting

        Returns:
            AdminHierarchy; every level is None when the country is unknown
            or nothing matches
        """
        admin_path = admin_path or AdminPath()
        if radius_meters is None:
            radius_meters = self.radius_meters

        if not country_code or not self.store.country_exists(country_code):
            log_structured("info", "Admin hierarchy skipped for unknown country", country_code=country_code)
            return AdminHierarchy(levels=self.select_levels({}, [], get_admin_config(None), AdminMatchLevel.A0))

        config = get_admin_config(country_code)
        match_level = match_level or config.match_level

        rows = self.store.query(
            self.build_candidate_query(coordinate, country_code, admin_path, config, radius_meters),
            operation="admin_candidates",
        )
        ranked = self.rank_buckets(self.hydrator.hydrate(rows), config)

        container_rows = self.store.query(
            self.build_container_query(coordinate, country_code, admin_path),
            operation="admin_containers",
        )
        containers = self.hydrator.hydrate(container_rows)

        hierarchy = AdminHierarchy(
            levels=self.select_levels(ranked, containers, config, match_level),
            buckets=self.select_buckets(ranked),
        )
        log_structured(
            "info",
            "Admin hierarchy resolved",
            country_code=country_code,
            match_level=match_level.value,
            buckets={int(location_type): len(rows) for location_type, rows in hierarchy.buckets.items()},
            resolved=[match.level.value for match in hierarchy.levels if match.unit is not None],
        )
        return hierarchy
