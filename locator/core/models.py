"""Data models for query intents, search options and search results."""
from dataclasses import dataclass, field
from enum import Enum, IntEnum
from typing import Optional, List, Dict, Any, Tuple, Union
from locator.core.config import DEFAULT_LIMIT


# Admin path code meaning "do not constrain this level"
ANY_CODE = "*"


@dataclass(frozen=True)
class Coordinate:
    """A WGS84 point in decimal degrees."""
    latitude: float
    longitude: float

    def to_wkt(self) -> str:
        return f"POINT ({self.longitude} {self.latitude})"

    def to_dict(self) -> Dict[str, float]:
        return {"latitude": self.latitude, "longitude": self.longitude}


@dataclass(frozen=True)
class FeatureFilter:
    """Allowed feature classes (single letters) and feature codes (2-5 letters)."""
    feature_classes: Tuple[str, ...] = ()
    feature_codes: Tuple[str, ...] = ()

    @property
    def is_empty(self) -> bool:
        return not self.feature_classes and not self.feature_codes

    def to_dict(self) -> Dict[str, List[str]]:
        return {
            "feature_classes": list(self.feature_classes),
            "feature_codes": list(self.feature_codes),
        }


@dataclass(frozen=True)
class QueryOptions:
    """Options given inline in the raw query, e.g. ``berlin distance:5000``."""
    distance: Optional[int] = None
    limit: Optional[int] = None
    country: Optional[str] = None
    feature_filter: Optional[FeatureFilter] = None

    @property
    def is_empty(self) -> bool:
        return (
            self.distance is None
            and self.limit is None
            and self.country is None
            and self.feature_filter is None
        )


@dataclass(frozen=True)
class GeonameIdLookup:
    """Lookup of a single place by its gazetteer id."""
    geoname_id: int
    options: QueryOptions = field(default_factory=QueryOptions)
    kind: str = field(default="geoname-id", init=False)


@dataclass(frozen=True)
class CoordinateLookup:
    """Places around a coordinate."""
    coordinate: Coordinate
    options: QueryOptions = field(default_factory=QueryOptions)
    kind: str = field(default="coordinate", init=False)


@dataclass(frozen=True)
class CoordinateWithFeatureFilter:
    """Places of given feature classes/codes around a coordinate."""
    coordinate: Coordinate
    feature_filter: FeatureFilter
    options: QueryOptions = field(default_factory=QueryOptions)
    kind: str = field(default="coordinate-with-features", init=False)


@dataclass(frozen=True)
class FreeTextSearch:
    """Full-text search; the catch-all intent."""
    terms: Tuple[str, ...]
    options: QueryOptions = field(default_factory=QueryOptions)
    kind: str = field(default="free-text", init=False)

    @property
    def text(self) -> str:
        return " ".join(self.terms)


QueryIntent = Union[GeonameIdLookup, CoordinateLookup, CoordinateWithFeatureFilter, FreeTextSearch]


class SortBy(str, Enum):
    """Result ordering requested by the caller."""
    RELEVANCE = "relevance"
    RELEVANCE_USER = "relevance_user"
    DISTANCE = "distance"
    DISTANCE_USER = "distance_user"
    NAME = "name"
    GEONAME_ID = "geoname_id"


@dataclass
class SearchOptions:
    """Filters, sorting and paging for a search."""
    feature_filter: Optional[FeatureFilter] = None
    coordinate: Optional[Coordinate] = None
    radius_meters: Optional[int] = None
    limit: Optional[int] = DEFAULT_LIMIT
    page: int = 1
    sort_by: Union[SortBy, str] = SortBy.RELEVANCE
    country: Optional[str] = None
    iso_language: Optional[str] = None


@dataclass
class Candidate:
    """A place returned by a search."""
    id: int
    geoname_id: int
    name: str
    latitude: float
    longitude: float
    feature_class: Optional[str] = None
    feature_code: Optional[str] = None
    country_code: Optional[str] = None
    admin1_code: Optional[str] = None
    admin2_code: Optional[str] = None
    admin3_code: Optional[str] = None
    admin4_code: Optional[str] = None
    population: Optional[int] = None
    relevance_score: Optional[int] = None
    distance_meters: Optional[float] = None
    closest_point: Optional[Coordinate] = None
    alternate_names: List[str] = field(default_factory=list)
    location_type: Optional[int] = None

    @property
    def coordinate(self) -> Coordinate:
        return Coordinate(self.latitude, self.longitude)

    @property
    def admin_codes(self) -> Tuple[Optional[str], ...]:
        return (self.admin1_code, self.admin2_code, self.admin3_code, self.admin4_code)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "id": self.id,
            "geoname_id": self.geoname_id,
            "name": self.name,
            "latitude": self.latitude,
            "longitude": self.longitude,
            "feature_class": self.feature_class,
            "feature_code": self.feature_code,
            "country_code": self.country_code,
            "admin_codes": list(self.admin_codes),
            "population": self.population,
            "relevance_score": self.relevance_score,
            "distance_meters": self.distance_meters,
            "closest_point": self.closest_point.to_dict() if self.closest_point else None,
            "alternate_names": self.alternate_names,
        }


@dataclass
class SearchResult:
    """One page of candidates plus the total number of matches."""
    candidates: List[Candidate]
    total: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total": self.total,
            "candidates": [candidate.to_dict() for candidate in self.candidates],
        }


class LocationType(IntEnum):
    """Bucket a place falls into when resolving its admin hierarchy."""
    ADM2 = 10
    ADM3 = 11
    ADM4 = 12
    ADM5 = 13
    CITY = 20
    DISTRICT = 21
    CITY_DISTRICT = 29
    UNKNOWN = 90


class AdminMatchLevel(str, Enum):
    """Depth of the admin path that is matched exactly."""
    A0 = "A0"
    A1 = "A1"
    A2 = "A2"
    A3 = "A3"
    A4 = "A4"

    @property
    def depth(self) -> int:
        return int(self.value[1])


@dataclass(frozen=True)
class AdminPath:
    """
    Admin1..admin4 codes used to constrain hierarchy candidates.

    Each code is either a concrete value, ``None`` (the level must be absent)
    or ``ANY_CODE`` (the level is not constrained).
    """
    a1: Optional[str] = ANY_CODE
    a2: Optional[str] = ANY_CODE
    a3: Optional[str] = ANY_CODE
    a4: Optional[str] = ANY_CODE

    def codes(self) -> Tuple[Optional[str], ...]:
        return (self.a1, self.a2, self.a3, self.a4)

    @classmethod
    def from_candidate(cls, candidate: Candidate, depth: int = 4) -> "AdminPath":
        """
        Build a path from a place's admin codes.

        Args:
            candidate: Anchor place
            depth: Number of leading levels taken from the place; deeper
                levels are left unconstrained

        Returns:
            AdminPath with empty codes mapped to ``None``
        """
        codes = []
        for index, code in enumerate(candidate.admin_codes):
            if index >= depth:
                codes.append(ANY_CODE)
            else:
                codes.append(code or None)
        return cls(*codes)


class AdminLevel(str, Enum):
    """Output slots of the admin hierarchy resolver."""
    DISTRICT_LOCALITY = "district-locality"
    BOROUGH_LOCALITY = "borough-locality"
    CITY_MUNICIPALITY = "city-municipality"
    STATE = "state"
    COUNTRY = "country"


@dataclass(frozen=True)
class AdminUnit:
    """A resolved administrative unit or populated place."""
    id: int
    geoname_id: int
    name: str
    feature_code: Optional[str] = None

    @classmethod
    def from_candidate(cls, candidate: Candidate) -> "AdminUnit":
        return cls(candidate.id, candidate.geoname_id, candidate.name, candidate.feature_code)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "geoname_id": self.geoname_id,
            "name": self.name,
            "feature_code": self.feature_code,
        }


@dataclass(frozen=True)
class AdminLevelMatch:
    """Best-fit unit for one admin level, or ``None`` when nothing matched."""
    level: AdminLevel
    unit: Optional[AdminUnit] = None

    def to_dict(self) -> Dict[str, Any]:
        return {"level": self.level.value, "unit": self.unit.to_dict() if self.unit else None}


@dataclass
class AdminHierarchy:
    """Admin levels resolved for one anchor coordinate."""
    levels: List[AdminLevelMatch]
    buckets: Dict[LocationType, List[Candidate]] = field(default_factory=dict)

    def get(self, level: AdminLevel) -> Optional[AdminUnit]:
        for match in self.levels:
            if match.level == level:
                return match.unit
        return None

    @property
    def is_empty(self) -> bool:
        return all(match.unit is None for match in self.levels)

    def to_dict(self) -> Dict[str, Any]:
        return {match.level.value: match.unit.to_dict() if match.unit else None for match in self.levels}
