"""Mapping of raw store rows to Candidate objects."""
from typing import Any, Dict, Iterable, List, Optional
from locator.core.errors import SchemaMismatchError
from locator.core.models import Candidate, Coordinate
from locator.core.query_builder import LOCATION_COLUMNS
from locator.core.spatial import parse_point_wkt


ALTERNATE_NAME_SEPARATOR = "|"


def _to_float(value: Any, column: str) -> Optional[float]:
    if value is None:
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        raise SchemaMismatchError(f"Column {column} is not numeric: {value!r}") from None


def _to_int(value: Any, column: str) -> Optional[int]:
    number = _to_float(value, column)
    return None if number is None else int(round(number))


def _to_point(value: Any, column: str) -> Optional[Coordinate]:
    if value is None:
        return None
    if isinstance(value, Coordinate):
        return value
    try:
        return parse_point_wkt(str(value))
    except ValueError as e:
        raise SchemaMismatchError(f"Column {column} is not a point: {value!r}") from e


def _to_names(value: Any, column: str) -> List[str]:
    if value is None:
        return []
    if isinstance(value, (list, tuple)):
        return [str(name) for name in value if name]
    return [name for name in str(value).split(ALTERNATE_NAME_SEPARATOR) if name]


class ResultHydrator:
    """
    Turns result rows into Candidates.

    Canonical place columns are required. Extra projected columns are merged
    through a fixed set of converters; any other column is a schema error.
    """

    # Extra column -> (Candidate attribute, converter)
    EXTRA_COLUMNS: Dict[str, tuple] = {
        "relevance_score": ("relevance_score", _to_int),
        "closest_distance": ("distance_meters", _to_float),
        "closest_point": ("closest_point", _to_point),
        "alternate_names": ("alternate_names", _to_names),
        "location_type": ("location_type", _to_int),
    }

    def __init__(self, extra_columns: Optional[Dict[str, tuple]] = None):
        self.extra_columns = dict(self.EXTRA_COLUMNS)
        if extra_columns:
            self.extra_columns.update(extra_columns)

    def hydrate(self, rows: Iterable[Dict[str, Any]]) -> List[Candidate]:
        return [self.hydrate_row(row) for row in rows]

    def hydrate_row(self, row: Dict[str, Any]) -> Candidate:
        """
        Build one Candidate.

        Args:
            row: Column name to value mapping

        Returns:
            Candidate with extras merged

        Raises:
            SchemaMismatchError: Missing canonical column, unknown extra column
                or a value that cannot be converted
        """
        missing = [column for column in LOCATION_COLUMNS if column not in row]
        if missing:
            raise SchemaMismatchError(f"Result row is missing columns: {', '.join(missing)}")

        unknown = [column for column in row if column not in LOCATION_COLUMNS and column not in self.extra_columns]
        if unknown:
            raise SchemaMismatchError(f"Unexpected result columns: {', '.join(sorted(unknown))}")

        candidate = Candidate(
            id=int(row["id"]),
            geoname_id=int(row["geoname_id"]),
            name=row["name"],
            latitude=_to_float(row["latitude"], "latitude"),
            longitude=_to_float(row["longitude"], "longitude"),
            feature_class=row["feature_class"],
            feature_code=row["feature_code"],
            country_code=row["country_code"],
            admin1_code=row["admin1_code"],
            admin2_code=row["admin2_code"],
            admin3_code=row["admin3_code"],
            admin4_code=row["admin4_code"],
            population=_to_int(row["population"], "population"),
        )

        for column, (attribute, convert) in self.extra_columns.items():
            if column in row:
                setattr(candidate, attribute, convert(row[column], column))

        # A river point must come with the distance measured to it
        if candidate.closest_point is not None and candidate.distance_meters is None:
            raise SchemaMismatchError("closest_point returned without closest_distance")

        return candidate
