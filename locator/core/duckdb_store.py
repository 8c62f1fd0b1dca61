"""DuckDB storage layer for the location gazetteer."""
import math
import threading
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple
import duckdb
import geopandas as gpd
import pandas as pd
from duckdb.sqltypes import DOUBLE, VARCHAR
from locator.core.config import DUCKDB_PATH, QUERY_TIMEOUT_SECONDS, SEARCH_LANGUAGE
from locator.core.coordinates import geodesic_distance_m
from locator.core.errors import StoreFailureError
from locator.core.normalization import build_search_texts
from locator.core.spatial import closest_point_on_line, distance_to_line_m
from locator.core.sql import SelectQuery
from locator.utils.logging import log_error, log_structured
from locator.utils.timing import Timer, time_function


LOCATION_FIELDS = [
    "id",
    "geoname_id",
    "name",
    "ascii_name",
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

# Base index relevance per feature code, falling back to the feature class
FEATURE_CODE_RELEVANCE = {
    "PCLI": 9000,
    "PPLC": 8000,
    "ADM1": 7000,
    "PPLA": 6500,
    "ADM2": 6000,
    "PPLA2": 5500,
    "ADM3": 5000,
    "PPLA3": 4500,
    "PPLA4": 4000,
    "AIRP": 4000,
    "PPL": 3000,
    "PPLX": 2500,
}

FEATURE_CLASS_RELEVANCE = {
    "A": 3000,
    "P": 2000,
    "S": 1500,
    "H": 1200,
    "T": 1200,
    "L": 1000,
}

DEFAULT_RELEVANCE = 1000


def default_relevance_score(feature_class: Optional[str], feature_code: Optional[str], population: Optional[int]) -> int:
    """
    Precomputed index relevance of a place.

    Args:
        feature_class: Single letter feature class
        feature_code: Feature code
        population: Population, if known

    Returns:
        Feature-based base score plus a log-scaled population bonus
    """
    base = FEATURE_CODE_RELEVANCE.get(feature_code or "")
    if base is None:
        base = FEATURE_CLASS_RELEVANCE.get(feature_class or "", DEFAULT_RELEVANCE)
    bonus = int(round(math.log10((population or 0) + 1) * 200))
    return base + bonus


def _clean(value: Any) -> Any:
    """Map pandas missing values and empty strings to None."""
    if value is None:
        return None
    if isinstance(value, str):
        return value.strip() or None
    if pd.api.types.is_scalar(value) and pd.isna(value):
        return None
    return value


def _closest_point_wkt(line_wkt: Optional[str], latitude: Optional[float], longitude: Optional[float]) -> Optional[str]:
    if line_wkt is None or latitude is None or longitude is None:
        return None
    point = closest_point_on_line(line_wkt, latitude, longitude)
    return point.to_wkt() if point else None


def _line_distance(line_wkt: Optional[str], latitude: Optional[float], longitude: Optional[float]) -> Optional[float]:
    if line_wkt is None or latitude is None or longitude is None:
        return None
    return distance_to_line_m(line_wkt, latitude, longitude)


class DuckDBStore:
    """DuckDB storage manager for places, rivers and the search index."""

    def __init__(self, db_path: Optional[Path] = None, timeout_seconds: Optional[float] = QUERY_TIMEOUT_SECONDS):
        """
        Initialize DuckDB connection.

        Args:
            db_path: Path to DuckDB database file, ``":memory:"`` for an in-memory store
            timeout_seconds: Deadline for a single read query, None for no deadline
        """
        self.db_path = db_path or DUCKDB_PATH
        if str(self.db_path) != ":memory:":
            Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)
        self.timeout_seconds = timeout_seconds
        self.conn = duckdb.connect(str(self.db_path))
        self._init_schema()
        self._register_functions()

    def _init_schema(self):
        """Initialize database schema."""
        self.conn.execute("""
            CREATE TABLE IF NOT EXISTS location (
                id INTEGER PRIMARY KEY,
                geoname_id BIGINT UNIQUE,
                name VARCHAR NOT NULL,
                ascii_name VARCHAR,
                latitude DOUBLE NOT NULL,
                longitude DOUBLE NOT NULL,
                feature_class VARCHAR,
                feature_code VARCHAR,
                country_code VARCHAR,
                admin1_code VARCHAR,
                admin2_code VARCHAR,
                admin3_code VARCHAR,
                admin4_code VARCHAR,
                population BIGINT
            )
        """)

        self.conn.execute("""
            CREATE TABLE IF NOT EXISTS country (
                code VARCHAR PRIMARY KEY,
                name VARCHAR
            )
        """)

        self.conn.execute("""
            CREATE TABLE IF NOT EXISTS alternate_name (
                location_id INTEGER,
                iso_language VARCHAR,
                alternate_name VARCHAR,
                is_preferred BOOLEAN DEFAULT FALSE
            )
        """)

        self.conn.execute("""
            CREATE TABLE IF NOT EXISTS search_index (
                location_id INTEGER PRIMARY KEY,
                relevance_score INTEGER,
                search_text_simple VARCHAR,
                search_text_stemmed VARCHAR
            )
        """)

        # Rivers are stored as WKT line parts in WGS84
        self.conn.execute("""
            CREATE TABLE IF NOT EXISTS river (
                id INTEGER PRIMARY KEY,
                name VARCHAR
            )
        """)
        self.conn.execute("""
            CREATE TABLE IF NOT EXISTS river_part (
                id INTEGER PRIMARY KEY,
                river_id INTEGER,
                geometry_wkt VARCHAR
            )
        """)
        self.conn.execute("""
            CREATE TABLE IF NOT EXISTS location_river (
                location_id INTEGER,
                river_id INTEGER
            )
        """)

        self.conn.execute("CREATE INDEX IF NOT EXISTS idx_location_country ON location(country_code)")
        self.conn.execute("CREATE INDEX IF NOT EXISTS idx_alternate_name_location ON alternate_name(location_id)")
        self.conn.execute("CREATE INDEX IF NOT EXISTS idx_location_river_location ON location_river(location_id)")

    def _register_functions(self):
        """Register spatial Python UDFs used by search and admin queries."""
        self.conn.create_function("geo_distance", geodesic_distance_m, [DOUBLE, DOUBLE, DOUBLE, DOUBLE], DOUBLE)
        self.conn.create_function(
            "river_point_distance", _line_distance, [VARCHAR, DOUBLE, DOUBLE], DOUBLE, null_handling="special"
        )
        self.conn.create_function(
            "river_closest_point", _closest_point_wkt, [VARCHAR, DOUBLE, DOUBLE], VARCHAR, null_handling="special"
        )

    def ingest_locations(self, df: pd.DataFrame, replace: bool = True):
        """
        Ingest places from a DataFrame.

        Args:
            df: Rows with at least geoname_id, name, latitude and longitude;
                other LOCATION_FIELDS columns are optional
            replace: Clear existing places (and their index entries) first
        """
        missing = [column for column in ("geoname_id", "name", "latitude", "longitude") if column not in df.columns]
        if missing:
            raise ValueError(f"Location data is missing columns: {', '.join(missing)}")

        if replace:
            for table in ("search_index", "alternate_name", "location_river", "location"):
                self.conn.execute(f"DELETE FROM {table}")

        next_id = self.conn.execute("SELECT COALESCE(MAX(id), 0) + 1 FROM location").fetchone()[0]

        rows = []
        for offset, (_, row) in enumerate(df.iterrows()):
            values = {field: _clean(row.get(field)) for field in LOCATION_FIELDS}
            values["id"] = int(values["id"]) if values["id"] is not None else next_id + offset
            values["geoname_id"] = int(values["geoname_id"])
            values["ascii_name"] = values["ascii_name"] or values["name"]
            values["latitude"] = float(values["latitude"])
            values["longitude"] = float(values["longitude"])
            if values["population"] is not None:
                values["population"] = int(values["population"])
            for field in ("admin1_code", "admin2_code", "admin3_code", "admin4_code"):
                if values[field] is not None:
                    values[field] = str(values[field])
            rows.append(tuple(values[field] for field in LOCATION_FIELDS))

        if rows:
            self.conn.executemany(
                f"INSERT INTO location ({', '.join(LOCATION_FIELDS)}) "
                f"VALUES ({', '.join('?' for _ in LOCATION_FIELDS)})",
                rows
            )
        log_structured("info", "Locations ingested", count=len(rows))

    def ingest_countries(self, df: pd.DataFrame):
        """
        Ingest countries.

        Args:
            df: Rows with ``code`` and ``name`` columns
        """
        self.conn.execute("DELETE FROM country")
        rows = [(str(row["code"]).upper(), _clean(row.get("name"))) for _, row in df.iterrows()]
        if rows:
            self.conn.executemany("INSERT INTO country (code, name) VALUES (?, ?)", rows)

    def _location_ids_by_geoname(self) -> Dict[int, int]:
        return dict(self.conn.execute("SELECT geoname_id, id FROM location").fetchall())

    def ingest_alternate_names(self, df: pd.DataFrame):
        """
        Ingest alternate names.

        Args:
            df: Rows with geoname_id, iso_language, alternate_name and an
                optional is_preferred flag; unknown geoname ids are skipped
        """
        ids = self._location_ids_by_geoname()
        self.conn.execute("DELETE FROM alternate_name")

        rows = []
        skipped = 0
        for _, row in df.iterrows():
            location_id = ids.get(int(row["geoname_id"]))
            name = _clean(row.get("alternate_name"))
            if location_id is None or name is None:
                skipped += 1
                continue
            rows.append((
                location_id,
                _clean(row.get("iso_language")),
                name,
                bool(_clean(row.get("is_preferred")) or False),
            ))

        if rows:
            self.conn.executemany(
                "INSERT INTO alternate_name (location_id, iso_language, alternate_name, is_preferred) VALUES (?, ?, ?, ?)",
                rows
            )
        log_structured("info", "Alternate names ingested", count=len(rows), skipped=skipped)

    def ingest_rivers(self, gdf: gpd.GeoDataFrame, name_field: str = "name", id_field: str = "river_id"):
        """
        Ingest river centerlines.

        Each row becomes one river part; rows sharing an id (or, without an
        id column, a name) belong to the same river.

        Args:
            gdf: GeoDataFrame of LineString/MultiLineString geometries
            name_field: Column holding the river name
            id_field: Column holding the river id
        """
        if gdf.crs is not None and gdf.crs != "EPSG:4326":
            gdf = gdf.to_crs("EPSG:4326")

        self.conn.execute("DELETE FROM location_river")
        self.conn.execute("DELETE FROM river_part")
        self.conn.execute("DELETE FROM river")

        rivers: Dict[Any, Tuple[int, str]] = {}
        parts = []
        for index, row in gdf.iterrows():
            geometry = row.geometry
            if geometry is None or geometry.is_empty or geometry.geom_type not in ("LineString", "MultiLineString"):
                continue
            name = row.get(name_field)
            key = row[id_field] if id_field in gdf.columns else name
            if key not in rivers:
                river_id = int(key) if id_field in gdf.columns else len(rivers) + 1
                rivers[key] = (river_id, name)
            parts.append((len(parts) + 1, rivers[key][0], geometry.wkt))

        if rivers:
            self.conn.executemany("INSERT INTO river (id, name) VALUES (?, ?)", list(rivers.values()))
        if parts:
            self.conn.executemany("INSERT INTO river_part (id, river_id, geometry_wkt) VALUES (?, ?, ?)", parts)
        log_structured("info", "Rivers ingested", rivers=len(rivers), parts=len(parts))

    def ingest_location_rivers(self, df: pd.DataFrame):
        """
        Associate places with rivers.

        Args:
            df: Rows with geoname_id and river_id columns
        """
        ids = self._location_ids_by_geoname()
        self.conn.execute("DELETE FROM location_river")
        rows = [
            (ids[int(row["geoname_id"])], int(row["river_id"]))
            for _, row in df.iterrows()
            if int(row["geoname_id"]) in ids
        ]
        if rows:
            self.conn.executemany("INSERT INTO location_river (location_id, river_id) VALUES (?, ?)", rows)

    @time_function
    def build_search_index(self, language: str = SEARCH_LANGUAGE):
        """
        Build the search index from places and their alternate names.

        Args:
            language: Snowball stemmer language for the stemmed representation
        """
        self.conn.execute("DELETE FROM search_index")

        alternate_names: Dict[int, List[str]] = {}
        for location_id, name in self.conn.execute(
            "SELECT location_id, alternate_name FROM alternate_name ORDER BY location_id, alternate_name"
        ).fetchall():
            alternate_names.setdefault(location_id, []).append(name)

        rows = []
        for location_id, name, ascii_name, feature_class, feature_code, population in self.conn.execute(
            "SELECT id, name, ascii_name, feature_class, feature_code, population FROM location"
        ).fetchall():
            names = [name, ascii_name] + alternate_names.get(location_id, [])
            simple, stemmed = build_search_texts([n for n in names if n], language)
            if not simple:
                continue
            rows.append((
                location_id,
                default_relevance_score(feature_class, feature_code, population),
                simple,
                stemmed,
            ))

        if rows:
            self.conn.executemany(
                """
                INSERT INTO search_index (location_id, relevance_score, search_text_simple, search_text_stemmed)
                VALUES (?, ?, ?, ?)
                """,
                rows
            )
        log_structured("info", "Search index built", entries=len(rows), language=language)

    def set_relevance_score(self, geoname_id: int, relevance_score: int):
        """Override the index relevance of one place."""
        self.conn.execute(
            """
            UPDATE search_index SET relevance_score = ?
            WHERE location_id = (SELECT id FROM location WHERE geoname_id = ?)
            """,
            [relevance_score, geoname_id]
        )

    def country_exists(self, country_code: str) -> bool:
        row = self.execute(
            "SELECT COUNT(*) AS total FROM country WHERE code = ?",
            [country_code.upper()],
            operation="country_exists",
        )
        return row[0]["total"] > 0

    def execute(self, sql: str, params: Any = None, operation: str = "query") -> List[Dict[str, Any]]:
        """
        Run a read query and return rows as dictionaries.

        Args:
            sql: SQL text
            params: Positional list or named dict of parameters
            operation: Name used in logs and errors

        Returns:
            List of column name to value mappings

        Raises:
            StoreFailureError: The query failed or exceeded the deadline
        """
        deadline = None
        if self.timeout_seconds:
            deadline = threading.Timer(self.timeout_seconds, self.conn.interrupt)
            deadline.start()
        try:
            with Timer(operation):
                cursor = self.conn.execute(sql, params or None)
                columns = [description[0] for description in cursor.description]
                rows = cursor.fetchall()
        except duckdb.Error as e:
            log_error(e, {
                "module": "duckdb_store",
                "function": "execute",
                "operation": operation,
                "params": params,
            })
            raise StoreFailureError(f"Store operation {operation} failed: {e}", operation) from e
        finally:
            if deadline is not None:
                deadline.cancel()
        return [dict(zip(columns, row)) for row in rows]

    def query(self, query: SelectQuery, operation: str = "query") -> List[Dict[str, Any]]:
        """Render and run a SelectQuery."""
        sql, params = query.to_sql()
        return self.execute(sql, params, operation)

    def count(self, query: SelectQuery, operation: str = "count") -> int:
        """Run a count query and return its ``total`` column."""
        rows = self.query(query, operation)
        return int(rows[0]["total"]) if rows else 0

    def get_stats(self) -> Dict[str, int]:
        """Row counts per table."""
        stats = {}
        for table in ("location", "country", "alternate_name", "search_index", "river", "river_part", "location_river"):
            stats[table] = self.conn.execute(f"SELECT COUNT(*) FROM {table}").fetchone()[0]
        return stats

    def close(self):
        """Close database connection."""
        self.conn.close()
