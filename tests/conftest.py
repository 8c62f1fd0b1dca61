"""Pytest configuration and fixtures."""
import pytest
import tempfile
import shutil
from pathlib import Path
import geopandas as gpd
import pandas as pd
from shapely.geometry import LineString
from locator.core.duckdb_store import DuckDBStore
from locator.core.location_service import LocationService
from locator.core.models import Candidate


BERLIN_PATH = {"admin1_code": "16", "admin2_code": "00", "admin3_code": "11000", "admin4_code": "11000000"}
POTSDAM_PATH = {"admin1_code": "11", "admin2_code": "00", "admin3_code": "12054", "admin4_code": "12054000"}


def _place(geoname_id, name, lat, lon, feature_class, feature_code, population=0, country_code="DE", **admin):
    row = {
        "geoname_id": geoname_id,
        "name": name,
        "latitude": lat,
        "longitude": lon,
        "feature_class": feature_class,
        "feature_code": feature_code,
        "country_code": country_code,
        "admin1_code": None,
        "admin2_code": None,
        "admin3_code": None,
        "admin4_code": None,
        "population": population,
    }
    row.update(admin)
    return row


@pytest.fixture
def temp_db():
    """Create temporary DuckDB database."""
    temp_dir = tempfile.mkdtemp()
    db_path = Path(temp_dir) / "test.duckdb"
    db_store = DuckDBStore(db_path, timeout_seconds=None)
    yield db_store
    db_store.close()
    shutil.rmtree(temp_dir)


@pytest.fixture
def sample_locations():
    """Places around Berlin and Potsdam plus two equally relevant villages in Bavaria."""
    places = [
        _place(2921044, "Germany", 51.5, 10.5, "A", "PCLI", 82927922),
        _place(2950157, "Land Berlin", 52.5, 13.42, "A", "ADM1", 0, admin1_code="16"),
        _place(2950159, "Berlin", 52.52437, 13.41053, "P", "PPLC", 3426354, **BERLIN_PATH),
        _place(6547383, "Kreisfreie Stadt Berlin", 52.5, 13.4, "A", "ADM2", 0,
               admin1_code="16", admin2_code="00"),
        _place(6547539, "Berlin, Stadt", 52.51, 13.39, "A", "ADM3", 0,
               admin1_code="16", admin2_code="00", admin3_code="11000"),
        _place(6547540, "Berlin", 52.516, 13.38, "A", "ADM4", 0, **BERLIN_PATH),
        _place(2870912, "Mitte", 52.52, 13.405, "P", "PPLX", 98000, **BERLIN_PATH),
        _place(2823567, "Tiergarten", 52.5145, 13.3501, "P", "PPLX", 12000, **BERLIN_PATH),
        _place(2870284, "Moabit", 52.53, 13.34, "P", "PPL", 77000, **BERLIN_PATH),
        _place(2814109, "Wedding", 52.55, 13.36, "P", "PPL", 85000, **BERLIN_PATH),
        _place(2950438, "Berlin Tegel Airport", 52.5597, 13.2877, "S", "AIRP", 0, **BERLIN_PATH),
        _place(2852458, "Potsdam", 52.39886, 13.06566, "P", "PPLA", 159456, **POTSDAM_PATH),
        _place(6944121, "Schloss Cecilienhof", 52.4192, 13.0708, "S", "CSTL", 0, **POTSDAM_PATH),
        _place(9000001, "Havelufer", 52.45, 13.05, "P", "PPL", 0, **POTSDAM_PATH),
        _place(2867714, "München", 48.13743, 11.57549, "P", "PPLA", 1260391,
               admin1_code="02", admin2_code="091", admin3_code="09162", admin4_code="09162000"),
        _place(9000002, "Gleichdorf Nord", 48.0045, 11.0, "P", "PPL", 0, admin1_code="02"),
        _place(9000003, "Gleichdorf Süd", 48.018, 11.0, "P", "PPL", 0, admin1_code="02"),
    ]
    return pd.DataFrame(places)


@pytest.fixture
def sample_alternate_names():
    """Alternate names keyed by geoname id."""
    return pd.DataFrame([
        {"geoname_id": 2867714, "iso_language": "en", "alternate_name": "Munich", "is_preferred": True},
        {"geoname_id": 2867714, "iso_language": "it", "alternate_name": "Monaco di Baviera", "is_preferred": False},
        {"geoname_id": 2950159, "iso_language": "es", "alternate_name": "Berlín", "is_preferred": True},
    ])


@pytest.fixture
def sample_rivers():
    """A straight river segment south of Havelufer."""
    return gpd.GeoDataFrame(
        [{"river_id": 1, "name": "Havel", "geometry": LineString([(13.0, 52.4), (13.1, 52.4)])}],
        crs="EPSG:4326"
    )


@pytest.fixture
def populated_db(temp_db, sample_locations, sample_alternate_names, sample_rivers):
    """Create database with sample data."""
    temp_db.ingest_countries(pd.DataFrame([{"code": "DE", "name": "Germany"}]))
    temp_db.ingest_locations(sample_locations)
    temp_db.ingest_alternate_names(sample_alternate_names)
    temp_db.ingest_rivers(sample_rivers)
    temp_db.ingest_location_rivers(pd.DataFrame([{"geoname_id": 9000001, "river_id": 1}]))

    # Build index
    temp_db.build_search_index()

    # Same text relevance for both villages
    temp_db.set_relevance_score(9000002, 1000)
    temp_db.set_relevance_score(9000003, 1000)

    return temp_db


@pytest.fixture
def service(populated_db):
    """Create location service with populated database."""
    return LocationService(populated_db)


@pytest.fixture
def make_candidate():
    """Factory for Candidate objects used by pure ranking tests."""
    def factory(id, name="Place", feature_code="PPL", population=0, distance=0.0, location_type=None, **kwargs):
        return Candidate(
            id=id,
            geoname_id=1000 + id,
            name=name,
            latitude=kwargs.pop("latitude", 52.5),
            longitude=kwargs.pop("longitude", 13.4),
            feature_class=kwargs.pop("feature_class", "P"),
            feature_code=feature_code,
            country_code=kwargs.pop("country_code", "DE"),
            population=population,
            distance_meters=distance,
            location_type=location_type,
            **kwargs
        )
    return factory
