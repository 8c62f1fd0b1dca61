"""GeoNames export readers producing DataFrames shaped for DuckDBStore ingest."""
from pathlib import Path
from typing import Iterable, Optional
import pandas as pd
from locator.utils.logging import log_error, log_structured


# GeoNames TSV format:
# geonameid, name, asciiname, alternatenames, latitude, longitude,
# feature class, feature code, country code, cc2, admin1, admin2, admin3, admin4,
# population, elevation, dem, timezone, modification date
GEONAMES_COLUMNS = [
    "geoname_id", "name", "ascii_name", "alternatenames", "latitude", "longitude",
    "feature_class", "feature_code", "country_code", "cc2", "admin1_code", "admin2_code",
    "admin3_code", "admin4_code", "population", "elevation", "dem", "timezone", "modification_date"
]

ALTERNATE_NAMES_COLUMNS = [
    "alternate_name_id", "geoname_id", "iso_language", "alternate_name",
    "is_preferred", "is_short", "is_colloquial", "is_historic", "from", "to"
]

_CODE_COLUMNS = ["feature_class", "feature_code", "country_code", "admin1_code", "admin2_code", "admin3_code", "admin4_code"]


def read_geonames_tsv(path: Path, country_codes: Optional[Iterable[str]] = None) -> pd.DataFrame:
    """
    Read a GeoNames export (allCountries.txt or a per-country file).

    Args:
        path: Path to the TSV file
        country_codes: Keep only these ISO country codes, all when None

    Returns:
        DataFrame with the columns DuckDBStore.ingest_locations expects
    """
    try:
        df = pd.read_csv(
            path,
            sep="\t",
            header=None,
            names=GEONAMES_COLUMNS,
            dtype={column: str for column in _CODE_COLUMNS},
            keep_default_na=False,
            na_values={"population": [""], "latitude": [""], "longitude": [""]},
            quoting=3,
            low_memory=False
        )
    except (OSError, pd.errors.ParserError) as e:
        log_error(e, {"module": "geonames", "function": "read_geonames_tsv", "path": str(path)})
        raise

    if country_codes:
        wanted = {code.upper() for code in country_codes}
        df = df[df["country_code"].isin(wanted)]

    df = df[[
        "geoname_id", "name", "ascii_name", "latitude", "longitude", "feature_class", "feature_code",
        "country_code", "admin1_code", "admin2_code", "admin3_code", "admin4_code", "population"
    ]].copy()
    df["population"] = df["population"].fillna(0).astype("int64")

    log_structured("info", "GeoNames file read", path=str(path), rows=len(df))
    return df


def read_alternate_names_tsv(path: Path, iso_languages: Optional[Iterable[str]] = None) -> pd.DataFrame:
    """
    Read a GeoNames alternateNamesV2 export.

    Args:
        path: Path to the TSV file
        iso_languages: Keep only these languages, all when None

    Returns:
        DataFrame with geoname_id, iso_language, alternate_name and is_preferred
    """
    try:
        df = pd.read_csv(
            path,
            sep="\t",
            header=None,
            names=ALTERNATE_NAMES_COLUMNS,
            dtype={"iso_language": str, "alternate_name": str, "is_preferred": str},
            keep_default_na=False,
            quoting=3,
            low_memory=False
        )
    except (OSError, pd.errors.ParserError) as e:
        log_error(e, {"module": "geonames", "function": "read_alternate_names_tsv", "path": str(path)})
        raise

    # Historic names and pseudo languages such as "link" or "post" are not searchable names
    df = df[(df["is_historic"].astype(str) != "1") & (df["iso_language"].str.len() <= 3)]
    if iso_languages:
        df = df[df["iso_language"].isin(set(iso_languages))]

    result = df[["geoname_id", "iso_language", "alternate_name"]].copy()
    result["is_preferred"] = df["is_preferred"].astype(str) == "1"

    log_structured("info", "Alternate names file read", path=str(path), rows=len(result))
    return result
