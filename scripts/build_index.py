#!/usr/bin/env python3
"""CLI script to load GeoNames exports into DuckDB and build the search index."""
import argparse
from pathlib import Path
import pandas as pd
from locator.core.admin_levels import COUNTRY_FEATURE_CODES
from locator.core.config import DUCKDB_PATH, LOG_LEVEL, SEARCH_LANGUAGE
from locator.core.duckdb_store import DuckDBStore
from locator.gazetteers.geonames import read_alternate_names_tsv, read_geonames_tsv
from locator.utils.logging import setup_logging


def country_table(places: pd.DataFrame) -> pd.DataFrame:
    """Country codes present in the places, named after their country-level feature."""
    codes = sorted(code for code in places["country_code"].dropna().unique() if code)
    names = dict(zip(
        places.loc[places["feature_code"].isin(COUNTRY_FEATURE_CODES), "country_code"],
        places.loc[places["feature_code"].isin(COUNTRY_FEATURE_CODES), "name"]
    ))
    return pd.DataFrame([{"code": code, "name": names.get(code, code)} for code in codes])


def main():
    parser = argparse.ArgumentParser(description="Load GeoNames data and build the search index")
    parser.add_argument("--db-path", type=Path, default=DUCKDB_PATH,
                       help="DuckDB database path")
    parser.add_argument("--geonames", type=Path,
                       help="GeoNames TSV export (allCountries.txt or per-country file)")
    parser.add_argument("--alternate-names", type=Path,
                       help="GeoNames alternateNamesV2 TSV export")
    parser.add_argument("--countries", nargs="*",
                       help="ISO country codes to keep")
    parser.add_argument("--languages", nargs="*",
                       help="ISO languages of alternate names to keep")
    parser.add_argument("--stem-language", default=SEARCH_LANGUAGE,
                       help="Snowball stemmer language for the index")
    
    args = parser.parse_args()
    setup_logging(LOG_LEVEL)
    
    db_store = DuckDBStore(args.db_path)
    
    if args.geonames:
        print(f"Loading places from {args.geonames}...")
        places = read_geonames_tsv(args.geonames, args.countries)
        db_store.ingest_locations(places)
        db_store.ingest_countries(country_table(places))
    
    if args.alternate_names:
        print(f"Loading alternate names from {args.alternate_names}...")
        db_store.ingest_alternate_names(read_alternate_names_tsv(args.alternate_names, args.languages))
    
    print("Building search index...")
    db_store.build_search_index(args.stem_language)
    print(f"✅ Index built: {db_store.get_stats()}")
    
    db_store.close()


if __name__ == "__main__":
    main()
