#!/usr/bin/env python3
"""CLI script to run a location query against a DuckDB database and print JSON."""
import argparse
import json
from pathlib import Path
from locator.core.config import DEFAULT_LIMIT, DUCKDB_PATH, LOG_LEVEL
from locator.core.duckdb_store import DuckDBStore
from locator.core.location_service import LocationService
from locator.core.models import Coordinate, SearchOptions, SortBy
from locator.utils.logging import setup_logging


def main():
    parser = argparse.ArgumentParser(description="Search locations")
    parser.add_argument("query", help="Query text: geoname id, coordinate, 'CODE lat,lon' or free text")
    parser.add_argument("--db-path", type=Path, default=DUCKDB_PATH,
                       help="DuckDB database path")
    parser.add_argument("--near", nargs=2, type=float, metavar=("LAT", "LON"),
                       help="Rank by distance to this coordinate")
    parser.add_argument("--radius", type=int, help="Only places within this many meters")
    parser.add_argument("--sort", default=SortBy.RELEVANCE.value,
                       choices=[sort.value for sort in SortBy])
    parser.add_argument("--limit", type=int, default=DEFAULT_LIMIT)
    parser.add_argument("--page", type=int, default=1)
    parser.add_argument("--language", help="ISO language for alternate names")
    parser.add_argument("--admin", action="store_true",
                       help="Resolve the admin hierarchy of the first result")
    parser.add_argument("--autocomplete", action="store_true",
                       help="Return autocomplete suggestions instead of a search")
    
    args = parser.parse_args()
    setup_logging(LOG_LEVEL)
    
    service = LocationService(DuckDBStore(args.db_path))
    
    try:
        if args.autocomplete:
            suggestions = service.autocomplete(args.query, iso_language=args.language, limit=args.limit)
            output = [suggestion.to_dict() for suggestion in suggestions]
        else:
            options = SearchOptions(
                coordinate=Coordinate(*args.near) if args.near else None,
                radius_meters=args.radius,
                limit=args.limit,
                page=args.page,
                sort_by=args.sort,
                iso_language=args.language,
            )
            result = service.locate(args.query, options)
            output = result.to_dict()
            if args.admin and result.candidates:
                output["admin"] = service.resolve_admin_for(result.candidates[0]).to_dict()
    finally:
        service.store.close()
    
    print(json.dumps(output, indent=2, ensure_ascii=False))


if __name__ == "__main__":
    main()
