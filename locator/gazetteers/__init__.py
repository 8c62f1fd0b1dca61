"""Readers for gazetteer source files."""
from locator.gazetteers.geonames import read_geonames_tsv, read_alternate_names_tsv

__all__ = ["read_geonames_tsv", "read_alternate_names_tsv"]
