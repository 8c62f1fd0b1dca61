"""Tests for GeoNames export readers."""
import pytest
from locator.gazetteers import read_alternate_names_tsv, read_geonames_tsv


def write_tsv(path, rows):
    path.write_text("\n".join("\t".join(row) for row in rows) + "\n", encoding="utf-8")
    return path


@pytest.fixture
def geonames_file(tmp_path):
    return write_tsv(tmp_path / "DE.txt", [
        ["2950159", "Berlin", "Berlin", "Berlín,Berlyn", "52.52437", "13.41053", "P", "PPLC", "DE", "",
         "16", "00", "11000", "11000000", "3426354", "", "74", "Europe/Berlin", "2022-03-09"],
        ["9000004", "Nameless Hill", "Nameless Hill", "", "52.1", "13.1", "T", "HLL", "DE", "",
         "11", "", "", "", "", "", "40", "Europe/Berlin", "2022-03-09"],
        ["2988507", "Paris", "Paris", "", "48.85341", "2.3488", "P", "PPLC", "FR", "",
         "11", "75", "751", "75056", "2138551", "", "42", "Europe/Paris", "2022-03-09"],
    ])


def test_read_geonames(geonames_file):
    df = read_geonames_tsv(geonames_file)
    assert len(df) == 3
    berlin = df[df["geoname_id"] == 2950159].iloc[0]
    assert berlin["admin2_code"] == "00"
    assert berlin["population"] == 3426354
    assert berlin["latitude"] == pytest.approx(52.52437)
    assert "alternatenames" not in df.columns


def test_missing_population_is_zero(geonames_file):
    df = read_geonames_tsv(geonames_file)
    assert df[df["geoname_id"] == 9000004].iloc[0]["population"] == 0


def test_country_filter(geonames_file):
    df = read_geonames_tsv(geonames_file, country_codes=["de"])
    assert set(df["country_code"]) == {"DE"}
    assert len(df) == 2


def test_missing_file_raises(tmp_path):
    with pytest.raises(OSError):
        read_geonames_tsv(tmp_path / "missing.txt")


def test_read_alternate_names(tmp_path):
    path = write_tsv(tmp_path / "alternateNamesV2.txt", [
        ["1", "2950159", "es", "Berlín", "1", "", "", "", "", ""],
        ["2", "2950159", "link", "https://en.wikipedia.org/wiki/Berlin", "", "", "", "", "", ""],
        ["3", "2950159", "de", "Berolina", "", "", "", "1", "", ""],
        ["4", "2867714", "en", "Munich", "1", "", "", "", "", ""],
    ])
    df = read_alternate_names_tsv(path)
    assert list(df["alternate_name"]) == ["Berlín", "Munich"]
    assert list(df["is_preferred"]) == [True, True]

    df = read_alternate_names_tsv(path, iso_languages=["en"])
    assert list(df["alternate_name"]) == ["Munich"]


def test_loaded_files_ingest(temp_db, geonames_file):
    temp_db.ingest_locations(read_geonames_tsv(geonames_file, ["DE"]))
    temp_db.build_search_index()
    assert temp_db.get_stats()["search_index"] == 2
