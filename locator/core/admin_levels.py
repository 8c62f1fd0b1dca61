"""Feature-code priority lists and per-country settings for admin hierarchy resolution.

List order is significant: earlier codes outrank later ones within a bucket.
"""
from dataclasses import dataclass, replace
from typing import Dict, Optional, Sequence, Tuple
from locator.core.models import AdminMatchLevel, LocationType


ADM_FEATURE_CODES: Dict[LocationType, Tuple[str, ...]] = {
    LocationType.ADM2: ("ADM2",),
    LocationType.ADM3: ("ADM3",),
    LocationType.ADM4: ("ADM4",),
    LocationType.ADM5: ("ADM5",),
}

# ADM bucket that represents each admin depth
ADM_BUCKET_BY_DEPTH: Dict[int, LocationType] = {
    2: LocationType.ADM2,
    3: LocationType.ADM3,
    4: LocationType.ADM4,
    5: LocationType.ADM5,
}

DEFAULT_CITY_FEATURE_CODES: Tuple[str, ...] = (
    "PPLA5",
    "PPLA4",
    "PPLA3",
    "PPLA2",
    "PPLA",
    "PPLC",
    "PPL",
    "PPLF",
    "PPLG",
    "PPLQ",
    "PPLR",
    "PPLS",
    "PPLW",
    "STLMT",
)

DEFAULT_DISTRICT_FEATURE_CODES: Tuple[str, ...] = (
    "PPLX",
    "PPL",
)

STATE_FEATURE_CODES: Tuple[str, ...] = ("ADM1",)

COUNTRY_FEATURE_CODES: Tuple[str, ...] = (
    "PCLI",
    "PCLD",
    "PCLF",
    "PCLS",
    "PCLIX",
    "PCL",
    "TERR",
)

# Countries whose cities sit at a shallower admin level than ADM4
CITY_MATCH_LEVELS: Dict[str, AdminMatchLevel] = {
    "US": AdminMatchLevel.A1,
    "JP": AdminMatchLevel.A1,
    "CZ": AdminMatchLevel.A1,
    "DK": AdminMatchLevel.A2,
    "NL": AdminMatchLevel.A2,
    "PT": AdminMatchLevel.A2,
    "SE": AdminMatchLevel.A2,
    "GB": AdminMatchLevel.A2,
    "AT": AdminMatchLevel.A3,
    "CH": AdminMatchLevel.A3,
    "EE": AdminMatchLevel.A3,
    "ES": AdminMatchLevel.A3,
    "PL": AdminMatchLevel.A3,
}

DEFAULT_MATCH_LEVEL = AdminMatchLevel.A4


@dataclass(frozen=True)
class CountryAdminConfig:
    """Ranking settings for one country."""
    city_feature_codes: Tuple[str, ...] = DEFAULT_CITY_FEATURE_CODES
    district_feature_codes: Tuple[str, ...] = DEFAULT_DISTRICT_FEATURE_CODES
    match_level: AdminMatchLevel = DEFAULT_MATCH_LEVEL
    sort_by_feature_codes: bool = True
    sort_by_population: bool = True

    @property
    def city_only_codes(self) -> Tuple[str, ...]:
        return tuple(code for code in self.city_feature_codes if code not in self.district_feature_codes)

    @property
    def district_only_codes(self) -> Tuple[str, ...]:
        return tuple(code for code in self.district_feature_codes if code not in self.city_feature_codes)

    @property
    def city_district_codes(self) -> Tuple[str, ...]:
        return tuple(code for code in self.city_feature_codes if code in self.district_feature_codes)

    def feature_codes_for(self, location_type: LocationType) -> Tuple[str, ...]:
        """Priority list used to rank a bucket."""
        if location_type in ADM_FEATURE_CODES:
            return ADM_FEATURE_CODES[location_type]
        if location_type == LocationType.DISTRICT:
            return self.district_feature_codes
        return self.city_feature_codes


COUNTRY_OVERRIDES: Dict[str, dict] = {
    "US": {
        "district_feature_codes": ("PPLX", "PPL", "PPLW", "PPLA2"),
    },
    "DE": {
        "city_feature_codes": (
            "PPLC",
            "PPL",
            "PPLA5",
            "PPLA4",
            "PPLA3",
            "PPLA2",
            "PPLA",
            "PPLF",
            "PPLG",
            "PPLQ",
            "PPLR",
            "PPLS",
            "PPLW",
            "STLMT",
        ),
    },
}


def get_admin_config(country_code: Optional[str]) -> CountryAdminConfig:
    """
    Settings for a country, defaults merged with its overrides.

    Args:
        country_code: ISO 3166 alpha-2 code

    Returns:
        CountryAdminConfig for the country
    """
    code = (country_code or "").upper()
    config = CountryAdminConfig(match_level=CITY_MATCH_LEVELS.get(code, DEFAULT_MATCH_LEVEL))
    overrides = COUNTRY_OVERRIDES.get(code)
    if overrides:
        config = replace(config, **overrides)
    return config


def feature_code_priority(feature_code: Optional[str], priorities: Sequence[str]) -> int:
    """Position of a code in a priority list; unknown codes rank last."""
    try:
        return list(priorities).index(feature_code)
    except ValueError:
        return len(priorities)
