"""Classification of raw location queries into typed intents."""
import re
from typing import Callable, List, Optional, Tuple, Iterable, Dict
from locator.core.config import FEATURE_CLASSES
from locator.core.coordinates import (
    DECIMAL_PATTERN,
    DMS_LATITUDE_PATTERN,
    DMS_LONGITUDE_PATTERN,
    parse_component,
)
from locator.core.errors import MalformedInputError
from locator.core.models import (
    Coordinate,
    CoordinateLookup,
    CoordinateWithFeatureFilter,
    FeatureFilter,
    FreeTextSearch,
    GeonameIdLookup,
    QueryIntent,
    QueryOptions,
)


FEATURE_SEPARATOR = "|"
FEATURE_CLASS_LENGTH = 1
FEATURE_CODE_MAX_LENGTH = 5

FEATURE_TOKEN_PATTERN = r"(?:[A-Z]{1,3}[A-Z0-9]{1,2}|[AHLPRSTUV])"
FEATURES_PATTERN = rf"({FEATURE_TOKEN_PATTERN}(?:\|{FEATURE_TOKEN_PATTERN})*)"

COORDINATE_SEPARATOR = r" *[,/| ]+ *"

_ID_RE = re.compile(r"^([0-9]+)$")

# Every latitude notation paired with every longitude notation
_NOTATION_PAIRS = [
    (latitude, longitude)
    for latitude in (DECIMAL_PATTERN, DMS_LATITUDE_PATTERN)
    for longitude in (DECIMAL_PATTERN, DMS_LONGITUDE_PATTERN)
]

_COORDINATE_RES = [
    re.compile(rf"^({latitude}){COORDINATE_SEPARATOR}({longitude})$")
    for latitude, longitude in _NOTATION_PAIRS
]

_COORDINATE_WITH_FEATURES_RES = [
    re.compile(rf"^{FEATURES_PATTERN}[ :] *({latitude}){COORDINATE_SEPARATOR}({longitude})$")
    for latitude, longitude in _NOTATION_PAIRS
]

_INLINE_OPTION_RE = re.compile(
    r"(?:(?<=\s)|^)(distance|limit|country|feature-classes|feature-codes):(\S*)(?=\s|$)",
    re.IGNORECASE,
)

Matcher = Callable[[str], Optional[Tuple[str, ...]]]


class FeatureFilterExtractor:
    """Splits feature tokens into feature classes and feature codes by length."""

    def __init__(self, allowed_classes: Iterable[str] = FEATURE_CLASSES):
        self.allowed_classes = frozenset(allowed_classes)

    def classify_token(self, token: str) -> str:
        """
        Decide whether a token is a feature class or a feature code.

        Args:
            token: Raw feature token

        Returns:
            ``"class"`` or ``"code"``
        """
        length = len(token)
        if length == FEATURE_CLASS_LENGTH:
            return "class"
        if 1 < length <= FEATURE_CODE_MAX_LENGTH:
            return "code"
        raise MalformedInputError(f"Invalid feature token length {length}: {token!r}")

    def extract(self, tokens: Iterable[str]) -> FeatureFilter:
        """
        Build a feature filter from tokens, uppercased and deduplicated in input order.

        Args:
            tokens: Feature class and code tokens

        Returns:
            FeatureFilter with classes and codes separated
        """
        classes: List[str] = []
        codes: List[str] = []
        for token in tokens:
            token = token.strip().upper()
            if self.classify_token(token) == "class":
                if token not in self.allowed_classes:
                    raise MalformedInputError(f"Unsupported feature class: {token!r}")
                if token not in classes:
                    classes.append(token)
            elif token not in codes:
                codes.append(token)
        return FeatureFilter(tuple(classes), tuple(codes))

    def extract_string(self, text: str, separator: str = FEATURE_SEPARATOR) -> FeatureFilter:
        """Extract from a separator-joined token list such as ``S|AIRP``."""
        return self.extract(text.split(separator))


def match_geoname_id(text: str) -> Optional[Tuple[str, ...]]:
    match = _ID_RE.match(text)
    return match.groups() if match else None


def match_coordinate(text: str) -> Optional[Tuple[str, ...]]:
    for pattern in _COORDINATE_RES:
        match = pattern.match(text)
        if match:
            return match.groups()
    return None


def match_coordinate_with_features(text: str) -> Optional[Tuple[str, ...]]:
    for pattern in _COORDINATE_WITH_FEATURES_RES:
        match = pattern.match(text)
        if match:
            return match.groups()
    return None


def match_any(text: str) -> Optional[Tuple[str, ...]]:
    return (text,)


class QueryParser:
    """
    Turns raw query text into a QueryIntent.

    Rules are tried in order and the first matching one builds the intent:
    geoname id, coordinate, coordinate with feature filter, free text.
    """

    def __init__(self, feature_extractor: Optional[FeatureFilterExtractor] = None):
        self.feature_extractor = feature_extractor or FeatureFilterExtractor()
        self.rules: List[Tuple[str, Matcher, Callable[[Tuple[str, ...]], QueryIntent]]] = [
            ("geoname-id", match_geoname_id, self._build_geoname_id),
            ("coordinate", match_coordinate, self._build_coordinate),
            ("coordinate-with-features", match_coordinate_with_features, self._build_coordinate_with_features),
            ("free-text", match_any, self._build_free_text),
        ]

    def parse(self, raw_query: str) -> QueryIntent:
        """
        Classify a raw query.

        Args:
            raw_query: Text as typed by the user

        Returns:
            One of GeonameIdLookup, CoordinateLookup, CoordinateWithFeatureFilter, FreeTextSearch
        """
        text = (raw_query or "").strip()
        for _, matcher, constructor in self.rules:
            groups = matcher(text)
            if groups is not None:
                return constructor(groups)
        raise AssertionError("free-text rule matches every input")

    def _build_geoname_id(self, groups: Tuple[str, ...]) -> GeonameIdLookup:
        return GeonameIdLookup(geoname_id=int(groups[0]))

    def _build_coordinate(self, groups: Tuple[str, ...]) -> CoordinateLookup:
        latitude, longitude = groups
        return CoordinateLookup(Coordinate(parse_component(latitude), parse_component(longitude)))

    def _build_coordinate_with_features(self, groups: Tuple[str, ...]) -> CoordinateWithFeatureFilter:
        features, latitude, longitude = groups
        return CoordinateWithFeatureFilter(
            coordinate=Coordinate(parse_component(latitude), parse_component(longitude)),
            feature_filter=self.feature_extractor.extract_string(features),
        )

    def _build_free_text(self, groups: Tuple[str, ...]) -> FreeTextSearch:
        text, options = self.extract_inline_options(groups[0])
        return FreeTextSearch(terms=(text,), options=options)

    def extract_inline_options(self, text: str) -> Tuple[str, QueryOptions]:
        """
        Remove ``key:value`` options from free text.

        Supported keys are ``distance``, ``limit``, ``country``,
        ``feature-classes`` and ``feature-codes``.

        Args:
            text: Free text query

        Returns:
            Tuple of (remaining text, parsed options)
        """
        values: Dict[str, str] = {}
        for match in _INLINE_OPTION_RE.finditer(text):
            values[match.group(1).lower()] = match.group(2)

        if not values:
            return text, QueryOptions()

        remaining = _INLINE_OPTION_RE.sub("", text)
        remaining = re.sub(r"\s+", " ", remaining).strip()

        feature_tokens: List[str] = []
        if "feature-classes" in values:
            feature_tokens += self._split_option(values["feature-classes"], "feature-classes", max_length=1)
        if "feature-codes" in values:
            feature_tokens += self._split_option(values["feature-codes"], "feature-codes", min_length=2)

        options = QueryOptions(
            distance=self._parse_positive_int(values.get("distance"), "distance"),
            limit=self._parse_positive_int(values.get("limit"), "limit"),
            country=self._parse_country(values.get("country")),
            feature_filter=self.feature_extractor.extract(feature_tokens) if feature_tokens else None,
        )
        return remaining, options

    @staticmethod
    def _split_option(value: str, key: str, min_length: int = 1, max_length: int = FEATURE_CODE_MAX_LENGTH) -> List[str]:
        tokens = [token for token in re.split(r"[|,]", value) if token]
        if not tokens:
            raise MalformedInputError(f"Option {key} needs a value")
        for token in tokens:
            if not min_length <= len(token) <= max_length:
                raise MalformedInputError(f"Invalid token {token!r} for option {key}")
        return tokens

    @staticmethod
    def _parse_positive_int(value: Optional[str], key: str) -> Optional[int]:
        if value is None:
            return None
        if not value.isdigit() or int(value) < 1:
            raise MalformedInputError(f"Option {key} must be a positive integer, got {value!r}")
        return int(value)

    @staticmethod
    def _parse_country(value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        if not re.fullmatch(r"[A-Za-z]{2}", value):
            raise MalformedInputError(f"Option country must be a two letter ISO code, got {value!r}")
        return value.upper()
