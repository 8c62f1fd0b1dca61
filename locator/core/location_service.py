"""Location service: classify, search, resolve admin hierarchies and autocomplete."""
from dataclasses import replace
from typing import List, Optional, Sequence, Union
from locator.core.admin_hierarchy import AdminHierarchyResolver
from locator.core.config import AUTOCOMPLETE_LIMIT, DEFAULT_ISO_LANGUAGE
from locator.core.duckdb_store import DuckDBStore
from locator.core.hydrator import ResultHydrator
from locator.core.models import (
    AdminHierarchy,
    AdminMatchLevel,
    AdminPath,
    Candidate,
    Coordinate,
    FeatureFilter,
    QueryIntent,
    SearchOptions,
    SearchResult,
    SortBy,
)
from locator.core.normalization import prepare_search_terms
from locator.core.query_builder import SearchQueryBuilder
from locator.core.query_parser import QueryParser
from locator.core.reranker import RelevanceReranker
from locator.utils.logging import log_structured


def merge_inline_options(intent: QueryIntent, options: Optional[SearchOptions] = None) -> SearchOptions:
    """
    Overlay options typed into the query (``limit:5``, ``country:DE``...) on caller options.

    Args:
        intent: Parsed intent carrying inline options
        options: Caller supplied options

    Returns:
        New SearchOptions; inline values win
    """
    options = options or SearchOptions()
    inline = intent.options
    if inline.is_empty:
        return options
    return replace(
        options,
        radius_meters=inline.distance if inline.distance is not None else options.radius_meters,
        limit=inline.limit if inline.limit is not None else options.limit,
        country=inline.country or options.country,
        feature_filter=inline.feature_filter or options.feature_filter,
    )


class LocationService:
    """Entry point combining parser, query builder, store, hydrator, resolver and reranker."""

    def __init__(
        self,
        store: DuckDBStore,
        parser: Optional[QueryParser] = None,
        builder: Optional[SearchQueryBuilder] = None,
        hydrator: Optional[ResultHydrator] = None,
        resolver: Optional[AdminHierarchyResolver] = None,
        reranker: Optional[RelevanceReranker] = None,
    ):
        """
        Initialize service.

        Args:
            store: DuckDBStore with places and search index
            parser: Query parser
            builder: Search query builder
            hydrator: Result row hydrator
            resolver: Admin hierarchy resolver
            reranker: Autocomplete reranker
        """
        self.store = store
        self.parser = parser or QueryParser()
        self.builder = builder or SearchQueryBuilder()
        self.hydrator = hydrator or ResultHydrator()
        self.resolver = resolver or AdminHierarchyResolver(store, self.hydrator)
        self.reranker = reranker or RelevanceReranker()

    def classify(self, raw_query: str) -> QueryIntent:
        """Parse raw query text into an intent."""
        intent = self.parser.parse(raw_query)
        log_structured("debug", "Query classified", kind=intent.kind)
        return intent

    def search(self, intent: Union[QueryIntent, Sequence[str]], options: Optional[SearchOptions] = None) -> SearchResult:
        """
        Run a ranked search.

        Args:
            intent: Parsed intent or a list of search terms
            options: Filters, coordinate, radius, sorting and paging

        Returns:
            SearchResult with one page of candidates and the total match count
        """
        options = options or SearchOptions()
        data_query, count_query = self.builder.build(intent, options)

        candidates = self.hydrator.hydrate(self.store.query(data_query, operation="search"))
        total = self.store.count(count_query, operation="search_count")

        log_structured(
            "info",
            "Search executed",
            kind=getattr(intent, "kind", "terms"),
            sort_by=SortBy(options.sort_by).value,
            page=options.page,
            returned=len(candidates),
            total=total,
        )
        return SearchResult(candidates=candidates, total=total)

    def locate(self, raw_query: str, options: Optional[SearchOptions] = None) -> SearchResult:
        """Classify a raw query and search with its inline options applied."""
        intent = self.classify(raw_query)
        return self.search(intent, merge_inline_options(intent, options))

    def resolve_admin_path(
        self,
        coordinate: Coordinate,
        country_code: Optional[str],
        admin_path: Optional[AdminPath] = None,
        radius_meters: Optional[int] = None,
        match_level: Optional[AdminMatchLevel] = None,
    ) -> AdminHierarchy:
        """Resolve district, borough, city, state and country around a coordinate."""
        return self.resolver.resolve(coordinate, country_code, admin_path, radius_meters, match_level)

    def resolve_admin_for(self, candidate: Candidate, radius_meters: Optional[int] = None) -> AdminHierarchy:
        """Resolve the admin hierarchy of a found place, constrained by its own admin codes."""
        return self.resolve_admin_path(
            candidate.coordinate,
            candidate.country_code,
            AdminPath.from_candidate(candidate),
            radius_meters,
        )

    def autocomplete(
        self,
        terms: Union[str, Sequence[str]],
        feature_filter: Optional[FeatureFilter] = None,
        country: Optional[str] = None,
        iso_language: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> List[Candidate]:
        """
        Suggestions for a partially typed place name.

        Args:
            terms: Raw text or already split search terms
            feature_filter: Restrict suggestions to feature classes/codes
            country: Restrict suggestions to one country
            iso_language: Language of displayed alternate names
            limit: Maximum number of suggestions, all reranked ones when None

        Returns:
            Candidates without relevance scores, best suggestion first
        """
        if isinstance(terms, str):
            terms = prepare_search_terms(terms, iso_language or DEFAULT_ISO_LANGUAGE)
        terms = [term for term in terms if term and term.strip()]
        if not terms:
            return []

        options = SearchOptions(
            feature_filter=feature_filter,
            limit=AUTOCOMPLETE_LIMIT,
            sort_by=SortBy.RELEVANCE,
            country=country,
            iso_language=iso_language,
        )
        result = self.search(list(terms), options)

        seen = set()
        suggestions = []
        for candidate in result.candidates:
            if iso_language and candidate.alternate_names:
                candidate = replace(candidate, name=candidate.alternate_names[0])
            key = (candidate.name, candidate.country_code)
            if key in seen:
                continue
            seen.add(key)
            suggestions.append(candidate)

        use_boost = feature_filter is None or feature_filter.is_empty
        reranked = self.reranker.rerank(suggestions, terms, use_starts_with_boost=use_boost)
        return reranked[:limit] if limit else reranked
