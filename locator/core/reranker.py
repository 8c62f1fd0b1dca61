"""In-memory filtering and re-sorting of short result lists such as autocomplete suggestions."""
from dataclasses import replace
from typing import List, Sequence
from locator.core.models import Candidate
from locator.core.normalization import transliterate_ascii


def _fold(text: str) -> str:
    return transliterate_ascii(text or "").lower()


class RelevanceReranker:
    """
    Keeps candidates whose name contains the first search term and re-sorts them.

    Sort order: names starting with the term first (when the boost is on,
    compared case-insensitively but not accent-insensitively),
    then relevance descending, then lowercased name.
    """

    def rerank(
        self,
        candidates: Sequence[Candidate],
        search_terms: Sequence[str],
        use_starts_with_boost: bool = True,
    ) -> List[Candidate]:
        """
        Filter and sort candidates.

        Args:
            candidates: Candidates from a search
            search_terms: Search terms; only the first one is used
            use_starts_with_boost: Rank names starting with the term first

        Returns:
            New list of candidates with relevance_score cleared
        """
        terms = [term for term in search_terms if term and term.strip()]
        if not terms:
            return []
        needle = _fold(terms[0].strip())

        matching = [candidate for candidate in candidates if needle in _fold(candidate.name)]

        # The boost compares plain lowercased names; only the filter is accent-insensitive
        prefix = terms[0].strip().lower()

        def sort_key(candidate: Candidate):
            starts = 0 if use_starts_with_boost and (candidate.name or "").lower().startswith(prefix) else 1
            relevance = candidate.relevance_score or 0
            return (starts, -relevance, (candidate.name or "").lower())

        return [replace(candidate, relevance_score=None) for candidate in sorted(matching, key=sort_key)]
