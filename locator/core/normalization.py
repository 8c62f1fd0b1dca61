"""Text normalization utilities for place name search."""
import re
import unicodedata
from typing import List, Dict, Optional, Tuple, Iterable
import snowballstemmer


# Letters NFD decomposition does not reduce to ASCII
ASCII_TRANSLITERATIONS = {
    "ß": "ss",
    "æ": "ae",
    "Æ": "AE",
    "ø": "o",
    "Ø": "O",
    "œ": "oe",
    "Œ": "OE",
    "ł": "l",
    "Ł": "L",
    "đ": "d",
    "Đ": "D",
    "þ": "th",
    "Þ": "TH",
    "ı": "i",
}

# Characters removed from free text before it is split into terms
SEARCH_PUNCTUATION = re.compile(r"[():;!?]")

# Quoted phrases stay together, everything else splits on whitespace
SEARCH_TERM_PATTERN = re.compile(r"\"[^\"]*\"|'[^']*'|\S+")

STOP_WORDS: Dict[str, frozenset] = {
    "en": frozenset({
        "a", "an", "and", "at", "by", "for", "from", "in", "near", "of", "on", "or", "the", "to",
    }),
    "de": frozenset({
        "am", "an", "auf", "bei", "das", "dem", "den", "der", "die", "ein", "eine", "im", "in",
        "und", "von", "zu", "zum", "zur",
    }),
    "es": frozenset({
        "a", "al", "de", "del", "el", "en", "la", "las", "los", "por", "un", "una", "y",
    }),
}


def transliterate_ascii(text: str) -> str:
    """
    Reduce text to ASCII by stripping combining marks and mapping special letters.

    Args:
        text: Input text string

    Returns:
        ASCII-only text (characters without a mapping are dropped)
    """
    if not text:
        return ""

    text = "".join(ASCII_TRANSLITERATIONS.get(c, c) for c in text)
    text = unicodedata.normalize("NFD", text)
    text = "".join(c for c in text if unicodedata.category(c) != "Mn")
    return text.encode("ascii", "ignore").decode("ascii")


def normalize_text(text: str) -> str:
    """
    Normalize text for matching: unicode normalize, lowercase, strip punctuation, collapse whitespace.

    Args:
        text: Input text string

    Returns:
        Normalized text string
    """
    if not text:
        return ""

    # Unicode normalization
    text = unicodedata.normalize("NFD", text)
    text = "".join(c for c in text if unicodedata.category(c) != "Mn")

    # Lowercase
    text = text.lower()

    # Remove punctuation (underscore included, it is a LIKE wildcard)
    text = re.sub(r"[^\w\s]|_", " ", text)

    # Collapse whitespace
    text = re.sub(r"\s+", " ", text)

    return text.strip()


def stem_text(text: str, language: str = "english") -> str:
    """
    Stem every word of already normalized text.

    Args:
        text: Normalized text string
        language: Snowball stemmer language name

    Returns:
        Space-joined stems
    """
    words = text.split()
    if not words:
        return ""
    stemmer = snowballstemmer.stemmer(language)
    return " ".join(stemmer.stemWords(words))


def build_search_texts(names: Iterable[str], language: str = "english") -> Tuple[str, str]:
    """
    Build the simple and stemmed index representations for a place.

    Args:
        names: Primary name followed by any alternate names
        language: Snowball stemmer language name

    Returns:
        Tuple of (simple text, stemmed text)
    """
    seen = []
    for name in names:
        normalized = normalize_text(name)
        if normalized and normalized not in seen:
            seen.append(normalized)

    simple = " ".join(seen)
    return simple, stem_text(simple, language)


def split_search_terms(text: str) -> List[str]:
    """
    Split free text into search terms, keeping quoted phrases together.

    Args:
        text: Raw search text

    Returns:
        List of terms with quotes removed
    """
    if not text:
        return []

    text = SEARCH_PUNCTUATION.sub("", text)
    terms = []
    for token in SEARCH_TERM_PATTERN.findall(text):
        if len(token) >= 2 and token[0] == token[-1] and token[0] in "\"'":
            token = token[1:-1]
        token = token.strip()
        if token:
            terms.append(token)
    return terms


def remove_stop_words(terms: List[str], iso_language: Optional[str] = None) -> List[str]:
    """
    Drop stop words of the given language and duplicate terms.

    A query made only of stop words is returned deduplicated but otherwise unchanged.
    """
    stop_words = STOP_WORDS.get((iso_language or "").lower(), frozenset())

    unique = []
    for term in terms:
        if term.lower() not in [t.lower() for t in unique]:
            unique.append(term)

    filtered = [term for term in unique if term.lower() not in stop_words]
    return filtered or unique


def prepare_search_terms(text: str, iso_language: Optional[str] = None) -> List[str]:
    """Split raw text into deduplicated search terms without stop words."""
    return remove_stop_words(split_search_terms(text), iso_language)
