"""Text normalization shared by search, suggestions and similarity."""

import re
from collections import Counter
from typing import Dict, List, Optional

MIN_TERM_LENGTH = 3

# Runs of letters and digits in any script; underscore counts as a separator
_TERM_PATTERN = re.compile(r"[^\W_]+")

STOPWORDS = frozenset(
    {
        # articles and determiners
        "a", "an", "the", "this", "that", "these", "those",
        # conjunctions
        "and", "or", "but", "nor", "so", "yet", "if", "than", "then",
        # prepositions
        "in", "on", "at", "to", "for", "of", "with", "by", "from", "into",
        "about", "as", "up", "out", "over",
        # auxiliaries
        "is", "are", "was", "were", "be", "been", "being", "am",
        "have", "has", "had", "do", "does", "did",
        "will", "would", "could", "should", "can", "may", "might", "must",
        # pronouns
        "i", "me", "my", "we", "us", "our", "you", "your",
        "he", "him", "his", "she", "her", "it", "its",
        "they", "them", "their", "what", "which", "who", "whom",
        # negation and fillers
        "not", "no", "all", "any", "some", "just", "also", "very",
    }
)


def is_stopword(token: str) -> bool:
    return token.lower() in STOPWORDS


def tokenize(text: Optional[str], lowercase: bool = True) -> List[str]:
    """Split text into normalized search terms, in order of occurrence.

    Tokens shorter than three characters and stopwords are dropped.
    With ``lowercase=False`` the original casing is kept (case-sensitive
    queries) but stopwords are still recognised case-insensitively.
    """
    if not text:
        return []
    terms = []
    for token in _TERM_PATTERN.findall(text):
        if len(token) < MIN_TERM_LENGTH or is_stopword(token):
            continue
        terms.append(token.lower() if lowercase else token)
    return terms


def unique_terms(terms: List[str]) -> List[str]:
    """Drop repeated terms, keeping first-occurrence order."""
    return list(dict.fromkeys(terms))


def keyword_signature(text: Optional[str], size: int = 10) -> List[str]:
    """Return the ``size`` most frequent terms of a text.

    Ties are broken by first occurrence, so the signature of a given text
    is always the same list.
    """
    terms = tokenize(text)
    if not terms:
        return []
    counts = Counter(terms)
    first_seen: Dict[str, int] = {}
    for index, term in enumerate(terms):
        first_seen.setdefault(term, index)
    ranked = sorted(counts, key=lambda term: (-counts[term], first_seen[term]))
    return ranked[:size]
