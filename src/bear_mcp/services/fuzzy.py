"""Bounded spelling-variant generation for fuzzy matching.

Instead of an edit-distance search over the corpus, each query term is
expanded into a small fixed set of alternate spellings that are then matched
literally. The set depends only on the term, so cost does not grow with the
number of notes.
"""

from typing import List, Set

from bear_mcp.services.tokenizer import MIN_TERM_LENGTH, is_stopword

# Shorter terms produce too many accidental hits once a letter is dropped
MIN_FUZZY_LENGTH = 4


def _plural_forms(term: str) -> List[str]:
    lower = term.lower()
    if lower.endswith("ies") and len(term) > 4:
        return [term[:-3] + "y"]
    if lower.endswith(("ses", "xes", "zes", "ches", "shes")):
        return [term[:-2]]
    if lower.endswith("s") and not lower.endswith("ss"):
        return [term[:-1]]
    if lower.endswith("y") and len(term) > 2 and lower[-2] not in "aeiou":
        return [term[:-1] + "ies"]
    if lower.endswith(("s", "x", "z", "ch", "sh")):
        return [term + "es"]
    return [term + "s"]


def expand(term: str, fuzzy: bool = True) -> Set[str]:
    """Return ``term`` plus its accepted near-miss spellings.

    Variants are single-character deletions, adjacent transpositions and
    singular/plural forms. Anything shorter than a search term or equal to a
    stopword is discarded. At most ``2 * len(term) + 3`` entries.
    """
    variants = {term}
    if not fuzzy or len(term) < MIN_FUZZY_LENGTH:
        return variants

    candidates = _plural_forms(term)
    for i in range(len(term)):
        candidates.append(term[:i] + term[i + 1:])
    for i in range(len(term) - 1):
        if term[i] != term[i + 1]:
            candidates.append(term[:i] + term[i + 1] + term[i] + term[i + 2:])

    for candidate in candidates:
        if len(candidate) >= MIN_TERM_LENGTH and not is_stopword(candidate):
            variants.add(candidate)
    return variants
