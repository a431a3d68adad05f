"""Per-note match counting, relevance scoring and snippet extraction."""

import math
import re
from typing import Iterable, List, Optional, Pattern, Set

from bear_mcp.config import config
from bear_mcp.models.schema import MatchAnalysis, NoteRecord, SearchOptions
from bear_mcp.services.fuzzy import expand
from bear_mcp.services.tokenizer import unique_terms
from bear_mcp.utils import collapse_whitespace

ELLIPSIS = "..."

_WORD_CHAR = r"[^\W_]"
# Up to two skipped words (usually stopwords) still count as "in sequence"
_PHRASE_GAP = r"\W+(?:\w+\W+){0,2}?"


def _bounded(pattern: str) -> str:
    return rf"(?<!{_WORD_CHAR}){pattern}(?!{_WORD_CHAR})"


def _flags(case_sensitive: bool) -> int:
    return 0 if case_sensitive else re.IGNORECASE


def compile_term(
    term: str,
    fuzzy: bool = False,
    case_sensitive: bool = False,
    whole_words: bool = False,
) -> Pattern[str]:
    """Compile a term and its variants into a single alternation.

    The term itself matches anywhere unless ``whole_words`` is set. Fuzzy
    variants only ever match whole words, so a dropped letter cannot turn
    "plan" into a hit inside "panel". Longer variants come first so that an
    occurrence is counted once, under its longest spelling.
    """
    alternatives = []
    for variant in sorted(expand(term, fuzzy), key=lambda v: (-len(v), v)):
        escaped = re.escape(variant)
        if whole_words or variant != term:
            escaped = _bounded(escaped)
        alternatives.append(escaped)
    return re.compile("(?:" + "|".join(alternatives) + ")", _flags(case_sensitive))


def extract_snippet(text: str, start: int, end: int, max_chars: int) -> str:
    """Cut a window of context around ``text[start:end]``.

    The window is centered on the match, trimmed back to whitespace so no
    word is cut in half (the match itself is never cut), and marked with an
    ellipsis on each truncated side. The result is at most ``max_chars`` long.
    """
    budget = max_chars - 2 * len(ELLIPSIS)
    length = len(text)
    if end - start >= budget:
        lo, hi = start, start + budget
    else:
        half = (budget - (end - start)) // 2
        lo = max(0, start - half)
        hi = min(length, end + half)
        spare = budget - (hi - lo)
        if spare > 0:
            if lo == 0:
                hi = min(length, hi + spare)
            elif hi == length:
                lo = max(0, lo - spare)

    if lo > 0 and not text[lo - 1].isspace():
        gap = re.search(r"\s", text[lo:start])
        if gap:
            lo += gap.end()
    if hi < length and not text[hi].isspace():
        cut = max(text.rfind(" ", end, hi), text.rfind("\n", end, hi))
        if cut != -1:
            hi = cut

    snippet = collapse_whitespace(text[lo:hi])
    if lo > 0:
        snippet = ELLIPSIS + snippet
    if hi < length:
        snippet += ELLIPSIS
    return snippet


class MatchAnalyzer:
    """Scores a single note against a set of query terms.

    A title occurrence weighs ``title_weight`` and a body occurrence
    ``content_weight``. Terms found in sequence add ``phrase_bonus`` and
    every note tag containing a query term adds ``tag_weight``. The sum is
    divided by ``ln(len(body) + 1)`` (never less than 1) so that long notes
    do not win on raw counts alone. Tags only boost notes whose text
    already matched.
    """

    def __init__(
        self,
        title_weight: Optional[float] = None,
        content_weight: Optional[float] = None,
        phrase_bonus: Optional[float] = None,
        snippet_max_chars: Optional[int] = None,
        max_snippets: Optional[int] = None,
        tag_weight: Optional[float] = None,
    ):
        self.title_weight = title_weight if title_weight is not None else config.title_weight
        self.content_weight = (
            content_weight if content_weight is not None else config.content_weight
        )
        self.phrase_bonus = phrase_bonus if phrase_bonus is not None else config.phrase_bonus
        self.tag_weight = tag_weight if tag_weight is not None else config.tag_weight
        self.snippet_max_chars = snippet_max_chars or config.snippet_max_chars
        self.max_snippets = max_snippets or config.max_snippets

    def analyze(
        self,
        note: NoteRecord,
        terms: Iterable[str],
        options: Optional[SearchOptions] = None,
    ) -> MatchAnalysis:
        """Count, score and excerpt the occurrences of ``terms`` in ``note``."""
        options = options or SearchOptions()
        terms = unique_terms(list(terms))
        title = note.title or ""
        body = note.body or ""

        analysis = MatchAnalysis()
        matching_tags: Set[str] = set()
        for term in terms:
            pattern = compile_term(
                term,
                fuzzy=options.fuzzy_match,
                case_sensitive=options.case_sensitive,
                whole_words=options.whole_words,
            )
            matching_tags.update(tag for tag in note.tags if pattern.search(tag))
            title_hits = (
                sum(1 for _ in pattern.finditer(title)) if options.searches_title else 0
            )
            content_hits = (
                sum(1 for _ in pattern.finditer(body)) if options.searches_content else 0
            )
            if not title_hits and not content_hits:
                continue

            analysis.matched_terms.add(term)
            analysis.title_matches += title_hits
            analysis.content_matches += content_hits

            if (
                content_hits
                and options.include_snippets
                and len(analysis.snippets) < self.max_snippets
            ):
                first = pattern.search(body)
                snippet = extract_snippet(
                    body, first.start(), first.end(), self.snippet_max_chars
                )
                if snippet not in analysis.snippets:
                    analysis.snippets.append(snippet)

        if not analysis.matched_terms:
            return analysis

        analysis.tag_matches = len(matching_tags)
        raw = (
            self.title_weight * analysis.title_matches
            + self.content_weight * analysis.content_matches
            + self.tag_weight * analysis.tag_matches
        )
        if self._has_phrase(terms, title, body, options):
            raw += self.phrase_bonus
        analysis.relevance_score = raw / max(1.0, math.log(len(body) + 1))
        return analysis

    @staticmethod
    def _has_phrase(
        terms: List[str], title: str, body: str, options: SearchOptions
    ) -> bool:
        if len(terms) < 2:
            return False
        phrase = re.compile(
            _PHRASE_GAP.join(re.escape(term) for term in terms),
            _flags(options.case_sensitive),
        )
        if options.searches_title and phrase.search(title):
            return True
        return bool(options.searches_content and phrase.search(body))
