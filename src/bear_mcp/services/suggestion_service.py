"""Autocomplete suggestions built from the current note collection."""

import logging
import re
from collections import Counter
from typing import Dict, Iterable, List, Optional

from bear_mcp.config import config
from bear_mcp.exceptions import ErrorCode, ValidationError
from bear_mcp.models.schema import CandidateFilter, SuggestionBundle
from bear_mcp.services.search_service import fetch_candidates, recency_key
from bear_mcp.services.tokenizer import tokenize
from bear_mcp.storage.base import NoteRepository

logger = logging.getLogger(__name__)


def _dedupe_casefold(values: Iterable[str], limit: int) -> List[str]:
    """Keep the first spelling of each case-insensitive value, up to limit."""
    seen = set()
    kept: List[str] = []
    for value in values:
        key = value.casefold()
        if key in seen:
            continue
        seen.add(key)
        kept.append(value)
        if len(kept) >= limit:
            break
    return kept


class SuggestionService:
    """Ranks terms, titles and tags that complete a partial query.

    The three lists are computed independently. No minimum query length is
    enforced here; callers decide when to ask.
    """

    def __init__(self, repository: NoteRepository):
        self.repository = repository

    def suggest(self, partial_query: Optional[str], limit: int = 10) -> SuggestionBundle:
        """Suggest completions for ``partial_query``.

        Raises:
            ValidationError: If ``limit`` is not positive.
            SearchError: If the repository fails.
        """
        if limit <= 0 or limit > config.max_search_limit:
            raise ValidationError(
                f"limit must be between 1 and {config.max_search_limit}",
                field="limit",
                value=limit,
                code=ErrorCode.INVALID_OPTION,
            )
        prefix = (partial_query or "").strip().casefold()
        if not prefix:
            return SuggestionBundle()

        candidates = fetch_candidates(
            self.repository,
            CandidateFilter(include_archived=True),
            operation="suggest",
            query=partial_query,
        )

        # Terms: corpus-wide frequency, then alphabetical
        term_counts: Counter = Counter()
        for note in candidates:
            term_counts.update(t for t in tokenize(note.body) if t.startswith(prefix))
        terms = sorted(term_counts, key=lambda t: (-term_counts[t], t))

        # Titles: prefix at the start of any word, most recent first
        word_start = re.compile(r"(?<![^\W_])" + re.escape(prefix))
        titled = [n for n in candidates if n.title and word_start.search(n.title.casefold())]
        titled.sort(key=lambda n: (recency_key(n), n.id))
        titles = [n.title.strip() for n in titled]

        # Tags: number of notes carrying the tag, then name
        tag_usage: Dict[str, int] = Counter()
        for note in candidates:
            tag_usage.update(tag for tag in note.tags if tag.casefold().startswith(prefix))
        tags = sorted(tag_usage, key=lambda t: (-tag_usage[t], t.casefold(), t))

        bundle = SuggestionBundle(
            terms=_dedupe_casefold(terms, limit),
            titles=_dedupe_casefold(titles, limit),
            tags=_dedupe_casefold(tags, limit),
        )
        logger.debug(
            f"Suggestions for '{prefix}': {len(bundle.terms)} terms, "
            f"{len(bundle.titles)} titles, {len(bundle.tags)} tags"
        )
        return bundle
