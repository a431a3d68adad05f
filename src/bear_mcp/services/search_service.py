"""Ranked and regular-expression search over notes, plus filtered listings."""

import logging
import re
from typing import List, Optional

from bear_mcp.config import config
from bear_mcp.exceptions import ErrorCode, SearchError, ValidationError
from bear_mcp.models.schema import (
    CandidateFilter,
    NoteCriteria,
    NoteListOptions,
    NoteRecord,
    RegexMatchResult,
    SearchField,
    SearchOptions,
    SearchResult,
    SortField,
    SortOrder,
    parse_options,
)
from bear_mcp.services.match_analyzer import MatchAnalyzer, extract_snippet
from bear_mcp.services.tokenizer import tokenize, unique_terms
from bear_mcp.storage.base import NoteRepository

logger = logging.getLogger(__name__)

MAX_PATTERN_LENGTH = 500
MAX_DISTINCT_MATCHES = 10


def fetch_candidates(
    repository: NoteRepository,
    filter: CandidateFilter,
    operation: str,
    query: Optional[str] = None,
) -> List[NoteRecord]:
    """Ask the repository for candidates, tagging failures with the operation.

    Repository errors are never retried; they surface as SearchError so
    callers do not depend on storage exception types.
    """
    try:
        return list(repository.fetch_candidates(filter))
    except Exception as e:
        logger.error(f"Repository failure during {operation}: {e}")
        raise SearchError(
            f"Could not retrieve notes for {operation}",
            query=query,
            operation=operation,
            original_error=e,
        ) from e


def recency_key(note: NoteRecord) -> float:
    """Sort component putting recently modified notes first."""
    return -note.modified_at.timestamp()


_SORT_KEYS = {
    SortField.CREATED: lambda note: note.created_at,
    SortField.MODIFIED: lambda note: note.modified_at,
    SortField.TITLE: lambda note: (note.title or "").casefold(),
    SortField.SIZE: lambda note: len(note.body or ""),
}


def sort_notes(
    notes: List[NoteRecord],
    sort_by: SortField = SortField.MODIFIED,
    order: SortOrder = SortOrder.DESC,
) -> List[NoteRecord]:
    """Sort notes on one field; equal values keep ascending ID order."""
    by_id = sorted(notes, key=lambda note: note.id)
    return sorted(by_id, key=_SORT_KEYS[sort_by], reverse=order == SortOrder.DESC)


class SearchService:
    """Service for searching notes by text.

    Every call rescans the candidate notes returned by the repository; no
    index or other state is kept between calls.
    """

    def __init__(
        self,
        repository: NoteRepository,
        analyzer: Optional[MatchAnalyzer] = None,
    ):
        """Initialize the search service.

        Args:
            repository: Source of candidate notes.
            analyzer: Match analyzer; defaults to one built from config.
        """
        self.repository = repository
        self.analyzer = analyzer or MatchAnalyzer()

    @staticmethod
    def extract_search_terms(query: Optional[str], case_sensitive: bool = False) -> List[str]:
        """Turn a free-text query into distinct search terms."""
        return unique_terms(tokenize(query, lowercase=not case_sensitive))

    def search(
        self, query: Optional[str], options: Optional[SearchOptions] = None
    ) -> List[SearchResult]:
        """Run a ranked full-text search.

        Args:
            query: Free-text query. Empty or stopword-only queries match nothing.
            options: Search options (validated before the repository is used).

        Returns:
            At most ``options.limit`` results ordered by relevance, then by
            most recent modification, then by note ID.

        Raises:
            SearchError: If the repository fails.
        """
        options = options or SearchOptions()
        terms = self.extract_search_terms(query, options.case_sensitive)
        if not terms:
            logger.debug("Query has no searchable terms; returning no results")
            return []

        candidates = fetch_candidates(
            self.repository,
            CandidateFilter(
                include_trashed=options.include_trashed,
                include_archived=options.include_archived,
                tags=options.tags,
                created_from=options.date_from,
                created_to=options.date_to,
            ),
            operation="search",
            query=query,
        )

        results: List[SearchResult] = []
        for note in candidates:
            analysis = self.analyzer.analyze(note, terms, options)
            if analysis.relevance_score <= 0 or not analysis.matched_terms:
                continue
            results.append(
                SearchResult(
                    note=note,
                    relevance_score=analysis.relevance_score,
                    matched_terms=analysis.matched_terms,
                    snippets=analysis.snippets,
                    title_matches=analysis.title_matches,
                    content_matches=analysis.content_matches,
                )
            )

        results.sort(
            key=lambda r: (-r.relevance_score, recency_key(r.note), r.note.id)
        )
        logger.debug(
            f"Search for {terms} scored {len(results)} of {len(candidates)} candidates"
        )
        return results[: options.limit]

    def search_regex(
        self,
        pattern: str,
        search_in: SearchField = SearchField.BOTH,
        limit: int = 20,
        include_context: bool = True,
        case_sensitive: bool = False,
    ) -> List[RegexMatchResult]:
        """Search notes with a regular expression.

        Args:
            pattern: Python regular expression.
            search_in: Which fields to scan.
            limit: Maximum number of results.
            include_context: Attach body excerpts around the first matches.
            case_sensitive: Match case exactly.

        Returns:
            Matching notes ordered by match count, then recency, then ID.

        Raises:
            ValidationError: If the pattern or limit is invalid.
            SearchError: If the repository fails.
        """
        if limit <= 0 or limit > config.max_search_limit:
            raise ValidationError(
                f"limit must be between 1 and {config.max_search_limit}",
                field="limit",
                value=limit,
                code=ErrorCode.INVALID_OPTION,
            )
        if not pattern:
            raise ValidationError(
                "pattern is required", field="pattern", code=ErrorCode.INVALID_PATTERN
            )
        if len(pattern) > MAX_PATTERN_LENGTH:
            raise ValidationError(
                f"pattern exceeds {MAX_PATTERN_LENGTH} characters",
                field="pattern",
                value=pattern,
                code=ErrorCode.INVALID_PATTERN,
            )
        try:
            regex = re.compile(pattern, 0 if case_sensitive else re.IGNORECASE)
        except re.error as e:
            raise ValidationError(
                f"Invalid regular expression: {e}",
                field="pattern",
                value=pattern,
                code=ErrorCode.INVALID_PATTERN,
            ) from e

        search_in = SearchField(search_in)
        candidates = fetch_candidates(
            self.repository, CandidateFilter(), operation="search_regex", query=pattern
        )

        results: List[RegexMatchResult] = []
        for note in candidates:
            fields = []
            if search_in in (SearchField.TITLE, SearchField.BOTH):
                fields.append(note.title or "")
            if search_in in (SearchField.CONTENT, SearchField.BOTH):
                fields.append(note.body or "")

            matches = [m for text in fields for m in regex.finditer(text) if m.group(0)]
            if not matches:
                continue

            contexts: List[str] = []
            if include_context and search_in != SearchField.TITLE:
                body = note.body or ""
                for match in regex.finditer(body):
                    if len(contexts) >= self.analyzer.max_snippets:
                        break
                    if not match.group(0):
                        continue
                    snippet = extract_snippet(
                        body, match.start(), match.end(), self.analyzer.snippet_max_chars
                    )
                    if snippet not in contexts:
                        contexts.append(snippet)

            distinct = list(dict.fromkeys(m.group(0) for m in matches))
            results.append(
                RegexMatchResult(
                    note=note,
                    match_count=len(matches),
                    matches=distinct[:MAX_DISTINCT_MATCHES],
                    contexts=contexts,
                )
            )

        results.sort(key=lambda r: (-r.match_count, recency_key(r.note), r.note.id))
        return results[:limit]

    def search_notes(self, query: Optional[str], limit: Optional[int] = None) -> List[NoteRecord]:
        """Find notes whose title or body contains ``query``, newest first.

        Unlike :meth:`search` the query is matched as one literal,
        case-insensitive substring and nothing is scored. A blank query
        matches nothing.
        """
        if not query or not query.strip():
            return []
        kwargs = {"query": query}
        if limit is not None:
            kwargs["limit"] = limit
        return self.list_notes(parse_options(NoteListOptions, **kwargs))

    def list_notes(self, options: Optional[NoteListOptions] = None) -> List[NoteRecord]:
        """List notes matching plain filters, sorted and paged.

        Args:
            options: Filters plus ``sort_by``, ``sort_order``, ``limit`` and
                ``offset``.

        Returns:
            The requested page. Sorting covers the bounded candidate set,
            so on very large libraries only the most recently modified
            ``max_candidates`` notes take part.

        Raises:
            SearchError: If the repository fails.
        """
        options = options or NoteListOptions()
        candidates = fetch_candidates(
            self.repository,
            CandidateFilter(
                include_trashed=options.include_trashed,
                include_archived=options.include_archived,
                include_encrypted=options.include_encrypted,
                all_tags=options.tags,
                exclude_tags=options.exclude_tags,
                created_from=options.created_from,
                created_to=options.created_to,
                modified_from=options.modified_from,
                modified_to=options.modified_to,
                text_contains=options.query,
            ),
            operation="list_notes",
            query=options.query,
        )
        ordered = sort_notes(candidates, options.sort_by, options.sort_order)
        return ordered[options.offset: options.offset + options.limit]

    def find_by_criteria(self, criteria: Optional[NoteCriteria] = None) -> List[NoteRecord]:
        """Find notes meeting every given criterion, newest first.

        Raises:
            SearchError: If the repository fails.
        """
        criteria = criteria or NoteCriteria()
        return fetch_candidates(
            self.repository,
            CandidateFilter(
                include_trashed=criteria.is_trashed is True,
                include_archived=criteria.is_archived is not False,
                pinned=criteria.is_pinned,
                archived=criteria.is_archived,
                trashed=criteria.is_trashed,
                encrypted=criteria.is_encrypted,
                tags=criteria.has_any_tags,
                all_tags=criteria.has_all_tags,
                created_from=criteria.created_from,
                created_to=criteria.created_to,
                modified_from=criteria.modified_from,
                modified_to=criteria.modified_to,
                title_contains=criteria.title_contains,
                content_contains=criteria.content_contains,
                min_length=criteria.min_length,
                max_length=criteria.max_length,
                limit=criteria.limit,
            ),
            operation="find_by_criteria",
        )
