"""MCP server implementation for Bear note search."""

import datetime
import logging
import uuid
from typing import List, Optional

from mcp.server.fastmcp import FastMCP

from bear_mcp.config import config
from bear_mcp.exceptions import (
    BearMcpError,
    ErrorCode,
    NoteNotFoundError,
    ValidationError,
)
from bear_mcp.models.schema import (
    NoteCriteria,
    NoteListOptions,
    NoteRecord,
    SearchField,
    SearchOptions,
    SimilarityOptions,
    parse_options,
)
from bear_mcp.observability import metrics, timed_operation
from bear_mcp.services.search_service import SearchService
from bear_mcp.services.similarity_service import SimilarityService
from bear_mcp.services.suggestion_service import SuggestionService
from bear_mcp.storage.note_repository import BearNoteRepository
from bear_mcp.utils import collapse_whitespace, split_csv

logger = logging.getLogger(__name__)

MAX_QUERY_LENGTH = 1000
MAX_REFERENCE_LENGTH = 100_000
PREVIEW_CHARS = 200


def _validate_input_length(field: str, value: Optional[str], maximum: int) -> None:
    """Validate input string lengths at the MCP boundary."""
    if value and len(value) > maximum:
        raise ValidationError(
            f"{field} exceeds maximum length of {maximum} characters",
            field=field,
        )


def _parse_date(
    field: str, value: Optional[str], end_of_day: bool = False
) -> Optional[datetime.datetime]:
    """Parse an ISO 8601 date or datetime argument.

    A bare date means the start of that day, or its last instant when
    ``end_of_day`` is set, so an inclusive upper bound covers the whole day.
    """
    if not value:
        return None
    text = value.strip()
    try:
        day = datetime.date.fromisoformat(text)
    except ValueError:
        day = None
    if day is not None:
        return datetime.datetime.combine(
            day, datetime.time.max if end_of_day else datetime.time.min
        )
    try:
        return datetime.datetime.fromisoformat(text)
    except ValueError as e:
        raise ValidationError(
            f"{field} must be an ISO 8601 date, got '{value}'",
            field=field,
            value=value,
            code=ErrorCode.INVALID_OPTION,
        ) from e


def _note_heading(note: NoteRecord) -> str:
    title = note.title.strip() if note.title and note.title.strip() else "(untitled)"
    return f"{title} (ID: {note.id})"


def _format_tags(tags) -> str:
    return ", ".join(f"#{tag}" for tag in sorted(tags, key=str.casefold))


def _preview(note: NoteRecord, max_chars: int = PREVIEW_CHARS) -> str:
    if note.encrypted:
        return "[encrypted]"
    text = collapse_whitespace((note.body or "")[:max_chars])
    return text + "..." if note.body and len(note.body) > max_chars else text


def _format_listing(header: str, notes: List[NoteRecord]) -> str:
    lines = [header, ""]
    for i, note in enumerate(notes, 1):
        lines.append(f"{i}. {_note_heading(note)}")
        if note.tags:
            lines.append(f"   Tags: {_format_tags(note.tags)}")
        lines.append(
            f"   Created: {note.created_at.strftime('%Y-%m-%d %H:%M')} | "
            f"Modified: {note.modified_at.strftime('%Y-%m-%d %H:%M')} | "
            f"Length: {len(note.body or '')} chars"
        )
        preview = _preview(note)
        if preview:
            lines.append(f"   Preview: {preview}")
        lines.append("")
    return "\n".join(lines).rstrip() + "\n"


class BearMcpServer:
    """MCP server exposing search over a Bear notes database."""

    def __init__(self, engine=None, repository=None):
        """Initialize the MCP server.

        Args:
            engine: Pre-configured SQLAlchemy engine for the Bear database.
            repository: Note repository to use instead of building one
                        from ``engine``.
        """
        self.mcp = FastMCP(config.server_name, version=config.server_version)
        self.repository = repository or BearNoteRepository(engine=engine)
        self.search_service = SearchService(self.repository)
        self.suggestion_service = SuggestionService(self.repository)
        self.similarity_service = SimilarityService(self.repository)
        self._register_tools()
        logger.info("Bear notes MCP server initialized")

    def format_error_response(self, error: Exception) -> str:
        """Format an error response in a consistent way.

        Args:
            error: The exception that occurred

        Returns:
            Formatted error message with appropriate level of detail
        """
        # Generate a unique error ID for traceability in logs
        error_id = str(uuid.uuid4())[:8]

        if isinstance(error, ValidationError):
            logger.warning(f"[{error.code.name}] [{error_id}]: {error.message}")
            return f"Error: {error.message}"
        elif isinstance(error, BearMcpError):
            # Structured domain errors - use the error code and message
            logger.error(
                f"[{error.code.name}] [{error_id}]: {error.message}",
                extra={"error_details": error.details},
            )
            return f"Error: {error.message} (ref: {error_id})"
        elif isinstance(error, ValueError):
            # Log full detail but return generic ref to avoid leaking internals
            logger.error(f"Validation error [{error_id}]: {str(error)}")
            return f"Error: Invalid input (ref: {error_id})"
        elif isinstance(error, (IOError, OSError)):
            # File system errors - don't expose paths or detailed error messages
            logger.error(f"File system error [{error_id}]: {str(error)}", exc_info=True)
            return f"Error: A file system error occurred (ref: {error_id})"
        else:
            # Unexpected errors - log with full stack trace but return generic message
            logger.error(f"Unexpected error [{error_id}]: {str(error)}", exc_info=True)
            return f"Error: An unexpected error occurred (ref: {error_id})"

    def _register_tools(self) -> None:
        """Register MCP tools."""

        @self.mcp.tool(name="search_notes_fulltext")
        def search_notes_fulltext(
            query: str,
            limit: int = 20,
            include_snippets: bool = True,
            search_fields: Optional[str] = None,
            fuzzy_match: bool = False,
            case_sensitive: bool = False,
            whole_words: bool = False,
            include_archived: bool = False,
            include_trashed: bool = False,
            tags: Optional[str] = None,
            date_from: Optional[str] = None,
            date_to: Optional[str] = None,
        ) -> str:
            """Search Bear notes by relevance.
            Args:
                query: Free-text query; common words such as "the" are ignored
                limit: Maximum number of results (default: 20)
                include_snippets: Show excerpts around matches
                search_fields: Comma-separated fields to search (title, content, both)
                fuzzy_match: Also match plural forms and one-letter typos
                case_sensitive: Match case exactly
                whole_words: Only match whole words
                include_archived: Include archived notes
                include_trashed: Include notes in the trash
                tags: Comma-separated tags; notes must carry at least one
                date_from: Only notes created on or after this ISO date
                date_to: Only notes created on or before this ISO date
            """
            with timed_operation("search_notes_fulltext", query=query[:30]) as op:
                try:
                    _validate_input_length("query", query, MAX_QUERY_LENGTH)
                    options = parse_options(
                        SearchOptions,
                        limit=limit,
                        include_snippets=include_snippets,
                        search_fields=split_csv(search_fields) or [SearchField.BOTH],
                        fuzzy_match=fuzzy_match,
                        case_sensitive=case_sensitive,
                        whole_words=whole_words,
                        include_archived=include_archived,
                        include_trashed=include_trashed,
                        tags=split_csv(tags),
                        date_from=_parse_date("date_from", date_from),
                        date_to=_parse_date("date_to", date_to, end_of_day=True),
                    )
                    results = self.search_service.search(query, options)
                    op["result_count"] = len(results)
                    if not results:
                        return f"No notes found matching '{query}'."

                    lines: List[str] = [f"Found {len(results)} notes matching '{query}':", ""]
                    for i, result in enumerate(results, 1):
                        lines.append(f"{i}. {_note_heading(result.note)}")
                        lines.append(
                            f"   Relevance: {result.relevance_score:.2f} "
                            f"(title matches: {result.title_matches}, "
                            f"content matches: {result.content_matches})"
                        )
                        lines.append(
                            f"   Matched terms: {', '.join(sorted(result.matched_terms))}"
                        )
                        if result.note.tags:
                            lines.append(f"   Tags: {_format_tags(result.note.tags)}")
                        lines.append(
                            f"   Modified: {result.note.modified_at.strftime('%Y-%m-%d %H:%M')}"
                        )
                        for snippet in result.snippets:
                            lines.append(f"   > {snippet}")
                        lines.append("")
                    return "\n".join(lines).rstrip() + "\n"
                except Exception as e:
                    op["error"] = e
                    return self.format_error_response(e)

        @self.mcp.tool(name="get_search_suggestions")
        def get_search_suggestions(partial_query: str, limit: int = 10) -> str:
            """Suggest search terms, note titles and tags completing a partial query.
            Args:
                partial_query: The beginning of a word, title or tag
                limit: Maximum suggestions per category (default: 10)
            """
            with timed_operation("get_search_suggestions", partial_query=partial_query[:30]) as op:
                try:
                    _validate_input_length("partial_query", partial_query, MAX_QUERY_LENGTH)
                    bundle = self.suggestion_service.suggest(partial_query, limit=limit)
                    op["result_count"] = len(bundle.terms) + len(bundle.titles) + len(bundle.tags)
                    if not (bundle.terms or bundle.titles or bundle.tags):
                        return f"No suggestions for '{partial_query}'."

                    output = f"Suggestions for '{partial_query}':\n"
                    if bundle.terms:
                        output += f"\nTerms: {', '.join(bundle.terms)}\n"
                    if bundle.titles:
                        output += "\nTitles:\n"
                        for title in bundle.titles:
                            output += f"- {title}\n"
                    if bundle.tags:
                        output += f"\nTags: {', '.join('#' + t for t in bundle.tags)}\n"
                    return output
                except Exception as e:
                    op["error"] = e
                    return self.format_error_response(e)

        @self.mcp.tool(name="find_similar_notes")
        def find_similar_notes(
            reference_text: str,
            limit: int = 10,
            min_similarity: Optional[float] = None,
            exclude_note_id: Optional[str] = None,
        ) -> str:
            """Find notes whose keywords overlap a piece of text.
            Args:
                reference_text: Text to compare notes against
                limit: Maximum number of results (default: 10)
                min_similarity: Minimum similarity between 0 and 1 (default: 0.1)
                exclude_note_id: ID of a note to leave out of the results
            """
            with timed_operation("find_similar_notes", exclude_note_id=exclude_note_id) as op:
                try:
                    _validate_input_length("reference_text", reference_text, MAX_REFERENCE_LENGTH)
                    kwargs = {"limit": limit, "exclude_note_id": exclude_note_id}
                    if min_similarity is not None:
                        kwargs["min_similarity"] = min_similarity
                    options = parse_options(SimilarityOptions, **kwargs)
                    results = self.similarity_service.find_similar(reference_text, options)
                    op["result_count"] = len(results)
                    if not results:
                        return "No similar notes found."

                    output = f"Found {len(results)} similar notes:\n\n"
                    for i, result in enumerate(results, 1):
                        output += f"{i}. {_note_heading(result.note)}\n"
                        output += f"   Similarity: {result.similarity_score:.2f}\n"
                        output += (
                            f"   Common keywords: {', '.join(sorted(result.common_keywords))}\n\n"
                        )
                    return output
                except Exception as e:
                    op["error"] = e
                    return self.format_error_response(e)

        @self.mcp.tool(name="get_related_notes")
        def get_related_notes(note_id: str, limit: int = 5) -> str:
            """Find notes related to a note by shared tags and by similar content.
            Args:
                note_id: ID of the source note
                limit: Maximum notes per category (default: 5)
            """
            with timed_operation("get_related_notes", note_id=note_id) as op:
                try:
                    note_id = str(note_id)
                    related = self.similarity_service.related_notes(note_id, limit=limit)
                    if related.source is None:
                        op["found"] = False
                        return self.format_error_response(NoteNotFoundError(note_id))
                    op["by_tags"] = len(related.by_tags)
                    op["by_content"] = len(related.by_content)
                    if not (related.by_tags or related.by_content):
                        return f"No related notes found for note {note_id}."

                    output = f"Notes related to note {note_id}:\n"
                    output += "\nBy shared tags:\n"
                    if related.by_tags:
                        for relation in related.by_tags:
                            output += (
                                f"- {_note_heading(relation.note)} "
                                f"[{_format_tags(relation.shared_tags)}]\n"
                            )
                    else:
                        output += "- none\n"
                    output += "\nBy similar content:\n"
                    if related.by_content:
                        for result in related.by_content:
                            output += (
                                f"- {_note_heading(result.note)} "
                                f"(similarity: {result.similarity_score:.2f})\n"
                            )
                    else:
                        output += "- none\n"
                    return output
                except Exception as e:
                    op["error"] = e
                    return self.format_error_response(e)

        @self.mcp.tool(name="search_notes_regex")
        def search_notes_regex(
            pattern: str,
            search_in: str = "both",
            limit: int = 20,
            include_context: bool = True,
            case_sensitive: bool = False,
        ) -> str:
            """Search Bear notes with a regular expression.
            Args:
                pattern: Python regular expression
                search_in: Where to search (title, content, both)
                limit: Maximum number of results (default: 20)
                include_context: Show excerpts around the first matches
                case_sensitive: Match case exactly
            """
            with timed_operation("search_notes_regex", pattern=pattern[:30]) as op:
                try:
                    try:
                        field = SearchField(search_in.strip().lower())
                    except ValueError:
                        return (
                            f"Invalid search_in: {search_in}. Valid values are: "
                            f"{', '.join(f.value for f in SearchField)}"
                        )
                    results = self.search_service.search_regex(
                        pattern,
                        search_in=field,
                        limit=limit,
                        include_context=include_context,
                        case_sensitive=case_sensitive,
                    )
                    op["result_count"] = len(results)
                    if not results:
                        return f"No notes match the pattern '{pattern}'."

                    output = f"Found {len(results)} notes matching /{pattern}/:\n\n"
                    for i, result in enumerate(results, 1):
                        output += f"{i}. {_note_heading(result.note)}\n"
                        output += f"   Matches: {result.match_count}\n"
                        output += f"   Matched text: {', '.join(result.matches)}\n"
                        for context in result.contexts:
                            output += f"   > {context}\n"
                        output += "\n"
                    return output
                except Exception as e:
                    op["error"] = e
                    return self.format_error_response(e)

        @self.mcp.tool(name="search_notes")
        def search_notes(query: str, limit: int = 20) -> str:
            """Find Bear notes whose title or content contains the query text.
            Args:
                query: Text to look for (matched literally, ignoring case)
                limit: Maximum number of results (default: 20)
            """
            with timed_operation("search_notes", query=query[:30]) as op:
                try:
                    _validate_input_length("query", query, MAX_QUERY_LENGTH)
                    notes = self.search_service.search_notes(query, limit=limit)
                    op["result_count"] = len(notes)
                    if not notes:
                        return f"No notes found containing '{query}'."
                    return _format_listing(
                        f"Found {len(notes)} notes containing '{query}':", notes
                    )
                except Exception as e:
                    op["error"] = e
                    return self.format_error_response(e)

        @self.mcp.tool(name="get_notes_advanced")
        def get_notes_advanced(
            query: Optional[str] = None,
            tags: Optional[str] = None,
            exclude_tags: Optional[str] = None,
            date_from: Optional[str] = None,
            date_to: Optional[str] = None,
            modified_after: Optional[str] = None,
            modified_before: Optional[str] = None,
            include_archived: bool = False,
            include_trashed: bool = False,
            include_encrypted: bool = False,
            sort_by: str = "modified",
            sort_order: str = "desc",
            limit: int = 20,
            offset: int = 0,
        ) -> str:
            """List Bear notes with filtering, sorting and pagination.
            Args:
                query: Text the title or content must contain
                tags: Comma-separated tags; notes must carry all of them
                exclude_tags: Comma-separated tags; notes carrying any are left out
                date_from: Only notes created on or after this ISO date
                date_to: Only notes created on or before this ISO date
                modified_after: Only notes modified on or after this ISO date
                modified_before: Only notes modified on or before this ISO date
                include_archived: Include archived notes
                include_trashed: Include notes in the trash
                include_encrypted: Include encrypted notes
                sort_by: Sort field (created, modified, title, size)
                sort_order: Sort direction (asc, desc)
                limit: Maximum number of results (default: 20)
                offset: Number of notes to skip, for paging
            """
            with timed_operation("get_notes_advanced", query=(query or "")[:30]) as op:
                try:
                    _validate_input_length("query", query, MAX_QUERY_LENGTH)
                    options = parse_options(
                        NoteListOptions,
                        query=query,
                        tags=split_csv(tags),
                        exclude_tags=split_csv(exclude_tags),
                        created_from=_parse_date("date_from", date_from),
                        created_to=_parse_date("date_to", date_to, end_of_day=True),
                        modified_from=_parse_date("modified_after", modified_after),
                        modified_to=_parse_date(
                            "modified_before", modified_before, end_of_day=True
                        ),
                        include_archived=include_archived,
                        include_trashed=include_trashed,
                        include_encrypted=include_encrypted,
                        sort_by=sort_by.strip().lower(),
                        sort_order=sort_order.strip().lower(),
                        limit=limit,
                        offset=offset,
                    )
                    notes = self.search_service.list_notes(options)
                    op["result_count"] = len(notes)
                    if not notes:
                        return "No notes found."
                    header = f"Showing {len(notes)} notes"
                    if options.offset:
                        header += f" (starting after {options.offset})"
                    header += f", sorted by {options.sort_by.value} {options.sort_order.value}:"
                    return _format_listing(header, notes)
                except Exception as e:
                    op["error"] = e
                    return self.format_error_response(e)

        @self.mcp.tool(name="get_notes_with_criteria")
        def get_notes_with_criteria(
            title_contains: Optional[str] = None,
            content_contains: Optional[str] = None,
            has_all_tags: Optional[str] = None,
            has_any_tags: Optional[str] = None,
            created_after: Optional[str] = None,
            created_before: Optional[str] = None,
            modified_after: Optional[str] = None,
            modified_before: Optional[str] = None,
            min_length: Optional[int] = None,
            max_length: Optional[int] = None,
            is_pinned: Optional[bool] = None,
            is_archived: Optional[bool] = None,
            is_trashed: Optional[bool] = None,
            is_encrypted: Optional[bool] = None,
            limit: int = 20,
        ) -> str:
            """Find Bear notes meeting several criteria at once.
            Args:
                title_contains: Comma-separated terms; the title must contain one
                content_contains: Comma-separated terms; the content must contain one
                has_all_tags: Comma-separated tags; notes must carry all of them
                has_any_tags: Comma-separated tags; notes must carry at least one
                created_after: Only notes created on or after this ISO date
                created_before: Only notes created on or before this ISO date
                modified_after: Only notes modified on or after this ISO date
                modified_before: Only notes modified on or before this ISO date
                min_length: Minimum content length in characters
                max_length: Maximum content length in characters
                is_pinned: Filter by pinned status
                is_archived: Filter by archived status
                is_trashed: Filter by trashed status (trashed notes are hidden by default)
                is_encrypted: Filter by encrypted status
                limit: Maximum number of results (default: 20)
            """
            with timed_operation("get_notes_with_criteria") as op:
                try:
                    criteria = parse_options(
                        NoteCriteria,
                        title_contains=split_csv(title_contains),
                        content_contains=split_csv(content_contains),
                        has_all_tags=split_csv(has_all_tags),
                        has_any_tags=split_csv(has_any_tags),
                        created_from=_parse_date("created_after", created_after),
                        created_to=_parse_date(
                            "created_before", created_before, end_of_day=True
                        ),
                        modified_from=_parse_date("modified_after", modified_after),
                        modified_to=_parse_date(
                            "modified_before", modified_before, end_of_day=True
                        ),
                        min_length=min_length,
                        max_length=max_length,
                        is_pinned=is_pinned,
                        is_archived=is_archived,
                        is_trashed=is_trashed,
                        is_encrypted=is_encrypted,
                        limit=limit,
                    )
                    notes = self.search_service.find_by_criteria(criteria)
                    op["result_count"] = len(notes)
                    if not notes:
                        return "No notes match the given criteria."
                    return _format_listing(
                        f"Found {len(notes)} notes matching the criteria:", notes
                    )
                except Exception as e:
                    op["error"] = e
                    return self.format_error_response(e)

        @self.mcp.tool(name="search_status")
        def search_status() -> str:
            """Show server configuration and per-tool timing statistics."""
            try:
                summary = metrics.summary()
                output = f"{config.server_name} {config.server_version}\n"
                output += f"Database: {config.bear_db_path}\n"
                output += f"Uptime: {summary['uptime_seconds']:.0f}s\n"
                output += (
                    f"Operations: {summary['calls']} "
                    f"({summary['errors']} errors, "
                    f"success rate {summary['success_rate']:.0%})\n"
                )
                per_tool = metrics.per_tool()
                if per_tool:
                    output += "\nPer tool:\n"
                    for name in sorted(per_tool):
                        stats = per_tool[name]
                        output += (
                            f"- {name}: {stats.calls} calls, "
                            f"avg {stats.avg_ms:.2f}ms, "
                            f"max {stats.max_ms:.2f}ms, "
                            f"{stats.errors} errors\n"
                        )
                        if stats.last_error:
                            output += f"  last error: {stats.last_error}\n"
                return output
            except Exception as e:
                return self.format_error_response(e)

    def run(self) -> None:
        """Run the MCP server."""
        self.mcp.run()
