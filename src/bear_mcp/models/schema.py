"""Data models for the Bear Notes MCP server."""

import datetime
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, FrozenSet, List, Optional, Set, Type, TypeVar

from pydantic import BaseModel, Field, ValidationInfo, field_validator
from pydantic import ValidationError as PydanticValidationError

from bear_mcp.config import config
from bear_mcp.exceptions import ErrorCode, ValidationError
from bear_mcp.utils import ensure_timezone_aware

OptionsT = TypeVar("OptionsT", bound=BaseModel)


class NoteRecord(BaseModel):
    """A Bear note as handed to the search engine.

    Records are immutable views of repository rows; the engine never
    modifies them.
    """

    id: str = Field(..., description="Opaque note identifier (Bear Z_PK)")
    title: Optional[str] = Field(default=None, description="Note title")
    body: Optional[str] = Field(default=None, description="Markdown body")
    tags: FrozenSet[str] = Field(default_factory=frozenset, description="Tag names")
    trashed: bool = False
    archived: bool = False
    pinned: bool = False
    encrypted: bool = False
    created_at: datetime.datetime = Field(..., description="Creation instant (UTC)")
    modified_at: datetime.datetime = Field(..., description="Last modification (UTC)")

    model_config = {"frozen": True, "extra": "forbid"}

    @field_validator("created_at", "modified_at")
    @classmethod
    def validate_aware(cls, v: datetime.datetime) -> datetime.datetime:
        """Treat naive datetimes as UTC."""
        return ensure_timezone_aware(v)

    @property
    def text(self) -> str:
        """Title and body joined, skipping whichever is missing."""
        return "\n".join(part for part in (self.title, self.body) if part)


class SearchField(str, Enum):
    """Note fields a full-text search can look in."""

    TITLE = "title"
    CONTENT = "content"
    BOTH = "both"


def _check_limit(v: int) -> int:
    if v <= 0:
        raise ValueError("limit must be greater than 0")
    if v > config.max_search_limit:
        raise ValueError(f"limit cannot exceed {config.max_search_limit}")
    return v


def _clean_tags(v: Optional[List[str]]) -> Optional[List[str]]:
    if v is None:
        return None
    cleaned = [tag.strip() for tag in v if tag and tag.strip()]
    return cleaned or None


class SearchOptions(BaseModel):
    """Options for a ranked full-text search."""

    limit: int = Field(default_factory=lambda: config.default_search_limit)
    include_snippets: bool = True
    search_fields: List[SearchField] = Field(
        default_factory=lambda: [SearchField.BOTH]
    )
    fuzzy_match: bool = False
    case_sensitive: bool = False
    whole_words: bool = False
    include_trashed: bool = False
    include_archived: bool = False
    tags: Optional[List[str]] = Field(
        default=None, description="Only notes carrying at least one of these tags"
    )
    date_from: Optional[datetime.datetime] = None
    date_to: Optional[datetime.datetime] = None

    model_config = {"extra": "forbid"}

    @field_validator("limit")
    @classmethod
    def validate_limit(cls, v: int) -> int:
        return _check_limit(v)

    @field_validator("search_fields")
    @classmethod
    def validate_search_fields(cls, v: List[SearchField]) -> List[SearchField]:
        """Searching no fields means searching both."""
        return v or [SearchField.BOTH]

    @field_validator("tags")
    @classmethod
    def validate_tags(cls, v: Optional[List[str]]) -> Optional[List[str]]:
        return _clean_tags(v)

    @field_validator("date_from")
    @classmethod
    def validate_date_from(
        cls, v: Optional[datetime.datetime]
    ) -> Optional[datetime.datetime]:
        return ensure_timezone_aware(v) if v is not None else None

    @field_validator("date_to")
    @classmethod
    def validate_date_to(
        cls, v: Optional[datetime.datetime], info: ValidationInfo
    ) -> Optional[datetime.datetime]:
        """Reject ranges that end before they start."""
        if v is None:
            return None
        v = ensure_timezone_aware(v)
        date_from = info.data.get("date_from")
        if date_from is not None and v < date_from:
            raise ValueError("date_to must not be earlier than date_from")
        return v

    @property
    def searches_title(self) -> bool:
        return bool(
            {SearchField.TITLE, SearchField.BOTH}.intersection(self.search_fields)
        )

    @property
    def searches_content(self) -> bool:
        return bool(
            {SearchField.CONTENT, SearchField.BOTH}.intersection(self.search_fields)
        )


class SimilarityOptions(BaseModel):
    """Options for finding notes similar to a reference text."""

    limit: int = 10
    min_similarity: float = Field(default_factory=lambda: config.default_min_similarity)
    exclude_note_id: Optional[str] = None
    include_archived: bool = True

    model_config = {"extra": "forbid"}

    @field_validator("limit")
    @classmethod
    def validate_limit(cls, v: int) -> int:
        return _check_limit(v)

    @field_validator("min_similarity")
    @classmethod
    def validate_min_similarity(cls, v: float) -> float:
        if not 0.0 <= v <= 1.0:
            raise ValueError("min_similarity must be between 0 and 1")
        return v

    @field_validator("exclude_note_id", mode="before")
    @classmethod
    def validate_exclude_note_id(cls, v: Any) -> Optional[str]:
        """Accept integer primary keys as well as strings."""
        if v is None:
            return None
        return str(v)


class SortField(str, Enum):
    """Orderings available when listing notes."""

    CREATED = "created"
    MODIFIED = "modified"
    TITLE = "title"
    SIZE = "size"


class SortOrder(str, Enum):
    ASC = "asc"
    DESC = "desc"


def _aware_or_none(v: Optional[datetime.datetime]) -> Optional[datetime.datetime]:
    return ensure_timezone_aware(v) if v is not None else None


def _check_upper_bound(upper, info: ValidationInfo, lower_field: str):
    lower = info.data.get(lower_field)
    if upper is not None and lower is not None and upper < lower:
        raise ValueError(f"{info.field_name} must not be less than {lower_field}")
    return upper


class _DateBounds(BaseModel):
    """Creation and modification ranges shared by the note listing options."""

    created_from: Optional[datetime.datetime] = None
    created_to: Optional[datetime.datetime] = None
    modified_from: Optional[datetime.datetime] = None
    modified_to: Optional[datetime.datetime] = None

    @field_validator("created_from", "modified_from")
    @classmethod
    def validate_lower(
        cls, v: Optional[datetime.datetime]
    ) -> Optional[datetime.datetime]:
        return _aware_or_none(v)

    @field_validator("created_to")
    @classmethod
    def validate_created_to(
        cls, v: Optional[datetime.datetime], info: ValidationInfo
    ) -> Optional[datetime.datetime]:
        return _check_upper_bound(_aware_or_none(v), info, "created_from")

    @field_validator("modified_to")
    @classmethod
    def validate_modified_to(
        cls, v: Optional[datetime.datetime], info: ValidationInfo
    ) -> Optional[datetime.datetime]:
        return _check_upper_bound(_aware_or_none(v), info, "modified_from")


class NoteListOptions(_DateBounds):
    """Options for listing notes by plain filters, sorted and paged.

    ``query`` is a case-insensitive substring of the title or body; it is
    not tokenized or ranked. A note must carry every tag in ``tags`` and
    none of ``exclude_tags``.
    """

    query: Optional[str] = None
    tags: Optional[List[str]] = None
    exclude_tags: Optional[List[str]] = None
    include_trashed: bool = False
    include_archived: bool = False
    include_encrypted: bool = False
    sort_by: SortField = SortField.MODIFIED
    sort_order: SortOrder = SortOrder.DESC
    limit: int = Field(default_factory=lambda: config.default_search_limit)
    offset: int = 0

    model_config = {"extra": "forbid"}

    @field_validator("query")
    @classmethod
    def validate_query(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return None
        return v.strip() or None

    @field_validator("tags", "exclude_tags")
    @classmethod
    def validate_tags(cls, v: Optional[List[str]]) -> Optional[List[str]]:
        return _clean_tags(v)

    @field_validator("limit")
    @classmethod
    def validate_limit(cls, v: int) -> int:
        return _check_limit(v)

    @field_validator("offset")
    @classmethod
    def validate_offset(cls, v: int) -> int:
        if v < 0:
            raise ValueError("offset must not be negative")
        return v


class NoteCriteria(_DateBounds):
    """Criteria combining any-of text terms, tag sets, length and status.

    Each list of terms matches when any of its entries occurs; the lists
    themselves are combined with AND. A status flag left as None does not
    filter, except that trashed notes stay hidden unless ``is_trashed`` is
    True.
    """

    title_contains: Optional[List[str]] = None
    content_contains: Optional[List[str]] = None
    has_all_tags: Optional[List[str]] = None
    has_any_tags: Optional[List[str]] = None
    min_length: Optional[int] = None
    max_length: Optional[int] = None
    is_pinned: Optional[bool] = None
    is_archived: Optional[bool] = None
    is_trashed: Optional[bool] = None
    is_encrypted: Optional[bool] = None
    limit: int = Field(default_factory=lambda: config.default_search_limit)

    model_config = {"extra": "forbid"}

    @field_validator("title_contains", "content_contains", "has_all_tags", "has_any_tags")
    @classmethod
    def validate_terms(cls, v: Optional[List[str]]) -> Optional[List[str]]:
        return _clean_tags(v)

    @field_validator("min_length")
    @classmethod
    def validate_min_length(cls, v: Optional[int]) -> Optional[int]:
        if v is not None and v < 0:
            raise ValueError("min_length must not be negative")
        return v

    @field_validator("max_length")
    @classmethod
    def validate_max_length(
        cls, v: Optional[int], info: ValidationInfo
    ) -> Optional[int]:
        return _check_upper_bound(v, info, "min_length")

    @field_validator("limit")
    @classmethod
    def validate_limit(cls, v: int) -> int:
        return _check_limit(v)


class CandidateFilter(BaseModel):
    """Structural filter applied by the repository when fetching candidates.

    ``tags`` needs any one of its tags, ``all_tags`` needs every one. The
    ``*_contains`` fields are case-insensitive substrings: ``text_contains``
    looks in title or body, the two lists match when any entry occurs. The
    ``pinned``/``archived``/``trashed``/``encrypted`` flags, when set, demand
    that exact status on top of the ``include_*`` switches.
    """

    include_trashed: bool = False
    include_archived: bool = False
    include_encrypted: bool = True
    tags: Optional[List[str]] = None
    all_tags: Optional[List[str]] = None
    exclude_tags: Optional[List[str]] = None
    created_from: Optional[datetime.datetime] = None
    created_to: Optional[datetime.datetime] = None
    modified_from: Optional[datetime.datetime] = None
    modified_to: Optional[datetime.datetime] = None
    text_contains: Optional[str] = None
    title_contains: Optional[List[str]] = None
    content_contains: Optional[List[str]] = None
    min_length: Optional[int] = None
    max_length: Optional[int] = None
    pinned: Optional[bool] = None
    archived: Optional[bool] = None
    trashed: Optional[bool] = None
    encrypted: Optional[bool] = None
    exclude_ids: Set[str] = Field(default_factory=set)
    limit: int = Field(default_factory=lambda: config.max_candidates)

    model_config = {"extra": "forbid"}

    @field_validator("tags", "all_tags", "exclude_tags", "title_contains", "content_contains")
    @classmethod
    def validate_tags(cls, v: Optional[List[str]]) -> Optional[List[str]]:
        return _clean_tags(v)

    @field_validator("limit")
    @classmethod
    def validate_limit(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("limit must be greater than 0")
        return min(v, config.max_candidates)

    def matches(self, note: NoteRecord) -> bool:
        """Check a record against the filter.

        Used by repositories that cannot push the filter into a query.
        """
        if note.trashed and not self.include_trashed:
            return False
        if note.archived and not self.include_archived:
            return False
        if note.encrypted and not self.include_encrypted:
            return False
        for flag in ("pinned", "archived", "trashed", "encrypted"):
            wanted = getattr(self, flag)
            if wanted is not None and getattr(note, flag) != wanted:
                return False
        if note.id in self.exclude_ids:
            return False

        if self.tags and not note.tags.intersection(self.tags):
            return False
        if self.all_tags and not note.tags.issuperset(self.all_tags):
            return False
        if self.exclude_tags and note.tags.intersection(self.exclude_tags):
            return False

        for instant, lower, upper in (
            (note.created_at, self.created_from, self.created_to),
            (note.modified_at, self.modified_from, self.modified_to),
        ):
            if lower and instant < ensure_timezone_aware(lower):
                return False
            if upper and instant > ensure_timezone_aware(upper):
                return False

        title = (note.title or "").casefold()
        body = (note.body or "").casefold()
        if self.text_contains:
            needle = self.text_contains.casefold()
            if needle not in title and needle not in body:
                return False
        if self.title_contains and not any(
            t.casefold() in title for t in self.title_contains
        ):
            return False
        if self.content_contains and not any(
            t.casefold() in body for t in self.content_contains
        ):
            return False

        length = len(note.body or "")
        if self.min_length is not None and length < self.min_length:
            return False
        if self.max_length is not None and length > self.max_length:
            return False
        return True


def parse_options(model: Type[OptionsT], **kwargs: Any) -> OptionsT:
    """Build an options model, reporting the first bad field.

    Raises:
        ValidationError: naming the offending field when any value is invalid.
    """
    try:
        return model(**kwargs)
    except PydanticValidationError as e:
        first = e.errors()[0]
        field_name = ".".join(str(part) for part in first.get("loc", ())) or None
        message = first.get("msg", "invalid value")
        code = (
            ErrorCode.INVALID_DATE_RANGE
            if field_name in ("date_to", "created_to", "modified_to")
            else ErrorCode.INVALID_OPTION
        )
        raise ValidationError(
            f"Invalid {field_name or 'options'}: {message}",
            field=field_name,
            value=first.get("input"),
            code=code,
        ) from e


@dataclass
class MatchAnalysis:
    """Per-note match statistics produced by the match analyzer."""

    relevance_score: float = 0.0
    matched_terms: Set[str] = field(default_factory=set)
    snippets: List[str] = field(default_factory=list)
    title_matches: int = 0
    content_matches: int = 0
    tag_matches: int = 0


@dataclass
class SearchResult:
    """A ranked full-text search hit."""

    note: NoteRecord
    relevance_score: float
    matched_terms: Set[str]
    snippets: List[str]
    title_matches: int
    content_matches: int


@dataclass
class SimilarityResult:
    """A note scored against a reference keyword signature."""

    note: NoteRecord
    similarity_score: float
    common_keywords: Set[str]


@dataclass
class TagRelation:
    """A note that shares at least one tag with a source note."""

    note: NoteRecord
    shared_tags: Set[str]


@dataclass
class RelatedNotes:
    """Notes related to a source note.

    Tag overlap and content overlap are kept apart: the first reflects the
    user's own curation, the second only textual resemblance. ``source`` is
    None when the requested note does not exist.
    """

    source: Optional[NoteRecord] = None
    by_tags: List[TagRelation] = field(default_factory=list)
    by_content: List[SimilarityResult] = field(default_factory=list)


@dataclass
class SuggestionBundle:
    """Autocomplete candidates for a partial query."""

    terms: List[str] = field(default_factory=list)
    titles: List[str] = field(default_factory=list)
    tags: List[str] = field(default_factory=list)


@dataclass
class RegexMatchResult:
    """A note matched by a regular expression search."""

    note: NoteRecord
    match_count: int
    matches: List[str]
    contexts: List[str]
