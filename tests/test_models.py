# tests/test_models.py
"""Tests for the data models used in the Bear Notes MCP server."""
import datetime

import pytest
from pydantic import ValidationError as PydanticValidationError

from bear_mcp.config import config
from bear_mcp.exceptions import ErrorCode, ValidationError
from bear_mcp.models.schema import (
    CandidateFilter,
    NoteCriteria,
    NoteListOptions,
    NoteRecord,
    SearchField,
    SearchOptions,
    SimilarityOptions,
    SortField,
    SortOrder,
    parse_options,
)
from tests.fakes import BASE_TIME, make_note


class TestNoteRecord:
    """Tests for the NoteRecord model."""

    def test_naive_datetimes_become_utc(self):
        note = NoteRecord(
            id="1",
            created_at=datetime.datetime(2024, 1, 1),
            modified_at=datetime.datetime(2024, 1, 2),
        )
        assert note.created_at.tzinfo == datetime.timezone.utc
        assert note.tags == frozenset()

    def test_record_is_immutable(self):
        note = make_note(1, "Title", "Body")
        with pytest.raises(PydanticValidationError):
            note.title = "Changed"

    def test_text_joins_title_and_body(self):
        assert make_note(1, "Title", "Body").text == "Title\nBody"
        assert make_note(2, None, "Body").text == "Body"
        assert make_note(3, None, None).text == ""


class TestSearchOptions:
    """Tests for the SearchOptions model."""

    def test_defaults(self):
        options = SearchOptions()
        assert options.limit == config.default_search_limit
        assert options.include_snippets is True
        assert options.search_fields == [SearchField.BOTH]
        assert not options.fuzzy_match
        assert not options.include_trashed
        assert not options.include_archived

    def test_empty_fields_default_to_both(self):
        options = SearchOptions(search_fields=[])
        assert options.search_fields == [SearchField.BOTH]
        assert options.searches_title and options.searches_content

    def test_field_selection(self):
        options = SearchOptions(search_fields=["title"])
        assert options.searches_title
        assert not options.searches_content

    @pytest.mark.parametrize("limit", [0, -5])
    def test_limit_must_be_positive(self, limit):
        with pytest.raises(PydanticValidationError):
            SearchOptions(limit=limit)

    def test_limit_capped(self):
        with pytest.raises(PydanticValidationError):
            SearchOptions(limit=config.max_search_limit + 1)

    def test_tags_cleaned(self):
        assert SearchOptions(tags=[" work ", "", "  "]).tags == ["work"]
        assert SearchOptions(tags=["", " "]).tags is None

    def test_date_range_order(self):
        with pytest.raises(PydanticValidationError):
            SearchOptions(date_from=BASE_TIME, date_to=BASE_TIME - datetime.timedelta(days=1))
        options = SearchOptions(date_from=BASE_TIME, date_to=BASE_TIME)
        assert options.date_to == options.date_from

    def test_unknown_option_rejected(self):
        with pytest.raises(PydanticValidationError):
            SearchOptions(sort_by="title")


class TestSimilarityOptions:
    """Tests for the SimilarityOptions model."""

    def test_defaults(self):
        options = SimilarityOptions()
        assert options.limit == 10
        assert options.min_similarity == config.default_min_similarity
        assert options.min_similarity > 0
        assert options.exclude_note_id is None

    @pytest.mark.parametrize("value", [-0.1, 1.5])
    def test_min_similarity_range(self, value):
        with pytest.raises(PydanticValidationError):
            SimilarityOptions(min_similarity=value)

    def test_exclude_id_coerced_to_string(self):
        assert SimilarityOptions(exclude_note_id=42).exclude_note_id == "42"


class TestNoteListOptions:
    """Tests for the note listing options."""

    def test_defaults(self):
        options = NoteListOptions()
        assert options.sort_by == SortField.MODIFIED
        assert options.sort_order == SortOrder.DESC
        assert options.offset == 0
        assert options.include_encrypted is False

    def test_blank_query_dropped(self):
        assert NoteListOptions(query="   ").query is None
        assert NoteListOptions(query=" plan ").query == "plan"

    def test_sort_values_parsed(self):
        options = NoteListOptions(sort_by="size", sort_order="asc")
        assert options.sort_by == SortField.SIZE
        assert options.sort_order == SortOrder.ASC

    def test_negative_offset_rejected(self):
        with pytest.raises(PydanticValidationError):
            NoteListOptions(offset=-1)

    def test_modified_range_order(self):
        with pytest.raises(ValidationError) as exc_info:
            parse_options(
                NoteListOptions,
                modified_from=BASE_TIME,
                modified_to=BASE_TIME - datetime.timedelta(days=1),
            )
        assert exc_info.value.field == "modified_to"
        assert exc_info.value.code == ErrorCode.INVALID_DATE_RANGE


class TestNoteCriteria:
    """Tests for the multi-criteria options."""

    def test_terms_cleaned(self):
        criteria = NoteCriteria(title_contains=[" plan ", "", "  "], has_any_tags=[])
        assert criteria.title_contains == ["plan"]
        assert criteria.has_any_tags is None

    def test_length_range(self):
        assert NoteCriteria(min_length=5, max_length=5).max_length == 5
        with pytest.raises(PydanticValidationError):
            NoteCriteria(min_length=6, max_length=5)
        with pytest.raises(PydanticValidationError):
            NoteCriteria(min_length=-1)

    def test_status_flags_default_to_unset(self):
        criteria = NoteCriteria()
        assert criteria.is_pinned is None
        assert criteria.is_trashed is None


class TestCandidateFilter:
    """Tests for CandidateFilter.matches."""

    def test_status_flags(self):
        trashed = make_note(1, trashed=True)
        archived = make_note(2, archived=True)
        assert not CandidateFilter().matches(trashed)
        assert not CandidateFilter().matches(archived)
        assert CandidateFilter(include_trashed=True).matches(trashed)
        assert CandidateFilter(include_archived=True).matches(archived)

    def test_tag_filter_needs_one_shared_tag(self):
        note = make_note(1, tags={"work", "ideas"})
        assert CandidateFilter(tags=["ideas", "home"]).matches(note)
        assert not CandidateFilter(tags=["home"]).matches(note)

    def test_date_range(self):
        note = make_note(1, created_days_ago=3)
        week_ago = BASE_TIME - datetime.timedelta(days=7)
        day_ago = BASE_TIME - datetime.timedelta(days=1)
        assert CandidateFilter(created_from=week_ago, created_to=day_ago).matches(note)
        assert not CandidateFilter(created_from=day_ago).matches(note)
        assert not CandidateFilter(created_to=week_ago).matches(note)

    def test_excluded_ids(self):
        assert not CandidateFilter(exclude_ids={"1"}).matches(make_note(1))

    def test_all_and_excluded_tags(self):
        note = make_note(1, tags={"work", "ideas"})
        assert CandidateFilter(all_tags=["work", "ideas"]).matches(note)
        assert not CandidateFilter(all_tags=["work", "home"]).matches(note)
        assert not CandidateFilter(exclude_tags=["ideas"]).matches(note)
        assert CandidateFilter(exclude_tags=["ideas"]).matches(make_note(2))

    def test_modified_range(self):
        note = make_note(1, days_ago=3, created_days_ago=30)
        assert CandidateFilter(modified_from=BASE_TIME - datetime.timedelta(days=5)).matches(note)
        assert not CandidateFilter(modified_to=BASE_TIME - datetime.timedelta(days=5)).matches(note)

    def test_text_terms_ignore_case(self):
        note = make_note(1, "Weekly Review", "Ship the RELEASE notes")
        assert CandidateFilter(text_contains="review").matches(note)
        assert CandidateFilter(text_contains="release").matches(note)
        assert CandidateFilter(title_contains=["missing", "weekly"]).matches(note)
        assert not CandidateFilter(title_contains=["release"]).matches(note)
        assert CandidateFilter(content_contains=["ship"]).matches(note)

    def test_length_bounds(self):
        note = make_note(1, body="x" * 10)
        assert CandidateFilter(min_length=10, max_length=10).matches(note)
        assert not CandidateFilter(min_length=11).matches(note)
        assert CandidateFilter(max_length=0).matches(make_note(2))

    def test_exact_status(self):
        pinned = make_note(1, pinned=True)
        encrypted = make_note(2, encrypted=True)
        assert CandidateFilter(pinned=True).matches(pinned)
        assert not CandidateFilter(pinned=True).matches(encrypted)
        assert CandidateFilter().matches(encrypted)
        assert not CandidateFilter(include_encrypted=False).matches(encrypted)
        assert not CandidateFilter(encrypted=False).matches(encrypted)

    def test_limit_clamped_to_max_candidates(self):
        assert CandidateFilter(limit=config.max_candidates * 2).limit == config.max_candidates
        assert CandidateFilter().limit == config.max_candidates


class TestParseOptions:
    """Tests for parse_options error translation."""

    def test_valid_options(self):
        options = parse_options(SearchOptions, limit=5, fuzzy_match=True)
        assert options.limit == 5
        assert options.fuzzy_match

    def test_invalid_limit_names_field(self):
        with pytest.raises(ValidationError) as exc_info:
            parse_options(SearchOptions, limit=0)
        assert exc_info.value.field == "limit"
        assert exc_info.value.code == ErrorCode.INVALID_OPTION

    def test_bad_date_range(self):
        with pytest.raises(ValidationError) as exc_info:
            parse_options(
                SearchOptions,
                date_from=BASE_TIME,
                date_to=BASE_TIME - datetime.timedelta(days=1),
            )
        assert exc_info.value.field == "date_to"
        assert exc_info.value.code == ErrorCode.INVALID_DATE_RANGE

    def test_bad_search_field(self):
        with pytest.raises(ValidationError) as exc_info:
            parse_options(SearchOptions, search_fields=["tags"])
        assert exc_info.value.field.startswith("search_fields")

    def test_to_dict(self):
        with pytest.raises(ValidationError) as exc_info:
            parse_options(SimilarityOptions, min_similarity=2)
        payload = exc_info.value.to_dict()
        assert payload["code"] == ErrorCode.INVALID_OPTION.value
        assert payload["details"]["field"] == "min_similarity"
