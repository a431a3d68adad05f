# tests/test_suggestion_service.py
"""Tests for autocomplete suggestions."""
import pytest

from bear_mcp.exceptions import ErrorCode, SearchError, ValidationError
from bear_mcp.services.suggestion_service import SuggestionService
from tests.fakes import FailingNoteRepository, InMemoryNoteRepository, make_note


class TestSuggestionService:
    """Tests for the SuggestionService class."""

    def test_prefix_suggestions(self, suggestion_service):
        """Both tag forms and the matching title are offered."""
        bundle = suggestion_service.suggest("proj", 5)
        assert set(bundle.tags) == {"project", "projects"}
        assert "Project Plan" in bundle.titles
        assert bundle.terms == ["project"]

    def test_tags_ranked_by_usage(self, suggestion_service):
        bundle = suggestion_service.suggest("proj", 5)
        assert bundle.tags == ["project", "projects"]

    def test_titles_ranked_by_recency(self, suggestion_service):
        bundle = suggestion_service.suggest("proj", 5)
        assert bundle.titles == ["Project Plan", "Projects overview", "Old project notes"]

    def test_trashed_notes_not_suggested(self, suggestion_service):
        assert "Deleted draft" not in suggestion_service.suggest("del", 5).titles

    def test_terms_ranked_by_frequency(self):
        repository = InMemoryNoteRepository(
            [
                make_note(1, "A", "milk milestones milk"),
                make_note(2, "B", "milk mild"),
            ]
        )
        bundle = SuggestionService(repository).suggest("mil", 10)
        assert bundle.terms == ["milk", "mild", "milestones"]

    def test_title_prefix_only_at_word_start(self, suggestion_service):
        bundle = suggestion_service.suggest("ject", 5)
        assert bundle.titles == []

    def test_title_matches_later_word(self, suggestion_service):
        assert suggestion_service.suggest("overv", 5).titles == ["Projects overview"]

    def test_each_list_capped(self):
        repository = InMemoryNoteRepository(
            [
                make_note(i, f"Topic {i}", f"topic{i} topical", tags={f"topic{i}"}, days_ago=i)
                for i in range(10)
            ]
        )
        bundle = SuggestionService(repository).suggest("top", 3)
        assert len(bundle.terms) == 3
        assert len(bundle.titles) == 3
        assert len(bundle.tags) == 3
        assert bundle.titles == ["Topic 0", "Topic 1", "Topic 2"]

    def test_deduplicated_case_insensitively(self):
        repository = InMemoryNoteRepository(
            [
                make_note(1, "Weekly review", "x", tags={"Work"}, days_ago=1),
                make_note(2, "weekly REVIEW", "y", tags={"work"}, days_ago=2),
            ]
        )
        bundle = SuggestionService(repository).suggest("w", 10)
        assert bundle.titles == ["Weekly review"]
        assert len(bundle.tags) == 1

    def test_short_query_still_executes(self, suggestion_service, repository):
        bundle = suggestion_service.suggest("p", 10)
        assert repository.filters
        assert "planning" in bundle.tags

    @pytest.mark.parametrize("query", ["", "   ", None])
    def test_blank_query_returns_empty_bundle(self, suggestion_service, repository, query):
        bundle = suggestion_service.suggest(query, 5)
        assert (bundle.terms, bundle.titles, bundle.tags) == ([], [], [])
        assert repository.filters == []

    @pytest.mark.parametrize("limit", [0, -3])
    def test_invalid_limit(self, suggestion_service, limit):
        with pytest.raises(ValidationError) as exc_info:
            suggestion_service.suggest("proj", limit)
        assert exc_info.value.code == ErrorCode.INVALID_OPTION
        assert exc_info.value.details["field"] == "limit"

    def test_repository_failure(self):
        service = SuggestionService(FailingNoteRepository())
        with pytest.raises(SearchError) as exc_info:
            service.suggest("proj", 5)
        assert exc_info.value.details["operation"] == "suggest"
