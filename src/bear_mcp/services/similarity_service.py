"""Keyword-signature similarity between notes."""

import logging
from typing import Iterable, List, Optional, Set

from bear_mcp.config import config
from bear_mcp.exceptions import ErrorCode, SearchError, ValidationError
from bear_mcp.models.schema import (
    CandidateFilter,
    NoteRecord,
    RelatedNotes,
    SimilarityOptions,
    SimilarityResult,
    TagRelation,
)
from bear_mcp.services.search_service import fetch_candidates, recency_key
from bear_mcp.services.tokenizer import keyword_signature
from bear_mcp.storage.base import NoteRepository

logger = logging.getLogger(__name__)


def jaccard(a: Iterable[str], b: Iterable[str]) -> float:
    """Size of the intersection over size of the union (0 for two empty sets)."""
    left, right = set(a), set(b)
    union = left | right
    if not union:
        return 0.0
    return len(left & right) / len(union)


class SimilarityService:
    """Finds notes whose keyword signatures overlap a reference.

    Similarity is the Jaccard index of the two top-N keyword sets. This is a
    lexical approximation: notes that say the same thing in different words
    score zero.
    """

    def __init__(self, repository: NoteRepository, signature_size: Optional[int] = None):
        self.repository = repository
        self.signature_size = signature_size or config.signature_size

    def signature(self, text: Optional[str]) -> List[str]:
        return keyword_signature(text, self.signature_size)

    def similarity(self, text_a: Optional[str], text_b: Optional[str]) -> float:
        """Similarity of two texts."""
        return jaccard(self.signature(text_a), self.signature(text_b))

    def find_similar(
        self,
        reference_text: Optional[str],
        options: Optional[SimilarityOptions] = None,
    ) -> List[SimilarityResult]:
        """Rank notes by keyword overlap with ``reference_text``.

        Returns:
            Results with similarity at or above ``options.min_similarity``
            (and always above zero), best first, never including
            ``options.exclude_note_id``.

        Raises:
            SearchError: If the repository fails.
        """
        options = options or SimilarityOptions()
        reference = set(self.signature(reference_text))
        if not reference:
            logger.debug("Reference text has no keywords; returning no results")
            return []

        exclude = {options.exclude_note_id} if options.exclude_note_id else set()
        candidates = fetch_candidates(
            self.repository,
            CandidateFilter(include_archived=options.include_archived, exclude_ids=exclude),
            operation="find_similar",
            query=reference_text,
        )
        return self._rank(reference, candidates, options.min_similarity, options.limit, exclude)

    def _rank(
        self,
        reference: Set[str],
        candidates: List[NoteRecord],
        min_similarity: float,
        limit: int,
        exclude: Set[str],
    ) -> List[SimilarityResult]:
        results: List[SimilarityResult] = []
        for note in candidates:
            if note.id in exclude:
                continue
            keywords = set(self.signature(note.text))
            common = reference & keywords
            if not common:
                continue
            score = len(common) / len(reference | keywords)
            if score < min_similarity:
                continue
            results.append(
                SimilarityResult(note=note, similarity_score=score, common_keywords=common)
            )

        results.sort(key=lambda r: (-r.similarity_score, recency_key(r.note), r.note.id))
        return results[:limit]

    def related_notes(self, note_id: str, limit: int = 5) -> RelatedNotes:
        """Find notes related to ``note_id`` by shared tags and by content.

        The two lists are ranked separately and never merged. An unknown
        note ID yields empty lists and no ``source``.

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
        note_id = str(note_id)
        try:
            source = self.repository.get_note(note_id)
        except Exception as e:
            raise SearchError(
                "Could not retrieve the source note",
                operation="related_notes",
                original_error=e,
            ) from e
        if source is None:
            logger.debug(f"Note {note_id} not found; no related notes")
            return RelatedNotes()

        candidates = fetch_candidates(
            self.repository,
            CandidateFilter(include_archived=True, exclude_ids={source.id}),
            operation="related_notes",
        )
        candidates = [n for n in candidates if n.id != source.id]

        by_tags: List[TagRelation] = []
        if source.tags:
            for note in candidates:
                shared = set(source.tags & note.tags)
                if shared:
                    by_tags.append(TagRelation(note=note, shared_tags=shared))
            by_tags.sort(key=lambda r: (-len(r.shared_tags), recency_key(r.note), r.note.id))

        reference = set(self.signature(source.text))
        by_content = (
            self._rank(reference, candidates, config.default_min_similarity, limit, {source.id})
            if reference
            else []
        )
        return RelatedNotes(source=source, by_tags=by_tags[:limit], by_content=by_content)
