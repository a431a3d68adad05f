"""Repository interface consumed by the search services."""

from abc import ABC, abstractmethod
from typing import List, Optional

from bear_mcp.models.schema import CandidateFilter, NoteRecord


class NoteRepository(ABC):
    """Read access to the note collection.

    Implementations apply the structural filter themselves; the services
    never filter candidates a second time.
    """

    @abstractmethod
    def fetch_candidates(self, filter: CandidateFilter) -> List[NoteRecord]:
        """Return notes matching ``filter``, most recently modified first."""

    @abstractmethod
    def get_note(self, note_id: str) -> Optional[NoteRecord]:
        """Return a single note, or None when it does not exist."""
