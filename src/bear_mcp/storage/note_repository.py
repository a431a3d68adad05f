"""Read-only repository over Bear's SQLite database."""

import logging
from typing import Any, List, Optional

from sqlalchemy import func, or_, select
from sqlalchemy.exc import OperationalError, SQLAlchemyError
from sqlalchemy.orm import selectinload

from bear_mcp.exceptions import ErrorCode, StorageError
from bear_mcp.models.db_models import DBNote, DBTag, get_session_factory
from bear_mcp.models.schema import CandidateFilter, NoteRecord
from bear_mcp.storage.base import NoteRepository
from bear_mcp.utils import core_data_to_datetime, datetime_to_core_data

logger = logging.getLogger(__name__)


def _parse_pk(note_id: str) -> Optional[int]:
    """Bear primary keys are integers; anything else cannot exist."""
    try:
        return int(note_id)
    except (TypeError, ValueError):
        return None


class BearNoteRepository(NoteRepository):
    """Repository for reading notes and tags from Bear.

    Bear is the only writer of its database. This class never writes, and
    every structural filter is pushed into SQL so that only candidate rows
    are loaded.
    """

    def __init__(self, engine: Optional[Any] = None, session_factory=None):
        """Initialize the repository.

        Args:
            engine: Pre-configured SQLAlchemy engine. When None, a read-only
                    engine is created from config.
            session_factory: Explicit session factory (takes precedence).
        """
        self.session_factory = session_factory or get_session_factory(engine)

    @staticmethod
    def _db_note_to_record(db_note: DBNote) -> NoteRecord:
        """Convert a DBNote row and its eager-loaded tags to a NoteRecord."""
        return NoteRecord(
            id=str(db_note.id),
            title=db_note.title,
            body=db_note.text,
            tags=frozenset(t.name for t in (db_note.tags or []) if t.name),
            trashed=bool(db_note.trashed),
            archived=bool(db_note.archived),
            pinned=bool(db_note.pinned),
            encrypted=bool(db_note.encrypted),
            created_at=core_data_to_datetime(db_note.created_at),
            modified_at=core_data_to_datetime(db_note.modified_at),
        )

    @staticmethod
    def _apply_filter(query: Any, filter: CandidateFilter) -> Any:
        """Translate a CandidateFilter into WHERE clauses."""
        if not filter.include_trashed:
            query = query.where(DBNote.trashed == 0)
        if not filter.include_archived:
            query = query.where(DBNote.archived == 0)
        if not filter.include_encrypted:
            query = query.where(DBNote.encrypted == 0)
        for column, wanted in (
            (DBNote.pinned, filter.pinned),
            (DBNote.archived, filter.archived),
            (DBNote.trashed, filter.trashed),
            (DBNote.encrypted, filter.encrypted),
        ):
            if wanted is not None:
                query = query.where(column == int(wanted))

        if filter.tags:
            query = query.where(DBNote.tags.any(DBTag.name.in_(filter.tags)))
        for tag in filter.all_tags or []:
            query = query.where(DBNote.tags.any(DBTag.name == tag))
        if filter.exclude_tags:
            query = query.where(~DBNote.tags.any(DBTag.name.in_(filter.exclude_tags)))

        for column, lower, upper in (
            (DBNote.created_at, filter.created_from, filter.created_to),
            (DBNote.modified_at, filter.modified_from, filter.modified_to),
        ):
            if lower:
                query = query.where(column >= datetime_to_core_data(lower))
            if upper:
                query = query.where(column <= datetime_to_core_data(upper))

        if filter.text_contains:
            query = query.where(
                or_(
                    DBNote.title.icontains(filter.text_contains, autoescape=True),
                    DBNote.text.icontains(filter.text_contains, autoescape=True),
                )
            )
        if filter.title_contains:
            query = query.where(
                or_(*(DBNote.title.icontains(t, autoescape=True) for t in filter.title_contains))
            )
        if filter.content_contains:
            query = query.where(
                or_(*(DBNote.text.icontains(t, autoescape=True) for t in filter.content_contains))
            )

        body_length = func.length(func.coalesce(DBNote.text, ""))
        if filter.min_length is not None:
            query = query.where(body_length >= filter.min_length)
        if filter.max_length is not None:
            query = query.where(body_length <= filter.max_length)

        excluded = [pk for pk in map(_parse_pk, filter.exclude_ids) if pk is not None]
        if excluded:
            query = query.where(DBNote.id.notin_(excluded))
        return query

    def fetch_candidates(self, filter: CandidateFilter) -> List[NoteRecord]:
        """Fetch notes matching the structural filter.

        Args:
            filter: Status, tag, date and exclusion criteria plus a row limit.

        Returns:
            Matching notes, most recently modified first.

        Raises:
            StorageError: If the database cannot be read.
        """
        query = select(DBNote).options(selectinload(DBNote.tags))
        query = self._apply_filter(query, filter)
        query = query.order_by(DBNote.modified_at.desc(), DBNote.id.asc())
        query = query.limit(filter.limit)

        try:
            with self.session_factory() as session:
                db_notes = session.execute(query).scalars().all()
                records = [self._db_note_to_record(db) for db in db_notes]
        except OperationalError as e:
            raise StorageError(
                "Could not open the Bear database",
                operation="fetch_candidates",
                code=ErrorCode.STORAGE_CONNECTION_FAILED,
                original_error=e,
            ) from e
        except SQLAlchemyError as e:
            raise StorageError(
                "Failed to read candidate notes",
                operation="fetch_candidates",
                original_error=e,
            ) from e

        logger.debug(f"Fetched {len(records)} candidate notes")
        return records

    def get_note(self, note_id: str) -> Optional[NoteRecord]:
        """Get a note by its Bear primary key.

        Returns:
            NoteRecord if found, None otherwise (including non-numeric IDs).

        Raises:
            StorageError: If the database cannot be read.
        """
        pk = _parse_pk(note_id)
        if pk is None:
            return None
        query = select(DBNote).options(selectinload(DBNote.tags)).where(DBNote.id == pk)
        try:
            with self.session_factory() as session:
                db_note = session.execute(query).scalars().first()
                return self._db_note_to_record(db_note) if db_note else None
        except SQLAlchemyError as e:
            raise StorageError(
                f"Failed to read note {note_id}",
                operation="get_note",
                original_error=e,
            ) from e
