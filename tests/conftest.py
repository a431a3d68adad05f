"""Common test fixtures for the Bear Notes MCP server."""

import tempfile
from pathlib import Path

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session

from bear_mcp.models.db_models import Base, DBNote, DBTag, init_engine
from bear_mcp.observability import metrics
from bear_mcp.services.search_service import SearchService
from bear_mcp.services.similarity_service import SimilarityService
from bear_mcp.services.suggestion_service import SuggestionService
from bear_mcp.storage.note_repository import BearNoteRepository
from bear_mcp.utils import datetime_to_core_data
from tests.fakes import BASE_TIME, InMemoryNoteRepository, make_note


@pytest.fixture(autouse=True)
def _reset_metrics():
    """Keep the global metrics collector isolated between tests."""
    metrics.reset()
    yield
    metrics.reset()


@pytest.fixture
def sample_notes():
    """A small corpus covering titles, bodies, tags and note states."""
    return [
        make_note(
            1,
            "Project Plan",
            "This covers the project timeline and the milestones for the launch.",
            tags={"project", "planning"},
            days_ago=1,
        ),
        make_note(
            2,
            "Unrelated",
            "Nothing related",
            days_ago=2,
        ),
        make_note(
            3,
            "Grocery list",
            "Apples, bread, coffee beans and oat milk.",
            tags={"home"},
            days_ago=3,
        ),
        make_note(
            4,
            "Projects overview",
            "Every project needs a timeline. Milestones keep a project honest.",
            tags={"projects", "planning"},
            days_ago=4,
        ),
        make_note(
            5,
            "Old project notes",
            "Archived project retrospective.",
            tags={"project"},
            days_ago=30,
            archived=True,
        ),
        make_note(
            6,
            "Deleted draft",
            "A project draft that went to the trash.",
            days_ago=40,
            trashed=True,
        ),
    ]


@pytest.fixture
def repository(sample_notes):
    """In-memory repository holding the sample corpus."""
    return InMemoryNoteRepository(sample_notes)


@pytest.fixture
def search_service(repository):
    return SearchService(repository)


@pytest.fixture
def suggestion_service(repository):
    return SuggestionService(repository)


@pytest.fixture
def similarity_service(repository):
    return SimilarityService(repository)


@pytest.fixture
def bear_db_path():
    """Create a temporary SQLite file with Bear's note and tag tables."""
    with tempfile.TemporaryDirectory() as db_dir:
        database_path = Path(db_dir) / "database.sqlite"
        engine = create_engine(f"sqlite:///{database_path}")
        Base.metadata.create_all(engine)

        def stamp(days_ago):
            return datetime_to_core_data(BASE_TIME) - days_ago * 86400

        with Session(engine) as session:
            project = DBTag(id=10, name="project")
            planning = DBTag(id=11, name="planning")
            home = DBTag(id=12, name="home")
            session.add_all(
                [
                    DBNote(
                        id=1,
                        title="Project Plan",
                        text="This covers the project timeline",
                        created_at=stamp(10),
                        modified_at=stamp(1),
                        tags=[project, planning],
                    ),
                    DBNote(
                        id=2,
                        title="Unrelated",
                        text="Nothing related",
                        created_at=stamp(20),
                        modified_at=stamp(2),
                    ),
                    DBNote(
                        id=3,
                        title="Grocery list",
                        text="Apples and bread",
                        created_at=stamp(5),
                        modified_at=stamp(3),
                        tags=[home],
                    ),
                    DBNote(
                        id=4,
                        title="Archived plan",
                        text="Old project plan",
                        created_at=stamp(100),
                        modified_at=stamp(50),
                        archived=1,
                        tags=[project],
                    ),
                    DBNote(
                        id=5,
                        title="Trashed plan",
                        text="Discarded project plan",
                        created_at=stamp(100),
                        modified_at=stamp(60),
                        trashed=1,
                        pinned=1,
                    ),
                ]
            )
            session.commit()
        engine.dispose()
        yield database_path


@pytest.fixture
def bear_engine(bear_db_path):
    """Read-only engine over the temporary Bear database."""
    engine = init_engine(f"sqlite:///file:{bear_db_path}?mode=ro&uri=true")
    yield engine
    engine.dispose()


@pytest.fixture
def bear_repository(bear_engine):
    return BearNoteRepository(engine=bear_engine)
