"""SQLAlchemy mappings for the parts of Bear's Core Data schema we read."""
from typing import Optional

from sqlalchemy import (Column, Float, ForeignKey, Integer, String, Table,
                        Text, create_engine, event)
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, relationship, sessionmaker
from sqlalchemy.pool import QueuePool

from bear_mcp.config import config

# Create base class for SQLAlchemy models
Base = declarative_base()

# Association table for tags and notes (Core Data naming)
note_tags = Table(
    "Z_5TAGS",
    Base.metadata,
    Column("Z_5NOTES", Integer, ForeignKey("ZSFNOTE.Z_PK"), primary_key=True),
    Column("Z_13TAGS", Integer, ForeignKey("ZSFNOTETAG.Z_PK"), primary_key=True),
)


class DBNote(Base):
    """A row of ZSFNOTE."""

    __tablename__ = "ZSFNOTE"
    id = Column("Z_PK", Integer, primary_key=True)
    unique_identifier = Column("ZUNIQUEIDENTIFIER", String(255), nullable=True)
    title = Column("ZTITLE", Text, nullable=True)
    text = Column("ZTEXT", Text, nullable=True)
    # Seconds since 2001-01-01 UTC
    created_at = Column("ZCREATIONDATE", Float, nullable=True, index=True)
    modified_at = Column("ZMODIFICATIONDATE", Float, nullable=True, index=True)
    trashed = Column("ZTRASHED", Integer, default=0, nullable=False)
    archived = Column("ZARCHIVED", Integer, default=0, nullable=False)
    pinned = Column("ZPINNED", Integer, default=0, nullable=False)
    encrypted = Column("ZENCRYPTED", Integer, default=0, nullable=False)

    tags = relationship("DBTag", secondary=note_tags, back_populates="notes")

    def __repr__(self) -> str:
        """Return string representation of note."""
        return f"<Note(id={self.id}, title='{self.title}')>"


class DBTag(Base):
    """A row of ZSFNOTETAG."""

    __tablename__ = "ZSFNOTETAG"
    id = Column("Z_PK", Integer, primary_key=True)
    name = Column("ZTITLE", String(255), nullable=False)

    notes = relationship("DBNote", secondary=note_tags, back_populates="tags")

    def __repr__(self) -> str:
        """Return string representation of tag."""
        return f"<Tag(id={self.id}, name='{self.name}')>"


def init_engine(db_url: Optional[str] = None) -> Engine:
    """Create the engine used to read the Bear database.

    Bear owns the file, so every connection is opened read-only
    (``mode=ro`` in the URI) and told to wait for Bear's own writes
    instead of failing immediately.
    """
    engine = create_engine(
        db_url or config.get_db_url(),
        poolclass=QueuePool,
        pool_size=5,
        max_overflow=5,
        pool_timeout=30,
        pool_pre_ping=True,
    )

    @event.listens_for(engine, "connect")
    def set_sqlite_pragma(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA busy_timeout=5000")
        cursor.execute("PRAGMA query_only=ON")
        cursor.close()

    return engine


def get_session_factory(engine=None):
    """Get a session factory for the database."""
    if engine is None:
        engine = init_engine()
    return sessionmaker(bind=engine)
