"""SQLAlchemy schema of an Anki collection (collection.anki2, schema 11)."""

from typing import Any

from sqlalchemy import (
    Column,
    Index,
    Integer,
    Table,
    Text,
    create_engine,
    event,
)
from sqlalchemy.engine import Engine
from sqlalchemy.orm import (
    DeclarativeBase,
    Mapped,
    Session,
    mapped_column,
    sessionmaker,
)

SCHEMA_VERSION = 11


class Base(DeclarativeBase):
    """Base class for all collection tables."""

    pass


class CollectionRecord(Base):
    """The single row holding collection metadata and JSON configuration."""

    __tablename__ = "col"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    crt: Mapped[int] = mapped_column(Integer, nullable=False)  # Creation, seconds
    mod: Mapped[int] = mapped_column(Integer, nullable=False)  # Last change, ms
    scm: Mapped[int] = mapped_column(Integer, nullable=False)  # Schema change, ms
    ver: Mapped[int] = mapped_column(Integer, nullable=False)
    dty: Mapped[int] = mapped_column(Integer, nullable=False)
    usn: Mapped[int] = mapped_column(Integer, nullable=False)
    ls: Mapped[int] = mapped_column(Integer, nullable=False)  # Last sync
    conf: Mapped[str] = mapped_column(Text, nullable=False)
    models: Mapped[str] = mapped_column(Text, nullable=False)  # Note types, JSON
    decks: Mapped[str] = mapped_column(Text, nullable=False)  # Decks, JSON
    dconf: Mapped[str] = mapped_column(Text, nullable=False)  # Deck options, JSON
    tags: Mapped[str] = mapped_column(Text, nullable=False)


class NoteRecord(Base):
    """A note: the fields shared by all cards generated from it."""

    __tablename__ = "notes"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    guid: Mapped[str] = mapped_column(Text, nullable=False)
    mid: Mapped[int] = mapped_column(Integer, nullable=False)  # Note type id
    mod: Mapped[int] = mapped_column(Integer, nullable=False)
    usn: Mapped[int] = mapped_column(Integer, nullable=False)
    tags: Mapped[str] = mapped_column(Text, nullable=False)  # " tag1 tag2 "
    flds: Mapped[str] = mapped_column(Text, nullable=False)  # Fields joined by \x1f
    sfld: Mapped[str] = mapped_column(Text, nullable=False)  # Sort field
    csum: Mapped[int] = mapped_column(Integer, nullable=False)
    flags: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    data: Mapped[str] = mapped_column(Text, nullable=False, default="")

    __table_args__ = (
        Index("ix_notes_usn", "usn"),
        Index("ix_notes_csum", "csum"),
    )


class CardRecord(Base):
    """A reviewable card and its scheduling state."""

    __tablename__ = "cards"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    nid: Mapped[int] = mapped_column(Integer, nullable=False)
    did: Mapped[int] = mapped_column(Integer, nullable=False)
    ord: Mapped[int] = mapped_column(Integer, nullable=False)  # Template / cloze index
    mod: Mapped[int] = mapped_column(Integer, nullable=False)
    usn: Mapped[int] = mapped_column(Integer, nullable=False)

    # Scheduling
    type: Mapped[int] = mapped_column(Integer, nullable=False)
    queue: Mapped[int] = mapped_column(Integer, nullable=False)
    due: Mapped[int] = mapped_column(Integer, nullable=False)
    ivl: Mapped[int] = mapped_column(Integer, nullable=False)
    factor: Mapped[int] = mapped_column(Integer, nullable=False)
    reps: Mapped[int] = mapped_column(Integer, nullable=False)
    lapses: Mapped[int] = mapped_column(Integer, nullable=False)
    left: Mapped[int] = mapped_column(Integer, nullable=False)
    odue: Mapped[int] = mapped_column(Integer, nullable=False)
    odid: Mapped[int] = mapped_column(Integer, nullable=False)
    flags: Mapped[int] = mapped_column(Integer, nullable=False)
    data: Mapped[str] = mapped_column(Text, nullable=False)

    __table_args__ = (
        Index("ix_cards_usn", "usn"),
        Index("ix_cards_nid", "nid"),
        Index("ix_cards_sched", "did", "queue", "due"),
    )


class ReviewLogRecord(Base):
    """One answered review. Always empty in generated packages."""

    __tablename__ = "revlog"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    cid: Mapped[int] = mapped_column(Integer, nullable=False)
    usn: Mapped[int] = mapped_column(Integer, nullable=False)
    ease: Mapped[int] = mapped_column(Integer, nullable=False)
    ivl: Mapped[int] = mapped_column(Integer, nullable=False)
    lastIvl: Mapped[int] = mapped_column(Integer, nullable=False)
    factor: Mapped[int] = mapped_column(Integer, nullable=False)
    time: Mapped[int] = mapped_column(Integer, nullable=False)
    type: Mapped[int] = mapped_column(Integer, nullable=False)

    __table_args__ = (
        Index("ix_revlog_usn", "usn"),
        Index("ix_revlog_cid", "cid"),
    )


# Deletion log; has no primary key, so it is a plain table.
graves = Table(
    "graves",
    Base.metadata,
    Column("usn", Integer, nullable=False),
    Column("oid", Integer, nullable=False),
    Column("type", Integer, nullable=False),
)

# Scheduling columns copied by progress snapshot/restore, in table order.
SCHEDULING_COLUMNS = (
    "type",
    "queue",
    "due",
    "ivl",
    "factor",
    "reps",
    "lapses",
    "left",
    "odue",
    "odid",
    "flags",
    "data",
)


def _unicase(a: Any, b: Any) -> int:
    """Case-insensitive collation used by newer Anki schemas."""
    fa = ("" if a is None else str(a)).casefold()
    fb = ("" if b is None else str(b)).casefold()
    return (fa > fb) - (fa < fb)


def get_engine(database_url: str) -> Engine:
    """Create database engine."""
    engine = create_engine(database_url, echo=False)

    @event.listens_for(engine, "connect")
    def _register_collations(dbapi_connection, connection_record):  # noqa: ARG001
        dbapi_connection.create_collation("unicase", _unicase)

    return engine


def get_session_factory(engine: Engine) -> sessionmaker[Session]:
    """Create session factory."""
    return sessionmaker(bind=engine, expire_on_commit=False)
