"""SQLAlchemy database schema for Notedeck."""

from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import (
    Boolean,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    create_engine,
    event,
)
from sqlalchemy.orm import (
    DeclarativeBase,
    Mapped,
    Session,
    mapped_column,
    relationship,
    sessionmaker,
)

from notedeck.models.card import CardDirection, CardState


def _utcnow_naive() -> datetime:
    # Timestamps are stored as naive UTC; SQLite keeps no zone information
    return datetime.now(timezone.utc).replace(tzinfo=None)


class Base(DeclarativeBase):
    """Base class for all database models."""

    pass


class NoteRecord(Base):
    """Database record for a note."""

    __tablename__ = "notes"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    title: Mapped[str] = mapped_column(Text, unique=True, nullable=False)
    content: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    tags: Mapped[Optional[str]] = mapped_column(Text, nullable=True)  # JSON array
    note_type: Mapped[str] = mapped_column(String(50), default="note", nullable=False)
    is_flashcard_note: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=_utcnow_naive, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=_utcnow_naive, onupdate=_utcnow_naive, nullable=False
    )

    # Relationships
    cards: Mapped[list["CardRecord"]] = relationship(
        "CardRecord",
        back_populates="note",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )


class CardRecord(Base):
    """Database record for a flashcard and its scheduling state."""

    __tablename__ = "cards"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    note_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("notes.id", ondelete="CASCADE"), nullable=False
    )

    front: Mapped[str] = mapped_column(Text, nullable=False)
    back: Mapped[str] = mapped_column(Text, nullable=False)
    front_audio: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    back_audio: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    front_image: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    back_image: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    card_type: Mapped[str] = mapped_column(String(50), default="basic", nullable=False)

    # Scheduling state
    stability: Mapped[float] = mapped_column(Float, default=0.0, nullable=False)
    difficulty: Mapped[float] = mapped_column(Float, default=0.0, nullable=False)
    reps: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    lapses: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    state: Mapped[int] = mapped_column(Integer, default=int(CardState.NEW), nullable=False)
    learning_step: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    last_review: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    due: Mapped[datetime] = mapped_column(DateTime, default=_utcnow_naive, nullable=False)
    buried_until: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    # Reverse card linkage
    direction: Mapped[str] = mapped_column(
        String(20), default=CardDirection.FRONT_TO_BACK.value, nullable=False
    )
    is_reversed: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    parent_card_id: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("cards.id", ondelete="CASCADE"), nullable=True
    )

    # Relationships
    note: Mapped["NoteRecord"] = relationship("NoteRecord", back_populates="cards")

    __table_args__ = (
        Index("idx_cards_note", "note_id"),
        Index("idx_cards_due", "due"),
    )


class SettingRecord(Base):
    """Key/value store for user-editable settings."""

    __tablename__ = "settings"

    key: Mapped[str] = mapped_column(String(100), primary_key=True)
    value: Mapped[Optional[str]] = mapped_column(Text, nullable=True)


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def get_engine(database_url: str):
    """Create database engine."""
    engine = create_engine(database_url, echo=False)
    if engine.dialect.name == "sqlite":
        event.listen(engine, "connect", _enable_sqlite_foreign_keys)
    return engine


def get_session_factory(engine) -> sessionmaker[Session]:
    """Create session factory."""
    return sessionmaker(bind=engine, expire_on_commit=False)


def init_database(database_url: str) -> sessionmaker[Session]:
    """Initialize database and return session factory."""
    engine = get_engine(database_url)
    Base.metadata.create_all(engine)
    return get_session_factory(engine)
