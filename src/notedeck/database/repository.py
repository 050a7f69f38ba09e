"""Repository for database CRUD operations."""

import json
import logging
from collections.abc import Iterator, Mapping
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any, Optional

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from notedeck.database.schema import CardRecord, NoteRecord, SettingRecord, init_database
from notedeck.models.card import (
    SCHEDULING_FIELDS,
    Card,
    CardDirection,
    CardState,
    ensure_utc,
)
from notedeck.models.note import Note

logger = logging.getLogger(__name__)

CONTENT_FIELDS = (
    "front",
    "back",
    "front_image",
    "back_image",
    "front_audio",
    "back_audio",
)

# Each content field paired with its counterpart on the reverse card
_SWAPPED_CONTENT = {
    "front": "back",
    "back": "front",
    "front_image": "back_image",
    "back_image": "front_image",
    "front_audio": "back_audio",
    "back_audio": "front_audio",
}

_DATETIME_FIELDS = ("last_review", "due", "buried_until")


class PersistenceError(Exception):
    """Raised when the database cannot be read or written."""


class CardNotFoundError(PersistenceError):
    """Raised when a card id does not exist."""


class Repository:
    """Repository for managing notes, cards and settings in the database."""

    def __init__(self, database_url: str):
        """Initialize repository with database connection."""
        self.session_factory = init_database(database_url)

    def _get_session(self) -> Session:
        """Get a new database session."""
        return self.session_factory()

    @contextmanager
    def _session_scope(self, action: str) -> Iterator[Session]:
        """Yield a session; database errors are rolled back and re-raised as PersistenceError."""
        session = self._get_session()
        try:
            yield session
        except SQLAlchemyError as e:
            session.rollback()
            logger.error("Failed to %s: %s", action, e)
            raise PersistenceError(f"Failed to {action}: {e}") from e
        finally:
            session.close()

    # ==================== Note Operations ====================

    def add_note(self, note: Note) -> Note:
        """Add a new note to the database."""
        with self._session_scope("add note") as session:
            self._insert_note(session, note)
            session.commit()
            return note

    def get_note_by_id(self, note_id: int) -> Optional[Note]:
        """Get a note by its database ID."""
        with self._session_scope("read note") as session:
            record = session.get(NoteRecord, note_id)
            if record:
                return self._record_to_note(record)
            return None

    def update_note(self, note: Note) -> Note:
        """Update an existing note's title, content and tags."""
        with self._session_scope("update note") as session:
            record = session.get(NoteRecord, note.id)
            if record:
                record.title = note.title
                record.content = note.content
                record.tags = json.dumps(note.tags)
                record.note_type = note.note_type
                record.is_flashcard_note = note.is_flashcard_note
                session.commit()
                note.updated_at = _from_db(record.updated_at)
            return note

    def delete_note(self, note_id: int) -> bool:
        """Delete a note and, through the cascade, all of its cards."""
        with self._session_scope("delete note") as session:
            record = session.get(NoteRecord, note_id)
            if record is None:
                return False
            session.delete(record)
            session.commit()
            return True

    def count_notes(self) -> int:
        with self._session_scope("count notes") as session:
            return session.scalar(select(func.count()).select_from(NoteRecord)) or 0

    # ==================== Card Operations ====================

    def create_cards(self, card: Card, reverse: bool = False) -> list[Card]:
        """Create a card and, optionally, its reverse card in one transaction.

        The reverse card is only created for a front-to-back card. It has
        the faces and media swapped and links back through parent_card_id.

        Args:
            card: The primary card; its note must already exist
            reverse: Whether to also create the back-to-front card

        Returns:
            The created cards, primary first, with ids assigned

        Raises:
            ValueError: If the note already has a card in that direction
        """
        with self._session_scope("create cards") as session:
            cards = self._insert_cards(session, card, reverse)
            session.commit()

        logger.info("Created %d card(s) for note %s", len(cards), card.note_id)
        return cards

    def add_flashcard_note(
        self, note: Note, card: Card, reverse: bool = False
    ) -> tuple[Note, list[Card]]:
        """Add a note together with its card and optional reverse card.

        Note and cards are written in one transaction, so a failure leaves
        neither behind.

        Returns:
            The stored note and its cards, primary first
        """
        with self._session_scope("add flashcard note") as session:
            self._insert_note(session, note)
            card.note_id = note.id
            cards = self._insert_cards(session, card, reverse)
            session.commit()

        logger.info("Added note %s with %d card(s)", note.id, len(cards))
        return note, cards

    def _insert_note(self, session: Session, note: Note) -> None:
        record = NoteRecord(
            title=note.title,
            content=note.content,
            tags=json.dumps(note.tags),
            note_type=note.note_type,
            is_flashcard_note=note.is_flashcard_note,
        )
        session.add(record)
        session.flush()
        note.id = record.id
        note.created_at = _from_db(record.created_at)
        note.updated_at = _from_db(record.updated_at)

    def _insert_cards(self, session: Session, card: Card, reverse: bool) -> list[Card]:
        cards = [card]
        if reverse and card.direction == CardDirection.FRONT_TO_BACK:
            cards.append(
                Card(
                    front=card.back,
                    back=card.front,
                    note_id=card.note_id,
                    front_image=card.back_image,
                    back_image=card.front_image,
                    front_audio=card.back_audio,
                    back_audio=card.front_audio,
                    card_type=card.card_type,
                    direction=CardDirection.BACK_TO_FRONT,
                    is_reversed=True,
                    due=card.due,
                )
            )

        existing = set(
            session.scalars(
                select(CardRecord.direction).where(CardRecord.note_id == card.note_id)
            ).all()
        )
        for new_card in cards:
            if new_card.direction.value in existing:
                raise ValueError(
                    f"Note {card.note_id} already has a {new_card.direction.value} card"
                )

        primary = self._card_to_record(card)
        session.add(primary)
        session.flush()  # Get the ID
        card.id = primary.id

        if len(cards) > 1:
            cards[1].parent_card_id = primary.id
            reverse_record = self._card_to_record(cards[1])
            session.add(reverse_record)
            session.flush()
            cards[1].id = reverse_record.id
        return cards

    def get_card_by_id(self, card_id: int) -> Optional[Card]:
        """Get a card by its database ID."""
        with self._session_scope("read card") as session:
            record = session.get(CardRecord, card_id)
            if record:
                return self._record_to_card(record)
            return None

    def get_cards_for_note(self, note_id: int) -> list[Card]:
        """Get all cards for a specific note, in id order."""
        with self._session_scope("read cards") as session:
            stmt = (
                select(CardRecord)
                .where(CardRecord.note_id == note_id)
                .order_by(CardRecord.id)
            )
            return [self._record_to_card(r) for r in session.scalars(stmt).all()]

    def get_all_cards(self) -> list[Card]:
        """Get every card, in id order."""
        with self._session_scope("read cards") as session:
            stmt = select(CardRecord).order_by(CardRecord.id)
            return [self._record_to_card(r) for r in session.scalars(stmt).all()]

    def update_card_fields(self, card_id: int, fields: Mapping[str, Any]) -> Card:
        """Write a partial update of a card's scheduling fields.

        Only the given fields are written; content and media are never
        touched. The write is atomic: on failure nothing is changed.

        Args:
            card_id: The card to update
            fields: Subset of the scheduling fields with their new values

        Returns:
            The card as stored after the update

        Raises:
            ValueError: If a field is not a scheduling field
            CardNotFoundError: If the card does not exist
            PersistenceError: If the write fails
        """
        unknown = set(fields) - set(SCHEDULING_FIELDS)
        if unknown:
            raise ValueError(f"Not scheduling fields: {', '.join(sorted(unknown))}")

        with self._session_scope(f"update card {card_id}") as session:
            record = session.get(CardRecord, card_id)
            if record is None:
                raise CardNotFoundError(f"Card {card_id} not found")
            for name, value in fields.items():
                setattr(record, name, _field_to_db(name, value))
            session.commit()
            return self._record_to_card(record)

    def update_card_content(self, card_id: int, **content: Optional[str]) -> Card:
        """Update a card's text and media, mirroring the change onto its reverse card.

        Raises:
            ValueError: If a field is not a content field
            CardNotFoundError: If the card does not exist
        """
        unknown = set(content) - set(CONTENT_FIELDS)
        if unknown:
            raise ValueError(f"Not content fields: {', '.join(sorted(unknown))}")

        with self._session_scope(f"update card {card_id}") as session:
            record = session.get(CardRecord, card_id)
            if record is None:
                raise CardNotFoundError(f"Card {card_id} not found")
            for name, value in content.items():
                setattr(record, name, value)

            stmt = select(CardRecord).where(CardRecord.parent_card_id == card_id)
            for reverse_record in session.scalars(stmt).all():
                for name, value in content.items():
                    setattr(reverse_record, _SWAPPED_CONTENT[name], value)

            session.commit()
            return self._record_to_card(record)

    def delete_card(self, card_id: int) -> bool:
        """Delete a card together with its reverse card."""
        with self._session_scope(f"delete card {card_id}") as session:
            record = session.get(CardRecord, card_id)
            if record is None:
                return False
            stmt = select(CardRecord).where(CardRecord.parent_card_id == card_id)
            for reverse_record in session.scalars(stmt).all():
                session.delete(reverse_record)
            session.delete(record)
            session.commit()
            return True

    # ==================== Settings Operations ====================

    def get_setting(self, key: str) -> Optional[str]:
        """Get a setting value by key."""
        with self._session_scope("read setting") as session:
            record = session.get(SettingRecord, key)
            return record.value if record else None

    def set_setting(self, key: str, value: str) -> None:
        """Insert or replace a setting value."""
        with self._session_scope("write setting") as session:
            record = session.get(SettingRecord, key)
            if record:
                record.value = value
            else:
                session.add(SettingRecord(key=key, value=value))
            session.commit()

    def get_all_settings(self) -> dict[str, str]:
        """Get every stored setting."""
        with self._session_scope("read settings") as session:
            records = session.scalars(select(SettingRecord)).all()
            return {r.key: r.value for r in records if r.value is not None}

    # ==================== Helper Methods ====================

    def _record_to_note(self, record: NoteRecord) -> Note:
        """Convert database record to Note model."""
        return Note(
            id=record.id,
            title=record.title,
            content=record.content or "",
            tags=json.loads(record.tags) if record.tags else [],
            note_type=record.note_type,
            is_flashcard_note=record.is_flashcard_note,
            created_at=_from_db(record.created_at),
            updated_at=_from_db(record.updated_at),
        )

    def _record_to_card(self, record: CardRecord) -> Card:
        """Convert database record to Card model."""
        return Card(
            id=record.id,
            note_id=record.note_id,
            front=record.front,
            back=record.back,
            front_image=record.front_image,
            back_image=record.back_image,
            front_audio=record.front_audio,
            back_audio=record.back_audio,
            card_type=record.card_type,
            direction=CardDirection(record.direction or CardDirection.FRONT_TO_BACK.value),
            is_reversed=record.is_reversed,
            parent_card_id=record.parent_card_id,
            stability=record.stability,
            difficulty=record.difficulty,
            reps=record.reps,
            lapses=record.lapses,
            state=CardState(record.state),
            learning_step=record.learning_step,
            last_review=_from_db(record.last_review),
            due=_from_db(record.due),
            buried_until=_from_db(record.buried_until),
        )

    @staticmethod
    def _card_to_record(card: Card) -> CardRecord:
        """Convert a Card model to a new database record."""
        return CardRecord(
            note_id=card.note_id,
            front=card.front,
            back=card.back,
            front_image=card.front_image,
            back_image=card.back_image,
            front_audio=card.front_audio,
            back_audio=card.back_audio,
            card_type=card.card_type,
            direction=card.direction.value,
            is_reversed=card.is_reversed,
            parent_card_id=card.parent_card_id,
            stability=card.stability,
            difficulty=card.difficulty,
            reps=card.reps,
            lapses=card.lapses,
            state=int(card.state),
            learning_step=card.learning_step,
            last_review=_to_db(card.last_review),
            due=_to_db(card.due),
            buried_until=_to_db(card.buried_until),
        )


def _to_db(value: Optional[datetime]) -> Optional[datetime]:
    """Aware datetime to the naive UTC form stored in the database."""
    if value is None:
        return None
    return ensure_utc(value).replace(tzinfo=None)


def _from_db(value: Optional[datetime]) -> Optional[datetime]:
    """Naive UTC datetime from the database to an aware datetime."""
    if value is None:
        return None
    return value.replace(tzinfo=timezone.utc)


def _field_to_db(name: str, value: Any) -> Any:
    if name in _DATETIME_FIELDS:
        return _to_db(value)
    if name == "state":
        return int(value)
    return value
