"""Note model for Notedeck."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from notedeck.models.card import utcnow


@dataclass
class Note:
    """A note; flashcard notes own one or two cards."""

    title: str
    content: str = ""
    tags: list[str] = field(default_factory=list)
    note_type: str = "note"
    is_flashcard_note: bool = False

    # Local database metadata
    id: Optional[int] = None
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)

    def __hash__(self) -> int:
        """Hash based on title, which is unique across notes."""
        return hash(self.title)

    def __eq__(self, other: object) -> bool:
        """Equality based on title."""
        if not isinstance(other, Note):
            return NotImplemented
        return self.title == other.title
