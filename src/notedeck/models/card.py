"""Card model for Notedeck."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum, IntEnum
from typing import Any, Optional, Union


class InvalidRatingError(ValueError):
    """Raised when a review rating is not one of Again, Hard, Good or Easy."""


class CardState(IntEnum):
    """Learning state of a card in the memory model."""

    NEW = 0  # Never reviewed
    LEARNING = 1  # Going through the short learning steps
    REVIEW = 2  # Graduated, scheduled in days
    RELEARNING = 3  # Lapsed from Review, going through relearning steps


class CardDirection(str, Enum):
    """Which face of the note is asked first."""

    FRONT_TO_BACK = "front-to-back"
    BACK_TO_FRONT = "back-to-front"

    @property
    def opposite(self) -> "CardDirection":
        if self is CardDirection.FRONT_TO_BACK:
            return CardDirection.BACK_TO_FRONT
        return CardDirection.FRONT_TO_BACK


class Rating(IntEnum):
    """Four-level review grade understood by the scheduler."""

    AGAIN = 1
    HARD = 2
    GOOD = 3
    EASY = 4

    @classmethod
    def parse(cls, value: Union["Rating", "UserRating", int, str]) -> "Rating":
        """Convert a rating given as enum, grade number or name.

        Raises:
            InvalidRatingError: If the value does not name one of the four grades
        """
        if isinstance(value, UserRating):
            return value.to_rating()
        if isinstance(value, cls):
            return value
        if isinstance(value, bool):
            raise InvalidRatingError(f"Invalid rating: {value!r}")
        if isinstance(value, int):
            try:
                return cls(value)
            except ValueError:
                raise InvalidRatingError(f"Invalid rating: {value!r}") from None
        if isinstance(value, str):
            name = value.strip().upper()
            if name.isdigit():
                return cls.parse(int(name))
            if name in cls.__members__:
                return cls[name]
            try:
                return UserRating(value.strip().lower()).to_rating()
            except ValueError:
                pass
        raise InvalidRatingError(f"Invalid rating: {value!r}")


class UserRating(str, Enum):
    """The two buttons shown during review."""

    FAIL = "fail"
    PASS = "pass"

    def to_rating(self) -> Rating:
        # Pass maps straight to Easy; Hard and Good are never emitted here
        return Rating.AGAIN if self is UserRating.FAIL else Rating.EASY


# Fields owned by the scheduler; writes of these never touch card content
SCHEDULING_FIELDS = (
    "stability",
    "difficulty",
    "reps",
    "lapses",
    "state",
    "last_review",
    "due",
    "learning_step",
    "buried_until",
)


def utcnow() -> datetime:
    """Return the current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def ensure_utc(value: datetime) -> datetime:
    """Treat naive datetimes as UTC and convert aware ones to UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


@dataclass
class Card:
    """A reviewable flashcard belonging to a note."""

    # Card content
    front: str
    back: str
    note_id: int = 0

    # Media references, per side
    front_image: Optional[str] = None
    back_image: Optional[str] = None
    front_audio: Optional[str] = None
    back_audio: Optional[str] = None

    card_type: str = "basic"
    direction: CardDirection = CardDirection.FRONT_TO_BACK
    is_reversed: bool = False
    parent_card_id: Optional[int] = None  # Set on the reverse card only

    # Scheduling state
    stability: float = 0.0
    difficulty: float = 0.0
    reps: int = 0
    lapses: int = 0
    state: CardState = CardState.NEW
    last_review: Optional[datetime] = None
    learning_step: int = 0  # Index into the learning or relearning steps
    due: datetime = field(default_factory=utcnow)  # New cards are due immediately
    buried_until: Optional[datetime] = None

    # Local database metadata
    id: Optional[int] = None

    def __post_init__(self) -> None:
        """Validate and convert fields after initialization."""
        if isinstance(self.direction, str):
            self.direction = CardDirection(self.direction)
        if not isinstance(self.state, CardState):
            self.state = CardState(self.state)

    def scheduling_fields(self) -> dict[str, Any]:
        """Return the scheduler-owned fields as a dict."""
        return {name: getattr(self, name) for name in SCHEDULING_FIELDS}

    def is_buried(self, now: datetime) -> bool:
        """Check whether the card is suppressed at the given time."""
        return self.buried_until is not None and self.buried_until > now
