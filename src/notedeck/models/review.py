"""Review result models for Notedeck."""

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from notedeck.models.card import Card, Rating


@dataclass(frozen=True)
class ScheduledReview:
    """The scheduler's answer for one card and one rating."""

    rating: Rating
    card: Card  # Updated copy; the input card is never mutated
    review_time: datetime
    scheduled_minutes: float  # Time from review_time to the new due date

    @property
    def due(self) -> datetime:
        return self.card.due

    @property
    def interval_days(self) -> int:
        """Whole days until the new due date, rounded to the nearest day."""
        return round(self.scheduled_minutes / (60 * 24))


@dataclass
class ReviewOutcome:
    """Result of a committed review, including the optional sibling burial."""

    card: Card
    rating: Rating
    buried_sibling: Optional[Card] = None
    burial_error: Optional[str] = None

    def __str__(self) -> str:
        return f"Card {self.card.id} rated {self.rating.name}, next due {self.card.due.isoformat()}"
