"""Review workflow: schedule a rated card, persist it, then bury its sibling."""

import logging
from collections.abc import Callable
from datetime import datetime
from typing import Optional

from notedeck.config import (
    SCHEDULER_SETTING_KEYS,
    ReviewConfig,
    Settings,
    load_review_config,
)
from notedeck.database.repository import CardNotFoundError, PersistenceError, Repository
from notedeck.models.card import Card, Rating, utcnow
from notedeck.models.review import ReviewOutcome
from notedeck.services.burial import bury_sibling
from notedeck.services.due_selector import count_due_cards, select_due_cards
from notedeck.services.scheduler import RatingInput, Scheduler

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


class ReviewService:
    """Runs review sessions against the repository.

    Configuration is re-read from the repository for every call, so edits
    made between reviews take effect on the next one.
    """

    def __init__(
        self,
        repository: Repository,
        settings: Settings,
        clock: Optional[Clock] = None,
    ) -> None:
        """Initialize the service.

        Args:
            repository: Persistence layer for cards and settings
            settings: Process settings supplying configuration defaults
            clock: Returns the current aware datetime (default: UTC wall clock)
        """
        self.repository = repository
        self.settings = settings
        self.clock = clock or utcnow

    def load_config(self) -> ReviewConfig:
        """Read the scheduler settings from the repository."""
        stored = {}
        for key in SCHEDULER_SETTING_KEYS:
            value = self.repository.get_setting(key)
            if value is not None:
                stored[key] = value
        return load_review_config(self.settings, stored)

    def due_cards(self) -> list[Card]:
        """Cards eligible for review now, in review order."""
        config = self.load_config()
        return select_due_cards(
            self.repository.get_all_cards(),
            self.clock(),
            review_new_cards_first=config.review_new_cards_first,
        )

    def due_count(self) -> int:
        return count_due_cards(self.repository.get_all_cards(), self.clock())

    def next_card(self) -> Optional[Card]:
        due = self.due_cards()
        return due[0] if due else None

    def preview(self, card_id: int) -> dict[Rating, int]:
        """Days until due for each rating, without changing the card.

        Raises:
            CardNotFoundError: If the card does not exist
        """
        card = self._get_card(card_id)
        scheduler = Scheduler(self.load_config().scheduler)
        return {
            rating: scheduled.interval_days
            for rating, scheduled in scheduler.preview(card, self.clock()).items()
        }

    def review(self, card_id: int, rating: RatingInput) -> ReviewOutcome:
        """Record a review of a card.

        The scheduling update is written first. Sibling burial runs after it
        as a separate step; a burial failure (a database error, or a burial
        time that cannot be computed) is logged and reported on the outcome
        but never undoes the scheduling update.

        Raises:
            InvalidRatingError: If the rating is not recognised
            CardNotFoundError: If the card does not exist
            PersistenceError: If the scheduling update cannot be written
        """
        config = self.load_config()
        card = self._get_card(card_id)
        now = self.clock()

        scheduled = Scheduler(config.scheduler).review(card, rating, now)
        fields = scheduled.card.scheduling_fields()
        # buried_until is only ever written by the sibling's review
        fields.pop("buried_until")
        updated = self.repository.update_card_fields(card_id, fields)

        outcome = ReviewOutcome(card=updated, rating=scheduled.rating)
        logger.info("%s", outcome)

        if config.bury_sibling_cards:
            try:
                outcome.buried_sibling = self._bury_sibling(updated, now, config)
            except (PersistenceError, ValueError, OverflowError) as e:
                logger.error("Could not bury sibling of card %s: %s", card_id, e)
                outcome.burial_error = str(e)

        return outcome

    def _bury_sibling(
        self, card: Card, now: datetime, config: ReviewConfig
    ) -> Optional[Card]:
        note_cards = self.repository.get_cards_for_note(card.note_id)
        buried = bury_sibling(card, note_cards, now, config.burial_timezone)
        if buried is None:
            return None
        return self.repository.update_card_fields(
            buried.id, {"buried_until": buried.buried_until}
        )

    def _get_card(self, card_id: int) -> Card:
        card = self.repository.get_card_by_id(card_id)
        if card is None:
            raise CardNotFoundError(f"Card {card_id} not found")
        return card
