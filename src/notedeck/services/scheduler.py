"""FSRS (Free Spaced Repetition Scheduler) memory model and card scheduling.

Implements FSRS-6 with short-term learning steps, following the published
algorithm: https://github.com/open-spaced-repetition/fsrs4anki

Key concepts:
- Stability (S): days until the probability of recall drops to 90%.
- Difficulty (D): intrinsic hardness of the item, between 1 and 10.
- Retrievability (R): probability of recall after t days at stability S.
- Rating: 1=Again, 2=Hard, 3=Good, 4=Easy

The functions here are pure: the caller supplies the card, the rating, the
parameters and the current time, and gets back an updated copy of the card.
"""

import logging
import math
from collections.abc import Sequence
from dataclasses import replace
from datetime import datetime, timedelta
from typing import Optional, Union

from notedeck.config import SchedulerParameters
from notedeck.models.card import Card, CardState, Rating, UserRating, ensure_utc
from notedeck.models.review import ScheduledReview

logger = logging.getLogger(__name__)

# FSRS-6 default parameters
# w[0..3]: initial stability for Again/Hard/Good/Easy
# w[4..5]: initial difficulty
# w[6]: difficulty change per grade
# w[7]: difficulty mean reversion
# w[8..10]: stability after recall
# w[11..14]: stability after forgetting
# w[15..16]: hard penalty / easy bonus
# w[17..19]: same-day (short-term) stability
# w[20]: forgetting curve decay
DEFAULT_WEIGHTS = (
    0.212, 1.2931, 2.3065, 8.2956, 6.4133, 0.8334, 3.0194, 0.001, 1.8722,
    0.1666, 0.796, 1.4835, 0.0614, 0.2629, 1.6483, 0.6014, 1.8729, 0.5425,
    0.0912, 0.0658, 0.1542,
)

MIN_STABILITY = 0.001
MAX_STABILITY = 36500.0
MIN_DIFFICULTY = 1.0
MAX_DIFFICULTY = 10.0
MIN_INITIAL_STABILITY = 0.1

MINUTES_PER_DAY = 24 * 60
SECONDS_PER_DAY = 24 * 60 * 60

RatingInput = Union[Rating, UserRating, int, str]


class Scheduler:
    """Computes the next scheduling state of a card from a rating."""

    def __init__(
        self,
        parameters: Optional[SchedulerParameters] = None,
        weights: Optional[Sequence[float]] = None,
    ) -> None:
        """Initialize the scheduler.

        Args:
            parameters: Retention target, maximum interval and learning steps;
                validated into range on the way in
            weights: The 21 FSRS-6 model weights (defaults to the published ones)
        """
        self.parameters = (parameters or SchedulerParameters()).clamped()
        self.w = tuple(weights) if weights is not None else DEFAULT_WEIGHTS
        if len(self.w) != len(DEFAULT_WEIGHTS):
            raise ValueError(
                f"Expected {len(DEFAULT_WEIGHTS)} weights, got {len(self.w)}"
            )
        self.decay = -self.w[20]
        self.factor = 0.9 ** (1 / self.decay) - 1

    # ==================== Public API ====================

    def review(self, card: Card, rating: RatingInput, now: datetime) -> ScheduledReview:
        """Apply a rating to a card at the given time.

        The input card is left untouched; the returned ScheduledReview holds
        an updated copy with new stability, difficulty, state, reps, lapses,
        last_review and due.

        Raises:
            InvalidRatingError: If the rating is not one of the four grades
        """
        rating = Rating.parse(rating)
        now = ensure_utc(now)

        stability, difficulty = self._next_memory_state(card, rating, now)
        state, step, minutes = self._next_step(card, rating, stability, now)

        updated = replace(
            card,
            stability=stability,
            difficulty=difficulty,
            reps=card.reps + 1,
            lapses=card.lapses + 1 if rating == Rating.AGAIN else card.lapses,
            state=state,
            learning_step=step,
            last_review=now,
            due=now + timedelta(minutes=minutes),
        )

        logger.debug(
            "Card %s: %s %s -> %s, S=%.4f D=%.4f, due in %.1f min",
            card.id,
            rating.name,
            CardState(card.state).name,
            state.name,
            stability,
            difficulty,
            minutes,
        )
        return ScheduledReview(
            rating=rating, card=updated, review_time=now, scheduled_minutes=minutes
        )

    def preview(self, card: Card, now: datetime) -> dict[Rating, ScheduledReview]:
        """Run every rating against the card without committing any of them."""
        return {rating: self.review(card, rating, now) for rating in Rating}

    # ==================== Memory Model ====================

    def forgetting_curve(self, elapsed_days: float, stability: float) -> float:
        """Probability of recall after elapsed_days at the given stability."""
        if elapsed_days <= 0:
            return 1.0
        return (1 + self.factor * elapsed_days / stability) ** self.decay

    def next_interval(self, stability: float) -> int:
        """Whole days until retrievability falls to the requested retention."""
        retention = self.parameters.request_retention
        interval = stability / self.factor * (retention ** (1 / self.decay) - 1)
        return int(min(max(round(interval), 1), self.parameters.maximum_interval))

    def initial_stability(self, rating: Rating) -> float:
        return max(self.w[rating - 1], MIN_INITIAL_STABILITY)

    def initial_difficulty(self, rating: Rating, clamp: bool = True) -> float:
        difficulty = self.w[4] - math.exp(self.w[5] * (rating - 1)) + 1
        return _clamp_difficulty(difficulty) if clamp else difficulty

    def next_difficulty(self, difficulty: float, rating: Rating) -> float:
        """Move difficulty by the grade with linear damping and mean reversion."""
        delta = -self.w[6] * (rating - 3)
        damped = difficulty + delta * (10 - difficulty) / 9
        target = self.initial_difficulty(Rating.EASY, clamp=False)
        return _clamp_difficulty(self.w[7] * target + (1 - self.w[7]) * damped)

    def recall_stability(
        self, difficulty: float, stability: float, retrievability: float, rating: Rating
    ) -> float:
        hard_penalty = self.w[15] if rating == Rating.HARD else 1.0
        easy_bonus = self.w[16] if rating == Rating.EASY else 1.0
        growth = (
            math.exp(self.w[8])
            * (11 - difficulty)
            * stability ** (-self.w[9])
            * (math.exp((1 - retrievability) * self.w[10]) - 1)
            * hard_penalty
            * easy_bonus
        )
        return _clamp_stability(stability * (1 + growth))

    def forget_stability(
        self, difficulty: float, stability: float, retrievability: float
    ) -> float:
        long_term = (
            self.w[11]
            * difficulty ** (-self.w[12])
            * ((stability + 1) ** self.w[13] - 1)
            * math.exp((1 - retrievability) * self.w[14])
        )
        short_term = stability / math.exp(self.w[17] * self.w[18])
        return _clamp_stability(min(long_term, short_term))

    def short_term_stability(self, stability: float, rating: Rating) -> float:
        """Stability after a second review on the same day."""
        increase = math.exp(self.w[17] * (rating - 3 + self.w[18])) * stability ** (
            -self.w[19]
        )
        if rating >= Rating.GOOD:
            increase = max(increase, 1.0)
        return _clamp_stability(stability * increase)

    def _next_memory_state(
        self, card: Card, rating: Rating, now: datetime
    ) -> tuple[float, float]:
        if card.state == CardState.NEW or card.stability <= 0 or card.difficulty <= 0:
            return self.initial_stability(rating), self.initial_difficulty(rating)

        elapsed_days = _elapsed_days(card, now)
        difficulty = self.next_difficulty(card.difficulty, rating)
        if elapsed_days < 1:
            return self.short_term_stability(card.stability, rating), difficulty

        retrievability = self.forgetting_curve(elapsed_days, card.stability)
        if rating == Rating.AGAIN:
            stability = self.forget_stability(card.difficulty, card.stability, retrievability)
        else:
            stability = self.recall_stability(
                card.difficulty, card.stability, retrievability, rating
            )
        return stability, difficulty

    # ==================== State Transitions ====================

    def _next_step(
        self,
        card: Card,
        rating: Rating,
        stability: float,
        now: datetime,
    ) -> tuple[CardState, int, float]:
        """Return (state, learning step, minutes until due)."""
        if card.state == CardState.REVIEW:
            if rating == Rating.AGAIN:
                steps = self.parameters.relearning_steps
                if steps:
                    return CardState.RELEARNING, 0, steps[0]
                return CardState.REVIEW, 0, self.next_interval(stability) * MINUTES_PER_DAY
            days = self._ordered_review_interval(card, rating, stability, now)
            return CardState.REVIEW, 0, days * MINUTES_PER_DAY

        if card.state == CardState.RELEARNING:
            steps = self.parameters.relearning_steps
            stay_in = CardState.RELEARNING
            step = card.learning_step
        else:
            steps = self.parameters.learning_steps
            stay_in = CardState.LEARNING
            step = 0 if card.state == CardState.NEW else card.learning_step

        graduate = (CardState.REVIEW, 0, self.next_interval(stability) * MINUTES_PER_DAY)

        if not steps or (step >= len(steps) and rating != Rating.AGAIN):
            return graduate
        if rating == Rating.AGAIN:
            return stay_in, 0, steps[0]
        if rating == Rating.HARD:
            if step == 0:
                minutes = steps[0] * 1.5 if len(steps) == 1 else (steps[0] + steps[1]) / 2
                return stay_in, 0, minutes
            return stay_in, step, steps[step]
        if rating == Rating.GOOD:
            if step + 1 >= len(steps):
                return graduate
            return stay_in, step + 1, steps[step + 1]
        return graduate

    def _ordered_review_interval(
        self,
        card: Card,
        rating: Rating,
        stability: float,
        now: datetime,
    ) -> int:
        """Day interval for a passing review, keeping Hard <= Good < Easy."""
        intervals = {rating: self.next_interval(stability)}
        for other in (Rating.HARD, Rating.GOOD, Rating.EASY):
            if other not in intervals:
                other_stability, _ = self._next_memory_state(card, other, now)
                intervals[other] = self.next_interval(other_stability)

        hard = min(intervals[Rating.HARD], intervals[Rating.GOOD])
        good = max(intervals[Rating.GOOD], hard + 1)
        easy = max(intervals[Rating.EASY], good + 1)
        ordered = {Rating.HARD: hard, Rating.GOOD: good, Rating.EASY: easy}
        return min(ordered[rating], self.parameters.maximum_interval)


def compute_next_review(
    card: Card,
    rating: RatingInput,
    params: SchedulerParameters,
    now: datetime,
) -> Card:
    """Return an updated copy of the card after a review at `now`."""
    return Scheduler(params).review(card, rating, now).card


def preview_intervals(
    card: Card, params: SchedulerParameters, now: datetime
) -> dict[Rating, int]:
    """Days until the due date each rating would produce, without committing."""
    return {
        rating: scheduled.interval_days
        for rating, scheduled in Scheduler(params).preview(card, now).items()
    }


def _elapsed_days(card: Card, now: datetime) -> float:
    if card.last_review is None:
        return 0.0
    return max((now - ensure_utc(card.last_review)).total_seconds() / SECONDS_PER_DAY, 0.0)


def _clamp_stability(stability: float) -> float:
    return min(max(stability, MIN_STABILITY), MAX_STABILITY)


def _clamp_difficulty(difficulty: float) -> float:
    return min(max(difficulty, MIN_DIFFICULTY), MAX_DIFFICULTY)
