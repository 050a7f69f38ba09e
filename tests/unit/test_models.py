"""Unit tests for the data models."""

from datetime import datetime, timedelta, timezone

import pytest

from notedeck.models.card import (
    SCHEDULING_FIELDS,
    Card,
    CardDirection,
    CardState,
    Rating,
    UserRating,
    ensure_utc,
)
from notedeck.models.note import Note
from notedeck.models.review import ReviewOutcome, ScheduledReview

NOW = datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)


class TestCard:
    """Tests for the Card model."""

    def test_new_card_defaults(self):
        """Test a new card is unreviewed and due immediately."""
        before = datetime.now(timezone.utc)
        card = Card(front="hund", back="dog")

        assert card.state == CardState.NEW
        assert card.reps == 0
        assert card.lapses == 0
        assert card.last_review is None
        assert card.buried_until is None
        assert card.direction == CardDirection.FRONT_TO_BACK
        assert card.due >= before

    def test_string_and_int_conversion(self):
        """Test direction and state given as raw values are converted."""
        card = Card(front="a", back="b", direction="back-to-front", state=2)

        assert card.direction is CardDirection.BACK_TO_FRONT
        assert card.state is CardState.REVIEW

    def test_scheduling_fields(self):
        """Test only scheduler-owned fields are exported."""
        fields = Card(front="a", back="b", due=NOW).scheduling_fields()

        assert tuple(fields) == SCHEDULING_FIELDS
        assert "front" not in fields
        assert fields["due"] == NOW

    def test_is_buried(self):
        """Test the burial window excludes its end point."""
        card = Card(front="a", back="b", buried_until=NOW)

        assert card.is_buried(NOW - timedelta(seconds=1))
        assert not card.is_buried(NOW)


class TestEnums:
    """Tests for rating and direction enums."""

    def test_opposite_direction(self):
        """Test each direction knows its opposite."""
        assert CardDirection.FRONT_TO_BACK.opposite is CardDirection.BACK_TO_FRONT
        assert CardDirection.BACK_TO_FRONT.opposite is CardDirection.FRONT_TO_BACK

    def test_user_rating_mapping(self):
        """Test Fail maps to Again and Pass to Easy."""
        assert UserRating.FAIL.to_rating() == Rating.AGAIN
        assert UserRating.PASS.to_rating() == Rating.EASY

    @pytest.mark.parametrize(
        "value,expected",
        [
            (Rating.HARD, Rating.HARD),
            (3, Rating.GOOD),
            ("4", Rating.EASY),
            (" again ", Rating.AGAIN),
            ("Fail", Rating.AGAIN),
            (UserRating.PASS, Rating.EASY),
        ],
    )
    def test_parse(self, value, expected):
        """Test the accepted rating spellings."""
        assert Rating.parse(value) == expected


class TestEnsureUtc:
    """Tests for datetime normalisation."""

    def test_naive_is_utc(self):
        """Test naive datetimes are taken as UTC."""
        assert ensure_utc(datetime(2024, 1, 1, 12, 0)) == NOW
        assert ensure_utc(datetime(2024, 1, 1, 12, 0)).tzinfo == timezone.utc

    def test_aware_is_converted(self):
        """Test aware datetimes are converted to UTC."""
        local = datetime(2024, 1, 1, 14, 0, tzinfo=timezone(timedelta(hours=2)))
        assert ensure_utc(local).hour == 12


class TestNote:
    """Tests for the Note model."""

    def test_equality_by_title(self):
        """Test notes compare and hash by title."""
        a = Note(title="hund", content="dog")
        b = Note(title="hund", content="hound")

        assert a == b
        assert len({a, b}) == 1


class TestReviewModels:
    """Tests for review result models."""

    def test_interval_days_rounds(self):
        """Test intervals are rounded to whole days."""
        card = Card(front="a", back="b", due=NOW)
        scheduled = ScheduledReview(
            rating=Rating.GOOD, card=card, review_time=NOW, scheduled_minutes=2.6 * 1440
        )

        assert scheduled.interval_days == 3
        assert scheduled.due == NOW

    def test_short_interval_rounds_to_zero(self):
        """Test a learning step shows as zero days."""
        card = Card(front="a", back="b", due=NOW)
        scheduled = ScheduledReview(
            rating=Rating.AGAIN, card=card, review_time=NOW, scheduled_minutes=10
        )
        assert scheduled.interval_days == 0

    def test_outcome_str(self):
        """Test the outcome summary names card, rating and due date."""
        outcome = ReviewOutcome(card=Card(front="a", back="b", id=7, due=NOW), rating=Rating.EASY)
        assert str(outcome) == "Card 7 rated EASY, next due 2024-01-01T12:00:00+00:00"
