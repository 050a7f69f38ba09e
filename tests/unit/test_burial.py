"""Unit tests for sibling burial."""

import logging
from datetime import datetime, timedelta, timezone

from notedeck.models.card import Card, CardDirection
from notedeck.services.burial import bury_sibling, find_sibling, next_day_midnight

NOW = datetime(2024, 1, 1, 15, 30, tzinfo=timezone.utc)


def make_card(card_id: int, direction: CardDirection, note_id: int = 1) -> Card:
    """Helper to create a card of a note in a given direction."""
    return Card(
        front="front",
        back="back",
        id=card_id,
        note_id=note_id,
        direction=direction,
        due=NOW,
    )


class TestNextDayMidnight:
    """Tests for the burial time boundary."""

    def test_utc(self):
        """Test the next midnight in UTC."""
        assert next_day_midnight(NOW, timezone.utc) == datetime(2024, 1, 2, tzinfo=timezone.utc)

    def test_review_just_before_midnight(self):
        """Test a late review is buried only until the following midnight."""
        late = datetime(2024, 1, 1, 23, 59, 59, tzinfo=timezone.utc)
        assert next_day_midnight(late, timezone.utc) == datetime(2024, 1, 2, tzinfo=timezone.utc)

    def test_local_day_differs_from_utc_day(self):
        """Test the day boundary follows the given zone, not UTC."""
        plus_one = timezone(timedelta(hours=1))
        # 23:30 UTC is already 00:30 on Jan 2 at UTC+1
        review_time = datetime(2024, 1, 1, 23, 30, tzinfo=timezone.utc)

        result = next_day_midnight(review_time, plus_one)

        assert result == datetime(2024, 1, 3, tzinfo=plus_one)
        assert result == datetime(2024, 1, 2, 23, 0, tzinfo=timezone.utc)

    def test_result_is_utc(self):
        """Test the boundary is returned in UTC."""
        result = next_day_midnight(NOW, timezone(timedelta(hours=-5)))
        assert result.utcoffset() == timedelta(0)

    def test_system_local_time(self):
        """Test the default zone gives a midnight within the next day."""
        result = next_day_midnight(NOW)

        assert NOW < result <= NOW + timedelta(days=1, hours=1)
        local = result.astimezone()
        assert (local.hour, local.minute, local.second) == (0, 0, 0)


class TestFindSibling:
    """Tests for sibling lookup."""

    def test_finds_opposite_direction(self):
        """Test the reverse card is found for the primary card."""
        primary = make_card(1, CardDirection.FRONT_TO_BACK)
        reverse = make_card(2, CardDirection.BACK_TO_FRONT)

        assert find_sibling(primary, [primary, reverse]) is reverse
        assert find_sibling(reverse, [primary, reverse]) is primary

    def test_no_sibling(self):
        """Test a single-direction note has no sibling."""
        primary = make_card(1, CardDirection.FRONT_TO_BACK)
        assert find_sibling(primary, [primary]) is None

    def test_ignores_other_notes(self):
        """Test cards of other notes are never siblings."""
        primary = make_card(1, CardDirection.FRONT_TO_BACK, note_id=1)
        other_note = make_card(2, CardDirection.BACK_TO_FRONT, note_id=2)

        assert find_sibling(primary, [primary, other_note]) is None

    def test_ignores_same_direction(self):
        """Test a second card in the same direction is not a sibling."""
        primary = make_card(1, CardDirection.FRONT_TO_BACK)
        duplicate = make_card(2, CardDirection.FRONT_TO_BACK)

        assert find_sibling(primary, [primary, duplicate]) is None

    def test_duplicates_pick_first_and_warn(self, caplog):
        """Test the first match wins when a note has duplicate directions."""
        primary = make_card(1, CardDirection.FRONT_TO_BACK)
        first = make_card(2, CardDirection.BACK_TO_FRONT)
        second = make_card(3, CardDirection.BACK_TO_FRONT)

        with caplog.at_level(logging.WARNING, logger="notedeck.services.burial"):
            result = find_sibling(primary, [primary, first, second])

        assert result is first
        assert "2 cards with direction back-to-front" in caplog.text


class TestBurySibling:
    """Tests for computing a sibling burial."""

    def test_buries_until_next_midnight(self):
        """Test the sibling gets buried_until set to the next midnight."""
        primary = make_card(1, CardDirection.FRONT_TO_BACK)
        reverse = make_card(2, CardDirection.BACK_TO_FRONT)

        result = bury_sibling(primary, [primary, reverse], NOW, timezone.utc)

        assert result.id == 2
        assert result.buried_until == datetime(2024, 1, 2, tzinfo=timezone.utc)
        assert reverse.buried_until is None

    def test_no_sibling_is_noop(self):
        """Test nothing is buried when there is no sibling."""
        primary = make_card(1, CardDirection.FRONT_TO_BACK)
        assert bury_sibling(primary, [primary], NOW, timezone.utc) is None
