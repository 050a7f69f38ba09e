"""Unit tests for due-set selection."""

from datetime import datetime, timedelta, timezone

import pytest

from notedeck.models.card import Card, CardState
from notedeck.services.due_selector import count_due_cards, is_due, select_due_cards

NOW = datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)


def make_card(card_id: int, due: datetime, **kwargs) -> Card:
    """Helper to create a card with an id and due date."""
    return Card(front=f"front {card_id}", back=f"back {card_id}", id=card_id, due=due, **kwargs)


class TestIsDue:
    """Tests for the due predicate."""

    def test_past_due_unburied(self):
        """Test a card past its due date is due."""
        assert is_due(make_card(1, NOW - timedelta(hours=1)), NOW)

    def test_due_exactly_now(self):
        """Test the due boundary is inclusive."""
        assert is_due(make_card(1, NOW), NOW)

    def test_future_due(self):
        """Test a card due later is not due."""
        assert not is_due(make_card(1, NOW + timedelta(seconds=1)), NOW)

    def test_buried_in_future_excluded(self):
        """Test burial hides a due card."""
        card = make_card(1, NOW - timedelta(days=1), buried_until=NOW + timedelta(hours=1))
        assert not is_due(card, NOW)

    def test_burial_expired_included(self):
        """Test an expired burial no longer hides the card."""
        card = make_card(1, NOW - timedelta(days=1), buried_until=NOW - timedelta(hours=1))
        assert is_due(card, NOW)

    def test_burial_ending_now_included(self):
        """Test the burial boundary is inclusive."""
        card = make_card(1, NOW - timedelta(days=1), buried_until=NOW)
        assert is_due(card, NOW)

    def test_burial_boundary_at_midnight(self):
        """Test a card buried until midnight reappears just after it."""
        midnight = datetime(2024, 1, 2, tzinfo=timezone.utc)
        card = make_card(1, NOW - timedelta(days=1), buried_until=midnight)

        assert not is_due(card, datetime(2024, 1, 1, 23, 59, 59, tzinfo=timezone.utc))
        assert is_due(card, datetime(2024, 1, 2, 0, 0, 1, tzinfo=timezone.utc))

    def test_burial_does_not_make_undue_card_due(self):
        """Test an expired burial alone does not make a future card due."""
        card = make_card(1, NOW + timedelta(days=1), buried_until=NOW - timedelta(days=1))
        assert not is_due(card, NOW)


class TestSelectDueCards:
    """Tests for the ordered due set."""

    def test_filters_and_orders_by_due(self):
        """Test only due cards are returned, oldest due first."""
        overdue = make_card(1, NOW - timedelta(days=1))
        later = make_card(2, NOW + timedelta(days=1))
        exactly_now = make_card(3, NOW)

        result = select_due_cards([exactly_now, later, overdue], NOW)

        assert [card.id for card in result] == [1, 3]

    def test_new_cards_first(self):
        """Test New cards come before others when requested."""
        review = make_card(1, NOW - timedelta(days=3), state=CardState.REVIEW)
        new = make_card(2, NOW - timedelta(hours=1))
        relearning = make_card(3, NOW - timedelta(days=5), state=CardState.RELEARNING)
        learning = make_card(4, NOW - timedelta(days=2), state=CardState.LEARNING)

        result = select_due_cards([review, new, relearning, learning], NOW, review_new_cards_first=True)

        assert [card.id for card in result] == [2, 4, 1, 3]

    def test_due_order_ignores_state_by_default(self):
        """Test state plays no part in the default order."""
        review = make_card(1, NOW - timedelta(days=3), state=CardState.REVIEW)
        new = make_card(2, NOW - timedelta(hours=1))

        result = select_due_cards([new, review], NOW)

        assert [card.id for card in result] == [1, 2]

    def test_ties_keep_input_order(self):
        """Test cards with equal keys stay in input order."""
        cards = [make_card(i, NOW - timedelta(hours=1)) for i in (5, 2, 9)]

        assert [c.id for c in select_due_cards(cards, NOW)] == [5, 2, 9]
        assert [c.id for c in select_due_cards(cards, NOW, review_new_cards_first=True)] == [5, 2, 9]

    def test_buried_cards_excluded(self):
        """Test buried cards are left out of the due set."""
        buried = make_card(1, NOW - timedelta(days=1), buried_until=NOW + timedelta(hours=12))
        free = make_card(2, NOW - timedelta(days=1))

        result = select_due_cards([buried, free], NOW)

        assert [card.id for card in result] == [2]

    def test_empty_input(self):
        """Test no cards gives an empty due set."""
        assert select_due_cards([], NOW) == []


class TestCountDueCards:
    """Tests for the due count."""

    @pytest.mark.parametrize("offset_hours", [-48, -1, 0, 1, 48])
    def test_count_matches_selection(self, offset_hours):
        """Test the count always agrees with the selection."""
        at = NOW + timedelta(hours=offset_hours)
        cards = [
            make_card(1, NOW - timedelta(days=1)),
            make_card(2, NOW),
            make_card(3, NOW + timedelta(days=1)),
            make_card(4, NOW - timedelta(days=2), buried_until=NOW + timedelta(hours=6)),
            make_card(5, NOW - timedelta(days=2), buried_until=NOW - timedelta(hours=6)),
        ]

        assert count_due_cards(cards, at) == len(select_due_cards(cards, at))

    def test_count_excludes_buried(self):
        """Test buried cards are not counted."""
        cards = [
            make_card(1, NOW - timedelta(days=1)),
            make_card(2, NOW - timedelta(days=1), buried_until=NOW + timedelta(days=1)),
        ]
        assert count_due_cards(cards, NOW) == 1
