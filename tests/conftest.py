"""Pytest fixtures for Notedeck tests."""

import tempfile
from datetime import datetime, timezone
from pathlib import Path

import pytest

from notedeck.config import Settings
from notedeck.database.repository import Repository
from notedeck.models.card import Card
from notedeck.models.note import Note

NOW = datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def temp_db_path():
    """Provide a temporary database path."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir) / "test.db"


@pytest.fixture
def repository(temp_db_path):
    """Provide a repository with a temporary database."""
    return Repository(f"sqlite:///{temp_db_path}")


@pytest.fixture
def settings(temp_db_path):
    """Provide settings pointing at the temporary database."""
    return Settings(database_path=temp_db_path)


@pytest.fixture
def now():
    """A fixed review time."""
    return NOW


@pytest.fixture
def flashcard_note(repository):
    """A flashcard note with a front-to-back card and its reverse card."""
    note = repository.add_note(Note(title="hund", note_type="flashcard", is_flashcard_note=True))
    primary, reverse = repository.create_cards(
        Card(front="hund", back="dog", note_id=note.id, due=NOW), reverse=True
    )
    return note, primary, reverse
