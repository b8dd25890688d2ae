"""Shared test fixtures for the task board tests."""

import json
import sys
from datetime import datetime, timezone
from pathlib import Path

import pytest

# Ensure the project root (pkg/, board_server.py) is importable
sys.path.insert(0, str(Path(__file__).parent.parent))

from pkg.taskboard.slots import MemorySlot
from pkg.taskboard.store import BoardStore

FIXED_NOW = datetime(2024, 5, 1, 9, 30, tzinfo=timezone.utc)


def make_document(columns, next_sequence=100, **card_overrides) -> str:
    """
    Document text from {column_id: [card ids]} (insertion order kept).

    Card fields default to a title equal to the id; card_overrides maps a
    card id to extra fields.
    """
    cards = {}
    for card_ids in columns.values():
        for card_id in card_ids:
            cards[card_id] = {
                "id": card_id,
                "title": card_id,
                "description": "",
                "priority": "medium",
                "labels": [],
                "dueDate": None,
                "createdAt": FIXED_NOW.isoformat(),
            }
            cards[card_id].update(card_overrides.get(card_id, {}))
    return json.dumps({
        "columns": [
            {"id": cid, "title": cid.upper(), "cardIds": list(ids)}
            for cid, ids in columns.items()
        ],
        "cards": cards,
        "nextSequence": next_sequence,
        "labelColors": {"bug": "#D62828"},
    })


@pytest.fixture
def slot():
    return MemorySlot()


@pytest.fixture
def store(slot):
    """Store over an empty slot (so it starts from the seed board)."""
    return BoardStore(slot, clock=lambda: FIXED_NOW)


@pytest.fixture
def board(store):
    """Store holding a small known board: todo [A, B, C], doing [X, Y], done []."""
    assert store.import_document(make_document({
        "todo": ["A", "B", "C"],
        "doing": ["X", "Y"],
        "done": [],
    }))
    return store
