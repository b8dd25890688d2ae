"""
Built-in defaults: column layout, label palette, and the example board shown
on first start (or when the persisted board cannot be read).
"""
from datetime import datetime, timedelta, timezone
from typing import Optional

from .schema import BoardDocument, Card, Column, Priority, format_ticket_id

STORAGE_KEY = "kanban-board"
DEFAULT_CARD_TITLE = "New Ticket"
DEFAULT_COLUMN_TITLE = "NEW COLUMN"

DEFAULT_COLUMNS = [
    ("backlog", "BACKLOG"),
    ("todo", "TO DO"),
    ("progress", "IN PROGRESS"),
    ("review", "IN REVIEW"),
    ("done", "DONE"),
]

DEFAULT_LABEL_COLORS = {
    "bug": "#D62828",
    "feature": "#06A77D",
    "chore": "#F77F00",
    "design": "#8338EC",
    "urgent": "#FF006E",
    "backend": "#004643",
    "frontend": "#FF6B35",
    "testing": "#7209B7",
}

# Fallback colours for labels nobody registered
LABEL_PALETTE = [
    "#D62828", "#06A77D", "#F77F00", "#8338EC",
    "#FF006E", "#004643", "#FF6B35", "#7209B7",
    "#3A86FF", "#FCBF49",
]

# (column, title, description, priority, labels, due in days)
_EXAMPLE_CARDS = [
    ("backlog", "Design onboarding flow",
     "Sketch the first-run experience for new users.",
     Priority.LOW, ["design", "frontend"], None),
    ("backlog", "Evaluate search indexing",
     "Compare options for full-text search over tickets.",
     Priority.MEDIUM, ["backend"], 14),
    ("todo", "Fix login redirect loop",
     "Users bounce between /login and /home after a session expires.",
     Priority.CRITICAL, ["bug", "urgent"], 1),
    ("todo", "Add CSV export",
     "",
     Priority.MEDIUM, ["feature"], 7),
    ("progress", "Refactor board persistence",
     "Move persistence behind a key-value slot.",
     Priority.HIGH, ["backend", "chore"], 3),
    ("review", "Write drag-and-drop tests",
     "Cover same-column and cross-column moves.",
     Priority.HIGH, ["testing"], None),
    ("done", "Set up project skeleton",
     "",
     Priority.LOW, ["chore"], None),
]


def empty_document() -> BoardDocument:
    """Default columns and labels, no cards."""
    return BoardDocument(
        columns=[Column(id=cid, title=title) for cid, title in DEFAULT_COLUMNS],
        cards={},
        next_sequence=1,
        label_colors=dict(DEFAULT_LABEL_COLORS),
    )


def seed_document(now: Optional[datetime] = None) -> BoardDocument:
    """A fresh example board, self-consistent and ready to persist."""
    now = now or datetime.now(timezone.utc)
    doc = empty_document()
    for column_id, title, description, priority, labels, due_in in _EXAMPLE_CARDS:
        card_id = format_ticket_id(doc.next_sequence)
        doc.next_sequence += 1
        doc.cards[card_id] = Card(
            id=card_id,
            title=title,
            description=description,
            priority=priority,
            labels=list(labels),
            due_date=(now + timedelta(days=due_in)).date() if due_in is not None else None,
            created_at=now,
        )
        doc.column(column_id).card_ids.append(card_id)
    return doc
