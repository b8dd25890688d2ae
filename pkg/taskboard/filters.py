"""
Read-side helpers: card filtering, due-date checks, and board statistics.

Nothing here mutates a document; the store hands out copies and presentation
code narrows them down with these predicates.
"""
from dataclasses import dataclass
from datetime import date
from typing import Optional, List, Dict, Any

from .schema import BoardDocument, Card, Priority


@dataclass(frozen=True)
class CardFilter:
    """Search text, priority, and label criteria. Empty criteria match everything."""

    query: str = ""
    priority: Optional[Priority] = None
    label: Optional[str] = None

    @property
    def active(self) -> bool:
        return bool(self.query or self.priority or self.label)

    def matches(self, card: Optional[Card]) -> bool:
        if card is None:
            return False
        q = self.query.lower()
        matches_search = (
            not q
            or q in card.title.lower()
            or q in card.description.lower()
            or any(q in label.lower() for label in card.labels)
        )
        matches_priority = self.priority is None or card.priority == self.priority
        matches_label = self.label is None or self.label in card.labels
        return matches_search and matches_priority and matches_label


def visible_cards(document: BoardDocument, card_filter: Optional[CardFilter] = None) -> Dict[str, List[Card]]:
    """Cards per column, in display order, that pass the filter."""
    card_filter = card_filter or CardFilter()
    return {
        col.id: [
            document.cards[card_id]
            for card_id in col.card_ids
            if card_filter.matches(document.cards.get(card_id))
        ]
        for col in document.columns
    }


def is_overdue(due: Optional[date], today: Optional[date] = None) -> bool:
    if due is None:
        return False
    return due < (today or date.today())


def is_due_soon(due: Optional[date], today: Optional[date] = None, days: int = 3) -> bool:
    """Due today or within the next `days` days."""
    if due is None:
        return False
    delta = (due - (today or date.today())).days
    return 0 <= delta <= days


def board_stats(document: BoardDocument, today: Optional[date] = None) -> Dict[str, Any]:
    """Counts per column and per priority, plus overdue / due-soon totals."""
    by_priority = {p.value: 0 for p in Priority}
    overdue = 0
    due_soon = 0
    for card in document.cards.values():
        by_priority[card.priority.value] += 1
        if is_overdue(card.due_date, today):
            overdue += 1
        elif is_due_soon(card.due_date, today):
            due_soon += 1
    return {
        "total": len(document.cards),
        "by_column": {col.id: len(col.card_ids) for col in document.columns},
        "by_priority": by_priority,
        "overdue": overdue,
        "due_soon": due_soon,
    }
