"""
Board document schema.

A board is one normalized document:
  columns   - ordered list of Column (each holding an ordered list of card ids)
  cards     - card id -> Card
  nextSequence - ticket counter, never reused
  labelColors  - label name -> colour token

Everything read from disk or from an import goes through BoardDocument.from_dict,
which rejects anything that does not match this shape.
"""
from enum import Enum
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from typing import Optional, List, Dict, Any
import logging
import re

logger = logging.getLogger(__name__)

TICKET_PREFIX = "TKT-"
_TICKET_RE = re.compile(r"^TKT-(\d+)$")


class MalformedDocument(Exception):
    """Raised when a board document does not have the expected shape."""
    pass


class Priority(Enum):
    """Card priority, most urgent first."""
    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


DEFAULT_PRIORITY = Priority.MEDIUM


def format_ticket_id(sequence: int) -> str:
    """TKT-001, TKT-002, ... (wider numbers are not truncated)."""
    return f"{TICKET_PREFIX}{sequence:03d}"


def ticket_sequence(card_id: str) -> Optional[int]:
    """Sequence number encoded in a ticket id, or None for foreign ids."""
    m = _TICKET_RE.match(card_id)
    return int(m.group(1)) if m else None


def title_is_blank(title: Optional[str]) -> bool:
    """Editors must not save a card whose title is empty or whitespace."""
    return not title or not title.strip()


def unique_labels(labels) -> List[str]:
    """Order-preserving de-duplication (labels behave as a set)."""
    seen = []
    for label in labels:
        if label not in seen:
            seen.append(label)
    return seen


def parse_timestamp(value: str) -> datetime:
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    ts = datetime.fromisoformat(value)
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    return ts


def parse_due_date(value: str) -> date:
    # Accept full timestamps too; only the calendar day matters
    return date.fromisoformat(value[:10])


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Field readers (strict, for document validation)
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


def _require(data: Dict[str, Any], key: str, kind, where: str):
    if key not in data:
        raise MalformedDocument(f"{where}: missing '{key}'")
    value = data[key]
    if not isinstance(value, kind) or isinstance(value, bool) and kind is not bool:
        raise MalformedDocument(f"{where}: '{key}' has wrong type {type(value).__name__}")
    return value


def _optional(data: Dict[str, Any], key: str, kind, where: str, default):
    if data.get(key) is None:
        return default
    return _require(data, key, kind, where)


def _string_list(value, where: str) -> List[str]:
    if not all(isinstance(item, str) for item in value):
        raise MalformedDocument(f"{where}: expected a list of strings")
    return list(value)


@dataclass
class Card:
    """A single ticket on the board."""

    id: str
    title: str
    description: str = ""
    priority: Priority = DEFAULT_PRIORITY
    labels: List[str] = field(default_factory=list)
    due_date: Optional[date] = None
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "priority": self.priority.value,
            "labels": list(self.labels),
            "dueDate": self.due_date.isoformat() if self.due_date else None,
            "createdAt": self.created_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Card":
        if not isinstance(data, dict):
            raise MalformedDocument("card: expected an object")
        card_id = _require(data, "id", str, "card")
        where = f"card {card_id}"
        priority_raw = _optional(data, "priority", str, where, DEFAULT_PRIORITY.value)
        try:
            priority = Priority(priority_raw)
        except ValueError:
            raise MalformedDocument(f"{where}: unknown priority '{priority_raw}'")

        due_raw = _optional(data, "dueDate", str, where, None)
        created_raw = _require(data, "createdAt", str, where)
        try:
            due_date = parse_due_date(due_raw) if due_raw else None
            created_at = parse_timestamp(created_raw)
        except ValueError as e:
            raise MalformedDocument(f"{where}: bad date ({e})")

        return cls(
            id=card_id,
            title=_require(data, "title", str, where),
            description=_optional(data, "description", str, where, ""),
            priority=priority,
            labels=unique_labels(_string_list(_optional(data, "labels", list, where, []), where)),
            due_date=due_date,
            created_at=created_at,
        )


@dataclass
class Column:
    """A named, ordered list of card ids (one workflow stage)."""

    id: str
    title: str
    card_ids: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "title": self.title, "cardIds": list(self.card_ids)}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Column":
        if not isinstance(data, dict):
            raise MalformedDocument("column: expected an object")
        column_id = _require(data, "id", str, "column")
        where = f"column {column_id}"
        return cls(
            id=column_id,
            title=_require(data, "title", str, where),
            card_ids=_string_list(_require(data, "cardIds", list, where), where),
        )


@dataclass
class BoardDocument:
    """The whole persisted unit: columns, cards, ticket counter, label colours."""

    columns: List[Column] = field(default_factory=list)
    cards: Dict[str, Card] = field(default_factory=dict)
    next_sequence: int = 1
    label_colors: Dict[str, str] = field(default_factory=dict)

    def column(self, column_id: str) -> Optional[Column]:
        for col in self.columns:
            if col.id == column_id:
                return col
        return None

    def column_of(self, card_id: str) -> Optional[Column]:
        for col in self.columns:
            if card_id in col.card_ids:
                return col
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "columns": [col.to_dict() for col in self.columns],
            "cards": {card_id: card.to_dict() for card_id, card in self.cards.items()},
            "nextSequence": self.next_sequence,
            "labelColors": dict(self.label_colors),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "BoardDocument":
        """Parse and validate a document. Raises MalformedDocument."""
        if not isinstance(data, dict):
            raise MalformedDocument("document: expected an object")

        columns = [Column.from_dict(c) for c in _require(data, "columns", list, "document")]
        raw_cards = _require(data, "cards", dict, "document")
        cards: Dict[str, Card] = {}
        for key, raw in raw_cards.items():
            card = Card.from_dict(raw)
            if card.id != key:
                raise MalformedDocument(f"card {key}: id field is '{card.id}'")
            cards[key] = card

        # Older exports used nextTicketNumber
        seq_key = "nextSequence" if "nextSequence" in data else "nextTicketNumber"
        next_sequence = _require(data, seq_key, int, "document")
        if next_sequence < 1:
            raise MalformedDocument(f"document: {seq_key} must be positive")

        label_colors = _optional(data, "labelColors", dict, "document", {})
        if not all(isinstance(k, str) and isinstance(v, str) for k, v in label_colors.items()):
            raise MalformedDocument("document: labelColors must map strings to strings")

        doc = cls(
            columns=columns,
            cards=cards,
            next_sequence=next_sequence,
            label_colors=dict(label_colors),
        )
        doc.validate()
        doc._bump_sequence()
        return doc

    def validate(self) -> None:
        """Check referential integrity between columns and the card map."""
        column_ids = set()
        owner: Dict[str, str] = {}
        for col in self.columns:
            if col.id in column_ids:
                raise MalformedDocument(f"duplicate column id '{col.id}'")
            column_ids.add(col.id)
            for card_id in col.card_ids:
                if card_id not in self.cards:
                    raise MalformedDocument(f"column {col.id}: unknown card '{card_id}'")
                if card_id in owner:
                    raise MalformedDocument(
                        f"card '{card_id}' listed in both {owner[card_id]} and {col.id}"
                    )
                owner[card_id] = col.id
        orphans = [card_id for card_id in self.cards if card_id not in owner]
        if orphans:
            raise MalformedDocument(f"cards not in any column: {', '.join(orphans)}")

    def _bump_sequence(self) -> None:
        used = [s for s in (ticket_sequence(card_id) for card_id in self.cards) if s is not None]
        if used and max(used) >= self.next_sequence:
            logger.warning(
                f"nextSequence {self.next_sequence} already used; raising to {max(used) + 1}"
            )
            self.next_sequence = max(used) + 1
