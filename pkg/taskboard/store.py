"""
Board store: sole owner and mutator of the board document.

Every mutation builds its new column/card structures first and swaps them in
at the end, so a caller never observes a column pointing at a missing card or
a card that no column lists. After each successful mutation the whole
document is written to the key-value slot.

Lookups of unknown ids are not errors: the operation does nothing and
returns None/False.
"""
import copy
import json
import logging
import time
import uuid
import zlib
from datetime import date, datetime, timezone
from typing import Optional, List, Dict, Any, Callable, Mapping

from .filters import CardFilter, board_stats, visible_cards
from .schema import (
    BoardDocument, Card, Column, MalformedDocument, Priority,
    format_ticket_id, parse_due_date, unique_labels,
)
from .seed import (
    DEFAULT_CARD_TITLE, DEFAULT_COLUMN_TITLE, LABEL_PALETTE, STORAGE_KEY, seed_document,
)
from .slots import KeyValueSlot, MemorySlot, SlotError

logger = logging.getLogger(__name__)

EVENT_TYPES = (
    "card_created",
    "card_updated",
    "card_deleted",
    "card_moved",
    "column_created",
    "column_renamed",
    "column_deleted",
    "label_registered",
    "document_imported",
    "board_changed",
)

# update_card field aliases -> Card attribute
_UPDATABLE = {
    "title": "title",
    "description": "description",
    "priority": "priority",
    "labels": "labels",
    "due_date": "due_date",
    "dueDate": "due_date",
}
_IMMUTABLE = {"id", "created_at", "createdAt"}


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def make_column_id() -> str:
    """Sortable column id (ms timestamp + random hex)."""
    return f"col-{int(time.time() * 1000)}-{uuid.uuid4().hex[:6]}"


def default_label_color(name: str) -> str:
    """Stable palette colour for a label (same name, same colour, every run)."""
    return LABEL_PALETTE[zlib.crc32(name.encode("utf-8")) % len(LABEL_PALETTE)]


def serialize(document: BoardDocument) -> str:
    """Human-diffable UTF-8 JSON text of a document."""
    return json.dumps(document.to_dict(), indent=2, ensure_ascii=False)


def deserialize(text: str) -> BoardDocument:
    """Parse document text. Raises MalformedDocument."""
    try:
        data = json.loads(text)
    except (TypeError, ValueError) as e:
        raise MalformedDocument(f"not valid JSON: {e}") from e
    except RecursionError as e:
        raise MalformedDocument("JSON nested too deeply") from e
    return BoardDocument.from_dict(data)


def _coerce_update(field_name: str, value: Any) -> Any:
    """Convert an update value to the Card attribute type. Raises ValueError."""
    if field_name in ("title", "description"):
        if not isinstance(value, str):
            raise ValueError(f"{field_name} must be a string")
        return value
    if field_name == "priority":
        if isinstance(value, Priority):
            return value
        try:
            return Priority(value)
        except ValueError:
            raise ValueError(f"Invalid priority: {value}")
    if field_name == "labels":
        if not isinstance(value, (list, tuple, set)) or not all(isinstance(v, str) for v in value):
            raise ValueError("labels must be a collection of strings")
        return unique_labels(value)
    if field_name == "due_date":
        if value is None or value == "":
            return None
        if isinstance(value, datetime):
            return value.date()
        if isinstance(value, date):
            return value
        if isinstance(value, str):
            return parse_due_date(value)
        raise ValueError(f"Invalid due date: {value!r}")
    raise ValueError(f"Unknown card field: {field_name}")


class BoardStore:
    """In-process store for one board document, persisted through a slot."""

    def __init__(
        self,
        slot: Optional[KeyValueSlot] = None,
        key: str = STORAGE_KEY,
        clock: Callable[[], datetime] = utc_now,
    ):
        """Bind to a slot and load the persisted board (or the seed board)."""
        self.slot = slot if slot is not None else MemorySlot()
        self.key = key
        self.clock = clock
        self.subscribers: Dict[str, list] = {}
        self._doc = BoardDocument()
        self.load()

    # ──────────────────────────────────────────
    # Lifecycle
    # ──────────────────────────────────────────

    def load(self) -> bool:
        """
        Load the persisted document.

        Returns True when the saved board was loaded verbatim, False when the
        seed board was used instead (nothing saved, or the saved text could
        not be parsed).
        """
        try:
            saved = self.slot.get(self.key)
        except SlotError as e:
            logger.warning(f"Cannot read saved board, using seed data: {e}")
            saved = None

        if saved is not None:
            try:
                self._doc = deserialize(saved)
                logger.info(f"Loaded board '{self.key}' ({len(self._doc.cards)} cards)")
                return True
            except MalformedDocument as e:
                logger.warning(f"Saved board '{self.key}' is unreadable, using seed data: {e}")

        self._doc = seed_document(self.clock())
        self.persist()
        return False

    def persist(self) -> bool:
        """Write the full document to the slot. Returns False if the write failed."""
        try:
            self.slot.set(self.key, serialize(self._doc))
            return True
        except SlotError as e:
            logger.error(f"Failed to persist board '{self.key}': {e}")
            return False

    def _commit(self, event_type: str, **kwargs) -> None:
        self.persist()
        self._emit(event_type, **kwargs)
        self._emit("board_changed", event=event_type)

    # ──────────────────────────────────────────
    # Subscribers
    # ──────────────────────────────────────────

    def subscribe(self, event_type: str, callback: Callable) -> None:
        """Register a callback for an event type."""
        if event_type not in EVENT_TYPES:
            raise ValueError(f"Unknown event type: {event_type}")
        if event_type not in self.subscribers:
            self.subscribers[event_type] = []
        self.subscribers[event_type].append(callback)

    def _emit(self, event_type: str, **kwargs) -> None:
        for callback in self.subscribers.get(event_type, []):
            try:
                callback(**kwargs)
            except Exception:
                logger.exception(f"Error in {event_type} callback")

    # ──────────────────────────────────────────
    # Reads (always copies)
    # ──────────────────────────────────────────

    @property
    def document(self) -> BoardDocument:
        return copy.deepcopy(self._doc)

    @property
    def columns(self) -> List[Column]:
        return copy.deepcopy(self._doc.columns)

    @property
    def next_sequence(self) -> int:
        return self._doc.next_sequence

    @property
    def label_colors(self) -> Dict[str, str]:
        return dict(self._doc.label_colors)

    def get_card(self, card_id: str) -> Optional[Card]:
        card = self._doc.cards.get(card_id)
        return copy.deepcopy(card) if card else None

    def get_column(self, column_id: str) -> Optional[Column]:
        col = self._doc.column(column_id)
        return copy.deepcopy(col) if col else None

    def column_of(self, card_id: str) -> Optional[str]:
        """Id of the column currently listing the card."""
        col = self._doc.column_of(card_id)
        return col.id if col else None

    def visible_cards(self, card_filter: Optional[CardFilter] = None) -> Dict[str, List[Card]]:
        """Filtered cards per column. A filter label gets a colour if it lacks one."""
        if card_filter and card_filter.label and card_filter.label not in self._doc.label_colors:
            self.register_label(card_filter.label)
        return copy.deepcopy(visible_cards(self._doc, card_filter))

    def stats(self, today: Optional[date] = None) -> Dict[str, Any]:
        return board_stats(self._doc, today)

    # ──────────────────────────────────────────
    # Cards
    # ──────────────────────────────────────────

    def create_card(self, column_id: str) -> Optional[Card]:
        """Append a new default card to the end of a column."""
        col = self._doc.column(column_id)
        if col is None:
            logger.debug(f"create_card: column {column_id} not found")
            return None

        sequence = self._doc.next_sequence
        card_id = format_ticket_id(sequence)
        while card_id in self._doc.cards:
            sequence += 1
            card_id = format_ticket_id(sequence)

        card = Card(id=card_id, title=DEFAULT_CARD_TITLE, created_at=self.clock())
        cards = dict(self._doc.cards)
        cards[card_id] = card
        card_ids = col.card_ids + [card_id]

        self._doc.cards = cards
        col.card_ids = card_ids
        self._doc.next_sequence = sequence + 1
        logger.info(f"Created card {card_id} in {column_id}")
        self._commit("card_created", card_id=card_id, column_id=column_id)
        return copy.deepcopy(card)

    def update_card(self, card_id: str, fields: Optional[Mapping[str, Any]] = None, **kwargs) -> Optional[Card]:
        """
        Merge fields into an existing card.

        Accepts title, description, priority, labels and due_date (or dueDate).
        id and createdAt are ignored. All values are converted before any is
        applied; a value that cannot be converted raises ValueError and the
        card is left as it was. Blank titles are the caller's to reject.
        """
        card = self._doc.cards.get(card_id)
        if card is None:
            logger.debug(f"update_card: card {card_id} not found")
            return None

        updates = dict(fields or {})
        updates.update(kwargs)
        coerced = {}
        for name, value in updates.items():
            if name in _IMMUTABLE:
                continue
            attr = _UPDATABLE.get(name)
            if attr is None:
                raise ValueError(f"Unknown card field: {name}")
            coerced[attr] = _coerce_update(attr, value)

        for attr, value in coerced.items():
            setattr(card, attr, value)
        self._commit("card_updated", card_id=card_id, fields=sorted(coerced))
        return copy.deepcopy(card)

    def delete_card(self, card_id: str) -> bool:
        """Remove a card from the card map and from its column together."""
        if card_id not in self._doc.cards:
            logger.debug(f"delete_card: card {card_id} not found")
            return False

        cards = {k: v for k, v in self._doc.cards.items() if k != card_id}
        columns = [
            Column(c.id, c.title, [cid for cid in c.card_ids if cid != card_id])
            for c in self._doc.columns
        ]
        self._doc.cards = cards
        self._doc.columns = columns
        logger.info(f"Deleted card {card_id}")
        self._commit("card_deleted", card_id=card_id)
        return True

    def move_card(self, card_id: str, target_column_id: str, target_index: Optional[int] = None) -> bool:
        """
        Move a card to target_index in the target column.

        target_index is the drop position as the user saw it: "before the
        card currently shown at this index" in the target column. The card
        is removed from its column first and inserted into the remaining
        list, so for a forward move inside one column the index shifts
        down by one to account for the removed card:

            [A, B, C]  move A -> 2  =>  [B, A, C]
            [A, B, C]  move C -> 0  =>  [C, A, B]
            [A, B, C]  move A -> 3  =>  [B, C, A]

        None or an index past the end appends; a negative index means 0.

        This is not a plain post-removal index. A forward move by one slot
        lands the card where it already is, so [A, B, C] move A -> 1 leaves
        the column unchanged rather than giving [B, A, C].
        """
        if card_id not in self._doc.cards:
            logger.debug(f"move_card: card {card_id} not found")
            return False
        if self._doc.column(target_column_id) is None:
            logger.debug(f"move_card: column {target_column_id} not found")
            return False

        source = self._doc.column_of(card_id)
        if target_index is not None and source is not None and source.id == target_column_id:
            if source.card_ids.index(card_id) < target_index:
                target_index -= 1

        columns = [
            Column(c.id, c.title, [cid for cid in c.card_ids if cid != card_id])
            for c in self._doc.columns
        ]
        insert_at = 0
        for col in columns:
            if col.id == target_column_id:
                if target_index is None or target_index > len(col.card_ids):
                    insert_at = len(col.card_ids)
                else:
                    insert_at = max(0, target_index)
                col.card_ids.insert(insert_at, card_id)
                break

        self._doc.columns = columns
        logger.info(f"Moved card {card_id} to {target_column_id}[{insert_at}]")
        self._commit(
            "card_moved",
            card_id=card_id,
            from_column=source.id if source else None,
            to_column=target_column_id,
            index=insert_at,
        )
        return True

    # ──────────────────────────────────────────
    # Columns
    # ──────────────────────────────────────────

    def create_column(self, title: Optional[str] = None) -> Column:
        """Append an empty column with a fresh id."""
        existing = {c.id for c in self._doc.columns}
        column_id = make_column_id()
        while column_id in existing:
            column_id = make_column_id()

        col = Column(id=column_id, title=title or DEFAULT_COLUMN_TITLE)
        self._doc.columns = self._doc.columns + [col]
        logger.info(f"Created column {column_id} ({col.title})")
        self._commit("column_created", column_id=column_id)
        return copy.deepcopy(col)

    def rename_column(self, column_id: str, new_title: str) -> Optional[Column]:
        col = self._doc.column(column_id)
        if col is None:
            logger.debug(f"rename_column: column {column_id} not found")
            return None
        col.title = new_title
        self._commit("column_renamed", column_id=column_id, title=new_title)
        return copy.deepcopy(col)

    def delete_column(self, column_id: str) -> bool:
        """Remove a column and every card it lists."""
        col = self._doc.column(column_id)
        if col is None:
            logger.debug(f"delete_column: column {column_id} not found")
            return False

        doomed = set(col.card_ids)
        cards = {k: v for k, v in self._doc.cards.items() if k not in doomed}
        columns = [c for c in self._doc.columns if c.id != column_id]
        self._doc.cards = cards
        self._doc.columns = columns
        logger.info(f"Deleted column {column_id} with {len(doomed)} cards")
        self._commit("column_deleted", column_id=column_id, card_ids=sorted(doomed))
        return True

    # ──────────────────────────────────────────
    # Labels
    # ──────────────────────────────────────────

    def label_color(self, name: str) -> str:
        """Registered colour for a label, else its stable palette colour."""
        return self._doc.label_colors.get(name) or default_label_color(name)

    def register_label(self, name: str, color: Optional[str] = None) -> str:
        """Add (or recolour) a label. Returns the colour now in use."""
        if not name or not name.strip():
            raise ValueError("Label name must not be blank")
        color = color or self.label_color(name)
        label_colors = dict(self._doc.label_colors)
        label_colors[name] = color
        self._doc.label_colors = label_colors
        self._commit("label_registered", label=name, color=color)
        return color

    # ──────────────────────────────────────────
    # Import / export
    # ──────────────────────────────────────────

    def export_document(self) -> str:
        """Serialized snapshot of the current board; import_document accepts it unchanged."""
        return serialize(self._doc)

    def import_document(self, text: str) -> bool:
        """
        Replace the whole board with the given document text.

        Returns False (board untouched) if the text is not a valid document.
        """
        try:
            doc = deserialize(text)
        except MalformedDocument as e:
            logger.warning(f"Rejected board import: {e}")
            return False
        self._doc = doc
        logger.info(f"Imported board ({len(doc.columns)} columns, {len(doc.cards)} cards)")
        self._commit("document_imported")
        return True
