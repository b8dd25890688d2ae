"""
Drag-and-drop gesture tracking.

A gesture is a stream of pointer events:

  DragStart(card) → DragOverColumn / DragOverCard ... → Drop | DragEnd

The tracker folds that stream into at most one move per gesture. The
transition function is pure: (state, event) → (state, effect). The board
store is only touched when an effect comes out, i.e. once, at drop time.

States:
  IDLE                               no subject
  DragState(card)                    dragging, no target yet
  DragState(card, column, index?)    dragging over a target (last one wins)
"""
import logging
from dataclasses import dataclass
from typing import Optional, Tuple, Callable, Union, Any

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DragState:
    subject: Optional[str] = None       # card being dragged
    over_column: Optional[str] = None   # candidate target column
    over_index: Optional[int] = None    # candidate position within over_column

    @property
    def dragging(self) -> bool:
        return self.subject is not None


IDLE = DragState()


# ── Events ───────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class DragStart:
    card_id: str


@dataclass(frozen=True)
class DragOverColumn:
    """Pointer is over a column's empty space."""
    column_id: str


@dataclass(frozen=True)
class DragOverCard:
    """Pointer is over the card at `index` within `column_id`."""
    column_id: str
    index: int


@dataclass(frozen=True)
class Drop:
    column_id: Optional[str] = None


@dataclass(frozen=True)
class DragEnd:
    pass


DragEvent = Union[DragStart, DragOverColumn, DragOverCard, Drop, DragEnd]


@dataclass(frozen=True)
class MoveEffect:
    """The one store call a completed gesture produces."""
    card_id: str
    column_id: str
    index: Optional[int] = None


def transition(state: DragState, event: DragEvent) -> Tuple[DragState, Optional[MoveEffect]]:
    """Apply one event. Returns the next state and the move to perform, if any."""
    if isinstance(event, DragStart):
        # A new gesture replaces whatever was being tracked
        return DragState(subject=event.card_id), None

    if isinstance(event, DragEnd):
        return IDLE, None

    if not state.dragging:
        return state, None

    if isinstance(event, DragOverColumn):
        return DragState(state.subject, event.column_id, None), None

    if isinstance(event, DragOverCard):
        return DragState(state.subject, event.column_id, event.index), None

    if isinstance(event, Drop):
        column_id = event.column_id or state.over_column
        if column_id is None:
            return IDLE, None
        # The hovered index only counts if it was seen over the drop column
        index = state.over_index if column_id == state.over_column else None
        return IDLE, MoveEffect(state.subject, column_id, index)

    raise TypeError(f"Unknown drag event: {event!r}")


class DragTracker:
    """Feeds pointer events through `transition` and calls `move` on drop."""

    def __init__(self, move: Callable[[str, str, Optional[int]], Any]):
        """`move` is typically BoardStore.move_card."""
        self.move = move
        self.state: DragState = IDLE

    @property
    def dragging(self) -> bool:
        return self.state.dragging

    def dispatch(self, event: DragEvent) -> Optional[MoveEffect]:
        self.state, effect = transition(self.state, event)
        if effect is not None:
            logger.debug(f"Drop: {effect.card_id} -> {effect.column_id}[{effect.index}]")
            self.move(effect.card_id, effect.column_id, effect.index)
        return effect

    def start(self, card_id: str) -> None:
        self.dispatch(DragStart(card_id))

    def over_column(self, column_id: str) -> None:
        self.dispatch(DragOverColumn(column_id))

    def over_card(self, column_id: str, index: int) -> None:
        self.dispatch(DragOverCard(column_id, index))

    def drop(self, column_id: Optional[str] = None) -> Optional[MoveEffect]:
        return self.dispatch(Drop(column_id))

    def end(self) -> None:
        self.dispatch(DragEnd())
