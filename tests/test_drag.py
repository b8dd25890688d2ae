"""Tests for the drag gesture state machine (transition + DragTracker)."""
import pytest

from pkg.taskboard.drag import (
    IDLE,
    DragEnd,
    DragOverCard,
    DragOverColumn,
    DragStart,
    DragState,
    DragTracker,
    Drop,
    MoveEffect,
    transition,
)


class RecordingMove:
    """Stands in for BoardStore.move_card."""

    def __init__(self):
        self.calls = []

    def __call__(self, card_id, column_id, index):
        self.calls.append((card_id, column_id, index))
        return True


def run(events, state=IDLE):
    effects = []
    for event in events:
        state, effect = transition(state, event)
        if effect:
            effects.append(effect)
    return state, effects


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# transition()
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


class TestTransition:

    def test_start_enters_dragging(self):
        state, effect = transition(IDLE, DragStart("A"))
        assert state == DragState(subject="A")
        assert state.dragging
        assert effect is None

    def test_over_card_sets_column_and_index(self):
        state, _ = run([DragStart("A"), DragOverCard("doing", 1)])
        assert state == DragState("A", "doing", 1)

    def test_over_column_clears_index(self):
        state, _ = run([DragStart("A"), DragOverCard("doing", 1), DragOverColumn("done")])
        assert state == DragState("A", "done", None)

    def test_last_target_wins(self):
        state, _ = run([
            DragStart("A"),
            DragOverCard("todo", 0),
            DragOverCard("doing", 2),
            DragOverCard("doing", 1),
        ])
        assert state == DragState("A", "doing", 1)

    def test_drop_produces_single_move(self):
        state, effects = run([DragStart("A"), DragOverCard("doing", 1), Drop("doing")])
        assert state == IDLE
        assert effects == [MoveEffect("A", "doing", 1)]

    def test_drop_on_empty_space_appends(self):
        _, effects = run([DragStart("A"), DragOverColumn("done"), Drop("done")])
        assert effects == [MoveEffect("A", "done", None)]

    def test_drop_uses_candidate_column_when_unnamed(self):
        _, effects = run([DragStart("A"), DragOverCard("doing", 0), Drop()])
        assert effects == [MoveEffect("A", "doing", 0)]

    def test_index_from_other_column_ignored(self):
        _, effects = run([DragStart("A"), DragOverCard("doing", 0), Drop("done")])
        assert effects == [MoveEffect("A", "done", None)]

    def test_drop_without_any_target_cancels(self):
        state, effects = run([DragStart("A"), Drop()])
        assert state == IDLE
        assert effects == []

    def test_drag_end_cancels(self):
        state, effects = run([DragStart("A"), DragOverCard("doing", 1), DragEnd()])
        assert state == IDLE
        assert effects == []

    def test_drop_while_idle_is_noop(self):
        state, effect = transition(IDLE, Drop("doing"))
        assert state == IDLE
        assert effect is None

    def test_over_events_while_idle_ignored(self):
        state, _ = run([DragOverCard("doing", 1), DragOverColumn("done")])
        assert state == IDLE

    def test_new_start_replaces_subject(self):
        state, effects = run([
            DragStart("A"),
            DragOverCard("doing", 1),
            DragStart("B"),
            Drop("todo"),
        ])
        assert effects == [MoveEffect("B", "todo", None)]
        assert state == IDLE

    def test_unknown_event_rejected(self):
        with pytest.raises(TypeError):
            transition(DragState("A"), object())


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# DragTracker
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


class TestDragTracker:

    def test_completed_gesture_moves_once(self):
        move = RecordingMove()
        tracker = DragTracker(move)
        tracker.start("A")
        tracker.over_card("doing", 0)
        tracker.over_card("doing", 1)
        effect = tracker.drop("doing")
        tracker.end()  # browsers fire dragend after drop
        assert move.calls == [("A", "doing", 1)]
        assert effect == MoveEffect("A", "doing", 1)
        assert not tracker.dragging

    def test_cancelled_gesture_never_moves(self):
        move = RecordingMove()
        tracker = DragTracker(move)
        tracker.start("A")
        tracker.end()
        assert move.calls == []
        assert tracker.state == IDLE

    def test_state_visible_while_dragging(self):
        tracker = DragTracker(RecordingMove())
        tracker.start("A")
        tracker.over_column("done")
        assert tracker.dragging
        assert tracker.state.over_column == "done"

    def test_drop_without_subject_is_silent(self):
        move = RecordingMove()
        tracker = DragTracker(move)
        assert tracker.drop("doing") is None
        assert move.calls == []


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Tracker driving a real store
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


def test_cancelled_drag_leaves_board_unchanged(board):
    before = board.export_document()
    tracker = DragTracker(board.move_card)
    tracker.start("A")
    tracker.over_card("doing", 0)
    tracker.end()
    assert board.export_document() == before


def test_drag_within_column(board):
    tracker = DragTracker(board.move_card)
    tracker.start("A")
    tracker.over_card("todo", 2)
    tracker.drop("todo")
    assert board.get_column("todo").card_ids == ["B", "A", "C"]


def test_drag_across_columns(board):
    tracker = DragTracker(board.move_card)
    tracker.start("B")
    tracker.over_card("doing", 1)
    tracker.drop("doing")
    assert board.get_column("todo").card_ids == ["A", "C"]
    assert board.get_column("doing").card_ids == ["X", "B", "Y"]


def test_drag_of_deleted_card_is_noop(board):
    tracker = DragTracker(board.move_card)
    tracker.start("A")
    board.delete_card("A")
    before = board.export_document()
    tracker.drop("doing")
    assert board.export_document() == before
