#!/usr/bin/env python3
"""
Quick verification that the board engine works end-to-end.
"""
import sys
import tempfile

from pkg.taskboard.drag import DragTracker
from pkg.taskboard.slots import FileSlot
from pkg.taskboard.store import BoardStore


def main():
    print("=" * 60)
    print("Task Board Verification")
    print("=" * 60)

    workdir = tempfile.mkdtemp(prefix="taskboard-")

    print("\n[1/6] Creating file-backed store...")
    store = BoardStore(FileSlot(workdir))
    print(f"✅ Store created with seed board: {len(store.document.cards)} cards")

    print("\n[2/6] Creating a card...")
    card = store.create_card("todo")
    if not card:
        print("❌ Card creation failed")
        return 1
    store.update_card(card.id, title="Verify drag and drop", priority="high", labels=["testing"])
    print(f"✅ Card created: {card.id}")

    print("\n[3/6] Dragging it to the top of IN PROGRESS...")
    tracker = DragTracker(store.move_card)
    tracker.start(card.id)
    tracker.over_card("progress", 0)
    tracker.drop("progress")
    print(f"   → progress: {store.get_column('progress').card_ids}")

    print("\n[4/6] Cancelling a drag...")
    before = store.export_document()
    tracker.start(card.id)
    tracker.over_column("done")
    tracker.end()
    print(f"   → unchanged: {store.export_document() == before}")

    print("\n[5/6] Reloading from disk...")
    reloaded = BoardStore(FileSlot(workdir))
    if reloaded.export_document() != store.export_document():
        print("❌ Reloaded board differs")
        return 1
    print("✅ Reloaded board matches")

    print("\n[6/6] Export / import round trip...")
    exported = store.export_document()
    if not store.import_document(exported) or store.export_document() != exported:
        print("❌ Round trip failed")
        return 1
    if store.import_document("not a board"):
        print("❌ Malformed import accepted")
        return 1
    print("✅ Round trip ok, malformed import rejected")

    print("\n" + "=" * 60)
    print("✅ ALL CHECKS PASSED")
    print("=" * 60)
    print(f"Board directory: {workdir}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
