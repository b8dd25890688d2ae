# Task board engine: normalized board document, mutations, persistence, drag tracking
#
# Components:
#   schema.py   - Data model (BoardDocument, Column, Card, Priority) and validation
#   seed.py     - Default columns, label palette, example board
#   store.py    - BoardStore: mutations, persistence, import/export
#   drag.py     - Drag gesture state machine (DragTracker)
#   filters.py  - Card filter predicate, due-date helpers, board stats
#   slots.py    - Key-value persistence slots (memory, file, SQLite, HTTP)
#   config.py   - YAML configuration
