#!/usr/bin/env python3
"""
Task Board Server
-----------------
JSON API over a single BoardStore. The store owns the document and its
persistence; this module only translates HTTP requests into store calls.

Usage:
    python board_server.py
    python board_server.py --config taskboard.yaml --port 3000

API:
    GET    /api/board                    → { document, visible, stats }  (?q=&priority=&label=)
    POST   /api/columns                  → { title? }
    PUT    /api/columns/<id>             → { title }
    DELETE /api/columns/<id>
    POST   /api/columns/<id>/cards       → { title?, description?, priority?, labels?, dueDate? }
    GET    /api/cards/<id>
    PUT    /api/cards/<id>               → partial card fields
    DELETE /api/cards/<id>
    POST   /api/cards/<id>/move          → { column_id, index? }
    GET    /api/export                   → document download
    POST   /api/import                   → raw document text
    GET    /api/labels, POST /api/labels → { name, color? }
    GET    /api/slots/<key>, PUT /api/slots/<key>   (backs HttpSlot clients)
    GET    /health

Mutating routes require an X-API-Key header when an API secret is configured.
"""

import hmac
import logging
import sys
from functools import wraps
from typing import Optional

from flask import Flask, Response, jsonify, request

from pkg.taskboard.config import BoardConfig
from pkg.taskboard.filters import CardFilter
from pkg.taskboard.schema import Priority, title_is_blank
from pkg.taskboard.slots import KeyValueSlot, MemorySlot, SlotError, build_slot
from pkg.taskboard.store import BoardStore

logger = logging.getLogger(__name__)


def create_app(
    store: BoardStore,
    api_secret: str = "",
    slot_backend: Optional[KeyValueSlot] = None,
) -> Flask:
    """
    Build the Flask app around an existing store.

    slot_backend is the storage served under /api/slots/ for remote
    HttpSlot clients; it defaults to an in-memory slot.
    """
    app = Flask(__name__)
    app.config["BOARD_STORE"] = store
    app.config["API_SECRET"] = api_secret
    slots = slot_backend if slot_backend is not None else MemorySlot()

    # ── Auth ─────────────────────────────────────────────────────────────────

    def require_api_key(f):
        """Decorator: reject requests without a valid X-API-Key header."""
        @wraps(f)
        def decorated(*args, **kwargs):
            secret = app.config["API_SECRET"]
            if not secret:
                return f(*args, **kwargs)
            provided = request.headers.get("X-API-Key", "").strip()
            if not hmac.compare_digest(provided, secret):
                code = 401 if not provided else 403
                return jsonify({"error": "Unauthorized"}), code
            return f(*args, **kwargs)
        return decorated

    def not_found(what: str, item_id: str):
        return jsonify({"error": f"{what} not found: {item_id}"}), 404

    def card_payload(card):
        data = card.to_dict()
        data["column_id"] = store.column_of(card.id)
        data["labelColors"] = {label: store.label_color(label) for label in card.labels}
        return data

    # ── Board ────────────────────────────────────────────────────────────────

    @app.route("/api/board")
    def api_board():
        priority = request.args.get("priority") or None
        if priority:
            try:
                priority = Priority(priority.lower())
            except ValueError:
                return jsonify({"error": f"Unknown priority: {priority}"}), 400
        card_filter = CardFilter(
            query=request.args.get("q", ""),
            priority=priority,
            label=request.args.get("label") or None,
        )
        visible = store.visible_cards(card_filter)
        return jsonify({
            "document": store.document.to_dict(),
            "visible": {cid: [c.id for c in cards] for cid, cards in visible.items()},
            "stats": store.stats(),
        })

    # ── Columns ──────────────────────────────────────────────────────────────

    @app.route("/api/columns", methods=["POST"])
    @require_api_key
    def api_create_column():
        data = request.get_json(force=True, silent=True) or {}
        title = (data.get("title") or "").strip()
        col = store.create_column(title or None)
        return jsonify({"column": col.to_dict()}), 201

    @app.route("/api/columns/<column_id>", methods=["PUT"])
    @require_api_key
    def api_rename_column(column_id):
        data = request.get_json(force=True, silent=True) or {}
        title = data.get("title", "")
        if title_is_blank(title):
            return jsonify({"error": "title is required"}), 400
        col = store.rename_column(column_id, title.strip())
        if col is None:
            return not_found("Column", column_id)
        return jsonify({"column": col.to_dict()})

    @app.route("/api/columns/<column_id>", methods=["DELETE"])
    @require_api_key
    def api_delete_column(column_id):
        col = store.get_column(column_id)
        if col is None or not store.delete_column(column_id):
            return not_found("Column", column_id)
        return jsonify({"deleted": column_id, "cards": col.card_ids})

    @app.route("/api/columns/<column_id>/cards", methods=["POST"])
    @require_api_key
    def api_create_card(column_id):
        """Create a card at the end of a column, optionally filling its fields."""
        data = request.get_json(force=True, silent=True) or {}
        if "title" in data and title_is_blank(data["title"]):
            return jsonify({"error": "title must not be blank"}), 400
        if store.get_column(column_id) is None:
            return not_found("Column", column_id)
        card = store.create_card(column_id)
        if data:
            try:
                card = store.update_card(card.id, data)
            except ValueError as e:
                # Don't leave a half-filled card behind; its ticket number stays used
                store.delete_card(card.id)
                return jsonify({"error": str(e)}), 400
        return jsonify({"card": card_payload(card)}), 201

    # ── Cards ────────────────────────────────────────────────────────────────

    @app.route("/api/cards/<card_id>", methods=["GET"])
    def api_get_card(card_id):
        card = store.get_card(card_id)
        if card is None:
            return not_found("Card", card_id)
        return jsonify({"card": card_payload(card)})

    @app.route("/api/cards/<card_id>", methods=["PUT"])
    @require_api_key
    def api_update_card(card_id):
        data = request.get_json(force=True, silent=True) or {}
        if "title" in data and title_is_blank(data["title"]):
            return jsonify({"error": "title must not be blank"}), 400
        if store.get_card(card_id) is None:
            return not_found("Card", card_id)
        try:
            card = store.update_card(card_id, data)
        except ValueError as e:
            return jsonify({"error": str(e)}), 400
        return jsonify({"card": card_payload(card)})

    @app.route("/api/cards/<card_id>", methods=["DELETE"])
    @require_api_key
    def api_delete_card(card_id):
        if not store.delete_card(card_id):
            return not_found("Card", card_id)
        return jsonify({"deleted": card_id})

    @app.route("/api/cards/<card_id>/move", methods=["POST"])
    @require_api_key
    def api_move_card(card_id):
        data = request.get_json(force=True, silent=True) or {}
        column_id = data.get("column_id") or data.get("columnId")
        index = data.get("index")
        if not column_id:
            return jsonify({"error": "column_id is required"}), 400
        if index is not None and (not isinstance(index, int) or isinstance(index, bool)):
            return jsonify({"error": "index must be an integer"}), 400
        if store.get_card(card_id) is None:
            return not_found("Card", card_id)
        if not store.move_card(card_id, column_id, index):
            return not_found("Column", column_id)
        return jsonify({
            "card_id": card_id,
            "column": store.get_column(column_id).to_dict(),
        })

    # ── Labels ───────────────────────────────────────────────────────────────

    @app.route("/api/labels", methods=["GET"])
    def api_labels():
        return jsonify({"labels": store.label_colors})

    @app.route("/api/labels", methods=["POST"])
    @require_api_key
    def api_register_label():
        data = request.get_json(force=True, silent=True) or {}
        name = (data.get("name") or "").strip()
        if not name:
            return jsonify({"error": "name is required"}), 400
        color = store.register_label(name, data.get("color") or None)
        return jsonify({"name": name, "color": color}), 201

    # ── Import / export ──────────────────────────────────────────────────────

    @app.route("/api/export")
    def api_export():
        return Response(
            store.export_document(),
            mimetype="application/json",
            headers={"Content-Disposition": "attachment; filename=kanban-board.json"},
        )

    @app.route("/api/import", methods=["POST"])
    @require_api_key
    def api_import():
        text = request.get_data(as_text=True)
        if not store.import_document(text):
            return jsonify({"error": "Not a valid board document"}), 400
        return jsonify({"imported": True, "cards": len(store.document.cards)})

    # ── Remote slots ─────────────────────────────────────────────────────────

    @app.route("/api/slots/<key>", methods=["GET"])
    @require_api_key
    def api_slot_get(key):
        try:
            value = slots.get(key)
        except SlotError as e:
            return jsonify({"error": str(e)}), 500
        if value is None:
            return not_found("Slot", key)
        return Response(value, mimetype="application/json")

    @app.route("/api/slots/<key>", methods=["PUT"])
    @require_api_key
    def api_slot_put(key):
        try:
            slots.set(key, request.get_data(as_text=True))
        except SlotError as e:
            return jsonify({"error": str(e)}), 500
        return jsonify({"stored": key})

    @app.route("/health")
    def health():
        return jsonify({"status": "ok", "key": store.key, "cards": len(store.document.cards)})

    return app


# ── Main ─────────────────────────────────────────────────────────────────────

def main(argv=None):
    import argparse

    parser = argparse.ArgumentParser(description="Task Board Server")
    parser.add_argument("--config", help="Path to YAML config (overrides TASKBOARD_CONFIG)")
    parser.add_argument("--host", help="Bind address (use 0.0.0.0 to expose on network)")
    parser.add_argument("--port", type=int)
    parser.add_argument("--storage", choices=["file", "sqlite", "memory", "http"],
                        help="Persistence backend")
    parser.add_argument("--path", help="Storage directory or database path")
    args = parser.parse_args(argv)

    cfg = BoardConfig.load(args.config)
    if args.host:
        cfg.host = args.host
    if args.port:
        cfg.port = args.port
    if args.storage or args.path:
        cfg.storage_backend = args.storage or cfg.storage_backend
        cfg.storage_path = args.path or cfg.storage_path
        cfg.resolve()

    logging.basicConfig(
        level=getattr(logging, cfg.log_level.upper(), logging.INFO),
        format="%(asctime)s [taskboard] %(levelname)s: %(message)s",
        handlers=[logging.StreamHandler(sys.stdout)],
    )

    slot = build_slot(cfg)
    store = BoardStore(slot, key=cfg.storage_key)
    # Serve the remote slot API from local storage, never from a remote slot
    served = slot if cfg.storage_backend != "http" else MemorySlot()
    app = create_app(store, api_secret=cfg.api_secret, slot_backend=served)

    if not cfg.api_secret and cfg.host not in ("127.0.0.1", "localhost"):
        logger.warning("No API secret set; mutating routes are open to the network")

    print(f"""
╔═══════════════════════════════════════╗
║  Task Board Server                    ║
╠═══════════════════════════════════════╣
║  URL:     http://{cfg.host}:{cfg.port:<17}║
║  Storage: {cfg.storage_backend:<28}║
║  Key:     {cfg.storage_key:<28}║
╚═══════════════════════════════════════╝
""")
    app.run(host=cfg.host, port=cfg.port, debug=False, threaded=False)


if __name__ == "__main__":
    main()
