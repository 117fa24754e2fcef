import logging
import os
import sys
import threading
from typing import Dict, Optional

import numpy as np
from flask import Flask, jsonify, request
from flask_cors import CORS

from board_rules import make_rng
from game_session import GameSession
from save_store import SaveError, load_or_new, resolve_save_path, save_session

logger = logging.getLogger(__name__)


def resolve_seed() -> Optional[int]:
    raw = os.environ.get("GAME_SEED")
    if not raw:
        return None
    try:
        return int(raw)
    except ValueError:
        logger.warning("Ignoring non-integer GAME_SEED=%r", raw)
        return None


class SessionHolder:
    """Owns the active session for one app; callers hold ``lock`` while using it."""

    def __init__(self, save_path: str, rng: np.random.Generator):
        self.save_path = save_path
        self.rng = rng
        self.lock = threading.RLock()
        self._session: Optional[GameSession] = None

    @property
    def session(self) -> GameSession:
        if self._session is None:
            self._session = load_or_new(self.save_path, rng=self.rng)
        return self._session

    @session.setter
    def session(self, value: GameSession) -> None:
        self._session = value

    def save(self) -> Optional[str]:
        """Write the session to disk; returns the error message on failure."""
        try:
            save_session(self.session, self.save_path)
        except SaveError as exc:
            logger.warning("Continuing without saving: %s", exc)
            return str(exc)
        return None


def create_app(save_path: Optional[str] = None, rng: Optional[np.random.Generator] = None) -> Flask:
    app = Flask(__name__)
    allowed_origins = os.environ.get("GAME_ALLOWED_ORIGINS", "*")
    CORS(app, origins=allowed_origins)

    holder = SessionHolder(
        save_path or resolve_save_path(),
        rng if rng is not None else make_rng(resolve_seed()),
    )
    app.extensions["game_session"] = holder

    def _payload() -> Dict:
        return request.get_json(silent=True) or {}

    @app.get("/state")
    def state():
        with holder.lock:
            return jsonify(holder.session.snapshot())

    @app.post("/move")
    def move():
        direction = _payload().get("direction")
        if direction is None:
            return jsonify({"error": "Payload must include 'direction' key"}), 400

        with holder.lock:
            session = holder.session
            try:
                changed = session.apply_move(direction)
            except ValueError as exc:
                return jsonify({"error": str(exc)}), 400
            if changed and session.is_game_over:
                holder.save()
            return jsonify({"changed": changed, "state": session.snapshot()})

    @app.post("/undo")
    def undo():
        with holder.lock:
            session = holder.session
            performed = session.undo()
            return jsonify({"performed": performed, "state": session.snapshot()})

    @app.post("/continue")
    def continue_playing():
        with holder.lock:
            session = holder.session
            session.continue_playing = True
            return jsonify(session.snapshot())

    @app.post("/new")
    def new_game():
        with holder.lock:
            holder.session = holder.session.new_game()
            holder.save()
            return jsonify(holder.session.snapshot())

    @app.get("/highscores")
    def high_scores():
        with holder.lock:
            return jsonify({"highScores": holder.session.high_scores.to_list()})

    @app.post("/highscores")
    def submit_high_score():
        name = _payload().get("name")
        if name is not None and not isinstance(name, str):
            return jsonify({"error": "'name' must be a string"}), 400

        with holder.lock:
            session = holder.session
            recorded = session.is_high_score_eligible()
            if recorded:
                entry = session.record_score(name)
                logger.info("High score %d recorded for %s", entry.score, entry.name)
                holder.save()
            return jsonify({"recorded": recorded, "highScores": session.high_scores.to_list()})

    @app.post("/save")
    def save():
        with holder.lock:
            error = holder.save()
        if error:
            return jsonify({"saved": False, "error": error})
        return jsonify({"saved": True})

    return app


app = create_app()


if __name__ == "__main__":
    logging.basicConfig(
        stream=sys.stderr,
        level=os.environ.get("LOG_LEVEL", "INFO").upper(),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    port = int(os.environ.get("PORT", 5050))
    app.run(host="0.0.0.0", port=port, debug=bool(os.environ.get("FLASK_DEBUG")))
