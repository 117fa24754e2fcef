"""JSON persistence for game sessions."""

import json
import logging
import os
from typing import Dict, List, Optional

import numpy as np

from board_rules import is_valid_board
from game_session import (
    HISTORY_LIMIT,
    GameSession,
    HighScoreEntry,
    HighScoreTable,
    Snapshot,
    new_session,
)

logger = logging.getLogger(__name__)

SAVE_FILE_NAME = "2048_save.json"


class StorageError(Exception):
    """Base class for save file problems."""

    def __init__(self, path: str, message: str):
        super().__init__(f"{message} ({path})")
        self.path = path


class LoadError(StorageError):
    pass


class SaveNotFoundError(LoadError):
    pass


class MalformedSaveError(LoadError):
    pass


class SaveError(StorageError):
    pass


class SaveIOError(SaveError):
    pass


def resolve_save_path() -> str:
    env_path = os.environ.get("GAME_SAVE_PATH")
    if env_path:
        return os.path.abspath(os.path.expanduser(env_path))
    return os.path.join(os.path.expanduser("~"), SAVE_FILE_NAME)


def save_file_exists(path: str) -> bool:
    return os.path.isfile(path)


def session_to_dict(session: GameSession) -> Dict:
    history = session.history
    return {
        "gameBoard": session.board,
        "score": session.score,
        "isGameOver": session.is_game_over,
        "hasWon": session.has_won,
        "continuePlaying": session.continue_playing,
        "boardHistory": [snap.board.tolist() for snap in history],
        "scoreHistory": [snap.score for snap in history],
        "highScores": session.high_scores.to_list(),
    }


def _is_int(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _check_board(value, field: str) -> List[List[int]]:
    if not isinstance(value, list) or not all(isinstance(row, list) for row in value):
        raise ValueError(f"'{field}' must be a 4x4 array")
    if not all(_is_int(cell) for row in value for cell in row):
        raise ValueError(f"'{field}' must contain integers")
    if not is_valid_board(value):
        raise ValueError(f"'{field}' is not a valid 4x4 board")
    return value


def _check_count(value, field: str) -> int:
    if not _is_int(value) or value < 0:
        raise ValueError(f"'{field}' must be a non-negative integer")
    return value


def _check_flag(payload: Dict, field: str) -> bool:
    value = payload.get(field, False)
    if not isinstance(value, bool):
        raise ValueError(f"'{field}' must be a boolean")
    return value


def _check_high_scores(value) -> List[HighScoreEntry]:
    if not isinstance(value, list):
        raise ValueError("'highScores' must be an array")
    entries = []
    for item in value:
        if not isinstance(item, dict):
            raise ValueError("high score entries must be objects")
        name = item.get("name")
        entry_date = item.get("date")
        if not isinstance(name, str) or not isinstance(entry_date, str):
            raise ValueError("high score entries need string 'name' and 'date'")
        entries.append(HighScoreEntry(name, _check_count(item.get("score"), "score"), entry_date))
    return entries


def session_from_dict(payload, rng: Optional[np.random.Generator] = None) -> GameSession:
    """Build a session from decoded save data; raises ``ValueError`` on bad data."""
    if not isinstance(payload, dict):
        raise ValueError("save data must be a JSON object")

    if "gameBoard" in payload:
        board = _check_board(payload["gameBoard"], "gameBoard")
    elif "board" in payload:
        board = _check_board(payload["board"], "board")
    else:
        raise ValueError("save data has no 'gameBoard'")

    board_history = payload.get("boardHistory") or []
    score_history = payload.get("scoreHistory") or []
    if not isinstance(board_history, list) or not isinstance(score_history, list):
        raise ValueError("history fields must be arrays")
    if len(board_history) != len(score_history):
        raise ValueError("'boardHistory' and 'scoreHistory' differ in length")
    if len(board_history) > HISTORY_LIMIT:
        raise ValueError(f"history holds more than {HISTORY_LIMIT} snapshot(s)")
    history = [
        Snapshot(np.array(_check_board(b, "boardHistory")), _check_count(s, "scoreHistory"))
        for b, s in zip(board_history, score_history)
    ]
    return GameSession(
        board,
        _check_count(payload.get("score", 0), "score"),
        has_won=_check_flag(payload, "hasWon"),
        continue_playing=_check_flag(payload, "continuePlaying"),
        history=history,
        high_scores=HighScoreTable(_check_high_scores(payload.get("highScores") or [])),
        rng=rng,
    )


def load_session(path: str, rng: Optional[np.random.Generator] = None) -> GameSession:
    try:
        with open(path, "r", encoding="utf-8") as fh:
            payload = json.load(fh)
    except FileNotFoundError as exc:
        raise SaveNotFoundError(path, "No save game found") from exc
    except (OSError, UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise MalformedSaveError(path, f"Could not read save game: {exc}") from exc

    try:
        session = session_from_dict(payload, rng=rng)
    except (KeyError, OverflowError, TypeError, ValueError) as exc:
        raise MalformedSaveError(path, f"Invalid save game: {exc}") from exc

    logger.info("Game loaded from %s", path)
    return session


def load_or_new(path: str, rng: Optional[np.random.Generator] = None) -> GameSession:
    """Load the save at ``path``, falling back to a fresh session."""
    try:
        return load_session(path, rng=rng)
    except SaveNotFoundError:
        logger.info("No save game at %s, starting new game", path)
    except MalformedSaveError as exc:
        logger.warning("Discarding unreadable save game: %s", exc)
    return new_session(rng=rng)


def save_session(session: GameSession, path: str) -> None:
    payload = session_to_dict(session)
    try:
        directory = os.path.dirname(path)
        if directory:
            os.makedirs(directory, exist_ok=True)
        with open(path, "w", encoding="utf-8") as fh:
            json.dump(payload, fh, indent=2)
    except OSError as exc:
        raise SaveIOError(path, f"Error saving game: {exc}") from exc
    logger.info("Game saved to %s", path)


__all__ = [
    "LoadError",
    "MalformedSaveError",
    "SaveError",
    "SaveIOError",
    "SaveNotFoundError",
    "StorageError",
    "load_or_new",
    "load_session",
    "resolve_save_path",
    "save_file_exists",
    "save_session",
    "session_from_dict",
    "session_to_dict",
]
