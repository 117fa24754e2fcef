"""Session state wrapped around the board rules: history, flags and high scores."""

import datetime
import logging
from collections import deque
from typing import Dict, Iterable, Iterator, List, NamedTuple, Optional

import numpy as np

from board_rules import (
    BOARD_SIZE,
    WINNING_TILE_VALUE,
    Direction,
    apply_move_logic,
    as_board,
    is_terminal,
    make_rng,
    max_tile,
    spawn_tile,
    valid_moves,
)

logger = logging.getLogger(__name__)

HISTORY_LIMIT = 1
HIGH_SCORE_LIMIT = 10
DEFAULT_PLAYER_NAME = "Anonymous"
DATE_FORMAT = "%d-%m-%Y"


class HighScoreEntry(NamedTuple):
    name: str
    score: int
    date: str

    @classmethod
    def create(cls, name: Optional[str], score: int, today: Optional[datetime.date] = None) -> "HighScoreEntry":
        if name is None or not name.strip():
            name = DEFAULT_PLAYER_NAME
        today = today or datetime.date.today()
        return cls(name, int(score), today.strftime(DATE_FORMAT))

    def to_dict(self) -> Dict:
        return {"name": self.name, "score": self.score, "date": self.date}


class HighScoreTable:
    """Top scores, best first. Equal scores keep their insertion order."""

    def __init__(self, entries: Iterable[HighScoreEntry] = (), limit: int = HIGH_SCORE_LIMIT):
        self.limit = limit
        self._entries: List[HighScoreEntry] = []
        for entry in entries:
            self._insert(entry)

    def _insert(self, entry: HighScoreEntry) -> None:
        self._entries.append(entry)
        # sorted() is stable, also with reverse=True
        self._entries = sorted(self._entries, key=lambda e: e.score, reverse=True)[: self.limit]

    def add(self, name: Optional[str], score: int, today: Optional[datetime.date] = None) -> HighScoreEntry:
        entry = HighScoreEntry.create(name, score, today)
        self._insert(entry)
        return entry

    def is_high_score(self, score: int) -> bool:
        if len(self._entries) < self.limit:
            return True
        return score > self.lowest_score

    @property
    def lowest_score(self) -> Optional[int]:
        if not self._entries:
            return None
        return self._entries[-1].score

    @property
    def entries(self) -> List[HighScoreEntry]:
        return list(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[HighScoreEntry]:
        return iter(list(self._entries))

    def to_list(self) -> List[Dict]:
        return [entry.to_dict() for entry in self._entries]

    @classmethod
    def from_list(cls, items: Iterable[Dict]) -> "HighScoreTable":
        return cls(HighScoreEntry(item["name"], int(item["score"]), item["date"]) for item in items)


class Snapshot(NamedTuple):
    board: np.ndarray
    score: int


class GameSession:
    """One game in progress (or finished), owned by a single caller."""

    def __init__(
        self,
        board=None,
        score: int = 0,
        *,
        has_won: bool = False,
        continue_playing: bool = False,
        history: Iterable[Snapshot] = (),
        high_scores: Optional[HighScoreTable] = None,
        rng: Optional[np.random.Generator] = None,
        win_value: int = WINNING_TILE_VALUE,
    ):
        self.rng = rng if rng is not None else make_rng()
        self.win_value = win_value
        if board is None:
            board = np.zeros((BOARD_SIZE, BOARD_SIZE), dtype=np.int64)
            board = spawn_tile(board, self.rng)
            board = spawn_tile(board, self.rng)
        self._board = as_board(board)
        self._score = int(score)
        self._has_won = bool(has_won)
        self._continue_playing = bool(continue_playing)
        self._history = deque(
            (Snapshot(as_board(s.board), int(s.score)) for s in history), maxlen=HISTORY_LIMIT
        )
        self.high_scores = high_scores if high_scores is not None else HighScoreTable()
        self._is_game_over = is_terminal(self._board)

    @property
    def board(self) -> List[List[int]]:
        return self._board.tolist()

    @property
    def score(self) -> int:
        return self._score

    @property
    def is_game_over(self) -> bool:
        return self._is_game_over

    @property
    def has_won(self) -> bool:
        return self._has_won

    @property
    def continue_playing(self) -> bool:
        return self._continue_playing

    @continue_playing.setter
    def continue_playing(self, value: bool) -> None:
        self._continue_playing = bool(value)

    @property
    def history(self) -> List[Snapshot]:
        return [Snapshot(s.board.copy(), s.score) for s in self._history]

    @property
    def accepts_moves(self) -> bool:
        return not (self._is_game_over or (self._has_won and not self._continue_playing))

    def apply_move(self, direction) -> bool:
        """Slide the board, spawn a tile and report whether the board changed.

        Moves are refused while the game is over, or after a win until the
        player chooses to continue. A move that changes nothing leaves no
        undo step behind.
        """
        direction = Direction.parse(direction)
        if not self.accepts_moves:
            return False

        before = self._board
        self._history.append(Snapshot(before.copy(), self._score))

        result = apply_move_logic(before, direction, self.win_value)
        if result.changed:
            self._board = spawn_tile(result.board, self.rng)
            self._score += result.score_gain
            if result.reached_win and not self._has_won:
                logger.info("Reached %d with score %d", self.win_value, self._score)
                self._has_won = True
            self._is_game_over = is_terminal(self._board)
            if self._is_game_over:
                logger.info("Game over with score %d", self._score)
        else:
            self._history.pop()

        return not np.array_equal(before, self._board)

    def can_undo(self) -> bool:
        return len(self._history) > 0

    def undo(self) -> bool:
        # has_won and continue_playing stay as they are
        if not self.can_undo():
            return False
        snapshot = self._history.pop()
        self._board = snapshot.board
        self._score = snapshot.score
        self._is_game_over = is_terminal(self._board)
        return True

    def record_score(self, name: Optional[str]) -> HighScoreEntry:
        return self.high_scores.add(name, self._score)

    def is_high_score_eligible(self, score: Optional[int] = None) -> bool:
        return self.high_scores.is_high_score(self._score if score is None else score)

    def new_game(self) -> "GameSession":
        return new_session(rng=self.rng, high_scores=self.high_scores, win_value=self.win_value)

    def snapshot(self) -> Dict:
        return {
            "board": self.board,
            "score": self._score,
            "isGameOver": self._is_game_over,
            "hasWon": self._has_won,
            "continuePlaying": self._continue_playing,
            "canUndo": self.can_undo(),
            "validMoves": valid_moves(self._board) if self.accepts_moves else [],
            "maxTile": max_tile(self._board),
            "isHighScore": self.is_high_score_eligible(),
            "highScores": self.high_scores.to_list(),
        }


def new_session(
    rng: Optional[np.random.Generator] = None,
    high_scores: Optional[HighScoreTable] = None,
    win_value: int = WINNING_TILE_VALUE,
) -> GameSession:
    return GameSession(rng=rng, high_scores=high_scores, win_value=win_value)


__all__ = [
    "GameSession",
    "HighScoreEntry",
    "HighScoreTable",
    "HISTORY_LIMIT",
    "HIGH_SCORE_LIMIT",
    "Snapshot",
    "new_session",
]
