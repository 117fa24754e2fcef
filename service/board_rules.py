"""Core 2048 board mechanics shared by the game session, the server and tests."""

from enum import Enum
from typing import Callable, Dict, Iterable, List, NamedTuple, Optional, Sequence, Tuple

import numpy as np

BOARD_SIZE = 4
WINNING_TILE_VALUE = 2048
FOUR_PROBABILITY = 0.1


class Direction(Enum):
    UP = "UP"
    RIGHT = "RIGHT"
    DOWN = "DOWN"
    LEFT = "LEFT"

    @classmethod
    def parse(cls, value) -> "Direction":
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            try:
                return cls(value.strip().upper())
            except ValueError:
                pass
        raise ValueError(f"Unknown direction: {value}")


DIRECTION_NAMES: Sequence[str] = tuple(d.value for d in Direction)


class MoveResult(NamedTuple):
    board: np.ndarray
    changed: bool
    score_gain: int
    reached_win: bool


def as_board(grid) -> np.ndarray:
    board = np.array(grid, dtype=np.int64)
    if board.shape != (BOARD_SIZE, BOARD_SIZE):
        raise ValueError(f"Expected {BOARD_SIZE}x{BOARD_SIZE} grid, received shape {board.shape}")
    return board


def is_valid_board(grid) -> bool:
    """True for a 4x4 grid whose cells are 0 or powers of two >= 2."""
    try:
        board = as_board(grid)
    except (OverflowError, TypeError, ValueError):
        return False
    if np.any(board < 0):
        return False
    tiles = board[board != 0]
    return bool(np.all((tiles >= 2) & ((tiles & (tiles - 1)) == 0)))


def transpose(board: np.ndarray) -> np.ndarray:
    return board.T.copy()


def reverse_rows(board: np.ndarray) -> np.ndarray:
    return np.fliplr(board).copy()


# Each transform is its own inverse, so a move undoes them in reverse order.
_PRE_TRANSFORMS: Dict[Direction, Tuple[Callable[[np.ndarray], np.ndarray], ...]] = {
    Direction.LEFT: (),
    Direction.RIGHT: (reverse_rows,),
    Direction.UP: (transpose,),
    Direction.DOWN: (transpose, reverse_rows),
}


def _compress(line: Iterable[int]) -> List[int]:
    filtered = [v for v in line if v != 0]
    return filtered + [0] * (BOARD_SIZE - len(filtered))


def slide_and_merge_left(
    row: Iterable[int], win_value: int = WINNING_TILE_VALUE
) -> Tuple[List[int], int, bool]:
    """Slide one row to the left, merging equal neighbours in a single pass.

    Returns the new row, the score gained and whether a merge produced
    ``win_value``. A merged tile never merges again in the same move, so
    ``[2, 2, 2, 2]`` becomes ``[4, 4, 0, 0]``.
    """
    line = _compress(int(v) for v in row)
    gain = 0
    won = False
    for idx in range(BOARD_SIZE - 1):
        if line[idx] != 0 and line[idx] == line[idx + 1]:
            line[idx] *= 2
            line[idx + 1] = 0
            gain += line[idx]
            if line[idx] == win_value:
                won = True
    return _compress(line), gain, won


def _apply_left(board: np.ndarray, win_value: int) -> Tuple[np.ndarray, int, bool]:
    rows = []
    gain = 0
    won = False
    for row in board:
        new_row, row_gain, row_won = slide_and_merge_left(row.tolist(), win_value)
        rows.append(new_row)
        gain += row_gain
        won = won or row_won
    return np.array(rows, dtype=np.int64), gain, won


def apply_move_logic(grid, direction, win_value: int = WINNING_TILE_VALUE) -> MoveResult:
    direction = Direction.parse(direction)
    original = as_board(grid)

    transforms = _PRE_TRANSFORMS[direction]
    working = original
    for transform in transforms:
        working = transform(working)
    moved, gain, won = _apply_left(working, win_value)
    for transform in reversed(transforms):
        moved = transform(moved)

    changed = not np.array_equal(moved, original)
    return MoveResult(moved, changed, gain, won)


def simulate_move(grid: Sequence[Sequence[int]], direction: str) -> Tuple[np.ndarray, bool]:
    result = apply_move_logic(grid, direction)
    return result.board, result.changed


def valid_moves(grid: Sequence[Sequence[int]]) -> List[str]:
    allowed: List[str] = []
    for direction in DIRECTION_NAMES:
        _, changed = simulate_move(grid, direction)
        if changed:
            allowed.append(direction)
    return allowed


def empty_cells(board: np.ndarray) -> List[Tuple[int, int]]:
    return [(int(r), int(c)) for r, c in np.argwhere(as_board(board) == 0)]


def max_tile(board: np.ndarray) -> int:
    return int(as_board(board).max())


def make_rng(seed: Optional[int] = None) -> np.random.Generator:
    return np.random.default_rng(seed)


def spawn_tile(grid, rng: np.random.Generator) -> np.ndarray:
    """Return a copy of ``grid`` with a 2 (90%) or 4 (10%) in a random empty cell.

    A full board is returned unchanged.
    """
    board = as_board(grid)
    cells = empty_cells(board)
    if not cells:
        return board
    r, c = cells[int(rng.integers(len(cells)))]
    board[r, c] = 4 if rng.random() < FOUR_PROBABILITY else 2
    return board


def is_terminal(grid) -> bool:
    board = as_board(grid)
    if np.any(board == 0):
        return False
    if np.any(board[:, :-1] == board[:, 1:]):
        return False
    if np.any(board[:-1, :] == board[1:, :]):
        return False
    return True


__all__ = [
    "BOARD_SIZE",
    "DIRECTION_NAMES",
    "Direction",
    "MoveResult",
    "WINNING_TILE_VALUE",
    "apply_move_logic",
    "as_board",
    "empty_cells",
    "is_terminal",
    "is_valid_board",
    "make_rng",
    "max_tile",
    "reverse_rows",
    "simulate_move",
    "slide_and_merge_left",
    "spawn_tile",
    "transpose",
    "valid_moves",
]
