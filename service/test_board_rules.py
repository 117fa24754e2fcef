"""Tests for the board transformation and move-resolution rules."""

import unittest

import numpy as np

from board_rules import (
    DIRECTION_NAMES,
    Direction,
    apply_move_logic,
    as_board,
    empty_cells,
    is_terminal,
    is_valid_board,
    make_rng,
    max_tile,
    reverse_rows,
    simulate_move,
    slide_and_merge_left,
    spawn_tile,
    transpose,
    valid_moves,
)

SAMPLE = [
    [2, 0, 0, 2],
    [4, 4, 0, 0],
    [0, 0, 8, 8],
    [16, 0, 16, 0],
]

LOCKED = [
    [2, 4, 2, 4],
    [4, 2, 4, 2],
    [2, 4, 2, 4],
    [4, 2, 4, 2],
]


def _random_board(rng: np.random.Generator) -> np.ndarray:
    return rng.choice([0, 0, 2, 4, 8, 16], size=(4, 4))


class SlideAndMergeLeftTests(unittest.TestCase):
    """Covers board_rules.slide_and_merge_left on single rows."""

    def test_four_equal_tiles_merge_pairwise_once(self) -> None:
        self.assertEqual(slide_and_merge_left([2, 2, 2, 2]), ([4, 4, 0, 0], 8, False))

    def test_gaps_are_compacted_before_merging(self) -> None:
        self.assertEqual(slide_and_merge_left([0, 2, 0, 2]), ([4, 0, 0, 0], 4, False))

    def test_merged_tile_does_not_chain(self) -> None:
        self.assertEqual(slide_and_merge_left([2, 2, 4, 0]), ([4, 4, 0, 0], 4, False))
        self.assertEqual(slide_and_merge_left([4, 4, 8, 0]), ([8, 8, 0, 0], 8, False))

    def test_slide_without_merge(self) -> None:
        self.assertEqual(slide_and_merge_left([0, 0, 4, 2]), ([4, 2, 0, 0], 0, False))

    def test_leftmost_pair_wins_ties(self) -> None:
        self.assertEqual(slide_and_merge_left([8, 8, 8, 0]), ([16, 8, 0, 0], 16, False))

    def test_reaching_winning_value_is_reported(self) -> None:
        self.assertEqual(slide_and_merge_left([1024, 1024, 0, 0]), ([2048, 0, 0, 0], 2048, True))

    def test_winning_value_is_configurable(self) -> None:
        _, _, won = slide_and_merge_left([4, 4, 0, 0], win_value=8)
        self.assertTrue(won)


class ApplyMoveLogicTests(unittest.TestCase):
    """Covers board_rules.apply_move_logic for all four directions."""

    def test_left(self) -> None:
        result = apply_move_logic(SAMPLE, Direction.LEFT)
        self.assertEqual(result.board.tolist(), [[4, 0, 0, 0], [8, 0, 0, 0], [16, 0, 0, 0], [32, 0, 0, 0]])
        self.assertTrue(result.changed)
        self.assertEqual(result.score_gain, 60)
        self.assertFalse(result.reached_win)

    def test_right(self) -> None:
        result = apply_move_logic(SAMPLE, "RIGHT")
        self.assertEqual(result.board.tolist(), [[0, 0, 0, 4], [0, 0, 0, 8], [0, 0, 0, 16], [0, 0, 0, 32]])
        self.assertEqual(result.score_gain, 60)

    def test_up(self) -> None:
        result = apply_move_logic(SAMPLE, "up")
        self.assertEqual(result.board.tolist(), [[2, 4, 8, 2], [4, 0, 16, 8], [16, 0, 0, 0], [0, 0, 0, 0]])
        self.assertEqual(result.score_gain, 0)
        self.assertTrue(result.changed)

    def test_down(self) -> None:
        result = apply_move_logic(SAMPLE, Direction.DOWN)
        self.assertEqual(result.board.tolist(), [[0, 0, 0, 0], [2, 0, 0, 0], [4, 0, 8, 2], [16, 4, 16, 8]])

    def test_down_merges_nearest_the_bottom_first(self) -> None:
        board = [[2, 0, 0, 0], [2, 0, 0, 0], [2, 0, 0, 0], [0, 0, 0, 0]]
        result = apply_move_logic(board, Direction.DOWN)
        self.assertEqual([row[0] for row in result.board.tolist()], [0, 0, 2, 4])
        self.assertEqual(result.score_gain, 4)

    def test_no_op_move_is_not_a_change(self) -> None:
        board = [[2, 4, 8, 16], [0, 0, 0, 0], [0, 0, 0, 0], [0, 0, 0, 0]]
        result = apply_move_logic(board, Direction.LEFT)
        self.assertFalse(result.changed)
        self.assertEqual(result.board.tolist(), board)
        self.assertEqual(result.score_gain, 0)

    def test_input_board_is_not_mutated(self) -> None:
        board = as_board(SAMPLE)
        apply_move_logic(board, Direction.DOWN)
        self.assertEqual(board.tolist(), SAMPLE)

    def test_repeating_a_move_changes_only_through_merges(self) -> None:
        rng = make_rng(7)
        for _ in range(200):
            board = _random_board(rng)
            for direction in Direction:
                first = apply_move_logic(board, direction)
                second = apply_move_logic(first.board, direction)
                if not first.changed:
                    self.assertTrue(np.array_equal(first.board, board))
                    self.assertFalse(second.changed)
                if second.changed:
                    self.assertGreater(second.score_gain, 0)

    def test_total_tile_value_is_preserved(self) -> None:
        rng = make_rng(11)
        for _ in range(100):
            board = _random_board(rng)
            for direction in Direction:
                self.assertEqual(int(apply_move_logic(board, direction).board.sum()), int(board.sum()))

    def test_unknown_direction(self) -> None:
        with self.assertRaises(ValueError):
            apply_move_logic(SAMPLE, "SIDEWAYS")

    def test_wrong_shape(self) -> None:
        with self.assertRaises(ValueError):
            apply_move_logic([[2, 2], [0, 0]], Direction.LEFT)


class TransformTests(unittest.TestCase):
    """Covers the transpose and reverse_rows grid transforms."""

    def test_transforms_are_self_inverse(self) -> None:
        board = as_board(SAMPLE)
        self.assertEqual(transpose(transpose(board)).tolist(), SAMPLE)
        self.assertEqual(reverse_rows(reverse_rows(board)).tolist(), SAMPLE)

    def test_transpose_returns_a_copy(self) -> None:
        board = as_board(SAMPLE)
        flipped = transpose(board)
        flipped[0, 0] = 512
        self.assertEqual(board[0, 0], 2)


class DirectionTests(unittest.TestCase):
    """Covers Direction.parse."""

    def test_parse_names_case_insensitively(self) -> None:
        self.assertIs(Direction.parse("left"), Direction.LEFT)
        self.assertIs(Direction.parse(" Up "), Direction.UP)
        self.assertIs(Direction.parse(Direction.DOWN), Direction.DOWN)

    def test_parse_rejects_unknown_values(self) -> None:
        for value in ("NORTH", "", None, 3):
            with self.assertRaises(ValueError):
                Direction.parse(value)


class ValidMovesTests(unittest.TestCase):
    """Covers board_rules.valid_moves and simulate_move."""

    def test_sample_allows_every_direction(self) -> None:
        self.assertEqual(valid_moves(SAMPLE), ["UP", "RIGHT", "DOWN", "LEFT"])

    def test_names_follow_the_enum(self) -> None:
        """Valid moves are reported in the enum's UP, RIGHT, DOWN, LEFT order."""
        self.assertEqual(DIRECTION_NAMES, ("UP", "RIGHT", "DOWN", "LEFT"))
        self.assertEqual(DIRECTION_NAMES, tuple(d.value for d in Direction))

    def test_locked_board_allows_nothing(self) -> None:
        self.assertEqual(valid_moves(LOCKED), [])

    def test_simulate_move_matches_apply_move_logic(self) -> None:
        board, changed = simulate_move(SAMPLE, "LEFT")
        self.assertTrue(changed)
        self.assertEqual(board.tolist(), apply_move_logic(SAMPLE, "LEFT").board.tolist())


class SpawnTileTests(unittest.TestCase):
    """Covers board_rules.spawn_tile placement and odds."""

    def test_single_empty_cell_is_always_filled(self) -> None:
        board = [row[:] for row in LOCKED]
        board[2][1] = 0
        for seed in range(50):
            spawned = spawn_tile(board, make_rng(seed))
            self.assertIn(spawned[2, 1], (2, 4))
            self.assertEqual(spawned.tolist()[0], LOCKED[0])
        self.assertEqual(board[2][1], 0)

    def test_never_overwrites_a_tile(self) -> None:
        rng = make_rng(3)
        for _ in range(200):
            board = _random_board(rng)
            spawned = spawn_tile(board, rng)
            occupied = board != 0
            self.assertTrue(np.array_equal(spawned[occupied], board[occupied]))
            if empty_cells(board):
                self.assertEqual(int((spawned != board).sum()), 1)

    def test_full_board_is_unchanged(self) -> None:
        self.assertEqual(spawn_tile(LOCKED, make_rng(0)).tolist(), LOCKED)

    def test_seeded_rng_is_reproducible(self) -> None:
        empty = np.zeros((4, 4), dtype=int)
        first = spawn_tile(spawn_tile(empty, make_rng(42)), make_rng(43))
        second = spawn_tile(spawn_tile(empty, make_rng(42)), make_rng(43))
        self.assertEqual(first.tolist(), second.tolist())

    def test_mostly_twos(self) -> None:
        rng = make_rng(5)
        empty = np.zeros((4, 4), dtype=int)
        values = [int(spawn_tile(empty, rng).sum()) for _ in range(2000)]
        fours = values.count(4)
        self.assertEqual(values.count(2) + fours, 2000)
        self.assertTrue(100 < fours < 320, fours)


class TerminalTests(unittest.TestCase):
    """Covers board_rules.is_terminal."""

    def test_locked_board_is_terminal(self) -> None:
        self.assertTrue(is_terminal(LOCKED))

    def test_empty_cell_is_not_terminal(self) -> None:
        board = [row[:] for row in LOCKED]
        board[3][3] = 0
        self.assertFalse(is_terminal(board))

    def test_horizontal_pair_is_not_terminal(self) -> None:
        board = [row[:] for row in LOCKED]
        board[0][1] = 2
        self.assertFalse(is_terminal(board))

    def test_vertical_pair_is_not_terminal(self) -> None:
        board = [row[:] for row in LOCKED]
        board[3] = [2, 8, 16, 32]
        board[2] = [2, 4, 2, 4]
        self.assertFalse(is_terminal(board))


class BoardHelperTests(unittest.TestCase):
    """Covers board validation and small board helpers."""

    def test_is_valid_board(self) -> None:
        self.assertTrue(is_valid_board(SAMPLE))
        self.assertFalse(is_valid_board([[3, 0, 0, 0]] + [[0] * 4] * 3))
        self.assertFalse(is_valid_board([[1, 0, 0, 0]] + [[0] * 4] * 3))
        self.assertFalse(is_valid_board([[-2, 0, 0, 0]] + [[0] * 4] * 3))
        self.assertFalse(is_valid_board([[2, 0, 0]] * 4))
        self.assertFalse(is_valid_board(None))
        self.assertFalse(is_valid_board([[2**70, 0, 0, 0]] + [[0] * 4] * 3))

    def test_max_tile_and_empty_cells(self) -> None:
        self.assertEqual(max_tile(SAMPLE), 16)
        self.assertEqual(len(empty_cells(SAMPLE)), 8)
        self.assertEqual(empty_cells(LOCKED), [])


if __name__ == "__main__":  # pragma: no cover
    unittest.main()
