#!/usr/bin/env python3
# sudoku_engine.py

"""Sudoku puzzle generator, solver and validator."""

import argparse
from datetime import timedelta
from timeit import default_timer as timer
from typing import Dict, List, Optional, Sequence, Tuple, Union

import numpy as np
from numpy.typing import NDArray

Board = NDArray[np.int_]  # Shape: (9, 9) = np.ndarray((9, 9), dtype=int)
BoardLike = Union[Board, str, Sequence[Sequence[int]]]
RngLike = Union[None, int, np.random.Generator]

# Number of blank cells targeted for each difficulty level (out of 81).
DIFFICULTY_BLANKS: Dict[str, int] = {
    "easy": 40,  # ~41 clues
    "medium": 50,  # ~31 clues
    "hard": 55,  # ~26 clues
    "expert": 60,  # ~21 clues
    "extreme": 64,  # ~17 clues, rarely reached
}
DEFAULT_DIFFICULTY = "medium"

# Two solutions are enough to tell "unique" from "not unique".
COUNT_LIMIT = 2

# Attempt cap for the carver's second phase: max(MIN, PER_BLANK * shortfall).
SECOND_PASS_MIN_ATTEMPTS = 1000
SECOND_PASS_ATTEMPTS_PER_BLANK = 200

DIGITS = np.arange(1, 10)


# Utility functions
def arr_to_str(board: Board) -> str:
    """Convert a 2D NumPy array to an 81-character string."""
    return "".join(str(int(n)) for n in np.ravel(board))


def str_to_arr(board: str) -> Board:
    """Convert an 81-character string to a 2D NumPy array. Both '0' and '.' are blanks."""
    s = board.strip().replace(".", "0")
    if len(s) != 81 or not s.isdigit():
        raise ValueError(f"Expected 81 digits, got {len(s)} characters: {board!r}")
    return np.array([int(c) for c in s], dtype=np.int_).reshape(9, 9)


def to_board(board: BoardLike) -> Board:
    """Return a fresh, writable 9x9 integer array from an array, nested lists or a string."""
    if isinstance(board, str):
        return str_to_arr(board)
    return np.array(board, dtype=np.int_)


def _try_board(board: BoardLike) -> Optional[NDArray]:
    """Like to_board() but keeps the dtype and returns None for input that is not a grid."""
    try:
        grid = str_to_arr(board) if isinstance(board, str) else np.asarray(board)
    except ValueError:  # bad string or ragged nested lists
        return None
    if grid.shape != (9, 9) or grid.dtype.kind not in "iu":
        return None
    return grid


def format_grid_to_strings(grid: Board) -> List[str]:
    """Formats a 9x9 grid for pretty printing, replacing 0s with spaces."""
    s = []
    for r in range(9):
        if r > 0 and r % 3 == 0:
            s.append("------+-------+------")
        row_str = "".join([str(d) if d != 0 else " " for d in grid[r, :]])
        s.append(
            " ".join(row_str[0:3])
            + " | "
            + " ".join(row_str[3:6])
            + " | "
            + " ".join(row_str[6:9])
        )
    return s


def format_grid_to_string(grid: Board) -> str:
    """Formats a 9x9 grid for pretty printing, replacing 0s with spaces."""
    return "\n".join(format_grid_to_strings(grid))


def print_grid(board: BoardLike) -> None:
    """Print Sudoku board."""
    print(format_grid_to_string(to_board(board)))


def print_grids(grids: List[BoardLike], titles: List[str], gap: str = "    ") -> None:
    """Print multiple Sudoku boards horizontally.
    For example, useful for puzzle and solution side by side.
    """
    grids_str = [format_grid_to_strings(to_board(grid)) for grid in grids]
    print(gap.join([f"{h:21s}" for h in titles]))
    lines = len(grids_str[0])
    print(
        "\n".join(
            [gap.join([grid_str[i] for grid_str in grids_str]) for i in range(lines)]
        )
    )


def count_blanks(board: BoardLike) -> int:
    """Count the number of blank/empty cells (0s) on the board."""
    board = str_to_arr(board) if isinstance(board, str) else np.asarray(board)
    return int(np.count_nonzero(board == 0))


def difficulty_blanks(difficulty: str) -> int:
    """Target blank-cell count for a difficulty name (case-insensitive)."""
    key = str(difficulty).strip().lower()
    if key not in DIFFICULTY_BLANKS:
        raise ValueError(
            f"Unknown difficulty {difficulty!r}, expected one of: "
            f"{', '.join(DIFFICULTY_BLANKS)}"
        )
    return DIFFICULTY_BLANKS[key]


# Constraints


def _is_valid(board: Board, row: int, col: int, n: int) -> bool:
    """
    Check to see if placing number 'n' at (row, col) is valid.
    Assumes the cell at (row, col) is currently 0.
    """
    if np.any(board[row, :] == n) or np.any(board[:, col] == n):
        return False
    start_row, start_col = 3 * (row // 3), 3 * (col // 3)
    return not np.any(board[start_row : start_row + 3, start_col : start_col + 3] == n)


def is_valid(board: BoardLike, row: int, col: int, n: int) -> bool:
    """
    Check to see if placing number 'n' at (row, col) is valid.
    Assumes the cell at (row, col) is currently 0.
    """
    board = str_to_arr(board) if isinstance(board, str) else np.asarray(board)
    return _is_valid(board, row, col, n)


def all_possible(board: BoardLike, row: int, col: int) -> List[int]:
    """
    Return all possible numbers that can be placed at (row, col)
    without violating the Sudoku rules.
    """
    board = str_to_arr(board) if isinstance(board, str) else np.asarray(board)
    return [n for n in range(1, 10) if _is_valid(board, row, col, n)]


def _build_peers() -> NDArray[np.bool_]:
    """PEERS[r, c] is a 9x9 mask of the cells sharing a row, column or box with (r, c)."""
    rows, cols = np.indices((9, 9))
    boxes = (rows // 3) * 3 + cols // 3
    peers = (
        (rows[:, :, None, None] == rows[None, None, :, :])
        | (cols[:, :, None, None] == cols[None, None, :, :])
        | (boxes[:, :, None, None] == boxes[None, None, :, :])
    )
    peers[rows, cols, rows, cols] = False
    return peers


PEERS = _build_peers()


def candidate_mask(board: Board) -> NDArray[np.bool_]:
    """
    Candidate sets of all cells at once, as a (9, 9, 9) boolean array:
    mask[r, c, n - 1] is True iff (r, c) is blank and digit n is absent
    from its row, column and box. Filled cells have no candidates.
    """
    one_hot = board[:, :, None] == DIGITS
    row_used = one_hot.any(axis=1)  # (row, digit)
    col_used = one_hot.any(axis=0)  # (col, digit)
    box_used = one_hot.reshape(3, 3, 3, 3, 9).any(axis=(1, 3))  # (box_row, box_col, digit)
    box_used = box_used.repeat(3, axis=0).repeat(3, axis=1)
    used = row_used[:, None, :] | col_used[None, :, :] | box_used
    return ~used & (board == 0)[:, :, None]


# Search heuristics


def find_blank(board: Board) -> Optional[Tuple[int, int]]:
    """
    Find the first blank/empty cell (0) on the board, scanning row by row.
    """
    blanks = np.argwhere(board == 0)
    if blanks.size == 0:
        return None
    return int(blanks[0][0]), int(blanks[0][1])


def find_best_cell(
    board: Board,
    rng: RngLike = None,
    mask: Optional[NDArray[np.bool_]] = None,
) -> Optional[Tuple[int, int, List[int]]]:
    """
    Minimum remaining values (MRV): return (row, col, candidates) of the blank cell
    with the fewest candidates, or None if the board is full.

    Blank cells are scanned in a random order and the first minimum wins, so ties
    do not favor any position. A cell with no candidates at all is a dead end and
    is returned as soon as it is met in the scan.
    """
    rng = np.random.default_rng(rng)
    if mask is None:
        mask = candidate_mask(board)
    blanks = np.argwhere(board == 0)
    if blanks.size == 0:
        return None
    blanks = blanks[rng.permutation(len(blanks))]
    counts = mask[blanks[:, 0], blanks[:, 1]].sum(axis=1)
    row, col = (int(i) for i in blanks[int(np.argmin(counts))])
    return row, col, [int(n) for n in np.flatnonzero(mask[row, col]) + 1]


def order_candidates_lcv(
    board: Board,
    row: int,
    col: int,
    candidates: Sequence[int],
    rng: RngLike = None,
    mask: Optional[NDArray[np.bool_]] = None,
) -> List[int]:
    """
    Least constraining value (LCV): order the candidates of (row, col) so that
    the digit leaving the most candidates across all other blank cells comes
    first. Ties are broken randomly.

    The score of digit n is the total candidate count of the other blank cells
    after n is placed. Placing n only takes n away from blank peers that still
    allow it, so the score is the current total minus that number.
    """
    rng = np.random.default_rng(rng)
    if mask is None:
        mask = candidate_mask(board)
    if not candidates:
        return []
    total = int(mask.sum()) - int(mask[row, col].sum())
    lost = mask[PEERS[row, col]].sum(axis=0)  # per digit, blank peers losing it
    scores = np.array([total - int(lost[n - 1]) for n in candidates])
    order = np.lexsort((rng.random(len(scores)), -scores))
    return [int(candidates[i]) for i in order]


# Sudoku Solvers


def _solve_brute(board: Board) -> bool:
    """
    Row-major backtracking, digits tried in ascending order. Fills the board
    in place and returns True, or restores it and returns False.
    """
    blanks = [(int(r), int(c)) for r, c in np.argwhere(board == 0)]
    grid = board.tolist()
    rows = [set(grid[r]) - {0} for r in range(9)]
    cols = [{grid[r][c] for r in range(9)} - {0} for c in range(9)]
    boxes = [set() for _ in range(9)]
    for r in range(9):
        for c in range(9):
            if grid[r][c]:
                boxes[(r // 3) * 3 + c // 3].add(grid[r][c])

    def _solve(i: int) -> bool:
        if i == len(blanks):
            return True
        r, c = blanks[i]
        b = (r // 3) * 3 + c // 3
        for n in range(1, 10):
            # Same test as _is_valid(), answered from the per-unit sets
            if n in rows[r] or n in cols[c] or n in boxes[b]:
                continue
            board[r, c] = n
            rows[r].add(n)
            cols[c].add(n)
            boxes[b].add(n)
            if _solve(i + 1):
                return True
            rows[r].discard(n)
            cols[c].discard(n)
            boxes[b].discard(n)
        board[r, c] = 0  # Backtrack
        return False

    return _solve(0)


def solve(board: BoardLike) -> Optional[Board]:
    """
    Solve the puzzle with deterministic row-major backtracking.

    Returns a new completed board, or None when the puzzle has no solution
    (including puzzles whose clues already break a rule). When several
    solutions exist, the first one in scan order is returned.
    The given board is not modified.
    """
    if not is_structurally_valid(board):
        return None
    result = to_board(board)
    if _solve_brute(result):
        return result
    return None


def _count_solutions(board: Board, limit: int, rng: np.random.Generator) -> int:
    """Counts the solutions of a board up to a limit, searching in place with MRV + LCV."""
    count = 0

    def _solve() -> bool:
        """Backtracking solver that counts solutions, returns True once count_limit is hit."""
        nonlocal count
        mask = candidate_mask(board)
        cell = find_best_cell(board, rng, mask)
        if cell is None:
            count += 1
            return count >= limit

        row, col, candidates = cell
        for n in order_candidates_lcv(board, row, col, candidates, rng, mask):
            board[row, col] = n
            if _solve():
                board[row, col] = 0
                return True
        board[row, col] = 0  # Backtrack
        return False

    _solve()
    return count


def count_solutions(board: BoardLike, limit: int = COUNT_LIMIT, rng: RngLike = None) -> int:
    """
    Counts the number of solutions for a board, stopping as soon as `limit` is reached.

    1 means the solution is unique, 0 that there is none, and `limit` that there
    are at least that many. The given board is not modified.
    """
    if limit < 1:
        raise ValueError(f"limit must be a positive integer, got {limit}")
    if not is_structurally_valid(board):
        return 0
    return _count_solutions(to_board(board), limit, np.random.default_rng(rng))


# Sudoku Builder


def _fill_grid(board: Board, rng: np.random.Generator) -> bool:
    """Randomized backtracking fill using MRV cell selection and LCV value ordering."""
    mask = candidate_mask(board)
    cell = find_best_cell(board, rng, mask)
    if cell is None:
        return True  # Solved

    row, col, candidates = cell
    for n in order_candidates_lcv(board, row, col, candidates, rng, mask):
        board[row, col] = n
        if _fill_grid(board, rng):
            return True
    board[row, col] = 0  # Backtrack
    return False


def fill_grid(board: Board, rng: RngLike = None) -> bool:
    """Fill all blank cells of the board in place. Returns False if it cannot be completed."""
    return _fill_grid(board, np.random.default_rng(rng))


def generate_solved_sudoku(rng: RngLike = None) -> Board:
    """Generates a complete, solved Sudoku grid using a randomized backtracking algorithm."""
    grid = np.zeros((9, 9), dtype=np.int_)
    _fill_grid(grid, np.random.default_rng(rng))
    return grid


def _try_remove(puzzle: Board, row: int, col: int, rng: np.random.Generator) -> bool:
    """Blank (row, col) if the puzzle stays uniquely solvable, otherwise restore it."""
    saved = puzzle[row, col]
    puzzle[row, col] = 0
    if _count_solutions(puzzle.copy(), COUNT_LIMIT, rng) == 1:
        return True
    puzzle[row, col] = saved
    return False


def carve_puzzle(
    solution: Board, num_blanks: int, rng: RngLike = None, debug: bool = False
) -> Board:
    """
    Removes numbers from a solved grid, one cell at a time, keeping only the
    removals after which the puzzle still has exactly one solution.

    Cells are tried once in a shuffled order. If `num_blanks` is not reached,
    the same order is cycled through again for a bounded number of attempts.
    The result may have fewer blanks than requested but never more.
    """
    rng = np.random.default_rng(rng)
    puzzle = solution.copy()
    coords = [(int(r), int(c)) for r, c in np.ndindex(9, 9)]
    coords = [coords[i] for i in rng.permutation(len(coords))]

    count_sol_count = 0  # Count how many times we called expensive count_solutions()
    removed = 0
    for row, col in coords:
        if removed >= num_blanks:
            break
        if puzzle[row, col] == 0:
            continue
        count_sol_count += 1
        if _try_remove(puzzle, row, col, rng):
            removed += 1

    if removed < num_blanks:
        max_attempts = max(
            SECOND_PASS_MIN_ATTEMPTS,
            (num_blanks - removed) * SECOND_PASS_ATTEMPTS_PER_BLANK,
        )
        attempts = 0
        idle = 0  # attempts since the last accepted removal
        # A full cycle without a removal leaves the puzzle unchanged, so later cycles would repeat it.
        while removed < num_blanks and attempts < max_attempts and idle < len(coords):
            row, col = coords[attempts % len(coords)]
            attempts += 1
            idle += 1
            if puzzle[row, col] == 0:
                continue
            count_sol_count += 1
            if _try_remove(puzzle, row, col, rng):
                removed += 1
                idle = 0
        _ = debug and print(
            f"DEBUG: Second pass made {attempts} attempts, "
            f"{num_blanks - removed} blanks short of target {num_blanks}."
        )

    _ = debug and print(
        f"DEBUG: Generated a puzzle with {81 - removed} clues / {removed} blanks: "
        f"{count_sol_count} calls to count_solutions()."
    )
    return puzzle


class SudokuPuzzle:
    """Generated Sudoku puzzle and its unique solution. Both boards are read-only."""

    def __init__(
        self,
        puzzle: BoardLike,
        solution: BoardLike,
        difficulty: Optional[str] = None,
    ):
        self._puzzle = to_board(puzzle)
        self._solution = to_board(solution)
        self._puzzle.flags.writeable = False
        self._solution.flags.writeable = False
        self._difficulty = difficulty

    @property
    def puzzle(self) -> Board:
        """Puzzle board, 0 for blanks."""
        return self._puzzle

    @property
    def solution(self) -> Board:
        """Puzzle solution."""
        return self._solution

    @property
    def difficulty(self) -> Optional[str]:
        """Requested difficulty level."""
        return self._difficulty

    @property
    def blanks(self) -> int:
        """Actual number of blank cells, which may fall short of the difficulty target."""
        return count_blanks(self._puzzle)

    @property
    def puzzle_str(self) -> str:
        return arr_to_str(self._puzzle)

    @property
    def solution_str(self) -> str:
        return arr_to_str(self._solution)

    def __repr__(self) -> str:
        return (
            f"SudokuPuzzle(difficulty={self._difficulty!r}, blanks={self.blanks}, "
            f"puzzle={self.puzzle_str!r})"
        )


def generate(
    difficulty: str = DEFAULT_DIFFICULTY, rng: RngLike = None, debug: bool = False
) -> SudokuPuzzle:
    """
    Generate a puzzle with a unique solution for the given difficulty level.

    `rng` may be a seed or a numpy Generator; the same seed gives the same puzzle.
    Treat the returned puzzle's `blanks` as authoritative: hard levels may fall
    short of the nominal target.
    """
    num_blanks = difficulty_blanks(difficulty)
    rng = np.random.default_rng(rng)
    solution = generate_solved_sudoku(rng)
    puzzle = carve_puzzle(solution, num_blanks, rng, debug)
    return SudokuPuzzle(puzzle, solution, str(difficulty).strip().lower())


# Validation


def is_structurally_valid(board: BoardLike) -> bool:
    """
    Check a complete or partial board for rule violations: every value in 0-9
    and no repeated digit in any row, column or box. Says nothing about
    whether the board can be solved.
    """
    grid = _try_board(board)
    if grid is None:
        return False
    rows = [set() for _ in range(9)]
    cols = [set() for _ in range(9)]
    boxes = [set() for _ in range(9)]
    for r, line in enumerate(grid.tolist()):
        for c, n in enumerate(line):
            if n < 0 or n > 9:
                return False
            if n == 0:
                continue
            b = (r // 3) * 3 + c // 3
            if n in rows[r] or n in cols[c] or n in boxes[b]:
                return False
            rows[r].add(n)
            cols[c].add(n)
            boxes[b].add(n)
    return True


def validate_answer(submitted: BoardLike, solution: BoardLike) -> bool:
    """True iff all 81 cells of the submitted board match the solution exactly."""
    submitted_grid = _try_board(submitted)
    solution_grid = _try_board(solution)
    if submitted_grid is None or solution_grid is None:
        return False
    return bool(np.array_equal(submitted_grid, solution_grid))


# Command line


def _cmd_generate(args) -> int:
    rng = np.random.default_rng(args.seed)
    for i in range(args.count):
        s = generate(args.difficulty, rng, args.debug)
        print(f"Puzzle {i + 1} of {args.count}: {s.difficulty}, {s.blanks} blanks")
        print(f"Puzzle   : {s.puzzle_str}")
        print(f"Solution : {s.solution_str}")
        if args.show_boards:
            print_grids([s.puzzle, s.solution], ["Puzzle", "Solution"])
        print()
    return 0


def _cmd_solve(args) -> int:
    result = solve(args.puzzle)
    if result is None:
        print("Puzzle has no solution")
        return 1
    print(arr_to_str(result))
    if args.show_boards:
        print_grids([args.puzzle, result], ["Puzzle", "Solution"])
    return 0


def _cmd_count(args) -> int:
    if not is_structurally_valid(args.puzzle):
        print("Invalid puzzle")
        return 1
    count = count_solutions(args.puzzle, args.limit, args.seed)
    more = "+" if count >= args.limit else ""
    print(f"Number of solutions: {count}{more}")
    return 0


def _cmd_validate(args) -> int:
    if args.solution is not None:
        ok = validate_answer(args.grid, args.solution)
        print("Answer matches solution" if ok else "Answer does not match solution")
    else:
        ok = is_structurally_valid(args.grid)
        print("Valid grid" if ok else "Invalid grid")
    return 0 if ok else 1


def _cmd_bench(args) -> int:
    if args.num_iter <= 0:
        raise ValueError("num_iter must be a positive integer")
    rng = np.random.default_rng(args.seed)
    levels = [args.difficulty] if args.difficulty else list(DIFFICULTY_BLANKS)
    for level in levels:
        blanks = []
        start_time = timer()
        for _i in range(args.num_iter):
            blanks.append(generate(level, rng).blanks)
        elapsed_time = (timer() - start_time) / args.num_iter
        time_str = str(timedelta(seconds=elapsed_time))
        print(
            f"{level:8s}: target {DIFFICULTY_BLANKS[level]} blanks, "
            f"got {min(blanks)}-{max(blanks)} (mean {np.mean(blanks):.1f}), "
            f"{time_str} per puzzle"
        )
    return 0


def parse_args(argv: Optional[List[str]] = None):
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(description="Sudoku puzzle generator and solver")
    subparsers = parser.add_subparsers(dest="command", required=True)

    p = subparsers.add_parser("generate", help="Generate puzzles.")
    p.add_argument(
        "--difficulty",
        type=str,
        default=DEFAULT_DIFFICULTY,
        choices=list(DIFFICULTY_BLANKS),
        help="Difficulty level.",
    )
    p.add_argument("--count", type=int, default=1, help="Number of puzzles to generate.")
    p.add_argument("--seed", type=int, default=None, help="Random seed for reproducibility.")
    p.add_argument("--debug", action="store_true", help="Print generation diagnostics.")
    p.add_argument("--show_boards", action="store_true", help="Show puzzles and solutions.")
    p.set_defaults(func=_cmd_generate)

    p = subparsers.add_parser("solve", help="Solve a puzzle.")
    p.add_argument("puzzle", type=str, help="Sudoku puzzle string (81 chars, 0 or . for blank).")
    p.add_argument("--show_boards", action="store_true", help="Show puzzle and solution.")
    p.set_defaults(func=_cmd_solve)

    p = subparsers.add_parser("count", help="Count solutions of a puzzle.")
    p.add_argument("puzzle", type=str, help="Sudoku puzzle string (81 chars, 0 or . for blank).")
    p.add_argument(
        "--limit", type=int, default=COUNT_LIMIT, help="Stop counting at this many solutions."
    )
    p.add_argument("--seed", type=int, default=None, help="Random seed for the search order.")
    p.set_defaults(func=_cmd_count)

    p = subparsers.add_parser("validate", help="Check a grid, or compare it to a solution.")
    p.add_argument("grid", type=str, help="Sudoku grid string (81 chars, 0 or . for blank).")
    p.add_argument(
        "--solution", type=str, default=None, help="Solution string to compare against."
    )
    p.set_defaults(func=_cmd_validate)

    p = subparsers.add_parser("bench", help="Time puzzle generation.")
    p.add_argument(
        "--difficulty",
        type=str,
        default=None,
        choices=list(DIFFICULTY_BLANKS),
        help="Difficulty level (default: all levels).",
    )
    p.add_argument("--num_iter", type=int, default=10, help="Puzzles per difficulty level.")
    p.add_argument("--seed", type=int, default=None, help="Random seed for reproducibility.")
    p.set_defaults(func=_cmd_bench)

    args = parser.parse_args(argv)

    return args, parser


def main(argv: Optional[List[str]] = None) -> int:
    """Main function to run the Sudoku tool."""
    args, _parser = parse_args(argv)
    return args.func(args)


if __name__ == "__main__":
    exit(main())
