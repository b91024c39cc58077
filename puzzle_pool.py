#!/usr/bin/env python3
# puzzle_pool.py

"""Pool of worker processes keeping generated Sudoku puzzles ready.

Generation is CPU bound and has no internal cancellation point, so a host that
must answer quickly takes puzzles from this pool instead of calling
sudoku_engine.generate() on its request path.
"""

import multiprocessing as mp
import queue
import time
from multiprocessing.sharedctypes import Synchronized
from multiprocessing.synchronize import Event
from typing import List, Optional

import numpy as np

from sudoku_engine import (
    DEFAULT_DIFFICULTY,
    DIFFICULTY_BLANKS,
    SudokuPuzzle,
    difficulty_blanks,
    generate,
)

LEVELS = list(DIFFICULTY_BLANKS)


def _puzzle_worker(
    puzzle_queue: mp.Queue,
    stop_event: Event,
    level_shared: Synchronized,
    seed_seq: np.random.SeedSequence,
    debug: bool,
):
    """Worker process to generate Sudoku puzzles. Handles Ctrl-C gracefully."""
    rng = np.random.default_rng(seed_seq)
    # Puzzles still buffered at shutdown are dropped rather than blocking exit
    puzzle_queue.cancel_join_thread()
    try:
        while not stop_event.is_set():
            # Read the current difficulty from shared memory
            difficulty = LEVELS[level_shared.value]
            s = generate(difficulty, rng, debug)
            # Serialize numpy arrays to strings to minimize memory use in pipe
            item = (s.puzzle_str, s.solution_str, difficulty)
            while not stop_event.is_set():
                try:
                    puzzle_queue.put(item, timeout=0.1)
                    break
                except queue.Full:
                    continue  # Don't overfill the queue
    except KeyboardInterrupt:
        pass  # Exit gracefully on Ctrl-C


class PuzzleGenerator:
    """Manages a pool of worker processes to generate puzzles asynchronously."""

    def __init__(
        self,
        num_workers: int = 1,
        difficulty: str = DEFAULT_DIFFICULTY,
        max_queued: int = 100,
        seed: Optional[int] = None,
        debug: bool = False,
    ):
        if num_workers < 1:
            raise ValueError(f"num_workers must be a positive integer, got {num_workers}")
        difficulty_blanks(difficulty)
        self.num_workers = num_workers
        self.debug = debug
        # Use shared memory for dynamic difficulty updates
        self.level: Synchronized = mp.Value("i", LEVELS.index(difficulty.strip().lower()))
        self.puzzle_queue = mp.Queue(maxsize=max_queued)
        self.stop_event: Event = mp.Event()
        self.workers: List[mp.Process] = []
        # Independent random streams, one per worker
        self._seeds = np.random.SeedSequence(seed).spawn(num_workers)

    @property
    def difficulty(self) -> str:
        """Difficulty level the workers currently generate."""
        return LEVELS[self.level.value]

    def start(self):
        """Starts the worker processes."""
        if self.workers:
            raise RuntimeError("Puzzle generator workers already started")
        print(f"Starting {self.num_workers} puzzle generator workers...")
        for seed_seq in self._seeds:
            p = mp.Process(
                target=_puzzle_worker,
                args=(
                    self.puzzle_queue,
                    self.stop_event,
                    self.level,
                    seed_seq,
                    self.debug,
                ),
                daemon=True,
            )
            p.start()
            self.workers.append(p)

    def stop(self):
        """Stops all worker processes."""
        print("Stopping puzzle generator workers...")
        self.stop_event.set()
        # Clear the queue to unblock workers if they are waiting
        self._drain()
        for p in self.workers:
            p.join(timeout=5)
            if p.is_alive():
                p.terminate()  # Force terminate if join fails
        print("Puzzle workers stopped.")

    def get_puzzle(self, timeout: Optional[float] = None) -> SudokuPuzzle:
        """
        Retrieves a pre-generated puzzle of the current difficulty from the queue.
        Blocks until one is available; raises queue.Empty if `timeout` seconds pass first.
        """
        deadline = None if timeout is None else time.monotonic() + timeout
        while True:
            remaining = None if deadline is None else max(0.0, deadline - time.monotonic())
            puzzle_str, solution_str, difficulty = self.puzzle_queue.get(timeout=remaining)
            # Skip puzzles made before the last difficulty change
            if difficulty == self.difficulty:
                return SudokuPuzzle(puzzle_str, solution_str, difficulty)

    def set_difficulty(self, difficulty: str):
        """Atomically updates the difficulty level for the workers."""
        difficulty_blanks(difficulty)
        with self.level.get_lock():
            self.level.value = LEVELS.index(difficulty.strip().lower())

    def _drain(self):
        while not self.puzzle_queue.empty():
            try:
                self.puzzle_queue.get_nowait()
            except queue.Empty:
                break

    def __enter__(self) -> "PuzzleGenerator":
        self.start()
        return self

    def __exit__(self, exc_type, exc, tb):
        self.stop()
