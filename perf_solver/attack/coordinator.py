"""
Round coordinator and the shared round state.

Every mutable value the workers touch (candidate set, score board,
discovered prefix, run state, in-flight count) lives here behind a
single condition variable. Measurements happen outside the lock.
"""

import threading
from operator import attrgetter
from typing import List, Optional, Sequence, Tuple

from perf_solver.core.interfaces import RoundOutcome, RunState, ScoreRecord
from perf_solver.core.exceptions import ConstraintMismatch, SolverException
from perf_solver.attack.constraints import ConstraintValidator


WORKER_IDLE_INTERVAL = 0.01     # seconds
DRAIN_POLL_INTERVAL = 0.1       # seconds


class RoundCoordinator:
    """
    Owns one search run, one round at a time.

    Lifecycle:
        PENDING -> COLLECTING (start_round)
        COLLECTING -> RESOLVING (await_drain: every candidate scored)
        RESOLVING -> COLLECTING | DONE | ABORTED (resolve_round)
        any -> ABORTED (abort)

    Workers call next_candidate / record_score / abort; the coordinating
    thread calls start_round / await_drain / resolve_round.

    Example:
        >>> coordinator = RoundCoordinator("ab", target_length=1)
        >>> coordinator.start_round()
        >>> prefix, char = coordinator.next_candidate()
        >>> coordinator.record_score(10, char)
        >>> prefix, char = coordinator.next_candidate()
        >>> coordinator.record_score(20, char)
        >>> coordinator.await_drain()
        >>> coordinator.resolve_round()
        <RoundOutcome.DONE: 'done'>
        >>> coordinator.prefix
        'a'
    """

    def __init__(
        self,
        alphabet: Sequence[str],
        target_length: int,
        validator: Optional[ConstraintValidator] = None,
        idle_interval: float = WORKER_IDLE_INTERVAL,
        drain_interval: float = DRAIN_POLL_INTERVAL
    ):
        if not alphabet:
            raise ValueError("alphabet must not be empty")
        if target_length < 1:
            raise ValueError(f"target_length must be at least 1, got {target_length}")

        self.alphabet = list(alphabet)
        self.target_length = target_length
        self.validator = validator
        self.idle_interval = idle_interval
        self.drain_interval = drain_interval

        self._cond = threading.Condition()
        self._candidates: List[str] = []
        self._score_board: List[ScoreRecord] = []
        self._prefix = ""
        self._in_flight = 0
        self._state = RunState.PENDING
        self._error: Optional[SolverException] = None
        self._rounds = 0

    @property
    def prefix(self) -> str:
        with self._cond:
            return self._prefix

    @property
    def state(self) -> RunState:
        with self._cond:
            return self._state

    @property
    def error(self) -> Optional[SolverException]:
        with self._cond:
            return self._error

    @property
    def rounds(self) -> int:
        """Number of resolved rounds."""
        with self._cond:
            return self._rounds

    @property
    def score_board(self) -> List[ScoreRecord]:
        with self._cond:
            return list(self._score_board)

    @property
    def candidates(self) -> List[str]:
        with self._cond:
            return list(self._candidates)

    def _finished(self) -> bool:
        return (
            self._state in (RunState.DONE, RunState.ABORTED)
            or len(self._prefix) >= self.target_length
        )

    def _drained(self) -> bool:
        return not self._candidates and self._in_flight == 0

    def _reseed(self) -> None:
        self._candidates = list(self.alphabet)
        self._score_board = []
        self._state = RunState.COLLECTING

    # Coordinator side

    def start_round(self) -> None:
        """Seed the candidate set from the alphabet and clear the score board."""
        with self._cond:
            if self._finished():
                raise SolverException(f"Cannot start a round in state {self._state.value}")
            self._reseed()
            self._cond.notify_all()

    def await_drain(self) -> None:
        """
        Block until every candidate of the round has been scored.

        Raises:
            SolverException: The error that aborted the run, if any
        """
        with self._cond:
            while not (self._finished() or self._drained()):
                self._cond.wait(timeout=self.drain_interval)

            if self._state is RunState.ABORTED:
                raise self._error
            if self._state is RunState.COLLECTING:
                self._state = RunState.RESOLVING

    def resolve_round(self) -> RoundOutcome:
        """
        Pick the round winner and append it to the prefix.

        The score board is stably sorted by score and the last record wins,
        so among tied maximum scores the most recently recorded one is
        chosen. Recording order depends on thread scheduling.

        Returns:
            CONTINUE with a freshly seeded round, DONE when the target
            length is reached, ABORT on a constraint mismatch
        """
        with self._cond:
            if self._state is RunState.ABORTED:
                return RoundOutcome.ABORT
            if not self._score_board:
                raise SolverException("No scores recorded for this round")

            winner = sorted(self._score_board, key=attrgetter("score"))[-1]
            self._prefix += winner.character
            self._rounds += 1

            try:
                if self.validator is not None:
                    self.validator.validate(self._prefix)
            except ConstraintMismatch as e:
                self._abort(e)
                return RoundOutcome.ABORT

            if len(self._prefix) == self.target_length:
                self._state = RunState.DONE
                self._cond.notify_all()
                return RoundOutcome.DONE

            self._reseed()
            self._cond.notify_all()
            return RoundOutcome.CONTINUE

    # Worker side

    def next_candidate(self) -> Optional[Tuple[str, str]]:
        """
        Take one untested candidate, waiting while none is available.

        Returns:
            (prefix snapshot, candidate character), or None once the run
            is over and the worker should exit
        """
        with self._cond:
            while True:
                if self._finished():
                    return None
                if self._candidates and self._state is RunState.COLLECTING:
                    self._in_flight += 1
                    return self._prefix, self._candidates.pop()
                self._cond.wait(timeout=self.idle_interval)

    def record_score(self, score: int, character: str) -> None:
        """Add a measured candidate to the score board."""
        with self._cond:
            self._in_flight -= 1
            if self._state is RunState.COLLECTING:
                self._score_board.append(ScoreRecord(score, character))
            self._cond.notify_all()

    def abort(self, error: SolverException) -> None:
        """Stop the whole run; every waiter wakes up and sees ABORTED."""
        with self._cond:
            self._abort(error)

    def _abort(self, error: SolverException) -> None:
        if self._state is not RunState.ABORTED:
            self._error = error
        self._state = RunState.ABORTED
        self._cond.notify_all()
