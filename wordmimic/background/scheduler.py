"""
Incremental executor for long-running work on a single thread.

A run is driven by a host that grants it *ticks*. Each tick carries a deadline;
within it the run splits off a chunk, computes it, folds the partial result into
the accumulator and checks for completion, repeating while the deadline leaves
time. Between ticks it reports progress once and hands control back to the host.

``BackgroundRun`` holds the tick logic and knows nothing about timers or event
loops. ``run_blocking`` and ``run_background`` are the two host adapters.
"""
from __future__ import annotations

import asyncio
import logging
import time
from collections import abc
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Generic, Protocol, Sequence, TypeVar

logger = logging.getLogger(__name__)

I = TypeVar("I")  # work item
P = TypeVar("P")  # partial result of one chunk
T = TypeVar("T")  # accumulated result


class Deadline(Protocol):
    did_timeout: bool

    def time_remaining(self) -> float:
        """Milliseconds left in the current tick."""


class TimeBudget:
    """Deadline that expires ``budget_ms`` after it was created."""

    def __init__(self, budget_ms: float, did_timeout: bool = False,
                 clock: Callable[[], float] = time.perf_counter):
        self.budget_ms = budget_ms
        self.did_timeout = did_timeout
        self._clock = clock
        self._start = clock()

    def time_remaining(self) -> float:
        elapsed_ms = (self._clock() - self._start) * 1000
        return max(self.budget_ms - elapsed_ms, 0.0)


@dataclass
class WorkPolicy(Generic[I, P, T]):
    split_work: Callable[[Sequence[I]], tuple[Sequence[I], Sequence[I]]]
    do_work: Callable[[Sequence[I]], P]
    aggregate_work: Callable[[T, P], T]
    is_complete: Callable[[int, P, T, Sequence[I]], bool]
    report_progress: Callable[[Sequence[I], T, Sequence[I]], None]


class Remaining(abc.Sequence):
    """
    Read-only view of ``items[start:]``.

    Slicing off the front (``view[n:]``) returns another view over the same
    items, so consuming pending work chunk by chunk never copies the tail.
    Any other slice returns a plain copy of just that range.
    """

    __slots__ = ("items", "start")

    def __init__(self, items: Sequence[Any], start: int = 0):
        self.items = items
        self.start = min(start, len(items))

    def __len__(self) -> int:
        return len(self.items) - self.start

    def __getitem__(self, index):
        if isinstance(index, slice):
            first, stop, step = index.indices(len(self))
            if step != 1:
                return list(self)[index]
            if stop >= len(self):
                return Remaining(self.items, self.start + first)
            return self.items[self.start + first:self.start + stop]
        if index < 0:
            index += len(self)
        if not 0 <= index < len(self):
            raise IndexError("index out of range")
        return self.items[self.start + index]

    def __iter__(self):
        return (self.items[i] for i in range(self.start, len(self.items)))

    def __eq__(self, other):
        if isinstance(other, abc.Sequence):
            return len(self) == len(other) and all(a == b for a, b in zip(self, other))
        return NotImplemented

    def __repr__(self) -> str:
        return f"Remaining({list(self)!r})"


def split_every(size: int) -> Callable[[Sequence[Any]], tuple[Sequence[Any], Sequence[Any]]]:
    if size < 1:
        raise ValueError("chunk size must be at least 1")

    def split_work(remaining):
        return remaining[:size], remaining[size:]
    return split_work


def remaining_is_empty(input_size, latest, done, remaining) -> bool:
    return len(remaining) == 0


def no_progress(work_input, done, remaining) -> None:
    pass


@dataclass
class WorkState(Generic[I, T]):
    remaining: Sequence[I]
    done: T
    busy_duration_ms: float = 0.0


@dataclass(frozen=True)
class WorkResult(Generic[I, T]):
    done: T
    remaining: Sequence[I]
    busy_duration_ms: float
    wall_clock_duration_ms: float


class TickOutcome(str, Enum):
    PENDING = 'pending'
    COMPLETED = 'completed'
    FAILED = 'failed'


class BackgroundRun(Generic[I, P, T]):
    """One execution of a ``WorkPolicy`` over ``work_input``, advanced by ``tick``."""

    def __init__(self, policy: WorkPolicy[I, P, T], work_input: Sequence[I], initial_done: T,
                 clock: Callable[[], float] = time.perf_counter):
        self.policy = policy
        self.work_input = work_input
        self._clock = clock
        self._started = clock()
        self.state: WorkState[I, T] | None = WorkState(remaining=Remaining(work_input), done=initial_done)
        self.outcome = TickOutcome.PENDING
        self.result: WorkResult[I, T] | None = None
        self.error: BaseException | None = None
        self.ticks = 0
        logger.debug("background run started over %d items", len(work_input))

    @property
    def settled(self) -> bool:
        return self.outcome is not TickOutcome.PENDING

    def tick(self, deadline: Deadline) -> TickOutcome:
        if self.settled:
            raise RuntimeError(f"run already settled ({self.outcome.value})")
        if not (deadline.did_timeout or deadline.time_remaining() > 0):
            return self.outcome
        self.ticks += 1
        try:
            # at least one chunk per granted tick, then as many as time allows
            while True:
                if self._step():
                    return self.outcome
                if deadline.time_remaining() <= 0:
                    break
            self.policy.report_progress(self.work_input, self.state.done, self.state.remaining)
        except Exception as exc:
            logger.warning("background run failed on tick %d: %s", self.ticks, exc)
            self.outcome = TickOutcome.FAILED
            self.error = exc
            self.state = None
        return self.outcome

    def _step(self) -> bool:
        state = self.state
        policy = self.policy
        chunk, remaining = policy.split_work(state.remaining)
        chunk_start = self._clock()
        latest = policy.do_work(chunk)
        done = policy.aggregate_work(state.done, latest)
        busy = state.busy_duration_ms + (self._clock() - chunk_start) * 1000
        complete = policy.is_complete(len(self.work_input), latest, done, remaining)
        self.state = WorkState(remaining=remaining, done=done, busy_duration_ms=busy)
        if complete:
            self.result = WorkResult(
                done=done,
                remaining=list(remaining),
                busy_duration_ms=busy,
                wall_clock_duration_ms=(self._clock() - self._started) * 1000,
            )
            self.outcome = TickOutcome.COMPLETED
            self.state = None
            logger.debug("background run completed in %d ticks", self.ticks)
        return complete


def _check_budget(tick_budget_ms: float) -> None:
    if tick_budget_ms <= 0:
        raise ValueError("tick budget must be positive")


def run_blocking(policy: WorkPolicy[I, P, T], work_input: Sequence[I], initial_done: T,
                 tick_budget_ms: float = 8.0) -> WorkResult[I, T]:
    """Drive a run to settlement on the calling thread, one tick after another."""
    _check_budget(tick_budget_ms)
    run = BackgroundRun(policy, work_input, initial_done)
    while not run.settled:
        run.tick(TimeBudget(tick_budget_ms, did_timeout=True))
    if run.outcome is TickOutcome.FAILED:
        raise run.error
    return run.result


def run_background(policy: WorkPolicy[I, P, T], work_input: Sequence[I], initial_done: T,
                   tick_budget_ms: float = 8.0,
                   loop: asyncio.AbstractEventLoop | None = None) -> asyncio.Future:
    """
    Schedule a run on the event loop, one tick per loop callback.

    Returns a future settling to a ``WorkResult`` or failing with the first
    policy error. Cancelling the future stops the run at the next tick boundary.
    """
    _check_budget(tick_budget_ms)
    loop = loop or asyncio.get_running_loop()
    future = loop.create_future()
    run = BackgroundRun(policy, work_input, initial_done)

    def on_idle():
        if future.cancelled():
            logger.info("background run cancelled after %d ticks", run.ticks)
            return
        outcome = run.tick(TimeBudget(tick_budget_ms))
        if outcome is TickOutcome.COMPLETED:
            future.set_result(run.result)
        elif outcome is TickOutcome.FAILED:
            future.set_exception(run.error)
        else:
            loop.call_soon(on_idle)

    loop.call_soon(on_idle)
    return future
