import asyncio
import logging
from dataclasses import dataclass
from typing import Callable, Optional

from wordmimic.analytics.chain import Chain, Match, chain_stats, fold_all, merge, new_chain, split_lines, tokenize_example
from wordmimic.analytics.imitation import Imitator
from wordmimic.background.scheduler import (
    WorkPolicy, WorkResult, remaining_is_empty, run_background, run_blocking, split_every,
)
from wordmimic.config import settings
from wordmimic.errors import NotLearnedError

logger = logging.getLogger(__name__)

READING_LABEL = "Reading examples"
CHAINING_LABEL = "Building chain"


@dataclass
class ProgressReport:
    percent_complete: float
    label: str
    is_completed: bool


ProgressCallback = Callable[[ProgressReport], None]


@dataclass
class LearningOutcome:
    chain: Chain
    example_count: int
    match_count: int
    busy_duration_ms: float
    wall_clock_duration_ms: float


def progress_percent(total: int, remaining: int) -> float:
    if total <= 0:
        return 100.0
    return 100.0 * (total - remaining) / total


def _reporter(label: str, on_progress: Optional[ProgressCallback]):
    def report_progress(work_input, done, remaining):
        if on_progress is not None:
            on_progress(ProgressReport(progress_percent(len(work_input), len(remaining)), label, False))
    return report_progress


def _tokenize_lines(lines) -> list[Match]:
    out = []
    for line in lines:
        out.extend(tokenize_example(line))
    return out


def flatten_chunks(chunks) -> list[Match]:
    """Flatten the ``(earlier, latest)`` pairs built by the reading stage, oldest first."""
    parts = []
    while chunks is not None:
        chunks, latest = chunks
        parts.append(latest)
    out = []
    for part in reversed(parts):
        out.extend(part)
    return out


def reading_policy(chunk_size: int, on_progress: Optional[ProgressCallback] = None) -> WorkPolicy:
    # lines -> matches; chunks are linked as (earlier, latest) pairs so nothing is re-copied
    return WorkPolicy(
        split_work=split_every(chunk_size),
        do_work=_tokenize_lines,
        aggregate_work=lambda done, latest: (done, latest),
        is_complete=remaining_is_empty,
        report_progress=_reporter(READING_LABEL, on_progress),
    )


def chaining_policy(chunk_size: int, on_progress: Optional[ProgressCallback] = None) -> WorkPolicy:
    # matches -> chain; each chunk is folded on its own then merged in order
    return WorkPolicy(
        split_work=split_every(chunk_size),
        do_work=lambda matches: fold_all(new_chain(), matches),
        aggregate_work=merge,
        is_complete=remaining_is_empty,
        report_progress=_reporter(CHAINING_LABEL, on_progress),
    )


def _outcome(lines: list[str], matches: list[Match], read: WorkResult, chained: WorkResult) -> LearningOutcome:
    return LearningOutcome(
        chain=chained.done,
        example_count=len(lines),
        match_count=len(matches),
        busy_duration_ms=read.busy_duration_ms + chained.busy_duration_ms,
        wall_clock_duration_ms=read.wall_clock_duration_ms + chained.wall_clock_duration_ms,
    )


async def learn_chain(text: str, chunk_size: int = settings.chunk_size,
                      tick_budget_ms: float = settings.tick_budget_ms,
                      on_progress: Optional[ProgressCallback] = None) -> LearningOutcome:
    """Build a chain from example text without holding the event loop for more than a tick."""
    lines = split_lines(text)
    read = await run_background(reading_policy(chunk_size, on_progress), lines, None, tick_budget_ms)
    matches = flatten_chunks(read.done)
    # only reached when reading succeeded
    chained = await run_background(chaining_policy(chunk_size, on_progress), matches, new_chain(), tick_budget_ms)
    outcome = _outcome(lines, matches, read, chained)
    if on_progress is not None:
        on_progress(ProgressReport(100.0, CHAINING_LABEL, True))
    logger.info("learned %d examples (%d matches) in %.1f ms busy",
                outcome.example_count, outcome.match_count, outcome.busy_duration_ms)
    return outcome


def learn_chain_blocking(text: str, chunk_size: int = settings.chunk_size,
                         tick_budget_ms: float = settings.tick_budget_ms,
                         on_progress: Optional[ProgressCallback] = None) -> LearningOutcome:
    lines = split_lines(text)
    read = run_blocking(reading_policy(chunk_size, on_progress), lines, None, tick_budget_ms)
    matches = flatten_chunks(read.done)
    chained = run_blocking(chaining_policy(chunk_size, on_progress), matches, new_chain(), tick_budget_ms)
    if on_progress is not None:
        on_progress(ProgressReport(100.0, CHAINING_LABEL, True))
    return _outcome(lines, matches, read, chained)


class LearningSession:
    """Holds the last successfully learned chain and the imitator built from it."""

    def __init__(self, seed: int = settings.seed, on_progress: Optional[ProgressCallback] = None):
        self.seed = seed
        self.chain: Chain | None = None
        self.imitator: Imitator | None = None
        self.progress = ProgressReport(100.0, "Idle", True)
        self.observer = on_progress
        # learns run one at a time, in call order, so the latest request is adopted last
        self._learning = asyncio.Lock()

    def _on_progress(self, report: ProgressReport) -> None:
        self.progress = report
        if self.observer is not None:
            self.observer(report)

    def _adopt(self, outcome: LearningOutcome) -> LearningOutcome:
        self.chain = outcome.chain
        self.imitator = Imitator(outcome.chain, seed=self.seed)
        return outcome

    async def learn(self, text: str, chunk_size: int = settings.chunk_size,
                    tick_budget_ms: float = settings.tick_budget_ms) -> LearningOutcome:
        async with self._learning:
            self._on_progress(ProgressReport(0.0, READING_LABEL, False))
            try:
                outcome = await learn_chain(text, chunk_size, tick_budget_ms, self._on_progress)
            except Exception:
                self._on_progress(ProgressReport(self.progress.percent_complete, "Learning failed", True))
                raise
            return self._adopt(outcome)

    def learn_blocking(self, text: str, chunk_size: int = settings.chunk_size,
                       tick_budget_ms: float = settings.tick_budget_ms) -> LearningOutcome:
        self._on_progress(ProgressReport(0.0, READING_LABEL, False))
        try:
            outcome = learn_chain_blocking(text, chunk_size, tick_budget_ms, self._on_progress)
        except Exception:
            self._on_progress(ProgressReport(self.progress.percent_complete, "Learning failed", True))
            raise
        return self._adopt(outcome)

    def imitate(self, count: int = settings.imitation_count,
                min_len: int = settings.word_length_min,
                max_len: int = settings.word_length_max) -> list[str]:
        if self.imitator is None:
            raise NotLearnedError()
        return self.imitator.imitate_many(count, min_len, max_len)

    def stats(self) -> dict:
        if self.chain is None:
            raise NotLearnedError()
        s = chain_stats(self.chain)
        return {
            'contexts': s.contexts,
            'total_transitions': s.total_transitions,
            'avg_transitions_per_context': s.avg_transitions_per_context,
            'entropy': s.entropy,
        }
