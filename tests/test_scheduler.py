import asyncio
import logging
import time

import pytest

from wordmimic.background.scheduler import (
    BackgroundRun, Remaining, TickOutcome, TimeBudget, WorkPolicy, no_progress, remaining_is_empty,
    run_background, run_blocking, split_every,
)


class StepBudget:
    """Deadline that allows ``steps`` chunks before running out of time."""

    def __init__(self, steps, did_timeout=False):
        self.left = steps
        self.did_timeout = did_timeout

    def time_remaining(self):
        left = self.left
        self.left -= 1
        return float(max(left, 0))


def summing_policy(size, reports=None):
    def report(work_input, done, remaining):
        if reports is not None:
            reports.append((done, len(remaining)))
    return WorkPolicy(
        split_work=split_every(size),
        do_work=lambda chunk: list(chunk),
        aggregate_work=lambda done, latest: done + latest,
        is_complete=remaining_is_empty,
        report_progress=report,
    )


def drive(run, steps):
    while not run.settled:
        run.tick(StepBudget(steps))
    return run


@pytest.mark.parametrize("size", [1, 2, 3, 7, 50])
@pytest.mark.parametrize("steps", [1, 2, 5])
def test_chunking_does_not_change_result(size, steps):
    items = list(range(23))
    run = drive(BackgroundRun(summing_policy(size), items, []), steps)
    assert run.outcome is TickOutcome.COMPLETED
    assert run.result.done == items
    assert run.result.remaining == []


def test_progress_once_per_tick():
    reports = []
    run = drive(BackgroundRun(summing_policy(2, reports), list(range(10)), []), 2)
    assert run.ticks == 3
    assert [r for _, r in reports] == [6, 2]
    assert reports[0][0] == [0, 1, 2, 3]


def test_no_time_means_no_work():
    run = BackgroundRun(summing_policy(1), [1, 2, 3], [])
    assert run.tick(StepBudget(0)) is TickOutcome.PENDING
    assert run.ticks == 0
    assert run.state.remaining == [1, 2, 3]


def test_forced_tick_runs_one_chunk():
    run = BackgroundRun(summing_policy(1), [1, 2, 3], [])
    assert run.tick(StepBudget(0, did_timeout=True)) is TickOutcome.PENDING
    assert run.state.done == [1]


def test_empty_input_completes_with_initial_value():
    run = drive(BackgroundRun(summing_policy(4), [], ["seed"]), 1)
    assert run.result.done == ["seed"]


def test_early_completion():
    policy = summing_policy(1)
    policy.is_complete = lambda size, latest, done, remaining: len(done) >= 3
    run = drive(BackgroundRun(policy, list(range(10)), []), 100)
    assert run.result.done == [0, 1, 2]
    assert len(run.result.remaining) == 7


def test_failure_settles_run():
    boom = ValueError("bad chunk")

    def do_work(chunk):
        if 4 in chunk:
            raise boom
        return list(chunk)

    policy = summing_policy(2)
    policy.do_work = do_work
    run = drive(BackgroundRun(policy, list(range(10)), []), 1)
    assert run.outcome is TickOutcome.FAILED
    assert run.error is boom
    assert run.result is None and run.state is None
    assert run.ticks == 3
    with pytest.raises(RuntimeError):
        run.tick(StepBudget(1))


def test_progress_failure_is_a_failure():
    policy = summing_policy(1)
    policy.report_progress = lambda *args: 1 / 0
    run = drive(BackgroundRun(policy, [1, 2, 3], []), 1)
    assert isinstance(run.error, ZeroDivisionError)


def test_durations_recorded():
    run = drive(BackgroundRun(summing_policy(3), list(range(9)), []), 1)
    assert run.result.busy_duration_ms >= 0
    assert run.result.wall_clock_duration_ms >= run.result.busy_duration_ms


def test_split_every_rejects_zero():
    with pytest.raises(ValueError):
        split_every(0)


def test_time_budget():
    now = [0.0]
    budget = TimeBudget(5.0, clock=lambda: now[0])
    assert budget.time_remaining() == 5.0
    now[0] = 0.003
    assert budget.time_remaining() == pytest.approx(2.0)
    now[0] = 1.0
    assert budget.time_remaining() == 0.0


def test_run_blocking():
    result = run_blocking(summing_policy(4), list(range(30)), [], tick_budget_ms=1.0)
    assert result.done == list(range(30))
    with pytest.raises(ValueError):
        run_blocking(summing_policy(4), [], [], tick_budget_ms=0)


def test_run_blocking_raises_policy_error():
    policy = summing_policy(1)
    policy.aggregate_work = lambda done, latest: done + latest[5]
    with pytest.raises(IndexError):
        run_blocking(policy, [1, 2], [])


def test_run_background_resolves():
    async def scenario():
        return await run_background(summing_policy(5), list(range(100)), [], tick_budget_ms=0.5)

    result = asyncio.run(scenario())
    assert result.done == list(range(100))


def test_run_background_rejects():
    policy = WorkPolicy(split_every(1), lambda chunk: 1 / 0, lambda d, l: d, remaining_is_empty, no_progress)

    async def scenario():
        await run_background(policy, [1, 2], None)

    with pytest.raises(ZeroDivisionError):
        asyncio.run(scenario())


def test_run_background_yields_between_ticks():
    seen = []

    async def other():
        seen.append("other")

    def slow_work(chunk):
        time.sleep(0.002)
        seen.append("work")
        return list(chunk)

    async def scenario():
        policy = summing_policy(1)
        policy.do_work = slow_work
        future = run_background(policy, list(range(3)), [], tick_budget_ms=0.5)
        task = asyncio.ensure_future(other())
        await future
        await task

    asyncio.run(scenario())
    assert seen.count("work") == 3
    # each chunk overruns the budget, so the other task gets in before the run ends
    assert seen.index("other") < 3


def test_run_background_cancel_stops_ticks():
    calls = []
    policy = summing_policy(1)
    policy.do_work = lambda chunk: calls.append(chunk) or list(chunk)

    async def scenario():
        future = run_background(policy, list(range(10)), [])
        future.cancel()
        await asyncio.sleep(0)
        await asyncio.sleep(0)
        return future.cancelled()

    assert asyncio.run(scenario())
    assert calls == []


def test_remaining_view_shares_items():
    items = list(range(10))
    view = Remaining(items)
    chunk, rest = split_every(3)(view)
    assert chunk == [0, 1, 2]
    assert isinstance(rest, Remaining) and rest.items is items and rest.start == 3
    assert rest == list(range(3, 10))
    assert rest[0] == 3 and rest[-1] == 9
    assert rest[1:3] == [4, 5]
    assert rest[::3] == [3, 6, 9]
    assert len(rest[50:]) == 0
    with pytest.raises(IndexError):
        rest[7]


def test_result_remaining_is_a_list():
    policy = summing_policy(2)
    policy.is_complete = lambda size, latest, done, remaining: len(done) >= 4
    run = drive(BackgroundRun(policy, list(range(10)), []), 10)
    assert run.result.remaining == [4, 5, 6, 7, 8, 9]
    assert type(run.result.remaining) is list


def test_splitting_cost_does_not_grow_with_input():
    def seconds(n):
        items = list(range(n))
        policy = WorkPolicy(split_every(8), len, lambda done, latest: done + latest,
                            remaining_is_empty, no_progress)
        best = float("inf")
        for _ in range(3):
            start = time.perf_counter()
            run_blocking(policy, items, 0, tick_budget_ms=50)
            best = min(best, time.perf_counter() - start)
        return best

    small, large = seconds(20_000), seconds(160_000)
    # 8x the items: linear work stays near 8x, tail copying would be ~64x
    assert large < small * 24


def test_start_and_completion_are_logged(caplog):
    caplog.set_level(logging.DEBUG, logger="wordmimic.background.scheduler")
    run_blocking(summing_policy(2), [1, 2, 3], [])
    messages = [r.getMessage() for r in caplog.records]
    assert "background run started over 3 items" in messages
    assert any(m.startswith("background run completed") for m in messages)
