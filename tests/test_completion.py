"""Tests for the one-shot CompletionSignal."""

from __future__ import annotations

import asyncio
import traceback

import pytest

from reagent.completion import CompletionSignal, SignalState
from reagent.errors import ReviewCancelled
from reagent.models import ReviewResult, ReviewStatus


def _result(status: ReviewStatus = ReviewStatus.APPROVED) -> ReviewResult:
    return ReviewResult(status=status, general_feedback="looks good")


class TestCompletionSignal:
    async def test_starts_unresolved(self) -> None:
        signal = CompletionSignal()
        assert signal.state == SignalState.UNRESOLVED
        assert signal.done is False
        with pytest.raises(RuntimeError, match="has not fired"):
            signal.outcome()

    async def test_resolve_wakes_every_waiter(self) -> None:
        signal = CompletionSignal()
        waiters = [asyncio.create_task(signal.wait()) for _ in range(3)]
        await asyncio.sleep(0)
        result = _result()
        assert signal.resolve(result) is True

        outcomes = await asyncio.gather(*waiters)
        assert all(outcome is result for outcome in outcomes)

    async def test_reject_raises_in_every_waiter(self) -> None:
        signal = CompletionSignal()
        waiters = [asyncio.create_task(signal.wait()) for _ in range(2)]
        await asyncio.sleep(0)
        signal.reject(ReviewCancelled("Review cancelled by user"))

        outcomes = await asyncio.gather(*waiters, return_exceptions=True)
        for outcome in outcomes:
            assert isinstance(outcome, ReviewCancelled)
            assert outcome.reason == "Review cancelled by user"

    async def test_late_waiter_gets_stored_outcome(self) -> None:
        signal = CompletionSignal()
        result = _result(ReviewStatus.CHANGES_REQUESTED)
        signal.resolve(result)
        assert await signal.wait() is result
        assert await signal.wait(timeout=0.01) is result

    async def test_first_firing_wins(self) -> None:
        signal = CompletionSignal()
        first = _result()
        assert signal.resolve(first) is True
        assert signal.resolve(_result(ReviewStatus.CHANGES_REQUESTED)) is False
        assert signal.reject(ReviewCancelled()) is False
        assert signal.state == SignalState.RESOLVED
        assert signal.outcome() is first

    async def test_reject_then_resolve_is_ignored(self) -> None:
        signal = CompletionSignal()
        signal.reject(ReviewCancelled("first"))
        assert signal.resolve(_result()) is False
        with pytest.raises(ReviewCancelled, match="first"):
            signal.outcome()

    async def test_bounded_wait_times_out_without_firing(self) -> None:
        signal = CompletionSignal()
        with pytest.raises(TimeoutError):
            await signal.wait(timeout=0.05)
        assert signal.done is False

        result = _result()
        signal.resolve(result)
        assert await signal.wait() is result

    async def test_constructor_takes_no_state(self) -> None:
        with pytest.raises(TypeError):
            CompletionSignal(SignalState.RESOLVED)  # type: ignore[call-arg]

    async def test_each_waiter_gets_a_fresh_traceback(self) -> None:
        signal = CompletionSignal()
        signal.reject(ReviewCancelled("gone"))

        depths = []
        for _ in range(3):
            with pytest.raises(ReviewCancelled) as excinfo:
                await signal.wait()
            depths.append(len(traceback.extract_tb(excinfo.value.__traceback__)))
        assert depths[0] == depths[1] == depths[2]
