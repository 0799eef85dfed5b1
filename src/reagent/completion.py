"""One-shot completion signal for review sessions.

A session owns exactly one signal. The first ``resolve`` or ``reject`` wins;
every later firing is ignored and reported as ``False``. Any number of waiters
may await the signal, and a waiter that arrives after it fired gets the stored
outcome straight away.

Usage:
    signal = CompletionSignal()

    # Waiter (e.g. the ask_for_review tool):
    result = await signal.wait()

    # Producer (e.g. the complete endpoint):
    signal.resolve(result)
"""

from __future__ import annotations

import asyncio
from enum import StrEnum

from reagent.models import ReviewResult


class SignalState(StrEnum):
    UNRESOLVED = "unresolved"
    RESOLVED = "resolved"
    REJECTED = "rejected"


class CompletionSignal:
    """Tagged one-shot outcome: unresolved, resolved with a result, or rejected with an error."""

    def __init__(self) -> None:
        self._state = SignalState.UNRESOLVED
        self._result: ReviewResult | None = None
        self._error: BaseException | None = None
        self._event = asyncio.Event()

    @property
    def state(self) -> SignalState:
        return self._state

    @property
    def done(self) -> bool:
        return self._state != SignalState.UNRESOLVED

    def resolve(self, result: ReviewResult) -> bool:
        """Fire with a result. Returns False if the signal already fired."""
        if self.done:
            return False
        self._state = SignalState.RESOLVED
        self._result = result
        self._event.set()
        return True

    def reject(self, error: BaseException) -> bool:
        """Fire with an error. Returns False if the signal already fired."""
        if self.done:
            return False
        self._state = SignalState.REJECTED
        self._error = error
        self._event.set()
        return True

    def outcome(self) -> ReviewResult:
        """Return the stored result or raise the stored error.

        Raises RuntimeError if the signal has not fired yet.
        """
        if self._state == SignalState.RESOLVED:
            assert self._result is not None
            return self._result
        if self._state == SignalState.REJECTED:
            assert self._error is not None
            # Each waiter gets a fresh traceback.
            raise self._error.with_traceback(None)
        raise RuntimeError("Completion signal has not fired")

    async def wait(self, timeout: float | None = None) -> ReviewResult:
        """Suspend until the signal fires, then return or raise its outcome.

        With ``timeout`` set, raises TimeoutError once the bound elapses; the
        signal itself is left untouched so a later wait can still succeed.
        """
        if not self.done:
            if timeout is None:
                await self._event.wait()
            else:
                await asyncio.wait_for(self._event.wait(), timeout=timeout)
        return self.outcome()
