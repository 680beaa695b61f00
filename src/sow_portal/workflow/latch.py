"""Completion latch shared by the poll and push channels.

A generation run is watched through two channels at once: periodic
execution-status polls and push notifications. Whichever reports first
sets the latch; every later report for the same run is ignored.

Each ``reset()`` starts a new run and bumps ``run_id``. A channel that
captured an older run id can no longer set the latch, so a straggling poller
from a previous run cannot complete the current one.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from enum import Enum
from typing import Any

import structlog
from pydantic import BaseModel, ConfigDict

logger = structlog.get_logger(__name__)


class CompletionChannel(str, Enum):
    POLL = "poll"
    PUSH = "push"
    MANUAL = "manual"


class ExecutionOutcome(BaseModel):
    model_config = ConfigDict(frozen=True)

    succeeded: bool
    channel: CompletionChannel
    error: str | None = None
    execution_arn: str | None = None
    payload: dict[str, Any] | None = None


OutcomeListener = Callable[[ExecutionOutcome], None]


class _RunSignal:
    """Outcome of one run and the event its waiters block on."""

    __slots__ = ("event", "outcome")

    def __init__(self) -> None:
        self.event = asyncio.Event()
        self.outcome: ExecutionOutcome | None = None


class CompletionLatch:
    def __init__(self) -> None:
        self._signal = _RunSignal()
        self._run_id = 0
        self._listeners: list[OutcomeListener] = []

    @property
    def run_id(self) -> int:
        return self._run_id

    @property
    def is_set(self) -> bool:
        return self._signal.outcome is not None

    @property
    def outcome(self) -> ExecutionOutcome | None:
        return self._signal.outcome

    def add_listener(self, listener: OutcomeListener) -> None:
        """Call ``listener`` once with the outcome each time the latch is set."""
        self._listeners.append(listener)

    def set(self, outcome: ExecutionOutcome, run_id: int | None = None) -> bool:
        """Record the outcome if this is the first signal for the run.

        Args:
            outcome: What the reporting channel observed.
            run_id: Run the channel is watching; a stale id is rejected.

        Returns:
            True if this call set the latch, False if it was ignored.
        """
        if run_id is not None and run_id != self._run_id:
            logger.debug("completion_latch.stale_signal", run_id=run_id, current=self._run_id)
            return False
        signal = self._signal
        if signal.outcome is not None:
            logger.debug(
                "completion_latch.duplicate_signal",
                channel=outcome.channel.value,
                winner=signal.outcome.channel.value,
            )
            return False

        signal.outcome = outcome
        signal.event.set()
        logger.info(
            "completion_latch.set",
            channel=outcome.channel.value,
            succeeded=outcome.succeeded,
            execution_arn=outcome.execution_arn,
        )
        for listener in list(self._listeners):
            listener(outcome)
        return True

    def reset(self) -> int:
        """Re-arm for a new run and return its run id."""
        self._run_id += 1
        if self._signal.outcome is not None:
            self._signal = _RunSignal()
        return self._run_id

    async def wait(self, timeout: float | None = None) -> ExecutionOutcome:
        """Block until the latch is set.

        Returns the outcome that woke this waiter, even if a listener has
        already re-armed the latch for a new run.

        Raises:
            TimeoutError: ``timeout`` elapsed first.
        """
        signal = self._signal
        await asyncio.wait_for(signal.event.wait(), timeout)
        if signal.outcome is None:
            raise RuntimeError("Completion latch woke without an outcome")
        return signal.outcome
