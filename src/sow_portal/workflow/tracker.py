"""Tracking one kind of generation run across both completion channels.

    tracker = GenerationTracker(GenerationKind.ARCHITECTURE, poller)
    tracker.on_complete(refresh_files)
    started = await api.generate_diagram(request)
    tracker.start(started.execution_arn)
    listener.subscribe(tracker.handle_push)     # push channel
    outcome = await tracker.wait()

There is no cancellation. Generating again is a new ``start()``, which
re-arms the latch; signals from the previous run are then ignored.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from enum import Enum
from typing import Any

import structlog

from src.sow_portal.clients.errors import parse_step_function_error
from src.sow_portal.core.monitoring import record_generation_outcome
from src.sow_portal.realtime.events import PushMessage
from src.sow_portal.workflow.latch import (
    CompletionChannel,
    CompletionLatch,
    ExecutionOutcome,
)
from src.sow_portal.workflow.polling import ExecutionPoller

logger = structlog.get_logger(__name__)


class GenerationKind(str, Enum):
    SOW = "sow"
    ARCHITECTURE = "architecture"
    TCO = "tco"


# (completed events, failed events) per kind. Both the Step Functions
# lifecycle wording and the backend notification names are accepted.
COMPLETION_EVENTS: dict[GenerationKind, tuple[frozenset[str], frozenset[str]]] = {
    GenerationKind.SOW: (
        frozenset({"SOW Generation Completed", "sow_generation_completed"}),
        frozenset({"SOW Generation Failed", "sow_generation_failed"}),
    ),
    GenerationKind.ARCHITECTURE: (
        frozenset({"Architecture Generation Completed", "diagram_generation_completed"}),
        frozenset({"Architecture Generation Failed", "diagram_generation_failed"}),
    ),
    GenerationKind.TCO: (
        frozenset({"Pricing Calculator Generation Completed", "tco_calculation_completed"}),
        frozenset({
            "Pricing Calculator Generation Failed",
            "tco_calculation_failed",
            "tco_generation_failed",
        }),
    ),
}

DEFAULT_FAILURE_MESSAGES: dict[GenerationKind, str] = {
    GenerationKind.SOW: "SOW generation failed",
    GenerationKind.ARCHITECTURE: "Diagram generation failed",
    GenerationKind.TCO: "TCO generation failed",
}


class GenerationTracker:
    """Watches a generation run via polling and push, first signal wins."""

    def __init__(
        self,
        kind: GenerationKind,
        poller: ExecutionPoller,
        latch: CompletionLatch | None = None,
    ) -> None:
        self.kind = kind
        self._poller = poller
        self._latch = latch or CompletionLatch()
        self._execution_arn: str | None = None
        self._run_id: int | None = None
        self._poll_task: asyncio.Task[ExecutionOutcome | None] | None = None
        self._callbacks: list[Callable[[ExecutionOutcome], Any]] = []
        self._latch.add_listener(self._dispatch)

    @property
    def execution_arn(self) -> str | None:
        return self._execution_arn

    @property
    def is_active(self) -> bool:
        """A run was started and has not completed yet."""
        return self._run_id is not None and not self._latch.is_set

    @property
    def is_handled(self) -> bool:
        return self._run_id is not None and self._latch.is_set

    @property
    def outcome(self) -> ExecutionOutcome | None:
        return self._latch.outcome

    def on_complete(self, callback: Callable[[ExecutionOutcome], Any]) -> None:
        """Register a callback fired exactly once per completed run."""
        self._callbacks.append(callback)

    def start(self, execution_arn: str | None) -> None:
        """Begin watching a run.

        Without an execution ARN only the push channel can complete the run.
        """
        self._run_id = self._latch.reset()
        self._execution_arn = execution_arn
        if self._poll_task is not None and not self._poll_task.done():
            self._poll_task.cancel()
        logger.info(
            "generation.started",
            kind=self.kind.value,
            execution_arn=execution_arn,
            run_id=self._run_id,
        )
        if execution_arn:
            self._poll_task = asyncio.create_task(
                self._poller.run(execution_arn, self._latch, run_id=self._run_id)
            )
        else:
            self._poll_task = None

    def handle_push(self, message: PushMessage | dict[str, Any]) -> bool:
        """Feed a push message; returns True if it completed the current run."""
        if not isinstance(message, PushMessage):
            message = PushMessage.model_validate(message)

        if not self.is_active:
            return False

        arn = message.execution_arn
        if arn and self._execution_arn and arn != self._execution_arn:
            return False

        completed, failed = COMPLETION_EVENTS[self.kind]
        names = {message.event_type, message.message}
        payload = message.data or message.model_dump()

        if names & completed:
            outcome = ExecutionOutcome(
                succeeded=True,
                channel=CompletionChannel.PUSH,
                execution_arn=self._execution_arn,
                payload=payload,
            )
        elif names & failed:
            raw_error = message.data.get("error") or message.data.get("cause")
            error = (
                parse_step_function_error(raw_error)
                if isinstance(raw_error, str) and raw_error
                else DEFAULT_FAILURE_MESSAGES[self.kind]
            )
            outcome = ExecutionOutcome(
                succeeded=False,
                channel=CompletionChannel.PUSH,
                error=error,
                execution_arn=self._execution_arn,
                payload=payload,
            )
        else:
            return False

        return self._latch.set(outcome, run_id=self._run_id)

    def mark_handled(self, outcome: ExecutionOutcome | None = None) -> bool:
        """Complete the run from outside both channels (e.g. a manual refresh)."""
        if self._run_id is None:
            return False
        outcome = outcome or ExecutionOutcome(
            succeeded=True,
            channel=CompletionChannel.MANUAL,
            execution_arn=self._execution_arn,
        )
        return self._latch.set(outcome, run_id=self._run_id)

    async def wait(self, timeout: float | None = None) -> ExecutionOutcome:
        """Wait for the current run's outcome.

        Raises:
            RuntimeError: No run was started.
            TimeoutError: ``timeout`` elapsed first.
        """
        if self._run_id is None:
            raise RuntimeError("No generation run started")
        return await self._latch.wait(timeout)

    def stop(self) -> asyncio.Task[ExecutionOutcome | None] | None:
        """Abandon the current run without waiting for it (sign-out).

        The latch is re-armed so late poll or push signals are ignored, and
        no completion callback fires afterwards. Returns the cancelled poll
        task, if any, for the caller to await.
        """
        self._latch.reset()
        self._run_id = None
        self._execution_arn = None
        self._callbacks.clear()
        task, self._poll_task = self._poll_task, None
        if task is not None and not task.done():
            task.cancel()
            logger.info("generation.stopped", kind=self.kind.value)
            return task
        return None

    async def aclose(self) -> None:
        """Stop the polling task (shutdown only; the backend run continues)."""
        task, self._poll_task = self._poll_task, None
        if task is not None and not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass

    def _dispatch(self, outcome: ExecutionOutcome) -> None:
        record_generation_outcome(self.kind.value, outcome.succeeded, outcome.channel.value)
        logger.info(
            "generation.completed",
            kind=self.kind.value,
            succeeded=outcome.succeeded,
            channel=outcome.channel.value,
            error=outcome.error,
        )
        for callback in list(self._callbacks):
            callback(outcome)
