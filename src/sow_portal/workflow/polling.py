"""Periodic polling of Step Functions execution status."""

from __future__ import annotations

import asyncio

import structlog
from pydantic import ValidationError

from src.sow_portal.clients.api import SowApiClient
from src.sow_portal.clients.errors import ApiError
from src.sow_portal.clients.schemas import (
    FAILED_EXECUTION_STATES,
    ExecutionState,
    ExecutionStatus,
)
from src.sow_portal.workflow.latch import CompletionChannel, CompletionLatch, ExecutionOutcome

logger = structlog.get_logger(__name__)

DEFAULT_POLL_INTERVAL = 3.0


def outcome_from_status(status: ExecutionStatus) -> ExecutionOutcome | None:
    """Map a terminal execution status to an outcome; None while running."""
    if status.status == ExecutionState.SUCCEEDED:
        return ExecutionOutcome(
            succeeded=True,
            channel=CompletionChannel.POLL,
            execution_arn=status.execution_arn,
        )
    if status.status in FAILED_EXECUTION_STATES:
        cause = status.error.cause if status.error else None
        return ExecutionOutcome(
            succeeded=False,
            channel=CompletionChannel.POLL,
            error=cause or f"Execution {status.status.value.lower()}",
            execution_arn=status.execution_arn,
        )
    return None


class ExecutionPoller:
    """Polls GET /execution-status/{arn} until the run completes.

    Polling stops as soon as the latch is set by either channel or re-armed
    for a newer run. Failed polls are logged and polling continues; retrying
    an individual request is the client's job.
    """

    def __init__(self, api: SowApiClient, interval: float = DEFAULT_POLL_INTERVAL) -> None:
        self._api = api
        self._interval = interval

    @property
    def interval(self) -> float:
        return self._interval

    async def run(
        self,
        execution_arn: str,
        latch: CompletionLatch,
        run_id: int | None = None,
    ) -> ExecutionOutcome | None:
        """Poll until the run completes.

        Returns:
            The latch outcome, or None when the latch was re-armed for a
            newer run before this one completed.
        """
        run = latch.run_id if run_id is None else run_id
        polls = 0
        logger.info("execution_poll.started", execution_arn=execution_arn, interval=self._interval)

        while latch.run_id == run and not latch.is_set:
            polls += 1
            try:
                status = await self._api.get_execution_status(execution_arn)
            except (ApiError, ValidationError) as exc:
                logger.warning(
                    "execution_poll.failed",
                    execution_arn=execution_arn,
                    attempt=polls,
                    error=str(exc),
                )
            else:
                outcome = outcome_from_status(status)
                if outcome is not None:
                    latch.set(outcome, run_id=run)
                    break

            if latch.run_id != run or latch.is_set:
                break
            try:
                await latch.wait(timeout=self._interval)
            except asyncio.TimeoutError:
                pass

        logger.info("execution_poll.stopped", execution_arn=execution_arn, polls=polls)
        if latch.run_id != run:
            return None
        return latch.outcome
