"""Bounded-retry polling for grades after an answer batch is accepted."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
import logging
from typing import Protocol

from cqbot.constants.workflow_constants import POLL_INITIAL_DELAY_MS, POLL_MAX_ATTEMPTS, POLL_RETRY_DELAY_MS
from cqbot.core.errors import ApiError
from cqbot.core.models import Grade, GradingStatus

logger = logging.getLogger(__name__)


class GradesApi(Protocol):
    async def get_grades(self, submission_id: str) -> list[Grade]: ...


@dataclass(frozen=True, slots=True)
class GradePollResult:
    """Outcome of one polling run.

    ``grades`` is only populated when ``status`` is COMPLETE. EXHAUSTED means
    grading is still in progress on the server, which is not an error.
    """

    submission_id: str
    status: GradingStatus
    grades: tuple[Grade, ...] = ()
    attempts: int = 0


class GradePoller:
    def __init__(
        self,
        api: GradesApi,
        *,
        initial_delay_ms: int = POLL_INITIAL_DELAY_MS,
        retry_delay_ms: int = POLL_RETRY_DELAY_MS,
        max_attempts: int = POLL_MAX_ATTEMPTS,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._api = api
        self._initial_delay_ms = initial_delay_ms
        self._retry_delay_ms = retry_delay_ms
        self._max_attempts = max_attempts
        self._sleep = sleep

    async def poll(
        self,
        submission_id: str,
        expected_count: int,
        is_current: Callable[[str], bool] = lambda _submission_id: True,
    ) -> GradePollResult:
        """Query grades until ``expected_count`` are available or attempts run out.

        ``is_current`` is consulted after every suspension; once it returns
        False the run ends as CANCELLED without touching anything else.
        """
        attempts = 0
        await self._sleep(self._initial_delay_ms / 1000)
        while attempts < self._max_attempts:
            if not is_current(submission_id):
                return GradePollResult(submission_id, GradingStatus.CANCELLED, attempts=attempts)

            attempts += 1
            try:
                grades = await self._api.get_grades(submission_id)
            except ApiError as exc:
                logger.info("Grade poll %d for %s failed, retrying: %s", attempts, submission_id, exc)
                grades = []

            if not is_current(submission_id):
                return GradePollResult(submission_id, GradingStatus.CANCELLED, attempts=attempts)
            if len(grades) >= expected_count:
                logger.info("All %d grades received for %s after %d attempt(s)", len(grades), submission_id, attempts)
                return GradePollResult(submission_id, GradingStatus.COMPLETE, tuple(grades), attempts)

            if attempts < self._max_attempts:
                await self._sleep(self._retry_delay_ms / 1000)

        logger.info("Stopped polling grades for %s after %d attempts", submission_id, attempts)
        return GradePollResult(submission_id, GradingStatus.EXHAUSTED, attempts=attempts)
