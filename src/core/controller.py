"""Alert-driven parser state machine (core domain).

    STOPPED --[ACTIVE | PARTIAL]--> RUNNING   notify, start the poll schedule
    RUNNING --[NONE]--------------> STOPPED   cancel the poll schedule, notify

UNKNOWN readings and readings that agree with the current state are no-ops.
"""

from __future__ import annotations

import logging
from typing import List, Optional

from core.models import AlertState, ParserState, Transition
from core.ports import AnnouncerPort, Job, SchedulerPort
from core.session import WatchSession

LOGGER = logging.getLogger(__name__)

POLL_JOB_NAME = "poll"


class ParserController:
    """Owns the RUNNING/STOPPED state and the single poll schedule handle."""

    def __init__(
        self,
        session: WatchSession,
        scheduler: SchedulerPort,
        poll_job: Job,
        *,
        poll_interval: float,
        poll_timeout: Optional[float] = None,
        announcer: Optional[AnnouncerPort] = None,
    ) -> None:
        self._session = session
        self._scheduler = scheduler
        self._poll_job = poll_job
        self._poll_interval = poll_interval
        self._poll_timeout = poll_timeout
        self._announcer = announcer
        self.history: List[Transition] = []

    @property
    def state(self) -> ParserState:
        return self._session.parser_state

    @property
    def running(self) -> bool:
        return self._session.parser_state is ParserState.RUNNING

    async def handle_alert(self, alert: AlertState) -> Transition:
        """Apply one alert reading and return the resulting transition."""

        if alert is AlertState.UNKNOWN:
            transition = Transition.NOOP
        elif alert.is_alert and not self.running:
            transition = await self._start(f"alert {alert.name}")
        elif alert is AlertState.NONE and self.running:
            transition = await self._stop("alert cleared")
        else:
            transition = Transition.NOOP
        self.history.append(transition)
        return transition

    async def start(self, reason: str = "manual start") -> Transition:
        if self.running:
            LOGGER.warning("Parser already running, ignoring start (%s)", reason)
            transition = Transition.NOOP
        else:
            transition = await self._start(reason)
        self.history.append(transition)
        return transition

    async def stop(self, reason: str = "manual stop") -> Transition:
        if not self.running:
            LOGGER.warning("Parser already stopped, ignoring stop (%s)", reason)
            transition = Transition.NOOP
        else:
            transition = await self._stop(reason)
        self.history.append(transition)
        return transition

    async def _start(self, reason: str) -> Transition:
        # State and schedule change before the first await, so an abandoned
        # run cannot reorder them against a later transition.
        self._session.parser_state = ParserState.RUNNING
        if self._session.poll_handle is None:
            self._session.poll_handle = self._scheduler.every(
                self._poll_interval,
                self._poll_job,
                name=POLL_JOB_NAME,
                timeout=self._poll_timeout,
                run_immediately=True,
            )
        LOGGER.info("Parser started: %s", reason)
        if self._announcer is not None:
            try:
                await self._announcer.alert_started(reason)
            except Exception:
                LOGGER.exception("Failed to send alert started notification")
        return Transition.START

    async def _stop(self, reason: str) -> Transition:
        if self._session.poll_handle is not None:
            self._scheduler.cancel(self._session.poll_handle)
            self._session.poll_handle = None
        self._session.parser_state = ParserState.STOPPED
        LOGGER.info("Parser stopped: %s", reason)
        if self._announcer is not None:
            try:
                await self._announcer.alert_cleared(reason)
            except Exception:
                LOGGER.exception("Failed to send alert cleared notification")
        return Transition.STOP
