"""Wires the core components into the three periodic jobs.

- alert: read the alert feed and drive the parser state machine
- poll: one ChannelPoller cycle, matches handed to the publisher
- flush: drain the operator journal into the log channel
"""

from __future__ import annotations

import logging
from typing import Optional

from core.alerts import AlertMonitor
from core.config import ScheduleConfig
from core.controller import ParserController
from core.models import AlertState, ParserState
from core.poller import ChannelPoller
from core.ports import AnnouncerPort, MatchPublisherPort, NotifierPort, SchedulerPort
from core.session import WatchSession

LOGGER = logging.getLogger(__name__)

ALERT_JOB_NAME = "alert"
FLUSH_JOB_NAME = "flush"


class Watcher:
    """Owns the session-wide jobs and their lifecycle."""

    def __init__(
        self,
        session: WatchSession,
        scheduler: SchedulerPort,
        poller: ChannelPoller,
        publisher: MatchPublisherPort,
        schedule: ScheduleConfig,
        *,
        monitor: Optional[AlertMonitor] = None,
        announcer: Optional[AnnouncerPort] = None,
        log_sink: Optional[NotifierPort] = None,
        log_channel: Optional[str] = None,
    ) -> None:
        self.session = session
        self._scheduler = scheduler
        self._poller = poller
        self._publisher = publisher
        self._schedule = schedule
        self._monitor = monitor
        self._log_sink = log_sink
        self._log_channel = log_channel
        self._alert_handle = None
        self._flush_handle = None
        self.controller = ParserController(
            session,
            scheduler,
            self.poll_once,
            poll_interval=schedule.poll_interval,
            poll_timeout=schedule.poll_timeout,
            announcer=announcer,
        )

    async def poll_once(self) -> None:
        events = await self._poller.run_cycle(self.session)
        if events:
            await self._publisher.publish(events)

    async def check_alert(self) -> AlertState:
        if self._monitor is None:
            return AlertState.UNKNOWN
        state = await self._monitor.poll()
        await self.controller.handle_alert(state)
        return state

    async def flush_journal(self) -> int:
        if self._log_sink is None or not self._log_channel:
            self.session.journal.drain()
            return 0
        return await self.session.journal.flush(self._log_sink, self._log_channel)

    async def _alert_job(self) -> None:
        await self.check_alert()

    async def _flush_job(self) -> None:
        await self.flush_journal()

    async def start(self) -> None:
        """Schedule the alert and flush jobs, or start polling right away
        when alert gating is disabled."""

        if self._log_sink is not None and self._log_channel:
            self._flush_handle = self._scheduler.every(
                self._schedule.flush_interval,
                self._flush_job,
                name=FLUSH_JOB_NAME,
            )
        else:
            LOGGER.info("No log channel configured, operator digests are disabled")

        if self._monitor is None:
            await self.controller.start("alert gating disabled")
            return

        self._alert_handle = self._scheduler.every(
            self._schedule.alert_interval,
            self._alert_job,
            name=ALERT_JOB_NAME,
            timeout=self._schedule.alert_timeout,
            run_immediately=True,
        )

    async def stop(self) -> None:
        """Cancel every schedule and flush the journal one last time."""

        for handle in (self._alert_handle, self._flush_handle, self.session.poll_handle):
            if handle is not None:
                self._scheduler.cancel(handle)
        self._alert_handle = None
        self._flush_handle = None
        self.session.poll_handle = None
        self.session.parser_state = ParserState.STOPPED
        try:
            await self.flush_journal()
        except Exception:
            LOGGER.error("Final journal flush failed", exc_info=True, extra={"journal": False})
