from __future__ import annotations

import asyncio
import logging
import time

from demeter_watchdog.core.errors import ScanError, SessionError
from demeter_watchdog.domain.models import CycleReport, PollConfig
from demeter_watchdog.persistence.neo4j import SessionProvider
from demeter_watchdog.services.failure_tracker import FailureTracker
from demeter_watchdog.services.grouping import GroupingInvoker
from demeter_watchdog.services.scanner import TagScanner
from demeter_watchdog.services.telemetry import increment_counter, set_gauge


logger = logging.getLogger(__name__)


class Watchdog:
    """Scan for tagged applications, group each one, sleep, repeat.

    Cycles run strictly one after another and applications are grouped one at
    a time in scan order. All state (the shared session, failure counts and
    the suppression set) lives on the instance and is dropped with it.
    """

    def __init__(
        self,
        config: PollConfig,
        sessions: SessionProvider,
        *,
        scanner: TagScanner | None = None,
        invoker: GroupingInvoker | None = None,
        tracker: FailureTracker | None = None,
    ) -> None:
        self._config = config
        self._sessions = sessions
        self._scanner = scanner or TagScanner(sessions, timeout_ms=config.call_timeout_ms)
        self._invoker = invoker or GroupingInvoker(sessions, timeout_ms=config.call_timeout_ms)
        self._tracker = tracker or FailureTracker(config.failure_threshold)
        self._cycles = 0

    @property
    def tracker(self) -> FailureTracker:
        return self._tracker

    @property
    def cycles(self) -> int:
        return self._cycles

    async def run_cycle(self) -> CycleReport:
        self._cycles += 1
        increment_counter("watchdog_cycles_total")
        set_gauge("watchdog_last_cycle_ts", time.time())
        report = CycleReport()

        try:
            matches = await self._scanner.scan(self._config.tag_prefix)
        except SessionError:
            # Connection problems skip this cycle; the next one reconnects.
            increment_counter("watchdog_session_failures_total")
            logger.error("watchdog_cycle_skipped cycle=%s reason=session_unavailable", self._cycles)
            report.outcome = "session_failed"
            return report
        except ScanError:
            increment_counter("watchdog_scan_failures_total")
            report.outcome = "scan_failed"
            matches = []

        report.discovered = [match.application for match in matches]
        for application in report.discovered:
            if self._tracker.is_suppressed(application):
                report.skipped.append(application)
                continue
            try:
                ok = await self._invoker.invoke(application)
            except SessionError:
                increment_counter("watchdog_session_failures_total")
                logger.error(
                    "watchdog_cycle_aborted cycle=%s application=%s reason=session_unavailable",
                    self._cycles,
                    application,
                )
                report.outcome = "session_failed"
                break
            increment_counter("watchdog_grouping_calls_total")
            report.invoked.append(application)
            if not ok:
                increment_counter("watchdog_grouping_failures_total")
                report.failed.append(application)
                self._record_failure(application)

        logger.info(
            "watchdog_cycle_done cycle=%s outcome=%s discovered=%s invoked=%s failed=%s skipped=%s",
            self._cycles,
            report.outcome,
            len(report.discovered),
            len(report.invoked),
            len(report.failed),
            len(report.skipped),
        )
        return report

    def _record_failure(self, application: str) -> None:
        was_suppressed = self._tracker.is_suppressed(application)
        self._tracker.record_failure(application)
        if not was_suppressed and self._tracker.is_suppressed(application):
            increment_counter("watchdog_suppressed_total")
        set_gauge("watchdog_suppressed_applications", len(self._tracker.suppressed))

    async def close(self) -> None:
        await self._sessions.close()

    async def run(self, stop: asyncio.Event | None = None) -> None:
        # Run until stopped; a stop request only interrupts the sleep, never a cycle.
        stop = stop or asyncio.Event()
        logger.info(
            "watchdog_started refresh_rate_ms=%s tag_prefix=%s failure_threshold=%s",
            self._config.refresh_rate_ms,
            self._config.tag_prefix,
            self._config.failure_threshold,
        )
        while not stop.is_set():
            try:
                await self.run_cycle()
            except Exception:  # noqa: BLE001 - keep the loop alive while surfacing errors in logs.
                logger.exception("watchdog cycle failed")
            if await self._sleep(stop):
                break
        logger.info("watchdog_stopped cycles=%s suppressed=%s", self._cycles, sorted(self._tracker.suppressed))

    async def _sleep(self, stop: asyncio.Event) -> bool:
        try:
            await asyncio.wait_for(stop.wait(), timeout=self._config.interval_s)
        except TimeoutError:
            return False
        return True
