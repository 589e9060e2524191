"""Fixed-period refresh loop feeding the stream store from the data source."""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Optional, Protocol

from livesync.core.logger import get_logger
from livesync.domain.change_detection import ChangeDetector
from livesync.domain.models import Snapshot
from livesync.domain.source import DataSource

from .metrics import (
    CYCLE_DURATION_SECONDS,
    CYCLE_OVERRUNS_TOTAL,
    FETCH_LATENCY_SECONDS,
    FETCH_OUTCOMES_TOTAL,
    LAST_COMMIT_TIMESTAMP,
    NOTIFY_ERRORS_TOTAL,
)
from .stream_store import StreamStore

logger = get_logger("livesync.orchestrator")


class RefreshOutcome(str, Enum):
    COMMITTED_CHANGED = "committed_changed"
    COMMITTED_UNCHANGED = "committed_unchanged"
    STALE = "stale"
    EMPTY = "empty"
    FAILED = "failed"

    @property
    def committed(self) -> bool:
        return self in (
            RefreshOutcome.COMMITTED_CHANGED,
            RefreshOutcome.COMMITTED_UNCHANGED,
        )


@dataclass
class CycleReport:
    outcomes: Dict[str, RefreshOutcome] = field(default_factory=dict)
    errors: Dict[str, str] = field(default_factory=dict)
    duration_s: float = 0.0

    @property
    def changed(self) -> list[str]:
        return [
            s for s, o in self.outcomes.items() if o is RefreshOutcome.COMMITTED_CHANGED
        ]


class Notifier(Protocol):
    async def publish_change(self, stream: str, snapshot: Snapshot) -> int: ...


class RefreshOrchestrator:
    """Polls every registered stream concurrently once per period.

    Each stream is fetched, checked and committed independently: a slow or
    failing stream never holds back another stream's commit.
    """

    def __init__(
        self,
        source: DataSource,
        store: StreamStore,
        detector: ChangeDetector,
        period_s: float = 1.0,
        fetch_timeout_s: float = 0.8,
        notifier: Optional[Notifier] = None,
        ready_event: Optional[asyncio.Event] = None,
    ):
        if fetch_timeout_s >= period_s:
            raise ValueError("fetch timeout must be shorter than the refresh period")
        self.source = source
        self.store = store
        self.detector = detector
        self.period_s = period_s
        self.fetch_timeout_s = fetch_timeout_s
        self.notifier = notifier
        self.ready_event = ready_event
        self._stop_event = asyncio.Event()
        self._cycles = 0

    @property
    def cycles(self) -> int:
        return self._cycles

    def stop(self) -> None:
        """Stop scheduling cycles; a cycle already running completes."""
        self._stop_event.set()

    async def run(self) -> None:
        logger.info(
            "refresh_loop_started",
            extra={
                "streams": self.store.streams,
                "period_s": self.period_s,
                "fetch_timeout_s": self.fetch_timeout_s,
            },
        )
        while not self._stop_event.is_set():
            started = time.monotonic()
            await self.run_cycle()
            remaining = self.period_s - (time.monotonic() - started)
            if remaining <= 0:
                CYCLE_OVERRUNS_TOTAL.inc()
                continue
            try:
                await asyncio.wait_for(self._stop_event.wait(), timeout=remaining)
            except asyncio.TimeoutError:
                pass
        logger.info("refresh_loop_stopped", extra={"cycles": self._cycles})

    async def run_cycle(self) -> CycleReport:
        report = CycleReport()
        started = time.monotonic()
        streams = self.store.streams
        await asyncio.gather(*(self._refresh_stream(s, report) for s in streams))
        report.duration_s = time.monotonic() - started
        CYCLE_DURATION_SECONDS.observe(report.duration_s)
        self._cycles += 1
        logger.debug(
            "refresh_cycle_completed",
            extra={
                "cycle": self._cycles,
                "duration_s": round(report.duration_s, 4),
                "outcomes": {s: o.value for s, o in report.outcomes.items()},
                "changed": report.changed,
            },
        )
        return report

    async def _refresh_stream(self, stream: str, report: CycleReport) -> None:
        outcome = RefreshOutcome.FAILED
        try:
            with FETCH_LATENCY_SECONDS.labels(stream=stream).time():
                fetched = await asyncio.wait_for(
                    self.source.fetch_latest(stream), timeout=self.fetch_timeout_s
                )
            outcome = await self._apply(stream, fetched)
        except asyncio.CancelledError:
            raise
        except asyncio.TimeoutError:
            report.errors[stream] = f"timed out after {self.fetch_timeout_s}s"
            logger.warning(
                "stream_fetch_timeout",
                extra={"stream": stream, "timeout_s": self.fetch_timeout_s},
            )
        except Exception as e:  # noqa: BLE001
            report.errors[stream] = str(e)
            logger.warning(
                "stream_fetch_failed",
                extra={
                    "stream": stream,
                    "error": str(e),
                    "error_type": type(e).__name__,
                },
            )
        report.outcomes[stream] = outcome
        # snapshots seeded by history warming are servable before any commit
        self._mark_ready(stream)
        FETCH_OUTCOMES_TOTAL.labels(stream=stream, outcome=outcome.value).inc()

    async def _apply(self, stream: str, fetched: Optional[Snapshot]) -> RefreshOutcome:
        if fetched is None:
            return RefreshOutcome.EMPTY
        current = self.store.get_snapshot(stream)
        if current is not None and fetched.timestamp <= current.timestamp:
            logger.debug(
                "stale_record_discarded",
                extra={"stream": stream, "timestamp": fetched.timestamp},
            )
            return RefreshOutcome.STALE

        changed = self.detector.has_changed(current, fetched)
        if not self.store.commit(stream, fetched):
            # a concurrent writer committed something at least as new
            return RefreshOutcome.STALE
        LAST_COMMIT_TIMESTAMP.labels(stream=stream).set(fetched.timestamp.timestamp())

        if not changed:
            return RefreshOutcome.COMMITTED_UNCHANGED
        await self._notify(stream, fetched)
        return RefreshOutcome.COMMITTED_CHANGED

    def _mark_ready(self, stream: str) -> None:
        if self.ready_event is None or self.ready_event.is_set():
            return
        if self.store.get_snapshot(stream) is None:
            return
        self.ready_event.set()
        logger.info("first_snapshot_available", extra={"stream": stream})

    async def _notify(self, stream: str, snapshot: Snapshot) -> None:
        if self.notifier is None:
            return
        try:
            await self.notifier.publish_change(stream, snapshot)
        except Exception as e:  # noqa: BLE001
            NOTIFY_ERRORS_TOTAL.inc()
            logger.warning(
                "change_notify_failed", extra={"stream": stream, "error": str(e)}
            )
