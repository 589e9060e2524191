"""Per-display polling loop.

One task per display: each tick issues one combined snapshot read, diffs it
against the display's own view state and re-renders only what changed.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Optional, Protocol

import httpx
from pydantic import ValidationError

from livesync.core.config import settings
from livesync.core.logger import get_logger
from livesync.domain.change_detection import ChangeDetector
from livesync.domain.models import Snapshot, SnapshotBundle

logger = get_logger("livesync.client")


@dataclass
class ClientViewState:
    """What one display currently shows. Never shared between displays."""

    snapshots: Dict[str, Snapshot] = field(default_factory=dict)
    last_updated: Optional[datetime] = None
    last_error: Optional[str] = None

    def staleness_s(self, now: Optional[datetime] = None) -> Optional[float]:
        if self.last_updated is None:
            return None
        now = now or datetime.now(timezone.utc)
        return (now - self.last_updated).total_seconds()


class Renderer(Protocol):
    def render_stream(self, stream: str, snapshot: Snapshot) -> None: ...

    def render_status(self, state: ClientViewState) -> None: ...


class LoggingRenderer:
    """Renderer for headless displays: writes changes to the log."""

    def render_stream(self, stream: str, snapshot: Snapshot) -> None:
        logger.info(
            "display_stream_updated",
            extra={"stream": stream, "snapshot": snapshot.model_dump(mode="json")},
        )

    def render_status(self, state: ClientViewState) -> None:
        logger.info(
            "display_status",
            extra={
                "last_updated": state.last_updated,
                "stale_for_s": state.staleness_s(),
                "last_error": state.last_error,
            },
        )


@dataclass
class TickResult:
    ok: bool
    rendered: List[str] = field(default_factory=list)
    skipped: bool = False


class ClientSyncLoop:
    def __init__(
        self,
        client: httpx.AsyncClient,
        renderer: Renderer,
        streams: Optional[Iterable[str]] = None,
        detector: Optional[ChangeDetector] = None,
        interval_s: float = 1.0,
    ):
        self.client = client
        self.renderer = renderer
        self.streams = list(streams) if streams else None
        self.detector = detector or ChangeDetector()
        self.interval_s = interval_s
        self.state = ClientViewState()
        self._tick_lock = asyncio.Lock()
        self._stop_event = asyncio.Event()

    def stop(self) -> None:
        self._stop_event.set()

    async def run(self) -> None:
        while not self._stop_event.is_set():
            await self.tick()
            try:
                await asyncio.wait_for(self._stop_event.wait(), timeout=self.interval_s)
            except asyncio.TimeoutError:
                pass

    async def tick(self) -> TickResult:
        # a tick never overlaps another; late ticks are dropped, not queued
        if self._tick_lock.locked():
            return TickResult(ok=False, skipped=True)
        async with self._tick_lock:
            try:
                bundle = await self._poll()
            except (httpx.HTTPError, ValidationError, ValueError) as e:
                self.state.last_error = f"{type(e).__name__}: {e}"
                logger.warning("display_poll_failed", extra={"error": str(e)})
                self.renderer.render_status(self.state)
                return TickResult(ok=False)
            rendered = self._merge(bundle)
            self.state.last_updated = datetime.now(timezone.utc)
            self.state.last_error = None
            self.renderer.render_status(self.state)
            return TickResult(ok=True, rendered=rendered)

    async def _poll(self) -> SnapshotBundle:
        params = {"streams": ",".join(self.streams)} if self.streams else None
        resp = await self.client.get("/api/snapshots", params=params)
        resp.raise_for_status()
        return SnapshotBundle.model_validate(resp.json())

    def _merge(self, bundle: SnapshotBundle) -> List[str]:
        rendered = []
        for stream, snapshot in bundle.snapshots.items():
            if snapshot is None:
                continue
            previous = self.state.snapshots.get(stream)
            if not self.detector.has_changed(previous, snapshot):
                continue
            self.state.snapshots[stream] = snapshot
            self.renderer.render_stream(stream, snapshot)
            rendered.append(stream)
        return rendered


async def run_display() -> None:
    async with httpx.AsyncClient(
        base_url=settings.client_base_url,
        timeout=httpx.Timeout(settings.client_timeout_seconds),
        headers={"Accept": "application/json"},
    ) as client:
        loop = ClientSyncLoop(
            client,
            LoggingRenderer(),
            detector=ChangeDetector(settings.change_primary_fields),
            interval_s=settings.client_poll_interval_seconds,
        )
        try:
            await loop.run()
        finally:
            loop.stop()


def main() -> None:
    try:
        asyncio.run(run_display())
    except KeyboardInterrupt:
        logger.info("display_stopped")
