"""In-memory per-stream snapshot + bounded history store."""

from __future__ import annotations

import threading
import time
from collections import deque
from dataclasses import dataclass
from typing import Deque, Dict, List, Optional

from livesync.domain.errors import UnknownStreamError
from livesync.domain.models import Snapshot


@dataclass(frozen=True)
class StreamView:
    """Immutable point-in-time view of one stream.

    snapshot and history always come from the same commit.
    """

    snapshot: Optional[Snapshot]
    history: tuple[Snapshot, ...]
    committed_at: Optional[float] = None  # monotonic seconds

    @property
    def initialized(self) -> bool:
        return self.snapshot is not None


_EMPTY_VIEW = StreamView(snapshot=None, history=())


class _StreamSlot:
    __slots__ = ("lock", "ring", "view")

    def __init__(self, capacity: int):
        self.lock = threading.Lock()
        self.ring: Deque[Snapshot] = deque(maxlen=capacity)
        self.view: StreamView = _EMPTY_VIEW


class StreamStore:
    """Owns all MetricStream state.

    Notes:
        - Writers take a per-stream lock, so unrelated streams never
          serialize on each other.
        - Readers take no lock: they read the slot's current StreamView, a
          single reference that commit swaps after the new view is fully
          built.
        - Commits whose timestamp is not strictly newer than the current
          snapshot are rejected, which makes replays idempotent.
    """

    def __init__(self, capacity: int = 100):
        if capacity < 1:
            raise ValueError("history capacity must be >= 1")
        self.capacity = capacity
        self._slots: Dict[str, _StreamSlot] = {}
        self._registry_lock = threading.Lock()

    # Registration
    def register(self, stream: str) -> None:
        with self._registry_lock:
            if stream not in self._slots:
                self._slots[stream] = _StreamSlot(self.capacity)

    @property
    def streams(self) -> List[str]:
        return list(self._slots)

    # Reads
    def view(self, stream: str) -> StreamView:
        return self._slot(stream).view

    def get_snapshot(self, stream: str) -> Optional[Snapshot]:
        return self._slot(stream).view.snapshot

    def get_history(self, stream: str, limit: int) -> List[Snapshot]:
        history = self._slot(stream).view.history
        if limit <= 0:
            return []
        return list(history[-limit:])

    # Writes
    def commit(self, stream: str, snapshot: Snapshot) -> bool:
        """Replace the snapshot and append it to history in one step.

        Returns False, leaving state untouched, when the snapshot belongs to
        another stream or is not newer than the current one.
        """
        if getattr(snapshot, "stream", stream) != stream:
            return False
        slot = self._slot(stream)
        with slot.lock:
            current = slot.view.snapshot
            if current is not None and snapshot.timestamp <= current.timestamp:
                return False
            slot.ring.append(snapshot)
            slot.view = StreamView(
                snapshot=snapshot,
                history=tuple(slot.ring),
                committed_at=time.monotonic(),
            )
        return True

    def _slot(self, stream: str) -> _StreamSlot:
        try:
            return self._slots[stream]
        except KeyError:
            raise UnknownStreamError(stream) from None
