from datetime import datetime, timezone
from typing import Dict, Iterable, List, Optional

from livesync.domain.models import (
    HistoricalSeries,
    Snapshot,
    SnapshotBundle,
    StreamHistoryResponse,
    StreamSnapshotResponse,
    Transaction,
    TransactionBatch,
)
from livesync.domain.streams import Streams
from livesync.realtime.stream_store import StreamStore


class SnapshotService:
    """Read-only projections over the stream store.

    No caching layer: every call reads the store's current views, so
    responses are exactly as fresh as the last commit.
    """

    def __init__(
        self,
        store: StreamStore,
        transactions_limit: int = 10,
        series_limit: int = 100,
    ):
        self.store = store
        self.transactions_limit = transactions_limit
        self.series_limit = series_limit

    def current(self, stream: str) -> Optional[Snapshot]:
        return self.store.get_snapshot(stream)

    def current_response(self, stream: str) -> StreamSnapshotResponse:
        snapshot = self.store.get_snapshot(stream)
        return StreamSnapshotResponse(
            stream=stream, available=snapshot is not None, snapshot=snapshot
        )

    def history(self, stream: str, limit: int) -> StreamHistoryResponse:
        return StreamHistoryResponse(
            stream=stream, points=self.store.get_history(stream, limit)
        )

    def current_many(self, streams: Optional[Iterable[str]] = None) -> SnapshotBundle:
        names = list(streams) if streams else self.store.streams
        snapshots: Dict[str, Optional[Snapshot]] = {
            name: self.store.get_snapshot(name) for name in names
        }
        return SnapshotBundle(as_of=datetime.now(timezone.utc), snapshots=snapshots)

    def recent_transactions(self, limit: Optional[int] = None) -> List[Transaction]:
        batch = self.store.get_snapshot(Streams.RECENT_TRANSACTIONS)
        if not isinstance(batch, TransactionBatch):
            return []
        return list(batch.transactions[: limit or self.transactions_limit])

    def historical_series(self, limit: Optional[int] = None) -> HistoricalSeries:
        n = limit or self.series_limit
        return HistoricalSeries(
            blocks=self.store.get_history(Streams.BLOCK_INFO, n),
            prices=self.store.get_history(Streams.MARKET_DATA, n),
        )
