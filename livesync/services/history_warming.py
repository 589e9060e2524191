from livesync.core.logger import get_logger
from livesync.domain.source import DataSource
from livesync.realtime.stream_store import StreamStore

logger = get_logger("livesync.history_warmer")


class HistoryWarmingService:
    """Seed stream history from the data source's recent records on startup.

    Records are committed oldest first, so the newest one ends up as the
    stream's current snapshot.
    """

    def __init__(self, source: DataSource, store: StreamStore):
        self.source = source
        self.store = store

    async def warm(self) -> dict[str, int]:
        logger.info(
            "history_warming_started",
            extra={"streams": self.store.streams, "capacity": self.store.capacity},
        )
        seeded: dict[str, int] = {}
        for stream in self.store.streams:
            seeded[stream] = await self._warm_stream(stream)
        logger.info("history_warming_completed", extra={"seeded": seeded})
        return seeded

    async def _warm_stream(self, stream: str) -> int:
        try:
            records = await self.source.fetch_recent(stream, self.store.capacity)
        except Exception as e:
            logger.error(
                "history_warming_failed", extra={"stream": stream, "error": str(e)}
            )
            return 0
        if not records:
            logger.info("history_warming_no_records", extra={"stream": stream})
            return 0
        # oldest first; commit drops anything not newer than what it holds
        return sum(1 for record in records if self.store.commit(stream, record))
