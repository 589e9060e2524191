from fastapi import Depends, Request, Response

from livesync.core.config import settings
from livesync.realtime.stream_store import StreamStore
from livesync.services.snapshot_service import SnapshotService


def get_store(request: Request) -> StreamStore:
    return request.app.state.store  # type: ignore[return-value]


def get_snapshot_service(store: StreamStore = Depends(get_store)) -> SnapshotService:
    return SnapshotService(
        store,
        transactions_limit=settings.recent_transactions_limit,
        series_limit=settings.historical_series_limit,
    )


NO_CACHE_HEADERS = {
    "Cache-Control": "no-cache, no-store, must-revalidate",
    "Pragma": "no-cache",
    "Expires": "0",
}


def disable_caching(response: Response) -> None:
    response.headers.update(NO_CACHE_HEADERS)
