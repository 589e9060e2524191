from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from livesync.api.dependencies import (
    NO_CACHE_HEADERS,
    disable_caching,
    get_snapshot_service,
)
from livesync.domain.errors import UnknownStreamError
from livesync.domain.models import (
    BlockInfo,
    HistoricalSeries,
    MarketData,
    SnapshotBundle,
    StreamHistoryResponse,
    StreamSnapshotResponse,
    Transaction,
)
from livesync.domain.streams import Streams
from livesync.services.snapshot_service import SnapshotService

router = APIRouter(prefix="/api", dependencies=[Depends(disable_caching)])


def _not_found(e: UnknownStreamError) -> HTTPException:
    # error responses do not carry headers set by the disable_caching dependency
    return HTTPException(status_code=404, detail=str(e), headers=NO_CACHE_HEADERS)


@router.get("/current-block", response_model=Optional[BlockInfo])
async def current_block(svc: SnapshotService = Depends(get_snapshot_service)):
    return svc.current(Streams.BLOCK_INFO)


@router.get("/market-data", response_model=Optional[MarketData])
async def market_data(svc: SnapshotService = Depends(get_snapshot_service)):
    return svc.current(Streams.MARKET_DATA)


@router.get("/recent-transactions", response_model=List[Transaction])
async def recent_transactions(
    limit: Optional[int] = Query(None, ge=1, le=100),
    svc: SnapshotService = Depends(get_snapshot_service),
):
    return svc.recent_transactions(limit)


@router.get("/historical-data", response_model=HistoricalSeries)
async def historical_data(
    limit: Optional[int] = Query(None, ge=1, le=1000),
    svc: SnapshotService = Depends(get_snapshot_service),
):
    return svc.historical_series(limit)


@router.get("/snapshots", response_model=SnapshotBundle)
async def snapshots(
    streams: Optional[str] = Query(
        None, description="Comma separated stream names; all streams when omitted"
    ),
    svc: SnapshotService = Depends(get_snapshot_service),
):
    names = [s.strip() for s in streams.split(",") if s.strip()] if streams else None
    try:
        return svc.current_many(names)
    except UnknownStreamError as e:
        raise _not_found(e)


@router.get("/streams/{stream}", response_model=StreamSnapshotResponse)
async def stream_snapshot(
    stream: str, svc: SnapshotService = Depends(get_snapshot_service)
):
    try:
        return svc.current_response(stream)
    except UnknownStreamError as e:
        raise _not_found(e)


@router.get("/streams/{stream}/history", response_model=StreamHistoryResponse)
async def stream_history(
    stream: str,
    limit: int = Query(100, ge=1, le=1000),
    svc: SnapshotService = Depends(get_snapshot_service),
):
    try:
        return svc.history(stream, limit)
    except UnknownStreamError as e:
        raise _not_found(e)
