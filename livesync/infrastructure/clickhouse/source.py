from __future__ import annotations

from typing import Any, Dict, List, Optional

import clickhouse_connect
from pydantic import ValidationError

from livesync.core.config import settings
from livesync.core.logger import get_logger
from livesync.domain.errors import FetchError, MalformedRecordError, UnknownStreamError
from livesync.domain.models import (
    BlockInfo,
    MarketData,
    Snapshot,
    Transaction,
    TransactionBatch,
)
from livesync.domain.streams import Streams
from livesync.utils.concurrency import run_blocking

logger = get_logger("livesync.clickhouse_source")

BLOCK_INFO_QUERY = """
SELECT
    block_height,
    block_hash,
    transaction_count,
    average_fee,
    total_volume,
    mempool_size,
    timestamp
FROM block_info
ORDER BY timestamp DESC
LIMIT %(limit)s
"""

MARKET_DATA_QUERY = """
SELECT
    market_price,
    volume_24h,
    market_cap,
    timestamp
FROM market_data
ORDER BY timestamp DESC
LIMIT %(limit)s
"""

RECENT_TRANSACTIONS_QUERY = """
SELECT
    tx_hash,
    amount,
    fee,
    timestamp
FROM recent_transactions
ORDER BY timestamp DESC
LIMIT %(limit)s
"""

_ROW_QUERIES = {
    Streams.BLOCK_INFO: (BLOCK_INFO_QUERY, BlockInfo),
    Streams.MARKET_DATA: (MARKET_DATA_QUERY, MarketData),
}


def create_client(**overrides: Any):
    params: Dict[str, Any] = {
        "host": settings.clickhouse_host,
        "port": settings.clickhouse_port,
        "database": settings.clickhouse_db,
        "username": settings.clickhouse_user,
        "password": settings.clickhouse_password,
        "interface": "http",
        # no session id: per-stream queries run concurrently on one client
        "autogenerate_session_id": False,
        "send_receive_timeout": max(1, int(settings.fetch_timeout_seconds * 2)),
    }
    params.update(overrides)
    return clickhouse_connect.get_client(**params)


class ClickHouseDataSource:
    """Data source reading the block, market and transaction tables.

    The client is an explicitly owned resource: it is created once at
    process start, handed in here and closed through close().
    """

    def __init__(self, client: Any, transactions_limit: int = 10):
        self.client = client
        self.transactions_limit = transactions_limit

    async def fetch_latest(self, stream: str) -> Optional[Snapshot]:
        if stream == Streams.RECENT_TRANSACTIONS:
            return await self._fetch_transactions()
        records = await self._fetch_rows(stream, 1)
        return records[0] if records else None

    async def fetch_recent(self, stream: str, limit: int) -> List[Snapshot]:
        if stream == Streams.RECENT_TRANSACTIONS:
            # the transaction stream's history is built from live commits only
            batch = await self._fetch_transactions()
            return [batch] if batch is not None else []
        records = await self._fetch_rows(stream, limit)
        records.reverse()
        return records

    def close(self) -> None:
        try:
            self.client.close()
        except Exception as e:
            logger.warning("clickhouse_close_failed", extra={"error": str(e)})

    # Internals
    async def _fetch_rows(self, stream: str, limit: int) -> List[Snapshot]:
        try:
            query, model = _ROW_QUERIES[stream]
        except KeyError:
            raise UnknownStreamError(stream) from None
        rows = await self._query(stream, query, limit)
        try:
            return [model.model_validate(row) for row in rows]
        except ValidationError as e:
            raise MalformedRecordError(stream, str(e)) from e

    async def _fetch_transactions(self) -> Optional[TransactionBatch]:
        stream = Streams.RECENT_TRANSACTIONS
        rows = await self._query(stream, RECENT_TRANSACTIONS_QUERY, self.transactions_limit)
        if not rows:
            return None
        try:
            return TransactionBatch.from_transactions(
                [Transaction.model_validate(row) for row in rows]
            )
        except ValidationError as e:
            raise MalformedRecordError(stream, str(e)) from e

    async def _query(self, stream: str, query: str, limit: int) -> List[Dict[str, Any]]:
        try:
            result = await run_blocking(
                self.client.query, query, parameters={"limit": limit}
            )
        except Exception as e:
            raise FetchError(stream, str(e)) from e
        columns = list(result.column_names)
        return [dict(zip(columns, row)) for row in result.result_rows]
