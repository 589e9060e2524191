from datetime import datetime
from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest
from livesync.domain.errors import FetchError, MalformedRecordError, UnknownStreamError
from livesync.domain.models import BlockInfo, TransactionBatch
from livesync.domain.streams import Streams
from livesync.infrastructure.clickhouse.source import ClickHouseDataSource

BLOCK_COLUMNS = (
    "block_height",
    "block_hash",
    "transaction_count",
    "average_fee",
    "total_volume",
    "mempool_size",
    "timestamp",
)


def _result(columns, rows):
    return SimpleNamespace(column_names=columns, result_rows=rows)


def _block_row(height, second):
    ts = datetime(2024, 1, 1, 0, 0, second)
    return (height, f"{height:064x}", 2500, 0.0001, 4200.5, 1000, ts)


@pytest.fixture
def mock_click_house_client():
    """Mock clickhouse_connect client for unit tests"""
    client = MagicMock()
    client.query = MagicMock(return_value=_result(BLOCK_COLUMNS, []))
    return client


@pytest.mark.asyncio
async def test_fetch_latest_block(mock_click_house_client):
    mock_click_house_client.query.return_value = _result(BLOCK_COLUMNS, [_block_row(7, 3)])
    source = ClickHouseDataSource(mock_click_house_client)

    block = await source.fetch_latest(Streams.BLOCK_INFO)

    assert isinstance(block, BlockInfo)
    assert block.block_height == 7
    assert block.timestamp.tzinfo is not None
    _, kwargs = mock_click_house_client.query.call_args
    assert kwargs["parameters"] == {"limit": 1}


@pytest.mark.asyncio
async def test_fetch_latest_empty_table(mock_click_house_client):
    source = ClickHouseDataSource(mock_click_house_client)
    assert await source.fetch_latest(Streams.BLOCK_INFO) is None
    assert await source.fetch_latest(Streams.RECENT_TRANSACTIONS) is None


@pytest.mark.asyncio
async def test_fetch_recent_is_oldest_first(mock_click_house_client):
    # query returns newest first
    mock_click_house_client.query.return_value = _result(
        BLOCK_COLUMNS, [_block_row(9, 3), _block_row(8, 2), _block_row(7, 1)]
    )
    source = ClickHouseDataSource(mock_click_house_client)
    blocks = await source.fetch_recent(Streams.BLOCK_INFO, 3)
    assert [b.block_height for b in blocks] == [7, 8, 9]


@pytest.mark.asyncio
async def test_transactions_become_one_batch(mock_click_house_client):
    mock_click_house_client.query.return_value = _result(
        ("tx_hash", "amount", "fee", "timestamp"),
        [
            ("b", 1.0, 0.1, datetime(2024, 1, 1, 0, 0, 2)),
            ("a", 2.0, 0.1, datetime(2024, 1, 1, 0, 0, 1)),
        ],
    )
    source = ClickHouseDataSource(mock_click_house_client, transactions_limit=10)
    batch = await source.fetch_latest(Streams.RECENT_TRANSACTIONS)

    assert isinstance(batch, TransactionBatch)
    assert [t.tx_hash for t in batch.transactions] == ["b", "a"]
    assert batch.timestamp == batch.transactions[0].timestamp
    _, kwargs = mock_click_house_client.query.call_args
    assert kwargs["parameters"] == {"limit": 10}


@pytest.mark.asyncio
async def test_query_failure_raises_fetch_error(mock_click_house_client):
    mock_click_house_client.query.side_effect = ConnectionError("refused")
    source = ClickHouseDataSource(mock_click_house_client)
    with pytest.raises(FetchError) as exc_info:
        await source.fetch_latest(Streams.MARKET_DATA)
    assert exc_info.value.stream == Streams.MARKET_DATA


@pytest.mark.asyncio
async def test_invalid_block_is_malformed(mock_click_house_client):
    row = list(_block_row(7, 3))
    row[2] = 0  # transaction_count
    mock_click_house_client.query.return_value = _result(BLOCK_COLUMNS, [tuple(row)])
    source = ClickHouseDataSource(mock_click_house_client)
    with pytest.raises(MalformedRecordError):
        await source.fetch_latest(Streams.BLOCK_INFO)


@pytest.mark.asyncio
async def test_unknown_stream(mock_click_house_client):
    source = ClickHouseDataSource(mock_click_house_client)
    with pytest.raises(UnknownStreamError):
        await source.fetch_latest("mempool")


def test_close_swallows_driver_errors(mock_click_house_client):
    mock_click_house_client.close.side_effect = RuntimeError("already closed")
    ClickHouseDataSource(mock_click_house_client).close()
    mock_click_house_client.close.assert_called_once()
