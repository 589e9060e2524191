from datetime import datetime, timedelta, timezone

import pytest
from livesync.domain.models import BlockInfo, MarketData, Transaction, TransactionBatch
from livesync.domain.streams import Streams
from livesync.realtime.stream_store import StreamStore

T0 = datetime(2024, 1, 1, tzinfo=timezone.utc)


def ts(seconds: float) -> datetime:
    return T0 + timedelta(seconds=seconds)


@pytest.fixture
def make_block():
    def _make(height: int, at: float, **overrides) -> BlockInfo:
        fields = {
            "block_height": height,
            "block_hash": f"{height:064x}",
            "transaction_count": 2500,
            "average_fee": 0.00012,
            "total_volume": 4200.5,
            "mempool_size": 1_500_000,
            "timestamp": ts(at),
        }
        fields.update(overrides)
        return BlockInfo(**fields)

    return _make


@pytest.fixture
def make_market():
    def _make(price: float, at: float, **overrides) -> MarketData:
        fields = {
            "market_price": price,
            "volume_24h": 3.1e10,
            "market_cap": 8.5e11,
            "timestamp": ts(at),
        }
        fields.update(overrides)
        return MarketData(**fields)

    return _make


@pytest.fixture
def make_transactions():
    def _make(hashes: list[str], at: float) -> TransactionBatch:
        txs = [
            Transaction(tx_hash=h, amount=0.5 + i, fee=0.0001, timestamp=ts(at - i))
            for i, h in enumerate(hashes)
        ]
        return TransactionBatch.from_transactions(txs)

    return _make


@pytest.fixture
def store():
    s = StreamStore(capacity=100)
    for stream in Streams.all_streams():
        s.register(stream)
    return s
