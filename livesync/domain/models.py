from __future__ import annotations

from datetime import datetime, timezone
from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, field_validator

from .streams import Streams


class StreamRecord(BaseModel):
    """Common base for every stream snapshot.

    Records are frozen so a committed snapshot can be shared by reference
    with any number of readers.
    """

    model_config = ConfigDict(frozen=True)

    timestamp: datetime

    @field_validator("timestamp")
    @classmethod
    def _assume_utc(cls, value: datetime) -> datetime:
        # ClickHouse DateTime columns come back naive
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value


class BlockInfo(StreamRecord):
    stream: Literal["block_info"] = Streams.BLOCK_INFO
    block_height: int = Field(ge=0)
    block_hash: str
    transaction_count: int = Field(gt=0)
    average_fee: float = Field(gt=0)
    total_volume: float = Field(gt=0)
    mempool_size: int = Field(ge=0)


class MarketData(StreamRecord):
    stream: Literal["market_data"] = Streams.MARKET_DATA
    market_price: float
    volume_24h: float
    market_cap: float


class Transaction(BaseModel):
    model_config = ConfigDict(frozen=True)

    tx_hash: str
    amount: float
    fee: float
    timestamp: datetime

    @field_validator("timestamp")
    @classmethod
    def _assume_utc(cls, value: datetime) -> datetime:
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value


class TransactionBatch(StreamRecord):
    """Most recent transactions, newest first."""

    stream: Literal["recent_transactions"] = Streams.RECENT_TRANSACTIONS
    transactions: tuple[Transaction, ...] = ()

    @property
    def tx_hashes(self) -> frozenset[str]:
        return frozenset(tx.tx_hash for tx in self.transactions)

    @classmethod
    def from_transactions(cls, transactions: List[Transaction]) -> "TransactionBatch":
        ordered = sorted(transactions, key=lambda tx: tx.timestamp, reverse=True)
        return cls(timestamp=ordered[0].timestamp, transactions=tuple(ordered))


Snapshot = Annotated[
    Union[BlockInfo, MarketData, TransactionBatch], Field(discriminator="stream")
]

snapshot_adapter: TypeAdapter[Snapshot] = TypeAdapter(Snapshot)


def parse_snapshot(payload: Dict[str, Any]) -> Snapshot:
    return snapshot_adapter.validate_python(payload)


class StreamSnapshotResponse(BaseModel):
    stream: str
    available: bool
    snapshot: Optional[Snapshot] = None


class StreamHistoryResponse(BaseModel):
    stream: str
    points: List[Snapshot]


class SnapshotBundle(BaseModel):
    """Combined multi-stream read returned in one round trip."""

    as_of: datetime
    snapshots: Dict[str, Optional[Snapshot]]


class HistoricalSeries(BaseModel):
    blocks: List[BlockInfo]
    prices: List[MarketData]
