from __future__ import annotations

from typing import Any, Mapping, Optional, Sequence

from .models import StreamRecord
from .streams import Streams

DEFAULT_PRIMARY_FIELDS: dict[str, tuple[str, ...]] = {
    Streams.BLOCK_INFO: ("block_height",),
    Streams.MARKET_DATA: ("market_price",),
    # key-set identity: reordering or re-stamping the same transactions is
    # not a change, a new or dropped hash is
    Streams.RECENT_TRANSACTIONS: ("tx_hashes",),
}

_VOLATILE_FIELDS = {"timestamp"}


class ChangeDetector:
    """Decides whether a stream materially changed between two snapshots.

    Each stream is compared on its primary signal fields only, so a record
    that differs in volatile fields (as-of timestamp) alone is not a change.
    Streams without a configured policy compare every non-volatile field.
    """

    def __init__(self, primary_fields: Optional[Mapping[str, Sequence[str]]] = None):
        policy = DEFAULT_PRIMARY_FIELDS if primary_fields is None else primary_fields
        self._policy = {stream: tuple(fields) for stream, fields in policy.items()}

    def primary_fields(self, stream: str) -> tuple[str, ...] | None:
        return self._policy.get(stream)

    def has_changed(
        self, old: Optional[StreamRecord], new: StreamRecord
    ) -> bool:
        if old is None:
            return True
        stream = getattr(new, "stream", None)
        return self._signal(stream, old) != self._signal(stream, new)

    def _signal(self, stream: str | None, record: StreamRecord) -> Any:
        fields = self._policy.get(stream) if stream else None
        if not fields:
            return record.model_dump(exclude=_VOLATILE_FIELDS)
        return tuple(getattr(record, f) for f in fields)
