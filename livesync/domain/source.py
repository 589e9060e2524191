from typing import List, Optional, Protocol

from .models import Snapshot


class DataSource(Protocol):
    """Read side of the external store the engine polls.

    Implementations raise FetchError (or MalformedRecordError) when a record
    cannot be produced and return None when the stream has no data yet.
    """

    async def fetch_latest(self, stream: str) -> Optional[Snapshot]: ...

    async def fetch_recent(self, stream: str, limit: int) -> List[Snapshot]:
        """Return up to `limit` most recent records, oldest first."""
        ...
