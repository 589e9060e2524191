import asyncio
from typing import Callable, TypeVar

T = TypeVar("T")


async def run_blocking(func: Callable[..., T], *args, **kwargs) -> T:
    """Run a blocking call (database driver) in the default executor.

    Keeps the event loop free so fetches for different streams overlap.
    """
    return await asyncio.to_thread(func, *args, **kwargs)
