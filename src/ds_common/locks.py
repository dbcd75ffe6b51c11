"""Per-listing asyncio lock registry.

The listing row is the single point of contention between purchase
reservation and bidding. Within one worker, callers touching the same listing
are serialized here; across workers the SELECT ... FOR UPDATE and the
compare-and-swap status update in the listing repository take over.
"""

import asyncio
from collections import defaultdict


class ListingLockRegistry:
    def __init__(self) -> None:
        self._locks: dict[str, asyncio.Lock] = defaultdict(asyncio.Lock)

    def get(self, listing_id: str) -> asyncio.Lock:
        return self._locks[listing_id]


_registry = ListingLockRegistry()


def get_listing_lock_registry() -> ListingLockRegistry:
    return _registry
