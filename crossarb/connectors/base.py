from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, List, Optional


class MarketDataSource(ABC):
    """Read-only upstream for listings and orderbooks of several platforms.

    Implementations raise ``UpstreamUnavailable`` for non-success statuses,
    timeouts and transport errors, and ``MalformedResponse`` for bodies they
    cannot decode. They never parse records into models.
    """

    name: str

    @abstractmethod
    async def fetch_listing_page(
        self, platform: str, status: str, limit: int, offset: int
    ) -> List[Any]:
        raise NotImplementedError

    @abstractmethod
    async def fetch_orderbook(self, platform: str, token_id: str) -> Optional[Any]:
        """Return the raw orderbook payload, or None if the venue has no book."""
        raise NotImplementedError

    async def close(self) -> None:
        return None
