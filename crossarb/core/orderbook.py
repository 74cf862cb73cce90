from __future__ import annotations

import asyncio
import time
from datetime import datetime, timezone
from typing import Callable, Optional, Tuple

from crossarb.config import constants
from crossarb.connectors.base import MarketDataSource
from crossarb.core.errors import ArbScanError, StaleData
from crossarb.core.models import MarketListing, MatchedPair, OrderbookSnapshot, PairBooks
from crossarb.core.parsing import parse_orderbook
from crossarb.utils.logging import get_logger


logger = get_logger("orderbook")

SOURCE_YES = "yes"
SOURCE_NO_INVERTED = "no_inverted"
SOURCE_STALE = "stale"
SOURCE_UNAVAILABLE = "unavailable"


class _BookUnavailable(Exception):
    pass


class OrderbookFetcher:
    """Fetch a usable YES-side book for both listings of a matched pair.

    For each side the YES token's book is tried first; if it is missing,
    empty, failed or stale the NO token's book is tried and inverted. A side
    with no usable book comes back as None, never as an exception.
    """

    def __init__(
        self,
        source: MarketDataSource,
        staleness_seconds: float = constants.STALENESS_SECONDS,
        clock: Optional[Callable[[], float]] = None,
    ):
        self.source = source
        self.staleness_seconds = staleness_seconds
        self._clock = clock or time.time

    async def fetch(self, pair: MatchedPair) -> PairBooks:
        (a, a_src), (b, b_src) = await asyncio.gather(
            self.fetch_side(pair.listing_a),
            self.fetch_side(pair.listing_b),
        )
        return PairBooks(a=a, b=b, a_source=a_src, b_source=b_src)

    async def fetch_side(self, listing: MarketListing) -> Tuple[Optional[OrderbookSnapshot], str]:
        stale = False
        if listing.tokens.yes:
            try:
                return await self._usable(listing.platform, listing.tokens.yes), SOURCE_YES
            except StaleData as exc:
                stale = True
                logger.info("Discarding stale %s YES book for %s: %s", listing.platform, listing.external_id, exc)
            except _BookUnavailable:
                pass

        if listing.tokens.no:
            try:
                snap = await self._usable(listing.platform, listing.tokens.no)
                return snap.inverted(), SOURCE_NO_INVERTED
            except StaleData as exc:
                stale = True
                logger.info("Discarding stale %s NO book for %s: %s", listing.platform, listing.external_id, exc)
            except _BookUnavailable:
                pass

        return None, SOURCE_STALE if stale else SOURCE_UNAVAILABLE

    async def _usable(self, platform: str, token_id: str) -> OrderbookSnapshot:
        """Fetch and validate one book.

        Raises:
            StaleData: If the snapshot is older than the staleness window
            _BookUnavailable: If there is no book, or the fetch failed
        """
        try:
            raw = await self.source.fetch_orderbook(platform, token_id)
            now = datetime.fromtimestamp(self._clock(), tz=timezone.utc)
            snap = parse_orderbook(raw, now, platform) if raw else None
        except ArbScanError as exc:
            logger.warning("Orderbook fetch failed for %s %s: %s", platform, token_id, exc)
            raise _BookUnavailable(token_id) from exc
        if snap is None:
            raise _BookUnavailable(token_id)
        if snap.age_seconds > self.staleness_seconds:
            raise StaleData(snap.age_seconds, self.staleness_seconds)
        return snap
