from __future__ import annotations

import asyncio
from typing import Any, Dict, List, Mapping, Optional, Tuple

from crossarb.config import constants
from crossarb.connectors.base import MarketDataSource
from crossarb.core.errors import UpstreamUnavailable


BookKey = Tuple[str, str]


POLYMARKET_DEMO = [
    {
        "market_slug": "fed-cut-december-2026",
        "condition_id": "0xfed2026",
        "question": "Will the Federal Reserve cut rates in December 2026?",
        "end_date_iso": "2026-12-16T19:00:00Z",
        "category": "economics",
        "volume": 1250000,
        "tokens": [{"token_id": "fed-yes", "outcome": "Yes"}, {"token_id": "fed-no", "outcome": "No"}],
    },
    {
        "market_slug": "bitcoin-150k-2026",
        "condition_id": "0xbtc150",
        "question": "Will Bitcoin reach $150,000 by December 31, 2026?",
        "end_date_iso": "2026-12-31T23:59:00Z",
        "category": "crypto",
        "volume": 830000,
        "tokens": [{"token_id": "btc-yes", "outcome": "Yes"}, {"token_id": "btc-no", "outcome": "No"}],
    },
    {
        "market_slug": "chiefs-super-bowl-2027",
        "condition_id": "0xkc2027",
        "question": "Will the Kansas City Chiefs win Super Bowl 2027?",
        "end_date_iso": "2027-02-14T23:30:00Z",
        "category": "sports",
        "volume": 410000,
        "tokens": [{"token_id": "kc-yes", "outcome": "Yes"}, {"token_id": "kc-no", "outcome": "No"}],
    },
    {
        "market_slug": "oscars-best-picture-2027",
        "condition_id": "0xoscar",
        "question": "Oscars 2027: Best Picture winner announced on time?",
        "end_date_iso": "2027-03-01T02:00:00Z",
        "tokens": [{"token_id": "osc-yes", "outcome": "Yes"}, {"token_id": "osc-no", "outcome": "No"}],
    },
]

KALSHI_DEMO = [
    {
        "ticker": "FED-26DEC-CUT",
        "title": "Fed cuts rates at December 2026 meeting",
        "expiration_time": "2026-12-16T19:00:00Z",
        "category": "Economics",
        "volume": 98000,
    },
    {
        "ticker": "BTC-26DEC31-150K",
        "title": "Bitcoin above $150,000 on December 31, 2026",
        "expiration_time": "2026-12-31T23:59:00Z",
        "category": "Crypto",
        "volume": 54000,
    },
    {
        "ticker": "SB-27-KC",
        "title": "Kansas City Chiefs Super Bowl 2027 champion",
        "expiration_time": "2027-02-14T23:30:00Z",
        "category": "Sports",
        "volume": 31000,
    },
    {
        "ticker": "HURRICANE-26-CAT5",
        "title": "Category 5 hurricane landfall in 2026",
        "expiration_time": "2026-11-30T23:59:00Z",
        "category": "Climate",
        "volume": 12000,
    },
]

BOOKS_DEMO: Dict[BookKey, Dict[str, Any]] = {
    ("polymarket", "fed-yes"): {
        "bids": [{"price": "0.40", "size": "1200"}, {"price": "0.39", "size": "800"}],
        "asks": [{"price": "0.42", "size": "950"}, {"price": "0.44", "size": "400"}],
    },
    ("kalshi", "FED-26DEC-CUT"): {
        "bids": [[47, 300], [46, 500]],
        "asks": [[49, 250], [50, 700]],
    },
    # YES book missing on purpose: the fetcher falls back to the inverted NO book
    ("polymarket", "btc-no"): {
        "bids": [{"price": "0.38", "size": "600"}],
        "asks": [{"price": "0.40", "size": "450"}],
    },
    ("kalshi", "BTC-26DEC31-150K"): {
        "bids": [[52, 200]],
        "asks": [[55, 180]],
    },
    ("polymarket", "kc-yes"): {
        "bids": [{"price": "0.21", "size": "2000"}],
        "asks": [{"price": "0.22", "size": "1500"}],
    },
    ("kalshi", "SB-27-KC"): {
        "bids": [[21, 400]],
        "asks": [[23, 350]],
    },
}


class DemoSource(MarketDataSource):
    """Deterministic in-memory upstream.

    Serves fixed listings and books so that a scan runs without credentials.
    ``delays`` adds a per-book sleep and ``failures`` makes a book call raise
    ``UpstreamUnavailable``; both are keyed by ``(platform, token_id)``.
    ``max_in_flight`` records the most book calls that were open at once.
    """

    name = "demo"

    def __init__(
        self,
        markets: Optional[Mapping[str, List[Any]]] = None,
        books: Optional[Mapping[BookKey, Any]] = None,
        delays: Optional[Mapping[BookKey, float]] = None,
        failures: Optional[Mapping[BookKey, str]] = None,
        failing_pages: Optional[Mapping[str, int]] = None,
    ):
        if markets is None:
            markets = {constants.PLATFORM_A: POLYMARKET_DEMO, constants.PLATFORM_B: KALSHI_DEMO}
        self.markets = {k: list(v) for k, v in markets.items()}
        self.books = dict(BOOKS_DEMO if books is None else books)
        self.delays = dict(delays or {})
        self.failures = dict(failures or {})
        # platform -> offset at which a listings page fails
        self.failing_pages = dict(failing_pages or {})
        self.page_calls: List[Tuple[str, int, int]] = []
        self.book_calls: List[BookKey] = []
        self.in_flight = 0
        self.max_in_flight = 0

    async def fetch_listing_page(self, platform: str, status: str, limit: int, offset: int) -> List[Any]:
        self.page_calls.append((platform, limit, offset))
        fail_at = self.failing_pages.get(platform)
        if fail_at is not None and offset >= fail_at:
            raise UpstreamUnavailable(f"{platform}/markets returned HTTP 503", status_code=503)
        records = self.markets.get(platform, [])
        return records[offset : offset + limit]

    async def fetch_orderbook(self, platform: str, token_id: str) -> Optional[Any]:
        key = (platform, token_id)
        self.book_calls.append(key)
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            delay = self.delays.get(key)
            if delay:
                await asyncio.sleep(delay)
            if key in self.failures:
                raise UpstreamUnavailable(self.failures[key])
            return self.books.get(key)
        finally:
            self.in_flight -= 1
