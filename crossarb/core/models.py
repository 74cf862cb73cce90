"""Core data models for listings, matches, orderbooks and opportunities.

Everything here is scan-scoped: built during one orchestrated run, held in
memory, optionally written through to the opportunity store, then dropped.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Literal, Mapping, Optional, Tuple

from crossarb.config import constants

Platform = Literal["polymarket", "kalshi"]


@dataclass(frozen=True)
class OutcomeTokens:
    yes: Optional[str] = None
    no: Optional[str] = None


@dataclass(frozen=True)
class MarketListing:
    platform: Platform
    external_id: str  # slug / condition id on Polymarket, ticker on Kalshi
    title: str
    tokens: OutcomeTokens = field(default_factory=OutcomeTokens)
    expiry: Optional[datetime] = None
    category: Optional[str] = None
    volume: Optional[float] = None


@dataclass(frozen=True)
class NormalizedTitle:
    tokens: frozenset
    entities: frozenset


@dataclass(frozen=True)
class MatchedPair:
    listing_a: MarketListing
    listing_b: MarketListing
    score: float
    reason: str

    @property
    def match_key(self) -> str:
        return self.listing_a.external_id


@dataclass(frozen=True)
class OrderLevel:
    """A single level in the order book, price in dollars (0..1)."""
    price: float
    size: float


@dataclass(frozen=True)
class OrderbookSnapshot:
    bids: Tuple[OrderLevel, ...] = ()  # best (highest) first
    asks: Tuple[OrderLevel, ...] = ()  # best (lowest) first
    age_seconds: float = 0.0

    @property
    def best_bid(self) -> Optional[OrderLevel]:
        return self.bids[0] if self.bids else None

    @property
    def best_ask(self) -> Optional[OrderLevel]:
        return self.asks[0] if self.asks else None

    def inverted(self) -> "OrderbookSnapshot":
        """Express a NO-token book as the equivalent YES book.

        Buying NO at p is selling YES at 1 - p, so NO asks become YES bids
        and NO bids become YES asks.
        """
        bids = tuple(OrderLevel(round(1.0 - lvl.price, 6), lvl.size) for lvl in self.asks)
        asks = tuple(OrderLevel(round(1.0 - lvl.price, 6), lvl.size) for lvl in self.bids)
        return OrderbookSnapshot(bids=bids, asks=asks, age_seconds=self.age_seconds)


@dataclass(frozen=True)
class PairBooks:
    a: Optional[OrderbookSnapshot]
    b: Optional[OrderbookSnapshot]
    a_source: str = "unavailable"
    b_source: str = "unavailable"

    @property
    def complete(self) -> bool:
        return self.a is not None and self.b is not None


@dataclass(frozen=True)
class ArbitrageOpportunity:
    match_key: str
    event_title: str
    category: str
    buy_platform: Platform
    buy_price: int  # cents
    sell_platform: Platform
    sell_price: int  # cents
    spread_percent: float
    estimated_profit_percent: float
    buy_volume: float
    sell_volume: float
    buy_ticker: str
    sell_ticker: str
    expires_at: Optional[str]
    match_score: float
    match_reason: str
    computed_at_epoch_ms: int

    @property
    def id(self) -> str:
        return f"{self.buy_ticker}-{self.sell_ticker}"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "matchKey": self.match_key,
            "eventTitle": self.event_title,
            "category": self.category,
            "buyPlatform": self.buy_platform,
            "buyPrice": self.buy_price,
            "sellPlatform": self.sell_platform,
            "sellPrice": self.sell_price,
            "spreadPercent": self.spread_percent,
            "estimatedProfitPercent": self.estimated_profit_percent,
            "buyVolume": self.buy_volume,
            "sellVolume": self.sell_volume,
            "buyTicker": self.buy_ticker,
            "sellTicker": self.sell_ticker,
            "expiresAt": self.expires_at,
            "matchScore": self.match_score,
            "matchReason": self.match_reason,
            "computedAtEpochMs": self.computed_at_epoch_ms,
        }


def _as_float(value: Any, default: float) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


def _as_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in {"1", "true", "yes", "on"}
    return bool(value)


@dataclass(frozen=True)
class ScanRequest:
    category: str = "all"
    min_spread_percent: float = 1.0
    max_markets: int = constants.DEFAULT_MAX_MARKETS
    min_match_score: int = 60
    debug: bool = False

    @classmethod
    def from_params(
        cls, params: Mapping[str, Any], defaults: Optional["ScanRequest"] = None
    ) -> "ScanRequest":
        """Build a request from loosely typed inbound parameters.

        Accepts the camelCase names of the public request as well as the
        shorter ``minSpread``/``maxMarkets`` aliases. Unparseable values fall
        back to the defaults rather than failing the call.
        """
        base = defaults or cls()
        category = str(params.get("category") or base.category).strip().lower() or "all"
        min_spread = _as_float(
            params.get("minSpreadPercent", params.get("minSpread")), base.min_spread_percent
        )
        max_markets = int(
            _as_float(params.get("maxMarketsPerPlatform", params.get("maxMarkets")), base.max_markets)
        )
        max_markets = max(1, min(max_markets, constants.MAX_MARKETS_CEILING))
        min_score = int(_as_float(params.get("minMatchScore"), base.min_match_score))
        min_score = max(0, min(min_score, 100))
        debug = _as_bool(params.get("debug", base.debug))
        return cls(
            category=category,
            min_spread_percent=min_spread,
            max_markets=max_markets,
            min_match_score=min_score,
            debug=debug,
        )


@dataclass
class ScanStats:
    platform_a_count: int = 0
    platform_b_count: int = 0
    matched_pairs: int = 0
    opportunities_found: int = 0
    elapsed_ms: int = 0

    def to_dict(self) -> Dict[str, int]:
        return {
            "platformACount": self.platform_a_count,
            "platformBCount": self.platform_b_count,
            "matchedPairs": self.matched_pairs,
            "opportunitiesFound": self.opportunities_found,
            "elapsedMs": self.elapsed_ms,
        }


@dataclass
class ScanResult:
    request: ScanRequest
    opportunities: List[ArbitrageOpportunity] = field(default_factory=list)
    stats: ScanStats = field(default_factory=ScanStats)
    timestamp_ms: int = 0
    message: Optional[str] = None
    error: Optional[str] = None
    debug: Optional[Dict[str, Any]] = None

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "opportunities": [o.to_dict() for o in self.opportunities],
            "count": len(self.opportunities),
            "stats": self.stats.to_dict(),
            "category": self.request.category,
            "minSpreadPercent": self.request.min_spread_percent,
            "timestamp": self.timestamp_ms,
        }
        if self.message:
            payload["message"] = self.message
        if self.error:
            payload["error"] = self.error
        if self.debug is not None:
            payload["debug"] = self.debug
        return payload
