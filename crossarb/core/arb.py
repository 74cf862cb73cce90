"""Cross-venue arbitrage on a matched pair.

Both directions are evaluated against the best levels of each YES book:

* buy A at its best ask, sell B at its best bid;
* buy B at its best ask, sell A at its best bid.

Prices are compared in whole cents, so an emitted opportunity always has
``sell_price > buy_price`` and its spread is exactly
``round((sell - buy) / buy * 100, 2)``. The fee assumption is a flat
percentage standing in for both venues' trading fees.
"""

from __future__ import annotations

import math
import time
from typing import Callable, Optional

from crossarb.core.matching import infer_category
from crossarb.core.models import ArbitrageOpportunity, MarketListing, MatchedPair, OrderbookSnapshot, OrderLevel
from crossarb.utils.dates import to_iso


def to_cents(price: float) -> int:
    """Dollar price to whole cents, half away from zero."""
    return int(math.floor(round(price * 100.0, 6) + 0.5))


def spread_percent(buy_cents: int, sell_cents: int) -> float:
    return round((sell_cents - buy_cents) / buy_cents * 100.0, 2)


class ArbitrageCalculator:
    def __init__(self, fee_assumption_pct: float = 2.0, clock: Optional[Callable[[], float]] = None):
        self.fee_assumption_pct = fee_assumption_pct
        self._clock = clock or time.time

    def compute(
        self,
        pair: MatchedPair,
        ob_a: Optional[OrderbookSnapshot],
        ob_b: Optional[OrderbookSnapshot],
    ) -> Optional[ArbitrageOpportunity]:
        if ob_a is None or ob_b is None:
            return None

        buy_a = self._direction(pair, pair.listing_a, ob_a.best_ask, pair.listing_b, ob_b.best_bid)
        buy_b = self._direction(pair, pair.listing_b, ob_b.best_ask, pair.listing_a, ob_a.best_bid)
        if buy_a and buy_b:
            return buy_b if buy_b.spread_percent > buy_a.spread_percent else buy_a
        return buy_a or buy_b

    def _direction(
        self,
        pair: MatchedPair,
        buy_listing: MarketListing,
        ask: Optional[OrderLevel],
        sell_listing: MarketListing,
        bid: Optional[OrderLevel],
    ) -> Optional[ArbitrageOpportunity]:
        if ask is None or bid is None:
            return None
        buy_cents = to_cents(ask.price)
        sell_cents = to_cents(bid.price)
        if buy_cents <= 0 or sell_cents <= buy_cents:
            return None

        spread = spread_percent(buy_cents, sell_cents)
        profit = round(max(0.0, spread - self.fee_assumption_pct), 2)
        expiry = pair.listing_a.expiry or pair.listing_b.expiry
        return ArbitrageOpportunity(
            match_key=pair.match_key,
            event_title=pair.listing_a.title or pair.listing_b.title,
            category=infer_category(pair.listing_a, pair.listing_b),
            buy_platform=buy_listing.platform,
            buy_price=buy_cents,
            sell_platform=sell_listing.platform,
            sell_price=sell_cents,
            spread_percent=spread,
            estimated_profit_percent=profit,
            buy_volume=ask.size,
            sell_volume=bid.size,
            buy_ticker=buy_listing.external_id,
            sell_ticker=sell_listing.external_id,
            expires_at=to_iso(expiry),
            match_score=pair.score,
            match_reason=pair.reason,
            computed_at_epoch_ms=int(self._clock() * 1000),
        )
