from datetime import datetime, timezone

import pytest

from crossarb.core.arb import ArbitrageCalculator, spread_percent, to_cents
from crossarb.core.models import MarketListing, MatchedPair, OrderbookSnapshot, OrderLevel


EXPIRY = datetime(2026, 12, 16, 19, 0, tzinfo=timezone.utc)
PAIR = MatchedPair(
    MarketListing("polymarket", "fed-cut-december-2026", "Will the Fed cut rates in December 2026?", expiry=EXPIRY),
    MarketListing("kalshi", "FED-26DEC-CUT", "Fed cuts rates December 2026"),
    score=82.14,
    reason="Matched: 2026, fed",
)


def _book(bid, ask, bid_size=100.0, ask_size=50.0):
    return OrderbookSnapshot(
        bids=(OrderLevel(bid, bid_size),) if bid is not None else (),
        asks=(OrderLevel(ask, ask_size),) if ask is not None else (),
    )


def _calc():
    return ArbitrageCalculator(fee_assumption_pct=2.0, clock=lambda: 1_800_000_000.0)


def test_buy_a_sell_b():
    opp = _calc().compute(PAIR, _book(0.40, 0.42), _book(0.47, 0.49))
    assert opp.buy_platform == "polymarket"
    assert opp.sell_platform == "kalshi"
    assert (opp.buy_price, opp.sell_price) == (42, 47)
    assert opp.spread_percent == pytest.approx(11.90)
    assert opp.estimated_profit_percent == pytest.approx(9.90)
    assert opp.buy_volume == 50.0
    assert opp.sell_volume == 100.0
    assert opp.id == "fed-cut-december-2026-FED-26DEC-CUT"
    assert opp.match_key == "fed-cut-december-2026"
    assert opp.category == "finance"
    assert opp.expires_at == "2026-12-16T19:00:00Z"
    assert opp.computed_at_epoch_ms == 1_800_000_000_000


def test_buy_b_sell_a():
    opp = _calc().compute(PAIR, _book(0.60, 0.62), _book(0.52, 0.55))
    assert (opp.buy_platform, opp.buy_price) == ("kalshi", 55)
    assert (opp.sell_platform, opp.sell_price) == ("polymarket", 60)
    assert opp.spread_percent == pytest.approx(9.09)
    assert opp.buy_ticker == "FED-26DEC-CUT"
    assert opp.sell_ticker == "fed-cut-december-2026"


def test_no_arbitrage_when_books_overlap():
    assert _calc().compute(PAIR, _book(0.21, 0.22), _book(0.21, 0.23)) is None


def test_equal_prices_are_not_an_opportunity():
    assert _calc().compute(PAIR, _book(0.40, 0.45), _book(0.45, 0.50)) is None


def test_missing_book_or_side_returns_none():
    assert _calc().compute(PAIR, None, _book(0.47, 0.49)) is None
    assert _calc().compute(PAIR, _book(0.40, None), _book(None, 0.49)) is None


def test_profit_floors_at_zero():
    opp = ArbitrageCalculator(fee_assumption_pct=5.0).compute(PAIR, _book(0.40, 0.50), _book(0.51, 0.60))
    assert opp.spread_percent == pytest.approx(2.0)
    assert opp.estimated_profit_percent == 0.0


def test_better_direction_wins_when_both_qualify():
    # crossed books on both sides
    # buy A at 30 / sell B at 50 is 66.67%, buy B at 40 / sell A at 70 is 75%
    opp = _calc().compute(PAIR, _book(0.70, 0.30), _book(0.50, 0.40))
    assert opp.buy_platform == "kalshi"
    assert opp.spread_percent == pytest.approx(75.0)


def test_tie_prefers_buying_on_first_platform():
    opp = _calc().compute(PAIR, _book(0.60, 0.40), _book(0.60, 0.40))
    assert opp.buy_platform == "polymarket"
    assert opp.spread_percent == pytest.approx(50.0)


def test_spread_is_consistent_with_reported_prices():
    for ask, bid in [(0.42, 0.47), (0.013, 0.019), (0.555, 0.565), (0.99, 1.0)]:
        opp = _calc().compute(PAIR, _book(0.0, ask), _book(bid, 1.0))
        assert opp is not None
        assert opp.sell_price > opp.buy_price
        assert opp.spread_percent == round((opp.sell_price - opp.buy_price) / opp.buy_price * 100, 2)


def test_cents_helpers():
    assert to_cents(0.425) == 43
    assert to_cents(0.42) == 42
    assert spread_percent(42, 47) == pytest.approx(11.90)


def test_to_dict_uses_camel_case():
    data = _calc().compute(PAIR, _book(0.40, 0.42), _book(0.47, 0.49)).to_dict()
    assert data["buyPrice"] == 42
    assert data["spreadPercent"] == pytest.approx(11.9)
    assert data["matchScore"] == 82.14
    assert data["id"] == "fed-cut-december-2026-FED-26DEC-CUT"
