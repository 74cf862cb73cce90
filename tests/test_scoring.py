from datetime import datetime, timedelta, timezone

import pytest

from crossarb.core.models import MarketListing
from crossarb.core.scoring import (
    MatchScorer,
    ScoringWeights,
    date_proximity,
    describe,
    entity_overlap,
    token_similarity,
)
from crossarb.utils.entities import EntityExtractor


EXPIRY = datetime(2026, 11, 3, tzinfo=timezone.utc)


def _listing(platform, title, expiry=None, ext_id=None):
    return MarketListing(platform=platform, external_id=ext_id or title[:20], title=title, expiry=expiry)


@pytest.fixture
def scorer():
    return MatchScorer(EntityExtractor({"candidate_x": ["candidate x"], "bitcoin": ["btc"]}))


def test_shared_entities_score_high_with_reason(scorer):
    a = _listing("polymarket", "Will Candidate X win the 2026 election?")
    b = _listing("kalshi", "Candidate X 2026 Election Winner")
    s = scorer.score(a, b)
    assert s.entity_score == 100
    assert s.value >= 90
    assert s.reason.startswith("Matched:")
    assert "candidate_x" in s.reason


def test_identical_titles_and_dates_score_100(scorer):
    for title in ("Bitcoin above 100k in 2026", "Candidate X wins the 2026 election"):
        a = _listing("polymarket", title, EXPIRY)
        b = _listing("kalshi", title, EXPIRY)
        assert scorer.score(a, b).value == pytest.approx(100.0)


def test_titles_without_entities_get_no_entity_credit(scorer):
    a = _listing("polymarket", "Snow in Denver tomorrow", EXPIRY)
    b = _listing("kalshi", "Rain in Denver tomorrow", EXPIRY)
    s = scorer.score(a, b)
    assert s.token_similarity == pytest.approx(50.0)
    assert s.entity_score == 0.0
    assert s.value == pytest.approx(45.0)
    assert s.value < 60


def test_identical_entity_free_titles_cap_below_entity_share(scorer):
    a = _listing("polymarket", "Will it rain tomorrow", EXPIRY)
    b = _listing("kalshi", "Will it rain tomorrow", EXPIRY)
    assert scorer.score(a, b).value == pytest.approx(70.0)


def test_unrelated_titles_score_low(scorer):
    a = _listing("polymarket", "Will BTC close above 150k?", EXPIRY)
    b = _listing("kalshi", "Hurricane landfall in Florida", EXPIRY + timedelta(days=400))
    s = scorer.score(a, b)
    assert 0 <= s.value < 60
    assert s.reason == "Partial match"


def test_score_is_bounded(scorer):
    titles = ["", "the", "2026", "Candidate X", "BTC 2026 100000", "a b c d e f"]
    for ta in titles:
        for tb in titles:
            value = scorer.score(_listing("polymarket", ta or "x"), _listing("kalshi", tb or "x")).value
            assert 0.0 <= value <= 100.0


def test_title_similarity_reason_without_entities(scorer):
    a = _listing("polymarket", "Will it snow in Denver tomorrow")
    b = _listing("kalshi", "Snow in Denver tomorrow")
    assert scorer.score(a, b).reason == "Title similarity"


def test_token_similarity_counts_substrings_as_half():
    assert token_similarity(frozenset({"cut"}), frozenset({"cuts"})) == pytest.approx(25.0)
    assert token_similarity(frozenset({"rates"}), frozenset({"rates"})) == pytest.approx(100.0)
    assert token_similarity(frozenset(), frozenset({"rates"})) == 0.0


def test_entity_overlap_uses_larger_set():
    score, matched = entity_overlap(frozenset({"bitcoin", "2026"}), frozenset({"bitcoin", "2026", "150000", "31"}))
    assert score == pytest.approx(50.0)
    assert matched == ("2026", "bitcoin")


@pytest.mark.parametrize(
    "days,expected",
    [(0, 100), (1, 100), (5, 80), (20, 50), (60, 20), (200, 0)],
)
def test_date_proximity_bands(days, expected):
    assert date_proximity(EXPIRY, EXPIRY + timedelta(days=days)) == expected


def test_date_proximity_neutral_when_missing():
    assert date_proximity(None, EXPIRY) == 50
    assert date_proximity(EXPIRY, None, neutral=40) == 40


def test_weights_are_configurable(scorer):
    tokens_only = MatchScorer(scorer.extractor, ScoringWeights(token=1.0, entity=0.0, date=0.0))
    a = _listing("polymarket", "Bitcoin above 100k in 2026", EXPIRY)
    b = _listing("kalshi", "Bitcoin above 100k in 2026", EXPIRY + timedelta(days=365))
    assert tokens_only.score(a, b).value == pytest.approx(100.0)
    assert scorer.score(a, b).value == pytest.approx(80.0)


def test_describe_lists_components(scorer):
    s = scorer.score(_listing("polymarket", "BTC 2026"), _listing("kalshi", "Bitcoin 2026"))
    parts = describe(s)
    assert parts[0].startswith("tokens=")
    assert any(p.startswith("entities=100.0") for p in parts)
