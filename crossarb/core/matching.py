from __future__ import annotations

import re
from typing import Callable, Iterable, List, Optional, Pattern, Sequence, Set, Tuple

from crossarb.core.models import MarketListing, MatchedPair, NormalizedTitle
from crossarb.core.scoring import MatchScorer
from crossarb.utils.logging import get_logger
from crossarb.utils.text import normalize_text


logger = get_logger("matching")


def _words(*terms: str) -> Pattern[str]:
    return re.compile(r"\b(?:" + "|".join(terms) + r")")


# checked in order, first hit wins
CATEGORY_PATTERNS: Tuple[Tuple[str, Pattern[str]], ...] = (
    ("politics", _words("politic", "elect", "vote", "trump", "biden", "harris", "congress", "senate",
                        "president", "governor", "democrat", "republican")),
    ("crypto", _words("bitcoin", "btc\\b", "ethereum", "eth\\b", "crypto", "solana", "sol\\b", "xrp", "doge")),
    ("sports", _words("nfl", "nba", "mlb", "nhl", "soccer", "football", "basketball", "baseball", "hockey",
                      "super bowl", "world cup", "olympic", "sports")),
    ("finance", _words("fed\\b", "federal reserve", "interest rate", "inflation", "cpi", "gdp", "stock",
                       "s p 500", "nasdaq", "dow\\b", "earnings", "economics", "recession")),
    ("entertainment", _words("oscar", "grammy", "emmy", "movie", "film", "celebrity", "entertainment", "music")),
    ("weather", _words("weather", "temperature", "hurricane", "storm", "climate")),
)

CATEGORIES = tuple(name for name, _ in CATEGORY_PATTERNS) + ("general",)


def infer_category(listing_a: MarketListing, listing_b: MarketListing) -> str:
    text = normalize_text(
        " ".join(
            part or ""
            for part in (listing_a.title, listing_b.title, listing_a.category, listing_b.category)
        )
    )
    for name, pattern in CATEGORY_PATTERNS:
        if pattern.search(text):
            return name
    return "general"


def filter_by_category(pairs: Iterable[MatchedPair], category: str) -> List[MatchedPair]:
    if not category or category == "all":
        return list(pairs)
    return [p for p in pairs if infer_category(p.listing_a, p.listing_b) == category]


class MarketMatcher:
    """Greedy one-to-one assignment of Platform-A listings to Platform-B listings.

    Each A listing, in input order, takes the best-scoring B listing that is
    still unclaimed and clears ``min_score``. The result depends on the order
    of ``listings_a`` and is not a globally optimal assignment. Ties keep the
    earlier B listing.
    """

    def __init__(self, scorer: Optional[MatchScorer] = None):
        self.scorer = scorer or MatchScorer()

    def match(
        self,
        listings_a: Sequence[MarketListing],
        listings_b: Sequence[MarketListing],
        min_score: float = 60,
        progress_cb: Optional[Callable[[float], None]] = None,
    ) -> List[MatchedPair]:
        norm_a = [self._prepare(l) for l in listings_a]
        norm_b = [self._prepare(l) for l in listings_b]

        claimed: Set[int] = set()
        pairs: List[MatchedPair] = []
        total = max(1, len(listings_a))
        for idx, (listing_a, (na, text_a)) in enumerate(zip(listings_a, norm_a)):
            best_idx = -1
            best_score = None
            for j, (listing_b, (nb, text_b)) in enumerate(zip(listings_b, norm_b)):
                if j in claimed:
                    continue
                s = self.scorer.score_normalized(
                    na, nb, listing_a.expiry, listing_b.expiry, same_text=text_a == text_b
                )
                if s.value >= min_score and (best_score is None or s.value > best_score.value):
                    best_idx, best_score = j, s

            if best_score is not None:
                claimed.add(best_idx)
                pairs.append(
                    MatchedPair(
                        listing_a=listing_a,
                        listing_b=listings_b[best_idx],
                        score=round(best_score.value, 2),
                        reason=best_score.reason,
                    )
                )
            if progress_cb and (idx + 1) % 100 == 0:
                progress_cb((idx + 1) / total)

        if progress_cb:
            progress_cb(1.0)
        pairs.sort(key=lambda p: p.score, reverse=True)
        logger.info(
            "Matched %d pairs from %d x %d listings (min score %s)",
            len(pairs),
            len(listings_a),
            len(listings_b),
            min_score,
        )
        return pairs

    def _prepare(self, listing: MarketListing) -> Tuple[NormalizedTitle, str]:
        return self.scorer.normalize(listing.title), normalize_text(listing.title)
