"""Heuristic 0-100 score for "these two listings describe the same event".

Three signals, weighted by ``ScoringWeights``:

* token similarity: Jaccard-style overlap of content tokens, exact matches
  count 1 and substring matches between unequal tokens count 0.5, over the
  size of the union;
* entity overlap: shared anchors (canonical names, numbers, years) over the
  larger of the two entity sets;
* date proximity: banded distance between the two expiry dates, with a
  neutral score when either date is missing.

Entities are the strongest disambiguator, token overlap is broad but noisy,
and date proximity only breaks ties. Titles without anchors get no entity
credit, so they top out at the token and date share of the scale.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import AbstractSet, List, Optional

from crossarb.config import constants
from crossarb.config.settings import Matching
from crossarb.core.models import MarketListing, NormalizedTitle
from crossarb.utils.dates import days_between
from crossarb.utils.entities import EntityExtractor
from crossarb.utils.text import normalize_text, tokenize


@dataclass(frozen=True)
class ScoringWeights:
    token: float = 0.5
    entity: float = 0.3
    date: float = 0.2
    neutral_date: float = 50.0

    @classmethod
    def from_settings(cls, matching: Matching) -> "ScoringWeights":
        return cls(
            token=matching.token_weight,
            entity=matching.entity_weight,
            date=matching.date_weight,
            neutral_date=matching.neutral_date_score,
        )


@dataclass(frozen=True)
class MatchScore:
    value: float
    reason: str
    token_similarity: float = 0.0
    entity_score: float = 0.0
    date_proximity: float = 0.0
    matched_entities: tuple = ()


def token_similarity(tokens_a: AbstractSet[str], tokens_b: AbstractSet[str]) -> float:
    if not tokens_a or not tokens_b:
        return 0.0
    matches = 0.0
    for tok in tokens_a:
        if tok in tokens_b:
            matches += 1.0
        elif any(tok in other or other in tok for other in tokens_b):
            matches += 0.5
    union = len(tokens_a | tokens_b)
    return matches / union * 100.0


def entity_overlap(entities_a: AbstractSet[str], entities_b: AbstractSet[str]) -> tuple:
    """Return (score, matched entities sorted)."""
    if not entities_a and not entities_b:
        return 0.0, ()
    matched = tuple(sorted(entities_a & entities_b))
    return len(matched) / max(len(entities_a), len(entities_b)) * 100.0, matched


def date_proximity(a: Optional[datetime], b: Optional[datetime], neutral: float = 50.0) -> float:
    if a is None or b is None:
        return neutral
    diff = days_between(a, b)
    for max_days, score in constants.DATE_PROXIMITY_BANDS:
        if diff <= max_days:
            return score
    return 0.0


def _reason(matched: tuple, tokens: float, date: float) -> str:
    if matched:
        return "Matched: " + ", ".join(matched[: constants.MAX_REASON_ENTITIES])
    if tokens > constants.TITLE_SIMILARITY_REASON_THRESHOLD:
        return "Title similarity"
    if date > constants.DATE_PROXIMITY_REASON_THRESHOLD:
        return "Date proximity"
    return "Partial match"


class MatchScorer:
    def __init__(self, extractor: Optional[EntityExtractor] = None, weights: Optional[ScoringWeights] = None):
        self.extractor = extractor or EntityExtractor()
        self.weights = weights or ScoringWeights()

    def normalize(self, title: str) -> NormalizedTitle:
        return NormalizedTitle(tokens=tokenize(title), entities=self.extractor.extract(title))

    def score(self, listing_a: MarketListing, listing_b: MarketListing) -> MatchScore:
        return self.score_normalized(
            self.normalize(listing_a.title),
            self.normalize(listing_b.title),
            listing_a.expiry,
            listing_b.expiry,
            same_text=normalize_text(listing_a.title) == normalize_text(listing_b.title),
        )

    def score_normalized(
        self,
        norm_a: NormalizedTitle,
        norm_b: NormalizedTitle,
        expiry_a: Optional[datetime],
        expiry_b: Optional[datetime],
        same_text: bool = False,
    ) -> MatchScore:
        w = self.weights
        if norm_a.tokens or norm_b.tokens:
            tokens = token_similarity(norm_a.tokens, norm_b.tokens)
        else:
            # titles made only of stop words: fall back to literal equality
            tokens = 100.0 if same_text else 0.0
        entities, matched = entity_overlap(norm_a.entities, norm_b.entities)
        date = date_proximity(expiry_a, expiry_b, w.neutral_date)

        raw = w.token * tokens + w.entity * entities + w.date * date
        value = max(0.0, min(100.0, raw))
        return MatchScore(
            value=value,
            reason=_reason(matched, tokens, date),
            token_similarity=tokens,
            entity_score=entities,
            date_proximity=date,
            matched_entities=matched,
        )


def describe(score: MatchScore) -> List[str]:
    """Component breakdown used in debug payloads."""
    return [
        f"tokens={score.token_similarity:.1f}",
        f"entities={score.entity_score:.1f}",
        f"date={score.date_proximity:.1f}",
    ]
