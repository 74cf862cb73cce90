"""End-to-end scan: catalogs -> matching -> orderbooks -> arbitrage.

The orchestrator is the only component that knows every stage. It fetches
both catalogs concurrently, matches them, then prices matched pairs in
fixed-size batches: every pair in a batch is fetched in parallel, batches run
one after another, so at most ``batch_size`` pairs (and twice as many
orderbook sides) are in flight at once. Per-pair results are appended only
after their batch has been joined.

Failures stay as local as possible: a failed page ends that platform's
pagination, a failed or stale book removes its pair, a timed-out pair is
skipped, and a failed write is logged. None of these abort the scan.
"""

from __future__ import annotations

import asyncio
import time
from collections import Counter
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Sequence

from crossarb.config import constants
from crossarb.config.settings import Settings, settings as default_settings
from crossarb.connectors.base import MarketDataSource
from crossarb.core.arb import ArbitrageCalculator
from crossarb.core.catalog import Catalog, CatalogFetcher
from crossarb.core.matching import MarketMatcher, filter_by_category
from crossarb.core.models import (
    ArbitrageOpportunity,
    MarketListing,
    MatchedPair,
    PairBooks,
    ScanRequest,
    ScanResult,
)
from crossarb.core.orderbook import OrderbookFetcher
from crossarb.core.scoring import MatchScorer, ScoringWeights, describe
from crossarb.store.opportunities import OpportunityStore
from crossarb.utils.entities import EntityExtractor
from crossarb.utils.logging import get_logger
from crossarb.utils.timing import TimingTracker


logger = get_logger("scanner")

STATUS_PRICED = "priced"
STATUS_NO_BOOKS = "no_books"
STATUS_TIMEOUT = "timeout"
STATUS_FAILED = "failed"


@dataclass(frozen=True)
class PairOutcome:
    pair: MatchedPair
    status: str
    books: Optional[PairBooks] = None
    opportunity: Optional[ArbitrageOpportunity] = None


def batched(items: Sequence[Any], size: int) -> List[Sequence[Any]]:
    size = max(1, size)
    return [items[i : i + size] for i in range(0, len(items), size)]


class ScanOrchestrator:
    def __init__(
        self,
        source: MarketDataSource,
        config: Optional[Settings] = None,
        store: Optional[OpportunityStore] = None,
        matcher: Optional[MarketMatcher] = None,
        clock: Optional[Callable[[], float]] = None,
    ):
        self.config = config or default_settings
        self.source = source
        self.store = store
        self._clock = clock or time.time
        scan = self.config.scan
        self.catalogs = CatalogFetcher(source, page_limit=scan.page_limit)
        self.orderbooks = OrderbookFetcher(source, staleness_seconds=scan.staleness_seconds, clock=self._clock)
        self.calculator = ArbitrageCalculator(self.config.fees.fee_assumption_pct, clock=self._clock)
        if matcher is None:
            scorer = MatchScorer(
                EntityExtractor.from_path(self.config.matching.aliases_path),
                ScoringWeights.from_settings(self.config.matching),
            )
            matcher = MarketMatcher(scorer)
        self.matcher = matcher

    async def run_scan(self, request: Optional[ScanRequest] = None) -> ScanResult:
        request = request or ScanRequest()
        timing = TimingTracker()
        result = ScanResult(request=request)
        debug: Dict[str, Any] = {}

        logger.info(
            "Scan started: category=%s minSpread=%.2f%% maxMarkets=%d minMatchScore=%d",
            request.category,
            request.min_spread_percent,
            request.max_markets,
            request.min_match_score,
        )

        with timing.phase("catalogs"):
            catalog_a, catalog_b = await asyncio.gather(
                self.catalogs.fetch_catalog(constants.PLATFORM_A, constants.LISTING_STATUS_OPEN, request.max_markets),
                self.catalogs.fetch_catalog(constants.PLATFORM_B, constants.LISTING_STATUS_OPEN, request.max_markets),
            )
        result.stats.platform_a_count = len(catalog_a.listings)
        result.stats.platform_b_count = len(catalog_b.listings)
        if request.debug:
            debug.update(self._catalog_debug(catalog_a, catalog_b))

        if not catalog_a.listings or not catalog_b.listings:
            logger.info(
                "Insufficient markets: %s=%d, %s=%d",
                constants.PLATFORM_A,
                len(catalog_a.listings),
                constants.PLATFORM_B,
                len(catalog_b.listings),
            )
            result.message = "Insufficient markets from one or both platforms"
            if not catalog_a.listings and not catalog_b.listings:
                result.error = "No listings available from either platform" + self._catalog_errors(catalog_a, catalog_b)
            return self._finish(result, timing, debug if request.debug else None)

        with timing.phase("matching"):
            matched = self.matcher.match(catalog_a.listings, catalog_b.listings, request.min_match_score)
            pairs = filter_by_category(matched, request.category)
        logger.info("Matched pairs after category filter (%s): %d", request.category, len(pairs))
        result.stats.matched_pairs = len(pairs)
        if request.debug:
            debug["topMatches"] = self._match_debug(pairs)

        if not pairs:
            result.message = "No matching markets found between platforms"
            return self._finish(result, timing, debug if request.debug else None)

        with timing.phase("orderbooks"):
            outcomes = await self._price_pairs(pairs[: request.max_markets])

        opportunities = [
            o.opportunity
            for o in outcomes
            if o.opportunity is not None and o.opportunity.spread_percent >= request.min_spread_percent
        ]
        opportunities.sort(key=lambda o: o.spread_percent, reverse=True)
        result.opportunities = opportunities
        result.stats.opportunities_found = len(opportunities)
        logger.info("Found %d arbitrage opportunities", len(opportunities))
        if not opportunities:
            result.message = "No arbitrage opportunities above the minimum spread"

        persisted, failed = 0, 0
        if self.store is not None and opportunities:
            with timing.phase("persist"):
                persisted, failed = self._persist(opportunities[: self.config.scan.persist_top_n])

        if request.debug:
            debug.update(self._pricing_debug(outcomes, request, persisted, failed))
        return self._finish(result, timing, debug if request.debug else None)

    async def _price_pairs(self, pairs: Sequence[MatchedPair]) -> List[PairOutcome]:
        outcomes: List[PairOutcome] = []
        batches = batched(pairs, self.config.scan.batch_size)
        for n, batch in enumerate(batches, start=1):
            results = await asyncio.gather(*(self._price_pair(p) for p in batch))
            outcomes.extend(results)
            logger.debug("Priced batch %d/%d (%d pairs)", n, len(batches), len(batch))
        return outcomes

    async def _price_pair(self, pair: MatchedPair) -> PairOutcome:
        try:
            books = await asyncio.wait_for(self.orderbooks.fetch(pair), timeout=self.config.scan.pair_timeout)
        except asyncio.TimeoutError:
            logger.warning("Orderbook fetch timed out for %s; skipping pair", pair.match_key)
            return PairOutcome(pair, STATUS_TIMEOUT)
        except Exception as exc:  # noqa: BLE001
            logger.warning("Pricing failed for %s: %s", pair.match_key, exc, exc_info=True)
            return PairOutcome(pair, STATUS_FAILED)

        if not books.complete:
            logger.debug(
                "No usable books for %s (a=%s, b=%s)", pair.match_key, books.a_source, books.b_source
            )
            return PairOutcome(pair, STATUS_NO_BOOKS, books=books)
        try:
            opportunity = self.calculator.compute(pair, books.a, books.b)
        except Exception as exc:  # noqa: BLE001
            logger.warning("Arbitrage computation failed for %s: %s", pair.match_key, exc, exc_info=True)
            return PairOutcome(pair, STATUS_FAILED, books=books)
        return PairOutcome(pair, STATUS_PRICED, books=books, opportunity=opportunity)

    def _persist(self, opportunities: Sequence[ArbitrageOpportunity]) -> tuple:
        written, failed = 0, 0
        for opp in opportunities:
            try:
                self.store.upsert(opp)
                written += 1
            except Exception as exc:  # noqa: BLE001
                failed += 1
                logger.warning("Error upserting opportunity %s: %s", opp.match_key, exc)
        logger.info("Persisted %d opportunities (%d failed)", written, failed)
        return written, failed

    def _finish(self, result: ScanResult, timing: TimingTracker, debug: Optional[Dict[str, Any]]) -> ScanResult:
        result.stats.elapsed_ms = timing.elapsed_ms()
        result.timestamp_ms = int(self._clock() * 1000)
        if debug is not None:
            debug["timings"] = timing.summary()
            result.debug = debug
        return result

    @staticmethod
    def _catalog_errors(*catalogs: Catalog) -> str:
        errors = [f"{c.platform}: {c.error}" for c in catalogs if c.error]
        return f" ({'; '.join(errors)})" if errors else ""

    def _listing_sample(self, listings: Sequence[MarketListing]) -> List[Dict[str, Any]]:
        out = []
        for listing in listings[: constants.DIAGNOSTIC_SAMPLE_SIZE]:
            norm = self.matcher.scorer.normalize(listing.title)
            out.append(
                {
                    "id": listing.external_id,
                    "title": listing.title,
                    "tokens": sorted(norm.tokens),
                    "entities": sorted(norm.entities),
                    "expiry": listing.expiry.isoformat() if listing.expiry else None,
                }
            )
        return out

    def _catalog_debug(self, catalog_a: Catalog, catalog_b: Catalog) -> Dict[str, Any]:
        return {
            "sampleListings": {
                catalog_a.platform: self._listing_sample(catalog_a.listings),
                catalog_b.platform: self._listing_sample(catalog_b.listings),
            },
            "malformedRecords": {catalog_a.platform: catalog_a.malformed, catalog_b.platform: catalog_b.malformed},
            "catalogPages": {catalog_a.platform: catalog_a.pages, catalog_b.platform: catalog_b.pages},
            "catalogErrors": {c.platform: c.error for c in (catalog_a, catalog_b) if c.error},
        }

    def _match_debug(self, pairs: Sequence[MatchedPair]) -> List[Dict[str, Any]]:
        out = []
        for pair in pairs[: constants.DIAGNOSTIC_SAMPLE_SIZE]:
            breakdown = self.matcher.scorer.score(pair.listing_a, pair.listing_b)
            out.append(
                {
                    "matchKey": pair.match_key,
                    "titleA": pair.listing_a.title,
                    "titleB": pair.listing_b.title,
                    "score": pair.score,
                    "reason": pair.reason,
                    "components": describe(breakdown),
                }
            )
        return out

    @staticmethod
    def _pricing_debug(
        outcomes: Sequence[PairOutcome], request: ScanRequest, persisted: int, failed: int
    ) -> Dict[str, Any]:
        statuses = Counter(o.status for o in outcomes)
        sources: Counter = Counter()
        for o in outcomes:
            if o.books is not None:
                sources[o.books.a_source] += 1
                sources[o.books.b_source] += 1
        below = sum(
            1
            for o in outcomes
            if o.opportunity is not None and o.opportunity.spread_percent < request.min_spread_percent
        )
        return {
            "pairsPriced": len(outcomes),
            "pairStatuses": dict(statuses),
            "bookSources": dict(sources),
            "belowMinSpread": below,
            "persisted": persisted,
            "persistFailures": failed,
        }
