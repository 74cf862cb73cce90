from __future__ import annotations

import argparse
import asyncio
import json
import os
import sys
import time
from typing import Any, Dict, Mapping, Optional

from crossarb.config.settings import Settings, settings as default_settings
from crossarb.connectors.base import MarketDataSource
from crossarb.connectors.demo import DemoSource
from crossarb.connectors.dome import DomeClient
from crossarb.core.models import ScanRequest, ScanResult
from crossarb.core.scanner import ScanOrchestrator
from crossarb.store.opportunities import OpportunityStore, SqliteOpportunityStore
from crossarb.utils.logging import get_logger
from crossarb.utils.ratelimit import RateLimiter


logger = get_logger("main")

_rate_limiter: Optional[RateLimiter] = None


def demo_enabled() -> bool:
    return os.environ.get("DEMO", "0") in {"1", "true", "TRUE", "yes"}


def get_rate_limiter(config: Optional[Settings] = None) -> RateLimiter:
    """Return the process-wide limiter, building it from config on first use."""
    global _rate_limiter
    if _rate_limiter is None:
        config = config or default_settings
        _rate_limiter = RateLimiter(config.limits.max_requests, config.limits.period_seconds)
    return _rate_limiter


def build_source(config: Optional[Settings] = None, demo: Optional[bool] = None) -> MarketDataSource:
    config = config or default_settings
    if demo is None:
        demo = demo_enabled()
    if demo:
        logger.info("DEMO mode: serving fixed listings and books")
        return DemoSource()
    if not config.dome.api_key:
        logger.warning("DOME_API_KEY is not set; upstream calls will likely be rejected")
    return DomeClient(
        api_key=config.dome.api_key,
        base_url=config.dome.base_url,
        timeout=config.dome.request_timeout,
        rate_limiter=get_rate_limiter(config),
        lookback_seconds=config.scan.lookback_seconds,
    )


def build_store(config: Optional[Settings] = None) -> Optional[OpportunityStore]:
    config = config or default_settings
    if not config.scan.store_path:
        return None
    return SqliteOpportunityStore(config.scan.store_path)


def default_request(config: Optional[Settings] = None) -> ScanRequest:
    config = config or default_settings
    return ScanRequest(
        min_spread_percent=config.scan.min_spread_percent,
        max_markets=config.scan.max_markets,
        min_match_score=config.matching.min_match_score,
    )


async def handle_scan(
    params: Optional[Mapping[str, Any]] = None,
    source: Optional[MarketDataSource] = None,
    store: Optional[OpportunityStore] = None,
    config: Optional[Settings] = None,
) -> Dict[str, Any]:
    """Run one scan for an inbound request and return the response body.

    Never raises: anything that escapes the scan becomes an error payload
    of the usual shape with an empty opportunity list and zeroed stats.
    """
    config = config or default_settings
    owns_source = source is None
    owns_store = store is None
    request: Optional[ScanRequest] = None
    try:
        request = ScanRequest.from_params(params or {}, defaults=default_request(config))
        if source is None:
            source = build_source(config)
        if store is None:
            store = build_store(config)
        result = await ScanOrchestrator(source, config=config, store=store).run_scan(request)
        return result.to_dict()
    except Exception as exc:  # noqa: BLE001
        logger.exception("Scan failed: %s", exc)
        failed = ScanResult(
            request=request or default_request(config),
            timestamp_ms=int(time.time() * 1000),
            error=str(exc) or exc.__class__.__name__,
        )
        return failed.to_dict()
    finally:
        if owns_source and source is not None:
            try:
                await source.close()
            except Exception as exc:  # noqa: BLE001
                logger.warning("Failed to close %s: %s", source.__class__.__name__, exc)
        if owns_store and store is not None:
            try:
                store.close()
            except Exception as exc:  # noqa: BLE001
                logger.warning("Failed to close store: %s", exc)


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Scan Polymarket and Kalshi for cross-venue arbitrage.")
    parser.add_argument("--category", default="all", help="all, politics, crypto, sports, finance, entertainment, weather, general")
    parser.add_argument("--min-spread", type=float, default=None, help="minimum spread percent")
    parser.add_argument("--max-markets", type=int, default=None, help="listings fetched per platform (max 500)")
    parser.add_argument("--min-match-score", type=int, default=None, help="minimum match score 0-100")
    parser.add_argument("--debug", action="store_true", help="include diagnostics in the output")
    parser.add_argument("--demo", action="store_true", help="use built-in demo data instead of the live API")
    return parser.parse_args(argv)


def cli(argv=None) -> int:
    args = parse_args(argv)
    params: Dict[str, Any] = {"category": args.category, "debug": args.debug}
    if args.min_spread is not None:
        params["minSpreadPercent"] = args.min_spread
    if args.max_markets is not None:
        params["maxMarketsPerPlatform"] = args.max_markets
    if args.min_match_score is not None:
        params["minMatchScore"] = args.min_match_score

    source = DemoSource() if args.demo else None
    payload = asyncio.run(handle_scan(params, source=source))
    json.dump(payload, sys.stdout, indent=2)
    sys.stdout.write("\n")
    return 1 if payload.get("error") else 0


if __name__ == "__main__":
    sys.exit(cli())
