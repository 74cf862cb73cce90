from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Optional

from crossarb.config import constants


def _env_float(name: str, default: float) -> float:
    raw = os.environ.get(name)
    if raw is None or raw == "":
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _env_int(name: str, default: int) -> int:
    return int(_env_float(name, float(default)))


@dataclass
class DomeAuth:
    api_key: Optional[str] = None
    base_url: str = constants.DOME_API_URL
    request_timeout: float = constants.API_TIMEOUT_SECONDS


@dataclass
class Fees:
    # flat round-trip assumption, in percentage points (1% per venue)
    fee_assumption_pct: float = 2.0


@dataclass
class Matching:
    token_weight: float = 0.5
    entity_weight: float = 0.3
    date_weight: float = 0.2
    neutral_date_score: float = 50.0
    min_match_score: int = 60
    aliases_path: Optional[str] = None


@dataclass
class Scan:
    batch_size: int = constants.ORDERBOOK_BATCH_SIZE
    page_limit: int = constants.DEFAULT_PAGE_LIMIT
    max_markets: int = constants.DEFAULT_MAX_MARKETS
    min_spread_percent: float = 1.0
    persist_top_n: int = constants.PERSIST_TOP_N
    staleness_seconds: float = constants.STALENESS_SECONDS
    lookback_seconds: float = constants.ORDERBOOK_LOOKBACK_SECONDS
    pair_timeout: float = constants.PAIR_TIMEOUT_SECONDS
    store_path: Optional[str] = None


@dataclass
class Limits:
    max_requests: int = constants.RATE_LIMIT_REQUESTS
    period_seconds: float = constants.RATE_LIMIT_PERIOD_SECONDS


@dataclass
class Settings:
    dome: DomeAuth = field(default_factory=DomeAuth)
    fees: Fees = field(default_factory=Fees)
    matching: Matching = field(default_factory=Matching)
    scan: Scan = field(default_factory=Scan)
    limits: Limits = field(default_factory=Limits)

    @classmethod
    def from_env(cls) -> "Settings":
        """Build settings from environment variables, falling back to defaults."""
        s = cls()
        s.dome.api_key = os.environ.get("DOME_API_KEY") or None
        s.dome.base_url = os.environ.get("DOME_API_URL") or s.dome.base_url
        s.dome.request_timeout = _env_float("DOME_TIMEOUT", s.dome.request_timeout)
        s.fees.fee_assumption_pct = _env_float("ARB_FEE_PCT", s.fees.fee_assumption_pct)
        s.matching.token_weight = _env_float("MATCH_TOKEN_WEIGHT", s.matching.token_weight)
        s.matching.entity_weight = _env_float("MATCH_ENTITY_WEIGHT", s.matching.entity_weight)
        s.matching.date_weight = _env_float("MATCH_DATE_WEIGHT", s.matching.date_weight)
        s.matching.neutral_date_score = _env_float("MATCH_NEUTRAL_DATE_SCORE", s.matching.neutral_date_score)
        s.matching.min_match_score = _env_int("MATCH_MIN_SCORE", s.matching.min_match_score)
        s.matching.aliases_path = os.environ.get("ENTITY_ALIASES_PATH") or None
        s.scan.batch_size = max(1, _env_int("ARB_BATCH_SIZE", s.scan.batch_size))
        s.scan.page_limit = max(1, _env_int("ARB_PAGE_LIMIT", s.scan.page_limit))
        s.scan.max_markets = max(1, _env_int("ARB_MAX_MARKETS", s.scan.max_markets))
        s.scan.min_spread_percent = _env_float("ARB_MIN_SPREAD", s.scan.min_spread_percent)
        s.scan.persist_top_n = _env_int("ARB_PERSIST_TOP_N", s.scan.persist_top_n)
        s.scan.staleness_seconds = _env_float("ARB_STALENESS_SECONDS", s.scan.staleness_seconds)
        s.scan.lookback_seconds = _env_float("ARB_LOOKBACK_SECONDS", s.scan.lookback_seconds)
        s.scan.pair_timeout = _env_float("ARB_PAIR_TIMEOUT", s.scan.pair_timeout)
        s.scan.store_path = os.environ.get("ARB_STORE_PATH") or None
        s.limits.max_requests = _env_int("DOME_RATE_LIMIT", s.limits.max_requests)
        s.limits.period_seconds = _env_float("DOME_RATE_PERIOD", s.limits.period_seconds)
        return s


settings = Settings.from_env()
