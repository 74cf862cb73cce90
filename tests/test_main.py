import asyncio
import json

import pytest

from crossarb.config.settings import Settings
from crossarb.connectors.base import MarketDataSource
from crossarb.connectors.demo import DemoSource
from crossarb.connectors.dome import DomeClient
from crossarb.core.models import ScanRequest, ScanResult
from crossarb.main import build_source, build_store, cli, get_rate_limiter, handle_scan
from crossarb.store.opportunities import SqliteOpportunityStore


class ExplodingSource(MarketDataSource):
    name = "exploding"

    async def fetch_listing_page(self, platform, status, limit, offset):
        return []

    async def fetch_orderbook(self, platform, token_id):
        return None


def test_handle_scan_returns_payload():
    payload = asyncio.run(handle_scan({"minSpreadPercent": "5", "maxMarketsPerPlatform": 50}, source=DemoSource(), config=Settings()))
    assert payload["count"] == 2
    assert payload["minSpreadPercent"] == 5.0
    assert payload["category"] == "all"
    assert payload["stats"]["matchedPairs"] == 3
    assert payload["opportunities"][0]["buyPlatform"] == "polymarket"
    assert "error" not in payload


def test_handle_scan_never_raises(monkeypatch):
    def boom(*args, **kwargs):
        raise RuntimeError("scanner exploded")

    monkeypatch.setattr("crossarb.main.ScanOrchestrator", boom)
    payload = asyncio.run(
        handle_scan({"category": "crypto", "minSpreadPercent": 4}, source=ExplodingSource(), config=Settings())
    )
    assert payload["opportunities"] == []
    assert payload["count"] == 0
    assert payload["error"] == "scanner exploded"
    assert payload["category"] == "crypto"
    assert payload["minSpreadPercent"] == 4.0
    assert payload["stats"] == {
        "platformACount": 0,
        "platformBCount": 0,
        "matchedPairs": 0,
        "opportunitiesFound": 0,
        "elapsedMs": 0,
    }
    assert payload["timestamp"] > 0


def test_handle_scan_survives_failing_close(monkeypatch):
    class UnclosableSource(DemoSource):
        async def close(self):
            raise RuntimeError("already closed")

    class UnclosableStore(SqliteOpportunityStore):
        def close(self):
            raise RuntimeError("locked")

    monkeypatch.setattr("crossarb.main.build_source", lambda config: UnclosableSource())
    monkeypatch.setattr("crossarb.main.build_store", lambda config: UnclosableStore())
    payload = asyncio.run(handle_scan({}, config=Settings()))
    assert payload["count"] == 2
    assert "error" not in payload


class RecordingOrchestrator:
    limiters = []

    def __init__(self, source, config=None, store=None):
        self.limiters.append(source.rate_limiter)

    async def run_scan(self, request):
        return ScanResult(request=request)


def test_scans_share_one_rate_limiter(monkeypatch):
    monkeypatch.setenv("DEMO", "0")
    monkeypatch.setattr("crossarb.main._rate_limiter", None)
    monkeypatch.setattr(RecordingOrchestrator, "limiters", [])
    monkeypatch.setattr("crossarb.main.ScanOrchestrator", RecordingOrchestrator)
    asyncio.run(handle_scan({}, config=Settings()))
    asyncio.run(handle_scan({}, config=Settings()))
    first, second = RecordingOrchestrator.limiters
    assert first is not None
    assert first is second
    assert get_rate_limiter() is first


def test_build_source_respects_demo_flag(monkeypatch):
    monkeypatch.setenv("DEMO", "1")
    assert isinstance(build_source(Settings()), DemoSource)
    monkeypatch.setenv("DEMO", "0")
    source = build_source(Settings())
    assert isinstance(source, DomeClient)
    asyncio.run(source.close())


def test_build_store_only_when_configured(tmp_path):
    cfg = Settings()
    assert build_store(cfg) is None
    cfg.scan.store_path = str(tmp_path / "arbs.db")
    store = build_store(cfg)
    assert store is not None
    store.close()


def test_cli_demo_prints_json(capsys):
    assert cli(["--demo", "--category", "crypto"]) == 0
    payload = json.loads(capsys.readouterr().out)
    assert payload["category"] == "crypto"
    assert payload["count"] == 1


def test_scan_request_from_params():
    req = ScanRequest.from_params(
        {"category": "Crypto", "minSpread": "2.5", "maxMarkets": 9999, "minMatchScore": 150, "debug": "true"}
    )
    assert req.category == "crypto"
    assert req.min_spread_percent == 2.5
    assert req.max_markets == 500
    assert req.min_match_score == 100
    assert req.debug is True


def test_scan_request_defaults_on_garbage():
    req = ScanRequest.from_params({"minSpreadPercent": "abc", "maxMarketsPerPlatform": None})
    assert req == ScanRequest()


def test_settings_from_env(monkeypatch):
    monkeypatch.setenv("DOME_API_KEY", "secret")
    monkeypatch.setenv("ARB_FEE_PCT", "3.5")
    monkeypatch.setenv("ARB_BATCH_SIZE", "0")
    monkeypatch.setenv("MATCH_TOKEN_WEIGHT", "not-a-number")
    s = Settings.from_env()
    assert s.dome.api_key == "secret"
    assert s.fees.fee_assumption_pct == pytest.approx(3.5)
    assert s.scan.batch_size == 1
    assert s.matching.token_weight == pytest.approx(0.5)
