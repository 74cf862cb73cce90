import asyncio

from crossarb.connectors.demo import DemoSource
from crossarb.core.catalog import CatalogFetcher


def _kalshi_records(n):
    return [{"ticker": f"KX-{i}", "title": f"Market number {i}"} for i in range(n)]


def test_paginates_until_short_page():
    source = DemoSource(markets={"kalshi": _kalshi_records(25)})
    fetcher = CatalogFetcher(source, page_limit=10)
    listings = asyncio.run(fetcher.fetch("kalshi", "open", max_items=100))
    assert len(listings) == 25
    assert [offset for _, _, offset in source.page_calls] == [0, 10, 20]


def test_stops_at_max_items():
    source = DemoSource(markets={"kalshi": _kalshi_records(50)})
    fetcher = CatalogFetcher(source, page_limit=10)
    listings = asyncio.run(fetcher.fetch("kalshi", "open", max_items=15))
    assert [l.external_id for l in listings] == [f"KX-{i}" for i in range(15)]
    assert source.page_calls[-1] == ("kalshi", 5, 10)


def test_failed_page_keeps_earlier_pages():
    source = DemoSource(markets={"kalshi": _kalshi_records(50)}, failing_pages={"kalshi": 20})
    fetcher = CatalogFetcher(source, page_limit=10)
    catalog = asyncio.run(fetcher.fetch_catalog("kalshi", "open", max_items=50))
    assert len(catalog.listings) == 20
    assert catalog.pages == 2
    assert "503" in catalog.error


def test_first_page_failure_yields_empty_catalog():
    source = DemoSource(markets={"kalshi": _kalshi_records(5)}, failing_pages={"kalshi": 0})
    listings = asyncio.run(CatalogFetcher(source).fetch("kalshi", "open", max_items=50))
    assert listings == []


def test_malformed_records_counted_not_returned():
    records = _kalshi_records(3) + [{"title": "missing ticker"}]
    source = DemoSource(markets={"kalshi": records})
    catalog = asyncio.run(CatalogFetcher(source, page_limit=10).fetch_catalog("kalshi", "open", max_items=10))
    assert len(catalog.listings) == 3
    assert catalog.malformed == 1
