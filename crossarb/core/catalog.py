from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional

from crossarb.config import constants
from crossarb.connectors.base import MarketDataSource
from crossarb.core.errors import ArbScanError
from crossarb.core.models import MarketListing
from crossarb.core.parsing import parse_listings
from crossarb.utils.logging import get_logger


logger = get_logger("catalog")


@dataclass
class Catalog:
    platform: str
    listings: List[MarketListing] = field(default_factory=list)
    pages: int = 0
    malformed: int = 0
    error: Optional[str] = None  # why pagination stopped early, if it did


class CatalogFetcher:
    """Offset/limit pagination over a platform's listings endpoint.

    Pagination stops at ``max_items``, at a short page (end of data) or at the
    first failed page; whatever was gathered before a failure is kept.
    """

    def __init__(self, source: MarketDataSource, page_limit: int = constants.DEFAULT_PAGE_LIMIT):
        self.source = source
        self.page_limit = max(1, page_limit)

    async def fetch(
        self, platform: str, status_filter: str = constants.LISTING_STATUS_OPEN, max_items: int = constants.DEFAULT_MAX_MARKETS
    ) -> List[MarketListing]:
        catalog = await self.fetch_catalog(platform, status_filter, max_items)
        return catalog.listings

    async def fetch_catalog(
        self, platform: str, status_filter: str = constants.LISTING_STATUS_OPEN, max_items: int = constants.DEFAULT_MAX_MARKETS
    ) -> Catalog:
        catalog = Catalog(platform=platform)
        offset = 0
        while offset < max_items:
            limit = min(self.page_limit, max_items - offset)
            try:
                records = await self.source.fetch_listing_page(platform, status_filter, limit, offset)
            except ArbScanError as exc:
                logger.warning("%s markets fetch failed at offset=%d: %s", platform, offset, exc)
                catalog.error = str(exc)
                break
            catalog.pages += 1
            listings, errors = parse_listings(platform, records)
            catalog.listings.extend(listings)
            catalog.malformed += len(errors)
            for err in errors:
                logger.debug("Skipping malformed %s record %s: %s", platform, err.record_id, err)
            if len(records) < limit:
                break
            offset += len(records)

        del catalog.listings[max_items:]
        logger.info(
            "Fetched %d %s markets (%d pages, %d malformed skipped)",
            len(catalog.listings),
            platform,
            catalog.pages,
            catalog.malformed,
        )
        return catalog
