from __future__ import annotations

import time
from typing import Any, Callable, Dict, List, Optional

import httpx

from crossarb.config import constants
from crossarb.connectors.base import MarketDataSource
from crossarb.core.errors import MalformedResponse, UpstreamUnavailable
from crossarb.core.parsing import extract_records
from crossarb.utils.logging import get_logger
from crossarb.utils.ratelimit import RateLimiter
from crossarb.utils.retry import retry_with_backoff


logger = get_logger("dome")

# query parameter that identifies an outcome book on each venue
_BOOK_KEYS = {
    constants.PLATFORM_A: "token_id",
    constants.PLATFORM_B: "ticker",
}


class DomeClient(MarketDataSource):
    """Aggregator API client serving listings and books for both venues."""

    name = "dome"

    def __init__(
        self,
        api_key: str | None = None,
        base_url: str | None = None,
        timeout: float = constants.API_TIMEOUT_SECONDS,
        rate_limiter: RateLimiter | None = None,
        lookback_seconds: float = constants.ORDERBOOK_LOOKBACK_SECONDS,
        clock: Optional[Callable[[], float]] = None,
        client: httpx.AsyncClient | None = None,
    ):
        self.base_url = (base_url or constants.DOME_API_URL).rstrip("/")
        self.api_key = api_key
        self.lookback_seconds = lookback_seconds
        self._limiter = rate_limiter
        self._clock = clock or time.time
        headers = {"Content-Type": "application/json"}
        if api_key:
            headers["Authorization"] = f"Bearer {api_key}"
        self._client = client or httpx.AsyncClient(timeout=timeout, headers=headers)

    async def __aenter__(self) -> "DomeClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    @property
    def rate_limiter(self) -> RateLimiter | None:
        return self._limiter

    async def close(self) -> None:
        await self._client.aclose()

    async def _get(self, path: str, params: Dict[str, Any], *, missing_ok: bool = False) -> Any:
        url = f"{self.base_url}/{path.lstrip('/')}"
        if self._limiter is not None:
            await self._limiter.acquire()
        try:
            resp = await retry_with_backoff(
                self._client.get,
                url,
                params=params,
                max_retries=constants.CONNECT_RETRIES,
                initial_delay=constants.RETRY_INITIAL_DELAY,
                exceptions=(httpx.ConnectError,),
            )
        except httpx.TimeoutException as exc:
            raise UpstreamUnavailable(f"timeout calling {path}: {exc!r}") from exc
        except httpx.HTTPError as exc:
            raise UpstreamUnavailable(f"request to {path} failed: {exc!r}") from exc

        if missing_ok and resp.status_code == 404:
            return None
        if not resp.is_success:
            raise UpstreamUnavailable(f"{path} returned HTTP {resp.status_code}", status_code=resp.status_code)
        try:
            return resp.json()
        except ValueError as exc:
            raise MalformedResponse(f"{path} returned a non-JSON body") from exc

    async def fetch_listing_page(self, platform: str, status: str, limit: int, offset: int) -> List[Any]:
        params = {"status": status, "limit": limit, "offset": offset}
        logger.debug("Fetching %s markets: offset=%d limit=%d", platform, offset, limit)
        data = await self._get(f"{platform}/markets", params)
        return extract_records(data)

    async def fetch_orderbook(self, platform: str, token_id: str) -> Optional[Any]:
        key = _BOOK_KEYS.get(platform)
        if key is None:
            raise ValueError(f"unknown platform {platform!r}")
        now_ms = int(self._clock() * 1000)
        params = {
            key: token_id,
            "start_time": now_ms - int(self.lookback_seconds * 1000),
            "end_time": now_ms,
            "limit": 1,
        }
        return await self._get(f"{platform}/orderbooks", params, missing_ok=True)
