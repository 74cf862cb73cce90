"""Explicit parsing of upstream JSON into models.

Listing fields differ by venue and by endpoint version, so every record goes
through ``parse_listing`` which returns either ``Parsed`` or ``ParseFailure``.
Callers skip and count failures; nothing is coerced silently.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple, Union

from crossarb.config import constants
from crossarb.core.errors import MalformedResponse, ParseError
from crossarb.core.models import MarketListing, OrderbookSnapshot, OrderLevel, OutcomeTokens
from crossarb.utils.dates import parse_dt
from crossarb.utils.validation import (
    ValidationError,
    optional_float,
    to_number,
    validate_event_name,
    validate_market_id,
    validate_price,
    validate_size,
)


@dataclass(frozen=True)
class Parsed:
    listing: MarketListing
    ok: bool = True


@dataclass(frozen=True)
class ParseFailure:
    error: ParseError
    ok: bool = False


ListingResult = Union[Parsed, ParseFailure]


def _first(raw: Mapping[str, Any], *keys: str) -> Any:
    for key in keys:
        val = raw.get(key)
        if val not in (None, ""):
            return val
    return None


def _first_dt(raw: Mapping[str, Any], *keys: str) -> Optional[datetime]:
    for key in keys:
        dt = parse_dt(raw.get(key))
        if dt is not None:
            return dt
    return None


def _token_list(value: Any) -> List[str]:
    """clobTokenIds arrives as a list or as a JSON-encoded string."""
    if isinstance(value, list):
        return [str(t) for t in value if t not in (None, "")]
    if isinstance(value, str):
        try:
            decoded = json.loads(value)
        except ValueError:
            decoded = [s.strip() for s in value.strip("[]").split(",")]
        if isinstance(decoded, list):
            return [str(t).strip().strip('"') for t in decoded if str(t).strip()]
    return []


def _polymarket_tokens(raw: Mapping[str, Any]) -> OutcomeTokens:
    tokens = raw.get("tokens")
    if isinstance(tokens, list) and tokens:
        yes = no = None
        positional: List[str] = []
        for tok in tokens:
            if not isinstance(tok, Mapping):
                continue
            token_id = tok.get("token_id") or tok.get("tokenId") or tok.get("id")
            if not token_id:
                continue
            positional.append(str(token_id))
            outcome = str(tok.get("outcome") or "").strip().lower()
            if outcome == "yes" and yes is None:
                yes = str(token_id)
            elif outcome == "no" and no is None:
                no = str(token_id)
        if yes is None and positional:
            yes = positional[0]
        if no is None and len(positional) > 1:
            no = next((t for t in positional if t != yes), None)
        return OutcomeTokens(yes=yes, no=no)

    ids = _token_list(raw.get("clobTokenIds") or raw.get("clob_token_ids"))
    if ids:
        return OutcomeTokens(yes=ids[0], no=ids[1] if len(ids) > 1 else None)
    # Last resort: the condition id doubles as a book key on some endpoints
    condition_id = raw.get("condition_id")
    return OutcomeTokens(yes=str(condition_id) if condition_id else None)


def parse_polymarket_listing(raw: Mapping[str, Any]) -> MarketListing:
    external_id = validate_market_id(_first(raw, "market_slug", "slug", "condition_id", "id"), "market_slug")
    title = validate_event_name(_first(raw, "question", "title"), "question")
    tokens = _polymarket_tokens(raw)
    if tokens.yes is None and tokens.no is None:
        raise ValidationError("listing has no outcome tokens")
    tags = raw.get("tags")
    category = _first(raw, "category")
    if category is None and isinstance(tags, list) and tags:
        category = tags[0]
    return MarketListing(
        platform=constants.PLATFORM_A,
        external_id=external_id,
        title=title,
        tokens=tokens,
        expiry=_first_dt(raw, "end_date_iso", "endDate", "end_time", "endDateIso"),
        category=str(category).lower() if category else None,
        volume=optional_float(_first(raw, "volume", "volume_total", "volumeNum")),
    )


def parse_kalshi_listing(raw: Mapping[str, Any]) -> MarketListing:
    ticker = validate_market_id(_first(raw, "ticker", "market_ticker"), "ticker")
    title = validate_event_name(_first(raw, "title", "subtitle"), "title")
    category = _first(raw, "category")
    return MarketListing(
        platform=constants.PLATFORM_B,
        external_id=ticker,
        title=title,
        # Kalshi books are keyed by ticker and quoted on the YES side
        tokens=OutcomeTokens(yes=ticker, no=None),
        expiry=_first_dt(raw, "expiration_time", "close_time", "end_time", "expected_expiration_time"),
        category=str(category).lower() if category else None,
        volume=optional_float(_first(raw, "volume", "volume_24h", "open_interest")),
    )


LISTING_PARSERS: Dict[str, Callable[[Mapping[str, Any]], MarketListing]] = {
    constants.PLATFORM_A: parse_polymarket_listing,
    constants.PLATFORM_B: parse_kalshi_listing,
}


def parse_listing(platform: str, raw: Any) -> ListingResult:
    """Parse one upstream record for ``platform`` into a tagged result."""
    parser = LISTING_PARSERS.get(platform)
    if parser is None:
        return ParseFailure(ParseError(f"no listing parser for platform {platform!r}"))
    if not isinstance(raw, Mapping):
        return ParseFailure(ParseError(f"expected an object, got {type(raw).__name__}"))
    try:
        return Parsed(parser(raw))
    except ValidationError as exc:
        record_id = raw.get("ticker") or raw.get("market_slug") or raw.get("condition_id")
        return ParseFailure(ParseError(str(exc), record_id=str(record_id) if record_id else None))


def parse_listings(platform: str, records: Iterable[Any]) -> Tuple[List[MarketListing], List[ParseError]]:
    listings: List[MarketListing] = []
    errors: List[ParseError] = []
    for raw in records:
        result = parse_listing(platform, raw)
        if isinstance(result, Parsed):
            listings.append(result.listing)
        else:
            errors.append(result.error)
    return listings, errors


def extract_records(data: Any) -> List[Any]:
    """Pull the record array out of a listings response.

    Raises:
        MalformedResponse: If neither a list nor an object with a list is found
    """
    if isinstance(data, list):
        return data
    if isinstance(data, Mapping):
        for key in ("markets", "data", "results"):
            val = data.get(key)
            if isinstance(val, list):
                return val
    raise MalformedResponse(f"unexpected listings payload of type {type(data).__name__}")


def _split_level(raw: Any) -> Tuple[Any, Any]:
    if isinstance(raw, Mapping):
        return raw.get("price"), _first(raw, "size", "quantity", "shares")
    if isinstance(raw, Sequence) and not isinstance(raw, (str, bytes)) and len(raw) >= 2:
        return raw[0], raw[1]
    raise ValidationError(f"unrecognised order level {raw!r}")


def _level(raw: Any, cents: bool) -> OrderLevel:
    price, size = _split_level(raw)
    return OrderLevel(
        price=validate_price(price, cents=cents),
        size=validate_size(size if size is not None else 0),
    )


def _levels(raw: Any, cents: bool) -> List[OrderLevel]:
    if not isinstance(raw, list):
        return []
    out: List[OrderLevel] = []
    for item in raw:
        try:
            out.append(_level(item, cents))
        except ValidationError:
            continue
    return out


def quoted_in_cents(book: Mapping[str, Any], platform: Optional[str] = None) -> bool:
    """Decide the price unit for a whole book.

    Any price above 1 means cents. On a cent-quoted venue a price of exactly
    1 is read as 1 cent as well.
    """
    prices: List[float] = []
    for side in ("bids", "asks"):
        levels = book.get(side)
        if not isinstance(levels, list):
            continue
        for item in levels:
            try:
                prices.append(to_number(_split_level(item)[0], "price"))
            except ValidationError:
                continue
    if any(p > 1.0 for p in prices):
        return True
    return platform in constants.CENT_QUOTED_PLATFORMS and any(p == 1.0 for p in prices)


def _snapshot_ts(raw: Mapping[str, Any]) -> Optional[datetime]:
    return _first_dt(raw, "timestamp", "ts", "indexedAt", "updated_at")


def parse_orderbook(data: Any, now: datetime, platform: Optional[str] = None) -> Optional[OrderbookSnapshot]:
    """Parse an orderbook response into a snapshot, newest snapshot first.

    Prices are read in one unit per book, see ``quoted_in_cents``. Returns
    None when the response holds no price levels at all.

    Raises:
        MalformedResponse: If the payload is not an object
    """
    if not isinstance(data, Mapping):
        raise MalformedResponse(f"unexpected orderbook payload of type {type(data).__name__}")

    book: Mapping[str, Any] = data
    snapshots = data.get("snapshots")
    if isinstance(snapshots, list):
        candidates = [s for s in snapshots if isinstance(s, Mapping)]
        if not candidates:
            return None
        epoch = datetime.fromtimestamp(0, tz=now.tzinfo)
        book = max(candidates, key=lambda s: _snapshot_ts(s) or epoch)

    cents = quoted_in_cents(book, platform)
    bids = sorted(_levels(book.get("bids"), cents), key=lambda lvl: lvl.price, reverse=True)
    asks = sorted(_levels(book.get("asks"), cents), key=lambda lvl: lvl.price)
    if not bids and not asks:
        return None

    ts = _snapshot_ts(book)
    age = max(0.0, (now - ts).total_seconds()) if ts is not None else 0.0
    return OrderbookSnapshot(bids=tuple(bids), asks=tuple(asks), age_seconds=age)
