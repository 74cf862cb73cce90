"""Constants used throughout the scanner.

Defaults for the settings dataclasses and the fixed tables of the matching
heuristics live here so they can be tuned in one place.
"""

# Upstream API
DOME_API_URL = "https://api.domeapi.io/v1"
API_TIMEOUT_SECONDS = 15.0
PLATFORM_A = "polymarket"
PLATFORM_B = "kalshi"
LISTING_STATUS_OPEN = "open"
# venues whose books may quote whole cents; a bare 1 there means 1 cent
CENT_QUOTED_PLATFORMS = (PLATFORM_B,)

# Pagination
DEFAULT_PAGE_LIMIT = 100
DEFAULT_MAX_MARKETS = 200
MAX_MARKETS_CEILING = 500

# Orderbooks
ORDERBOOK_BATCH_SIZE = 5
STALENESS_SECONDS = 2 * 60 * 60
ORDERBOOK_LOOKBACK_SECONDS = 24 * 60 * 60
PAIR_TIMEOUT_SECONDS = 20.0

# Rate limiting (requests per window)
RATE_LIMIT_REQUESTS = 50
RATE_LIMIT_PERIOD_SECONDS = 1.0

# Retry
CONNECT_RETRIES = 2
RETRY_INITIAL_DELAY = 0.25

# Persistence
PERSIST_TOP_N = 50
OPPORTUNITY_TABLE = "arb_opportunities"

# Matching
MIN_TOKEN_LENGTH = 2
MAX_REASON_ENTITIES = 3
TITLE_SIMILARITY_REASON_THRESHOLD = 50.0
DATE_PROXIMITY_REASON_THRESHOLD = 70.0

# (max days apart, score), checked in order
DATE_PROXIMITY_BANDS = (
    (1, 100.0),
    (7, 80.0),
    (30, 50.0),
    (90, 20.0),
)

# Diagnostics
DIAGNOSTIC_SAMPLE_SIZE = 5
