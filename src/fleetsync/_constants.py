"""Internal constants shared across the library."""

BASE_URL = "https://api.evzip.example/api"
USER_AGENT = "fleetsync/1"
IDEMPOTENCY_HEADER = "Idempotency-Key"

EARTH_RADIUS_KM = 6371.0

MIN_CANCELLATION_REASON_LENGTH = 10

TRANSIENT_STATUS_CODES: frozenset[int] = frozenset({408, 425, 429, 500, 502, 503, 504})
"""HTTP statuses treated like a network failure (queued and retried)."""

BOOKING_ID_PREFIX = "SB"
DEPLOYMENT_ID_PREFIX = "DEP"

DEFAULT_MIN_BATTERY = 30.0
DEFAULT_MAX_DISTANCE_KM = 50.0
