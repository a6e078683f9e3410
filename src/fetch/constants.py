"""HTTP constants for the fetch layer."""

# HTTP Status Code Ranges
HTTP_STATUS_OK_MIN = 200
HTTP_STATUS_OK_MAX = 300
HTTP_STATUS_BAD_REQUEST = 400
HTTP_STATUS_TOO_MANY_REQUESTS = 429
HTTP_STATUS_SERVER_ERROR_MIN = 500
HTTP_STATUS_SERVER_ERROR_MAX = 600

# Fetch option types
FETCH_TYPE_BACKEND = "backend"
FETCH_TYPE_LAYOUT = "layout"

# Bounded size of the in-memory content cache
DEFAULT_MAX_CACHE_ENTRIES = 1000

# Maximum retry delay cap for rate limiting (seconds)
MAX_RETRY_AFTER_SECONDS = 10
