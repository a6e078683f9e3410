"""Constants for the composition proxy."""

# Header whose presence switches on two-phase layout composition
LAYOUT_HEADER = "cx-layout"

# Content type of pre-composed content posted to the proxy
EXTENSION_CONTENT_TYPE = "text/cx-fragment"

# Template variable holding the slot mapping during layout rendering
SLOTS_TEMPLATE_KEY = "slots"

# Template variable resolved upstream with the device type
DEVICE_TYPE_TEMPLATE_KEY = "device:type"

# Defaults applied when a backend leaves them unset
DEFAULT_TIMEOUT_MS = 5000
DEFAULT_TTL = "30s"
DEFAULT_ACCEPT = "text/html"

# Layout fetches share one cache entry per rendered layout URL
LAYOUT_CACHE_KEY_PREFIX = "layout: "
LAYOUT_CACHE_TTL_MS = 5 * 60 * 1000

# Fallbacks for missing inbound values
NO_TRACER = "no-tracer"
NO_FORWARDED_HOST = "no-forwarded-host"
UNKNOWN_USER_AGENT = "unknown"
DIRECT_REFERER = "direct"

HTTP_STATUS_NOT_FOUND = 404
HTTP_STATUS_INTERNAL_SERVER_ERROR = 500
HTTP_STATUS_FOUND = 302

# Never copied from a backend response, even when whitelisted
HOP_BY_HOP_HEADERS = frozenset(
    {
        "connection",
        "keep-alive",
        "proxy-authenticate",
        "proxy-authorization",
        "te",
        "trailer",
        "transfer-encoding",
        "upgrade",
        "content-length",
    }
)
