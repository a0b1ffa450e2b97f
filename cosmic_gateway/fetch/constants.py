"""HTTP constants for the dispatch layer.

Centralizes all HTTP-related constants to avoid duplication across modules.
"""

# HTTP Status Code Ranges
HTTP_STATUS_OK_MIN = 200
HTTP_STATUS_SUCCESS_MAX = 400
HTTP_STATUS_BAD_REQUEST = 400
HTTP_STATUS_UNAUTHORIZED = 401
HTTP_STATUS_FORBIDDEN = 403
HTTP_STATUS_NOT_FOUND = 404
HTTP_STATUS_TOO_MANY_REQUESTS = 429

# Statuses the upstream uses for "temporarily unavailable"
HTTP_STATUS_UPSTREAM_UNAVAILABLE = frozenset({500, 502, 503, 504})

# Upstream defaults
DEFAULT_BASE_URL = "https://api.nasa.gov"
DEFAULT_API_KEY = "DEMO_KEY"
API_KEY_PARAM = "api_key"
DEFAULT_USER_AGENT = "cosmic-gateway/1.0"
DEFAULT_ACCEPT = "application/json, image/jpeg, image/png, */*"

# Hosts that reject requests carrying an extraneous api_key parameter
DEFAULT_KEY_REJECTING_HOSTS = frozenset({"eonet.gsfc.nasa.gov"})

# Timeouts (seconds)
DEFAULT_TIMEOUT_SECONDS = 30.0
DEFAULT_PROBE_TIMEOUT_SECONDS = 5.0

# Maximum retry delay cap for rate limiting (seconds)
MAX_RETRY_AFTER_SECONDS = 60

# Upstream error bodies are truncated to this many characters
MAX_ERROR_BODY_CHARS = 200

# Shown in descriptors when the caller did not pin a date
LATEST_AVAILABLE = "Latest available"
