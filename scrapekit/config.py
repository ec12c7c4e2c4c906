"""Configuration constants for the scrapekit HTTP client"""

from pathlib import Path

# Request defaults
DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/124.0.0.0 Safari/537.36"
)
DEFAULT_ACCEPT = "*/*"
DEFAULT_ACCEPT_LANGUAGE = "en-US,en;q=0.9,ru;q=0.8,uk;q=0.7"
DEFAULT_CACHE_CONTROL = "max-age=0"

# Browser fingerprint used by curl_cffi
DEFAULT_IMPERSONATE = "chrome124"

# Timeouts
DEFAULT_REQUEST_TIMEOUT = 60.0  # Seconds, whole exchange

# Retry configuration
DEFAULT_MAX_ATTEMPTS = 10
BACKOFF_STEP = 1.0  # Delay before attempt n+1 is BACKOFF_STEP * n
HANDLER_WAIT_POLL = 1.0  # Seconds between checks of a busy error handler

# Diagnostics
DEFAULT_DUMP_DIR = Path("./dumps")
EMPTY_BODY_MARKER = "EMPTY BODY"
DUMP_SEPARATOR = "---"

# External address probe
EXT_IP_URL = "https://ifconfig.io/ip"
EXT_COUNTRY_URL = "https://ifconfig.io/country_code"
