"""Constants for pypowershades library."""

from __future__ import annotations


# API Configuration
DEFAULT_BASE_URL = "https://api.powershades.com"
API_PATH_SUFFIX = "/api"
DEFAULT_TIMEOUT = 30  # seconds

# Connection pool (keep-alive)
CONNECTION_LIMIT = 10
KEEPALIVE_TIMEOUT = 30  # seconds

# Endpoints
LOGIN_PATH = "/auth/jwt/"
REFRESH_PATH = "/auth/jwt/refresh/"
SHADES_PATH = "/shades/"
SHADE_ATTRIBUTES_PATH = "/shadeattributes/"
SHADE_MOVE_PATH = "/shades/move/"
GROUPS_PATH = "/groups/"
GROUP_MOVE_PATH = "/groups/{group_id}/move/"
SCENES_PATH = "/scenes/"
SCHEDULES_PATH = "/schedules/"

# Position Validation
POSITION_MIN = 0
POSITION_MAX = 100
POSITION_FIELDS = ("current_position", "percentage", "position", "shade_position")
POSITION_STATE_STOPPED = "stopped"

# Polling Configuration (seconds)
DEFAULT_POLL_INTERVAL = 10
MIN_POLL_INTERVAL = 2
DEFAULT_FAST_POLL_INTERVAL = 1
MIN_FAST_POLL_INTERVAL = 1
DEFAULT_FAST_POLL_DURATION = 30
MIN_FAST_POLL_DURATION = 5
DEFAULT_SHADE_LIST_CACHE_TTL = 300

# Auth Backoff Configuration
DEFAULT_MAX_AUTH_FAILURES = 3
DEFAULT_AUTH_FAILURE_BACKOFF_MS = 60_000  # 1 minute
DEFAULT_MAX_BACKOFF_MS = 3_600_000  # 1 hour

# Accessory identity
SHADE_KEY_PREFIX = "powershades-shade-"
GROUP_KEY_PREFIX = "powershades-group-"
