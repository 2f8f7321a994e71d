"""Internal constants shared across the library."""

BASE_URL = "http://localhost:5001/api/v1"
WS_URL = "http://localhost:5001"
USER_AGENT = "pyiiot/0.1"

#: Capacity of the newest-first telemetry buffer.
TELEMETRY_CAPACITY = 50

# ------------------------------------------------------------------
# Durable session keys
# ------------------------------------------------------------------

ACCESS_TOKEN_KEY = "iiot_token"
REFRESH_TOKEN_KEY = "iiot_refresh_token"
USER_KEY = "iiot_user"
SESSION_KEYS: tuple[str, ...] = (ACCESS_TOKEN_KEY, REFRESH_TOKEN_KEY, USER_KEY)

# ------------------------------------------------------------------
# REST endpoints (relative to the API base URL)
# ------------------------------------------------------------------

SYSTEM_METRICS_PATH = "/system/metrics"
RECENT_SENSORS_PATH = "/sensors/recent"
DEVICE_STATUS_PATH = "/devices/status"
LOGIN_PATH = "/auth/login"
REGISTER_PATH = "/auth/register"
REFRESH_PATH = "/auth/refresh"
LOGOUT_PATH = "/auth/logout"
CURRENT_USER_PATH = "/auth/me"

LOAD_FAILURE_BANNER = "Failed to load dashboard data. Please check if the backend is running."

# ------------------------------------------------------------------
# MQTT topics relayed by the backend
# ------------------------------------------------------------------

MQTT_TOPICS: tuple[str, ...] = ("iiot/+/data", "iiot/+/status", "iiot/system/+")
