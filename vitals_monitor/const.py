"""
Application constants and metadata.
"""

# Application info
APP_NAME = "Vitals Monitor"
APP_VERSION = "0.1.0"
APP_URL = "https://github.com/vitals-monitor/vitals-monitor"

# Update intervals (milliseconds)
MIN_UPDATE_INTERVAL = 500
MAX_UPDATE_INTERVAL = 300_000
DEFAULT_UPDATE_INTERVAL = 2000
DEFAULT_STORAGE_UPDATE_INTERVAL = 5000

# Temperature mapping (Celsius)
TEMP_RANGE_MIN = 30.0  # maps to 0%
TEMP_RANGE_MAX = 90.0  # maps to 100%
TEMP_PLAUSIBLE_MIN = 5.0  # exclusive
TEMP_PLAUSIBLE_MAX = 150.0  # exclusive

# GPU backoff
GPU_FAILURE_THRESHOLD = 5
GPU_SYSFS_MAX_CARDS = 8

# External commands
DEFAULT_COMMAND_TIMEOUT = 5.0

# MQTT
DEFAULT_MQTT_PORT = 1883
DEFAULT_MQTT_KEEPALIVE = 60
DEFAULT_TOPIC_PREFIX = "vitals"
