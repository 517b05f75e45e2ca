import os

from dotenv import load_dotenv

load_dotenv()


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


DATABASE_PATH = os.getenv("DATABASE_PATH", "../data/airsense.db")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
LOG_DIR = os.getenv("LOG_DIR", "")

# Seconds a writer waits on a locked SQLite database before failing
SQLITE_BUSY_TIMEOUT = float(os.getenv("SQLITE_BUSY_TIMEOUT", "5"))

# --- MQTT ---

MQTT_ENABLED = _env_bool("MQTT_ENABLED", True)
MQTT_BROKER_HOST = os.getenv("MQTT_BROKER_HOST", "localhost")
MQTT_BROKER_PORT = int(os.getenv("MQTT_BROKER_PORT", "1883"))
MQTT_USERNAME = os.getenv("MQTT_USERNAME", "")
MQTT_PASSWORD = os.getenv("MQTT_PASSWORD", "")
MQTT_CLIENT_ID = os.getenv("MQTT_CLIENT_ID", "airsense-backend")
MQTT_USE_TLS = _env_bool("MQTT_USE_TLS", False)

MQTT_TOPIC_NAMESPACE = os.getenv("MQTT_TOPIC_NAMESPACE", "air-quality")

# Inbound
TOPIC_DATA = os.getenv("TOPIC_DATA", f"{MQTT_TOPIC_NAMESPACE}/data")
TOPIC_ALERT = os.getenv("TOPIC_ALERT", f"{MQTT_TOPIC_NAMESPACE}/notification")
TOPIC_STATUS = os.getenv("TOPIC_STATUS", f"{MQTT_TOPIC_NAMESPACE}/status")
# Outbound
TOPIC_GET_DATA = os.getenv("TOPIC_GET_DATA", f"{MQTT_TOPIC_NAMESPACE}/getData")
TOPIC_CHANGE_THRESHOLD = os.getenv(
    "TOPIC_CHANGE_THRESHOLD", f"{MQTT_TOPIC_NAMESPACE}/changeThreshold"
)
TOPIC_ALARM_OFF = os.getenv("TOPIC_ALARM_OFF", f"{MQTT_TOPIC_NAMESPACE}/alarmOff")
TOPIC_CHANGE_RATE = os.getenv("TOPIC_CHANGE_RATE", f"{MQTT_TOPIC_NAMESPACE}/changeRate")
TOPIC_COMMAND = os.getenv("TOPIC_COMMAND", f"{MQTT_TOPIC_NAMESPACE}/command")
TOPIC_SUBSCRIBE = os.getenv("MQTT_TOPIC", f"{MQTT_TOPIC_NAMESPACE}/#")

DEFAULT_DEVICE_ID = os.getenv("DEFAULT_DEVICE_ID", "esp32")

# Allowed device publish interval, seconds
PUBLISH_INTERVAL_MIN_SECONDS = int(os.getenv("PUBLISH_INTERVAL_MIN_SECONDS", "2"))
PUBLISH_INTERVAL_MAX_SECONDS = int(os.getenv("PUBLISH_INTERVAL_MAX_SECONDS", "600"))

# --- Alerting ---

DEFAULT_MAX_NOTIFICATIONS_PER_HOUR = int(os.getenv("DEFAULT_MAX_NOTIFICATIONS_PER_HOUR", "10"))
RATE_WINDOW_MINUTES = 60

# Fixed particulate scale (µg/m³), used regardless of the device's own thresholds
PM25_ALERT_LEVEL = float(os.getenv("PM25_ALERT_LEVEL", "100"))
PM25_DANGER_LEVEL = float(os.getenv("PM25_DANGER_LEVEL", "200"))

QUIET_HOURS_TIMEZONE = os.getenv("QUIET_HOURS_TIMEZONE", "UTC")

# Threshold suggestion heuristic
SUGGESTION_MIN_SAMPLES = 10
SUGGESTION_STDDEV_FACTOR = 1.5
