"""Internal constants shared across the library."""

DEFAULT_HUB_HOST = "escapehub.local"
DEFAULT_MQTT_PORT = 1883
DEFAULT_PUZZLE_NAME = "Puzzle"
DEFAULT_DEVICE_ID = "puzzle-1"
DEFAULT_HEARTBEAT_INTERVAL_MS = 2000
DEFAULT_MEDIA_LOCAL_DIR = "MediaStorage"
DEFAULT_MEDIA_TIMEOUT = 60.0
DEFAULT_HTTP_PORT = 5001
DEFAULT_RESTART_COMMAND_KEY = "SystemCommand"
DEFAULT_RESTART_COMMAND_VALUE = "restart"
CONFIG_FILE_NAME = "puzzle.config.json"

# ------------------------------------------------------------------
# Hub media service endpoints
# ------------------------------------------------------------------

MEDIA_RESOLVE_PATH = "/api/media/resolve"
MEDIA_UPLOAD_PATH = "/api/media/upload"
MEDIA_DOWNLOAD_PREFIX = "/media/"
DOWNLOAD_SUFFIX = ".download"
DOWNLOAD_CHUNK_SIZE = 64 * 1024

# ------------------------------------------------------------------
# MQTT topics: puzzle/<device_id>/<suffix>
# ------------------------------------------------------------------

TOPIC_PREFIX = "puzzle"
TOPIC_HEARTBEAT = "heartbeat"
TOPIC_COMMAND = "command"
TOPIC_DATA = "data"
TOPIC_EXTERNAL_CHECK = "external-check"

# Address ranges skipped when auto-detecting the node address
# (link-local, loopback, VirtualBox host-only).
SKIPPED_ADDRESS_PREFIXES: tuple[str, ...] = ("169.254.", "127.", "192.168.56.")
PREFERRED_ADDRESS_PREFIXES: tuple[str, ...] = ("192.168.", "10.", "172.")
