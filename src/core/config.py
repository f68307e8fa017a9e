"""
Configuration constants and environment setup.
"""

import logging
import os
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()

# =============================================================================
# PATHS
# =============================================================================

PROJECT_ROOT = Path(__file__).parent.parent.parent
DB_PATH = Path(
    os.environ.get("ZONE_PLANNER_DB_PATH", PROJECT_ROOT / "data" / "db" / "zone-planner.db")
)

# =============================================================================
# EXPORT FORMAT
# =============================================================================

EXPORT_FORMAT_VERSION = "1.0"  # No migration: any other version is rejected
APP_VERSION = os.environ.get("APP_VERSION", "1.6.1")

# =============================================================================
# REMINDERS
# =============================================================================

RECONCILE_THROTTLE_SECONDS = 60
DEFAULT_REMINDER_OFFSET = "thirtyMinutes"

NOTIFICATION_ID_PREFIX = "event"
NOTIFICATION_ID_DELIMITER = "::"
NOTIFICATION_CATEGORY = "EVENT_REMINDER"

# Event type -> notification title
REMINDER_TITLES = {
    "community-day": "Community Day Starting Soon!",
    "raid-hour": "Raid Hour Starting Soon!",
    "raid-day": "Raid Day Starting Soon!",
    "pokemon-spotlight-hour": "Spotlight Hour Starting Soon!",
    "go-battle-league": "GO Battle League Starting Soon!",
}

# =============================================================================
# TIMELINE LAYOUT
# =============================================================================

TIMELINE_PADDING_RATIO = 0.1
TIMELINE_MIN_PADDING_SECONDS = 900
TIMELINE_MAX_PADDING_SECONDS = 10_800
TIMELINE_MAX_TICKS = 80

VIEWER_TIMEZONE = os.environ.get("VIEWER_TIMEZONE", "local")

# =============================================================================
# LOGGING
# =============================================================================

LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO").upper()
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def configure_logging(level: str | None = None) -> None:
    """Configure root logging once for scripts and the API."""
    logging.basicConfig(level=level or LOG_LEVEL, format=LOG_FORMAT)

    # Reduce verbosity of third-party libraries
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("azure").setLevel(logging.WARNING)


# =============================================================================
# MS GRAPH CREDENTIALS (from environment)
# =============================================================================

GRAPH_TENANT_ID = os.environ.get("MICROSOFT_GRAPH_TENANT_ID", "")
GRAPH_APP_ID = os.environ.get("MICROSOFT_GRAPH_APP_ID", "")
GRAPH_CLIENT_SECRET = os.environ.get("MICROSOFT_GRAPH_CLIENT_SECRET", "")

CALENDAR_EXPORT_USER = os.environ.get("CALENDAR_EXPORT_USER", "")
CALENDAR_EXPORT_CALENDAR = os.environ.get("CALENDAR_EXPORT_CALENDAR", "Event Plans")

# =============================================================================
# API CONFIGURATION
# =============================================================================

ZONE_PLANNER_API_KEY = os.environ.get("ZONE_PLANNER_API_KEY", "")
API_HOST = os.environ.get("API_HOST", "0.0.0.0")
API_PORT = int(os.environ.get("API_PORT", "8000"))
API_DEBUG = os.environ.get("API_DEBUG", "false").lower() == "true"
MAX_IMPORT_SIZE_KB = int(os.environ.get("MAX_IMPORT_SIZE_KB", "256"))
MAX_IMPORT_SIZE_BYTES = MAX_IMPORT_SIZE_KB * 1024
API_VERSION = "1.0.0"
