"""
Configuration constants and environment setup.
"""

import os
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()

# =============================================================================
# PATHS
# =============================================================================

PROJECT_ROOT = Path(__file__).parent.parent.parent
DB_PATH = Path(os.environ.get("DB_PATH", PROJECT_ROOT / "data" / "db" / "bookings.db"))

# =============================================================================
# TIME CONFIGURATION
# =============================================================================

# Zone used for calendar-day comparisons and month bucket assignment
DISPLAY_TIMEZONE = os.environ.get("DISPLAY_TIMEZONE", "Europe/Bucharest")

# =============================================================================
# SYNC CONFIGURATION
# =============================================================================

SYNC_MONTHS_BEHIND = 6
SYNC_MONTHS_AHEAD = 12

# Maximum bucket age (hours) before a refetch
MAX_AGE_CURRENT_MONTH_HOURS = 1
MAX_AGE_FUTURE_MONTH_HOURS = 6
MAX_AGE_PAST_MONTH_HOURS = 24

SYNC_INTERVAL_SECONDS = int(os.environ.get("SYNC_INTERVAL_SECONDS", "300"))
SYNC_WARMUP_SECONDS = int(os.environ.get("SYNC_WARMUP_SECONDS", "10"))
SYNC_ON_STARTUP = os.environ.get("SYNC_ON_STARTUP", "true").lower() == "true"

# Restrict sync to a single booking business (all businesses when empty)
BOOKING_BUSINESS_ID = os.environ.get("BOOKING_BUSINESS_ID", "")

# =============================================================================
# MATCHING CONFIGURATION
# =============================================================================

MATCH_TOLERANCE_MINUTES = 30
MIN_LOCATION_WORD_LENGTH = 3

# =============================================================================
# ROOMS
# =============================================================================

COLOR_PALETTE = [
    "#3B82F6",  # blue
    "#10B981",  # emerald
    "#F59E0B",  # amber
    "#8B5CF6",  # violet
    "#EF4444",  # red
    "#EC4899",  # pink
    "#06B6D4",  # cyan
    "#84CC16",  # lime
]

# Fallback directory when the places API is unavailable
ROOMS_CONFIG = [
    {
        "id": "sala.mare@rotineret.ro",
        "name": "Sala Mare",
        "email": "sala.mare@rotineret.ro",
        "capacity": 50,
        "color": "#3B82F6",
        "floor": "Parter",
        "amenities": ["proiector", "flipchart", "AC"],
    },
    {
        "id": "sala.mica@rotineret.ro",
        "name": "Sala Mică",
        "email": "sala.mica@rotineret.ro",
        "capacity": 15,
        "color": "#10B981",
        "floor": "Parter",
        "amenities": ["TV", "whiteboard"],
    },
    {
        "id": "sala.training@rotineret.ro",
        "name": "Sala Training",
        "email": "sala.training@rotineret.ro",
        "capacity": 30,
        "color": "#F59E0B",
        "floor": "Etaj 1",
        "amenities": ["proiector", "flipchart", "AC", "sistem audio"],
    },
    {
        "id": "coworking@rotineret.ro",
        "name": "Spațiu Coworking",
        "email": "coworking@rotineret.ro",
        "capacity": 20,
        "color": "#8B5CF6",
        "floor": "Etaj 1",
        "amenities": ["prize multiple", "WiFi dedicat"],
    },
    {
        "id": "sala.board@rotineret.ro",
        "name": "Sala Board",
        "email": "sala.board@rotineret.ro",
        "capacity": 12,
        "color": "#EF4444",
        "floor": "Etaj 2",
        "amenities": ["TV", "sistem videoconferință", "AC"],
    },
]

HIDDEN_ROOMS_SETTING_KEY = "globalSettings"

# =============================================================================
# MS GRAPH CREDENTIALS (from environment)
# =============================================================================

GRAPH_TENANT_ID = os.environ.get("MICROSOFT_GRAPH_TENANT_ID", "")
GRAPH_APP_ID = os.environ.get("MICROSOFT_GRAPH_APP_ID", "")
GRAPH_CLIENT_SECRET = os.environ.get("MICROSOFT_GRAPH_CLIENT_SECRET", "")

CALENDAR_PAGE_SIZE = 100
BOOKINGS_PAGE_SIZE = 999

# =============================================================================
# API CONFIGURATION
# =============================================================================

ROOMCAL_API_KEY = os.environ.get("ROOMCAL_API_KEY", "")
API_HOST = os.environ.get("API_HOST", "0.0.0.0")
API_PORT = int(os.environ.get("API_PORT", "3001"))
API_DEBUG = os.environ.get("API_DEBUG", "false").lower() == "true"
API_VERSION = "1.0.0"
LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")
