"""
Configuration for BP Tracker.

Sensitive values (the share-link signing secret) are loaded from environment variables.
This keeps secrets out of your code.

To set environment variables on Linux, add these lines to your ~/.bashrc or ~/.profile:
    export JWT_SECRET="a-long-random-string"
    export APP_URL="https://bp.example.com"

Then run: source ~/.bashrc (or restart your terminal)

Clinical thresholds and input bounds are also environment driven. They are read
each time they are requested, so the latest configured value always wins.
"""

import logging
import os
from pathlib import Path

from .blood_pressure import CrisisThresholds, MeasurementBounds


# ============================================================
# FILE PATHS
# ============================================================

# Project root directory (where setup.py is)
PROJECT_ROOT = Path(__file__).parent.parent

# Data directory for the database
DATA_DIR = PROJECT_ROOT / "data"

# Database file path (override with BP_TRACKER_DB)
DB_PATH = Path(os.environ.get("BP_TRACKER_DB", DATA_DIR / "bp_tracker.db"))


# ============================================================
# SHARE LINK CONFIGURATION
# ============================================================

# Secret used to sign share tokens. Sharing refuses to start without it.
JWT_SECRET = os.environ.get("JWT_SECRET")

# Public base URL of the app, used to build share links
APP_URL = os.environ.get("APP_URL", "http://localhost:5000")

# How long a share link stays valid
SHARE_LINK_DAYS = 2


# ============================================================
# MEASUREMENT TAGS
# ============================================================

DEFAULT_TAGS = [
    "Fasting",
    "After meal",
    "After exercise",
    "Resting",
    "Stressed",
    "Before medication",
    "After medication",
    "Morning",
    "Night",
]


# ============================================================
# PROFILE CATALOGUES
# Seeded into the database on first run; patients pick from these
# ============================================================

DEFAULT_MEDICATIONS = [
    "Amlodipine",
    "Enalapril",
    "Hydrochlorothiazide",
    "Losartan",
    "Metoprolol",
    "Spironolactone",
]

DEFAULT_RELEVANT_CONDITIONS = [
    "Chronic kidney disease",
    "Diabetes",
    "Heart failure",
    "High cholesterol",
    "Pregnancy",
    "Sleep apnea",
]


# ============================================================
# LOGGING
# ============================================================

LOG_LEVEL = os.environ.get("BP_TRACKER_LOG_LEVEL", "INFO")

LOG_FORMAT = "%(asctime)s [%(levelname)-8s] %(name)s: %(message)s"


# ============================================================
# HELPER FUNCTIONS
# ============================================================

def get_crisis_thresholds(environ=None) -> CrisisThresholds:
    """Read the four crisis thresholds from the environment."""
    return CrisisThresholds.from_settings(os.environ if environ is None else environ)


def get_measurement_bounds(environ=None) -> MeasurementBounds:
    """Read the accepted input ranges for a new measurement."""
    return MeasurementBounds.from_settings(os.environ if environ is None else environ)


def get_allowed_tags(environ=None) -> list:
    """
    Return the tags a measurement may carry.

    ADDITIONAL_TAGS is a comma-separated list. Blank entries are ignored and
    the built-in list is used when nothing usable is configured.
    """
    environ = os.environ if environ is None else environ
    raw = environ.get("ADDITIONAL_TAGS") or ""
    tags = [tag.strip() for tag in raw.split(",") if tag.strip()]
    return tags or list(DEFAULT_TAGS)


def is_share_configured() -> bool:
    """Check if share links can be signed."""
    return bool(JWT_SECRET)


def get_missing_share_config() -> list:
    """Return a list of missing share-link configuration items."""
    missing = []
    if not JWT_SECRET:
        missing.append("JWT_SECRET")
    return missing


def configure_logging(level: str = None):
    """Set up root logging once for the CLI and the web server."""
    logging.basicConfig(
        level=(level or LOG_LEVEL).upper(),
        format=LOG_FORMAT,
        datefmt="%Y-%m-%dT%H:%M:%S",
    )
