"""
Application configuration and constants for UMKM Call Server.

This module centralizes environment-based configuration, resource limits,
regular expressions, subscription pricing, geodesy and timezone constants.

Configuration values can be overridden via environment variables.
"""

from os import environ
from zoneinfo import ZoneInfo


# ---------------------------------------------------------------------------
# Application metadata
# ---------------------------------------------------------------------------
API_TITLE = "UMKM Call Server"
API_VERSION = "1.0.0"


# ---------------------------------------------------------------------------
# PostgreSQL configuration
# ---------------------------------------------------------------------------
PSQL_DB_DRIVER = environ.get("PSQL_DB_DRIVER", "postgresql")
PSQL_DB_USERNAME = environ.get("PSQL_DB_USERNAME", "postgres")
PSQL_DB_PORT = environ.get("PSQL_DB_PORT", "5432")
PSQL_DB_PASSWORD = environ.get("PSQL_DB_PASSWORD", "password")
PSQL_DB_HOST = environ.get("PSQL_DB_HOST", "localhost")
PSQL_DB_NAME = environ.get("PSQL_DB_NAME", "postgres")


# ---------------------------------------------------------------------------
# OpenObserve configuration
# ---------------------------------------------------------------------------
OPENOBSERVE_PROTOCOL = environ.get("OPENOBSERVE_PROTOCOL", "http")
OPENOBSERVE_HOST = environ.get("OPENOBSERVE_HOST", "localhost")
OPENOBSERVE_PORT = environ.get("OPENOBSERVE_PORT", "5080")
OPENOBSERVE_USERNAME = environ.get("OPENOBSERVE_USERNAME", "admin@umkm.id")
OPENOBSERVE_PASSWORD = environ.get("OPENOBSERVE_PASSWORD", "password")
OPENOBSERVE_ORG = environ.get("OPENOBSERVE_ORG", "umkm")
OPENOBSERVE_STREAM = environ.get("OPENOBSERVE_STREAM", "umkm-call-server")
OPENOBSERVE_TIMEOUT = float(environ.get("OPENOBSERVE_TIMEOUT", "5"))


# ---------------------------------------------------------------------------
# Resource upper limits
# ---------------------------------------------------------------------------
MAX_ACCOUNT_TOKENS = 5  # Maximum tokens per account
MAX_TOKEN_VALIDITY = 7 * 24 * 60 * 60  # Token validity (in seconds, 7 days)


# ---------------------------------------------------------------------------
# Regex constants (input validation)
# ---------------------------------------------------------------------------
REGEX_PASSWORD = r"^[a-zA-Z0-9-+,.@_$%&*#!^=/?]*$"


# ---------------------------------------------------------------------------
# Subscription constants
# ---------------------------------------------------------------------------
SUBSCRIPTION_FEE = 5000  # Flat monthly fee (in rupiah)
SUBSCRIPTION_PERIOD = 1  # Length of a paid period (in months)


# ---------------------------------------------------------------------------
# Geodesy constants
# ---------------------------------------------------------------------------
EARTH_RADIUS = 6371  # Mean earth radius (in km)
LATITUDE_SCALE = (10, 8)  # Numeric precision and scale of latitude columns
LONGITUDE_SCALE = (11, 8)  # Numeric precision and scale of longitude columns


# ---------------------------------------------------------------------------
# Timezone constants
# ---------------------------------------------------------------------------
TMZ_SECONDARY = ZoneInfo("Asia/Jakarta")
