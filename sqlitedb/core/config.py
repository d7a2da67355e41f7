"""
Configuration for the sqlitedb helpers.
Settings are read from the environment once at import time;
debug_enabled() re-reads its flag on every call.
"""

import os
from pathlib import Path

# Database path configuration
DB_PATH = os.getenv("SQLITEDB_PATH", "./data/sqlitedb.db")

LOG_LEVEL = os.getenv("SQLITEDB_LOG_LEVEL", "INFO").upper()

# Record defaults
ALLOW_NEW_KEYS = os.getenv("SQLITEDB_ALLOW_NEW_KEYS", "false").lower() == "true"

# Meta tree defaults
ARCHIVE_KEY = os.getenv("SQLITEDB_ARCHIVE_KEY", "previous")

# Crypto configuration
KDF_ITERATIONS = int(os.getenv("SQLITEDB_KDF_ITERATIONS", "100000"))
CRYPTO_PASSWORD = os.getenv("SQLITEDB_CRYPTO_PASSWORD")  # Required for AESCryptoProvider.from_env()

# Version string
VERSION = "1.0.0"


def debug_enabled():
    """Check if debug mode (SQL statement logging) is enabled."""
    return os.getenv("SQLITEDB_DEBUG", "false").lower() == "true"


def ensure_db_directory(path: str = None):
    """Ensure the database directory exists."""
    Path(path or DB_PATH).parent.mkdir(parents=True, exist_ok=True)


def validate_config():
    """Validate configuration and return any issues."""
    issues = []

    if KDF_ITERATIONS < 1000:
        issues.append("SQLITEDB_KDF_ITERATIONS must be >= 1000")

    if not ARCHIVE_KEY.strip():
        issues.append("SQLITEDB_ARCHIVE_KEY is blank; archival signatures will be empty")

    if LOG_LEVEL not in ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]:
        issues.append(f"Invalid SQLITEDB_LOG_LEVEL: {LOG_LEVEL}")

    return issues
