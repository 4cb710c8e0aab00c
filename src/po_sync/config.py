"""
config.py - Configuration constants for po_sync.

All configuration is immutable and defined at module level.
Runtime-mutable settings (remote endpoint, admin PIN, retry tuning)
live in the settings table and are overlaid on these defaults.
"""

from typing import Final

# Schema version for the local store
# Increment this when the submissions/settings schema changes
SCHEMA_VERSION: Final[int] = 1

# Default remote workflow webhook. Overridden by PO_SYNC_REMOTE_ENDPOINT
# or by an admin config save.
DEFAULT_REMOTE_ENDPOINT: Final[str] = (
    "https://defaulta543e2f6ae4b4d1db263a38786ce68.44.environment.api.powerplatform.com:443"
    "/powerautomate/automations/direct/workflows/146de521bc3a415d9dbbdfec5476be38"
    "/triggers/manual/paths/invoke/?api-version=1&sp=%2Ftriggers%2Fmanual%2Frun&sv=1.0"
)
DEFAULT_API_KEY: Final[str] = ""

# Environment variable names
ENV_DB_PATH: Final[str] = "PO_SYNC_DB_PATH"
ENV_REMOTE_ENDPOINT: Final[str] = "PO_SYNC_REMOTE_ENDPOINT"
ENV_API_KEY: Final[str] = "PO_SYNC_API_KEY"

DEFAULT_DB_PATH: Final[str] = "po_sync.db"

# Delivery tuning
DEFAULT_TIMEOUT_SECONDS: Final[float] = 30.0
DEFAULT_RETRY_ATTEMPTS: Final[int] = 3
DEFAULT_RETRY_DELAY_SECONDS: Final[float] = 1.0
SYNC_INTERVAL_SECONDS: Final[float] = 5 * 60.0

# Admin gate
DEFAULT_ADMIN_PIN: Final[str] = "1234"
MIN_ADMIN_PIN_LENGTH: Final[int] = 4

# Keys used in the settings table
SETTINGS_KEY_REMOTE_CONFIG: Final[str] = "remote_config"
SETTINGS_KEY_ADMIN_PIN: Final[str] = "admin_pin"
SETTINGS_KEY_DARK_MODE: Final[str] = "dark_mode"
SETTINGS_KEY_DRAFT: Final[str] = "form_draft"
SETTINGS_KEY_API_CONFIG: Final[str] = "api_config"
SETTINGS_KEY_FAILED_REQUESTS: Final[str] = "failed_requests"
SETTINGS_KEY_SCHEMA_VERSION: Final[str] = "schema_version"

# Retry queue actions
ACTION_DIRECT_SYNC: Final[str] = "DIRECT_SYNC"
ACTION_DELETE_PO: Final[str] = "DELETE_PO"
ACTION_HEALTH_CHECK: Final[str] = "HEALTH_CHECK"

# SQLite PRAGMA settings for the local store
SQLITE_PRAGMAS: Final[dict[str, str]] = {
    "journal_mode": "WAL",
    "synchronous": "NORMAL",
    "foreign_keys": "ON",
    "busy_timeout": "5000",
}

# Dotted paths that must be non-empty before a submission is accepted
REQUIRED_FIELDS: Final[tuple[str, ...]] = (
    "meta.projectName",
    "meta.generalContractor",
    "meta.address",
    "meta.owner",
    "meta.apexOwner",
    "meta.typeStatus",
    "meta.projectManager",
    "meta.contractAmount",
    "meta.requestedBy",
    "meta.companyName",
    "meta.contactName",
    "meta.email",
    "meta.cellNumber",
    "meta.vendorType",
    "meta.workType",
)
