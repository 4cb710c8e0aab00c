"""
schema.py - Local store table definitions.

All tables use STRICT mode for type enforcement.
"""

from typing import Final

# submissions table - one row per purchase order
# Business content is kept as a JSON document in `body`; delivery state
# and sort keys get their own columns so they can be indexed.
SUBMISSIONS_SCHEMA: Final[str] = """
CREATE TABLE IF NOT EXISTS submissions (
    id INTEGER PRIMARY KEY AUTOINCREMENT,

    -- Business content (meta, schedule, scope, extras)
    body TEXT NOT NULL,

    -- Creation
    created_at TEXT NOT NULL,
    timestamp INTEGER NOT NULL,
    user_id TEXT,

    -- Delivery state
    sent INTEGER NOT NULL DEFAULT 0 CHECK(sent IN (0, 1)),
    sent_at TEXT NOT NULL DEFAULT ''
) STRICT;
"""

SUBMISSIONS_INDICES: Final[str] = """
-- Pending view stays proportional to the number of unsent rows
CREATE INDEX IF NOT EXISTS idx_submissions_pending
ON submissions(timestamp) WHERE sent = 0;

-- Default listing order
CREATE INDEX IF NOT EXISTS idx_submissions_timestamp
ON submissions(timestamp);
"""

# settings table - persisted config and small blobs
SETTINGS_SCHEMA: Final[str] = """
CREATE TABLE IF NOT EXISTS settings (
    key TEXT PRIMARY KEY,
    value TEXT NOT NULL
) STRICT;
"""

ALL_SCHEMA_STATEMENTS: Final[tuple[str, ...]] = (
    SUBMISSIONS_SCHEMA,
    SUBMISSIONS_INDICES,
    SETTINGS_SCHEMA,
)
