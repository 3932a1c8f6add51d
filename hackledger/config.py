"""
HACKLEDGER v1.0 — Configuration.
Shared settings for the ledger, journal and CLI.

Values are read from the environment at import time. Call ``reload()``
after changing the environment (tests do this between cases).
"""

import os
from pathlib import Path

# Base Paths
HACKLEDGER_DIR = Path(os.environ.get("HACKLEDGER_DIR", str(Path.home() / ".hackledger")))

# Journal Configuration
# ":memory:" keeps the journal in-process; any other value is a SQLite file path.
JOURNAL_PATH = os.environ.get("HACKLEDGER_JOURNAL", ":memory:")
CHECKPOINT_BATCH_SIZE = int(os.environ.get("HACKLEDGER_CHECKPOINT_BATCH", "100"))

# Access Control
ADMINS = [a.strip() for a in os.environ.get("HACKLEDGER_ADMINS", "").split(",") if a.strip()]

# Voting Rules
MAX_VOTES_PER_VOTER = int(os.environ.get("HACKLEDGER_MAX_VOTES", "2"))
PODIUM_SIZE = int(os.environ.get("HACKLEDGER_PODIUM_SIZE", "3"))

# ─── Logging ─────────────────────────────────────────────────────────
LOG_LEVEL = os.environ.get("HACKLEDGER_LOG_LEVEL", "INFO").upper()


def reload() -> None:
    """Re-read every setting from the current environment."""
    global HACKLEDGER_DIR, JOURNAL_PATH, CHECKPOINT_BATCH_SIZE, ADMINS
    global MAX_VOTES_PER_VOTER, PODIUM_SIZE, LOG_LEVEL

    HACKLEDGER_DIR = Path(os.environ.get("HACKLEDGER_DIR", str(Path.home() / ".hackledger")))
    JOURNAL_PATH = os.environ.get("HACKLEDGER_JOURNAL", ":memory:")
    CHECKPOINT_BATCH_SIZE = int(os.environ.get("HACKLEDGER_CHECKPOINT_BATCH", "100"))
    ADMINS = [a.strip() for a in os.environ.get("HACKLEDGER_ADMINS", "").split(",") if a.strip()]
    MAX_VOTES_PER_VOTER = int(os.environ.get("HACKLEDGER_MAX_VOTES", "2"))
    PODIUM_SIZE = int(os.environ.get("HACKLEDGER_PODIUM_SIZE", "3"))
    LOG_LEVEL = os.environ.get("HACKLEDGER_LOG_LEVEL", "INFO").upper()
