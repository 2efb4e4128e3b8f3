"""
SQLite connection handling for the request ledger and model registry.
"""

import sqlite3
from pathlib import Path

DEFAULT_DB_PATH = "llm_replay.db"

# Concurrent replays append to the same file; wait for the write lock
BUSY_TIMEOUT_SECONDS = 5.0


def get_connection(db_path: str = DEFAULT_DB_PATH) -> sqlite3.Connection:
    """Open a connection to the replay database.

    Missing parent directories are created. Foreign keys are enforced so a
    model can never point at an unknown provider.

    Args:
        db_path: Path to SQLite database file

    Returns:
        Open SQLite connection
    """
    path = Path(db_path)
    path.parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(str(path), timeout=BUSY_TIMEOUT_SECONDS)
    conn.execute("PRAGMA foreign_keys = ON")
    return conn
