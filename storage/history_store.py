"""SQLite-backed scan history.

Keeps the most recent custom-range scans (newest first, capped at
``SCAN.MAX_HISTORY_ITEMS``) so the user can re-run a previous range.
Ranges read back from the database are validated the same way as live
scan requests; rows that no longer validate are skipped.
"""
import sqlite3
import threading
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import List, Optional

from config import SCAN, STORAGE, get_logger
from config.exceptions import RangeValidationError, StorageError
from discovery.backend import ScanHistoryEntry
from discovery.range_normalizer import IPRange

logger = get_logger(__name__)


# Schema version for migrations
SCHEMA_VERSION = 1


class ScanHistoryStore:
    """Handles persistence of scan history to an SQLite database."""

    DEFAULT_DATA_DIR = Path.home() / STORAGE.DATA_DIR_NAME
    DEFAULT_DB_FILE = STORAGE.HISTORY_DB_FILE

    SCHEMA = """
    -- Scanned ranges, newest has the highest id
    CREATE TABLE IF NOT EXISTS scan_history (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        start_ip TEXT NOT NULL,
        end_ip TEXT NOT NULL,
        timestamp TEXT NOT NULL
    );

    -- Schema version tracking
    CREATE TABLE IF NOT EXISTS schema_info (
        key TEXT PRIMARY KEY,
        value TEXT
    );
    """

    def __init__(self, data_dir: Optional[Path] = None, max_items: int = SCAN.MAX_HISTORY_ITEMS):
        """Initialize the history store.

        Args:
            data_dir: Directory for the database file. Defaults to ~/.netview/
            max_items: Number of entries kept.
        """
        self.data_dir = data_dir or self.DEFAULT_DATA_DIR
        self.db_path = self.data_dir / self.DEFAULT_DB_FILE
        self.max_items = max_items
        self._lock = threading.Lock()

        self.data_dir.mkdir(parents=True, exist_ok=True)
        self._init_db()

        logger.info(f"ScanHistoryStore initialized at {self.db_path}")

    @contextmanager
    def _connection(self):
        """Context manager for database connections."""
        conn = sqlite3.connect(
            self.db_path,
            timeout=30.0,
            isolation_level=None  # Autocommit mode, we handle transactions manually
        )
        conn.row_factory = sqlite3.Row
        try:
            yield conn
        finally:
            conn.close()

    def _init_db(self) -> None:
        """Initialize database schema."""
        try:
            with self._connection() as conn:
                conn.executescript(self.SCHEMA)
                conn.execute(
                    "INSERT OR IGNORE INTO schema_info (key, value) VALUES (?, ?)",
                    ("version", str(SCHEMA_VERSION))
                )
            logger.debug("History schema initialized")
        except sqlite3.Error as e:
            logger.error(f"Failed to initialize history database: {e}")
            raise StorageError(f"Database initialization failed: {e}",
                               {"path": str(self.db_path)})

    def add(self, start_ip: Optional[str], end_ip: Optional[str],
            timestamp: Optional[datetime] = None) -> bool:
        """Record a scanned range and trim the history to ``max_items``.

        Empty or incomplete ranges are ignored.

        Returns:
            True if an entry was written.
        """
        if not start_ip or not end_ip:
            logger.debug("Skipping history entry with empty start/end address")
            return False

        timestamp = timestamp or datetime.now()
        with self._lock:
            try:
                with self._connection() as conn:
                    conn.execute("BEGIN TRANSACTION")
                    try:
                        conn.execute(
                            "INSERT INTO scan_history (start_ip, end_ip, timestamp) VALUES (?, ?, ?)",
                            (start_ip, end_ip, timestamp.isoformat())
                        )
                        conn.execute("""
                            DELETE FROM scan_history WHERE id NOT IN (
                                SELECT id FROM scan_history ORDER BY id DESC LIMIT ?
                            )
                        """, (self.max_items,))
                        conn.execute("COMMIT")
                    except Exception:
                        conn.execute("ROLLBACK")
                        raise
            except sqlite3.Error as e:
                logger.error(f"Failed to record scan history: {e}")
                raise StorageError(f"Failed to record scan history: {e}",
                                   {"path": str(self.db_path)})

        logger.debug(f"Recorded scan history entry {start_ip} - {end_ip}")
        return True

    def add_range(self, ip_range: IPRange, timestamp: Optional[datetime] = None) -> bool:
        return self.add(str(ip_range.start), str(ip_range.end), timestamp)

    def get_recent(self, limit: Optional[int] = None) -> List[ScanHistoryEntry]:
        """Return up to ``limit`` entries, newest first.

        Rows whose range no longer validates are logged and skipped.
        """
        limit = limit or self.max_items
        try:
            with self._connection() as conn:
                rows = conn.execute(
                    "SELECT start_ip, end_ip, timestamp FROM scan_history ORDER BY id DESC LIMIT ?",
                    (limit,)
                ).fetchall()
        except sqlite3.Error as e:
            logger.error(f"Failed to read scan history: {e}")
            raise StorageError(f"Failed to read scan history: {e}",
                               {"path": str(self.db_path)})

        entries = []
        for row in rows:
            try:
                entries.append(ScanHistoryEntry.from_dict({
                    "startIp": row["start_ip"],
                    "endIp": row["end_ip"],
                    "timestamp": row["timestamp"],
                }))
            except (RangeValidationError, ValueError) as e:
                logger.warning(f"Skipping invalid history entry "
                               f"{row['start_ip']} - {row['end_ip']}: {e}")
        return entries

    def clear(self) -> None:
        """Delete all history entries."""
        with self._lock:
            with self._connection() as conn:
                conn.execute("DELETE FROM scan_history")
        logger.info("Scan history cleared")

    def count(self) -> int:
        with self._connection() as conn:
            return conn.execute("SELECT COUNT(*) FROM scan_history").fetchone()[0]
