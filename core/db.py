import sqlite3
from typing import Iterable, List, Optional

from core.config import get_settings
from core.exceptions import StorageError
from core.logger import setup_logger
from core.schema import TransactionKind, TransactionRecord

logger = setup_logger(__name__)

_COLUMNS = (
    "id", "sender", "amount", "kind", "date", "time", "description",
    "message_preview", "full_message", "timestamp",
)


class TransactionStore:
    def __init__(self, db_path: Optional[str] = None):
        self.settings = get_settings()
        self.db_path = db_path or self.settings.database_path

    def get_connection(self) -> sqlite3.Connection:
        """Create a database connection."""
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        return conn

    def init_db(self) -> None:
        """Initialize database tables."""
        conn = self.get_connection()
        cursor = conn.cursor()

        try:
            cursor.execute("""
                CREATE TABLE IF NOT EXISTS transactions (
                    id TEXT PRIMARY KEY,
                    sender TEXT NOT NULL,
                    amount TEXT NOT NULL,
                    kind TEXT NOT NULL,
                    date TEXT NOT NULL,
                    time TEXT NOT NULL,
                    description TEXT NOT NULL,
                    message_preview TEXT NOT NULL,
                    full_message TEXT NOT NULL,
                    timestamp INTEGER NOT NULL
                )
            """)
            cursor.execute(
                "CREATE INDEX IF NOT EXISTS idx_transactions_timestamp ON transactions (timestamp)"
            )
            conn.commit()
            logger.info("Database initialized successfully")
        except sqlite3.Error as e:
            logger.error(f"Database initialization failed: {e}")
            raise StorageError("Failed to initialize transaction store", details={"error": str(e)})
        finally:
            conn.close()

    def save_records(self, records: Iterable[TransactionRecord]) -> int:
        """
        Insert or replace records by id.

        Returns:
            Number of records written
        """
        rows = [
            (
                r.id, r.sender, r.amount, r.kind.value, r.date, r.time,
                r.description, r.message_preview, r.full_message, r.timestamp,
            )
            for r in records
        ]
        if not rows:
            return 0

        conn = self.get_connection()
        try:
            conn.executemany(
                f"INSERT OR REPLACE INTO transactions ({', '.join(_COLUMNS)}) "
                f"VALUES ({', '.join('?' for _ in _COLUMNS)})",
                rows
            )
            conn.commit()
            logger.info(f"Saved {len(rows)} transactions to storage")
            return len(rows)
        except sqlite3.Error as e:
            logger.error(f"Failed to save transactions: {e}")
            raise StorageError("Failed to save transactions", details={"error": str(e)})
        finally:
            conn.close()

    def get_all_records(self) -> List[TransactionRecord]:
        """Get all stored records, newest first."""
        conn = self.get_connection()
        try:
            cursor = conn.execute(
                f"SELECT {', '.join(_COLUMNS)} FROM transactions ORDER BY timestamp DESC"
            )
            return [
                TransactionRecord(**{**dict(row), "kind": TransactionKind(row["kind"])})
                for row in cursor.fetchall()
            ]
        except sqlite3.Error as e:
            logger.error(f"Failed to load transactions: {e}")
            raise StorageError("Failed to load transactions", details={"error": str(e)})
        finally:
            conn.close()

    def count(self) -> int:
        conn = self.get_connection()
        try:
            return conn.execute("SELECT COUNT(*) FROM transactions").fetchone()[0]
        finally:
            conn.close()

    def clear(self) -> None:
        """Delete all stored records."""
        conn = self.get_connection()
        try:
            conn.execute("DELETE FROM transactions")
            conn.commit()
        finally:
            conn.close()


# Global store instance
_store: Optional[TransactionStore] = None


def get_store() -> TransactionStore:
    global _store
    if _store is None:
        _store = TransactionStore()
        _store.init_db()
    return _store


def reset_store() -> None:
    """Reset store singleton (useful for testing)."""
    global _store
    _store = None
