"""
Local echo store for Lead to Order.

Last-known copies of leads, follow-ups and enquiries plus the session user,
kept as JSON values in a SQLite key-value table (WAL mode). Collections are
flat lists in insertion order with no size bound.
"""

import json
import logging
import sqlite3
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Callable, Generic, Optional, TypeVar, Union

from .config import config
from .models import Enquiry, FollowUp, Lead, User

logger = logging.getLogger(__name__)

# Storage keys
LEADS_KEY = 'lead_to_order_leads'
FOLLOW_UPS_KEY = 'lead_to_order_follow_ups'
ENQUIRIES_KEY = 'lead_to_order_enquiries'
USER_KEY = 'lead_to_order_user'

SCHEMA = """
CREATE TABLE IF NOT EXISTS kv (
    key TEXT PRIMARY KEY,
    value TEXT NOT NULL,
    updated_at TEXT DEFAULT (datetime('now'))
);
"""

T = TypeVar('T', Lead, FollowUp, Enquiry)


class Database:
    """SQLite key-value table holding JSON documents."""

    def __init__(self, db_path: Optional[Union[str, Path]] = None):
        self.db_path = Path(db_path or config.DB_PATH)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        # Serializes read-modify-write cycles across threads
        self.lock = threading.RLock()
        self._init_schema()

    def _get_connection(self) -> sqlite3.Connection:
        """Get a database connection with WAL mode."""
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA journal_mode=WAL")
        return conn

    @contextmanager
    def connection(self):
        """Context manager for database connections."""
        conn = self._get_connection()
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def _init_schema(self):
        with self.connection() as conn:
            conn.executescript(SCHEMA)

    def get(self, key: str) -> Optional[Any]:
        """Decoded value for ``key``; None when absent or unreadable."""
        with self.connection() as conn:
            row = conn.execute("SELECT value FROM kv WHERE key = ?", (key,)).fetchone()
        if not row:
            return None
        try:
            return json.loads(row['value'])
        except json.JSONDecodeError as e:
            logger.error(f"Corrupt value under {key}: {e}")
            return None

    def set(self, key: str, value: Any):
        payload = json.dumps(value)
        with self.connection() as conn:
            conn.execute("""
                INSERT INTO kv (key, value, updated_at)
                VALUES (?, ?, datetime('now'))
                ON CONFLICT(key) DO UPDATE SET value = ?, updated_at = datetime('now')
            """, (key, payload, payload))

    def remove(self, key: str):
        with self.connection() as conn:
            conn.execute("DELETE FROM kv WHERE key = ?", (key,))

    def clear(self):
        with self.connection() as conn:
            conn.execute("DELETE FROM kv")


class Collection(Generic[T]):
    """One entity collection stored as a JSON array."""

    def __init__(self, db: Database, key: str, from_dict: Callable[[dict], T]):
        self.db = db
        self.key = key
        self._from_dict = from_dict

    def _load(self) -> list[dict]:
        items = self.db.get(self.key)
        if not isinstance(items, list):
            return []
        return [item for item in items if isinstance(item, dict)]

    def get_all(self) -> list[T]:
        return [self._from_dict(item) for item in self._load()]

    def get_by_id(self, record_id: str) -> Optional[T]:
        for item in self._load():
            if item.get('id') == record_id:
                return self._from_dict(item)
        return None

    def add(self, record: T):
        """Append ``record`` to the end of the collection."""
        with self.db.lock:
            items = self._load()
            items.append(record.to_dict())
            self.db.set(self.key, items)

    def update(self, record_id: str, **changes) -> bool:
        """
        Replace the given fields on the first record with ``record_id``.

        Returns False (and writes nothing) when no record matches.
        """
        with self.db.lock:
            items = self._load()
            for position, item in enumerate(items):
                if item.get('id') == record_id:
                    merged = self._from_dict({**item, **changes})
                    items[position] = merged.to_dict()
                    self.db.set(self.key, items)
                    return True
        logger.debug(f"{self.key}: no record {record_id} to update")
        return False

    def delete(self, record_id: str) -> int:
        """Remove every record with ``record_id``. Returns how many went."""
        with self.db.lock:
            items = self._load()
            kept = [item for item in items if item.get('id') != record_id]
            removed = len(items) - len(kept)
            if removed:
                self.db.set(self.key, kept)
        return removed


class FollowUpCollection(Collection[FollowUp]):

    def get_by_lead_no(self, lead_no: str) -> list[FollowUp]:
        return [fu for fu in self.get_all() if fu.lead_no.strip() == lead_no.strip()]


class UserSlot:
    """The session user singleton."""

    def __init__(self, db: Database):
        self.db = db

    def get(self) -> Optional[User]:
        data = self.db.get(USER_KEY)
        if not isinstance(data, dict):
            return None
        return User.from_dict(data)

    def set(self, user: User):
        self.db.set(USER_KEY, user.to_dict())

    def clear(self):
        self.db.remove(USER_KEY)


class LocalEchoStore:
    """All local collections behind one database file."""

    def __init__(self, db_path: Optional[Union[str, Path]] = None):
        self.db = Database(db_path)
        self.leads: Collection[Lead] = Collection(self.db, LEADS_KEY, Lead.from_dict)
        self.follow_ups = FollowUpCollection(self.db, FOLLOW_UPS_KEY, FollowUp.from_dict)
        self.enquiries: Collection[Enquiry] = Collection(self.db, ENQUIRIES_KEY, Enquiry.from_dict)
        self.user = UserSlot(self.db)

    def clear_all(self):
        """Drop every collection and the session user."""
        with self.db.lock:
            self.db.clear()
        logger.info("Cleared all local data")
