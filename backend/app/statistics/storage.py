"""
Storage backends for population statistics and submission records.

Provides an abstract key-value interface with compare-and-swap, plus
in-memory, Redis and SQL implementations. Values are JSON strings.

Compare-and-swap is what makes ``ingest`` safe under concurrent
submissions: a writer only replaces the aggregate if it still holds the
exact value the writer read.
"""
from abc import ABC, abstractmethod
from datetime import timedelta
from typing import Callable, Dict, Optional
import logging
import threading
import time

from sqlalchemy import delete, or_, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from app.core.datetime_utils import utc_now
from app.core.exceptions import StorageError
from app.models.models import KeyValueEntry

logger = logging.getLogger(__name__)


class StatisticsStorage(ABC):
    """
    Abstract storage interface for statistics state.

    Backends raise ``StorageError`` on I/O failures rather than returning
    None, so a failed read is never mistaken for a missing key.
    """

    @abstractmethod
    def get(self, key: str) -> Optional[str]:
        """
        Get value for a key.

        Args:
            key: Storage key

        Returns:
            Stored value or None if not found or expired
        """
        pass

    @abstractmethod
    def set(self, key: str, value: str, ttl: Optional[int] = None) -> None:
        """
        Set value for a key with optional TTL.

        Args:
            key: Storage key
            value: Value to store
            ttl: Time-to-live in seconds (None = no expiration)
        """
        pass

    @abstractmethod
    def compare_and_set(
        self,
        key: str,
        expected: Optional[str],
        value: str,
        ttl: Optional[int] = None,
    ) -> bool:
        """
        Atomically replace the value of a key if it still equals ``expected``.

        Args:
            key: Storage key
            expected: Value previously read, or None if the key must not exist
            value: New value
            ttl: Time-to-live in seconds for the new value

        Returns:
            True if the value was written, False if another writer got there first
        """
        pass

    @abstractmethod
    def delete(self, key: str) -> None:
        """
        Delete a key.

        Args:
            key: Storage key to delete
        """
        pass

    @abstractmethod
    def clear(self) -> None:
        """Clear all stored data."""
        pass

    #: Backends that can lock a key for a whole read-modify-write set this
    #: and implement ``locked_update``
    supports_locked_update = False

    def locked_update(
        self,
        key: str,
        transform: Callable[[Optional[str]], str],
        ttl: Optional[int] = None,
    ) -> str:
        """
        Replace the value of ``key`` with ``transform(current)`` while holding
        an exclusive lock on the key.

        Args:
            key: Storage key
            transform: Maps the current value (None if absent) to the new value
            ttl: Time-to-live in seconds for the new value

        Returns:
            The value written
        """
        raise NotImplementedError(f"{type(self).__name__} has no locked update")

    def close(self) -> None:
        """Release backend resources. No-op by default."""


class InMemoryStorage(StatisticsStorage):
    """
    In-memory storage backend.

    Uses Python dictionaries with TTL support via expiration timestamps.
    Thread-safe with a lock; compare-and-swap runs under the same lock.

    Note: Data is lost on process restart and is not shared across workers.
    """

    def __init__(self) -> None:
        self._data: Dict[str, str] = {}
        self._expiry: Dict[str, float] = {}
        self._lock = threading.RLock()

    def _live_value(self, key: str) -> Optional[str]:
        """Return the value for key, dropping it if expired. Caller holds the lock."""
        if key not in self._data:
            return None
        expiry = self._expiry.get(key)
        if expiry is not None and time.time() > expiry:
            del self._data[key]
            del self._expiry[key]
            return None
        return self._data[key]

    def _write(self, key: str, value: str, ttl: Optional[int]) -> None:
        self._data[key] = value
        if ttl is not None:
            self._expiry[key] = time.time() + ttl
        elif key in self._expiry:
            del self._expiry[key]

    def get(self, key: str) -> Optional[str]:
        with self._lock:
            return self._live_value(key)

    def set(self, key: str, value: str, ttl: Optional[int] = None) -> None:
        with self._lock:
            self._write(key, value, ttl)

    def compare_and_set(
        self,
        key: str,
        expected: Optional[str],
        value: str,
        ttl: Optional[int] = None,
    ) -> bool:
        with self._lock:
            if self._live_value(key) != expected:
                return False
            self._write(key, value, ttl)
            return True

    def delete(self, key: str) -> None:
        with self._lock:
            self._data.pop(key, None)
            self._expiry.pop(key, None)

    def clear(self) -> None:
        with self._lock:
            self._data.clear()
            self._expiry.clear()


class RedisStorage(StatisticsStorage):
    """
    Redis storage backend.

    Shares statistics across multiple workers/servers. Requires redis-py.

    Compare-and-swap uses optimistic locking: WATCH the key, compare the
    current value, then write inside MULTI/EXEC. EXEC aborts with
    ``WatchError`` if any other client touched the key in between.
    """

    # Key prefix to namespace statistics data in Redis
    KEY_PREFIX = "perception:"

    def __init__(
        self,
        redis_url: str = "redis://localhost:6379/0",
        key_prefix: Optional[str] = None,
        connection_pool_size: int = 10,
        socket_timeout: float = 5.0,
        socket_connect_timeout: float = 5.0,
        retry_on_timeout: bool = True,
    ):
        """
        Initialize Redis storage with connection pooling.

        Args:
            redis_url: Redis connection URL (e.g., redis://localhost:6379/0
                       or redis://:password@host:port/db)
            key_prefix: Optional custom prefix for keys (defaults to "perception:")
            connection_pool_size: Maximum number of connections in the pool
            socket_timeout: Timeout for socket operations in seconds
            socket_connect_timeout: Timeout for socket connections in seconds
            retry_on_timeout: Whether to retry on timeout errors

        Raises:
            ImportError: If redis-py is not installed
        """
        try:
            import redis  # type: ignore[import-untyped]
        except ImportError:
            raise ImportError(
                "redis-py is required for RedisStorage. "
                "Install it with: pip install redis"
            )

        self._key_prefix = key_prefix or self.KEY_PREFIX

        self._pool = redis.ConnectionPool.from_url(
            redis_url,
            max_connections=connection_pool_size,
            socket_timeout=socket_timeout,
            socket_connect_timeout=socket_connect_timeout,
            retry_on_timeout=retry_on_timeout,
        )
        self._redis = redis.Redis(connection_pool=self._pool)

        # Test connection on startup
        try:
            self._redis.ping()
            logger.info("Successfully connected to Redis for population statistics")
        except redis.ConnectionError as e:
            logger.warning(
                f"Could not connect to Redis on startup: {e}. "
                "Statistics updates will fail until Redis is available."
            )

    def _make_key(self, key: str) -> str:
        """Create a namespaced key to avoid collisions."""
        return f"{self._key_prefix}{key}"

    @staticmethod
    def _decode(value: Optional[bytes]) -> Optional[str]:
        if value is None:
            return None
        if isinstance(value, bytes):
            return value.decode("utf-8")
        return str(value)

    def get(self, key: str) -> Optional[str]:
        import redis  # type: ignore[import-untyped]

        try:
            return self._decode(self._redis.get(self._make_key(key)))
        except redis.RedisError as e:
            raise StorageError("get", key, e) from e

    def set(self, key: str, value: str, ttl: Optional[int] = None) -> None:
        import redis  # type: ignore[import-untyped]

        try:
            full_key = self._make_key(key)
            if ttl is not None and ttl > 0:
                self._redis.setex(full_key, ttl, value)
            else:
                self._redis.set(full_key, value)
        except redis.RedisError as e:
            raise StorageError("set", key, e) from e

    def compare_and_set(
        self,
        key: str,
        expected: Optional[str],
        value: str,
        ttl: Optional[int] = None,
    ) -> bool:
        import redis  # type: ignore[import-untyped]

        full_key = self._make_key(key)
        try:
            with self._redis.pipeline() as pipe:
                pipe.watch(full_key)
                current = self._decode(pipe.get(full_key))
                if current != expected:
                    pipe.unwatch()
                    return False
                pipe.multi()
                if ttl is not None and ttl > 0:
                    pipe.setex(full_key, ttl, value)
                else:
                    pipe.set(full_key, value)
                pipe.execute()
                return True
        except redis.WatchError:
            return False
        except redis.RedisError as e:
            raise StorageError("compare_and_set", key, e) from e

    def delete(self, key: str) -> None:
        import redis  # type: ignore[import-untyped]

        try:
            self._redis.delete(self._make_key(key))
        except redis.RedisError as e:
            raise StorageError("delete", key, e) from e

    def clear(self) -> None:
        """
        Clear all statistics keys.

        Only clears keys with the configured prefix, not the entire database.
        """
        import redis  # type: ignore[import-untyped]

        pattern = f"{self._key_prefix}*"
        try:
            # Use SCAN to safely iterate over keys without blocking
            cursor: int = 0
            while True:
                cursor, keys = self._redis.scan(cursor, match=pattern, count=100)  # type: ignore[misc]
                if keys:
                    self._redis.delete(*keys)
                if cursor == 0:
                    break
        except redis.RedisError as e:
            raise StorageError("clear", pattern, e) from e

    def is_connected(self) -> bool:
        """
        Check if Redis connection is healthy.

        Returns:
            True if connected and responsive, False otherwise
        """
        import redis  # type: ignore[import-untyped]

        try:
            self._redis.ping()
            return True
        except redis.RedisError:
            return False

    def close(self) -> None:
        """Close the Redis connection pool."""
        self._pool.disconnect()


class DatabaseStorage(StatisticsStorage):
    """
    SQL storage backend on the ``kv_entries`` table.

    Compare-and-swap is a conditional ``UPDATE ... WHERE value = :expected``
    (or an ``INSERT`` relying on the primary key when the key must not
    exist); the affected row count tells whether this writer won.

    ``locked_update`` reads the row with ``SELECT ... FOR UPDATE`` and writes
    it in the same transaction, so concurrent ingests queue on the row lock
    instead of retrying. On SQLite the lock is the database write lock taken
    by ``BEGIN IMMEDIATE`` (see ``create_db_engine``).
    """

    def __init__(self, session_factory: sessionmaker):
        """
        Args:
            session_factory: SQLAlchemy sessionmaker bound to the target database
        """
        self._session_factory = session_factory

    @staticmethod
    def _expires_at(ttl: Optional[int]):
        if ttl is None:
            return None
        return utc_now() + timedelta(seconds=ttl)

    @staticmethod
    def _not_expired():
        return or_(
            KeyValueEntry.expires_at.is_(None),
            KeyValueEntry.expires_at > utc_now(),
        )

    def _purge_expired(self, db: Session, key: str) -> None:
        db.execute(
            delete(KeyValueEntry).where(
                KeyValueEntry.key == key,
                KeyValueEntry.expires_at.is_not(None),
                KeyValueEntry.expires_at <= utc_now(),
            )
        )

    def get(self, key: str) -> Optional[str]:
        try:
            with self._session_factory() as db:
                return db.execute(
                    select(KeyValueEntry.value).where(
                        KeyValueEntry.key == key, self._not_expired()
                    )
                ).scalar_one_or_none()
        except SQLAlchemyError as e:
            raise StorageError("get", key, e) from e

    def set(self, key: str, value: str, ttl: Optional[int] = None) -> None:
        try:
            with self._session_factory() as db:
                entry = db.get(KeyValueEntry, key)
                if entry is None:
                    db.add(
                        KeyValueEntry(
                            key=key, value=value, expires_at=self._expires_at(ttl)
                        )
                    )
                else:
                    entry.value = value
                    entry.expires_at = self._expires_at(ttl)
                    entry.updated_at = utc_now()
                db.commit()
        except SQLAlchemyError as e:
            raise StorageError("set", key, e) from e

    def compare_and_set(
        self,
        key: str,
        expected: Optional[str],
        value: str,
        ttl: Optional[int] = None,
    ) -> bool:
        try:
            with self._session_factory() as db:
                if expected is None:
                    self._purge_expired(db, key)
                    db.add(
                        KeyValueEntry(
                            key=key, value=value, expires_at=self._expires_at(ttl)
                        )
                    )
                    try:
                        db.commit()
                    except IntegrityError:
                        db.rollback()
                        return False
                    return True

                result = db.execute(
                    update(KeyValueEntry)
                    .where(
                        KeyValueEntry.key == key,
                        KeyValueEntry.value == expected,
                        self._not_expired(),
                    )
                    .values(
                        value=value,
                        expires_at=self._expires_at(ttl),
                        updated_at=utc_now(),
                    )
                )
                db.commit()
                return result.rowcount == 1
        except SQLAlchemyError as e:
            raise StorageError("compare_and_set", key, e) from e

    supports_locked_update = True

    def locked_update(
        self,
        key: str,
        transform: Callable[[Optional[str]], str],
        ttl: Optional[int] = None,
    ) -> str:
        try:
            with self._session_factory() as db:
                self._purge_expired(db, key)
                entry = db.execute(
                    select(KeyValueEntry)
                    .where(KeyValueEntry.key == key)
                    .with_for_update()
                ).scalar_one_or_none()

                value = transform(entry.value if entry is not None else None)
                if entry is None:
                    db.add(
                        KeyValueEntry(
                            key=key, value=value, expires_at=self._expires_at(ttl)
                        )
                    )
                else:
                    entry.value = value
                    entry.expires_at = self._expires_at(ttl)
                    entry.updated_at = utc_now()
                db.commit()
                return value
        except SQLAlchemyError as e:
            raise StorageError("locked_update", key, e) from e

    def delete(self, key: str) -> None:
        try:
            with self._session_factory() as db:
                db.execute(delete(KeyValueEntry).where(KeyValueEntry.key == key))
                db.commit()
        except SQLAlchemyError as e:
            raise StorageError("delete", key, e) from e

    def clear(self) -> None:
        try:
            with self._session_factory() as db:
                db.execute(delete(KeyValueEntry))
                db.commit()
        except SQLAlchemyError as e:
            raise StorageError("clear", "*", e) from e

    def close(self) -> None:
        engine = self._session_factory.kw.get("bind")
        if engine is not None:
            engine.dispose()
