"""
Ignore List

Sender addresses and service types excluded from matching, read from the
configuration table (Ignored_Emails / Ignored_Services) and cached with an
explicit expiry policy.

Comparisons are case-insensitive exact matches.
"""

import threading
import time
from dataclasses import dataclass, field
from typing import Callable, Iterable, Optional, Protocol

import structlog
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from sqlalchemy.sql import func

from app import database
from app.config import settings
from app.database import insert_for
from app.errors import StorageError
from app.models.app_configuration import AppConfiguration

logger = structlog.get_logger(__name__)

IGNORED_EMAILS_KEY = "Ignored_Emails"
IGNORED_SERVICES_KEY = "Ignored_Services"


class IgnoreList(Protocol):
    """Anything the ranker can ask about excluded senders and services."""

    def is_ignored_sender(self, sender_email: Optional[str]) -> bool: ...

    def is_ignored_service(self, service_type: Optional[str]) -> bool: ...


def _normalize(values: Optional[Iterable]) -> frozenset:
    return frozenset(str(v).strip().lower() for v in (values or []) if v and str(v).strip())


@dataclass(frozen=True)
class IgnoreListSnapshot:
    """Immutable ignore-list contents at one point in time."""
    emails: frozenset = field(default_factory=frozenset)
    services: frozenset = field(default_factory=frozenset)

    @classmethod
    def from_values(cls, emails: Optional[Iterable] = None, services: Optional[Iterable] = None):
        return cls(emails=_normalize(emails), services=_normalize(services))

    def is_ignored_sender(self, sender_email: Optional[str]) -> bool:
        if not sender_email:
            return False
        return sender_email.strip().lower() in self.emails

    def is_ignored_service(self, service_type: Optional[str]) -> bool:
        if not service_type:
            return False
        return service_type.strip().lower() in self.services


class StaticIgnoreList(IgnoreListSnapshot):
    """Fixed ignore list, for tests and one-off scripts."""

    def __init__(self, emails: Optional[Iterable] = None, services: Optional[Iterable] = None):
        super().__init__(emails=_normalize(emails), services=_normalize(services))


@dataclass(frozen=True)
class ExpiryPolicy:
    """A snapshot loaded at loaded_at is stale once ttl_seconds have passed."""
    ttl_seconds: float = 300.0

    def is_expired(self, loaded_at: Optional[float], now: float) -> bool:
        return loaded_at is None or now - loaded_at >= self.ttl_seconds


class IgnoreListCache:
    """
    Lazily refreshed ignore list.

    Usage:
        cache = IgnoreListCache(loader=lambda: load_ignore_list(db))
        if cache.is_ignored_sender("noreply@carrier.com"):
            ...

    The loader runs at most once per expiry window; concurrent callers that
    find the snapshot stale wait on one refresh instead of stampeding the
    database. Loader errors propagate.
    """

    def __init__(
        self,
        loader: Callable[[], IgnoreListSnapshot],
        policy: Optional[ExpiryPolicy] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._loader = loader
        self.policy = policy or ExpiryPolicy()
        self._clock = clock
        self._lock = threading.Lock()
        self._snapshot: Optional[IgnoreListSnapshot] = None
        self._loaded_at: Optional[float] = None

    def refresh(self) -> IgnoreListSnapshot:
        """Reload from the source regardless of expiry."""
        with self._lock:
            return self._load()

    def lookup(self) -> IgnoreListSnapshot:
        """Current snapshot, reloading first if it has expired."""
        if not self.policy.is_expired(self._loaded_at, self._clock()):
            return self._snapshot
        with self._lock:
            # Another thread may have refreshed while we waited
            if self.policy.is_expired(self._loaded_at, self._clock()):
                return self._load()
            return self._snapshot

    def invalidate(self) -> None:
        with self._lock:
            self._loaded_at = None

    def is_ignored_sender(self, sender_email: Optional[str]) -> bool:
        return self.lookup().is_ignored_sender(sender_email)

    def is_ignored_service(self, service_type: Optional[str]) -> bool:
        return self.lookup().is_ignored_service(service_type)

    def _load(self) -> IgnoreListSnapshot:
        snapshot = self._loader()
        self._snapshot = snapshot
        self._loaded_at = self._clock()
        logger.debug("ignore_list_refreshed",
                     emails=len(snapshot.emails),
                     services=len(snapshot.services))
        return snapshot


def get_configuration_value(db: Session, key: str):
    """JSON value for a configuration key, None when unset."""
    row = db.query(AppConfiguration).filter(AppConfiguration.key == key).first()
    return row.value if row else None


def set_configuration_value(db: Session, key: str, value) -> None:
    """
    Insert or replace a configuration value.

    Raises:
        StorageError: database write failed
    """
    try:
        stmt = insert_for(db, AppConfiguration).values(key=key, value=value)
        stmt = stmt.on_conflict_do_update(
            index_elements=["key"],
            set_={"value": stmt.excluded.value, "updated_at": func.now()},
        )
        db.execute(stmt)
        db.commit()
        logger.info("configuration_value_set", key=key)
    except SQLAlchemyError as e:
        db.rollback()
        logger.error("configuration_value_set_failed", key=key, error=str(e))
        raise StorageError("configuration write", e) from e


def load_ignore_list(db: Session) -> IgnoreListSnapshot:
    """Read Ignored_Emails and Ignored_Services into a snapshot."""
    return IgnoreListSnapshot.from_values(
        emails=get_configuration_value(db, IGNORED_EMAILS_KEY),
        services=get_configuration_value(db, IGNORED_SERVICES_KEY),
    )


def session_loader(session_factory: Callable[[], Session]) -> Callable[[], IgnoreListSnapshot]:
    """Loader that opens its own session per refresh (for long-lived caches)."""

    def _load() -> IgnoreListSnapshot:
        db = session_factory()
        try:
            return load_ignore_list(db)
        finally:
            db.close()

    return _load


_default_cache: Optional[IgnoreListCache] = None
_default_cache_lock = threading.Lock()


def get_default_cache() -> Optional[IgnoreListCache]:
    """
    Process-wide cache over the configured database, None when no database.

    Used by the API and the worker; tests inject their own IgnoreList.
    """
    global _default_cache
    if database.SessionLocal is None:
        return None
    with _default_cache_lock:
        if _default_cache is None:
            _default_cache = IgnoreListCache(
                loader=session_loader(database.SessionLocal),
                policy=ExpiryPolicy(ttl_seconds=settings.ignore_list_ttl_seconds),
            )
        return _default_cache
