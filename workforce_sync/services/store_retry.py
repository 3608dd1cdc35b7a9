"""Retry of storage calls on lost connectivity and per-key write locks."""
from __future__ import annotations
import logging
import threading
import time
from collections import defaultdict
from contextlib import contextmanager
from typing import Callable, Dict, Hashable, Iterator, TypeVar

from sqlalchemy.exc import DBAPIError, DisconnectionError, OperationalError

from workforce_dashboard.extensions import db
from workforce_sync.config.settings import settings
from workforce_sync.errors import StoreUnavailable

logger = logging.getLogger(__name__)

T = TypeVar('T')


def is_connectivity_error(exc: BaseException) -> bool:
    if isinstance(exc, (OperationalError, DisconnectionError)):
        return True
    return isinstance(exc, DBAPIError) and bool(exc.connection_invalidated)


def with_store_retry(func: Callable[..., T], *args, attempts: int | None = None,
                     backoff: float | None = None, **kwargs) -> T:
    """Call ``func``; on a dropped connection roll back and retry with linear backoff."""
    attempts = attempts or settings.store_retry_attempts
    backoff = settings.store_retry_backoff_seconds if backoff is None else backoff
    for attempt in range(1, attempts + 1):
        try:
            return func(*args, **kwargs)
        except Exception as exc:
            if not is_connectivity_error(exc):
                raise
            db.session.rollback()
            if attempt >= attempts:
                logger.error(f"[store] Giving up after {attempts} attempts: {exc}")
                raise StoreUnavailable(str(exc)) from exc
            delay = backoff * attempt
            logger.warning(f"[store] Connection lost (attempt {attempt}/{attempts}), retry in {delay:.1f}s")
            time.sleep(delay)
    raise StoreUnavailable('no attempts made')


class KeyedLocks:
    """Process-local mutex per natural key (card number, employee+day)."""

    def __init__(self):
        self._guard = threading.Lock()
        self._locks: Dict[Hashable, threading.Lock] = defaultdict(threading.Lock)
        self._users: Dict[Hashable, int] = defaultdict(int)

    @contextmanager
    def hold(self, key: Hashable) -> Iterator[None]:
        with self._guard:
            lock = self._locks[key]
            self._users[key] += 1
        lock.acquire()
        try:
            yield
        finally:
            lock.release()
            with self._guard:
                self._users[key] -= 1
                if self._users[key] <= 0:
                    self._users.pop(key, None)
                    self._locks.pop(key, None)
