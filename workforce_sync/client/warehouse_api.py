"""Клієнт для віддаленого сховища відміток (warehouse)."""
from __future__ import annotations
import logging
import threading
import time
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Dict, List, Optional

import requests

from workforce_sync.config.settings import settings
from workforce_sync.domain.card_numbers import normalize_card_number

logger = logging.getLogger(__name__)


def _plain(value: Any) -> Optional[str]:
    """Warehouse returns time columns either as strings or as ``{"value": ...}``."""
    if isinstance(value, dict):
        value = value.get('value')
    if value is None:
        return None
    return str(value)


def _flag(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    try:
        return int(value) == 1
    except (TypeError, ValueError):
        return False


@dataclass
class RemoteAttendanceRow:
    card_no: str
    day: Optional[date] = None
    t_in: Optional[str] = None
    t_out: Optional[str] = None
    result_t_in: Optional[str] = None
    result_t_out: Optional[str] = None
    status: str = ''
    present: bool = False
    raw: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_api(cls, row: Dict[str, Any], day: Optional[date] = None) -> 'RemoteAttendanceRow':
        return cls(
            card_no=normalize_card_number(row.get('card_no') or row.get('cardno')),
            day=day,
            t_in=_plain(row.get('t_in')),
            t_out=_plain(row.get('t_out')),
            result_t_in=_plain(row.get('result_t_in')),
            result_t_out=_plain(row.get('result_t_out')),
            status=_plain(row.get('STATUS') or row.get('status')) or '',
            present=_flag(row.get('P')),
            raw=row,
        )


class WarehouseClient:
    """Отримує відмітки за дату; результат кешується на короткий час."""

    def __init__(self, base_url: Optional[str] = None, api_key: Optional[str] = None,
                 cache_ttl: Optional[float] = None):
        self.base_url = (base_url or settings.warehouse_base_url or '').rstrip('/')
        self.headers = {'Accept': 'application/json'}
        key = api_key if api_key is not None else settings.warehouse_api_key
        if key:
            self.headers['X-API-KEY'] = key
        self.cache_ttl = settings.warehouse_cache_ttl_seconds if cache_ttl is None else cache_ttl
        self._cache: Dict[date, tuple[float, Dict[str, RemoteAttendanceRow]]] = {}
        self._lock = threading.Lock()

    def is_configured(self) -> bool:
        return bool(settings.warehouse_enabled and self.base_url)

    def _get(self, endpoint: str, params: Optional[Dict] = None) -> Any:
        url = f"{self.base_url}{endpoint}"
        try:
            response = requests.get(url, headers=self.headers, params=params,
                                    timeout=settings.warehouse_timeout_seconds)
            response.raise_for_status()
            return response.json()
        except requests.exceptions.RequestException as e:
            logger.error(f"[warehouse] Request to {url} failed: {e}")
            raise

    def fetch_rows(self, day: date) -> List[Dict[str, Any]]:
        data = self._get('/attendance', params={'date': day.isoformat()})
        if isinstance(data, dict):
            data = data.get('records') or data.get('data') or []
        return [row for row in data if isinstance(row, dict)]

    def get_attendance_for_date(self, day: date) -> Dict[str, RemoteAttendanceRow]:
        """Rows for ``day`` keyed by normalized card number."""
        now = time.monotonic()
        with self._lock:
            cached = self._cache.get(day)
            if cached and now - cached[0] < self.cache_ttl:
                logger.debug(f"[warehouse] Cache hit for {day}")
                return cached[1]

        rows = self.fetch_rows(day)
        by_card: Dict[str, RemoteAttendanceRow] = {}
        for row in rows:
            remote = RemoteAttendanceRow.from_api(row, day)
            if remote.card_no:
                by_card[remote.card_no] = remote
        logger.info(f"[warehouse] {len(by_card)} rows for {day}")

        with self._lock:
            self._cache[day] = (time.monotonic(), by_card)
        return by_card

    def clear_cache(self) -> None:
        with self._lock:
            self._cache.clear()


_client: Optional[WarehouseClient] = None


def get_warehouse_client() -> WarehouseClient:
    global _client
    if _client is None:
        _client = WarehouseClient()
    return _client
