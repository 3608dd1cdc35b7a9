"""CRUD for SourceConfig. Every mutation reschedules the timers."""
from __future__ import annotations
import logging
from typing import Any, Dict, List, Mapping, Optional

from workforce_dashboard.extensions import db
from workforce_dashboard.models import SourceConfig
from workforce_sync.errors import SourceConfigError

logger = logging.getLogger(__name__)

KINDS = ('api', 'csv')
METHODS = ('GET', 'POST')
STATUSES = ('draft', 'tested', 'active')

EDITABLE_FIELDS = (
    'name', 'description', 'kind', 'endpoint', 'csv_url', 'csv_file_path', 'method', 'headers',
    'sync_enabled', 'sync_interval_hours', 'sync_interval_minutes', 'status',
)


def _int_field(payload: Mapping[str, Any], name: str, default: int) -> int:
    value = payload.get(name, default)
    if value in (None, ''):
        return default
    try:
        number = int(value)
    except (TypeError, ValueError):
        raise SourceConfigError(f'{name} must be an integer')
    if number < 0:
        raise SourceConfigError(f'{name} must not be negative')
    return number


def _clean(payload: Mapping[str, Any], current: Optional[SourceConfig] = None) -> Dict[str, Any]:
    data = {key: payload[key] for key in EDITABLE_FIELDS if key in payload}
    merged = {key: getattr(current, key) for key in EDITABLE_FIELDS} if current else {}
    merged.update(data)

    name = (merged.get('name') or '').strip()
    if not name:
        raise SourceConfigError('name is required')
    data['name'] = name

    kind = (merged.get('kind') or 'api').lower()
    if kind not in KINDS:
        raise SourceConfigError(f'kind must be one of {", ".join(KINDS)}')
    data['kind'] = kind

    method = (merged.get('method') or 'GET').upper()
    if method not in METHODS:
        raise SourceConfigError(f'method must be one of {", ".join(METHODS)}')
    data['method'] = method

    if kind == 'api' and not merged.get('endpoint'):
        raise SourceConfigError('endpoint is required for api sources')
    if kind == 'csv' and not (merged.get('csv_url') or merged.get('csv_file_path')):
        raise SourceConfigError('csv_url or csv_file_path is required for csv sources')

    headers = merged.get('headers') or {}
    if not isinstance(headers, dict):
        raise SourceConfigError('headers must be an object')
    data['headers'] = {str(key): str(value) for key, value in headers.items()}

    status = merged.get('status') or 'draft'
    if status not in STATUSES:
        raise SourceConfigError(f'status must be one of {", ".join(STATUSES)}')
    data['status'] = status

    data['sync_interval_hours'] = _int_field(merged, 'sync_interval_hours', 0)
    data['sync_interval_minutes'] = _int_field(merged, 'sync_interval_minutes', 10)
    if 'sync_enabled' in merged:
        data['sync_enabled'] = bool(merged['sync_enabled'])

    duplicate = SourceConfig.query.filter(SourceConfig.name == name)
    if current is not None:
        duplicate = duplicate.filter(SourceConfig.id != current.id)
    if duplicate.first() is not None:
        raise SourceConfigError(f"source '{name}' already exists")
    return data


def _refresh(source_id: Optional[str] = None, deleted: bool = False) -> None:
    from workforce_dashboard.tasks import get_sync_scheduler

    scheduler = get_sync_scheduler()
    if scheduler is None:
        return
    if deleted and source_id:
        scheduler.stop(source_id)
    scheduler.refresh_schedules()


def list_sources() -> List[SourceConfig]:
    return SourceConfig.query.order_by(SourceConfig.created_at.desc()).all()


def get_source(source_id: str) -> Optional[SourceConfig]:
    return db.session.get(SourceConfig, source_id)


def create_source(payload: Mapping[str, Any]) -> SourceConfig:
    source = SourceConfig(**_clean(payload))
    db.session.add(source)
    db.session.commit()
    logger.info(f"[registry] Source '{source.name}' created ({source.id})")
    _refresh()
    return source


def update_source(source_id: str, payload: Mapping[str, Any]) -> Optional[SourceConfig]:
    source = get_source(source_id)
    if source is None:
        return None
    for key, value in _clean(payload, source).items():
        setattr(source, key, value)
    db.session.commit()
    logger.info(f"[registry] Source '{source.name}' updated")
    _refresh()
    return source


def delete_source(source_id: str) -> bool:
    source = get_source(source_id)
    if source is None:
        return False
    name = source.name
    db.session.delete(source)
    db.session.commit()
    logger.info(f"[registry] Source '{name}' deleted")
    _refresh(source_id, deleted=True)
    return True
