"""One Sync Run: fetch -> parse -> classify -> upsert, recorded on an ImportLog."""
from __future__ import annotations
import logging
import time
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

from workforce_dashboard.extensions import db
from workforce_dashboard.models import ImportLog, SourceConfig
from workforce_sync.client.source_fetcher import fetch
from workforce_sync.config.settings import settings
from workforce_sync.domain.classifier import DataType, classify
from workforce_sync.domain.record_parser import Record, parse
from workforce_sync.errors import SyncError
from workforce_sync.services.attendance_import import upsert_attendance
from workforce_sync.services.employee_import import upsert_employee
from workforce_sync.services.lookup_normalizer import LookupResolver
from workforce_sync.services.outcomes import Outcome
from workforce_sync.services.store_retry import with_store_retry

logger = logging.getLogger(__name__)


@dataclass
class RunCounters:
    total: int = 0
    imported: int = 0
    failed: int = 0
    skipped: int = 0
    reasons: Dict[str, int] = field(default_factory=dict)

    @property
    def processed(self) -> int:
        return self.imported + self.failed + self.skipped

    def add(self, data_type: DataType, outcome: Outcome, reason: Optional[str]) -> None:
        if outcome is Outcome.IMPORTED:
            self.imported += 1
            return
        if reason:
            self.reasons[reason] = self.reasons.get(reason, 0) + 1
        # для працівників відсутня картка рахується як помилка
        if outcome is Outcome.SKIPPED and data_type is DataType.ATTENDANCE:
            self.skipped += 1
        else:
            self.failed += 1


def load_records(source: SourceConfig) -> List[Record]:
    payload = fetch(source.descriptor(), timeout=settings.fetch_timeout_seconds)
    return parse(payload)


def _commit() -> None:
    with_store_retry(db.session.commit)


def _start(source: SourceConfig, trigger: str) -> ImportLog:
    entry = ImportLog(
        source_id=source.id,
        source_name=source.name,
        source_url=source.location,
        status='in_progress',
        details={'trigger': trigger},
    )
    db.session.add(entry)
    source.last_sync_status = 'in_progress'
    source.sync_progress_current = 0
    source.sync_progress_total = 0
    _commit()
    return entry


def _fail(source: SourceConfig, entry: ImportLog, message: str, counters: RunCounters) -> None:
    db.session.rollback()
    entry.status = 'failed'
    entry.error_message = message
    entry.records_total = counters.total
    entry.records_imported = counters.imported
    entry.records_failed = counters.failed
    entry.completed_at = datetime.utcnow()
    source.last_sync_at = datetime.utcnow()
    source.last_sync_status = 'failed'
    _commit()


def _checkpoint(source: SourceConfig, counters: RunCounters) -> None:
    source.sync_progress_current = counters.processed
    _commit()
    logger.info(f"[sync] [{source.name}] Progress: {counters.processed}/{counters.total}")


def run_sync(source_id: str, trigger: str = 'scheduled') -> Optional[Dict[str, Any]]:
    """Execute a Sync Run for ``source_id`` inside the current app context.

    Returns the ImportLog as a dict, or None when the source does not exist.
    """
    source = db.session.get(SourceConfig, source_id)
    if source is None:
        logger.warning(f"[sync] Source {source_id} not found, run skipped")
        return None

    started = time.monotonic()
    entry = _start(source, trigger)
    counters = RunCounters()
    logger.info(f"[sync] [{source.name}] Run started ({trigger})")

    try:
        records = load_records(source)
        counters.total = len(records)
        data_type = classify(records[0]) if records else DataType.EMPLOYEE
        logger.info(f"[sync] [{source.name}] {counters.total} records, detected {data_type.value} data")
        source.sync_progress_total = counters.total
        entry.details = {'trigger': trigger, 'dataType': data_type.value}
        _commit()

        resolver = LookupResolver()
        every = max(settings.sync_progress_every, 1)
        for index, record in enumerate(records, start=1):
            if data_type is DataType.ATTENDANCE:
                result = upsert_attendance(record)
            else:
                result = upsert_employee(record, resolver)
            counters.add(data_type, result.outcome, result.reason)
            if index % every == 0 or index == counters.total:
                _checkpoint(source, counters)
    except SyncError as exc:
        logger.error(f"[sync] [{source.name}] Run failed: {exc}")
        _fail(source, entry, str(exc), counters)
        return entry.to_dict()
    except Exception as exc:
        logger.exception(f"[sync] [{source.name}] Unexpected error")
        _fail(source, entry, str(exc) or exc.__class__.__name__, counters)
        return entry.to_dict()

    status = 'partial' if counters.failed > 0 else 'completed'
    entry.status = status
    entry.records_total = counters.total
    entry.records_imported = counters.imported
    entry.records_failed = counters.failed
    entry.details = {
        'trigger': trigger,
        'dataType': data_type.value,
        'skipped': counters.skipped,
        'reasons': counters.reasons,
    }
    entry.completed_at = datetime.utcnow()
    source.last_sync_at = datetime.utcnow()
    source.last_sync_status = status
    source.sync_progress_current = counters.processed
    _commit()

    duration = time.monotonic() - started
    logger.info(
        f"[sync] [{source.name}] Complete: {counters.imported} imported, {counters.failed} failed, "
        f"{counters.skipped} skipped in {duration:.1f}s"
    )
    return entry.to_dict()


def test_source(source_id: str) -> Dict[str, Any]:
    """Fetch and parse a source without importing anything."""
    source = db.session.get(SourceConfig, source_id)
    if source is None:
        raise LookupError(source_id)

    source.last_test_at = datetime.utcnow()
    try:
        records = load_records(source)
    except SyncError as exc:
        source.last_test_status = 'failed'
        _commit()
        logger.warning(f"[sync] [{source.name}] Test failed: {exc}")
        return {'success': False, 'error': str(exc)}

    source.last_test_status = 'success'
    if source.status == 'draft':
        source.status = 'tested'
    _commit()

    sample = records[0] if records else None
    return {
        'success': True,
        'record_count': len(records),
        'data_type': classify(sample).value if sample else None,
        'sample': sample,
        'fields': list(sample.keys()) if sample else [],
    }
