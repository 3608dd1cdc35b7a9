from __future__ import annotations

import atexit
import logging
import random
import threading
from datetime import datetime, timedelta
from typing import Dict, List, Optional

import pytz
from apscheduler.jobstores.base import JobLookupError
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.date import DateTrigger
from apscheduler.triggers.interval import IntervalTrigger
from flask import current_app, has_app_context

from workforce_dashboard.extensions import db
from workforce_dashboard.models import SourceConfig
from workforce_sync.config.settings import settings
from workforce_sync.services.sync_runner import run_sync

logger = logging.getLogger(__name__)

_sync_scheduler: Optional['SyncScheduler'] = None


def _with_app_context(app, func, *args, **kwargs):
    with app.app_context():
        return func(app, *args, **kwargs)


def _job_id(source_id: str) -> str:
    return f'sync_source_{source_id}'


class SyncScheduler:
    """One interval job per active source plus a per-source in-flight guard."""

    def __init__(self, app, scheduler: Optional[BackgroundScheduler] = None):
        self.app = app
        self.timezone = pytz.timezone(settings.attendance_timezone)
        self.scheduler = scheduler or BackgroundScheduler(timezone=self.timezone)
        self._lock = threading.RLock()
        self._intervals: Dict[str, int] = {}
        self._in_flight: set[str] = set()

    # --- стан ---

    @property
    def running(self) -> bool:
        return bool(self.scheduler.running)

    def scheduled_sources(self) -> Dict[str, int]:
        with self._lock:
            return dict(self._intervals)

    def is_running(self, source_id: str) -> bool:
        with self._lock:
            return source_id in self._in_flight

    def _claim(self, source_id: str) -> bool:
        with self._lock:
            if source_id in self._in_flight:
                return False
            self._in_flight.add(source_id)
            return True

    def _release(self, source_id: str) -> None:
        with self._lock:
            self._in_flight.discard(source_id)

    # --- таймери ---

    def _desired(self) -> Dict[str, int]:
        sources = SourceConfig.query.filter_by(status='active', sync_enabled=True).all()
        return {source.id: source.interval_minutes for source in sources}

    def refresh_schedules(self) -> Dict[str, int]:
        """Diff active sources against current jobs; start, restart or stop timers."""
        if has_app_context():
            desired = self._desired()
        else:
            with self.app.app_context():
                desired = self._desired()

        with self._lock:
            for source_id in set(self._intervals) - set(desired):
                self.stop(source_id)
            for source_id, minutes in desired.items():
                if self._intervals.get(source_id) == minutes:
                    continue
                if source_id in self._intervals:
                    self.scheduler.remove_job(_job_id(source_id))
                self.scheduler.add_job(
                    _with_app_context,
                    IntervalTrigger(minutes=minutes, timezone=self.timezone),
                    args=(self.app, self._scheduled_tick, source_id),
                    id=_job_id(source_id),
                    replace_existing=True,
                    max_instances=1,
                    coalesce=True,
                )
                self._intervals[source_id] = minutes
                logger.info(f"[scheduler] Source {source_id} scheduled every {minutes} min")
            return dict(self._intervals)

    def stop(self, source_id: str) -> None:
        with self._lock:
            try:
                self.scheduler.remove_job(_job_id(source_id))
            except JobLookupError:
                pass
            if self._intervals.pop(source_id, None) is not None:
                logger.info(f"[scheduler] Source {source_id} timer stopped")

    # --- запуски ---

    def _execute(self, source_id: str, trigger: str):
        try:
            return run_sync(source_id, trigger=trigger)
        except Exception:
            logger.exception(f"[scheduler] Sync run for {source_id} crashed")
            db.session.rollback()
            return None
        finally:
            self._release(source_id)

    def _scheduled_tick(self, app, source_id: str):
        source = db.session.get(SourceConfig, source_id)
        if source is None or not source.is_schedulable:
            logger.info(f"[scheduler] Source {source_id} is no longer active, stopping timer")
            self.stop(source_id)
            return None
        if not self._claim(source_id):
            logger.warning(f"[scheduler] Source {source_id} still running, tick skipped")
            return None
        return self._execute(source_id, 'scheduled')

    def _manual_run(self, app, source_id: str):
        return self._execute(source_id, 'manual')

    def trigger_manual_sync(self, source_id: str) -> bool:
        """Start a run in the background; False when one is already in flight."""
        if not self._claim(source_id):
            return False
        if self.running:
            self.scheduler.add_job(
                _with_app_context,
                args=(self.app, self._manual_run, source_id),
                id=f'manual_sync_{source_id}_{datetime.now().timestamp():.0f}',
                misfire_grace_time=None,
            )
        else:
            thread = threading.Thread(
                target=_with_app_context,
                args=(self.app, self._manual_run, source_id),
                daemon=True,
            )
            thread.start()
        logger.info(f"[scheduler] Manual sync queued for {source_id}")
        return True

    def schedule_initial_runs(self) -> List[str]:
        if has_app_context():
            desired = self._desired()
        else:
            with self.app.app_context():
                desired = self._desired()
        now = datetime.now(self.timezone)
        for source_id in desired:
            delay = settings.sync_initial_delay_seconds + random.randint(0, max(settings.sync_initial_jitter_seconds, 0))
            self.scheduler.add_job(
                _with_app_context,
                DateTrigger(run_date=now + timedelta(seconds=delay)),
                args=(self.app, self._scheduled_tick, source_id),
                id=f'initial_sync_{source_id}',
                replace_existing=True,
            )
        return list(desired)

    def jobs(self) -> List[dict]:
        return [
            {
                'id': job.id,
                'trigger': str(job.trigger),
                'next_run_time': job.next_run_time.isoformat() if getattr(job, 'next_run_time', None) else None,
            }
            for job in self.scheduler.get_jobs()
        ]

    def start(self) -> None:
        self.refresh_schedules()
        if settings.sync_initial_run:
            self.schedule_initial_runs()
        self.scheduler.start()
        logger.info(f"[scheduler] Background scheduler started (timezone: {self.timezone.zone})")

    def shutdown(self) -> None:
        if self.running:
            self.scheduler.shutdown(wait=False)


def get_sync_scheduler() -> Optional[SyncScheduler]:
    if has_app_context():
        return current_app.extensions.get('sync_scheduler')
    return _sync_scheduler


def register_tasks(app) -> SyncScheduler:
    global _sync_scheduler
    existing = app.extensions.get('sync_scheduler')
    if existing is not None:
        return existing

    sync_scheduler = SyncScheduler(app)
    app.extensions['sync_scheduler'] = sync_scheduler
    _sync_scheduler = sync_scheduler

    if app.config.get('ENABLE_SCHEDULER'):
        sync_scheduler.start()
        atexit.register(sync_scheduler.shutdown)
    return sync_scheduler
