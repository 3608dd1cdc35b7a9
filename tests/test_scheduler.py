import threading

import pytest
from apscheduler.schedulers.background import BackgroundScheduler

from tests.conftest import add_source
from workforce_dashboard import tasks
from workforce_dashboard.extensions import db
from workforce_dashboard.tasks import SyncScheduler


@pytest.fixture
def scheduler(ctx):
    return SyncScheduler(ctx, BackgroundScheduler())


def _job_ids(scheduler):
    return sorted(job.id for job in scheduler.scheduler.get_jobs())


def test_refresh_schedules_active_sources_only(scheduler):
    active = add_source(name='A', status='active', sync_interval_hours=1, sync_interval_minutes=30)
    add_source(name='B', status='tested')
    add_source(name='C', status='active', sync_enabled=False)

    scheduled = scheduler.refresh_schedules()

    assert scheduled == {active.id: 90}
    assert _job_ids(scheduler) == [f'sync_source_{active.id}']


def test_interval_has_one_minute_floor(scheduler):
    source = add_source(name='Fast', status='active', sync_interval_hours=0, sync_interval_minutes=0)
    assert scheduler.refresh_schedules() == {source.id: 1}


def test_refresh_diffs_changes(scheduler):
    first = add_source(name='A', status='active', sync_interval_minutes=10)
    second = add_source(name='B', status='active', sync_interval_minutes=10)
    scheduler.refresh_schedules()

    first.sync_interval_minutes = 20
    second.sync_enabled = False
    db.session.commit()
    scheduled = scheduler.refresh_schedules()

    assert scheduled == {first.id: 20}
    assert _job_ids(scheduler) == [f'sync_source_{first.id}']


def test_tick_for_inactive_source_stops_timer(scheduler, monkeypatch):
    calls = []
    monkeypatch.setattr(tasks, 'run_sync', lambda *a, **k: calls.append(a))
    source = add_source(name='A', status='active')
    scheduler.refresh_schedules()

    source.status = 'tested'
    db.session.commit()
    scheduler._scheduled_tick(scheduler.app, source.id)

    assert calls == []
    assert scheduler.scheduled_sources() == {}
    assert _job_ids(scheduler) == []


def test_tick_runs_sync(scheduler, monkeypatch):
    calls = []
    monkeypatch.setattr(tasks, 'run_sync', lambda source_id, trigger: calls.append((source_id, trigger)))
    source = add_source(name='A', status='active')
    scheduler._scheduled_tick(scheduler.app, source.id)
    assert calls == [(source.id, 'scheduled')]
    assert not scheduler.is_running(source.id)


def test_tick_skipped_while_run_in_flight(scheduler, monkeypatch):
    calls = []
    monkeypatch.setattr(tasks, 'run_sync', lambda *a, **k: calls.append(a))
    source = add_source(name='A', status='active')
    assert scheduler._claim(source.id)

    scheduler._scheduled_tick(scheduler.app, source.id)

    assert calls == []
    assert scheduler.trigger_manual_sync(source.id) is False


def test_manual_trigger_runs_in_background(scheduler, monkeypatch):
    done = threading.Event()
    seen = []

    def fake_run(source_id, trigger):
        seen.append((source_id, trigger))
        done.set()

    monkeypatch.setattr(tasks, 'run_sync', fake_run)
    source = add_source(name='Draft', status='draft', sync_enabled=False)

    assert scheduler.trigger_manual_sync(source.id) is True
    assert done.wait(5)
    assert seen == [(source.id, 'manual')]


def test_crashing_run_releases_guard(scheduler, monkeypatch):
    def boom(*args, **kwargs):
        raise RuntimeError('db down')

    monkeypatch.setattr(tasks, 'run_sync', boom)
    source = add_source(name='A', status='active')
    scheduler._scheduled_tick(scheduler.app, source.id)
    assert not scheduler.is_running(source.id)


def test_initial_runs_and_job_listing(scheduler):
    source = add_source(name='A', status='active')
    scheduler.refresh_schedules()
    assert scheduler.schedule_initial_runs() == [source.id]

    ids = {job['id'] for job in scheduler.jobs()}
    assert ids == {f'sync_source_{source.id}', f'initial_sync_{source.id}'}


def test_stop_unknown_source_is_noop(scheduler):
    scheduler.stop('missing')
    assert scheduler.scheduled_sources() == {}


def test_register_tasks_keeps_one_scheduler(app):
    first = app.extensions['sync_scheduler']
    assert tasks.register_tasks(app) is first
    assert not first.running
    with app.app_context():
        assert tasks.get_sync_scheduler() is first
