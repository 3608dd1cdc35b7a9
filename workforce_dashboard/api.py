from __future__ import annotations

import logging
from datetime import datetime

from flask import Blueprint, abort, jsonify, request
from flask_login import current_user, login_required

from workforce_sync.config.settings import settings
from workforce_sync.errors import SourceConfigError
from workforce_sync.services import reconciliation, source_registry, sync_runner
from .constants import DATE_TYPES, SNAPSHOT_DEFAULT_LIMIT, SNAPSHOT_MAX_LIMIT, SNAPSHOT_STATUSES
from .extensions import db
from .models import AdminAuditLog, ImportLog
from .tasks import get_sync_scheduler

logger = logging.getLogger(__name__)

api_bp = Blueprint('api', __name__)


def _ensure_admin() -> None:
    if not getattr(current_user, 'is_admin', False):
        abort(403)


def _log_admin_action(action: str, details: dict) -> None:
    entry = AdminAuditLog(
        user_id=getattr(current_user, 'id', None) if hasattr(current_user, 'id') else None,
        action=action,
        details=details,
    )
    db.session.add(entry)


def _int_arg(name: str, default: int, minimum: int = 1, maximum: int | None = None) -> int:
    raw = request.args.get(name)
    try:
        value = int(raw) if raw not in (None, '') else default
    except ValueError:
        abort(400, description=f'{name} must be an integer')
    value = max(value, minimum)
    if maximum is not None:
        value = min(value, maximum)
    return value


@api_bp.errorhandler(400)
def _bad_request(exc):
    return jsonify({'error': getattr(exc, 'description', 'bad request')}), 400


@api_bp.errorhandler(403)
def _forbidden(exc):
    return jsonify({'error': 'forbidden'}), 403


# --- джерела даних ---

@api_bp.get('/admin/sources')
@login_required
def api_list_sources():
    _ensure_admin()
    scheduler = get_sync_scheduler()
    scheduled = scheduler.scheduled_sources() if scheduler else {}
    items = []
    for source in source_registry.list_sources():
        data = source.to_dict()
        data['scheduled'] = source.id in scheduled
        data['running'] = bool(scheduler and scheduler.is_running(source.id))
        items.append(data)
    return jsonify({'sources': items})


@api_bp.post('/admin/sources')
@login_required
def api_create_source():
    _ensure_admin()
    payload = request.get_json(silent=True) or {}
    try:
        source = source_registry.create_source(payload)
    except SourceConfigError as exc:
        db.session.rollback()
        return jsonify({'error': str(exc)}), 400
    _log_admin_action('source_create', {'source_id': source.id, 'name': source.name})
    db.session.commit()
    return jsonify(source.to_dict()), 201


@api_bp.put('/admin/sources/<source_id>')
@login_required
def api_update_source(source_id: str):
    _ensure_admin()
    payload = request.get_json(silent=True) or {}
    try:
        source = source_registry.update_source(source_id, payload)
    except SourceConfigError as exc:
        db.session.rollback()
        return jsonify({'error': str(exc)}), 400
    if source is None:
        return jsonify({'error': 'source not found'}), 404
    _log_admin_action('source_update', {'source_id': source.id, 'fields': sorted(payload.keys())})
    db.session.commit()
    return jsonify(source.to_dict())


@api_bp.delete('/admin/sources/<source_id>')
@login_required
def api_delete_source(source_id: str):
    _ensure_admin()
    if not source_registry.delete_source(source_id):
        return jsonify({'error': 'source not found'}), 404
    _log_admin_action('source_delete', {'source_id': source_id})
    db.session.commit()
    return jsonify({'status': 'deleted'})


@api_bp.post('/admin/sources/<source_id>/test')
@login_required
def api_test_source(source_id: str):
    _ensure_admin()
    try:
        result = sync_runner.test_source(source_id)
    except LookupError:
        return jsonify({'error': 'source not found'}), 404
    status_code = 200 if result.get('success') else 502
    return jsonify(result), status_code


@api_bp.post('/admin/sources/<source_id>/sync')
@login_required
def api_trigger_sync(source_id: str):
    _ensure_admin()
    if source_registry.get_source(source_id) is None:
        return jsonify({'error': 'source not found'}), 404
    scheduler = get_sync_scheduler()
    if scheduler is None:
        return jsonify({'error': 'scheduler not initialised'}), 503
    if not scheduler.trigger_manual_sync(source_id):
        return jsonify({'error': 'sync already running for this source'}), 409
    _log_admin_action('source_sync', {'source_id': source_id})
    db.session.commit()
    return jsonify({'status': 'accepted', 'source_id': source_id}), 202


# --- журнал імпорту ---

@api_bp.get('/admin/import-logs')
@login_required
def api_import_logs():
    _ensure_admin()
    limit = _int_arg('limit', settings.import_log_page_size, maximum=settings.import_log_max_page_size)
    query = ImportLog.query
    source_id = request.args.get('source_id')
    if source_id:
        query = query.filter(ImportLog.source_id == source_id)
    logs = query.order_by(ImportLog.started_at.desc(), ImportLog.id.desc()).limit(limit).all()
    return jsonify({'logs': [entry.to_dict() for entry in logs]})


@api_bp.delete('/admin/import-logs')
@login_required
def api_clear_import_logs():
    _ensure_admin()
    deleted = ImportLog.query.delete(synchronize_session=False)
    _log_admin_action('import_logs_clear', {'deleted': deleted})
    db.session.commit()
    return jsonify({'status': 'cleared', 'deleted': deleted})


@api_bp.get('/admin/scheduler/jobs')
@login_required
def api_scheduler_list_jobs():
    _ensure_admin()
    scheduler = get_sync_scheduler()
    if not scheduler:
        return jsonify({'error': 'scheduler not started'}), 503
    return jsonify({'running': scheduler.running, 'jobs': scheduler.jobs()})


# --- відвідуваність ---

@api_bp.get('/attendance/today')
@login_required
def api_attendance_today():
    filters = {
        'org_unit_id': request.args.get('org_unit_id', type=int),
        'department_id': request.args.get('department_id', type=int),
        'designation_id': request.args.get('designation_id', type=int),
    }
    status = request.args.get('status')
    if status:
        if status not in SNAPSHOT_STATUSES:
            return jsonify({'error': f'status must be one of {", ".join(SNAPSHOT_STATUSES)}'}), 400
        filters['status'] = status
    page = _int_arg('page', 1)
    limit = _int_arg('limit', SNAPSHOT_DEFAULT_LIMIT, maximum=SNAPSHOT_MAX_LIMIT)
    return jsonify(reconciliation.today_snapshot(filters, page=page, limit=limit))


@api_bp.get('/manager/dashboard/attendance')
@login_required
def api_manager_attendance():
    date_type = request.args.get('dateType', 'today')
    if date_type not in DATE_TYPES:
        return jsonify({'error': f'dateType must be one of {", ".join(DATE_TYPES)}'}), 400
    card_no = getattr(current_user, 'employee_card_no', None)
    if not card_no:
        return jsonify({'error': 'user is not linked to an employee card'}), 403
    return jsonify(reconciliation.manager_dashboard(card_no, date_type))


@api_bp.get('/health')
def health_check():
    """Health check endpoint for monitoring and load balancers."""
    health_status = {
        'status': 'ok',
        'timestamp': datetime.utcnow().isoformat() + 'Z',
    }

    try:
        db.session.execute(db.text('SELECT 1'))
        health_status['database'] = 'connected'
    except Exception as exc:
        logger.warning(f"[health] Database check failed: {exc}")
        health_status['database'] = 'error'
        health_status['database_error'] = str(exc)
        health_status['status'] = 'degraded'

    scheduler = get_sync_scheduler()
    if scheduler and scheduler.running:
        health_status['scheduler'] = 'running'
        health_status['scheduled_sources'] = len(scheduler.scheduled_sources())
    else:
        health_status['scheduler'] = 'stopped'

    status_code = 200 if health_status['status'] == 'ok' else 503
    return jsonify(health_status), status_code
