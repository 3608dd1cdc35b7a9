import threading

from tests.conftest import add_employee, add_source, create_user, login
from workforce_dashboard import tasks
from workforce_dashboard.extensions import db
from workforce_dashboard.models import AdminAuditLog, AttendanceRecord, ImportLog, ManagerAssignment, SourceConfig


def test_login_rejects_bad_password(app, client):
    create_user(app)
    response = client.post('/login', json={'email': 'admin@example.com', 'password': 'wrong'})
    assert response.status_code == 401


def test_admin_endpoints_need_login(client):
    assert client.get('/api/admin/sources').status_code == 401


def test_admin_endpoints_need_admin(app, client):
    create_user(app, email='viewer@example.com', is_admin=False)
    login(client, email='viewer@example.com')
    assert client.get('/api/admin/sources').status_code == 403


def test_source_crud_flow(app, admin_client):
    response = admin_client.post('/api/admin/sources', json={
        'name': 'Punch CSV',
        'kind': 'csv',
        'csv_url': 'https://files.example.com/punches.csv',
        'sync_interval_minutes': 5,
    })
    assert response.status_code == 201
    source_id = response.get_json()['id']

    response = admin_client.put(f'/api/admin/sources/{source_id}', json={'status': 'active'})
    assert response.status_code == 200
    assert response.get_json()['status'] == 'active'

    sources = admin_client.get('/api/admin/sources').get_json()['sources']
    assert [(s['id'], s['scheduled']) for s in sources] == [(source_id, True)]

    assert admin_client.put('/api/admin/sources/nope', json={}).status_code == 404
    assert admin_client.delete(f'/api/admin/sources/{source_id}').status_code == 200
    assert admin_client.get('/api/admin/sources').get_json()['sources'] == []

    with app.app_context():
        actions = [entry.action for entry in AdminAuditLog.query.order_by(AdminAuditLog.id).all()]
    assert actions == ['source_create', 'source_update', 'source_delete']


def test_invalid_source_is_400(admin_client):
    response = admin_client.post('/api/admin/sources', json={'name': 'X', 'kind': 'api'})
    assert response.status_code == 400
    assert 'endpoint' in response.get_json()['error']


def test_source_test_endpoint(app, admin_client, tmp_path):
    path = tmp_path / 'e.csv'
    path.write_text('CARD_NO,Name\n1,A\n')
    with app.app_context():
        source_id = add_source(name='File', csv_file_path=str(path)).id

    response = admin_client.post(f'/api/admin/sources/{source_id}/test')
    assert response.status_code == 200
    assert response.get_json()['record_count'] == 1
    with app.app_context():
        assert db.session.get(SourceConfig, source_id).status == 'tested'

    assert admin_client.post('/api/admin/sources/nope/test').status_code == 404


def test_manual_sync_202_then_409(app, admin_client, monkeypatch):
    release = threading.Event()
    started = threading.Event()

    def slow_run(source_id, trigger):
        started.set()
        release.wait(5)

    monkeypatch.setattr(tasks, 'run_sync', slow_run)
    with app.app_context():
        source_id = add_source(name='Draft', csv_url='https://files.example.com/a.csv').id

    first = admin_client.post(f'/api/admin/sources/{source_id}/sync')
    assert first.status_code == 202
    assert started.wait(5)
    second = admin_client.post(f'/api/admin/sources/{source_id}/sync')
    assert second.status_code == 409
    release.set()

    assert admin_client.post('/api/admin/sources/nope/sync').status_code == 404


def test_import_logs_list_and_clear(app, admin_client):
    with app.app_context():
        for index in range(3):
            db.session.add(ImportLog(source_name=f'src{index}', status='completed'))
        db.session.commit()

    logs = admin_client.get('/api/admin/import-logs?limit=2').get_json()['logs']
    assert [entry['source_name'] for entry in logs] == ['src2', 'src1']

    response = admin_client.delete('/api/admin/import-logs')
    assert response.get_json()['deleted'] == 3
    assert admin_client.get('/api/admin/import-logs').get_json()['logs'] == []


def test_scheduler_jobs_endpoint(admin_client):
    response = admin_client.get('/api/admin/scheduler/jobs')
    assert response.status_code == 200
    assert response.get_json() == {'running': False, 'jobs': []}


def test_attendance_today(app, admin_client):
    with app.app_context():
        employee = add_employee('5', first_name='Asha')
        add_employee('6', first_name='Bala')
        from workforce_sync.services.reconciliation import local_today
        db.session.add(AttendanceRecord(employee_id=employee.id, record_date=local_today(), status='present'))
        db.session.commit()

    body = admin_client.get('/api/attendance/today?limit=1').get_json()
    assert body['summary'] == {'total': 2, 'present': 1, 'absent': 1, 'attendance_rate': 50.0}
    assert len(body['data']) == 1
    assert body['pagination']['total_pages'] == 2

    assert admin_client.get('/api/attendance/today?status=late').status_code == 400
    assert admin_client.get('/api/attendance/today?page=x').status_code == 400


def test_manager_dashboard_endpoint(app, client):
    with app.app_context():
        add_employee('42', first_name='Manager')
        db.session.add(ManagerAssignment(manager_card_no='42', department_id=1))
        db.session.commit()
    create_user(app, email='manager@example.com', is_admin=False, card_no='0042')
    login(client, email='manager@example.com')

    body = client.get('/api/manager/dashboard/attendance?dateType=lastday').get_json()
    assert body['date_type'] == 'lastday'
    assert [row['first_name'] for row in body['data']] == ['Manager']
    assert client.get('/api/manager/dashboard/attendance?dateType=week').status_code == 400


def test_manager_dashboard_requires_card(admin_client):
    assert admin_client.get('/api/manager/dashboard/attendance').status_code == 403


def test_health(client):
    response = client.get('/api/health')
    assert response.status_code == 200
    body = response.get_json()
    assert body['database'] == 'connected'
    assert body['scheduler'] == 'stopped'
