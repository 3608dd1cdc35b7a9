from datetime import date, datetime

from tests.conftest import FakeWarehouse, add_employee
from workforce_dashboard.extensions import db
from workforce_dashboard.models import AttendanceRecord, Department, ManagerAssignment, OrgUnit
from workforce_sync.client.warehouse_api import RemoteAttendanceRow
from workforce_sync.services.reconciliation import manager_dashboard, today_snapshot

DAY = date(2025, 12, 5)


def _attend(employee, status='present', check_in=None, day=DAY):
    db.session.add(AttendanceRecord(employee_id=employee.id, record_date=day, status=status, check_in_at=check_in))
    db.session.commit()


def _org():
    sales = Department(code='SM', name='SM')
    accounts = Department(code='AC', name='Account')
    north = OrgUnit(code='N1', name='North', type='branch', level=2)
    south = OrgUnit(code='S1', name='South', type='branch', level=2)
    db.session.add_all([sales, accounts, north, south])
    db.session.commit()
    return sales, accounts, north, south


def test_snapshot_merges_local_and_remote(ctx):
    local = add_employee('1', first_name='Asha')
    remote = add_employee('0042', first_name='Bala')
    add_employee('3', first_name='Chitra')
    add_employee('4', first_name='Dev', exit_date=date(2025, 1, 1))
    _attend(local, check_in=datetime(2025, 12, 5, 9, 0))
    warehouse = FakeWarehouse({DAY: {'42': RemoteAttendanceRow(card_no='42', t_in='09:10:00')}})

    result = today_snapshot(day=DAY, client=warehouse)

    assert result['summary'] == {'total': 3, 'present': 2, 'absent': 1, 'attendance_rate': 66.7}
    by_name = {row['first_name']: row for row in result['data']}
    assert set(by_name) == {'Asha', 'Bala', 'Chitra'}
    assert by_name['Asha']['data_source'] == 'local'
    assert by_name['Bala']['data_source'] == 'remote'
    assert by_name['Bala']['check_in_at'] == '2025-12-05T09:10:00'
    assert by_name['Chitra']['status'] == 'absent'


def test_snapshot_filters_and_pagination(ctx):
    sales, accounts, north, _ = _org()
    for index in range(5):
        add_employee(str(100 + index), first_name=f'E{index}', department_id=sales.id, org_unit_id=north.id)
    add_employee('200', first_name='Other', department_id=accounts.id)

    result = today_snapshot({'department_id': sales.id}, page=2, limit=2, day=DAY, client=FakeWarehouse())
    assert result['summary']['total'] == 5
    assert [row['first_name'] for row in result['data']] == ['E2', 'E3']
    assert result['pagination'] == {'page': 2, 'limit': 2, 'total': 5, 'total_pages': 3}

    present_only = today_snapshot({'status': 'present'}, day=DAY, client=FakeWarehouse())
    assert present_only['data'] == []


def test_snapshot_without_warehouse(ctx):
    add_employee('1')
    warehouse = FakeWarehouse(configured=False)
    result = today_snapshot(day=DAY, client=warehouse)
    assert result['summary']['absent'] == 1
    assert warehouse.requested == []


def test_manager_dashboard_scope_and_categories(ctx):
    sales, accounts, north, south = _org()
    manager = add_employee('0042', first_name='Manager', department_id=accounts.id, org_unit_id=south.id)
    in_scope = add_employee('10', first_name='Anil', department_id=sales.id, org_unit_id=north.id)
    add_employee('11', first_name='Bina', department_id=sales.id, org_unit_id=south.id)
    add_employee('12', first_name='Chandra', department_id=accounts.id, org_unit_id=north.id)
    db.session.add(ManagerAssignment(manager_card_no='42', department_id=sales.id, org_unit_id=north.id))
    db.session.commit()
    yesterday = date(2025, 12, 4)
    warehouse = FakeWarehouse({yesterday: {
        '10': RemoteAttendanceRow(card_no='10', t_in='09:40:00', status='PRESENT LATE'),
        '42': RemoteAttendanceRow(card_no='42', status='MISS PENDING', present=True),
    }})

    result = manager_dashboard('42', 'lastday', client=warehouse, today=DAY)

    assert result['date'] == '2025-12-04'
    names = {row['first_name']: row for row in result['data']}
    assert set(names) == {'Manager', 'Anil'}
    assert names['Anil']['status'] == 'present'
    assert names['Anil']['is_late'] is True
    assert names['Anil']['check_in_at'] == '2025-12-04T09:40:00'
    assert names['Manager']['status'] == 'mis'
    assert result['summary'] == {
        'total': 2, 'present': 1, 'absent': 0, 'mis': 1, 'half': 0, 'late': 1, 'early_out': 0,
    }
    assert warehouse.requested == [yesterday]
    assert in_scope.id in {row['id'] for row in result['data']}
    assert manager.id in {row['id'] for row in result['data']}


def test_manager_without_assignments_gets_empty_summary(ctx):
    add_employee('42')
    result = manager_dashboard('42', 'today', client=FakeWarehouse(), today=DAY)
    assert result['data'] == []
    assert result['summary']['total'] == 0


def test_extinct_assignments_are_ignored(ctx):
    sales, *_ = _org()
    add_employee('10', department_id=sales.id)
    db.session.add(ManagerAssignment(manager_card_no='42', department_id=sales.id, is_extinct=True))
    db.session.commit()
    assert manager_dashboard('42', client=FakeWarehouse(), today=DAY)['data'] == []
