from types import SimpleNamespace

from tests.conftest import add_employee
from workforce_dashboard.extensions import db
from workforce_dashboard.models import Department, Employee, ManagerAssignment, OrgUnit
from workforce_sync.services.manager_scope import active_assignments, scope_clause


def _row(department_id=None, designation_id=None, org_unit_id=None):
    return SimpleNamespace(department_id=department_id, designation_id=designation_id, org_unit_id=org_unit_id)


def _cards(assignments):
    clause = scope_clause(assignments)
    return sorted(e.card_number for e in Employee.query.filter(clause).all())


def _setup():
    sales = Department(code='SM', name='SM')
    accounts = Department(code='AC', name='Account')
    north = OrgUnit(code='N1', name='North', type='branch', level=2)
    south = OrgUnit(code='S1', name='South', type='branch', level=2)
    db.session.add_all([sales, accounts, north, south])
    db.session.commit()
    add_employee('1', department_id=sales.id, org_unit_id=north.id)
    add_employee('2', department_id=sales.id, org_unit_id=south.id)
    add_employee('3', department_id=accounts.id, org_unit_id=south.id)
    return sales, accounts, north, south


def test_and_within_row(ctx):
    sales, _, north, _ = _setup()
    assert _cards([_row(department_id=sales.id, org_unit_id=north.id)]) == ['1']


def test_or_across_rows(ctx):
    sales, accounts, north, south = _setup()
    row_a = _row(department_id=sales.id, org_unit_id=north.id)
    row_b = _row(department_id=accounts.id)
    assert _cards([row_a]) == ['1']
    assert _cards([row_a, row_b]) == ['1', '3']


def test_unconstrained_rows_give_no_clause():
    assert scope_clause([_row(), _row()]) is None
    assert scope_clause([]) is None


def test_active_assignments_by_normalized_card(ctx):
    db.session.add_all([
        ManagerAssignment(manager_card_no='42', department_id=1),
        ManagerAssignment(manager_card_no='42', department_id=2, is_extinct=True),
        ManagerAssignment(manager_card_no='43', department_id=3),
    ])
    db.session.commit()
    assert [row.department_id for row in active_assignments('0042')] == [1]
    assert active_assignments('') == []
