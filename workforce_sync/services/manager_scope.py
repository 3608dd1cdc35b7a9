"""Which employees a manager may see.

Each assignment row constrains department, designation and/or org unit. An
employee matches a row when every non-null field of the row matches (AND);
it is in scope when at least one row matches (OR). Rows without any
constraint are ignored.
"""
from __future__ import annotations
from typing import List, Sequence

from sqlalchemy import and_, or_

from workforce_dashboard.models import Employee, ManagerAssignment
from workforce_sync.domain.card_numbers import normalize_card_number

SCOPE_FIELDS = ('department_id', 'designation_id', 'org_unit_id')


def _constraints(assignment) -> dict:
    return {
        name: getattr(assignment, name)
        for name in SCOPE_FIELDS
        if getattr(assignment, name, None) is not None
    }


def scope_clause(assignments: Sequence):
    """OR of per-row AND clauses; None if no row constrains anything."""
    clauses = []
    for assignment in assignments:
        constraints = _constraints(assignment)
        if constraints:
            clauses.append(and_(*(getattr(Employee, name) == value for name, value in constraints.items())))
    if not clauses:
        return None
    return or_(*clauses)


def active_assignments(manager_card_no: str) -> List[ManagerAssignment]:
    normalized = normalize_card_number(manager_card_no)
    if not normalized:
        return []
    return (
        ManagerAssignment.query
        .filter_by(manager_card_no=normalized, is_extinct=False)
        .order_by(ManagerAssignment.id)
        .all()
    )
