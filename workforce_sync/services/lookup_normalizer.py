"""Resolve department/designation/org-unit/time-policy codes to row ids.

Rows are created on first sight of a code. Ids are memoized for the lifetime
of one resolver, i.e. one sync run. A uniqueness constraint on ``code`` keeps
concurrent runs from producing duplicates.
"""
from __future__ import annotations
import logging
from typing import Dict, Optional, Tuple

from sqlalchemy.exc import IntegrityError

from workforce_dashboard.extensions import db
from workforce_dashboard.models import Department, Designation, OrgUnit, TimePolicy

logger = logging.getLogger(__name__)

DEPARTMENT_NAMES = {
    'AC': 'Account',
    'GL': 'Girls',
    'LW': 'Ladies Wear',
    'MN': 'Mens',
    'FJ': 'Fashion',
    'LE': 'Ladies Fit',
    'HN': 'Household',
    'PL': 'Purses',
    'BY': 'Boys',
    'IN': 'Infants',
    'AS': 'Accessor',
    'FW': 'Footwear',
    'BK': 'Backoffice',
    'SM': 'SM',
}

DESIGNATION_NAMES = {
    'SM': 'Salesman',
    'HK': 'Housekeeper',
    'AC': 'Accounts',
    'MC': 'Merchandiser',
    'EL': 'Electrician',
    'CM': 'Computer',
    'TL': 'Tailor',
    'GD': 'Guard',
    'DR': 'Driver',
    'MN': 'Manager',
    'HL': 'Helper',
}

KINDS = {
    'department': Department,
    'designation': Designation,
    'org_unit': OrgUnit,
    'time_policy': TimePolicy,
}


def display_name(kind: str, code: str) -> str:
    if kind == 'department':
        return DEPARTMENT_NAMES.get(code.upper(), code)
    if kind == 'designation':
        return DESIGNATION_NAMES.get(code.upper(), code)
    return code


class LookupResolver:
    def __init__(self):
        self._memo: Dict[Tuple[str, str], int] = {}

    def resolve(self, kind: str, code: Optional[str], **extra) -> Optional[int]:
        """Return the id for ``code``, creating the row when missing."""
        code = (code or '').strip()
        if not code:
            return None
        model = KINDS[kind]
        key = (kind, code)
        if key in self._memo:
            return self._memo[key]

        row = model.query.filter_by(code=code).first()
        if row is None:
            row = self._create(kind, model, code, **extra)
        elif kind == 'time_policy' and 'is_single_punch' in extra:
            row.is_single_punch = bool(extra['is_single_punch'])
        self._memo[key] = row.id
        return row.id

    def _create(self, kind: str, model, code: str, **extra):
        values = {'code': code, 'name': display_name(kind, code)}
        if kind == 'org_unit':
            values.update(type='branch', level=2)
        elif kind == 'time_policy':
            values['is_single_punch'] = bool(extra.get('is_single_punch'))
        row = model(**values)
        db.session.add(row)
        try:
            # довідник фіксуємо одразу, незалежно від долі запису працівника
            db.session.commit()
        except IntegrityError:
            db.session.rollback()
            return model.query.filter_by(code=code).one()
        logger.info(f"[sync] Created {kind} '{code}'")
        return row
