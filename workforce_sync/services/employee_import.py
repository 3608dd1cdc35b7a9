"""Create-or-update of Employee rows keyed by card number."""
from __future__ import annotations
import logging
from typing import Mapping, Optional, Tuple

from sqlalchemy.exc import IntegrityError

from workforce_dashboard.extensions import db
from workforce_dashboard.models import Employee
from workforce_sync.domain.card_numbers import normalize_card_number
from workforce_sync.domain.date_parsing import parse_day_month_name
from workforce_sync.errors import StoreUnavailable
from workforce_sync.services.lookup_normalizer import LookupResolver
from workforce_sync.services.outcomes import UpsertResult
from workforce_sync.services.store_retry import KeyedLocks, with_store_retry

logger = logging.getLogger(__name__)

_locks = KeyedLocks()


def _field(record: Mapping[str, str], *keys: str) -> Optional[str]:
    for key in keys:
        value = record.get(key)
        if value is not None and str(value).strip():
            return str(value).strip()
    return None


def split_name(value: Optional[str]) -> Tuple[str, Optional[str]]:
    parts = (value or '').split()
    if not parts:
        return 'Unknown', None
    return parts[0], ' '.join(parts[1:]) or None


def employee_values(record: Mapping[str, str], resolver: LookupResolver) -> dict:
    """Map a source record onto Employee columns."""
    first_name, last_name = split_name(record.get('Name'))
    return {
        'first_name': first_name,
        'last_name': last_name,
        'phone': _field(record, 'Phone_NO_1'),
        'secondary_phone': _field(record, 'PHONE_NO_2'),
        'personal_email': _field(record, 'PERSONAL_Email'),
        'company_email': _field(record, 'COMPANY_EMAIL'),
        'gender': _field(record, 'GENDER'),
        'identity_document': _field(record, 'ADHAR_CARD'),
        'profile_image_url': _field(record, 'person_img_cdn_url', 'personel_image'),
        'status': _field(record, 'STATUS') or 'ACTIVE',
        'weekly_off': _field(record, 'WEEKLY_OFF'),
        'shift_start': _field(record, 'INTIME'),
        'shift_end': _field(record, 'OUTTIME'),
        # нерозпізнана дата = відсутня
        'interview_date': parse_day_month_name(_field(record, 'Last_INTERVIEW_DATE')),
        'exit_date': parse_day_month_name(_field(record, 'EXIT_DATE', 'DATE_OF_LEAVING')),
        'external_id': _field(record, 'ID'),
        'auto_number': _field(record, 'Auto_Number'),
        'zoho_id': _field(record, 'zohobooksid'),
        'department_id': resolver.resolve('department', record.get('DEPARTMENT.DEPT_CODE')),
        'designation_id': resolver.resolve('designation', record.get('DESIGNATION.DESIGN_CODE')),
        'org_unit_id': resolver.resolve('org_unit', record.get('UNIT.BRANCH_CODE')),
        'time_policy_id': resolver.resolve(
            'time_policy',
            record.get('TIMEPOLICY.POLICY_NAME'),
            is_single_punch=str(record.get('TIMEPOLICY.IS_SINGLE_PUNCH', '')).strip().lower() == 'true',
        ),
        'meta': dict(record),
    }


def _apply(employee: Employee, values: dict) -> None:
    for key, value in values.items():
        setattr(employee, key, value)


def _write(record: Mapping[str, str], card: str, resolver: LookupResolver) -> bool:
    values = employee_values(record, resolver)
    values['card_number_normalized'] = normalize_card_number(card)
    employee = Employee.query.filter_by(card_number=card).first()
    created = employee is None
    if created:
        employee = Employee(card_number=card)
        db.session.add(employee)
    _apply(employee, values)
    try:
        db.session.commit()
    except IntegrityError:
        # паралельний запуск вставив цю ж картку: оновлюємо його рядок
        db.session.rollback()
        employee = Employee.query.filter_by(card_number=card).one()
        _apply(employee, values)
        db.session.commit()
        created = False
    return created


def upsert_employee(record: Mapping[str, str], resolver: LookupResolver) -> UpsertResult:
    card = _field(record, 'CARD_NO')
    if not card:
        return UpsertResult.skipped('missing card number')

    try:
        with _locks.hold(card):
            created = with_store_retry(_write, record, card, resolver)
    except StoreUnavailable:
        raise
    except Exception as exc:
        db.session.rollback()
        logger.warning(f"[sync] Employee {card} failed: {exc}")
        return UpsertResult.failed(str(exc))
    return UpsertResult.imported(created=created)
