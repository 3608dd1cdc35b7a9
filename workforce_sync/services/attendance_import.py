"""Create-or-update of one AttendanceRecord per employee per day."""
from __future__ import annotations
import logging
from datetime import date
from typing import Mapping, Optional

from sqlalchemy.exc import IntegrityError

from workforce_dashboard.extensions import db
from workforce_dashboard.models import AttendanceRecord, Employee
from workforce_sync.domain.card_numbers import normalize_card_number
from workforce_sync.domain.date_parsing import parse_attendance_date, parse_punch
from workforce_sync.errors import StoreUnavailable
from workforce_sync.services.outcomes import UpsertResult
from workforce_sync.services.store_retry import KeyedLocks, with_store_retry

logger = logging.getLogger(__name__)

_locks = KeyedLocks()


def find_employee(card: str) -> Optional[Employee]:
    """Lookup by raw card, then by normalized card ("0042" == "42")."""
    employee = Employee.query.filter_by(card_number=card).first()
    if employee is not None:
        return employee
    normalized = normalize_card_number(card)
    if not normalized:
        return None
    return Employee.query.filter_by(card_number_normalized=normalized).order_by(Employee.id).first()


def _write(employee_id: int, day: date, values: dict) -> bool:
    record = AttendanceRecord.query.filter_by(employee_id=employee_id, record_date=day).first()
    created = record is None
    if created:
        record = AttendanceRecord(employee_id=employee_id, record_date=day)
        db.session.add(record)
    for key, value in values.items():
        setattr(record, key, value)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        record = AttendanceRecord.query.filter_by(employee_id=employee_id, record_date=day).one()
        for key, value in values.items():
            setattr(record, key, value)
        db.session.commit()
        created = False
    return created


def upsert_attendance(record: Mapping[str, str]) -> UpsertResult:
    card = (record.get('cardno') or record.get('ID') or '').strip()
    if not card:
        return UpsertResult.skipped('missing card number')

    try:
        employee = with_store_retry(find_employee, card)
        if employee is None:
            return UpsertResult.skipped('no matching employee')

        day = parse_attendance_date(record.get('dt'))
        if day is None:
            logger.warning(f"[attendance] Card {card}: unparsable date {record.get('dt')!r}")
            return UpsertResult.failed(f"invalid date: {record.get('dt')}")

        check_in = parse_punch(record.get('FirstIn'), day)
        check_out = parse_punch(record.get('LastOUT'), day)
        values = {
            'check_in_at': check_in,
            'check_out_at': check_out,
            'status': 'present',
            'meta': {
                'device': record.get('device'),
                'originalStatus': record.get('status'),
                'empName': record.get('Empname'),
                'raw': dict(record),
            },
        }
        with _locks.hold((employee.id, day)):
            created = with_store_retry(_write, employee.id, day, values)
    except StoreUnavailable:
        raise
    except Exception as exc:
        db.session.rollback()
        logger.warning(f"[attendance] Card {card} failed: {exc}")
        return UpsertResult.failed(str(exc))
    return UpsertResult.imported(created=created)
