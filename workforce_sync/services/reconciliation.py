"""Merge local attendance with warehouse rows into one presence decision.

Local records always win. Warehouse rows are a fallback keyed by normalized
card number. The shift-default time is never shown as a punch.
"""
from __future__ import annotations
import logging
import math
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Any, Dict, Iterable, List, Optional

import pytz
import requests

from workforce_dashboard.models import AttendanceRecord, Employee
from workforce_sync.client.warehouse_api import RemoteAttendanceRow, WarehouseClient, get_warehouse_client
from workforce_sync.config.settings import settings
from workforce_sync.domain.card_numbers import normalize_card_number
from workforce_sync.domain.date_parsing import combine_with_day
from workforce_sync.services.manager_scope import active_assignments, scope_clause

logger = logging.getLogger(__name__)


@dataclass
class ReconciledAttendance:
    status: str = 'absent'  # present / absent
    check_in: Optional[datetime] = None
    check_out: Optional[datetime] = None
    source: str = 'none'  # local / remote / none
    attendance_status: Optional[str] = None
    is_late: bool = False
    is_early_out: bool = False

    @property
    def present(self) -> bool:
        return self.status == 'present'

    @property
    def category(self) -> str:
        """present / absent / mis / half for the manager dashboard."""
        if not self.present:
            return 'absent'
        marker = (self.attendance_status or '').upper()
        if 'HALF' in marker:
            return 'half'
        if 'MISS' in marker:
            return 'mis'
        return 'present'


def local_today() -> date:
    return datetime.now(pytz.timezone(settings.attendance_timezone)).date()


def _has_value(value: Optional[str]) -> bool:
    return bool(value) and value.strip() != '' and value.strip().lower() != 'null'


def _display_time(actual: Optional[str], shift_default: Optional[str], day: date,
                  default_shift_start: str) -> Optional[datetime]:
    if _has_value(actual):
        return combine_with_day(actual, day)
    if _has_value(shift_default) and shift_default.strip() != default_shift_start:
        return combine_with_day(shift_default, day)
    return None


def reconcile(local: Optional[Any], remote: Optional[RemoteAttendanceRow], day: date,
              default_shift_start: Optional[str] = None) -> ReconciledAttendance:
    """Decide presence and display times for one employee on ``day``.

    ``local`` is anything with ``status``/``check_in_at``/``check_out_at``.
    """
    if local is not None:
        return ReconciledAttendance(
            status='present' if local.status == 'present' or local.check_in_at else 'absent',
            check_in=local.check_in_at,
            check_out=local.check_out_at,
            source='local',
            attendance_status=local.status,
        )

    if remote is not None:
        default = default_shift_start or settings.default_shift_start
        marker = (remote.status or '').upper()
        punched_in = _has_value(remote.t_in)
        present = remote.present or 'PRESENT' in marker or marker == 'P' or punched_in
        return ReconciledAttendance(
            status='present' if present else 'absent',
            check_in=_display_time(remote.t_in, remote.result_t_in, day, default),
            check_out=_display_time(remote.t_out, remote.result_t_out, day, default),
            source='remote',
            attendance_status=remote.status or None,
            is_late='LATE' in marker,
            is_early_out='EARLY_OUT' in marker or 'EARLY OUT' in marker,
        )

    return ReconciledAttendance()


def remote_rows(day: date, client: Optional[WarehouseClient] = None) -> Dict[str, RemoteAttendanceRow]:
    client = client or get_warehouse_client()
    if not client.is_configured():
        return {}
    try:
        return client.get_attendance_for_date(day)
    except requests.exceptions.RequestException as exc:
        logger.warning(f"[attendance] Warehouse unavailable for {day}, using local data only: {exc}")
        return {}


def _local_by_employee(employee_ids: List[int], day: date) -> Dict[int, AttendanceRecord]:
    if not employee_ids:
        return {}
    rows = AttendanceRecord.query.filter(
        AttendanceRecord.record_date == day,
        AttendanceRecord.employee_id.in_(employee_ids),
    ).all()
    return {row.employee_id: row for row in rows}


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def _employee_row(employee: Employee, merged: ReconciledAttendance, status: str) -> Dict[str, Any]:
    return {
        'id': employee.id,
        'card_number': employee.card_number,
        'first_name': employee.first_name,
        'last_name': employee.last_name,
        'phone': employee.phone,
        'profile_image_url': employee.profile_image_url,
        'unit': employee.org_unit.name if employee.org_unit else None,
        'department': employee.department.name if employee.department else None,
        'designation': employee.designation.name if employee.designation else None,
        'status': status,
        'check_in_at': _iso(merged.check_in),
        'check_out_at': _iso(merged.check_out),
        'attendance_status': merged.attendance_status,
        'is_late': merged.is_late,
        'is_early_out': merged.is_early_out,
        'data_source': merged.source,
    }


def merge_for_employees(employees: Iterable[Employee], day: date,
                        client: Optional[WarehouseClient] = None) -> List[tuple]:
    employees = list(employees)
    local = _local_by_employee([emp.id for emp in employees], day)
    remote = remote_rows(day, client) if employees else {}
    merged = []
    for employee in employees:
        card = normalize_card_number(employee.card_number)
        merged.append((employee, reconcile(local.get(employee.id), remote.get(card) if card else None, day)))
    return merged


def today_snapshot(filters: Optional[Dict[str, Any]] = None, page: int = 1, limit: int = 50,
                   day: Optional[date] = None, client: Optional[WarehouseClient] = None) -> Dict[str, Any]:
    """All active employees for today, filtered and paginated."""
    filters = filters or {}
    day = day or local_today()
    query = Employee.query.filter(Employee.is_active)
    for name in ('org_unit_id', 'department_id', 'designation_id'):
        if filters.get(name) is not None:
            query = query.filter(getattr(Employee, name) == filters[name])
    employees = query.order_by(Employee.first_name, Employee.id).all()

    rows = [_employee_row(emp, merged, merged.status) for emp, merged in merge_for_employees(employees, day, client)]
    present = sum(1 for row in rows if row['status'] == 'present')
    total = len(rows)
    summary = {
        'total': total,
        'present': present,
        'absent': total - present,
        'attendance_rate': round(present / total * 100, 1) if total else 0.0,
    }

    wanted = filters.get('status')
    if wanted:
        rows = [row for row in rows if row['status'] == wanted]

    page = max(page, 1)
    limit = max(limit, 1)
    start = (page - 1) * limit
    logger.info(f"[attendance] Snapshot {day}: {present}/{total} present")
    return {
        'date': day.isoformat(),
        'summary': summary,
        'data': rows[start:start + limit],
        'pagination': {
            'page': page,
            'limit': limit,
            'total': len(rows),
            'total_pages': math.ceil(len(rows) / limit) if rows else 0,
        },
    }


def _empty_summary() -> Dict[str, int]:
    return {'total': 0, 'present': 0, 'absent': 0, 'mis': 0, 'half': 0, 'late': 0, 'early_out': 0}


def manager_dashboard(manager_card_no: Optional[str], date_type: str = 'today',
                      client: Optional[WarehouseClient] = None, today: Optional[date] = None) -> Dict[str, Any]:
    """Manager-scoped attendance for ``today`` or ``lastday``."""
    today = today or local_today()
    day = today - timedelta(days=1) if date_type == 'lastday' else today
    result = {'date': day.isoformat(), 'date_type': date_type, 'summary': _empty_summary(), 'data': []}

    own_card = normalize_card_number(manager_card_no)
    assignments = active_assignments(manager_card_no or '')
    if not own_card or not assignments:
        logger.info(f"[manager-dashboard] No assignments for card {manager_card_no!r}")
        return result

    scope = scope_clause(assignments)
    visible = Employee.card_number_normalized == own_card
    if scope is not None:
        visible = visible | scope
    employees = (
        Employee.query
        .filter(Employee.is_active)
        .filter(visible)
        .order_by(Employee.first_name, Employee.id)
        .all()
    )

    rows = [_employee_row(emp, merged, merged.category) for emp, merged in merge_for_employees(employees, day, client)]
    summary = _empty_summary()
    summary['total'] = len(rows)
    for row in rows:
        summary[row['status']] += 1
        summary['late'] += int(row['is_late'])
        summary['early_out'] += int(row['is_early_out'])
    result['summary'] = summary
    result['data'] = rows
    logger.info(f"[manager-dashboard] {manager_card_no}: {len(rows)} employees for {day}")
    return result
