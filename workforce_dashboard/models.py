from __future__ import annotations
from datetime import datetime
from typing import Optional
import uuid

from flask_login import UserMixin
from sqlalchemy.ext.hybrid import hybrid_property
from werkzeug.security import generate_password_hash, check_password_hash

from workforce_sync.client.source_fetcher import SourceDescriptor
from .extensions import db


def _uuid() -> str:
    return uuid.uuid4().hex


class User(db.Model, UserMixin):
    __tablename__ = 'users'

    id = db.Column(db.Integer, primary_key=True)
    email = db.Column(db.String(255), unique=True, nullable=False, index=True)
    name = db.Column(db.String(255), nullable=False)
    password_hash = db.Column(db.String(255), nullable=False)
    employee_card_no = db.Column(db.String(64), nullable=True, index=True)
    is_admin = db.Column(db.Boolean, default=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    def set_password(self, password: str) -> None:
        self.password_hash = generate_password_hash(password, method='pbkdf2:sha256')

    def check_password(self, password: str) -> bool:
        return check_password_hash(self.password_hash, password)


class SourceConfig(db.Model):
    """Registered external data source (API, CSV over HTTP, uploaded file)."""
    __tablename__ = 'source_configs'

    id = db.Column(db.String(32), primary_key=True, default=_uuid)
    name = db.Column(db.String(255), unique=True, nullable=False)
    description = db.Column(db.Text, nullable=True)
    kind = db.Column(db.String(16), nullable=False, default='api')  # api / csv
    endpoint = db.Column(db.String(1024), nullable=True)
    csv_url = db.Column(db.String(1024), nullable=True)
    csv_file_path = db.Column(db.String(1024), nullable=True)
    method = db.Column(db.String(8), nullable=False, default='GET')
    headers = db.Column(db.JSON, nullable=True)
    sync_enabled = db.Column(db.Boolean, nullable=False, default=True)
    sync_interval_hours = db.Column(db.Integer, nullable=False, default=0)
    sync_interval_minutes = db.Column(db.Integer, nullable=False, default=10)
    status = db.Column(db.String(16), nullable=False, default='draft', index=True)  # draft / tested / active
    last_test_at = db.Column(db.DateTime, nullable=True)
    last_test_status = db.Column(db.String(16), nullable=True)
    last_sync_at = db.Column(db.DateTime, nullable=True)
    last_sync_status = db.Column(db.String(16), nullable=True)
    sync_progress_current = db.Column(db.Integer, nullable=False, default=0)
    sync_progress_total = db.Column(db.Integer, nullable=False, default=0)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    @property
    def location(self) -> Optional[str]:
        if self.kind == 'api':
            return self.endpoint
        return self.csv_url or self.csv_file_path

    @property
    def interval_minutes(self) -> int:
        total = (self.sync_interval_hours or 0) * 60 + (self.sync_interval_minutes or 0)
        return max(total, 1)

    @property
    def is_schedulable(self) -> bool:
        return self.status == 'active' and bool(self.sync_enabled)

    def descriptor(self) -> SourceDescriptor:
        return SourceDescriptor(
            location=self.location or '',
            kind=self.kind,
            method=self.method or 'GET',
            headers=dict(self.headers or {}),
        )

    def to_dict(self) -> dict:
        return {
            'id': self.id,
            'name': self.name,
            'description': self.description,
            'kind': self.kind,
            'endpoint': self.endpoint,
            'csv_url': self.csv_url,
            'csv_file_path': self.csv_file_path,
            'method': self.method,
            'headers': self.headers or {},
            'sync_enabled': bool(self.sync_enabled),
            'sync_interval_hours': self.sync_interval_hours,
            'sync_interval_minutes': self.sync_interval_minutes,
            'status': self.status,
            'last_test_at': self.last_test_at.isoformat() if self.last_test_at else None,
            'last_test_status': self.last_test_status,
            'last_sync_at': self.last_sync_at.isoformat() if self.last_sync_at else None,
            'last_sync_status': self.last_sync_status,
            'sync_progress': {
                'current': self.sync_progress_current,
                'total': self.sync_progress_total,
            },
        }


class ImportLog(db.Model):
    __tablename__ = 'import_logs'

    id = db.Column(db.Integer, primary_key=True)
    source_id = db.Column(db.String(32), nullable=True, index=True)
    source_name = db.Column(db.String(255), nullable=False)
    source_url = db.Column(db.String(1024), nullable=True)
    status = db.Column(db.String(16), nullable=False, default='in_progress')  # in_progress / completed / partial / failed
    records_total = db.Column(db.Integer, nullable=False, default=0)
    records_imported = db.Column(db.Integer, nullable=False, default=0)
    records_failed = db.Column(db.Integer, nullable=False, default=0)
    error_message = db.Column(db.Text, nullable=True)
    details = db.Column(db.JSON, nullable=True)
    started_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False, index=True)
    completed_at = db.Column(db.DateTime, nullable=True)

    def to_dict(self) -> dict:
        return {
            'id': self.id,
            'source_id': self.source_id,
            'source_name': self.source_name,
            'source_url': self.source_url,
            'status': self.status,
            'records_total': self.records_total,
            'records_imported': self.records_imported,
            'records_failed': self.records_failed,
            'error_message': self.error_message,
            'metadata': self.details or {},
            'started_at': self.started_at.isoformat() if self.started_at else None,
            'completed_at': self.completed_at.isoformat() if self.completed_at else None,
        }


class Department(db.Model):
    __tablename__ = 'departments'

    id = db.Column(db.Integer, primary_key=True)
    code = db.Column(db.String(64), unique=True, nullable=False)
    name = db.Column(db.String(255), nullable=False)
    is_active = db.Column(db.Boolean, nullable=False, default=True)


class Designation(db.Model):
    __tablename__ = 'designations'

    id = db.Column(db.Integer, primary_key=True)
    code = db.Column(db.String(64), unique=True, nullable=False)
    name = db.Column(db.String(255), nullable=False)
    is_active = db.Column(db.Boolean, nullable=False, default=True)


class OrgUnit(db.Model):
    __tablename__ = 'org_units'

    id = db.Column(db.Integer, primary_key=True)
    code = db.Column(db.String(64), unique=True, nullable=False)
    name = db.Column(db.String(255), nullable=False)
    type = db.Column(db.String(32), nullable=True)
    level = db.Column(db.Integer, nullable=True)


class TimePolicy(db.Model):
    __tablename__ = 'time_policies'

    id = db.Column(db.Integer, primary_key=True)
    code = db.Column(db.String(128), unique=True, nullable=False)
    name = db.Column(db.String(255), nullable=False)
    is_single_punch = db.Column(db.Boolean, nullable=False, default=False)


class Employee(db.Model):
    __tablename__ = 'employees'

    id = db.Column(db.Integer, primary_key=True)
    card_number = db.Column(db.String(64), unique=True, nullable=True)
    card_number_normalized = db.Column(db.String(64), nullable=True, index=True)
    first_name = db.Column(db.String(255), nullable=False)
    last_name = db.Column(db.String(255), nullable=True)
    phone = db.Column(db.String(32), nullable=True)
    secondary_phone = db.Column(db.String(32), nullable=True)
    personal_email = db.Column(db.String(255), nullable=True)
    company_email = db.Column(db.String(255), nullable=True)
    gender = db.Column(db.String(16), nullable=True)
    identity_document = db.Column(db.String(64), nullable=True)
    profile_image_url = db.Column(db.String(1024), nullable=True)
    status = db.Column(db.String(32), nullable=False, default='ACTIVE')
    weekly_off = db.Column(db.String(32), nullable=True)
    shift_start = db.Column(db.String(16), nullable=True)
    shift_end = db.Column(db.String(16), nullable=True)
    interview_date = db.Column(db.Date, nullable=True)
    exit_date = db.Column(db.Date, nullable=True, index=True)
    external_id = db.Column(db.String(64), nullable=True)
    auto_number = db.Column(db.String(64), nullable=True)
    zoho_id = db.Column(db.String(64), nullable=True)
    department_id = db.Column(db.Integer, db.ForeignKey('departments.id'), nullable=True, index=True)
    designation_id = db.Column(db.Integer, db.ForeignKey('designations.id'), nullable=True, index=True)
    org_unit_id = db.Column(db.Integer, db.ForeignKey('org_units.id'), nullable=True, index=True)
    time_policy_id = db.Column(db.Integer, db.ForeignKey('time_policies.id'), nullable=True)
    meta = db.Column(db.JSON, nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    department = db.relationship('Department')
    designation = db.relationship('Designation')
    org_unit = db.relationship('OrgUnit')
    time_policy = db.relationship('TimePolicy')

    @hybrid_property
    def is_active(self) -> bool:
        # Єдиний предикат активності: немає дати звільнення
        return self.exit_date is None

    @is_active.expression
    def is_active(cls):
        return cls.exit_date.is_(None)


class AttendanceRecord(db.Model):
    __tablename__ = 'attendance_records'

    id = db.Column(db.Integer, primary_key=True)
    employee_id = db.Column(db.Integer, db.ForeignKey('employees.id'), nullable=False, index=True)
    record_date = db.Column(db.Date, nullable=False, index=True)
    check_in_at = db.Column(db.DateTime, nullable=True)
    check_out_at = db.Column(db.DateTime, nullable=True)
    status = db.Column(db.String(16), nullable=False, default='present')  # present / late / absent
    meta = db.Column(db.JSON, nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    employee = db.relationship('Employee', backref=db.backref('attendance', lazy='dynamic'))

    __table_args__ = (
        db.UniqueConstraint('employee_id', 'record_date', name='uq_attendance_employee_date'),
        db.Index('idx_attendance_date_status', 'record_date', 'status'),
    )


class ManagerAssignment(db.Model):
    """One scope row of a manager; every non-null column must match."""
    __tablename__ = 'manager_assignments'

    id = db.Column(db.Integer, primary_key=True)
    manager_card_no = db.Column(db.String(64), nullable=False, index=True)  # normalized
    department_id = db.Column(db.Integer, db.ForeignKey('departments.id'), nullable=True)
    designation_id = db.Column(db.Integer, db.ForeignKey('designations.id'), nullable=True)
    org_unit_id = db.Column(db.Integer, db.ForeignKey('org_units.id'), nullable=True)
    is_extinct = db.Column(db.Boolean, nullable=False, default=False, index=True)


class AdminAuditLog(db.Model):
    __tablename__ = 'admin_audit_log'

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=True)
    action = db.Column(db.String(128), nullable=False, index=True)
    details = db.Column(db.JSON, nullable=False, default=dict)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False, index=True)

    user = db.relationship('User', backref=db.backref('audit_logs', lazy='dynamic'))
