"""Decide whether a batch carries attendance punches or employee master data."""
from __future__ import annotations
from enum import Enum
from typing import Mapping, Optional

ATTENDANCE_MARKERS = frozenset({'FirstIn', 'LastOUT', 'cardno', 'dt', 'device'})
EMPLOYEE_MARKERS = frozenset({'CARD_NO', 'Name', 'DEPARTMENT.DEPT_CODE'})


class DataType(str, Enum):
    ATTENDANCE = 'attendance'
    EMPLOYEE = 'employee'


def classify(record: Optional[Mapping[str, object]]) -> DataType:
    """Classify a batch by its first record; batches are assumed homogeneous."""
    keys = set(record or ())
    if keys & ATTENDANCE_MARKERS and not keys & EMPLOYEE_MARKERS:
        return DataType.ATTENDANCE
    return DataType.EMPLOYEE
