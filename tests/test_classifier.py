import pytest

from workforce_sync.domain.classifier import ATTENDANCE_MARKERS, EMPLOYEE_MARKERS, DataType, classify


def test_attendance_record():
    record = {'cardno': '0042', 'dt': '5-Dec-25', 'FirstIn': '09:05', 'LastOUT': '', 'device': 'D1'}
    assert classify(record) is DataType.ATTENDANCE


@pytest.mark.parametrize('marker', sorted(ATTENDANCE_MARKERS))
def test_any_single_attendance_marker_is_enough(marker):
    assert classify({marker: 'x', 'other': 'y'}) is DataType.ATTENDANCE


def test_employee_shape():
    record = {'CARD_NO': '101', 'Name': 'Asha', 'DEPARTMENT.DEPT_CODE': 'AC'}
    assert classify(record) is DataType.EMPLOYEE


@pytest.mark.parametrize('marker', sorted(EMPLOYEE_MARKERS))
def test_employee_marker_wins_over_attendance_markers(marker):
    record = {'cardno': '1', 'dt': '5-Dec-25', marker: 'x'}
    assert classify(record) is DataType.EMPLOYEE


def test_unknown_or_empty_record_defaults_to_employee():
    assert classify({'foo': 'bar'}) is DataType.EMPLOYEE
    assert classify({}) is DataType.EMPLOYEE
    assert classify(None) is DataType.EMPLOYEE
