import pytest

from workforce_sync.client.source_fetcher import RawPayload
from workforce_sync.domain.record_parser import parse
from workforce_sync.errors import MalformedPayload


def test_csv_header_and_rows():
    text = 'CARD_NO,Name,STATUS\n101,"Asha Rao",ACTIVE\n102,Vikram,INACTIVE\n'
    records = parse(text)
    assert records == [
        {'CARD_NO': '101', 'Name': 'Asha Rao', 'STATUS': 'ACTIVE'},
        {'CARD_NO': '102', 'Name': 'Vikram', 'STATUS': 'INACTIVE'},
    ]


def test_csv_short_line_gets_empty_values():
    records = parse('cardno,dt,FirstIn,LastOUT\n42,5-Dec-25\n')
    assert records == [{'cardno': '42', 'dt': '5-Dec-25', 'FirstIn': '', 'LastOUT': ''}]


def test_csv_skips_blank_lines():
    records = parse('\n\nCARD_NO,Name\n\n101,A\n\n')
    assert records == [{'CARD_NO': '101', 'Name': 'A'}]


def test_csv_header_only_gives_no_records():
    assert parse('CARD_NO,Name\n') == []


@pytest.mark.parametrize('payload', ['', '   \n', b'', None])
def test_empty_input_gives_empty_list(payload):
    assert parse(payload) == []


def test_json_top_level_array():
    records = parse('[{"CARD_NO": 101, "Name": "Asha"}, {"CARD_NO": "102", "Name": null}]')
    assert records == [
        {'CARD_NO': '101', 'Name': 'Asha'},
        {'CARD_NO': '102', 'Name': ''},
    ]


@pytest.mark.parametrize('key', ['master_for_google', 'data', 'records'])
def test_json_envelope_keys(key):
    records = parse('{"%s": [{"cardno": "7"}], "count": 1}' % key)
    assert records == [{'cardno': '7'}]


def test_json_single_object_is_one_record():
    assert parse('{"CARD_NO": "5"}') == [{'CARD_NO': '5'}]


def test_json_value_objects_and_flags():
    records = parse('[{"t_in": {"value": "09:05:00"}, "IS_SINGLE_PUNCH": true}]')
    assert records == [{'t_in': '09:05:00', 'IS_SINGLE_PUNCH': 'true'}]


def test_malformed_json_raises():
    with pytest.raises(MalformedPayload):
        parse('{"CARD_NO": ')


def test_raw_payload_with_bom():
    payload = RawPayload(body='\ufeffCARD_NO,Name\n1,A\n'.encode('utf-8'), origin='test')
    assert parse(payload) == [{'CARD_NO': '1', 'Name': 'A'}]
