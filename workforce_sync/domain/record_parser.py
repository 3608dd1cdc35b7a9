"""Turn raw CSV/JSON payloads into flat string records."""
from __future__ import annotations
import csv
import json
from typing import Any, Dict, List

from ..errors import MalformedPayload

Record = Dict[str, str]

# Ключі-обгортки, в яких API віддають масив записів
ENVELOPE_KEYS = ('master_for_google', 'data', 'records')


def _to_text(value: Any) -> str:
    if value is None:
        return ''
    if isinstance(value, bool):
        return 'true' if value else 'false'
    if isinstance(value, (dict, list)):
        # BigQuery-подібні значення {"value": "..."}
        if isinstance(value, dict) and 'value' in value:
            return _to_text(value['value'])
        return json.dumps(value, ensure_ascii=False)
    return str(value)


def _unwrap(data: Any) -> list:
    if isinstance(data, list):
        return data
    if isinstance(data, dict):
        for key in ENVELOPE_KEYS:
            value = data.get(key)
            if isinstance(value, list):
                return value
        return [data]
    return []


def parse_json(text: str) -> List[Record]:
    try:
        data = json.loads(text)
    except ValueError as exc:
        raise MalformedPayload(f'Invalid JSON: {exc}') from exc
    records: List[Record] = []
    for item in _unwrap(data):
        if not isinstance(item, dict):
            continue
        records.append({str(key): _to_text(value) for key, value in item.items()})
    return records


def parse_csv(text: str) -> List[Record]:
    lines = [line for line in text.splitlines() if line.strip()]
    if not lines:
        raise MalformedPayload('CSV payload has no lines')

    rows = csv.reader(lines, skipinitialspace=True)
    headers = [h.strip().strip('"') for h in next(rows)]
    records: List[Record] = []
    for values in rows:
        values = [v.strip().strip('"') for v in values]
        # короткі рядки доповнюємо порожніми значеннями
        records.append({
            header: values[index] if index < len(values) else ''
            for index, header in enumerate(headers)
        })
    return records


def looks_like_json(text: str) -> bool:
    return text.lstrip().startswith(('{', '['))


def parse(payload) -> List[Record]:
    """Parse a payload (``RawPayload``, bytes or str) into ordered records.

    Empty input yields an empty list.
    """
    if hasattr(payload, 'text') and callable(payload.text):
        text = payload.text()
    elif isinstance(payload, bytes):
        text = payload.decode('utf-8-sig', errors='replace')
    else:
        text = payload or ''

    if not text.strip():
        return []
    if looks_like_json(text):
        return parse_json(text)
    return parse_csv(text)
