"""Завантаження сирих даних з джерел (HTTP API, CSV по HTTP, локальні файли)."""
from __future__ import annotations
import logging
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Optional

import requests

from ..config.settings import settings
from ..errors import FetchTimeout, Non2xxStatus, SourceNotFound, TransportError

logger = logging.getLogger(__name__)

UPLOADS_PREFIX = '/uploads/'
CHUNK_SIZE = 64 * 1024


@dataclass
class SourceDescriptor:
    """Transport details of one registered source."""
    location: str
    kind: str = 'api'
    method: str = 'GET'
    headers: Dict[str, str] = field(default_factory=dict)

    @property
    def is_remote(self) -> bool:
        return self.location.startswith(('http://', 'https://'))


@dataclass
class RawPayload:
    body: bytes
    origin: str
    content_type: Optional[str] = None

    def text(self) -> str:
        return self.body.decode('utf-8-sig', errors='replace')


def resolve_local_path(location: str) -> Path:
    if location.startswith(UPLOADS_PREFIX):
        return settings.uploads_path / location[len(UPLOADS_PREFIX):]
    if location.startswith('file://'):
        return Path(location[len('file://'):])
    return Path(location)


def _request_headers(source: SourceDescriptor) -> Dict[str, str]:
    headers: Dict[str, str] = {}
    if source.kind == 'api':
        headers['Accept'] = 'application/json'
    if isinstance(source.headers, dict):
        headers.update({str(k): str(v) for k, v in source.headers.items()})
    return headers


def _read_local(source: SourceDescriptor) -> RawPayload:
    path = resolve_local_path(source.location)
    if not path.is_file():
        raise SourceNotFound(f'File not found: {source.location}')
    return RawPayload(body=path.read_bytes(), origin=str(path))


def _read_remote(source: SourceDescriptor, timeout: float) -> RawPayload:
    deadline = time.monotonic() + timeout
    connect_timeout = min(settings.fetch_connect_timeout_seconds, timeout)
    try:
        response = requests.request(
            (source.method or 'GET').upper(),
            source.location,
            headers=_request_headers(source),
            timeout=(connect_timeout, timeout),
            stream=True,
        )
    except requests.exceptions.Timeout as exc:
        raise FetchTimeout(timeout) from exc
    except requests.exceptions.RequestException as exc:
        raise TransportError(str(exc)) from exc

    try:
        if not 200 <= response.status_code < 300:
            raise Non2xxStatus(response.status_code, response.reason or '')

        # read timeout у requests рахується на кожен сокет, тому тримаємо загальний дедлайн самі
        chunks = []
        try:
            for chunk in response.iter_content(chunk_size=CHUNK_SIZE):
                if time.monotonic() > deadline:
                    raise FetchTimeout(timeout)
                if chunk:
                    chunks.append(chunk)
        except requests.exceptions.Timeout as exc:
            raise FetchTimeout(timeout) from exc
        except requests.exceptions.RequestException as exc:
            raise TransportError(str(exc)) from exc

        return RawPayload(
            body=b''.join(chunks),
            origin=source.location,
            content_type=response.headers.get('Content-Type'),
        )
    finally:
        response.close()


def fetch(source: SourceDescriptor, timeout: Optional[float] = None) -> RawPayload:
    """Fetch the raw payload of a source.

    Raises:
        SourceNotFound: local file is missing
        FetchTimeout: the request exceeded ``timeout`` seconds
        TransportError: connection failure
        Non2xxStatus: HTTP error response
    """
    timeout = timeout or settings.fetch_timeout_seconds
    if not source.location:
        raise SourceNotFound('No source URL configured')

    if source.is_remote:
        logger.debug(f"[fetch] {source.method} {source.location} (timeout={timeout}s)")
        payload = _read_remote(source, timeout)
    else:
        payload = _read_local(source)

    logger.info(f"[fetch] Received {len(payload.body)} bytes from {payload.origin}")
    return payload
