from __future__ import annotations

import csv
import json
import logging
from dataclasses import asdict, dataclass
from io import StringIO

from queuedesk.config import settings
from queuedesk.services.date_service import iso_now, utc_now
from queuedesk.services.kv_store import KeyValueStore

log = logging.getLogger(__name__)

LOG_KEY = 'logs:z'
MAX_LOG_FETCH = 2000
CSV_HEADER = ['ts', 'username', 'role', 'action', 'detail']


@dataclass
class LogEntry:
    ts: str
    username: str
    role: str
    action: str
    detail: str | None = None

    def to_dict(self) -> dict:
        payload = asdict(self)
        if payload['detail'] is None:
            del payload['detail']
        return payload


def _retention_ms() -> int:
    return settings.log_retention_days * 24 * 60 * 60 * 1000


def add_log(store: KeyValueStore, entry: LogEntry, *, now_ms: int | None = None) -> None:
    if now_ms is None:
        now_ms = int(utc_now().timestamp() * 1000)
    store.zadd(LOG_KEY, now_ms, json.dumps(entry.to_dict(), ensure_ascii=False))
    store.zremrangebyscore(LOG_KEY, 0, now_ms - _retention_ms())


def record_event(
    store: KeyValueStore,
    *,
    username: str,
    role: str,
    action: str,
    detail: str | None = None,
) -> bool:
    """Write an audit entry without letting a store failure reach the caller."""
    entry = LogEntry(ts=iso_now(), username=username, role=role, action=action, detail=detail)
    try:
        add_log(store, entry)
    except Exception:
        log.exception('Audit log write failed for action=%s user=%s', action, username)
        return False
    return True


def _decode(member: str) -> LogEntry | None:
    try:
        payload = json.loads(member)
    except (TypeError, ValueError):
        log.warning('Skipping undecodable audit log member: %r', member[:80])
        return None
    if not isinstance(payload, dict):
        return None
    return LogEntry(
        ts=str(payload.get('ts', '')),
        username=str(payload.get('username', '')),
        role=str(payload.get('role', '')),
        action=str(payload.get('action', '')),
        detail=str(payload['detail']) if payload.get('detail') is not None else None,
    )


def get_recent_logs(store: KeyValueStore, limit: int = 500) -> list[LogEntry]:
    size = max(1, min(limit, MAX_LOG_FETCH))
    entries = []
    for member in store.zrange(LOG_KEY, 0, size - 1, rev=True):
        entry = _decode(member)
        if entry is not None:
            entries.append(entry)
    return entries


def log_count(store: KeyValueStore) -> int:
    return store.zcard(LOG_KEY)


def _csv_value(value: str | None) -> str:
    return (value or '').replace(',', ' ')


def logs_to_csv(entries: list[LogEntry]) -> str:
    sio = StringIO()
    writer = csv.writer(sio, lineterminator='\n')
    writer.writerow(CSV_HEADER)
    for entry in entries:
        writer.writerow(
            [
                _csv_value(entry.ts),
                _csv_value(entry.username),
                _csv_value(entry.role),
                _csv_value(entry.action),
                _csv_value(entry.detail),
            ]
        )
    return sio.getvalue()

