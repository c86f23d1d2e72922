from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field

from queuedesk.services.date_service import iso_now
from queuedesk.services.identifier_service import RfqArea, next_rfq_no, rfq_ids_key
from queuedesk.services.kv_store import KeyValueStore
from queuedesk.services.spreadsheet_service import SheetData, read_workbook

log = logging.getLogger(__name__)

DEFAULT_WORKFLOW_STATUS = 'new'
WORKFLOW_STATUS_SUGGESTIONS = ('new', 'processing', 'done')

RFQ_NO_HEADER = 'RFQ No.'
STATUS_HEADER_CANDIDATES = ('RFQ Status', 'Status', 'RFQ Sta', 'PM Status Update')
SHEET_AREAS = {
    'System RFQ': RfqArea.SYSTEM,
    'MB RFQ': RfqArea.MB,
}
AREA_SHEETS = {area: title for title, area in SHEET_AREAS.items()}

# hash field -> attribute
WELL_KNOWN_FIELDS = {
    'rfqNo': 'rfq_no',
    'workflowStatus': 'workflow_status',
    'assignee': 'assignee',
    'salesReply': 'sales_reply',
    'salesReplyDate': 'sales_reply_date',
    'pmReply': 'pm_reply',
    'pmReplyDate': 'pm_reply_date',
    'createdAt': 'created_at',
    'updatedAt': 'updated_at',
    'source': 'source',
}


class ConflictError(ValueError):
    pass


@dataclass
class RfqRecord:
    rfq_no: str
    workflow_status: str = DEFAULT_WORKFLOW_STATUS
    assignee: str = ''
    sales_reply: str = ''
    sales_reply_date: str = ''
    pm_reply: str = ''
    pm_reply_date: str = ''
    created_at: str = ''
    updated_at: str = ''
    source: str = ''
    extra: dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_hash(cls, rfq_no: str, data: dict[str, str]) -> RfqRecord:
        known = {attr: data[key] for key, attr in WELL_KNOWN_FIELDS.items() if data.get(key) is not None}
        known['rfq_no'] = data.get('rfqNo') or rfq_no
        known.setdefault('workflow_status', DEFAULT_WORKFLOW_STATUS)
        extra = {key: value for key, value in data.items() if key not in WELL_KNOWN_FIELDS}
        return cls(**known, extra=extra)

    def to_hash(self) -> dict[str, str]:
        payload = dict(self.extra)
        for key, attr in WELL_KNOWN_FIELDS.items():
            payload[key] = getattr(self, attr)
        return payload

    def get(self, key: str, default: str = '') -> str:
        attr = WELL_KNOWN_FIELDS.get(key)
        if attr:
            return getattr(self, attr) or default
        return self.extra.get(key, default)


@dataclass
class ImportStats:
    created: int = 0
    updated: int = 0
    skipped: int = 0


def rfq_key(area: RfqArea, rfq_no: str) -> str:
    return f'rfq:{area.value}:{rfq_no}'


def history_key(area: RfqArea, rfq_no: str) -> str:
    return f'rfq:{area.value}:history:{rfq_no}'


def create_rfq(
    store: KeyValueStore,
    area: RfqArea,
    rfq_no: str | None = None,
    *,
    source: str = 'manual',
) -> RfqRecord:
    rfq_no = (rfq_no or '').strip()
    if not rfq_no:
        rfq_no = next_rfq_no(store, area)

    key = rfq_key(area, rfq_no)
    if store.exists(key):
        raise ConflictError(f'{rfq_no} already exists')

    now = iso_now()
    record = RfqRecord(rfq_no=rfq_no, created_at=now, updated_at=now, source=source)
    store.sadd(rfq_ids_key(area), rfq_no)
    store.hset(key, record.to_hash())
    return record


def get_rfq(store: KeyValueStore, area: RfqArea, rfq_no: str) -> RfqRecord:
    data = store.hgetall(rfq_key(area, rfq_no))
    if not data:
        raise LookupError(f'RFQ {rfq_no} not found')
    return RfqRecord.from_hash(rfq_no, data)


def list_rfq_ids(store: KeyValueStore, area: RfqArea, *, status: str | None = None) -> list[str]:
    ids = sorted(store.smembers(rfq_ids_key(area)))
    if not status:
        return ids
    return [
        rfq_no
        for rfq_no in ids
        if (store.hget(rfq_key(area, rfq_no), 'workflowStatus') or DEFAULT_WORKFLOW_STATUS) == status
    ]


def list_rfqs(store: KeyValueStore, area: RfqArea) -> list[RfqRecord]:
    records = []
    for rfq_no in list_rfq_ids(store, area):
        data = store.hgetall(rfq_key(area, rfq_no))
        records.append(RfqRecord.from_hash(rfq_no, data))
    return records


def _append_history(store: KeyValueStore, area: RfqArea, rfq_no: str, ts: str, updates: dict) -> bool:
    try:
        store.lpush(history_key(area, rfq_no), json.dumps({'ts': ts, 'updates': updates}, ensure_ascii=False))
    except Exception:
        log.exception('History append failed for %s %s', area.value, rfq_no)
        return False
    return True


def patch_rfq(store: KeyValueStore, area: RfqArea, rfq_no: str, updates: dict) -> RfqRecord:
    if not isinstance(updates, dict):
        raise ValueError('Updates must be an object')

    key = rfq_key(area, rfq_no)
    current = store.hgetall(key)
    if not current:
        raise LookupError(f'RFQ {rfq_no} not found')

    merged = dict(current)
    for name, value in updates.items():
        if value is None or name == 'createdAt':
            continue
        merged[name] = str(value)
    merged['updatedAt'] = iso_now()
    store.hset(key, merged)

    _append_history(store, area, rfq_no, merged['updatedAt'], updates)
    return RfqRecord.from_hash(rfq_no, merged)


def get_history(store: KeyValueStore, area: RfqArea, rfq_no: str) -> list[dict]:
    entries = []
    for raw in store.lrange(history_key(area, rfq_no), 0, -1):
        try:
            entries.append(json.loads(raw))
        except ValueError:
            log.warning('Skipping undecodable history entry for %s %s', area.value, rfq_no)
    return entries


def find_status_column(headers: list[str]) -> int | None:
    for candidate in STATUS_HEADER_CANDIDATES:
        for idx, header in enumerate(headers):
            if header and (candidate in header or header in candidate):
                return idx
    return None


def _row_record(row: list[str], headers: list[str]) -> dict[str, str]:
    record = {}
    for idx, header in enumerate(headers):
        if not header:
            continue
        record[header] = row[idx] if idx < len(row) else ''
    return record


def import_sheet(store: KeyValueStore, area: RfqArea, rows: list[list[str]], stats: ImportStats) -> None:
    # Row 1 is a decorative title, row 2 holds the column names.
    if len(rows) < 3:
        return
    headers = [header.strip() for header in rows[1]]
    if RFQ_NO_HEADER not in headers:
        log.info('Sheet for %s has no %r column; skipping', area.value, RFQ_NO_HEADER)
        return
    rfq_no_idx = headers.index(RFQ_NO_HEADER)
    status_idx = find_status_column(headers)

    for row in rows[2:]:
        rfq_no = row[rfq_no_idx].strip() if rfq_no_idx < len(row) else ''
        if not rfq_no:
            stats.skipped += 1
            continue

        status_from_sheet = ''
        if status_idx is not None and status_idx < len(row):
            status_from_sheet = row[status_idx].strip()

        key = rfq_key(area, rfq_no)
        current = store.hgetall(key)
        now = iso_now()
        merged = {
            **current,
            **_row_record(row, headers),
            'rfqNo': rfq_no,
            'workflowStatus': status_from_sheet or current.get('workflowStatus') or DEFAULT_WORKFLOW_STATUS,
            'assignee': current.get('assignee', ''),
            'createdAt': current.get('createdAt') or now,
            'updatedAt': now,
            'source': 'excel',
        }
        store.sadd(rfq_ids_key(area), rfq_no)
        store.hset(key, merged)

        if current:
            stats.updated += 1
        else:
            stats.created += 1


def import_workbook(store: KeyValueStore, content: bytes) -> dict[str, ImportStats]:
    sheets = read_workbook(content)
    stats = {area.value: ImportStats() for area in RfqArea}
    for title, rows in sheets.items():
        area = SHEET_AREAS.get(title)
        if area is None:
            continue
        import_sheet(store, area, rows, stats[area.value])
    return stats


def export_row(record: RfqRecord) -> dict[str, str]:
    row = {
        RFQ_NO_HEADER: record.rfq_no,
        'workflowStatus': record.workflow_status,
        'assignee': record.assignee,
        'Assigned PM': record.get('Assigned PM') or record.assignee,
        'Customer': record.get('Customer') or record.get('customer'),
        'Sales': record.get('Sales') or record.get('sales'),
        'createdAt': record.created_at,
        'updatedAt': record.updated_at,
        'salesReply': record.sales_reply,
        'salesReplyDate': record.sales_reply_date,
        'pmReply': record.pm_reply,
        'pmReplyDate': record.pm_reply_date,
        'source': record.source,
    }
    for key, value in record.extra.items():
        if key not in row:
            row[key] = value or ''
    return row


def export_sheets(store: KeyValueStore) -> list[SheetData]:
    sheets = []
    for area in RfqArea:
        rows = [export_row(record) for record in list_rfqs(store, area)]
        if not rows:
            continue
        headers: list[str] = []
        for row in rows:
            headers.extend(key for key in row if key not in headers)
        sheets.append(
            SheetData(
                title=AREA_SHEETS[area],
                headers=headers,
                rows=[[row.get(header, '') for header in headers] for row in rows],
            )
        )
    return sheets


def purge_rfqs(store: KeyValueStore) -> int:
    removed = 0
    for area in RfqArea:
        ids = store.smembers(rfq_ids_key(area))
        if ids:
            store.delete(*[key for rfq_no in ids for key in (rfq_key(area, rfq_no), history_key(area, rfq_no))])
            removed += len(ids)
        store.delete(rfq_ids_key(area))
    return removed
