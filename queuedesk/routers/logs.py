from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import StreamingResponse

from queuedesk.auth import Principal, Role, get_optional_principal, require_role
from queuedesk.dependencies import get_store, read_json_body
from queuedesk.services.audit_service import (
    MAX_LOG_FETCH,
    LogEntry,
    add_log,
    get_recent_logs,
    log_count,
    logs_to_csv,
)
from queuedesk.services.date_service import iso_now
from queuedesk.services.kv_store import KeyValueStore

router = APIRouter(prefix='/logs', tags=['logs'])
super_access = require_role(Role.SUPER)
MAX_LOG_PAGE = 1000


@router.get('')
def read_logs(
    limit: int = 500,
    _: Principal = Depends(super_access),
    store: KeyValueStore = Depends(get_store),
):
    size = max(1, min(limit, MAX_LOG_PAGE))
    return {
        'logs': [entry.to_dict() for entry in get_recent_logs(store, size)],
        'count': log_count(store),
    }


@router.post('')
async def write_log(
    request: Request,
    principal: Principal | None = Depends(get_optional_principal),
    store: KeyValueStore = Depends(get_store),
):
    body = await read_json_body(request)
    username = principal.username if principal else str(body.get('username') or '')
    role = principal.role.value if principal else str(body.get('role') or 'unknown')
    action = body.get('action')
    detail = body.get('detail')
    if not username or not action:
        raise HTTPException(status_code=400, detail='username and action are required')

    add_log(
        store,
        LogEntry(
            ts=iso_now(),
            username=username,
            role=role,
            action=str(action),
            detail=str(detail) if detail else None,
        ),
    )
    return {'ok': True}


@router.get('/export')
def export_logs(
    _: Principal = Depends(super_access),
    store: KeyValueStore = Depends(get_store),
):
    csv_text = logs_to_csv(get_recent_logs(store, MAX_LOG_FETCH))
    return StreamingResponse(
        iter([csv_text]),
        media_type='text/csv; charset=utf-8',
        headers={'Content-Disposition': 'attachment; filename="logs.csv"'},
    )
