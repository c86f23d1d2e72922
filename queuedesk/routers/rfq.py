from __future__ import annotations

from datetime import datetime

from fastapi import APIRouter, Depends, File, HTTPException, Request, Response, UploadFile

from queuedesk.auth import Principal, Role, require_role
from queuedesk.dependencies import get_store, read_json_body
from queuedesk.services.audit_service import record_event
from queuedesk.services.identifier_service import RfqArea
from queuedesk.services.kv_store import KeyValueStore
from queuedesk.services.rfq_service import (
    WORKFLOW_STATUS_SUGGESTIONS,
    ConflictError,
    create_rfq,
    export_sheets,
    get_history,
    get_rfq,
    import_workbook,
    list_rfq_ids,
    patch_rfq,
)
from queuedesk.services.spreadsheet_service import XLSX_MEDIA_TYPE, build_workbook

router = APIRouter(prefix='/rfq', tags=['rfq'])
editor_access = require_role(Role.PM, Role.SALES)
super_access = require_role(Role.SUPER)


@router.get('/statuses')
def workflow_statuses():
    return {'statuses': list(WORKFLOW_STATUS_SUGGESTIONS)}


@router.post('/import')
async def import_rfqs(
    file: UploadFile | None = File(default=None),
    principal: Principal = Depends(super_access),
    store: KeyValueStore = Depends(get_store),
):
    if file is None:
        raise HTTPException(status_code=400, detail='Missing file')
    content = await file.read()
    try:
        stats = import_workbook(store, content)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc

    summary = {area: vars(area_stats) for area, area_stats in stats.items()}
    record_event(
        store,
        username=principal.username,
        role=principal.role.value,
        action='rfq:import',
        detail=', '.join(
            f"{area} +{counts['created']} ~{counts['updated']} skipped {counts['skipped']}"
            for area, counts in summary.items()
        ),
    )
    return {'stats': summary}


@router.get('/export')
def export_rfqs(
    principal: Principal = Depends(editor_access),
    store: KeyValueStore = Depends(get_store),
):
    sheets = export_sheets(store)
    if not sheets:
        raise HTTPException(status_code=404, detail='No RFQ data to export')

    record_event(
        store,
        username=principal.username,
        role=principal.role.value,
        action='rfq:export',
        detail=', '.join(f'{sheet.title}={len(sheet.rows)}' for sheet in sheets),
    )
    filename = f'rfq_{datetime.now():%Y%m%d%H%M}.xlsx'
    return Response(
        content=build_workbook(sheets),
        media_type=XLSX_MEDIA_TYPE,
        headers={'Content-Disposition': f'attachment; filename="{filename}"'},
    )


@router.get('/{area}')
def read_rfq_ids(area: RfqArea, status: str | None = None, store: KeyValueStore = Depends(get_store)):
    return {'ids': list_rfq_ids(store, area, status=status)}


@router.post('/{area}', status_code=201)
async def create_rfq_record(
    area: RfqArea,
    request: Request,
    principal: Principal = Depends(editor_access),
    store: KeyValueStore = Depends(get_store),
):
    body = await read_json_body(request)
    try:
        record = create_rfq(store, area, str(body.get('rfqNo') or ''))
    except ConflictError as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc

    record_event(
        store,
        username=principal.username,
        role=principal.role.value,
        action='rfq:create',
        detail=f'{area.value} {record.rfq_no}',
    )
    return {'ok': True, 'rfqNo': record.rfq_no}


@router.get('/{area}/{rfq_no}')
def read_rfq(area: RfqArea, rfq_no: str, store: KeyValueStore = Depends(get_store)):
    try:
        record = get_rfq(store, area, rfq_no)
    except LookupError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return record.to_hash()


@router.get('/{area}/{rfq_no}/history')
def read_rfq_history(area: RfqArea, rfq_no: str, store: KeyValueStore = Depends(get_store)):
    try:
        get_rfq(store, area, rfq_no)
    except LookupError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return {'history': get_history(store, area, rfq_no)}


@router.patch('/{area}/{rfq_no}')
async def patch_rfq_record(
    area: RfqArea,
    rfq_no: str,
    request: Request,
    principal: Principal = Depends(editor_access),
    store: KeyValueStore = Depends(get_store),
):
    try:
        updates = await request.json()
    except ValueError as exc:
        raise HTTPException(status_code=400, detail='Invalid body') from exc
    try:
        record = patch_rfq(store, area, rfq_no, updates)
    except LookupError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc

    record_event(
        store,
        username=principal.username,
        role=principal.role.value,
        action='rfq:update',
        detail=f"{area.value} {rfq_no} fields={','.join(sorted(updates))}",
    )
    return {'ok': True, 'record': record.to_hash()}
