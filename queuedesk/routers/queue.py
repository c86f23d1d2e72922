from __future__ import annotations

from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, Request, Response

from queuedesk.auth import Principal, Role, get_optional_principal, require_role
from queuedesk.dependencies import get_store, read_json_body
from queuedesk.services.audit_service import record_event
from queuedesk.services.kv_store import KeyValueStore
from queuedesk.services.queue_service import (
    TICKET_EXPORT_COLUMNS,
    call_next,
    delete_ticket,
    export_ticket_rows,
    get_state,
    get_ticket,
    issue_ticket,
    list_tickets,
    set_state,
    ticket_view,
    update_ticket,
    waiting_count,
)
from queuedesk.services.spreadsheet_service import XLSX_MEDIA_TYPE, SheetData, build_workbook

router = APIRouter(tags=['queue'])
pm_access = require_role(Role.PM)


def _optional_int(body: dict, name: str) -> int | None:
    raw = body.get(name)
    if raw is None or raw == '':
        return None
    try:
        return int(raw)
    except (TypeError, ValueError) as exc:
        raise HTTPException(status_code=400, detail=f'{name} must be an integer') from exc


@router.get('/state')
def read_state(store: KeyValueStore = Depends(get_store)):
    return get_state(store).to_dict()


@router.patch('/state')
async def patch_state(
    request: Request,
    principal: Principal = Depends(pm_access),
    store: KeyValueStore = Depends(get_store),
):
    body = await read_json_body(request)
    current_number = _optional_int(body, 'currentNumber')
    next_number = _optional_int(body, 'nextNumber')
    # An explicit null drops the override.
    clear_next = 'nextNumber' in body and body['nextNumber'] is None
    try:
        state = set_state(store, current_number=current_number, next_number=next_number, clear_next=clear_next)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc

    record_event(
        store,
        username=principal.username,
        role=principal.role.value,
        action='state:update',
        detail=f'current={current_number} next={"cleared" if clear_next else next_number}',
    )
    return state.to_dict()


@router.post('/next')
def next_ticket(
    principal: Principal = Depends(pm_access),
    store: KeyValueStore = Depends(get_store),
):
    try:
        state = call_next(store)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc

    record_event(
        store,
        username=principal.username,
        role=principal.role.value,
        action='next',
        detail=f'#{state.current_number}',
    )
    return state.to_dict()


@router.get('/tickets')
def read_tickets(limit: int | None = None, store: KeyValueStore = Depends(get_store)):
    tickets = list_tickets(store)
    return {
        'tickets': tickets[: max(0, limit)] if limit is not None else tickets,
        'waitingCount': waiting_count(tickets),
        'state': get_state(store).to_dict(),
    }


@router.post('/tickets', status_code=201)
async def create_ticket(
    request: Request,
    principal: Principal | None = Depends(get_optional_principal),
    store: KeyValueStore = Depends(get_store),
):
    body = await read_json_body(request)
    ticket_number = issue_ticket(store, body)
    record_event(
        store,
        username=principal.username if principal else str(body.get('applicant') or 'anonymous'),
        role=principal.role.value if principal else 'public',
        action='ticket:create',
        detail=f'#{ticket_number}',
    )
    return {'ok': True, 'ticketNumber': ticket_number}


@router.get('/ticket/{ticket_number}')
def read_ticket(ticket_number: int, store: KeyValueStore = Depends(get_store)):
    try:
        data = get_ticket(store, ticket_number)
    except LookupError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return ticket_view(ticket_number, data, get_state(store))


@router.patch('/ticket/{ticket_number}')
async def patch_ticket(
    ticket_number: int,
    request: Request,
    principal: Principal = Depends(pm_access),
    store: KeyValueStore = Depends(get_store),
):
    body = await read_json_body(request)
    try:
        data = update_ticket(
            store,
            ticket_number,
            status=body.get('status'),
            note=body.get('note'),
            assignee=body.get('assignee'),
        )
    except LookupError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc

    record_event(
        store,
        username=principal.username,
        role=principal.role.value,
        action='ticket:update',
        detail=f"#{ticket_number} status={data.get('status', '')} assignee={data.get('assignee', '')}",
    )
    return ticket_view(ticket_number, data, get_state(store))


@router.delete('/ticket/{ticket_number}')
def remove_ticket(
    ticket_number: int,
    principal: Principal = Depends(pm_access),
    store: KeyValueStore = Depends(get_store),
):
    try:
        delete_ticket(store, ticket_number)
    except LookupError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc

    record_event(
        store,
        username=principal.username,
        role=principal.role.value,
        action='ticket:delete',
        detail=f'#{ticket_number}',
    )
    return {'ok': True}


@router.get('/export')
def export_tickets(
    principal: Principal = Depends(pm_access),
    store: KeyValueStore = Depends(get_store),
):
    rows = export_ticket_rows(store)
    if not rows:
        raise HTTPException(status_code=404, detail='No tickets to export')

    content = build_workbook(
        [
            SheetData(
                title='Tickets',
                headers=[header for header, _ in TICKET_EXPORT_COLUMNS],
                rows=rows,
                widths=[width for _, width in TICKET_EXPORT_COLUMNS],
            )
        ]
    )
    record_event(
        store,
        username=principal.username,
        role=principal.role.value,
        action='ticket:export',
        detail=f'{len(rows)} rows',
    )
    filename = f'tickets_{datetime.now():%Y%m%d%H%M}.xlsx'
    return Response(
        content=content,
        media_type=XLSX_MEDIA_TYPE,
        headers={'Content-Disposition': f'attachment; filename="{filename}"'},
    )
