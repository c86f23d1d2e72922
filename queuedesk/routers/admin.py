from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, status

from queuedesk.auth import Principal, Role, require_role
from queuedesk.config import settings
from queuedesk.dependencies import get_store
from queuedesk.services.audit_service import record_event
from queuedesk.services.kv_store import KeyValueStore
from queuedesk.services.reset_service import reset_system

router = APIRouter(tags=['admin'])


@router.post('/reset')
def reset(
    principal: Principal = Depends(require_role(Role.SUPER)),
    store: KeyValueStore = Depends(get_store),
):
    if principal.username != settings.reset_username:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=f'Only {settings.reset_username} can reset')

    summary = reset_system(store)
    record_event(
        store,
        username=principal.username,
        role=principal.role.value,
        action='reset',
        detail=f'system reset: {summary.tickets_removed} tickets, {summary.rfqs_removed} rfqs',
    )
    return {'ok': True, 'ticketsRemoved': summary.tickets_removed, 'rfqsRemoved': summary.rfqs_removed}
