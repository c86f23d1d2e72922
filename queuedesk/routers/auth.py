from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Request

from queuedesk.dependencies import get_store, read_json_body
from queuedesk.services.audit_service import record_event
from queuedesk.services.kv_store import KeyValueStore
from queuedesk.services.user_service import ensure_default_users, verify_user

router = APIRouter(prefix='/auth', tags=['auth'])


@router.post('/login')
async def login(request: Request, store: KeyValueStore = Depends(get_store)):
    body = await read_json_body(request)
    username = str(body.get('username') or '').strip()
    password = str(body.get('password') or '')
    if not username or not password:
        raise HTTPException(status_code=400, detail='Username and password are required')

    ensure_default_users(store)
    user = verify_user(store, username, password)
    if not user:
        raise HTTPException(status_code=401, detail='Invalid username or password')

    record_event(store, username=user.username, role=user.role.value, action='login')
    return {'ok': True, 'username': user.username, 'role': user.role.value}
