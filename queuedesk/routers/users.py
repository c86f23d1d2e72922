from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Request

from queuedesk.auth import Principal, Role, require_role
from queuedesk.dependencies import get_store, read_json_body
from queuedesk.services.audit_service import record_event
from queuedesk.services.kv_store import KeyValueStore
from queuedesk.services.user_service import create_user, delete_user, get_user, list_users, update_user

router = APIRouter(prefix='/users', tags=['users'])
super_access = require_role(Role.SUPER)


@router.get('')
def read_users(
    _: Principal = Depends(super_access),
    store: KeyValueStore = Depends(get_store),
):
    return {'users': [user.public() for user in list_users(store)]}


@router.post('')
async def add_user(
    request: Request,
    principal: Principal = Depends(super_access),
    store: KeyValueStore = Depends(get_store),
):
    body = await read_json_body(request)
    try:
        user = create_user(
            store,
            username=body.get('username'),
            password=body.get('password'),
            role=body.get('role'),
        )
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc

    record_event(
        store,
        username=principal.username,
        role=principal.role.value,
        action='user:create',
        detail=f'create {user.username} ({user.role.value})',
    )
    return {'ok': True, 'user': user.public()}


@router.get('/{username}')
def read_user(
    username: str,
    _: Principal = Depends(super_access),
    store: KeyValueStore = Depends(get_store),
):
    user = get_user(store, username)
    if not user:
        raise HTTPException(status_code=404, detail=f'User {username} not found')
    return {'username': user.username, 'role': user.role.value, 'password': user.password}


@router.patch('/{username}')
async def edit_user(
    username: str,
    request: Request,
    principal: Principal = Depends(super_access),
    store: KeyValueStore = Depends(get_store),
):
    body = await read_json_body(request)
    try:
        user = update_user(store, username, password=body.get('password'), role=body.get('role'))
    except LookupError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc

    record_event(
        store,
        username=principal.username,
        role=principal.role.value,
        action='user:update',
        detail=f'update {user.username} ({user.role.value})',
    )
    return {'ok': True, 'user': user.public()}


@router.delete('/{username}')
def remove_user(
    username: str,
    principal: Principal = Depends(super_access),
    store: KeyValueStore = Depends(get_store),
):
    delete_user(store, username)
    record_event(
        store,
        username=principal.username,
        role=principal.role.value,
        action='user:delete',
        detail=f'delete {username}',
    )
    return {'ok': True}
