from __future__ import annotations

import base64
import binascii
import logging
from dataclasses import dataclass

from fastapi import Depends, HTTPException, Request, status

from queuedesk.dependencies import get_store
from queuedesk.models import Role
from queuedesk.services.kv_store import KeyValueStore
from queuedesk.services.user_service import verify_user

log = logging.getLogger(__name__)


@dataclass
class Principal:
    username: str
    role: Role


def decode_basic_credentials(header: str | None) -> tuple[str, str] | None:
    if not header or not header.startswith('Basic '):
        return None
    encoded = header[len('Basic ') :].strip()
    try:
        decoded = base64.b64decode(encoded, validate=True).decode('utf-8')
    except (binascii.Error, UnicodeDecodeError):
        log.warning('Failed to decode Basic authorization header')
        return None
    username, sep, password = decoded.partition(':')
    if not username or not sep:
        return None
    return username, password


def authenticate_basic(request: Request, store: KeyValueStore) -> Principal | None:
    credentials = decode_basic_credentials(request.headers.get('authorization'))
    if not credentials:
        return None
    user = verify_user(store, *credentials)
    if not user:
        return None
    return Principal(username=user.username, role=user.role)


def get_optional_principal(request: Request, store: KeyValueStore = Depends(get_store)) -> Principal | None:
    return authenticate_basic(request, store)


def get_current_principal(principal: Principal | None = Depends(get_optional_principal)) -> Principal:
    if not principal:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail='Unauthorized',
            headers={'WWW-Authenticate': 'Basic'},
        )
    return principal


def is_super_role(role: Role) -> bool:
    return role == Role.SUPER


def require_role(*allowed: Role):
    # SUPER passes every role check.
    def _dep(principal: Principal = Depends(get_current_principal)) -> Principal:
        if not is_super_role(principal.role) and principal.role not in allowed:
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail='Forbidden')
        return principal

    return _dep
