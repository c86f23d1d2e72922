from __future__ import annotations

from dataclasses import dataclass

from queuedesk.models import Role
from queuedesk.config import settings
from queuedesk.security.passwords import verify_password
from queuedesk.services.kv_store import KeyValueStore

USERS_SET_KEY = 'users:list'
USERS_INITIALIZED_KEY = 'users:initialized'
PROTECTED_PASSWORD_USERNAME = 'superadmin'


@dataclass(frozen=True)
class UserRecord:
    username: str
    password: str
    role: Role

    def public(self) -> dict:
        return {'username': self.username, 'role': self.role.value}


def user_key(username: str) -> str:
    return f'user:{username}'


def parse_role(value: str | None) -> Role:
    try:
        return Role(str(value or '').strip())
    except ValueError as exc:
        raise ValueError('Role must be one of: pm, super, sales') from exc


def default_users() -> list[UserRecord]:
    return [
        UserRecord(username='pmadmin', password=settings.default_pm_password, role=Role.PM),
        UserRecord(username='superadmin', password=settings.default_super_password, role=Role.SUPER),
    ]


def _save_user(store: KeyValueStore, user: UserRecord) -> UserRecord:
    store.hset(user_key(user.username), {'password': user.password, 'role': user.role.value})
    store.sadd(USERS_SET_KEY, user.username)
    return user


def ensure_default_users(store: KeyValueStore) -> None:
    if store.get(USERS_INITIALIZED_KEY) == 'true':
        return
    for user in default_users():
        _save_user(store, user)
    store.set(USERS_INITIALIZED_KEY, 'true')


def get_user(store: KeyValueStore, username: str) -> UserRecord | None:
    ensure_default_users(store)
    data = store.hgetall(user_key(username))
    if not data.get('password') or not data.get('role'):
        return None
    try:
        role = Role(data['role'])
    except ValueError:
        return None
    return UserRecord(username=username, password=data['password'], role=role)


def list_users(store: KeyValueStore) -> list[UserRecord]:
    ensure_default_users(store)
    users = []
    for username in sorted(store.smembers(USERS_SET_KEY)):
        user = get_user(store, username)
        if user:
            users.append(user)
    return users


def create_user(store: KeyValueStore, *, username: str, password: str, role: str) -> UserRecord:
    username = str(username or '').strip()
    password = str(password or '')
    if not username or not password:
        raise ValueError('Username and password are required')
    ensure_default_users(store)
    return _save_user(store, UserRecord(username=username, password=password, role=parse_role(role)))


def update_user(
    store: KeyValueStore,
    username: str,
    *,
    password: str | None = None,
    role: str | None = None,
) -> UserRecord:
    existing = get_user(store, username)
    if not existing:
        raise LookupError(f'User {username} not found')
    if username == PROTECTED_PASSWORD_USERNAME and password is not None:
        raise ValueError(f'{PROTECTED_PASSWORD_USERNAME} password cannot be changed')

    new_role = existing.role
    if role:
        try:
            new_role = Role(role)
        except ValueError:
            new_role = existing.role
    new_password = str(password) if password else existing.password
    return _save_user(store, UserRecord(username=username, password=new_password, role=new_role))


def delete_user(store: KeyValueStore, username: str) -> None:
    ensure_default_users(store)
    store.delete(user_key(username))
    store.srem(USERS_SET_KEY, username)


def verify_user(store: KeyValueStore, username: str, password: str) -> UserRecord | None:
    user = get_user(store, username)
    if not user or not verify_password(password, user.password):
        return None
    return user
