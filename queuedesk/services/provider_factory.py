from __future__ import annotations

from functools import lru_cache

from queuedesk.config import settings
from queuedesk.services.kv_store import KeyValueStore
from queuedesk.services.memory_kv_store import MemoryKeyValueStore
from queuedesk.services.sql_kv_store import SqlKeyValueStore


@lru_cache(maxsize=1)
def get_kv_store() -> KeyValueStore:
    backend = settings.kv_backend.strip().lower()
    if backend == 'memory':
        return MemoryKeyValueStore()

    from queuedesk.db import SessionLocal, init_db

    init_db()
    return SqlKeyValueStore(SessionLocal)
