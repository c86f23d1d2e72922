from __future__ import annotations

from collections.abc import Mapping
from typing import Protocol

ScalarValue = str | int | float


class KeyValueStore(Protocol):
    """Primitive key-value operations; each call is applied atomically on its own."""

    def get(self, key: str) -> str | None: ...

    def set(self, key: str, value: ScalarValue) -> None: ...

    def mset(self, mapping: Mapping[str, ScalarValue]) -> None: ...

    def incr(self, key: str) -> int: ...

    def delete(self, *keys: str) -> int: ...

    def exists(self, key: str) -> bool: ...

    def hget(self, key: str, field: str) -> str | None: ...

    def hgetall(self, key: str) -> dict[str, str]: ...

    def hset(self, key: str, mapping: Mapping[str, ScalarValue]) -> None: ...

    def sadd(self, key: str, *members: str) -> int: ...

    def srem(self, key: str, *members: str) -> int: ...

    def smembers(self, key: str) -> set[str]: ...

    def zadd(self, key: str, score: float, member: str) -> None: ...

    def zrange(self, key: str, start: int, stop: int, *, rev: bool = False) -> list[str]: ...

    def zremrangebyscore(self, key: str, min_score: float, max_score: float) -> int: ...

    def zcard(self, key: str) -> int: ...

    def lpush(self, key: str, *values: str) -> int: ...

    def rpush(self, key: str, *values: str) -> int: ...

    def lrange(self, key: str, start: int, stop: int) -> list[str]: ...

    def lrem(self, key: str, value: str) -> int: ...


def slice_range(items: list, start: int, stop: int) -> list:
    # Inclusive stop with negative offsets counted from the end.
    size = len(items)
    if start < 0:
        start = max(size + start, 0)
    if stop < 0:
        stop = size + stop
    if start > stop or start >= size:
        return []
    return items[start : stop + 1]


def to_text(value: ScalarValue) -> str:
    if isinstance(value, bool):
        return 'true' if value else 'false'
    return str(value)
