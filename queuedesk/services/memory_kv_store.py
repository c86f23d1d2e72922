from __future__ import annotations

import threading
from collections.abc import Mapping

from queuedesk.services.kv_store import ScalarValue, slice_range, to_text


class MemoryKeyValueStore:
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self.strings: dict[str, str] = {}
        self.hashes: dict[str, dict[str, str]] = {}
        self.sets: dict[str, set[str]] = {}
        self.zsets: dict[str, dict[str, float]] = {}
        self.lists: dict[str, list[str]] = {}

    def _containers(self) -> tuple[dict, ...]:
        return (self.strings, self.hashes, self.sets, self.zsets, self.lists)

    def get(self, key: str) -> str | None:
        with self._lock:
            return self.strings.get(key)

    def set(self, key: str, value: ScalarValue) -> None:
        with self._lock:
            self.strings[key] = to_text(value)

    def mset(self, mapping: Mapping[str, ScalarValue]) -> None:
        with self._lock:
            for key, value in mapping.items():
                self.strings[key] = to_text(value)

    def incr(self, key: str) -> int:
        with self._lock:
            raw = self.strings.get(key)
            try:
                value = int(raw) + 1 if raw is not None else 1
            except ValueError as exc:
                raise ValueError(f'Value at {key} is not an integer') from exc
            self.strings[key] = str(value)
            return value

    def delete(self, *keys: str) -> int:
        removed = 0
        with self._lock:
            for key in keys:
                for container in self._containers():
                    if key in container:
                        del container[key]
                        removed += 1
        return removed

    def exists(self, key: str) -> bool:
        with self._lock:
            return any(key in container for container in self._containers())

    def hget(self, key: str, field: str) -> str | None:
        with self._lock:
            return self.hashes.get(key, {}).get(field)

    def hgetall(self, key: str) -> dict[str, str]:
        with self._lock:
            return dict(self.hashes.get(key, {}))

    def hset(self, key: str, mapping: Mapping[str, ScalarValue]) -> None:
        with self._lock:
            target = self.hashes.setdefault(key, {})
            for field, value in mapping.items():
                target[field] = to_text(value)

    def sadd(self, key: str, *members: str) -> int:
        with self._lock:
            target = self.sets.setdefault(key, set())
            before = len(target)
            target.update(members)
            return len(target) - before

    def srem(self, key: str, *members: str) -> int:
        with self._lock:
            target = self.sets.get(key, set())
            removed = len(target & set(members))
            target.difference_update(members)
            if not target:
                self.sets.pop(key, None)
            return removed

    def smembers(self, key: str) -> set[str]:
        with self._lock:
            return set(self.sets.get(key, set()))

    def zadd(self, key: str, score: float, member: str) -> None:
        with self._lock:
            self.zsets.setdefault(key, {})[member] = float(score)

    def zrange(self, key: str, start: int, stop: int, *, rev: bool = False) -> list[str]:
        with self._lock:
            ordered = sorted(self.zsets.get(key, {}).items(), key=lambda item: (item[1], item[0]), reverse=rev)
        return slice_range([member for member, _ in ordered], start, stop)

    def zremrangebyscore(self, key: str, min_score: float, max_score: float) -> int:
        with self._lock:
            target = self.zsets.get(key, {})
            doomed = [member for member, score in target.items() if min_score <= score <= max_score]
            for member in doomed:
                del target[member]
            return len(doomed)

    def zcard(self, key: str) -> int:
        with self._lock:
            return len(self.zsets.get(key, {}))

    def lpush(self, key: str, *values: str) -> int:
        with self._lock:
            target = self.lists.setdefault(key, [])
            for value in values:
                target.insert(0, to_text(value))
            return len(target)

    def rpush(self, key: str, *values: str) -> int:
        with self._lock:
            target = self.lists.setdefault(key, [])
            target.extend(to_text(value) for value in values)
            return len(target)

    def lrange(self, key: str, start: int, stop: int) -> list[str]:
        with self._lock:
            items = list(self.lists.get(key, []))
        return slice_range(items, start, stop)

    def lrem(self, key: str, value: str) -> int:
        with self._lock:
            target = self.lists.get(key, [])
            kept = [item for item in target if item != value]
            removed = len(target) - len(kept)
            if kept:
                self.lists[key] = kept
            else:
                self.lists.pop(key, None)
            return removed
