from __future__ import annotations

from collections.abc import Callable, Mapping

from sqlalchemy import BigInteger, String, Text, cast, delete, func, insert, literal, select, update
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.orm import Session

from queuedesk.models import KvHashField, KvListItem, KvSetMember, KvSortedSetMember, KvString
from queuedesk.services.kv_store import ScalarValue, slice_range, to_text

_KEYED_MODELS = (KvString, KvHashField, KvSetMember, KvSortedSetMember, KvListItem)
_DIALECT_INSERTS = {'postgresql': postgresql.insert, 'sqlite': sqlite.insert}
INTEGER_PATTERN = '^-?[0-9]+$'


def _dialect_insert(db: Session):
    name = db.get_bind().dialect.name
    try:
        return _DIALECT_INSERTS[name]
    except KeyError as exc:
        raise RuntimeError(f'Unsupported database dialect for the key-value store: {name}') from exc


class SqlKeyValueStore:
    """Key-value primitives persisted through SQLAlchemy.

    Every command runs in its own transaction. Writes are single upsert or
    update statements, so concurrent callers never race on a read-then-write.
    """

    def __init__(self, session_factory: Callable[[], Session]) -> None:
        self._session_factory = session_factory

    def get(self, key: str) -> str | None:
        with self._session_factory() as db:
            row = db.get(KvString, key)
            return row.value if row else None

    def _upsert_strings(self, db: Session, mapping: Mapping[str, ScalarValue]) -> None:
        stmt = _dialect_insert(db)(KvString).values(
            [{'key': key, 'value': to_text(value)} for key, value in mapping.items()]
        )
        db.execute(stmt.on_conflict_do_update(index_elements=[KvString.key], set_={'value': stmt.excluded.value}))

    def set(self, key: str, value: ScalarValue) -> None:
        with self._session_factory() as db:
            self._upsert_strings(db, {key: value})
            db.commit()

    def mset(self, mapping: Mapping[str, ScalarValue]) -> None:
        if not mapping:
            return
        with self._session_factory() as db:
            self._upsert_strings(db, mapping)
            db.commit()

    def incr(self, key: str) -> int:
        with self._session_factory() as db:
            db.execute(
                _dialect_insert(db)(KvString)
                .values(key=key, value='0')
                .on_conflict_do_nothing(index_elements=[KvString.key])
            )
            value = db.execute(
                update(KvString)
                .where(KvString.key == key, KvString.value.regexp_match(INTEGER_PATTERN))
                .values(value=cast(cast(KvString.value, BigInteger) + 1, Text))
                .returning(KvString.value)
                .execution_options(synchronize_session=False)
            ).scalar_one_or_none()
            if value is None:
                db.rollback()
                raise ValueError(f'Value at {key} is not an integer')
            db.commit()
        return int(value)

    def delete(self, *keys: str) -> int:
        if not keys:
            return 0
        removed: set[str] = set()
        with self._session_factory() as db:
            for model in _KEYED_MODELS:
                found = db.execute(select(model.key).where(model.key.in_(keys)).distinct()).scalars().all()
                if found:
                    removed.update(found)
                    db.execute(delete(model).where(model.key.in_(keys)))
            db.commit()
        return len(removed)

    def exists(self, key: str) -> bool:
        with self._session_factory() as db:
            for model in _KEYED_MODELS:
                if db.execute(select(model.key).where(model.key == key).limit(1)).first():
                    return True
        return False

    def hget(self, key: str, field: str) -> str | None:
        with self._session_factory() as db:
            row = db.get(KvHashField, (key, field))
            return row.value if row else None

    def hgetall(self, key: str) -> dict[str, str]:
        with self._session_factory() as db:
            rows = db.execute(select(KvHashField.field, KvHashField.value).where(KvHashField.key == key)).all()
        return {row.field: row.value for row in rows}

    def hset(self, key: str, mapping: Mapping[str, ScalarValue]) -> None:
        if not mapping:
            return
        with self._session_factory() as db:
            stmt = _dialect_insert(db)(KvHashField).values(
                [{'key': key, 'field': field, 'value': to_text(value)} for field, value in mapping.items()]
            )
            db.execute(
                stmt.on_conflict_do_update(
                    index_elements=[KvHashField.key, KvHashField.field],
                    set_={'value': stmt.excluded.value},
                )
            )
            db.commit()

    def sadd(self, key: str, *members: str) -> int:
        if not members:
            return 0
        with self._session_factory() as db:
            result = db.execute(
                _dialect_insert(db)(KvSetMember)
                .values([{'key': key, 'member': member} for member in dict.fromkeys(members)])
                .on_conflict_do_nothing(index_elements=[KvSetMember.key, KvSetMember.member])
            )
            db.commit()
        return result.rowcount or 0

    def srem(self, key: str, *members: str) -> int:
        with self._session_factory() as db:
            result = db.execute(
                delete(KvSetMember).where(KvSetMember.key == key, KvSetMember.member.in_(members))
            )
            db.commit()
        return result.rowcount or 0

    def smembers(self, key: str) -> set[str]:
        with self._session_factory() as db:
            return set(db.execute(select(KvSetMember.member).where(KvSetMember.key == key)).scalars())

    def zadd(self, key: str, score: float, member: str) -> None:
        with self._session_factory() as db:
            stmt = _dialect_insert(db)(KvSortedSetMember).values(key=key, member=member, score=float(score))
            db.execute(
                stmt.on_conflict_do_update(
                    index_elements=[KvSortedSetMember.key, KvSortedSetMember.member],
                    set_={'score': stmt.excluded.score},
                )
            )
            db.commit()

    def zrange(self, key: str, start: int, stop: int, *, rev: bool = False) -> list[str]:
        if rev:
            order = (KvSortedSetMember.score.desc(), KvSortedSetMember.member.desc())
        else:
            order = (KvSortedSetMember.score.asc(), KvSortedSetMember.member.asc())
        query = select(KvSortedSetMember.member).where(KvSortedSetMember.key == key).order_by(*order)
        with self._session_factory() as db:
            if start >= 0 and stop >= 0:
                if start > stop:
                    return []
                return list(db.execute(query.offset(start).limit(stop - start + 1)).scalars())
            members = list(db.execute(query).scalars())
        return slice_range(members, start, stop)

    def zremrangebyscore(self, key: str, min_score: float, max_score: float) -> int:
        with self._session_factory() as db:
            result = db.execute(
                delete(KvSortedSetMember).where(
                    KvSortedSetMember.key == key,
                    KvSortedSetMember.score >= min_score,
                    KvSortedSetMember.score <= max_score,
                )
            )
            db.commit()
        return result.rowcount or 0

    def zcard(self, key: str) -> int:
        with self._session_factory() as db:
            return db.execute(
                select(func.count()).select_from(KvSortedSetMember).where(KvSortedSetMember.key == key)
            ).scalar_one()

    def _push(self, key: str, values: tuple[str, ...], *, left: bool) -> int:
        # Each item's position is computed inside its own INSERT ... SELECT.
        if left:
            position = func.coalesce(func.min(KvListItem.position), 1) - 1
        else:
            position = func.coalesce(func.max(KvListItem.position), -1) + 1
        with self._session_factory() as db:
            for value in values:
                db.execute(
                    insert(KvListItem).from_select(
                        ['key', 'position', 'value'],
                        select(literal(key, String), position, literal(to_text(value), Text)).where(
                            KvListItem.key == key
                        ),
                    )
                )
            length = db.execute(
                select(func.count()).select_from(KvListItem).where(KvListItem.key == key)
            ).scalar_one()
            db.commit()
        return length

    def lpush(self, key: str, *values: str) -> int:
        return self._push(key, values, left=True)

    def rpush(self, key: str, *values: str) -> int:
        return self._push(key, values, left=False)

    def lrange(self, key: str, start: int, stop: int) -> list[str]:
        with self._session_factory() as db:
            items = list(
                db.execute(
                    select(KvListItem.value)
                    .where(KvListItem.key == key)
                    .order_by(KvListItem.position.asc(), KvListItem.id.asc())
                ).scalars()
            )
        return slice_range(items, start, stop)

    def lrem(self, key: str, value: str) -> int:
        with self._session_factory() as db:
            result = db.execute(delete(KvListItem).where(KvListItem.key == key, KvListItem.value == to_text(value)))
            db.commit()
        return result.rowcount or 0
