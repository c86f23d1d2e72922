from __future__ import annotations

from enum import Enum

from sqlalchemy import BigInteger, Float, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Role(str, Enum):
    PM = 'pm'
    SUPER = 'super'
    SALES = 'sales'


class Base(DeclarativeBase):
    pass


class KvString(Base):
    __tablename__ = 'kv_strings'

    key: Mapped[str] = mapped_column(String(512), primary_key=True)
    value: Mapped[str] = mapped_column(Text, nullable=False)


class KvHashField(Base):
    __tablename__ = 'kv_hash_fields'

    key: Mapped[str] = mapped_column(String(512), primary_key=True)
    field: Mapped[str] = mapped_column(String(512), primary_key=True)
    value: Mapped[str] = mapped_column(Text, nullable=False, default='')


class KvSetMember(Base):
    __tablename__ = 'kv_set_members'

    key: Mapped[str] = mapped_column(String(512), primary_key=True)
    member: Mapped[str] = mapped_column(String(512), primary_key=True)


class KvSortedSetMember(Base):
    __tablename__ = 'kv_zset_members'
    __table_args__ = (UniqueConstraint('key', 'member', name='uq_kv_zset_key_member'),)

    id: Mapped[int] = mapped_column(BigInteger().with_variant(Integer, 'sqlite'), primary_key=True, autoincrement=True)
    key: Mapped[str] = mapped_column(String(512), nullable=False, index=True)
    member: Mapped[str] = mapped_column(Text, nullable=False)
    score: Mapped[float] = mapped_column(Float, nullable=False, index=True)


class KvListItem(Base):
    __tablename__ = 'kv_list_items'

    id: Mapped[int] = mapped_column(BigInteger().with_variant(Integer, 'sqlite'), primary_key=True, autoincrement=True)
    key: Mapped[str] = mapped_column(String(512), nullable=False, index=True)
    position: Mapped[int] = mapped_column(BigInteger, nullable=False, index=True)
    value: Mapped[str] = mapped_column(Text, nullable=False)
