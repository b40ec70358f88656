"""SqlAlchemy 저장소 어댑터 모듈.

엔티티 클래스마다 SqlAlchemy Core :class:`~sqlalchemy.Table` 을 하나씩 매핑합니다.
identity 필드는 테이블의 기본키 컬럼과, 나머지 필드는 같은 이름의 컬럼과
대응됩니다.
"""
from __future__ import annotations

import keyword
from dataclasses import field, make_dataclass
from typing import Any, Mapping, Optional, Type, Union

from sqlalchemy import (
    MetaData,
    Table,
    and_,
    create_engine,
    delete,
    insert,
    select,
    update,
)
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.pool import Pool

from fastuow.core import (
    AbstractStorage,
    AbstractStorageSession,
    Entity,
    FastUoWError,
    Identity,
)
from fastuow.core.models import Fields
from fastuow.logging import get_logger

TableMap = Mapping[Type[Entity], Table]
"""엔티티 클래스 → 테이블 매핑 타입."""

logger = get_logger("fastuow.orm")


class SqlAlchemySession(AbstractStorageSession):
    """:class:`~sqlalchemy.engine.Connection` 하나를 감싼 저장소 세션."""

    def __init__(self, connection: Connection, tables: TableMap):
        self.connection = connection
        self.tables = tables

    def __repr__(self) -> str:
        return f"SqlAlchemySession[{self.connection.engine.url!r}]"

    def _table(self, identity: Identity) -> Table:
        table = self.tables.get(identity.kind)
        if table is None:
            raise FastUoWError(f"no table mapped for {identity.kind.__name__}")
        return table

    def _where(self, table: Table, identity: Identity):
        return and_(
            *(
                table.c[name] == value
                for name, value in zip(identity.kind.id_fields, identity.key)
            )
        )

    def fetch(self, identity: Identity) -> Optional[Fields]:
        table = self._table(identity)
        stmt = select(table).where(self._where(table, identity))
        row = self.connection.execute(stmt).mappings().first()
        if row is None:
            return None
        return {k: v for k, v in row.items() if k not in identity.kind.id_fields}

    def persist(self, identity: Identity, fields: Fields) -> None:
        """``UPDATE`` 를 먼저 시도하고, 갱신된 행이 없으면 ``INSERT`` 합니다."""
        table = self._table(identity)
        if fields:
            stmt = update(table).where(self._where(table, identity)).values(fields)
            if self.connection.execute(stmt).rowcount:
                return
        elif self.fetch(identity) is not None:
            return

        keys = dict(zip(identity.kind.id_fields, identity.key))
        self.connection.execute(insert(table).values({**keys, **fields}))

    def delete(self, identity: Identity) -> None:
        table = self._table(identity)
        self.connection.execute(delete(table).where(self._where(table, identity)))

    def commit(self) -> None:
        self.connection.commit()

    def rollback(self) -> None:
        self.connection.rollback()

    def close(self) -> None:
        self.connection.close()


class SqlAlchemyStorage(AbstractStorage):
    """SqlAlchemy :class:`~sqlalchemy.engine.Engine` 을 저장소로 하는 구현입니다.

    :meth:`connect` 를 호출할 때마다 새 커넥션을 엽니다. 커넥션은 컨텍스트가 해제될
    때 반환됩니다.
    """

    def __init__(self, engine: Engine, tables: TableMap):
        self.engine = engine
        self.tables = dict(tables)

    def __repr__(self) -> str:
        return f"SqlAlchemyStorage[{self.engine.url!r}]"

    def connect(self) -> SqlAlchemySession:
        return SqlAlchemySession(self.engine.connect(), self.tables)


def init_engine(
    meta: MetaData,
    url: str,
    connect_args: Optional[dict[str, Any]] = None,
    poolclass: Optional[Type[Pool]] = None,
    show_log: Union[bool, str] = False,
    drop_all: bool = False,
) -> Engine:
    """ORM Engine을 초기화 하고 `meta` 의 테이블들을 생성합니다.

    Args:
        show_log: SqlAlchemy 의 `echo` 옵션. ``"debug"`` 를 주면 결과 행까지
            출력합니다.
        drop_all: ``True`` 이면 테이블을 모두 지우고 다시 생성합니다.
    """
    kwargs: dict[str, Any] = dict(connect_args=connect_args or {}, echo=show_log)
    if poolclass:
        kwargs["poolclass"] = poolclass

    engine = create_engine(url, **kwargs)

    if drop_all:
        meta.drop_all(engine)

    meta.create_all(engine)
    logger.debug("engine initialized: %r, %d tables", engine.url, len(meta.tables))

    return engine


def reflect_tables(engine: Engine) -> MetaData:
    """DB 에 존재하는 테이블 정의를 읽어옵니다."""
    meta = MetaData()
    meta.reflect(bind=engine)
    return meta


def is_field_name(name: str) -> bool:
    """엔티티 필드 이름으로 쓸 수 있는지 여부.

    파이썬 식별자여야 하고, `_` 로 시작하거나 :class:`Entity` 의 속성 이름과 겹치면
    안 됩니다.
    """
    return (
        name.isidentifier()
        and not keyword.iskeyword(name)
        and not name.startswith("_")
        and not hasattr(Entity, name)
    )


def entity_from_table(table: Table) -> Type[Entity]:
    """테이블 정의로부터 :class:`~fastuow.core.models.Entity` 클래스를 만듭니다.

    기본키 컬럼이 identity 필드가 됩니다. 도메인 클래스 없이 임의의 테이블을 다룰 때
    사용합니다.
    """
    id_fields = tuple(col.name for col in table.primary_key.columns)
    if not id_fields:
        raise FastUoWError(f"table has no primary key: {table.name}")

    for col in table.columns:
        if not is_field_name(col.name):
            raise FastUoWError(f"unsupported column name: {table.name}.{col.name}")

    return make_dataclass(
        "".join(part.capitalize() for part in table.name.split("_")) or "Record",
        [(col.name, Any, field(default=None)) for col in table.columns],
        bases=(Entity,),
        namespace={"id_fields": id_fields},
    )
