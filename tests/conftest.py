# pylint: disable=redefined-outer-name
"""pytest 에서 사용될 전역 Fixture들을 정의합니다."""
from __future__ import annotations

from typing import Callable, Generator

import pytest
from sqlalchemy import MetaData
from sqlalchemy.engine import Engine

from fastuow.orm import SqlAlchemyStorage, TableMap, init_engine
from fastuow.test.unit import FakeStorage
from fastuow.uow import UnitOfWorkContext
from tests.app.adapters.orm import init_tables
from tests.app.domain.models import Campaign, Customer

ContextFactory = Callable[[], UnitOfWorkContext]


@pytest.fixture
def storage() -> FakeStorage:
    """고객 두 명과 캠페인 하나가 저장된 :class:`FakeStorage` 픽스처."""
    return FakeStorage(
        Customer(1, "acme", "Alice", "alice@acme.test"),
        Customer(2, "acme", "Carol", "carol@acme.test", credits=10),
        Campaign(1, "acme", "Spring sale", budget=100),
    )


@pytest.fixture
def new_context(storage: FakeStorage) -> ContextFactory:
    """`storage` 를 사용하는 새 컨텍스트를 만드는 팩토리."""
    return lambda: UnitOfWorkContext(storage)


@pytest.fixture
def metadata() -> MetaData:
    return MetaData()


@pytest.fixture
def tables(metadata: MetaData) -> TableMap:
    return init_tables(metadata)


@pytest.fixture
def engine(tmp_path, metadata: MetaData, tables: TableMap) -> Generator[Engine, None, None]:
    """테스트마다 새로 만드는 파일 기반 SQLite 엔진.

    컨텍스트마다 별도의 커넥션을 쓰도록 인메모리 DB 대신 파일을 사용합니다.
    """
    engine = init_engine(metadata, f"sqlite:///{tmp_path / 'fastuow.db'}")
    yield engine
    engine.dispose()


@pytest.fixture
def sql_storage(engine: Engine, tables: TableMap) -> SqlAlchemyStorage:
    return SqlAlchemyStorage(engine, tables)
