"""기본 환경 설정."""

from __future__ import annotations

import os
from configparser import ConfigParser
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Mapping, Optional, Type

from sqlalchemy.engine import URL, Engine, make_url
from sqlalchemy.exc import ArgumentError
from sqlalchemy.pool import Pool, StaticPool

from fastuow.core import FastUoWError

DB_URL_ENV = "FASTUOW_DB_URL"
"""DB URL 을 덮어쓰는 환경 변수 이름."""


@dataclass
class FastUoWSetupConfig:
    """``setup.cfg`` 의 ``[fastuow]`` 섹션."""

    name: Optional[str] = None
    title: Optional[str] = None
    db_url: Optional[str] = None
    echo: Optional[str] = None
    retry_attempts: Optional[str] = None


def load_setupcfg(path: Path) -> Optional[FastUoWSetupConfig]:
    if (path / "setup.cfg").exists():
        # 현재 경로에 "setup.cfg" 파일이 있다면 [fastuow] 섹션에서
        # name, db_url 등의 정보를 읽습니다.
        config = ConfigParser()
        config.read(path / "setup.cfg", encoding="utf8")
        if "fastuow" in config:
            section = dict(config["fastuow"])
            known = {f.name for f in fields(FastUoWSetupConfig)}
            unknown = set(section) - known
            if unknown:
                options = ", ".join(sorted(unknown))
                raise FastUoWError(f"unknown [fastuow] options in setup.cfg: {options}")
            return FastUoWSetupConfig(**section)
    return None


def parse_attempts(value: str) -> int:
    """`retry_attempts` 옵션 값을 1 이상의 정수로 변환합니다."""
    try:
        attempts = int(value)
    except ValueError as ex:
        raise FastUoWError(f"invalid retry_attempts in setup.cfg: {value!r}") from ex
    if attempts < 1:
        raise FastUoWError(f"retry_attempts must be at least 1: {attempts}")
    return attempts


@dataclass
class FastUoW:
    """FastUoW 설정."""

    name: str = "fastuow"
    title: str = "FastUoW"
    db_url: str = "sqlite://"
    echo: bool = False
    """SqlAlchemy 가 실행하는 SQL 을 로그로 출력할지 여부."""
    retry_attempts: int = 3
    """`fastuow set` 이 :func:`~fastuow.retry.run_in_context` 에 넘기는 시도 횟수."""

    @staticmethod
    def load_from_config(path: Path = Path(".")) -> FastUoW:
        """`path` 의 ``setup.cfg`` 와 환경 변수에서 설정을 읽습니다.

        ``FASTUOW_DB_URL`` 환경 변수가 있으면 ``setup.cfg`` 의 `db_url` 보다
        우선합니다.
        """
        kwargs: dict[str, Any] = dict(name=path.absolute().name)

        cfg = load_setupcfg(path)
        if cfg:
            if cfg.name:
                kwargs["name"] = cfg.name
            kwargs["title"] = cfg.title or kwargs["name"]
            if cfg.db_url:
                kwargs["db_url"] = cfg.db_url
            if cfg.echo:
                kwargs["echo"] = cfg.echo.strip().lower() in ("1", "true", "yes", "on")
            if cfg.retry_attempts:
                kwargs["retry_attempts"] = parse_attempts(cfg.retry_attempts)

        db_url = os.environ.get(DB_URL_ENV)
        if db_url:
            kwargs["db_url"] = db_url

        return FastUoW(**kwargs)

    def get_db_url(self) -> str:
        """SqlAlchemy 에서 사용 가능한 형식의 DB URL을 리턴합니다."""
        return self.db_url

    def parse_db_url(self) -> URL:
        """DB URL 을 파싱합니다. 형식이 잘못되었으면 FastUoWError 가 발생합니다."""
        try:
            return make_url(self.get_db_url())
        except ArgumentError as ex:
            raise FastUoWError(f"invalid DB URL: {self.get_db_url()!r}") from ex

    def is_memory_db(self) -> bool:
        """인메모리 SQLite DB 인지 여부."""
        url = self.parse_db_url()
        return url.get_backend_name() == "sqlite" and url.database in (
            None,
            "",
            ":memory:",
        )

    def get_db_connect_args(self) -> dict[str, Any]:
        """Get db connection arguments for SQLAlchemy's engine creation.

        Example:
            For SQLite dbs, it could be: ::

                {'check_same_thread': False}
        """
        if self.parse_db_url().get_backend_name() == "sqlite":
            return {"check_same_thread": False}
        return {}

    def get_db_poolclass(self) -> Optional[Type[Pool]]:
        """인메모리 SQLite 는 모든 커넥션이 같은 DB 를 보도록 `StaticPool` 을 씁니다."""
        return StaticPool if self.is_memory_db() else None

    def create_engine(self, metadata=None) -> Engine:
        """설정에 맞는 Engine 을 만듭니다. `metadata` 가 있으면 테이블도 생성합니다."""
        from sqlalchemy import MetaData

        from fastuow.orm import init_engine

        return init_engine(
            metadata if metadata is not None else MetaData(),
            self.get_db_url(),
            connect_args=self.get_db_connect_args(),
            poolclass=self.get_db_poolclass(),
            show_log=self.echo,
        )

    def create_storage(self, tables: Mapping, engine: Optional[Engine] = None):
        """엔티티-테이블 매핑으로 :class:`~fastuow.orm.SqlAlchemyStorage` 를 만듭니다."""
        from fastuow.orm import SqlAlchemyStorage

        if engine is None:
            metadata = next(iter(tables.values())).metadata if tables else None
            engine = self.create_engine(metadata)
        return SqlAlchemyStorage(engine, tables)
