"""Command line script for FastUoW.

모든 명령은 컨텍스트를 하나 열어 작업하고, 끝나면 해제합니다. (명령 하나가 작업 단위
하나입니다.)
"""
import sys
from argparse import ArgumentParser, Namespace, RawTextHelpFormatter
from datetime import date, datetime, time
from pathlib import Path
from textwrap import dedent
from typing import Any, Optional, Sequence

from colorama import Fore, Style
from colorama import init as init_colors
from sqlalchemy import Column, Table
from sqlalchemy.engine import Engine

from fastuow.config import FastUoW
from fastuow.core import Entity, FastUoWError
from fastuow.logging import get_logger
from fastuow.orm import SqlAlchemyStorage, entity_from_table, reflect_tables
from fastuow.retry import run_in_context
from fastuow.uow import UnitOfWorkContext

init_colors()  # For Windows environment

YELLOW, CYAN, RED, GREEN = Fore.YELLOW, Fore.CYAN, Fore.RED, Fore.GREEN
WHITE_EX, CYAN_EX = Fore.LIGHTWHITE_EX, Fore.LIGHTCYAN_EX

logger = get_logger("fastuow.command")


def fg(text, color=Fore.WHITE):
    """텍스트를 지정된 ANSI 컬러로 출력합니다."""
    return f"{color}{text}{Fore.RESET}"


def bold(text, color=Fore.WHITE):
    """텍스트를 지정된 ANSI 컬러와 밝기 효과를 주어 출력합니다."""
    return f"{Style.BRIGHT}{color}{text}{Style.RESET_ALL}"


def coerce(column: Column, value: str) -> Any:
    """커맨드라인 문자열을 컬럼 타입의 값으로 변환합니다.

    ``null`` 은 ``None`` 이 됩니다. 타입을 알 수 없는 컬럼은 문자열 그대로 씁니다.
    """
    if value.lower() == "null":
        return None

    try:
        python_type = column.type.python_type
    except NotImplementedError:
        return value

    try:
        if python_type is bool:
            return value.lower() in ("1", "true", "yes", "on")
        if python_type in (int, float):
            return python_type(value)
        if python_type in (date, datetime, time):
            return python_type.fromisoformat(value)
    except ValueError as ex:
        raise FastUoWError(f"invalid value for {column.name}: {value!r}") from ex
    return value


class FastUoWCommand:
    """콘솔 명령의 실제 작업을 담당합니다."""

    def __init__(self, config: Optional[FastUoW] = None, engine: Engine = None):
        self.config = config or FastUoW.load_from_config(Path("."))
        self._engine = engine

    @property
    def engine(self) -> Engine:
        if self._engine is None:
            self._engine = self.config.create_engine()
        return self._engine

    def _table(self, name: str) -> Table:
        meta = reflect_tables(self.engine)
        if name not in meta.tables:
            raise FastUoWError(f"table not found: {name}")
        return meta.tables[name]

    def _context(self, table: Table) -> tuple[UnitOfWorkContext, type[Entity]]:
        kind = entity_from_table(table)
        return UnitOfWorkContext(SqlAlchemyStorage(self.engine, {kind: table})), kind

    def _key(self, table: Table, key: Sequence[str]) -> list[Any]:
        columns = list(table.primary_key.columns)
        if len(key) != len(columns):
            names = ", ".join(col.name for col in columns)
            raise FastUoWError(
                f"{table.name} key requires {len(columns)} values: {names}"
            )
        return [coerce(col, value) for col, value in zip(columns, key)]

    def _parse_assignments(self, table: Table, assignments: Sequence[str]):
        if not assignments:
            raise FastUoWError("nothing to set, use FIELD=VALUE")

        id_fields = {col.name for col in table.primary_key.columns}
        changes = dict[str, Any]()
        for item in assignments:
            name, sep, value = item.partition("=")
            if not sep:
                raise FastUoWError(f"invalid assignment {item!r}, use FIELD=VALUE")
            if name in id_fields:
                raise FastUoWError(f"identity column cannot be changed: {name}")
            if name not in table.c:
                raise FastUoWError(f"unknown column: {table.name}.{name}")
            changes[name] = coerce(table.c[name], value)
        return changes

    def info(self):
        """FastUoW 설정 정보를 출력합니다."""
        dot = bold("-", YELLOW)
        url = self.config.parse_db_url().render_as_string(hide_password=True)
        print(dot, fg("Name", CYAN), "  :", fg(self.config.name, WHITE_EX))
        print(dot, fg("Title", CYAN), " :", fg(self.config.title, WHITE_EX))
        print(dot, fg("DB URL", CYAN), ":", fg(url, WHITE_EX))

    def tables(self) -> list[str]:
        """DB 의 테이블 목록과 기본키 컬럼을 출력합니다."""
        meta = reflect_tables(self.engine)
        for table in meta.sorted_tables:
            pk = ", ".join(col.name for col in table.primary_key.columns)
            label = f"({pk})" if pk else fg("(no primary key)", RED)
            print(bold("-", YELLOW), fg(table.name, CYAN), label)
        return [table.name for table in meta.sorted_tables]

    def show(self, table_name: str, key: Sequence[str]) -> dict[str, Any]:
        """레코드 하나를 읽어서 출력합니다.

        예: ``fastuow show customer 1 acme``
        """
        table = self._table(table_name)
        ctx, kind = self._context(table)
        with ctx:
            entity = ctx.load(kind, *self._key(table, key))
            values = dict(zip(kind.id_fields, entity.identity.key))
            values.update(entity.get_fields())

        width = max(len(name) for name in values)
        for name, value in values.items():
            print(bold("-", YELLOW), fg(name.ljust(width), CYAN), ":", value)
        return values

    def set(self, table_name: str, values: Sequence[str]) -> int:
        """레코드 하나의 필드 값을 바꾸고 커밋합니다.

        기본키 값들 뒤에 FIELD=VALUE 를 붙입니다. 커밋이 실패하면 설정의
        `retry_attempts` 번까지 새 컨텍스트로 다시 시도합니다.

        예: ``fastuow set customer 1 acme name=Bob``
        """
        table = self._table(table_name)
        size = len(table.primary_key.columns)
        key = self._key(table, values[:size])
        changes = self._parse_assignments(table, values[size:])
        logger.debug("set %s %r: %r", table_name, key, changes)

        kind = entity_from_table(table)
        storage = SqlAlchemyStorage(self.engine, {kind: table})

        def apply(ctx: UnitOfWorkContext) -> None:
            entity = ctx.load(kind, *key)
            for name, value in changes.items():
                setattr(entity, name, value)

        run_in_context(
            lambda: UnitOfWorkContext(storage),
            apply,
            attempts=self.config.retry_attempts,
        )

        target = " ".join([table_name, *values[:size]])
        count = fg(len(changes), YELLOW)
        print(bold("✓", GREEN), f"{target}:", count, "fields committed")
        return len(changes)


class FastUoWCommandParser:
    """콘솔 커맨드 명령어 파서.

    실제 작업은 `FastUoWCommand` 객체에 위임합니다.
    """

    def __init__(self):
        """기본 생성자."""
        self.parser = ArgumentParser(
            "fastuow",
            description=f"✨ {bold('FastUoW')} : {fg('command line utility', CYAN_EX)}",
        )
        self.parser.add_argument("--db-url", help="DB URL (기본값: setup.cfg 설정)")
        self._subparsers = self.parser.add_subparsers(dest="command")

        for handler in [
            FastUoWCommand.info,
            FastUoWCommand.tables,
            FastUoWCommand.show,
            FastUoWCommand.set,
        ]:
            command = handler.__name__
            # 핸들러 함수의 주석을 커맨드라인 도움말로 변환하기 위한 작업입니다.
            doc = None
            if handler.__doc__:
                lines = handler.__doc__.splitlines()
                doc = lines[0] + "\n" + dedent("\n".join(lines[1:]))
            parser = self._subparsers.add_parser(
                command,
                description=doc,
                formatter_class=RawTextHelpFormatter,
            )
            if command in ("show", "set"):
                parser.add_argument("table", help="테이블 이름")
                parser.add_argument(
                    "values",
                    nargs="+",
                    help="기본키 값들 (set 은 뒤에 FIELD=VALUE 를 붙입니다)",
                )

    def parse_args(self, args: Sequence[str], command: FastUoWCommand = None) -> int:
        """콘솔 명령어를 해석해서 적절한 작업을 수행합니다.

        Returns:
            프로세스 종료 코드.
        """
        ns = self.parser.parse_args(args)
        if not ns.command:
            self.parser.print_help()
            return 0

        try:
            if command is None:
                config = FastUoW.load_from_config(Path("."))
                if ns.db_url:
                    config.db_url = ns.db_url
                command = FastUoWCommand(config)
            getattr(self, ns.command)(ns, command)
        except FastUoWError as e:
            print(
                f"{bold('FastUoW ERROR:', RED)} {fg(e.message, YELLOW)}",
                file=sys.stderr,
            )
            return 1
        return 0

    def info(self, ns: Namespace, command: FastUoWCommand):
        command.info()

    def tables(self, ns: Namespace, command: FastUoWCommand):
        command.tables()

    def show(self, ns: Namespace, command: FastUoWCommand):
        """`show` 명령어 처리."""
        command.show(ns.table, ns.values)

    def set(self, ns: Namespace, command: FastUoWCommand):
        """`set` 명령어 처리. 기본키 컬럼 수만큼의 값이 키, 나머지는 변경할 필드입니다."""
        command.set(ns.table, ns.values)


def console_main():
    parser = FastUoWCommandParser()
    sys.exit(parser.parse_args(sys.argv[1:]))


if __name__ == "__main__":
    console_main()
