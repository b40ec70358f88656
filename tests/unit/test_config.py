"""FastUoW 설정 로딩 테스트."""
from pathlib import Path

import pytest
from sqlalchemy.pool import StaticPool

from fastuow import FastUoW, FastUoWError
from fastuow.config import DB_URL_ENV


@pytest.fixture(autouse=True)
def clear_db_url_env(monkeypatch):
    monkeypatch.delenv(DB_URL_ENV, raising=False)


def write_setupcfg(path: Path, body: str) -> None:
    (path / "setup.cfg").write_text(body, encoding="utf8")


def test_defaults_without_setupcfg(tmp_path: Path):
    config = FastUoW.load_from_config(tmp_path)

    assert config.name == tmp_path.name
    assert config.get_db_url() == "sqlite://"
    assert config.retry_attempts == 3
    assert config.echo is False


def test_load_setupcfg(tmp_path: Path):
    write_setupcfg(
        tmp_path,
        "[fastuow]\n"
        "name = billing\n"
        "db_url = sqlite:///billing.db\n"
        "echo = true\n"
        "retry_attempts = 5\n",
    )

    config = FastUoW.load_from_config(tmp_path)

    assert config.name == "billing"
    assert config.title == "billing"
    assert config.get_db_url() == "sqlite:///billing.db"
    assert config.echo is True
    assert config.retry_attempts == 5


def test_env_overrides_db_url(tmp_path: Path, monkeypatch):
    write_setupcfg(tmp_path, "[fastuow]\ndb_url = sqlite:///billing.db\n")
    monkeypatch.setenv(DB_URL_ENV, "postgresql://postgres:secret@db/billing")

    config = FastUoW.load_from_config(tmp_path)

    assert config.get_db_url() == "postgresql://postgres:secret@db/billing"
    assert config.get_db_connect_args() == {}
    assert config.get_db_poolclass() is None


def test_unknown_option_is_rejected(tmp_path: Path):
    write_setupcfg(tmp_path, "[fastuow]\ndatabase = sqlite://\n")

    with pytest.raises(FastUoWError, match="database"):
        FastUoW.load_from_config(tmp_path)


@pytest.mark.parametrize("value", ["many", "0", "-1"])
def test_invalid_retry_attempts(tmp_path: Path, value: str):
    write_setupcfg(tmp_path, f"[fastuow]\nretry_attempts = {value}\n")

    with pytest.raises(FastUoWError, match="retry_attempts"):
        FastUoW.load_from_config(tmp_path)


def test_invalid_db_url():
    config = FastUoW(db_url="not a url")

    with pytest.raises(FastUoWError, match="invalid DB URL"):
        config.get_db_connect_args()


@pytest.mark.parametrize(
    "url, memory",
    [
        ("sqlite://", True),
        ("sqlite:///:memory:", True),
        ("sqlite:///app.db", False),
    ],
)
def test_sqlite_engine_options(url: str, memory: bool):
    config = FastUoW(db_url=url)

    assert config.is_memory_db() is memory
    assert config.get_db_connect_args() == {"check_same_thread": False}
    assert (config.get_db_poolclass() is StaticPool) is memory
