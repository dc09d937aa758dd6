"""Tests for the async-settled CLI."""

import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent.parent))

from async_settled.__main__ import main
from async_settled.config import get_settings


@pytest.fixture(autouse=True)
def memory_backend(monkeypatch, tmp_path):
    monkeypatch.setenv("STORAGE_BACKEND", "memory")
    monkeypatch.setenv("CONFIG_PATH", str(tmp_path / "config.yaml"))
    monkeypatch.setenv("LOGFIRE_TOKEN", "")
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


def test_no_command_prints_help() -> None:
    assert main([]) == 1


def test_correction_check_for_elapsed_hour(capsys) -> None:
    # 2020-01-01 00:00:00 UTC, in seconds
    assert main(["correction-check", "--settled-time", "1577836800"]) == 0
    out = capsys.readouterr().out
    assert "1577836800000" in out
    assert "2020-01-01 00" in out


def test_correction_check_for_unsettled(capsys) -> None:
    assert main(["correction-check", "--settled-time", "0"]) == 0
    assert "no correction" in capsys.readouterr().out


def test_correction_check_rejects_garbage(capsys) -> None:
    assert main(["correction-check", "--settled-time", "yesterday"]) == 1


def test_ping_skips_memory_backend(capsys) -> None:
    assert main(["ping"]) == 0
    assert "nothing to do" in capsys.readouterr().out


def test_config_dump_omits_secrets(capsys, monkeypatch) -> None:
    monkeypatch.setenv("MONGO__URL", "mongodb://ledger:hunter2@db:27017")
    get_settings.cache_clear()

    assert main(["config"]) == 0
    out = capsys.readouterr().out
    assert "async_settled" in out
    assert "hunter2" not in out
    assert "ledger:***@db:27017" in out
