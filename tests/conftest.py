"""Root conftest for tests directory."""

from __future__ import annotations

import asyncio
import json
import logging
import os
from typing import Any, Dict

import pytest

from dbbackup.core.logging import get_masking_filter
from tests.fakes import DummyProcess


@pytest.fixture(autouse=True)
def _isolate_environment(monkeypatch):
    """Keep notifier/logging env from the host out of tests."""
    for var in ("SMTP_HOST", "SMTP_FROM", "SMTP_TO", "NOTIFY_WEBHOOK_URL", "LOG_LEVEL"):
        monkeypatch.delenv(var, raising=False)
    secrets = set(get_masking_filter()._secrets)
    yield
    get_masking_filter()._secrets = secrets
    logging.getLogger().setLevel(logging.WARNING)


@pytest.fixture()
def fake_exec(monkeypatch):
    """Patch `asyncio.create_subprocess_exec`.

    Configure `state["returncode"]`, `state["stdout"]`, `state["stderr"]`;
    each invocation is appended to `state["calls"]` with the bytes read from a
    stdin file, if one was given. Bytes meant for stdout are written to the
    stdout file when the caller streams to a file.
    """
    state: Dict[str, Any] = {"returncode": 0, "stdout": b"", "stderr": b"", "calls": []}

    async def _fake(*args, **kwargs):
        stdin = kwargs.get("stdin")
        stdin_data = stdin.read() if hasattr(stdin, "read") else None
        state["calls"].append({"args": list(args), "env": kwargs.get("env"), "stdin": stdin_data})
        stdout = kwargs.get("stdout")
        if hasattr(stdout, "write"):
            stdout.write(state["stdout"])
            return DummyProcess(state["returncode"], None, state["stderr"])
        return DummyProcess(state["returncode"], state["stdout"], state["stderr"])

    monkeypatch.setattr(asyncio, "create_subprocess_exec", _fake)
    return state


@pytest.fixture()
def write_config(tmp_path):
    """Write a config dict to tmp_path/config.json and return its path."""

    def _write(data: Dict[str, Any], name: str = "config.json") -> str:
        path = tmp_path / name
        path.write_text(json.dumps(data), encoding="utf-8")
        return str(path)

    return _write


@pytest.fixture()
def mysql_local_config(tmp_path) -> Dict[str, Any]:
    backups = tmp_path / "backups"
    return {
        "Databases": [
            {"Type": "MySql", "Host": "db1", "DatabaseName": "app", "Username": "u", "Password": "p"}
        ],
        "Storage": {"Type": "Local", "LocalPath": os.fspath(backups)},
    }
