from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from cwm_bridge.context import router as context_router
from cwm_bridge.context.registry import registry
from cwm_bridge.errors import ExternalCommandFailed
from cwm_bridge.powershell.bootstrap import ConnectionBootstrapper
from cwm_bridge.powershell.executor import CwmClient

CREDS = {
    "server": "na.example.net",
    "company": "acme",
    "pub_key": "pub-123",
    "private_key": "priv-secret-456",
    "client_id": "client-789",
}


class FakeClock:
    def __init__(self, start: datetime | None = None):
        self.now = start or datetime(2024, 1, 1, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


class FakeExecutor:
    """Stands in for PowerShellExecutor; records every script run."""

    def __init__(self, stdout: str = "", error: Exception | None = None):
        self.stdout = stdout
        self.error = error
        self.calls: list[dict] = []

    def run_script(self, script, stdin=None, timeout=None, secrets=()):
        self.calls.append({"script": script, "stdin": stdin, "secrets": list(secrets)})
        if self.error is not None:
            raise self.error
        return self.stdout


def command_failure(stderr: str, code: int = 1) -> ExternalCommandFailed:
    return ExternalCommandFailed(f"PowerShell execution failed with code {code}: {stderr}", returncode=code, stderr=stderr)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def fake_executor():
    return FakeExecutor()


@pytest.fixture(autouse=True)
def clean_registry():
    for cid in registry.ids():
        registry.delete(cid)
    yield
    for cid in registry.ids():
        registry.delete(cid)


@pytest.fixture
def wire(monkeypatch, fake_executor):
    """Point the context router at a fake executor and the given ambient credentials."""

    def _wire(defaults: dict | None = None):
        bootstrapper = ConnectionBootstrapper(defaults=defaults or {})
        monkeypatch.setattr(context_router, "bootstrapper", bootstrapper)
        monkeypatch.setattr(context_router, "cwm", CwmClient(executor=fake_executor))
        return bootstrapper

    return _wire
